from datetime import date
from decimal import Decimal

import pytest
from werkzeug.datastructures import MultiDict

import forms
from exceptions import ValidationError
from forms import AuthorForm, BookEditForm, BookForm, PublisherForm, validate_form

PUBLISHERS = [('Suhrkamp', 'Suhrkamp')]
AUTHORS = [(1, 'Max Frisch')]


def _book_form(form_class=BookForm, **fields):
    data = {
        'isbn': '978-3-518-36801-5',
        'title': 'Homo faber',
        'publication_year': '1957',
        'price': '12.00',
        'publisher_name': 'Suhrkamp',
        'author_id': '1',
    }
    data.update(fields)
    form = form_class(formdata=MultiDict(data))
    return form.set_choices(PUBLISHERS, AUTHORS)


def test_valid_book_form_returns_coerced_values(app):
    with app.test_request_context():
        form = validate_form(_book_form())

        assert form.book_values() == {
            'isbn': '978-3-518-36801-5',
            'title': 'Homo faber',
            'year': 1957,
            'price': Decimal('12.00'),
            'publisher_name': 'Suhrkamp',
            'author_id': 1,
        }


def test_book_form_reports_every_failing_field(app):
    with app.test_request_context():
        form = _book_form(title='', publication_year='1200', price='-3', isbn='abc')

        with pytest.raises(ValidationError) as excinfo:
            validate_form(form)

    assert excinfo.value.fields == ['isbn', 'price', 'publication_year', 'title']
    assert excinfo.value.status_code == 400


def test_book_form_rejects_non_numeric_price(app):
    with app.test_request_context():
        with pytest.raises(ValidationError) as excinfo:
            validate_form(_book_form(price='zwölf'))

    assert excinfo.value.fields == ['price']


def test_book_form_rejects_unknown_publisher_and_author(app):
    with app.test_request_context():
        with pytest.raises(ValidationError) as excinfo:
            validate_form(_book_form(publisher_name='Rowohlt', author_id='7'))

    assert excinfo.value.fields == ['author_id', 'publisher_name']


def test_book_form_author_is_optional(app):
    with app.test_request_context():
        form = validate_form(_book_form(author_id=''))

        assert form.book_values()['author_id'] is None


def test_edit_form_has_no_isbn(app):
    with app.test_request_context():
        form = validate_form(_book_form(BookEditForm, isbn='not an isbn'))

        assert 'isbn' not in form.book_values()


def test_author_form_requires_name_and_valid_url(app):
    with app.test_request_context():
        form = AuthorForm(formdata=MultiDict({'name': '  ', 'url': 'keine-url', 'address': 'Zürich'}))

        with pytest.raises(ValidationError) as excinfo:
            validate_form(form)

    assert excinfo.value.fields == ['name', 'url']


def test_author_form_blank_optional_fields_become_none(app):
    with app.test_request_context():
        form = validate_form(AuthorForm(formdata=MultiDict({'name': 'Max Frisch', 'url': '', 'address': ''})))

        assert form.url.data is None
        assert form.address.data is None


def test_publisher_form_rules(app):
    with app.test_request_context():
        form = PublisherForm(formdata=MultiDict({'name': 'A/B', 'phone': 'call me'}))

        with pytest.raises(ValidationError) as excinfo:
            validate_form(form)

    assert excinfo.value.fields == ['name', 'phone']


def test_publisher_form_accepts_typical_phone_numbers(app):
    with app.test_request_context():
        form = PublisherForm(formdata=MultiDict({'name': 'Hanser', 'phone': '+49 (89) 99830-0'}))

        assert validate_form(form).phone.data == '+49 (89) 99830-0'


def test_book_form_enforces_length_limits(app):
    with app.test_request_context():
        form = _book_form(title='x' * 256, isbn='978-3-518-36801-55')

        with pytest.raises(ValidationError) as excinfo:
            validate_form(form)

    assert excinfo.value.fields == ['isbn', 'title']


def test_book_form_rejects_too_short_isbn(app):
    with app.test_request_context():
        with pytest.raises(ValidationError) as excinfo:
            validate_form(_book_form(isbn='123456789'))

    assert excinfo.value.fields == ['isbn']


def test_year_upper_bound_follows_the_calendar(app, monkeypatch):
    class NewYear(date):
        @classmethod
        def today(cls):
            return cls(2031, 1, 2)

    monkeypatch.setattr(forms, 'date', NewYear)

    with app.test_request_context():
        assert validate_form(_book_form(publication_year='2032')).publication_year.data == 2032

        with pytest.raises(ValidationError) as excinfo:
            validate_form(_book_form(publication_year='2033'))

    assert excinfo.value.fields == ['publication_year']


def test_year_before_printing_is_rejected(app):
    with app.test_request_context():
        with pytest.raises(ValidationError) as excinfo:
            validate_form(_book_form(publication_year='1449'))

    assert excinfo.value.fields == ['publication_year']
