from datetime import date

from flask_wtf import FlaskForm
from wtforms import DecimalField, IntegerField, SelectField, StringField, validators
from wtforms.validators import (
    URL, DataRequired, InputRequired, Length, NumberRange, Optional, Regexp,
)

from exceptions import ValidationError

FIRST_PRINT_YEAR = 1450


def _optional_int(value):
    if value in (None, ''):
        return None
    return int(value)


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
    return value or None


def _plausible_year(form, field):
    # upper bound is next calendar year, read at validation time
    latest = date.today().year + 1
    if field.data is not None and not FIRST_PRINT_YEAR <= field.data <= latest:
        raise validators.ValidationError(f"Das Jahr muss zwischen {FIRST_PRINT_YEAR} und {latest} liegen.")


class BookEditForm(FlaskForm):
    """Book fields that may change after creation (everything but the ISBN)."""

    title = StringField('Titel', filters=[_blank_to_none], validators=[DataRequired(), Length(max=255)])
    publication_year = IntegerField(
        'Erscheinungsjahr',
        validators=[
            InputRequired(),
            _plausible_year,
        ],
    )
    price = DecimalField('Preis', places=2, validators=[InputRequired(), NumberRange(min=0)])
    publisher_name = SelectField('Verlag', choices=[], validators=[DataRequired()])
    author_id = SelectField('Autor', choices=[], coerce=_optional_int, validate_choice=True)

    def set_choices(self, publishers, authors):
        self.publisher_name.choices = [('', '– Verlag wählen –')] + list(publishers)
        self.author_id.choices = [('', '– kein Autor –')] + list(authors)
        return self

    def book_values(self):
        return {
            'title': self.title.data,
            'year': self.publication_year.data,
            'price': self.price.data,
            'publisher_name': self.publisher_name.data,
            'author_id': self.author_id.data,
        }


class BookForm(BookEditForm):
    isbn = StringField(
        'ISBN',
        filters=[_blank_to_none],
        validators=[
            DataRequired(),
            Length(min=10, max=17),
            Regexp(r'^[0-9][0-9-]*[0-9Xx]$', message='ISBN darf nur Ziffern, Bindestriche und ein abschließendes X enthalten.'),
        ],
    )

    def book_values(self):
        values = super().book_values()
        values['isbn'] = self.isbn.data
        return values


class AuthorForm(FlaskForm):
    name = StringField('Name', filters=[_blank_to_none], validators=[DataRequired(), Length(max=128)])
    url = StringField('Webseite', filters=[_blank_to_none], validators=[Optional(), URL(), Length(max=255)])
    address = StringField('Adresse', filters=[_blank_to_none], validators=[Optional(), Length(max=255)])


class PublisherForm(FlaskForm):
    name = StringField(
        'Name',
        filters=[_blank_to_none],
        validators=[DataRequired(), Length(max=128), Regexp(r'^[^/]+$', message='Der Name darf keinen Schrägstrich enthalten.')],
    )
    address = StringField('Adresse', filters=[_blank_to_none], validators=[Optional(), Length(max=255)])
    url = StringField('Webseite', filters=[_blank_to_none], validators=[Optional(), URL(), Length(max=255)])
    phone = StringField(
        'Telefon',
        filters=[_blank_to_none],
        validators=[Optional(), Regexp(r'^[0-9+()/\s-]{3,32}$', message='Ungültige Telefonnummer.')],
    )


def validate_form(form):
    """Run every validator of ``form`` and raise with all failing fields."""
    if not form.validate():
        raise ValidationError(form.errors)
    return form
