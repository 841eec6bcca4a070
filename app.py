import logging
import os
from decimal import Decimal

import click
from flask import Blueprint, Flask, flash, redirect, render_template, request, url_for
from flask.cli import with_appcontext
from flask_wtf import CSRFProtect
from werkzeug.exceptions import HTTPException

import repository
from config import Config
from data_models import db
from exceptions import LibraryError, UniqueConstraintViolation, ValidationError
from forms import AuthorForm, BookEditForm, BookForm, PublisherForm, validate_form
from search import search_catalog

logger = logging.getLogger(__name__)

bp = Blueprint('library', __name__)
csrf = CSRFProtect()


# ---------- Home ----------

@bp.get('/')
def home():
    counts = repository.catalog_counts()
    return render_template(
        'home.html',
        active_page='home',
        total_books=counts['books'],
        total_authors=counts['authors'],
        total_publishers=counts['publishers'],
    )


# ---------- Books ----------

def _book_form(form_class, **kwargs):
    form = form_class(**kwargs)
    return form.set_choices(repository.publisher_choices(), repository.author_choices())


@bp.get('/books')
def list_books():
    return render_template('books/show.html', books=repository.list_books(), active_page='books')


@bp.get('/books/new')
def new_book():
    return render_template('books/new.html', form=_book_form(BookForm))


@bp.post('/books')
def create_book():
    form = _book_form(BookForm)
    try:
        validate_form(form)
        repository.create_book(**form.book_values())
    except (ValidationError, UniqueConstraintViolation) as err:
        return render_template('books/new.html', form=form, message=err.message, status='error'), err.status_code

    flash('Buch erfolgreich hinzugefügt.', 'success')
    return redirect(url_for('library.list_books'))


@bp.get('/books/<isbn>/edit')
def edit_book(isbn: str):
    book = repository.get_book(isbn)
    form = _book_form(BookEditForm, data={
        'title': book.title,
        'publication_year': book.year,
        'price': book.price,
        'publisher_name': book.publisher_name,
        'author_id': repository.current_author_id(isbn),
    })
    return render_template('books/edit.html', book=book, form=form)


@bp.route('/books/<isbn>', methods=['POST', 'PUT'])
def update_book(isbn: str):
    book = repository.get_book(isbn)
    form = _book_form(BookEditForm)
    try:
        validate_form(form)
    except ValidationError as err:
        return render_template('books/edit.html', book=book, form=form, message=err.message, status='error'), err.status_code

    repository.update_book(isbn, **form.book_values())
    flash('Buch gespeichert.', 'success')
    return redirect(url_for('library.list_books'))


@bp.route('/books/delete/<isbn>', methods=['POST', 'DELETE'])
def delete_book(isbn: str):
    repository.delete_book(isbn)
    flash('Buch wurde gelöscht.', 'success')
    return redirect(url_for('library.list_books'))


# ---------- Authors ----------

@bp.get('/authors')
def list_authors():
    return render_template('authors/show.html', authors=repository.list_authors(), active_page='authors')


@bp.get('/authors/new')
def new_author():
    return render_template('authors/new.html', form=AuthorForm())


@bp.post('/authors')
def create_author():
    form = AuthorForm()
    try:
        validate_form(form)
    except ValidationError as err:
        return render_template('authors/new.html', form=form, message=err.message, status='error'), err.status_code

    repository.create_author(form.name.data, form.url.data, form.address.data)
    flash('Autor erfolgreich hinzugefügt.', 'success')
    return redirect(url_for('library.list_authors'))


@bp.get('/authors/<int:author_id>/edit')
def edit_author(author_id: int):
    author = repository.get_author(author_id)
    return render_template('authors/edit.html', author=author, form=AuthorForm(obj=author))


@bp.route('/authors/<int:author_id>', methods=['POST', 'PUT'])
def update_author(author_id: int):
    author = repository.get_author(author_id)
    form = AuthorForm()
    try:
        validate_form(form)
    except ValidationError as err:
        return render_template('authors/edit.html', author=author, form=form, message=err.message, status='error'), err.status_code

    repository.update_author(author_id, form.name.data, form.url.data, form.address.data)
    flash('Autor gespeichert.', 'success')
    return redirect(url_for('library.list_authors'))


@bp.route('/authors/delete/<int:author_id>', methods=['POST', 'DELETE'])
def delete_author(author_id: int):
    repository.delete_author(author_id)
    flash('Autor wurde gelöscht.', 'success')
    return redirect(url_for('library.list_authors'))


# ---------- Publishers ----------

@bp.get('/publishers')
def list_publishers():
    return render_template('publishers/show.html', publishers=repository.list_publishers(), active_page='publishers')


@bp.get('/publishers/new')
def new_publisher():
    return render_template('publishers/new.html', form=PublisherForm())


@bp.post('/publishers')
def create_publisher():
    form = PublisherForm()
    try:
        validate_form(form)
        repository.create_publisher(form.name.data, form.address.data, form.url.data, form.phone.data)
    except (ValidationError, UniqueConstraintViolation) as err:
        return render_template('publishers/new.html', form=form, message=err.message, status='error'), err.status_code

    flash('Verlag erfolgreich hinzugefügt.', 'success')
    return redirect(url_for('library.list_publishers'))


@bp.get('/publishers/<name>/edit')
def edit_publisher(name: str):
    publisher = repository.get_publisher(name)
    return render_template('publishers/edit.html', publisher=publisher, form=PublisherForm(obj=publisher))


@bp.route('/publishers/<name>', methods=['POST', 'PUT'])
def update_publisher(name: str):
    publisher = repository.get_publisher(name)
    form = PublisherForm()
    try:
        validate_form(form)
        repository.update_publisher(name, form.name.data, form.address.data, form.url.data, form.phone.data)
    except (ValidationError, UniqueConstraintViolation) as err:
        return render_template('publishers/edit.html', publisher=publisher, form=form, message=err.message, status='error'), err.status_code

    flash('Verlag gespeichert.', 'success')
    return redirect(url_for('library.list_publishers'))


@bp.route('/publishers/delete/<name>', methods=['POST', 'DELETE'])
def delete_publisher(name: str):
    repository.delete_publisher(name)
    flash('Verlag und zugehörige Bücher wurden gelöscht.', 'success')
    return redirect(url_for('library.list_publishers'))


# ---------- Search ----------

@bp.get('/search')
def search():
    query = (request.args.get('query') or '').strip()
    result = search_catalog(query)
    return render_template(
        'search.html',
        query=query,
        books=result.books,
        match=result.match,
        no_results=bool(query) and not result.books,
    )


# ---------- Errors ----------

def render_error(message, status_code):
    return render_template('error.html', error_message=message, status_code=status_code), status_code


def handle_library_error(err):
    if err.status_code >= 500:
        logger.error("%s: %s", type(err).__name__, err.message)
    elif isinstance(err, UniqueConstraintViolation):
        logger.warning("conflict on %s %s: %s", request.method, request.path, err.message)
    return render_error(err.message, err.status_code)


def handle_http_error(err):
    return render_error(err.description, err.code)


def handle_unexpected_error(err):
    logger.exception("unhandled error on %s %s", request.method, request.path)
    db.session.rollback()
    return render_error('Ein unerwarteter Fehler ist aufgetreten.', 500)


# ---------- CLI ----------

DEMO_PUBLISHERS = [
    ('Suhrkamp', 'Torstraße 44, 10119 Berlin', 'https://www.suhrkamp.de', '+49 30 740744-0'),
    ('Hanser', 'Vilshofener Str. 10, 81679 München', 'https://www.hanser-literaturverlage.de', '+49 89 99830-0'),
]

DEMO_BOOKS = [
    ('978-3-518-46842-5', 'Homo faber', 1957, Decimal('12.00'), 'Suhrkamp', 'Max Frisch'),
    ('978-3-446-27114-9', 'Die Vermessung der Welt', 2005, Decimal('22.00'), 'Hanser', 'Daniel Kehlmann'),
]


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables."""
    db.create_all()
    click.echo('Datenbank initialisiert.')


@click.command('seed-demo')
@with_appcontext
def seed_demo_command():
    """Insert a small demo catalog unless books already exist."""
    if repository.catalog_counts()['books']:
        click.echo('Katalog enthält bereits Bücher, nichts zu tun.')
        return
    for name, address, url, phone in DEMO_PUBLISHERS:
        if name not in dict(repository.publisher_choices()):
            repository.create_publisher(name, address, url, phone)
    for isbn, title, year, price, publisher_name, author_name in DEMO_BOOKS:
        author_id = repository.create_author(author_name)
        repository.create_book(isbn, title, year, price, publisher_name, author_id)
    click.echo(f'{len(DEMO_BOOKS)} Bücher angelegt.')


# ---------- App factory ----------

def configure_logging(level_name):
    logging.basicConfig(
        level=getattr(logging, str(level_name).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _ensure_sqlite_dir(uri: str):
    if uri.startswith('sqlite:///') and ':memory:' not in uri:
        directory = os.path.dirname(uri[len('sqlite:///'):])
        if directory:
            os.makedirs(directory, exist_ok=True)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config['LOG_LEVEL'])
    _ensure_sqlite_dir(app.config['SQLALCHEMY_DATABASE_URI'])

    db.init_app(app)
    csrf.init_app(app)
    app.register_blueprint(bp)

    app.register_error_handler(LibraryError, handle_library_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(Exception, handle_unexpected_error)

    app.cli.add_command(init_db_command)
    app.cli.add_command(seed_demo_command)

    with app.app_context():
        db.create_all()

    logger.info("app created with %s", config_object.__name__)
    return app


if __name__ == '__main__':
    create_app().run(debug=True)
