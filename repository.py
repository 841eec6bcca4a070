"""Persistence operations for books, authors and publishers.

Reads go through the ORM. Writes that touch more than one table are plain
parameterized statements executed inside one transaction: either the whole
cascade is committed or it is rolled back and the error re-raised.
"""
import logging
from contextlib import contextmanager

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from data_models import db, Author, Book, Publisher, book_author
from exceptions import NotFound, UniqueConstraintViolation

logger = logging.getLogger(__name__)


def _is_unique_violation(exc):
    orig = exc.orig
    if getattr(orig, 'pgcode', None) == '23505':
        return True
    message = str(orig)
    return 'UNIQUE constraint failed' in message or 'duplicate key' in message


def _exists(model, key):
    return db.session.get(model, key) is not None


@contextmanager
def _atomic(conflict_message=None):
    try:
        yield db.session
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if not _is_unique_violation(exc):
            raise
        logger.warning("unique constraint violated, transaction rolled back: %s", exc.orig)
        raise UniqueConstraintViolation(conflict_message) from exc
    except Exception:
        db.session.rollback()
        raise


# ---------- Home ----------

def catalog_counts():
    return {
        'books': db.session.scalar(select(func.count()).select_from(Book)),
        'authors': db.session.scalar(select(func.count()).select_from(Author)),
        'publishers': db.session.scalar(select(func.count()).select_from(Publisher)),
    }


# ---------- Books ----------

def list_books():
    stmt = (
        select(Book)
        .options(joinedload(Book.publisher), selectinload(Book.authors))
        .order_by(Book.title.asc(), Book.isbn.asc())
    )
    return db.session.scalars(stmt).unique().all()


def get_book(isbn):
    book = db.session.get(Book, isbn)
    if book is None:
        raise NotFound(f"Buch mit ISBN {isbn} nicht gefunden.")
    return book


def current_author_id(isbn):
    return db.session.scalar(
        select(book_author.c.author_id).where(book_author.c.isbn == isbn).limit(1)
    )


def _require_publisher(name):
    if name is not None and not _exists(Publisher, name):
        raise NotFound(f"Verlag {name!r} nicht gefunden.")


def _require_author(author_id):
    if author_id is not None and not _exists(Author, author_id):
        raise NotFound(f"Autor {author_id} nicht gefunden.")


def create_book(isbn, title, year, price, publisher_name, author_id=None):
    conflict = f"ISBN {isbn} existiert bereits."
    if _exists(Book, isbn):
        logger.warning("book create rejected, isbn %s exists", isbn)
        raise UniqueConstraintViolation(conflict)
    _require_publisher(publisher_name)
    _require_author(author_id)

    with _atomic(conflict) as session:
        session.execute(
            insert(Book).values(
                isbn=isbn, title=title, year=year, price=price, publisher_name=publisher_name
            )
        )
        if author_id is not None:
            session.execute(insert(book_author).values(author_id=author_id, isbn=isbn))
    logger.info("created book %s", isbn)


def update_book(isbn, title, year, price, publisher_name, author_id=None):
    get_book(isbn)
    _require_publisher(publisher_name)
    _require_author(author_id)

    with _atomic() as session:
        session.execute(
            update(Book)
            .where(Book.isbn == isbn)
            .values(title=title, year=year, price=price, publisher_name=publisher_name)
        )
        # a book keeps at most one author link: replace, never append
        session.execute(delete(book_author).where(book_author.c.isbn == isbn))
        if author_id is not None:
            session.execute(insert(book_author).values(author_id=author_id, isbn=isbn))
    logger.info("updated book %s", isbn)


def delete_book(isbn):
    get_book(isbn)
    with _atomic() as session:
        session.execute(delete(book_author).where(book_author.c.isbn == isbn))
        session.execute(delete(Book).where(Book.isbn == isbn))
    logger.info("deleted book %s", isbn)


# ---------- Authors ----------

def list_authors():
    return db.session.scalars(select(Author).order_by(Author.author_id.asc())).all()


def author_choices():
    rows = db.session.execute(select(Author.author_id, Author.name).order_by(Author.name.asc()))
    return [(row.author_id, row.name) for row in rows]


def get_author(author_id):
    author = db.session.get(Author, author_id)
    if author is None:
        raise NotFound(f"Autor {author_id} nicht gefunden.")
    return author


def create_author(name, url=None, address=None):
    with _atomic() as session:
        author = Author(name=name, url=url, address=address)
        session.add(author)
        session.flush()
        author_id = author.author_id
    logger.info("created author %s", author_id)
    return author_id


def update_author(author_id, name, url=None, address=None):
    get_author(author_id)
    with _atomic() as session:
        session.execute(
            update(Author)
            .where(Author.author_id == author_id)
            .values(name=name, url=url, address=address)
        )
    logger.info("updated author %s", author_id)


def delete_author(author_id):
    get_author(author_id)
    with _atomic() as session:
        session.execute(delete(book_author).where(book_author.c.author_id == author_id))
        session.execute(delete(Author).where(Author.author_id == author_id))
    logger.info("deleted author %s", author_id)


# ---------- Publishers ----------

def list_publishers():
    return db.session.scalars(select(Publisher).order_by(Publisher.name.asc())).all()


def publisher_choices():
    return [(name, name) for name in db.session.scalars(select(Publisher.name).order_by(Publisher.name.asc()))]


def get_publisher(name):
    publisher = db.session.get(Publisher, name)
    if publisher is None:
        raise NotFound(f"Verlag {name!r} nicht gefunden.")
    return publisher


def create_publisher(name, address=None, url=None, phone=None):
    conflict = f"Verlag {name!r} existiert bereits."
    if _exists(Publisher, name):
        logger.warning("publisher create rejected, %r exists", name)
        raise UniqueConstraintViolation(conflict)
    with _atomic(conflict) as session:
        session.execute(insert(Publisher).values(name=name, address=address, url=url, phone=phone))
    logger.info("created publisher %r", name)


def update_publisher(old_name, name, address=None, url=None, phone=None):
    """Update a publisher, renaming it if ``name`` differs from ``old_name``.

    Books reference publishers by name, so a rename inserts the row under
    the new name, repoints every book and then drops the old row. All of it
    happens in one transaction.
    """
    get_publisher(old_name)

    if name == old_name:
        with _atomic() as session:
            session.execute(
                update(Publisher)
                .where(Publisher.name == old_name)
                .values(address=address, url=url, phone=phone)
            )
        logger.info("updated publisher %r", old_name)
        return

    conflict = f"Verlag {name!r} existiert bereits."
    if _exists(Publisher, name):
        logger.warning("publisher rename %r -> %r rejected, target exists", old_name, name)
        raise UniqueConstraintViolation(conflict)

    with _atomic(conflict) as session:
        session.execute(insert(Publisher).values(name=name, address=address, url=url, phone=phone))
        moved = session.execute(
            update(Book).where(Book.publisher_name == old_name).values(publisher_name=name)
        ).rowcount
        session.execute(delete(Publisher).where(Publisher.name == old_name))
    logger.info("renamed publisher %r -> %r, %s book(s) reattributed", old_name, name, moved)


def delete_publisher(name):
    get_publisher(name)
    isbns = select(Book.isbn).where(Book.publisher_name == name)
    with _atomic() as session:
        session.execute(delete(book_author).where(book_author.c.isbn.in_(isbns)))
        removed = session.execute(delete(Book).where(Book.publisher_name == name)).rowcount
        session.execute(delete(Publisher).where(Publisher.name == name))
    logger.info("deleted publisher %r with %s book(s)", name, removed)
