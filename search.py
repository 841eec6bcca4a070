"""Catalog search with a fixed fallback order.

The query is tried as an exact ISBN first, then as a substring of the
publisher name, then as a substring of an author name. The first strategy
that finds anything wins; results of different strategies are never mixed.
"""
import logging
from collections import namedtuple

from sqlalchemy import select
from sqlalchemy.orm import joinedload, selectinload

from data_models import db, Author, Book, book_author

logger = logging.getLogger(__name__)

SearchResult = namedtuple('SearchResult', ['books', 'match'])

MATCH_ISBN = 'isbn'
MATCH_PUBLISHER = 'publisher'
MATCH_AUTHOR = 'author'


def _books(stmt):
    stmt = stmt.options(joinedload(Book.publisher), selectinload(Book.authors)).order_by(
        Book.title.asc(), Book.isbn.asc()
    )
    return db.session.scalars(stmt).unique().all()


def by_isbn(query):
    return _books(select(Book).where(Book.isbn == query))


def by_publisher(query):
    return _books(select(Book).where(Book.publisher_name.icontains(query, autoescape=True)))


def by_author(query):
    linked = (
        select(book_author.c.isbn)
        .join(Author, Author.author_id == book_author.c.author_id)
        .where(Author.name.icontains(query, autoescape=True))
    )
    return _books(select(Book).where(Book.isbn.in_(linked)))


STRATEGIES = (
    (MATCH_ISBN, by_isbn),
    (MATCH_PUBLISHER, by_publisher),
    (MATCH_AUTHOR, by_author),
)


def search_catalog(query):
    query = (query or '').strip()
    if not query:
        return SearchResult([], None)

    for match, strategy in STRATEGIES:
        books = strategy(query)
        if books:
            logger.debug("search %r matched %d book(s) by %s", query, len(books), match)
            return SearchResult(books, match)
    return SearchResult([], None)
