"""Shared fixtures: a fresh app on in-memory SQLite per test."""
from decimal import Decimal

import pytest

import repository
from app import create_app
from config import TestingConfig
from data_models import db


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield


@pytest.fixture
def catalog(app):
    """Two publishers, two authors and three books.

    Suhrkamp publishes two books by Max Frisch, Hanser one by Daniel
    Kehlmann.
    """
    with app.app_context():
        repository.create_publisher('Suhrkamp', 'Berlin', 'https://www.suhrkamp.de', '+49 30 740744-0')
        repository.create_publisher('Hanser', 'München', 'https://www.hanser.de', '+49 89 99830-0')
        frisch = repository.create_author('Max Frisch', 'https://www.maxfrisch.ch', 'Zürich')
        kehlmann = repository.create_author('Daniel Kehlmann')
        repository.create_book('9783518368015', 'Homo faber', 1957, Decimal('12.00'), 'Suhrkamp', frisch)
        repository.create_book('9783518366509', 'Stiller', 1954, Decimal('14.50'), 'Suhrkamp', frisch)
        repository.create_book('9783498035266', 'Die Vermessung der Welt', 2005, Decimal('22.00'), 'Hanser', kehlmann)
    return {'frisch': frisch, 'kehlmann': kehlmann}
