from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record):
    # SQLite only enforces foreign keys when asked to, per connection.
    # Its built-in lower() folds ASCII only, so umlauts would not match.
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        dbapi_connection.create_function("lower", 1, _unicode_lower)
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.close()


book_author = db.Table(
    'bookauthor',
    db.Column('author_id', db.Integer, db.ForeignKey('author.author_id'), primary_key=True),
    db.Column('isbn', db.String(20), db.ForeignKey('book.isbn'), primary_key=True),
)


class Author(db.Model):
    __tablename__ = 'author'

    author_id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(128), nullable=False)
    url = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(255), nullable=True)

    books = db.relationship('Book', secondary=book_author, back_populates='authors', viewonly=True)

    def __repr__(self):
        return f"<Author author_id={self.author_id} name={self.name!r}>"

    def __str__(self):
        return self.name


class Publisher(db.Model):
    __tablename__ = 'publisher'

    name = db.Column(db.String(128), primary_key=True)
    address = db.Column(db.String(255), nullable=True)
    url = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    books = db.relationship('Book', back_populates='publisher', viewonly=True)

    def __repr__(self):
        return f"<Publisher name={self.name!r}>"

    def __str__(self):
        return self.name


class Book(db.Model):
    __tablename__ = 'book'

    isbn = db.Column(db.String(20), primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    year = db.Column(db.Integer, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)

    publisher_name = db.Column(db.String(128), db.ForeignKey('publisher.name'), nullable=True)
    publisher = db.relationship('Publisher', back_populates='books', viewonly=True)
    authors = db.relationship('Author', secondary=book_author, back_populates='books', viewonly=True)

    @property
    def author_names(self):
        return ", ".join(author.name for author in self.authors)

    def __repr__(self):
        return f"<Book isbn={self.isbn!r} title={self.title!r}>"

    def __str__(self):
        return f"{self.title} ({self.year})"
