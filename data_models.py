import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

db = SQLAlchemy()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Author(db.Model):
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(128), nullable=False)
    genre = db.Column(db.String(64), nullable=True)
    age = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f"<Author id={self.id} name={self.name!r}>"

    def __str__(self):
        return f"{self.name} ({self.genre or 'unknown genre'}, age: {self.age})"


class Book(db.Model):
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(255), nullable=False)
    isbn = db.Column(db.String(20), nullable=False, unique=True)

    # Only filled when the book row holds the foreign key.
    author_id = db.Column(db.Integer, db.ForeignKey('authors.id'), nullable=True)
    books_order = db.Column(db.Integer, nullable=True)

    def __eq__(self, other):
        if self is other:
            return True
        if not isinstance(other, Book):
            return NotImplemented
        return self.id is not None and self.id == other.id

    def __hash__(self):
        # Constant per class so membership survives id assignment.
        return hash(Book)

    def __repr__(self):
        return f"<Book id={self.id} isbn={self.isbn!r} title={self.title!r}>"

    def __str__(self):
        return f"{self.title} ({self.isbn})"


author_books = db.Table(
    'author_books',
    db.Column('author_id', db.Integer, db.ForeignKey('authors.id'), nullable=False),
    db.Column('books_id', db.Integer, db.ForeignKey('books.id'), nullable=False),
    db.Column('books_order', db.Integer, nullable=True),
)


BOOK_COLUMNS = ('id', 'title', 'isbn', 'author_id', 'books_order')


def book_from_row(row):
    """Build a detached Book from a ``books`` row mapping."""
    return Book(**{name: row[name] for name in BOOK_COLUMNS})


def author_from_row(row):
    return Author(id=row['id'], name=row['name'], genre=row['genre'], age=row['age'])
