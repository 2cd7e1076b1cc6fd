import itertools

from data_models import Author, Book

_isbns = itertools.count(1)


def make_book(title='Untitled'):
    return Book(title=title, isbn=f"978-{next(_isbns):010d}")


def make_books(count, prefix='Book'):
    return [make_book(f"{prefix} {n}") for n in range(1, count + 1)]


def make_author(name='Joana Nimar'):
    return Author(name=name, genre='History', age=34)


def shape(statements):
    return [(statement.kind, statement.table) for statement in statements]


def writes(statements):
    return [statement for statement in statements if statement.is_write]
