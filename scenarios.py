"""The demonstration scenario replayed for every mapping strategy."""
import uuid

from association import Bookshelf
from data_models import Author, Book


def new_book(title):
    return Book(title=title, isbn=f"978-{uuid.uuid4().hex[:12]}")


def run_scenario(strategy, books=3):
    """Run the association operations once and return ``(step, statements)`` pairs.

    The identity map is cleared before each write step, so every step loads
    the author and its collection the way a fresh unit of work would.
    """
    shelf = Bookshelf(strategy)
    steps = []

    def step(name, operation):
        start = len(shelf.transcript)
        operation()
        steps.append((name, shelf.transcript[start:]))

    def fresh():
        shelf.clear()
        return shelf.load(author_id)

    author = Author(name='Joana Nimar', genre='History', age=34)
    titles = [f"A History of Ancient Prague, Vol. {n}" for n in range(1, books + 1)]
    step('insert author with books', lambda: shelf.insert_author(author, [new_book(t) for t in titles]))
    author_id = author.id

    step('fetch books', lambda: shelf.fetch_books(author_id))
    step('fetch first page', lambda: shelf.fetch_page(author_id, 0, 2))
    step('add book', lambda: fresh().add(new_book('A People\'s History')))
    step('add book at front', lambda: fresh().add(new_book('The Beatles Anthology'), position=0))

    def remove(index):
        aggregate = fresh()
        aggregate.remove(aggregate.books[index])

    step('remove first book', lambda: remove(0))
    step('remove last book', lambda: remove(-1))
    step('delete book', lambda: shelf.delete_book(shelf.fetch_books(author_id)[0].id))
    step('remove all books', lambda: fresh().remove_all())
    step('delete author', lambda: fresh().delete())
    return steps
