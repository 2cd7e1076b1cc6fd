"""Association façade: add, remove and fetch an author's books under one mapping strategy.

Every public operation runs in a single transaction and records the statements
it executed. :class:`AuthorBooks` is the aggregate root that keeps the
in-memory collection in step with the persisted association; its in-memory
state only changes once the transaction has committed.
"""
import logging
from contextlib import contextmanager

from flask import current_app

from data_models import Author, author_from_row, book_from_row, db
from mapping import get_strategy
from planner import (
    insert_position,
    plan_add,
    plan_delete_author,
    plan_delete_book,
    plan_fetch,
    plan_insert_author,
    plan_insert_book,
    plan_link_collection,
    plan_load_author,
    plan_owner,
    plan_remove,
    plan_remove_all,
)

LOG = logging.getLogger(__name__)


class InconsistentAssociationError(ValueError):
    """The book cannot take part in the requested association change."""


def _nothing():
    pass


class _Runner:
    def __init__(self, connection, metadata):
        self.connection = connection
        self.metadata = metadata
        self.executed = []

    def run(self, statement):
        LOG.debug("%s", statement.describe())
        result = self.connection.execute(statement.compile(self.metadata))
        self.executed.append(statement)
        if statement.expect is not None and result.rowcount != statement.expect:
            raise InconsistentAssociationError(
                f"{statement.describe()} matched {result.rowcount} row(s), expected {statement.expect}; "
                "the loaded collection is out of date"
            )
        return result

    def run_all(self, statements):
        return [self.run(statement) for statement in statements]

    def fetch(self, statement):
        return self.run(statement).mappings().all()


class Bookshelf:
    """Persistence façade for authors and books under a single mapping strategy."""

    def __init__(self, strategy=None, engine=None):
        if strategy is None:
            strategy = current_app.config['MAPPING_STRATEGY']
        self.strategy = get_strategy(strategy)
        self.engine = engine if engine is not None else db.engine
        self.metadata = db.metadata
        self.transcript = []
        self.last_statements = []
        self._aggregates = {}

    @contextmanager
    def _transaction(self):
        runner = None
        try:
            with self.engine.begin() as connection:
                runner = _Runner(connection, self.metadata)
                yield runner
        except Exception:
            LOG.warning("%s: rolled back after %d statement(s)",
                        self.strategy.name, len(runner.executed) if runner else 0)
            raise
        finally:
            if runner is not None:
                self.last_statements = runner.executed
                self.transcript.extend(runner.executed)

    def insert_author(self, author, books=()):
        books = list(books)
        for book in books:
            _require_transient(book)

        with self._transaction() as runner:
            author_id = runner.run(plan_insert_author(author)[0]).inserted_primary_key[0]
            book_ids = [
                runner.run(plan_insert_book(self.strategy, book, author_id)[0]).inserted_primary_key[0]
                for book in books
            ]
            runner.run_all(plan_link_collection(self.strategy, author_id, book_ids))

        author.id = author_id
        for book, book_id in zip(books, book_ids):
            book.id = book_id
        aggregate = AuthorBooks(self, author, books if self.strategy.collection else None)
        for book in books:
            aggregate._attach(book)
        aggregate._renumber()
        self._aggregates[author_id] = aggregate
        LOG.info("Inserted author %s with %d book(s) [%s]", author_id, len(books), self.strategy.name)
        return aggregate

    def load(self, author_id):
        with self._transaction() as runner:
            return self._aggregate(runner, author_id)

    def insert_book(self, author_id, book):
        """Insert a new book under an existing author."""
        _require_transient(book)
        if self.strategy.author_owned:
            # Only the owning collection can write the association.
            with self._transaction() as runner:
                aggregate = self._aggregate(runner, author_id)
                apply = aggregate._add(runner, book, None)
            apply()
            return book

        with self._transaction() as runner:
            book_id = runner.run(plan_insert_book(self.strategy, book, author_id)[0]).inserted_primary_key[0]
        book.id = book_id
        book.author_id = author_id
        aggregate = self._aggregates.get(author_id)
        if aggregate is not None and aggregate.loaded:
            aggregate._books.append(book)
        return book

    def fetch_books(self, author_id):
        with self._transaction() as runner:
            rows = runner.fetch(plan_fetch(self.strategy, author_id)[0])
        return [book_from_row(row) for row in rows]

    def fetch_page(self, author_id, page, size):
        if page < 0 or size < 1:
            raise ValueError(f"Invalid page {page} of size {size}")
        with self._transaction() as runner:
            rows = runner.fetch(plan_fetch(self.strategy, author_id, offset=page * size, limit=size)[0])
        return [book_from_row(row) for row in rows]

    def delete_book(self, book_id):
        with self._transaction() as runner:
            author_id = self._owner_of(runner, book_id)
            if author_id is None:
                results = runner.run_all(plan_delete_book(self.strategy, None, [], book_id))
                if results[-1].rowcount == 0:
                    raise LookupError(f"Book {book_id} not found")
                apply = _nothing
            else:
                aggregate = self._aggregates.get(author_id)
                if aggregate is None:
                    aggregate = AuthorBooks(self, Author(id=author_id))
                apply = aggregate._delete_book(runner, book_id)
        apply()

    def clear(self):
        """Forget every loaded aggregate."""
        self._aggregates.clear()

    def _aggregate(self, runner, author_id):
        aggregate = self._aggregates.get(author_id)
        if aggregate is not None:
            return aggregate
        rows = runner.fetch(plan_load_author(author_id)[0])
        if not rows:
            raise LookupError(f"Author {author_id} not found")
        aggregate = AuthorBooks(self, author_from_row(rows[0]))
        self._aggregates[author_id] = aggregate
        return aggregate

    def _owner_of(self, runner, book_id):
        rows = runner.fetch(plan_owner(self.strategy, book_id)[0])
        if self.strategy.join_table:
            return rows[0]['author_id'] if rows else None
        if not rows:
            raise LookupError(f"Book {book_id} not found")
        return rows[0]['author_id']


class AuthorBooks:
    """An author together with the books it owns."""

    def __init__(self, shelf, author, books=None):
        self.shelf = shelf
        self.author = author
        self._books = books

    @property
    def strategy(self):
        return self.shelf.strategy

    @property
    def loaded(self):
        return self._books is not None

    @property
    def books(self):
        if self._books is not None:
            return list(self._books)
        with self.shelf._transaction() as runner:
            return list(self._members(runner))

    def refresh(self):
        """Drop the loaded collection so the next access reads it again."""
        if self.strategy.collection:
            self._books = None

    def page(self, page, size):
        return self.shelf.fetch_page(self.author.id, page, size)

    def add(self, book, position=None):
        if position is not None and position < 0:
            raise ValueError(f"Invalid position {position}")
        with self.shelf._transaction() as runner:
            apply = self._add(runner, book, position)
        apply()
        return book

    def remove(self, book):
        with self.shelf._transaction() as runner:
            apply = self._remove(runner, book)
        apply()

    def remove_all(self):
        with self.shelf._transaction() as runner:
            apply = self._remove_all(runner)
        apply()

    def delete(self):
        with self.shelf._transaction() as runner:
            apply = self._delete(runner)
        apply()

    def _members(self, runner):
        if self._books is not None:
            return self._books
        rows = runner.fetch(plan_fetch(self.strategy, self.author.id)[0])
        books = [book_from_row(row) for row in rows]
        if self.strategy.collection:
            self._books = books
        return books

    def _member_ids(self, runner):
        return [member.id for member in self._members(runner)]

    def _add(self, runner, book, position):
        strategy = self.strategy
        author_id = self.author.id
        if book.id is not None:
            owner_id = self.shelf._owner_of(runner, book.id)
            if owner_id == author_id:
                return _nothing
            if owner_id is not None:
                raise InconsistentAssociationError(f"{book!r} already belongs to author {owner_id}")

        member_ids = self._member_ids(runner) if strategy.author_owned else []
        linked = False
        book_id = book.id
        if book_id is None:
            book_id = runner.run(plan_insert_book(strategy, book, author_id)[0]).inserted_primary_key[0]
            linked = not strategy.author_owned
        runner.run_all(plan_add(strategy, author_id, member_ids, book_id, position, linked=linked))

        def apply():
            book.id = book_id
            self._attach(book)
            if self._books is not None:
                self._books.insert(insert_position(strategy, self._books, position), book)
                self._renumber()
        return apply

    def _remove(self, runner, book):
        if book.id is None:
            raise InconsistentAssociationError(f"{book!r} has no persisted identity")
        strategy = self.strategy
        if strategy.author_owned:
            members = self._members(runner)
            if book not in members:
                raise InconsistentAssociationError(f"{book!r} is not a book of author {self.author.id}")
            runner.run_all(plan_remove(strategy, self.author.id, [m.id for m in members], book.id))
        else:
            runner.run_all(plan_remove(strategy, self.author.id, [], book.id))

        def apply():
            self._forget(book)
            self._detach(book)
        return apply

    def _remove_all(self, runner):
        members = list(self._members(runner)) if self.strategy.collection else []
        runner.run_all(plan_remove_all(self.strategy, self.author.id, [m.id for m in members]))

        def apply():
            for member in members:
                self._detach(member)
            if self._books is not None:
                self._books = []
        return apply

    def _delete(self, runner):
        strategy = self.strategy
        members = list(self._members(runner)) if strategy.collection and strategy.cascade else []
        runner.run_all(plan_delete_author(strategy, self.author.id, [m.id for m in members]))

        def apply():
            for member in members:
                self._detach(member)
            self._books = None
            self.shelf._aggregates.pop(self.author.id, None)
        return apply

    def _delete_book(self, runner, book_id):
        member_ids = self._member_ids(runner) if self.strategy.author_owned else []
        if self.strategy.author_owned and book_id not in member_ids:
            raise InconsistentAssociationError(f"Book {book_id} is not a book of author {self.author.id}")
        runner.run_all(plan_delete_book(self.strategy, self.author.id, member_ids, book_id))

        def apply():
            if self._books is not None:
                self._books = [member for member in self._books if member.id != book_id]
                self._renumber()
        return apply

    def _attach(self, book):
        if not self.strategy.join_table:
            book.author_id = self.author.id

    def _detach(self, book):
        if not self.strategy.join_table:
            book.author_id = None
        if self.strategy.join_column:
            book.books_order = None

    def _forget(self, book):
        if self._books is not None and book in self._books:
            self._books.remove(book)
            self._renumber()

    def _renumber(self):
        if self.strategy.join_column and self._books is not None:
            for position, member in enumerate(self._books):
                member.books_order = position

    def __repr__(self):
        return f"<AuthorBooks author={self.author.id} strategy={self.strategy.name} loaded={self.loaded}>"


def _require_transient(book):
    if book.id is not None:
        raise InconsistentAssociationError(f"{book!r} is already persisted")
