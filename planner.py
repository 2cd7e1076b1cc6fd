"""Plan the statements each association operation needs under a mapping strategy.

Every function is pure: it receives the strategy, the author id and the ids
of the current collection members (in collection order) and returns the
minimal list of :class:`~statements.Statement` objects. Writes that touch
rows the collection already knows about carry the row count they must match
(``expect``). Writes follow the usual flush order of an ORM: entity
inserts, collection row deletes, collection row updates, collection row
inserts and finally entity deletes.
"""
from statements import DELETE, INSERT, SELECT, UPDATE, Statement

AUTHORS = 'authors'
BOOKS = 'books'
AUTHOR_BOOKS = 'author_books'


def plan_fetch(strategy, author_id, offset=None, limit=None):
    if strategy.join_table:
        statement = Statement(SELECT, BOOKS, where={'author_id': author_id}, via=AUTHOR_BOOKS)
    else:
        statement = Statement(SELECT, BOOKS, where={'author_id': author_id})
    statement.order_by = 'books_order' if strategy.ordered else 'id'
    if limit is not None:
        statement.limit = limit
        statement.offset = offset or 0
    return [statement]


def plan_load_author(author_id):
    return [Statement(SELECT, AUTHORS, where={'id': author_id})]


def plan_owner(strategy, book_id):
    if strategy.join_table:
        return [Statement(SELECT, AUTHOR_BOOKS, where={'books_id': book_id})]
    return [Statement(SELECT, BOOKS, where={'id': book_id})]


def plan_insert_author(author):
    return [Statement(INSERT, AUTHORS, values={'name': author.name, 'genre': author.genre, 'age': author.age})]


def plan_insert_book(strategy, book, author_id=None):
    values = {'title': book.title, 'isbn': book.isbn}
    if not strategy.author_owned and author_id is not None:
        values['author_id'] = author_id
    return [Statement(INSERT, BOOKS, values=values)]


def plan_link_collection(strategy, author_id, member_ids):
    """Association rows for the members of a freshly inserted author."""
    if not strategy.author_owned:
        return []
    if strategy.join_table:
        return [_join_row(strategy, author_id, book_id, position) for position, book_id in enumerate(member_ids)]
    return [_child_row(author_id, book_id, position) for position, book_id in enumerate(member_ids)]



def plan_add(strategy, author_id, member_ids, book_id, position=None, linked=False):
    """``linked`` means the book insert already carried the author's key."""
    if not strategy.author_owned:
        if linked:
            return []
        return [Statement(UPDATE, BOOKS, values={'author_id': author_id}, where={'id': book_id}, expect=1)]

    members = list(member_ids)
    position = insert_position(strategy, members, position)
    members.insert(position, book_id)

    if strategy.join_table and not strategy.ordered:
        return _rewrite_join_table(strategy, author_id, members, previous=len(member_ids))
    if strategy.join_table:
        statements = [
            _shift_join_row(author_id, members[index], index)
            for index in range(position, len(members) - 1)
        ]
        statements.append(_join_row(strategy, author_id, members[-1], len(members) - 1))
        return statements
    return [_child_row(author_id, members[index], index) for index in range(position, len(members))]


def plan_remove(strategy, author_id, member_ids, book_id):
    if not strategy.collection:
        return [Statement(DELETE, BOOKS, where={'id': book_id, 'author_id': author_id}, expect=1)]
    if not strategy.author_owned:
        where = {'id': book_id, 'author_id': author_id}
        if strategy.orphan_removal:
            return [Statement(DELETE, BOOKS, where=where, expect=1)]
        return [Statement(UPDATE, BOOKS, values={'author_id': None}, where=where, expect=1)]

    members = list(member_ids)
    position = members.index(book_id)
    del members[position]

    if strategy.join_table and not strategy.ordered:
        statements = _rewrite_join_table(strategy, author_id, members, previous=len(member_ids))
    elif strategy.join_table:
        statements = [Statement(
            DELETE, AUTHOR_BOOKS,
            where={'author_id': author_id, 'books_order': len(members)},
            expect=1,
        )]
        statements.extend(
            _shift_join_row(author_id, members[index], index)
            for index in range(position, len(members))
        )
    else:
        statements = [Statement(
            UPDATE, BOOKS,
            values={'author_id': None, 'books_order': None},
            where={'author_id': author_id, 'id': book_id},
            expect=1,
        )]
        statements.extend(
            Statement(UPDATE, BOOKS, values={'books_order': index},
                      where={'id': members[index], 'author_id': author_id}, expect=1)
            for index in range(position, len(members))
        )
    if strategy.orphan_removal:
        statements.append(_delete_book(book_id))
    return statements


def plan_remove_all(strategy, author_id, member_ids, delete_children=None):
    """Detach every member; children are deleted on orphan removal unless told otherwise."""
    if delete_children is None:
        delete_children = strategy.orphan_removal
    member_ids = list(member_ids)
    count = len(member_ids)

    if not strategy.collection:
        return [Statement(DELETE, BOOKS, where={'author_id': author_id})]
    if not member_ids:
        return []
    if not strategy.author_owned:
        if not delete_children:
            return [Statement(UPDATE, BOOKS, values={'author_id': None}, where={'author_id': author_id}, expect=count)]
        if strategy.bulk_delete:
            return [Statement(DELETE, BOOKS, where={'author_id': author_id}, expect=count)]
        return [
            Statement(DELETE, BOOKS, where={'id': book_id, 'author_id': author_id}, expect=1)
            for book_id in member_ids
        ]

    if strategy.join_table:
        statements = [Statement(DELETE, AUTHOR_BOOKS, where={'author_id': author_id}, expect=count)]
    else:
        statements = [Statement(
            UPDATE, BOOKS,
            values={'author_id': None, 'books_order': None},
            where={'author_id': author_id},
            expect=count,
        )]
    if delete_children:
        statements.extend(_delete_book(book_id) for book_id in member_ids)
    return statements


def plan_delete_author(strategy, author_id, member_ids):
    statements = []
    if strategy.cascade:
        statements.extend(plan_remove_all(strategy, author_id, member_ids, delete_children=True))
    statements.append(Statement(DELETE, AUTHORS, where={'id': author_id}, expect=1))
    return statements


def plan_delete_book(strategy, author_id, member_ids, book_id):
    if author_id is None:
        return [Statement(DELETE, BOOKS, where={'id': book_id})]
    statements = plan_remove(strategy, author_id, member_ids, book_id)
    if not any(s.kind == DELETE and s.table == BOOKS for s in statements):
        statements.append(_delete_book(book_id))
    return statements


def insert_position(strategy, member_ids, position=None):
    """Where a new member lands; unordered collections always append.

    Positions past the end append; negative positions are rejected.
    """
    if position is not None and position < 0:
        raise ValueError(f"Invalid position {position}")
    if position is None or not strategy.ordered:
        return len(member_ids)
    return min(position, len(member_ids))


def _join_row(strategy, author_id, book_id, position):
    values = {'author_id': author_id, 'books_id': book_id}
    if strategy.ordered:
        values['books_order'] = position
    return Statement(INSERT, AUTHOR_BOOKS, values=values)


def _shift_join_row(author_id, book_id, position):
    return Statement(
        UPDATE, AUTHOR_BOOKS,
        values={'books_id': book_id},
        where={'author_id': author_id, 'books_order': position},
        expect=1,
    )


def _child_row(author_id, book_id, position):
    return Statement(
        UPDATE, BOOKS,
        values={'author_id': author_id, 'books_order': position},
        where={'id': book_id},
        expect=1,
    )


def _delete_book(book_id):
    return Statement(DELETE, BOOKS, where={'id': book_id}, expect=1)


def _rewrite_join_table(strategy, author_id, member_ids, previous):
    statements = [Statement(DELETE, AUTHOR_BOOKS, where={'author_id': author_id}, expect=previous)]
    statements.extend(_join_row(strategy, author_id, book_id, None) for book_id in member_ids)
    return statements
