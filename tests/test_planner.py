"""
Tests for the statement planner.

The planner is pure, so these tests exercise the statement count contracts of
every mapping strategy without a database.
"""
import pytest

from helpers import make_book, shape
from mapping import (
    BIDIRECTIONAL,
    BIDIRECTIONAL_BATCHED,
    MANY_TO_ONE,
    UNIDIRECTIONAL,
    UNIDIRECTIONAL_JOIN_COLUMN,
    UNIDIRECTIONAL_ORDERED,
)
from planner import (
    insert_position,
    plan_add,
    plan_delete_author,
    plan_delete_book,
    plan_fetch,
    plan_insert_book,
    plan_link_collection,
    plan_owner,
    plan_remove,
    plan_remove_all,
)


class TestManyToOne:
    def test_insert_book_is_single_insert_carrying_the_key(self):
        statements = plan_insert_book(MANY_TO_ONE, make_book(), author_id=7)

        assert shape(statements) == [('insert', 'books')]
        assert statements[0].values['author_id'] == 7

    def test_add_after_linked_insert_plans_nothing(self):
        assert plan_add(MANY_TO_ONE, 7, [], 11, linked=True) == []

    def test_add_existing_book_updates_its_key(self):
        statements = plan_add(MANY_TO_ONE, 7, [], 11)

        assert shape(statements) == [('update', 'books')]
        assert statements[0].values == {'author_id': 7}

    def test_fetch_and_page_are_single_selects_scoped_by_key(self):
        fetch = plan_fetch(MANY_TO_ONE, 7)
        page = plan_fetch(MANY_TO_ONE, 7, offset=4, limit=2)

        assert shape(fetch) == shape(page) == [('select', 'books')]
        assert fetch[0].where == {'author_id': 7}
        assert (page[0].limit, page[0].offset) == (2, 4)

    def test_remove_is_single_delete_scoped_by_key(self):
        statements = plan_remove(MANY_TO_ONE, 7, [], 11)

        assert shape(statements) == [('delete', 'books')]
        assert statements[0].where == {'id': 11, 'author_id': 7}

    def test_remove_all_is_single_bulk_delete(self):
        statements = plan_remove_all(MANY_TO_ONE, 7, [])

        assert shape(statements) == [('delete', 'books')]
        assert statements[0].where == {'author_id': 7}

    def test_delete_author_does_not_cascade(self):
        assert shape(plan_delete_author(MANY_TO_ONE, 7, [1, 2])) == [('delete', 'authors')]


class TestUnidirectionalJoinTable:
    @pytest.mark.parametrize('existing', [0, 1, 4])
    def test_add_rewrites_whole_join_table(self, existing):
        members = list(range(1, existing + 1))

        statements = plan_add(UNIDIRECTIONAL, 7, members, 99)

        assert shape(statements) == [('delete', 'author_books')] + [('insert', 'author_books')] * (existing + 1)
        assert statements[0].where == {'author_id': 7}
        assert [s.values['books_id'] for s in statements[1:]] == members + [99]

    def test_remove_rewrites_remaining_then_deletes_orphan(self):
        statements = plan_remove(UNIDIRECTIONAL, 7, [1, 2, 3], 2)

        assert shape(statements) == [
            ('delete', 'author_books'),
            ('insert', 'author_books'),
            ('insert', 'author_books'),
            ('delete', 'books'),
        ]
        assert [s.values['books_id'] for s in statements[1:3]] == [1, 3]

    def test_link_collection_inserts_one_row_per_member(self):
        statements = plan_link_collection(UNIDIRECTIONAL, 7, [1, 2, 3])

        assert shape(statements) == [('insert', 'author_books')] * 3
        assert all('books_order' not in s.values for s in statements)

    def test_fetch_goes_through_join_table(self):
        statement = plan_fetch(UNIDIRECTIONAL, 7)[0]

        assert statement.via == 'author_books'
        assert statement.order_by == 'id'

    def test_owner_lookup_reads_join_table(self):
        assert shape(plan_owner(UNIDIRECTIONAL, 3)) == [('select', 'author_books')]

    def test_book_is_inserted_without_key(self):
        statement = plan_insert_book(UNIDIRECTIONAL, make_book(), author_id=7)[0]

        assert 'author_id' not in statement.values


class TestUnidirectionalOrdered:
    def test_remove_last_is_one_delete_and_no_updates(self):
        statements = plan_remove(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3, 4], 4)

        assert shape(statements) == [('delete', 'author_books')]
        assert statements[0].where == {'author_id': 7, 'books_order': 3}

    def test_remove_first_shifts_every_following_position(self):
        statements = plan_remove(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3, 4], 1)

        assert shape(statements) == [('delete', 'author_books')] + [('update', 'author_books')] * 3
        assert [(s.where['books_order'], s.values['books_id']) for s in statements[1:]] == [(0, 2), (1, 3), (2, 4)]

    def test_remove_middle_only_touches_later_positions(self):
        statements = plan_remove(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3, 4], 3)

        assert shape(statements) == [('delete', 'author_books'), ('update', 'author_books')]
        assert statements[1].where['books_order'] == 2

    def test_append_is_single_insert(self):
        statements = plan_add(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3], 9)

        assert shape(statements) == [('insert', 'author_books')]
        assert statements[0].values == {'author_id': 7, 'books_id': 9, 'books_order': 3}

    def test_insert_at_front_shifts_then_appends_tail(self):
        statements = plan_add(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3], 9, position=0)

        assert shape(statements) == [('update', 'author_books')] * 3 + [('insert', 'author_books')]
        assert [s.values['books_id'] for s in statements] == [9, 1, 2, 3]

    def test_position_is_clamped(self):
        statements = plan_add(UNIDIRECTIONAL_ORDERED, 7, [1], 9, position=42)

        assert shape(statements) == [('insert', 'author_books')]

    def test_removed_book_is_kept_without_orphan_removal(self):
        statements = plan_remove(UNIDIRECTIONAL_ORDERED, 7, [1, 2], 1)

        assert ('delete', 'books') not in shape(statements)

    def test_delete_book_appends_row_delete(self):
        statements = plan_delete_book(UNIDIRECTIONAL_ORDERED, 7, [1, 2], 2)

        assert shape(statements) == [('delete', 'author_books'), ('delete', 'books')]

    def test_fetch_orders_by_position(self):
        assert plan_fetch(UNIDIRECTIONAL_ORDERED, 7)[0].order_by == 'books_order'


class TestUnidirectionalJoinColumn:
    def test_link_collection_updates_each_child(self):
        statements = plan_link_collection(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2])

        assert shape(statements) == [('update', 'books')] * 2
        assert [s.values for s in statements] == [
            {'author_id': 7, 'books_order': 0},
            {'author_id': 7, 'books_order': 1},
        ]

    def test_append_is_single_child_update(self):
        statements = plan_add(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2], 9)

        assert shape(statements) == [('update', 'books')]
        assert statements[0].where == {'id': 9}

    def test_remove_nulls_key_before_delete(self):
        statements = plan_remove(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2, 3], 1)

        assert shape(statements) == [('update', 'books')] * 3 + [('delete', 'books')]
        assert statements[0].values == {'author_id': None, 'books_order': None}
        assert statements[0].where == {'author_id': 7, 'id': 1}
        assert [s.values['books_order'] for s in statements[1:3]] == [0, 1]

    def test_remove_all_nulls_keys_then_deletes_children(self):
        statements = plan_remove_all(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2])

        assert shape(statements) == [('update', 'books'), ('delete', 'books'), ('delete', 'books')]

    def test_remove_all_of_empty_collection_plans_nothing(self):
        assert plan_remove_all(UNIDIRECTIONAL_JOIN_COLUMN, 7, []) == []


class TestBidirectional:
    @pytest.mark.parametrize('siblings', [0, 1, 10])
    def test_remove_is_one_delete_whatever_the_siblings(self, siblings):
        members = list(range(1, siblings + 2))

        statements = plan_remove(BIDIRECTIONAL, 7, members, 1)

        assert shape(statements) == [('delete', 'books')]

    def test_delete_author_removes_children_one_by_one(self):
        statements = plan_delete_author(BIDIRECTIONAL, 7, [1, 2, 3])

        assert shape(statements) == [('delete', 'books')] * 3 + [('delete', 'authors')]

    def test_batched_delete_author_is_one_bulk_delete(self):
        statements = plan_delete_author(BIDIRECTIONAL_BATCHED, 7, [1, 2, 3])

        assert shape(statements) == [('delete', 'books'), ('delete', 'authors')]
        assert statements[0].where == {'author_id': 7}

    def test_link_collection_plans_nothing(self):
        assert plan_link_collection(BIDIRECTIONAL, 7, [1, 2]) == []

    def test_delete_unowned_book(self):
        assert shape(plan_delete_book(BIDIRECTIONAL, None, [], 5)) == [('delete', 'books')]


class TestExpectedRowCounts:
    def test_ordered_remove_expects_one_row_per_write(self):
        statements = plan_remove(UNIDIRECTIONAL_ORDERED, 7, [1, 2, 3], 1)

        assert [s.expect for s in statements] == [1, 1, 1]

    def test_join_table_rewrite_expects_previous_collection_size(self):
        assert plan_add(UNIDIRECTIONAL, 7, [1, 2, 3], 9)[0].expect == 3
        assert plan_remove(UNIDIRECTIONAL, 7, [1, 2, 3], 2)[0].expect == 3

    def test_join_column_remove_scopes_shifts_by_author(self):
        statements = plan_remove(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2, 3], 1)

        assert all(s.where.get('author_id') == 7 for s in statements[:3])
        assert [s.expect for s in statements] == [1, 1, 1, 1]

    def test_remove_all_expects_every_member(self):
        assert plan_remove_all(UNIDIRECTIONAL_JOIN_COLUMN, 7, [1, 2])[0].expect == 2
        assert plan_remove_all(BIDIRECTIONAL_BATCHED, 7, [1, 2])[0].expect == 2

    def test_bidirectional_child_deletes_are_scoped_by_author(self):
        statements = plan_remove_all(BIDIRECTIONAL, 7, [1, 2])

        assert [s.where for s in statements] == [{'id': 1, 'author_id': 7}, {'id': 2, 'author_id': 7}]

    def test_collectionless_bulk_delete_has_no_expectation(self):
        assert plan_remove_all(MANY_TO_ONE, 7, [])[0].expect is None

    def test_inserts_have_no_expectation(self):
        assert plan_add(UNIDIRECTIONAL_ORDERED, 7, [1], 9)[0].expect is None


class TestInsertPosition:
    def test_unordered_always_appends(self):
        assert insert_position(UNIDIRECTIONAL, [1, 2], 0) == 2

    def test_ordered_clamps_past_the_end(self):
        assert insert_position(UNIDIRECTIONAL_ORDERED, [1, 2], 9) == 2

    def test_negative_position_is_rejected(self):
        with pytest.raises(ValueError):
            insert_position(UNIDIRECTIONAL_ORDERED, [1, 2], -1)
