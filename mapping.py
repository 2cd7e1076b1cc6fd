"""Mapping strategies for the Author/Book association.

A strategy states which side owns the foreign key, where the association is
stored and what happens to books when they leave a collection or when their
author is deleted.
"""
import enum
from dataclasses import dataclass


class Side(enum.Enum):
    AUTHOR = 'author'
    BOOK = 'book'


@dataclass(frozen=True)
class MappingStrategy:
    name: str
    owner: Side
    collection: bool = True
    join_table: bool = False
    ordered: bool = False
    cascade: bool = False
    orphan_removal: bool = False
    bulk_delete: bool = False

    @property
    def author_owned(self) -> bool:
        return self.owner is Side.AUTHOR

    @property
    def join_column(self) -> bool:
        """True when the author owns the association but the key lives on the book row."""
        return self.author_owned and not self.join_table

    def flags(self):
        names = ('collection', 'join_table', 'ordered', 'cascade', 'orphan_removal', 'bulk_delete')
        return [name for name in names if getattr(self, name)]

    def __str__(self):
        return f"{self.name} (owner: {self.owner.value}; {', '.join(self.flags()) or 'no collection'})"


MANY_TO_ONE = MappingStrategy('many_to_one', Side.BOOK, collection=False)

UNIDIRECTIONAL = MappingStrategy(
    'unidirectional', Side.AUTHOR,
    join_table=True, cascade=True, orphan_removal=True,
)

UNIDIRECTIONAL_ORDERED = MappingStrategy(
    'unidirectional_ordered', Side.AUTHOR,
    join_table=True, ordered=True, cascade=True,
)

UNIDIRECTIONAL_JOIN_COLUMN = MappingStrategy(
    'unidirectional_join_column', Side.AUTHOR,
    ordered=True, cascade=True, orphan_removal=True,
)

BIDIRECTIONAL = MappingStrategy(
    'bidirectional', Side.BOOK,
    cascade=True, orphan_removal=True,
)

BIDIRECTIONAL_BATCHED = MappingStrategy(
    'bidirectional_batched', Side.BOOK,
    cascade=True, orphan_removal=True, bulk_delete=True,
)

VARIANTS = {
    strategy.name: strategy
    for strategy in (
        MANY_TO_ONE,
        UNIDIRECTIONAL,
        UNIDIRECTIONAL_ORDERED,
        UNIDIRECTIONAL_JOIN_COLUMN,
        BIDIRECTIONAL,
        BIDIRECTIONAL_BATCHED,
    )
}


def get_strategy(strategy):
    if isinstance(strategy, MappingStrategy):
        return strategy
    try:
        return VARIANTS[strategy]
    except KeyError:
        raise KeyError(f"Unknown mapping strategy {strategy!r}; known: {', '.join(VARIANTS)}") from None
