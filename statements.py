"""Statements produced by the association operations and their SQL capture."""
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy import delete, event, insert, select, update

LOG = logging.getLogger(__name__)

SELECT = 'select'
INSERT = 'insert'
UPDATE = 'update'
DELETE = 'delete'
KINDS = (SELECT, INSERT, UPDATE, DELETE)

_TABLE_PATTERNS = {
    SELECT: re.compile(r'\bfrom\s+"?(\w+)"?', re.IGNORECASE),
    INSERT: re.compile(r'^\s*insert\s+into\s+"?(\w+)"?', re.IGNORECASE),
    UPDATE: re.compile(r'^\s*update\s+"?(\w+)"?', re.IGNORECASE),
    DELETE: re.compile(r'^\s*delete\s+from\s+"?(\w+)"?', re.IGNORECASE),
}


@dataclass
class Statement:
    kind: str
    table: str
    values: Dict[str, Any] = field(default_factory=dict)
    where: Dict[str, Any] = field(default_factory=dict)
    via: Optional[str] = None
    order_by: Optional[str] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    # Rows a write must match; None skips the check.
    expect: Optional[int] = None

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ValueError(f"Unknown statement kind {self.kind!r}")

    @property
    def is_write(self) -> bool:
        return self.kind != SELECT

    def compile(self, metadata):
        """Translate into a SQLAlchemy Core construct over ``metadata``."""
        table = metadata.tables[self.table]
        via = metadata.tables[self.via] if self.via else None

        def column(name):
            if via is not None and name in via.c:
                return via.c[name]
            return table.c[name]

        criteria = [
            column(name).is_(None) if value is None else column(name) == value
            for name, value in self.where.items()
        ]

        if self.kind == SELECT:
            query = select(table)
            if via is not None:
                query = query.join(via)
            query = query.where(*criteria)
            if self.order_by:
                query = query.order_by(column(self.order_by))
            if self.limit is not None:
                query = query.limit(self.limit).offset(self.offset or 0)
            return query
        if self.kind == INSERT:
            return insert(table).values(**self.values)
        if self.kind == UPDATE:
            return update(table).where(*criteria).values(**self.values)
        return delete(table).where(*criteria)

    def describe(self) -> str:
        parts = [self.kind.upper(), self.table]
        if self.via:
            parts.append(f"via {self.via}")
        if self.values:
            parts.append('set ' + ', '.join(f"{k}={v}" for k, v in self.values.items()))
        if self.where:
            parts.append('where ' + ' and '.join(f"{k}={v}" for k, v in self.where.items()))
        if self.order_by:
            parts.append(f"order by {self.order_by}")
        if self.limit is not None:
            parts.append(f"limit {self.limit} offset {self.offset or 0}")
        return ' '.join(parts)

    def __str__(self):
        return self.describe()


def classify_sql(sql: str):
    """Return ``(kind, table)`` for a raw SQL string, or ``None`` for anything else."""
    head = sql.strip().split(None, 1)[0].lower() if sql.strip() else ''
    pattern = _TABLE_PATTERNS.get(head)
    if pattern is None:
        return None
    match = pattern.search(sql)
    return head, match.group(1) if match else None


def summarize(statements):
    """Count statements per ``(kind, table)``."""
    counts = {}
    for statement in statements:
        key = (statement.kind, statement.table) if isinstance(statement, Statement) else tuple(statement)
        counts[key] = counts.get(key, 0) + 1
    return counts


@contextmanager
def capture_sql(engine):
    """Collect ``(kind, table)`` for every statement the driver receives."""
    captured = []

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        entry = classify_sql(statement)
        if entry is not None:
            captured.append(entry)

    event.listen(engine, "before_cursor_execute", before_cursor_execute)
    try:
        yield captured
    finally:
        event.remove(engine, "before_cursor_execute", before_cursor_execute)
