"""
Shared lookups used inside store transactions.

These helpers take an open connection so callers can resolve rows and
columns inside the same transaction that mutates them.
"""

from __future__ import annotations

import sqlite3

from ..errors import NotFoundError
from ..schema.types import Column, Row

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_MIN = -(2**63)
SQLITE_INT_MAX = 2**63 - 1


def fits_sqlite_integer(value: int) -> bool:
    return SQLITE_INT_MIN <= value <= SQLITE_INT_MAX


def fetch_column(conn: sqlite3.Connection, column_id: int) -> Column | None:
    """Get a column by id, active or not."""
    if not fits_sqlite_integer(column_id):
        return None
    cursor = conn.execute(
        "SELECT * FROM grid_columns WHERE id = ?",
        (column_id,),
    )
    row = cursor.fetchone()
    return Column.from_row(row) if row else None


def require_active_column(conn: sqlite3.Connection, column_id: int) -> Column:
    """Get an active column or raise NotFoundError."""
    column = fetch_column(conn, column_id)
    if column is None or not column.active:
        raise NotFoundError(
            f"Column not found: {column_id}",
            resource_type="column",
            resource_id=column_id,
        )
    return column


def require_active_row(conn: sqlite3.Connection, row_id: str) -> Row:
    """Get an active row or raise NotFoundError."""
    cursor = conn.execute(
        "SELECT * FROM grid_rows WHERE id = ? AND active = 1",
        (row_id,),
    )
    row = cursor.fetchone()
    if not row:
        raise NotFoundError(
            f"Row not found: {row_id}",
            resource_type="row",
            resource_id=row_id,
        )
    return Row.from_row(row)
