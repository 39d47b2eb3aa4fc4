"""
Multi-value link store for GridStore.

A multi-choice cell is the set of grid_selections rows sharing
(row_id, column_id). These helpers run inside the caller's connection or
transaction; validation of option ownership happens in the cell store
before replace_selections is called.

Invariants:
    - (row_id, column_id, option_id) is unique
    - option_id belongs to column_id
    - A write replaces the whole set (clear-then-insert)
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable


def replace_selections(
    conn: sqlite3.Connection,
    row_id: str,
    column_id: int,
    option_ids: Iterable[int],
    now: int,
) -> list[int]:
    """Replace the selection set of one cell.

    Returns:
        The stored option ids, sorted
    """
    conn.execute(
        "DELETE FROM grid_selections WHERE row_id = ? AND column_id = ?",
        (row_id, column_id),
    )
    stored = sorted(set(option_ids))
    conn.executemany(
        """
        INSERT INTO grid_selections (row_id, column_id, option_id, created_at)
        VALUES (?, ?, ?, ?)
        """,
        [(row_id, column_id, option_id, now) for option_id in stored],
    )
    return stored


def selections_for_cell(conn: sqlite3.Connection, row_id: str, column_id: int) -> list[int]:
    """Selected option ids of one cell, sorted."""
    cursor = conn.execute(
        """
        SELECT s.option_id FROM grid_selections s
        JOIN grid_options o ON o.id = s.option_id AND o.active = 1
        WHERE s.row_id = ? AND s.column_id = ?
        ORDER BY s.option_id
        """,
        (row_id, column_id),
    )
    return [row["option_id"] for row in cursor.fetchall()]


def selections_for_rows(
    conn: sqlite3.Connection,
    row_ids: list[str],
) -> list[sqlite3.Row]:
    """Selections of the given rows in active columns.

    Returns:
        Result rows with row_id, column_id, option_id, ordered by option_id
    """
    if not row_ids:
        return []
    placeholders = ",".join("?" for _ in row_ids)
    cursor = conn.execute(
        f"""
        SELECT s.row_id, s.column_id, s.option_id FROM grid_selections s
        JOIN grid_columns c ON c.id = s.column_id AND c.active = 1
        JOIN grid_options o ON o.id = s.option_id AND o.active = 1
        WHERE s.row_id IN ({placeholders})
        ORDER BY s.row_id, s.column_id, s.option_id
        """,
        row_ids,
    )
    return cursor.fetchall()
