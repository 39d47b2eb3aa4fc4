"""
Row registry for GridStore.

Rows are ordered newest first with a dense 1-based position. Inserting a
row shifts every active row down by one; deleting a row closes the gap.
Both are O(N) writes over grid_rows.

Invariants:
    - Active row positions are exactly {1..N}: no gaps, no duplicates
    - New rows always take position 1
    - Deleted rows are deactivated, never removed, and lose their cells

Concurrency:
    Row-structural mutations are serialized by an asyncio.Lock owned by
    the registry and by SQLite's BEGIN IMMEDIATE write lock. A partial
    unique index on active positions turns any lost race into a
    ConflictError, which is retried with back-off.

How to change safely:
    - Always shift positions with _shift_positions (two-phase update)
    - Verify with verify_positions() after bulk changes
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import uuid
from collections import Counter

from ..errors import ValidationError
from ..schema.types import Row
from .database import Database, now_ms, retry_on_conflict
from .lookups import require_active_row

logger = logging.getLogger(__name__)


def _shift_positions(conn: sqlite3.Connection, delta: int, above: int, now: int) -> None:
    """Add ``delta`` to the position of every active row above ``above``.

    Moves rows through negative positions first so the unique index on
    active positions holds after each statement.
    """
    conn.execute(
        """
        UPDATE grid_rows SET position = -(position + ?), updated_at = ?
        WHERE active = 1 AND position > ?
        """,
        (delta, now, above),
    )
    conn.execute("UPDATE grid_rows SET position = -position WHERE active = 1 AND position < 0")


class RowRegistry:
    """Ordered collection of grid rows.

    Example:
        >>> rows = RowRegistry(db)
        >>> first = await rows.insert_row_at_top()
        >>> second = await rows.insert_row_at_top()
        >>> [r.id for r in await rows.list_active_rows_page(0, 10)] == [second.id, first.id]
        True
    """

    def __init__(
        self,
        db: Database,
        max_retries: int = 3,
        retry_delay_ms: int = 50,
    ) -> None:
        self.db = db
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self._lock = asyncio.Lock()

    async def insert_row_at_top(self) -> Row:
        """Insert a new row at position 1, shifting all active rows down.

        Raises:
            ConflictError: If a concurrent writer kept winning the race
        """
        async with self._lock:
            row = await retry_on_conflict(
                self._insert_row_at_top,
                "insert_row_at_top",
                max_retries=self.max_retries,
                retry_delay_ms=self.retry_delay_ms,
            )

        logger.info("Inserted row", extra={"row_id": row.id})
        return row

    async def _insert_row_at_top(self) -> Row:
        row_id = str(uuid.uuid4())
        now = now_ms()

        with self.db.transaction("insert_row_at_top") as conn:
            _shift_positions(conn, delta=1, above=0, now=now)
            conn.execute(
                """
                INSERT INTO grid_rows (id, position, active, created_at, updated_at)
                VALUES (?, 1, 1, ?, ?)
                """,
                (row_id, now, now),
            )

        return Row(id=row_id, position=1, created_at=now, updated_at=now)

    async def delete_row(self, row_id: str) -> Row:
        """Delete a row and compact the positions above it.

        Args:
            row_id: Row identifier

        Returns:
            The deleted row as it was before deletion

        Raises:
            NotFoundError: If the row is missing or already deleted
            ConflictError: If a concurrent writer kept winning the race
        """
        async with self._lock:
            row = await retry_on_conflict(
                lambda: self._delete_row(row_id),
                "delete_row",
                max_retries=self.max_retries,
                retry_delay_ms=self.retry_delay_ms,
            )

        logger.info(
            "Deleted row",
            extra={"row_id": row_id, "position": row.position},
        )
        return row

    async def _delete_row(self, row_id: str) -> Row:
        now = now_ms()

        with self.db.transaction("delete_row") as conn:
            row = require_active_row(conn, row_id)

            conn.execute("DELETE FROM grid_cells WHERE row_id = ?", (row_id,))
            conn.execute("DELETE FROM grid_selections WHERE row_id = ?", (row_id,))
            conn.execute(
                "UPDATE grid_rows SET active = 0, updated_at = ? WHERE id = ?",
                (now, row_id),
            )
            _shift_positions(conn, delta=-1, above=row.position, now=now)

        return row

    async def get_row(self, row_id: str) -> Row | None:
        """Get a row by id, active or not."""
        with self.db.connection() as conn:
            cursor = conn.execute("SELECT * FROM grid_rows WHERE id = ?", (row_id,))
            row = cursor.fetchone()
            return Row.from_row(row) if row else None

    async def list_active_rows_page(self, offset: int = 0, limit: int = 100) -> list[Row]:
        """List active rows by position.

        Args:
            offset: Number of rows to skip
            limit: Maximum rows to return

        Raises:
            ValidationError: If offset is negative or limit is not positive
        """
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset must be a non-negative integer", field_name="offset")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValidationError("limit must be a positive integer", field_name="limit")

        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM grid_rows
                WHERE active = 1
                ORDER BY position
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            )
            return [Row.from_row(row) for row in cursor.fetchall()]

    async def count_active_rows(self) -> int:
        """Count active rows directly."""
        with self.db.connection() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM grid_rows WHERE active = 1")
            return cursor.fetchone()[0]

    async def verify_positions(self) -> list[str]:
        """Check that active positions are exactly 1..N.

        Returns:
            Human-readable violations; empty when the invariant holds
        """
        with self.db.connection() as conn:
            cursor = conn.execute("SELECT position FROM grid_rows WHERE active = 1")
            positions = [row[0] for row in cursor.fetchall()]

        problems = []
        counts = Counter(positions)
        for position, count in sorted(counts.items()):
            if count > 1:
                problems.append(f"position {position} used by {count} rows")

        expected = set(range(1, len(positions) + 1))
        for position in sorted(expected - counts.keys()):
            problems.append(f"position {position} missing")
        for position in sorted(counts.keys() - expected):
            problems.append(f"position {position} out of range")
        return problems
