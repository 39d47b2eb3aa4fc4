"""
Option registry for GridStore.

Options form the per-column vocabulary of single-choice and multi-choice
columns. Cells and selections reference options by id.

Invariants:
    - An option belongs to exactly one column
    - display_order is append-only within a column
    - Labels are not unique; identity is the option id
    - Options are never updated in place
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable

from ..errors import ValidationError
from ..schema.types import Option
from .database import Database, now_ms
from .lookups import fits_sqlite_integer, require_active_column

logger = logging.getLogger(__name__)

MAX_LABEL_LENGTH = 500


def validate_label(label: object, field_name: str = "label") -> str:
    """Check an option label and return it stripped.

    Raises:
        ValidationError: If the label is not a non-empty string
    """
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("Option label must be a non-empty string", field_name=field_name)
    label = label.strip()
    if len(label) > MAX_LABEL_LENGTH:
        raise ValidationError(
            f"Option label must be at most {MAX_LABEL_LENGTH} characters",
            field_name=field_name,
        )
    return label


def insert_option(conn: sqlite3.Connection, column_id: int, label: str) -> Option:
    """Append an option to a column inside the caller's transaction."""
    cursor = conn.execute(
        "SELECT COALESCE(MAX(display_order), 0) + 1 FROM grid_options WHERE column_id = ?",
        (column_id,),
    )
    display_order = cursor.fetchone()[0]

    cursor = conn.execute(
        """
        INSERT INTO grid_options (column_id, label, display_order, active, created_at)
        VALUES (?, ?, ?, 1, ?)
        """,
        (column_id, label, display_order, now_ms()),
    )
    return Option(
        id=cursor.lastrowid,
        column_id=column_id,
        label=label,
        display_order=display_order,
    )


def active_option_ids(
    conn: sqlite3.Connection,
    column_id: int,
    option_ids: Iterable[int],
) -> set[int]:
    """Return the subset of ``option_ids`` that are active options of the column."""
    # Ids SQLite cannot store never match, so they fall out as invalid
    ids = [i for i in set(option_ids) if fits_sqlite_integer(i)]
    if not ids:
        return set()
    placeholders = ",".join("?" for _ in ids)
    cursor = conn.execute(
        f"""
        SELECT id FROM grid_options
        WHERE column_id = ? AND active = 1 AND id IN ({placeholders})
        """,
        (column_id, *ids),
    )
    return {row["id"] for row in cursor.fetchall()}


class OptionRegistry:
    """Per-column option vocabulary.

    Example:
        >>> options = OptionRegistry(db)
        >>> opt = await options.add_option(column.id, "Engineering")
        >>> [o.label for o in await options.list_active_options(column.id)]
        ['Engineering']
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def add_option(self, column_id: int, label: str) -> Option:
        """Append an option to a choice column.

        Args:
            column_id: Target column
            label: Display label (duplicates allowed)

        Returns:
            Created Option

        Raises:
            NotFoundError: If the column is missing or inactive
            ValidationError: If the column is not a choice column or the
                label is malformed
        """
        label = validate_label(label)

        with self.db.transaction("add_option") as conn:
            column = require_active_column(conn, column_id)
            if not column.type.is_choice:
                raise ValidationError(
                    f"Column '{column.name}' of type {column.type.value} does not take options",
                    field_name="column_id",
                )
            option = insert_option(conn, column_id, label)

        logger.info(
            "Added option",
            extra={"column_id": column_id, "option_id": option.id},
        )
        return option

    async def list_active_options(self, column_id: int) -> list[Option]:
        """List active options of an active column in display order.

        Raises:
            NotFoundError: If the column is missing or inactive
        """
        with self.db.connection() as conn:
            require_active_column(conn, column_id)
            cursor = conn.execute(
                """
                SELECT * FROM grid_options
                WHERE column_id = ? AND active = 1
                ORDER BY display_order, id
                """,
                (column_id,),
            )
            return [Option.from_row(row) for row in cursor.fetchall()]

    async def list_options_for_columns(self, column_ids: list[int]) -> dict[int, list[Option]]:
        """Active options grouped by column, for every requested column."""
        result: dict[int, list[Option]] = {column_id: [] for column_id in column_ids}
        if not column_ids:
            return result

        placeholders = ",".join("?" for _ in column_ids)
        with self.db.connection() as conn:
            cursor = conn.execute(
                f"""
                SELECT * FROM grid_options
                WHERE active = 1 AND column_id IN ({placeholders})
                ORDER BY column_id, display_order, id
                """,
                column_ids,
            )
            for row in cursor.fetchall():
                result[row["column_id"]].append(Option.from_row(row))
        return result
