"""
Column registry for GridStore.

The authoritative list of runtime-defined columns. Each column has a
name, one of five immutable types, an append-only display order and an
active flag.

Invariants:
    - Column type never changes after creation
    - display_order = max(existing) + 1 at creation
    - Deactivation hard-deletes the column's cells, selections and options
      and soft-deletes the column itself
    - Only purge_inactive_columns removes column rows

How to change safely:
    - Keep column creation and its initial options in one transaction
    - Never reuse a column id
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..errors import ValidationError
from ..schema.types import Column, ColumnType
from .database import Database, now_ms
from .lookups import fetch_column, require_active_column
from .options import insert_option, validate_label

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 255


def _validate_name(name: object) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Column name is required", field_name="name")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Column name must be at most {MAX_NAME_LENGTH} characters",
            field_name="name",
        )
    return name


def _validate_type(column_type: ColumnType | str) -> ColumnType:
    if isinstance(column_type, ColumnType):
        return column_type
    if not isinstance(column_type, str):
        raise ValidationError("Column type is required", field_name="column_type")
    try:
        return ColumnType.from_str(column_type)
    except ValueError as e:
        raise ValidationError(str(e), field_name="column_type") from None


class ColumnRegistry:
    """Registry of grid columns.

    Example:
        >>> columns = ColumnRegistry(db)
        >>> dept = await columns.create_column(
        ...     "Department", ColumnType.SINGLE_CHOICE, ["Engineering", "Sales"]
        ... )
        >>> await columns.deactivate_column(dept.id)
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def create_column(
        self,
        name: str,
        column_type: ColumnType | str,
        options: Sequence[str] | None = None,
    ) -> Column:
        """Create a column, with initial options for choice types.

        Args:
            name: Display name
            column_type: One of the five column types
            options: Initial option labels (choice types only)

        Returns:
            Created Column

        Raises:
            ValidationError: On empty name, unknown type or malformed option
        """
        name = _validate_name(name)
        kind = _validate_type(column_type)

        labels: list[str] = []
        if options:
            if kind.is_choice:
                if isinstance(options, str) or not isinstance(options, Sequence):
                    raise ValidationError(
                        "Options must be a list of labels", field_name="options"
                    )
                labels = [
                    validate_label(label, field_name=f"options[{i}]")
                    for i, label in enumerate(options)
                ]
            else:
                logger.debug(
                    "Ignoring options for non-choice column",
                    extra={"column_name": name, "column_type": kind.value},
                )

        with self.db.transaction("create_column") as conn:
            cursor = conn.execute(
                "SELECT COALESCE(MAX(display_order), 0) + 1 FROM grid_columns"
            )
            display_order = cursor.fetchone()[0]

            cursor = conn.execute(
                """
                INSERT INTO grid_columns (name, column_type, display_order, active, created_at)
                VALUES (?, ?, ?, 1, ?)
                """,
                (name, kind.value, display_order, now_ms()),
            )
            column_id = cursor.lastrowid

            for label in labels:
                insert_option(conn, column_id, label)

        logger.info(
            "Created column",
            extra={
                "column_id": column_id,
                "column_type": kind.value,
                "options": len(labels),
            },
        )

        return Column(
            id=column_id,
            name=name,
            type=kind,
            display_order=display_order,
        )

    async def get_column(self, column_id: int) -> Column | None:
        """Get a column by id, active or not."""
        with self.db.connection() as conn:
            return fetch_column(conn, column_id)

    async def list_active_columns(self) -> list[Column]:
        """List active columns ordered by (display_order, id)."""
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM grid_columns
                WHERE active = 1
                ORDER BY display_order, id
                """
            )
            return [Column.from_row(row) for row in cursor.fetchall()]

    async def deactivate_column(self, column_id: int) -> None:
        """Deactivate a column and delete everything that depends on it.

        Raises:
            NotFoundError: If the column is missing or already inactive
        """
        with self.db.transaction("deactivate_column") as conn:
            require_active_column(conn, column_id)

            cells = conn.execute(
                "DELETE FROM grid_cells WHERE column_id = ?", (column_id,)
            ).rowcount
            selections = conn.execute(
                "DELETE FROM grid_selections WHERE column_id = ?", (column_id,)
            ).rowcount
            options = conn.execute(
                "DELETE FROM grid_options WHERE column_id = ?", (column_id,)
            ).rowcount
            conn.execute(
                "UPDATE grid_columns SET active = 0 WHERE id = ?",
                (column_id,),
            )

        logger.info(
            "Deactivated column",
            extra={
                "column_id": column_id,
                "cells_deleted": cells,
                "selections_deleted": selections,
                "options_deleted": options,
            },
        )

    async def purge_inactive_columns(self) -> int:
        """Hard-delete deactivated columns.

        Returns:
            Number of columns removed
        """
        with self.db.transaction("purge_inactive_columns") as conn:
            purged = conn.execute("DELETE FROM grid_columns WHERE active = 0").rowcount

        if purged:
            logger.info("Purged inactive columns", extra={"purged": purged})
        return purged
