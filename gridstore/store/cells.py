"""
Cell store for GridStore.

Persists one typed value per (row, column) and the selection sets of
multi-choice cells. write_cell is the single place where a value is
checked against its column:

    1. row and column must be active          -> NotFoundError
    2. value tag must equal the column type   -> TypeMismatchError
    3. per-type validation                    -> ValidationError
       choice option owned by the column      -> InvalidReferenceError
    4. delete-then-insert in one transaction

Invariants:
    - At most one grid_cells row per (row_id, column_id)
    - A cell's kind equals its column's type
    - Every check happens before the first mutation; failures roll back
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from typing import Any

from ..errors import InvalidReferenceError, TypeMismatchError, ValidationError
from ..schema.types import ColumnType
from ..schema.values import (
    CELL_VALUE_TYPES,
    CellContent,
    CellValue,
    ChoiceValue,
    from_storage,
    normalize_cell_value,
    to_storage,
)
from .database import Database, now_ms
from .lookups import fetch_column, require_active_column, require_active_row
from .options import active_option_ids
from .selections import replace_selections, selections_for_cell, selections_for_rows

logger = logging.getLogger(__name__)


class CellStore:
    """Typed cell values and multi-choice selections.

    Example:
        >>> cells = CellStore(db)
        >>> await cells.write_cell(row.id, age.id, NumberValue(Decimal(28)))
        >>> await cells.read_cell(row.id, age.id)
        NumberValue(number=Decimal('28'))
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def write_cell(self, row_id: str, column_id: int, value: CellValue) -> CellValue:
        """Replace the value of a single-value cell.

        Args:
            row_id: Target row
            column_id: Target column
            value: Tagged value matching the column type

        Returns:
            The stored (normalized) value

        Raises:
            NotFoundError: If the row or column is missing or inactive
            TypeMismatchError: If the value tag differs from the column type
            ValidationError: If the value is malformed
            InvalidReferenceError: If a choice references a foreign or
                inactive option
        """
        if not isinstance(value, CELL_VALUE_TYPES):
            raise ValidationError(
                f"Unsupported cell value of type {type(value).__name__}",
                field_name="value",
            )

        with self.db.transaction("write_cell") as conn:
            require_active_row(conn, row_id)
            column = require_active_column(conn, column_id)

            if value.kind != column.type:
                raise TypeMismatchError(
                    f"Data type '{value.kind.value}' does not match "
                    f"column type '{column.type.value}'",
                    column_id=column_id,
                    expected=column.type.value,
                    actual=value.kind.value,
                )

            value = normalize_cell_value(value)

            if isinstance(value, ChoiceValue):
                if not active_option_ids(conn, column_id, [value.option_id]):
                    raise InvalidReferenceError(
                        f"Option {value.option_id} is not an active option of column {column_id}",
                        column_id=column_id,
                        option_ids=[value.option_id],
                    )

            slots = to_storage(value)
            conn.execute(
                "DELETE FROM grid_cells WHERE row_id = ? AND column_id = ?",
                (row_id, column_id),
            )
            conn.execute(
                """
                INSERT INTO grid_cells (row_id, column_id, kind, text_value, number_value,
                                        datetime_us, option_id, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    row_id,
                    column_id,
                    slots["kind"],
                    slots["text_value"],
                    slots["number_value"],
                    slots["datetime_us"],
                    slots["option_id"],
                    now_ms(),
                ),
            )

        logger.debug(
            "Wrote cell",
            extra={"row_id": row_id, "column_id": column_id, "kind": slots["kind"]},
        )
        return value

    async def write_multi_choice_cell(
        self,
        row_id: str,
        column_id: int,
        option_ids: Iterable[int],
    ) -> list[int]:
        """Replace the selection set of a multi-choice cell.

        All-or-nothing: if any id is not an active option of the column,
        nothing is written.

        Returns:
            The stored option ids, sorted

        Raises:
            NotFoundError: If the row or column is missing or inactive
            TypeMismatchError: If the column is not multi-choice
            ValidationError: If option_ids is not a collection of ints
            InvalidReferenceError: If any id is foreign or inactive
        """
        if isinstance(option_ids, (str, bytes)) or not isinstance(option_ids, Iterable):
            raise ValidationError("Multi choice value must be an array", field_name="value")
        ids = list(option_ids)
        bad = [i for i in ids if isinstance(i, bool) or not isinstance(i, int)]
        if bad:
            raise ValidationError(
                "Multi choice value must contain option ids only",
                field_name="value",
                errors=[repr(i) for i in bad],
            )

        with self.db.transaction("write_multi_choice_cell") as conn:
            require_active_row(conn, row_id)
            column = require_active_column(conn, column_id)

            if column.type != ColumnType.MULTI_CHOICE:
                raise TypeMismatchError(
                    f"Data type 'multi_choice' does not match column type '{column.type.value}'",
                    column_id=column_id,
                    expected=column.type.value,
                    actual=ColumnType.MULTI_CHOICE.value,
                )

            invalid = set(ids) - active_option_ids(conn, column_id, ids)
            if invalid:
                raise InvalidReferenceError(
                    f"Invalid option ids for column {column_id}: {sorted(invalid)}",
                    column_id=column_id,
                    option_ids=sorted(invalid),
                )

            stored = replace_selections(conn, row_id, column_id, ids, now_ms())

        logger.debug(
            "Wrote multi choice cell",
            extra={"row_id": row_id, "column_id": column_id, "selected": len(stored)},
        )
        return stored

    async def read_cell(self, row_id: str, column_id: int) -> CellContent | None:
        """Read one cell.

        Returns:
            The tagged value, a sorted list of option ids for multi-choice
            columns, or None when absent (including deactivated columns)
        """
        with self.db.connection() as conn:
            column = fetch_column(conn, column_id)
            if column is None or not column.active:
                return None

            if column.type == ColumnType.MULTI_CHOICE:
                return selections_for_cell(conn, row_id, column_id)

            cursor = conn.execute(
                "SELECT * FROM grid_cells WHERE row_id = ? AND column_id = ?",
                (row_id, column_id),
            )
            row = cursor.fetchone()
            return from_storage(row) if row else None

    async def read_row_cells(self, row_id: str) -> dict[int, CellContent]:
        """Read every cell of an active row, keyed by column id.

        Multi-choice columns are always present, as [] when nothing is
        selected.

        Raises:
            NotFoundError: If the row is missing or deleted
        """
        with self.db.connection() as conn:
            require_active_row(conn, row_id)
            return self._collect(conn, [row_id])[row_id]

    async def read_rows_cells(self, row_ids: list[str]) -> dict[str, dict[int, CellContent]]:
        """Read the cells of several rows in one connection."""
        with self.db.connection() as conn:
            return self._collect(conn, list(row_ids))

    def _collect(
        self,
        conn: sqlite3.Connection,
        row_ids: list[str],
    ) -> dict[str, dict[int, Any]]:
        cursor = conn.execute(
            """
            SELECT id FROM grid_columns
            WHERE active = 1 AND column_type = ?
            ORDER BY display_order, id
            """,
            (ColumnType.MULTI_CHOICE.value,),
        )
        multi_columns = [row["id"] for row in cursor.fetchall()]
        result: dict[str, dict[int, Any]] = {
            row_id: {column_id: [] for column_id in multi_columns} for row_id in row_ids
        }
        if not row_ids:
            return result

        placeholders = ",".join("?" for _ in row_ids)
        cursor = conn.execute(
            f"""
            SELECT v.* FROM grid_cells v
            JOIN grid_columns c ON c.id = v.column_id AND c.active = 1
            WHERE v.row_id IN ({placeholders})
            """,
            row_ids,
        )
        for row in cursor.fetchall():
            result[row["row_id"]][row["column_id"]] = from_storage(row)

        for row in selections_for_rows(conn, row_ids):
            result[row["row_id"]][row["column_id"]].append(row["option_id"])

        return result
