"""
Summary aggregator for GridStore.

Computes one statistic per active column, from scratch, straight from
grid_cells and grid_selections:

    text           -> None
    number         -> NumberSummary(sum, average, count)
    datetime       -> the value closest to "now" (ties: earliest)
    single_choice  -> SingleChoiceSummary (ties: label, then option id)
    multi_choice   -> MultiChoiceSummary with every label tied at the max

Invariants:
    - Read-only: never opens a write transaction
    - Deactivated columns are excluded, not reported as errors
    - Frequencies are counted per option id; only active options count
    - An empty number column reports NumberSummary(0, 0, 0); empty
      datetime and choice columns report None
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..schema.types import Column, ColumnType
from ..schema.values import datetime_to_us, decimal_to_json, us_to_datetime

if TYPE_CHECKING:
    from ..store.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NumberSummary:
    """Sum, average and count over the present number cells of a column."""

    sum: Decimal
    average: Decimal
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "sum": decimal_to_json(self.sum),
            "average": decimal_to_json(self.average),
            "count": self.count,
        }


@dataclass(frozen=True)
class SingleChoiceSummary:
    """Most frequent option of a single-choice column."""

    most_frequent: str
    count: int
    option_id: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "most_frequent": self.most_frequent,
            "count": self.count,
            "option_id": self.option_id,
        }


@dataclass(frozen=True)
class MultiChoiceSummary:
    """All options tied for the highest selection frequency."""

    most_frequent: tuple[str, ...]
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "most_frequent": list(self.most_frequent),
            "count": self.count,
        }


@dataclass(frozen=True)
class ColumnSummary:
    """Summary entry for one active column.

    Attributes:
        column_id: Column identifier
        column_name: Column display name
        column_type: Column type
        display_order: Column display order
        summary: Type-specific statistic, or None
    """

    column_id: int
    column_name: str
    column_type: ColumnType
    display_order: int
    summary: Any

    def to_dict(self) -> dict[str, Any]:
        if self.summary is None:
            summary = None
        elif isinstance(self.summary, datetime):
            summary = self.summary.isoformat()
        else:
            summary = self.summary.to_dict()
        return {
            "column_id": self.column_id,
            "column_name": self.column_name,
            "column_type": self.column_type.value,
            "display_order": self.display_order,
            "summary": summary,
        }


class SummaryAggregator:
    """Per-column statistics over the cell store.

    Example:
        >>> aggregator = SummaryAggregator(db)
        >>> for entry in await aggregator.compute_summaries():
        ...     print(entry.column_name, entry.summary)
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    async def compute_summaries(self, now: datetime | None = None) -> list[ColumnSummary]:
        """Compute summaries for every active column.

        Args:
            now: Evaluation time for datetime columns (defaults to current UTC time)

        Returns:
            One ColumnSummary per active column, in (display_order, id) order
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                SELECT * FROM grid_columns
                WHERE active = 1
                ORDER BY display_order, id
                """
            )
            columns = [Column.from_row(row) for row in cursor.fetchall()]

            summaries = [
                ColumnSummary(
                    column_id=column.id,
                    column_name=column.name,
                    column_type=column.type,
                    display_order=column.display_order,
                    summary=self._summarize(conn, column, now),
                )
                for column in columns
            ]

        logger.debug("Computed summaries", extra={"columns": len(summaries)})
        return summaries

    def _summarize(self, conn: sqlite3.Connection, column: Column, now: datetime) -> Any:
        if column.type == ColumnType.NUMBER:
            return self._number_summary(conn, column.id)
        if column.type == ColumnType.DATETIME:
            return self._closest_datetime(conn, column.id, now)
        if column.type == ColumnType.SINGLE_CHOICE:
            return self._single_choice_summary(conn, column.id)
        if column.type == ColumnType.MULTI_CHOICE:
            return self._multi_choice_summary(conn, column.id)
        return None

    def _number_summary(self, conn: sqlite3.Connection, column_id: int) -> NumberSummary:
        cursor = conn.execute(
            "SELECT number_value FROM grid_cells WHERE column_id = ? AND kind = 'number'",
            (column_id,),
        )
        values = [Decimal(row["number_value"]) for row in cursor.fetchall()]
        if not values:
            return NumberSummary(sum=Decimal(0), average=Decimal(0), count=0)

        total = sum(values, Decimal(0))
        return NumberSummary(sum=total, average=total / len(values), count=len(values))

    def _closest_datetime(
        self,
        conn: sqlite3.Connection,
        column_id: int,
        now: datetime,
    ) -> datetime | None:
        cursor = conn.execute(
            """
            SELECT datetime_us FROM grid_cells
            WHERE column_id = ? AND kind = 'datetime'
            ORDER BY ABS(datetime_us - ?), datetime_us
            LIMIT 1
            """,
            (column_id, datetime_to_us(now)),
        )
        row = cursor.fetchone()
        return us_to_datetime(row["datetime_us"]) if row else None

    def _single_choice_summary(
        self,
        conn: sqlite3.Connection,
        column_id: int,
    ) -> SingleChoiceSummary | None:
        cursor = conn.execute(
            """
            SELECT o.id AS option_id, o.label, COUNT(*) AS frequency
            FROM grid_cells v
            JOIN grid_options o ON o.id = v.option_id AND o.active = 1
            WHERE v.column_id = ? AND v.kind = 'single_choice'
            GROUP BY o.id
            ORDER BY frequency DESC, o.label ASC, o.id ASC
            LIMIT 1
            """,
            (column_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return SingleChoiceSummary(
            most_frequent=row["label"],
            count=row["frequency"],
            option_id=row["option_id"],
        )

    def _multi_choice_summary(
        self,
        conn: sqlite3.Connection,
        column_id: int,
    ) -> MultiChoiceSummary | None:
        cursor = conn.execute(
            """
            SELECT o.id AS option_id, o.label, COUNT(*) AS frequency
            FROM grid_selections s
            JOIN grid_options o ON o.id = s.option_id AND o.active = 1
            WHERE s.column_id = ?
            GROUP BY o.id
            ORDER BY frequency DESC, o.label ASC, o.id ASC
            """,
            (column_id,),
        )
        rows = cursor.fetchall()
        if not rows:
            return None

        top = rows[0]["frequency"]
        return MultiChoiceSummary(
            most_frequent=tuple(row["label"] for row in rows if row["frequency"] == top),
            count=top,
        )
