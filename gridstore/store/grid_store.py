"""
GridStore facade.

Single entry point over the registries, the cell store and the summary
aggregator, all sharing one Database. The HTTP layer and the tools talk
to this class only.

Invariants:
    - All components share the same Database instance
    - initialize() must complete before any other call
    - The facade adds no caching; every read goes to SQLite

How to change safely:
    - New operations belong in a component first, then get a thin
      delegating method here
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from .._version import __version__
from ..config import StorageConfig, WriteConfig
from ..schema.types import Column, ColumnType, Option, Row
from ..schema.values import CellContent, CellValue
from ..summary.aggregator import ColumnSummary, SummaryAggregator
from .cells import CellStore
from .columns import ColumnRegistry
from .database import Database
from .options import OptionRegistry
from .rows import RowRegistry

logger = logging.getLogger(__name__)


class GridStore:
    """Dynamically-schematized grid backed by one SQLite file.

    Attributes:
        db: Shared database handle
        columns: Column registry
        options: Option registry
        rows: Row registry
        cells: Cell store
        aggregator: Summary aggregator

    Example:
        >>> store = GridStore("/tmp/grid.db")
        >>> await store.initialize()
        >>> age = await store.create_column("Age", ColumnType.NUMBER)
        >>> row = await store.insert_row_at_top()
        >>> await store.write_cell(row.id, age.id, NumberValue(Decimal(28)))
    """

    def __init__(
        self,
        db: Database | str,
        max_retries: int = 3,
        retry_delay_ms: int = 50,
    ) -> None:
        """Initialize the store.

        Args:
            db: Database instance or path of the SQLite file
            max_retries: Retries for row-structural mutations on conflict
            retry_delay_ms: Base back-off between retries
        """
        self.db = db if isinstance(db, Database) else Database(db)
        self.columns = ColumnRegistry(self.db)
        self.options = OptionRegistry(self.db)
        self.rows = RowRegistry(
            self.db,
            max_retries=max_retries,
            retry_delay_ms=retry_delay_ms,
        )
        self.cells = CellStore(self.db)
        self.aggregator = SummaryAggregator(self.db)

    @classmethod
    def from_config(
        cls,
        storage: StorageConfig,
        write: WriteConfig | None = None,
    ) -> GridStore:
        """Build a store from configuration sections."""
        write = write or WriteConfig()
        db = Database(
            storage.db_path,
            wal_mode=storage.wal_mode,
            busy_timeout_ms=storage.busy_timeout_ms,
            cache_size_pages=storage.cache_size_pages,
        )
        return cls(db, max_retries=write.max_retries, retry_delay_ms=write.retry_delay_ms)

    async def initialize(self) -> None:
        """Create the schema if needed."""
        await self.db.initialize()

    # Columns

    async def create_column(
        self,
        name: str,
        column_type: ColumnType | str,
        options: Sequence[str] | None = None,
    ) -> Column:
        return await self.columns.create_column(name, column_type, options)

    async def get_column(self, column_id: int) -> Column | None:
        return await self.columns.get_column(column_id)

    async def list_active_columns(self) -> list[Column]:
        return await self.columns.list_active_columns()

    async def deactivate_column(self, column_id: int) -> None:
        await self.columns.deactivate_column(column_id)

    async def purge_inactive_columns(self) -> int:
        return await self.columns.purge_inactive_columns()

    # Options

    async def add_option(self, column_id: int, label: str) -> Option:
        return await self.options.add_option(column_id, label)

    async def list_active_options(self, column_id: int) -> list[Option]:
        return await self.options.list_active_options(column_id)

    async def list_options_for_columns(self, column_ids: list[int]) -> dict[int, list[Option]]:
        return await self.options.list_options_for_columns(column_ids)

    # Rows

    async def insert_row_at_top(self) -> Row:
        return await self.rows.insert_row_at_top()

    async def delete_row(self, row_id: str) -> Row:
        return await self.rows.delete_row(row_id)

    async def get_row(self, row_id: str) -> Row | None:
        return await self.rows.get_row(row_id)

    async def list_active_rows_page(self, offset: int = 0, limit: int = 100) -> list[Row]:
        return await self.rows.list_active_rows_page(offset, limit)

    async def count_active_rows(self) -> int:
        return await self.rows.count_active_rows()

    async def verify_positions(self) -> list[str]:
        return await self.rows.verify_positions()

    # Cells

    async def write_cell(self, row_id: str, column_id: int, value: CellValue) -> CellValue:
        return await self.cells.write_cell(row_id, column_id, value)

    async def write_multi_choice_cell(
        self,
        row_id: str,
        column_id: int,
        option_ids: Iterable[int],
    ) -> list[int]:
        return await self.cells.write_multi_choice_cell(row_id, column_id, option_ids)

    async def read_cell(self, row_id: str, column_id: int) -> CellContent | None:
        return await self.cells.read_cell(row_id, column_id)

    async def read_row_cells(self, row_id: str) -> dict[int, CellContent]:
        return await self.cells.read_row_cells(row_id)

    async def read_rows_cells(self, row_ids: list[str]) -> dict[str, dict[int, CellContent]]:
        return await self.cells.read_rows_cells(row_ids)

    # Summary

    async def compute_summaries(self, now: datetime | None = None) -> list[ColumnSummary]:
        return await self.aggregator.compute_summaries(now)

    # Operations

    async def health(self) -> dict[str, Any]:
        """Check that the database answers queries.

        Returns:
            Dictionary with healthy flag, version and database status
        """
        try:
            with self.db.connection() as conn:
                conn.execute("SELECT 1").fetchone()
            database = "healthy"
        except sqlite3.Error as e:
            logger.error(f"Health check failed: {e}")
            database = "unhealthy"

        return {
            "healthy": database == "healthy",
            "version": __version__,
            "database": database,
        }

    async def get_stats(self) -> dict[str, int]:
        """Count live entities directly.

        Returns:
            Dictionary with counts
        """
        with self.db.connection() as conn:
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) FROM grid_columns WHERE active = 1")
            stats["columns"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM grid_options WHERE active = 1")
            stats["options"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM grid_rows WHERE active = 1")
            stats["rows"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM grid_cells")
            stats["cells"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM grid_selections")
            stats["selections"] = cursor.fetchone()[0]

            return stats
