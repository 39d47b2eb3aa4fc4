"""
SQLite database plumbing for GridStore.

This module owns the single SQLite file that holds the grid:
- Connection setup (pragmas, row factory, foreign keys)
- Schema creation for the five EAV relations
- Transactions with rollback on failure
- Mapping of lock contention to ConflictError

Invariants:
    - One connection per operation, closed when the operation ends
    - Every multi-statement mutation runs in BEGIN IMMEDIATE ... COMMIT
    - Any exception inside a transaction rolls it back before propagating
    - Foreign keys are enforced on every connection

How to change safely:
    - A schema change ships with a schema_version bump and an upgrade step
    - Bump SCHEMA_VERSION and add the migration to _create_schema
    - Keep partial unique index on active row positions

Table schema:
    grid_columns:
        - id INTEGER PRIMARY KEY
        - name TEXT
        - column_type TEXT (text, number, datetime, single_choice, multi_choice)
        - display_order INTEGER
        - active INTEGER (0/1)
        - created_at INTEGER (Unix ms)

    grid_options:
        - id INTEGER PRIMARY KEY
        - column_id INTEGER -> grid_columns.id
        - label TEXT
        - display_order INTEGER
        - active INTEGER (0/1)

    grid_rows:
        - id TEXT PRIMARY KEY (UUID)
        - position INTEGER (UNIQUE among active rows)
        - active INTEGER (0/1)

    grid_cells:
        - row_id TEXT -> grid_rows.id
        - column_id INTEGER -> grid_columns.id
        - kind TEXT (exactly one slot below is non-null, matching kind)
        - text_value TEXT
        - number_value TEXT (Decimal string)
        - datetime_us INTEGER (Unix microseconds, UTC)
        - option_id INTEGER -> grid_options.id
        - PRIMARY KEY (row_id, column_id)

    grid_selections:
        - row_id TEXT -> grid_rows.id
        - column_id INTEGER -> grid_columns.id
        - option_id INTEGER -> grid_options.id
        - PRIMARY KEY (row_id, column_id, option_id)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from ..errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


def _is_lock_error(error: BaseException) -> bool:
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


class Database:
    """SQLite database holding one grid.

    Thread safety:
        Each operation opens its own connection.
        SQLite serializes writers via BEGIN IMMEDIATE; readers proceed
        concurrently in WAL mode.

    Example:
        >>> db = Database("/var/lib/gridstore/grid.db")
        >>> await db.initialize()
        >>> with db.transaction("create_column") as conn:
        ...     conn.execute("INSERT INTO grid_columns ...")
    """

    # Bumped whenever the DDL below changes
    SCHEMA_VERSION = 1

    def __init__(
        self,
        db_path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
    ) -> None:
        """Initialize the database handle.

        Args:
            db_path: Path of the SQLite database file
            wal_mode: Use write-ahead logging
            busy_timeout_ms: Lock wait in milliseconds before SQLITE_BUSY
            cache_size_pages: Page cache size (negative values are KiB)
        """
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._init_lock = asyncio.Lock()

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection, closing it afterwards.

        Yields:
            SQLite connection in autocommit mode
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # transactions are opened explicitly
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Run a block as one atomic write transaction.

        Commits when the block exits normally and rolls back on any
        exception. Lock contention and integrity violations caused by a
        concurrent writer surface as ConflictError.

        Args:
            operation: Name of the operation, for error reporting

        Yields:
            Connection with an open IMMEDIATE transaction

        Raises:
            ConflictError: If the write lock or a uniqueness guarantee
                could not be obtained
        """
        with self.connection() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.OperationalError as e:
                if _is_lock_error(e):
                    raise ConflictError(
                        f"Could not acquire write lock for {operation}",
                        operation=operation,
                    ) from e
                raise

            try:
                yield conn
                conn.execute("COMMIT")
            except Exception as e:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                if isinstance(e, sqlite3.IntegrityError) or _is_lock_error(e):
                    raise ConflictError(
                        f"Concurrent modification detected during {operation}",
                        operation=operation,
                    ) from e
                raise

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create tables and indexes if they do not exist yet."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            -- Column definitions
            CREATE TABLE IF NOT EXISTS grid_columns (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                column_type TEXT NOT NULL CHECK (column_type IN
                    ('text', 'number', 'datetime', 'single_choice', 'multi_choice')),
                display_order INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_columns_order
                ON grid_columns(active, display_order, id);

            -- Option vocabulary of choice columns
            CREATE TABLE IF NOT EXISTS grid_options (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                column_id INTEGER NOT NULL REFERENCES grid_columns(id) ON DELETE CASCADE,
                label TEXT NOT NULL,
                display_order INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_options_column
                ON grid_options(column_id, active, display_order);

            -- Rows with dense positions
            CREATE TABLE IF NOT EXISTS grid_rows (
                id TEXT PRIMARY KEY,
                position INTEGER NOT NULL,
                active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE UNIQUE INDEX IF NOT EXISTS idx_rows_active_position
                ON grid_rows(position) WHERE active = 1;

            -- Single-value cells
            CREATE TABLE IF NOT EXISTS grid_cells (
                row_id TEXT NOT NULL REFERENCES grid_rows(id) ON DELETE CASCADE,
                column_id INTEGER NOT NULL REFERENCES grid_columns(id) ON DELETE CASCADE,
                kind TEXT NOT NULL CHECK (kind IN
                    ('text', 'number', 'datetime', 'single_choice')),
                text_value TEXT,
                number_value TEXT,
                datetime_us INTEGER,
                option_id INTEGER REFERENCES grid_options(id) ON DELETE CASCADE,
                updated_at INTEGER NOT NULL,
                PRIMARY KEY (row_id, column_id),
                CHECK (
                    (kind = 'text' AND text_value IS NOT NULL AND number_value IS NULL
                        AND datetime_us IS NULL AND option_id IS NULL) OR
                    (kind = 'number' AND text_value IS NULL AND number_value IS NOT NULL
                        AND datetime_us IS NULL AND option_id IS NULL) OR
                    (kind = 'datetime' AND text_value IS NULL AND number_value IS NULL
                        AND datetime_us IS NOT NULL AND option_id IS NULL) OR
                    (kind = 'single_choice' AND text_value IS NULL AND number_value IS NULL
                        AND datetime_us IS NULL AND option_id IS NOT NULL)
                )
            );

            CREATE INDEX IF NOT EXISTS idx_cells_column ON grid_cells(column_id, kind);
            CREATE INDEX IF NOT EXISTS idx_cells_option ON grid_cells(option_id)
                WHERE option_id IS NOT NULL;

            -- Multi-choice selections
            CREATE TABLE IF NOT EXISTS grid_selections (
                row_id TEXT NOT NULL REFERENCES grid_rows(id) ON DELETE CASCADE,
                column_id INTEGER NOT NULL REFERENCES grid_columns(id) ON DELETE CASCADE,
                option_id INTEGER NOT NULL REFERENCES grid_options(id) ON DELETE CASCADE,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (row_id, column_id, option_id)
            );

            CREATE INDEX IF NOT EXISTS idx_selections_column
                ON grid_selections(column_id, option_id);
            CREATE INDEX IF NOT EXISTS idx_selections_option
                ON grid_selections(option_id);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._init_lock:
            with self.connection() as conn:
                self._create_schema(conn)
        logger.info(f"Initialized grid database: {self.db_path}")

    def exists(self) -> bool:
        """Check if the database file exists."""
        return self.db_path.exists()


async def retry_on_conflict(
    func: Callable[[], Awaitable[T]],
    operation: str,
    max_retries: int = 3,
    retry_delay_ms: int = 50,
) -> T:
    """Run ``func``, retrying when it raises ConflictError.

    Args:
        func: Coroutine factory performing one attempt
        operation: Name of the operation, for logging
        max_retries: Retries after the first attempt
        retry_delay_ms: Base delay, doubled after each retry

    Returns:
        Result of the first successful attempt

    Raises:
        ConflictError: If every attempt conflicted
    """
    attempt = 0
    while True:
        try:
            return await func()
        except ConflictError:
            if attempt >= max_retries:
                raise
            delay = retry_delay_ms * (2**attempt) / 1000.0
            attempt += 1
            logger.warning(
                f"Conflict during {operation}, retrying",
                extra={"operation": operation, "attempt": attempt, "delay_s": delay},
            )
            await asyncio.sleep(delay)
