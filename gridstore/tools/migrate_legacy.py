"""
Legacy single-choice migration tool for GridStore.

Older exports stored single-choice cells as text: sometimes the option id
rendered as a string ("12"), sometimes the option label ("Engineering").
This tool resolves each legacy value to an option id and writes it
through the normal cell write path.

Resolution order for one value:
    1. An integer, or a string of digits, naming an active option of the
       column resolves to that option
    2. Otherwise a string equal to exactly one active label resolves to
       that option
    3. Anything else (ambiguous label, unknown value) is reported and
       left unwritten

Usage:
    gridstore-migrate-legacy --db grid.db --input records.json
    gridstore-migrate-legacy --db grid.db --input records.json --dry-run

Input format:
    [{"row_id": "...", "column_id": 3, "value": "Engineering"}, ...]

Invariants:
    - Values are never guessed; every write resolves to exactly one option
    - Writes go through GridStore.write_cell, so all cell checks apply
    - Exit code is non-zero if any record was left unresolved
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from ..errors import GridStoreError
from ..schema.types import ColumnType, Option
from ..schema.values import ChoiceValue
from ..store.grid_store import GridStore

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Outcome of one migration run.

    Attributes:
        total: Records read
        resolved: Records whose value resolved to an option id
        written: Records actually written (0 on dry runs)
        unresolved: One entry per record left untouched, with a reason
    """

    total: int = 0
    resolved: int = 0
    written: int = 0
    unresolved: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "resolved": self.resolved,
            "written": self.written,
            "unresolved": self.unresolved,
        }


class LegacyChoiceMigrator:
    """Resolves legacy single-choice values to option ids.

    Example:
        >>> migrator = LegacyChoiceMigrator(store)
        >>> report = await migrator.migrate(records)
        >>> report.unresolved
        []
    """

    def __init__(self, store: GridStore) -> None:
        self.store = store
        self._options: dict[int, list[Option] | None] = {}

    async def _column_options(self, column_id: int) -> list[Option] | None:
        """Active options of an active single-choice column, else None."""
        if column_id not in self._options:
            column = await self.store.get_column(column_id)
            if column is None or not column.active or column.type != ColumnType.SINGLE_CHOICE:
                self._options[column_id] = None
            else:
                self._options[column_id] = await self.store.list_active_options(column_id)
        return self._options[column_id]

    async def resolve(self, column_id: int, raw: Any) -> tuple[int | None, str | None]:
        """Resolve one legacy value.

        Returns:
            (option_id, None) on success, (None, reason) otherwise
        """
        options = await self._column_options(column_id)
        if options is None:
            return None, "column is not an active single-choice column"

        ids = {option.id for option in options}
        if isinstance(raw, int) and not isinstance(raw, bool):
            if raw in ids:
                return raw, None
            return None, f"option id {raw} is not active in column {column_id}"

        if not isinstance(raw, str) or not raw.strip():
            return None, "value is not a string or option id"

        text = raw.strip()
        if text.isdigit() and int(text) in ids:
            return int(text), None

        matches = [option.id for option in options if option.label == text]
        if len(matches) == 1:
            return matches[0], None
        if matches:
            return None, f"label '{text}' matches {len(matches)} options"
        return None, f"unknown value '{text}'"

    async def migrate(
        self,
        records: Iterable[dict[str, Any]],
        dry_run: bool = False,
    ) -> MigrationReport:
        """Resolve and write legacy records.

        Args:
            records: Dicts with row_id, column_id and value
            dry_run: Resolve only, write nothing

        Returns:
            MigrationReport
        """
        report = MigrationReport()

        for record in records:
            report.total += 1
            row_id = record.get("row_id")
            column_id = record.get("column_id")
            raw = record.get("value")

            if not isinstance(row_id, str) or isinstance(column_id, bool) or not isinstance(
                column_id, int
            ):
                report.unresolved.append(
                    {**record, "reason": "record needs a string row_id and an integer column_id"}
                )
                continue

            option_id, reason = await self.resolve(column_id, raw)
            if option_id is None:
                report.unresolved.append({**record, "reason": reason})
                continue

            report.resolved += 1
            if dry_run:
                continue

            try:
                await self.store.write_cell(row_id, column_id, ChoiceValue(option_id))
            except GridStoreError as e:
                report.unresolved.append({**record, "reason": e.message})
                continue
            report.written += 1

        logger.info(
            "Legacy migration finished",
            extra={
                "total": report.total,
                "resolved": report.resolved,
                "written": report.written,
                "unresolved": len(report.unresolved),
                "dry_run": dry_run,
            },
        )
        return report


def load_records(path: str) -> list[dict[str, Any]]:
    """Read legacy records from a JSON file.

    Accepts a top-level list or an object with a "records" list.
    """
    with open(path) as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ValueError(f"{path} must contain a list of record objects")
    return data


async def run(db_path: str, input_path: str, dry_run: bool = False) -> MigrationReport:
    """Open the grid at ``db_path`` and migrate the records in ``input_path``."""
    store = GridStore(db_path)
    await store.initialize()
    migrator = LegacyChoiceMigrator(store)
    return await migrator.migrate(load_records(input_path), dry_run=dry_run)


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the legacy migration tool."""
    parser = argparse.ArgumentParser(
        description="Resolve legacy single-choice values to option ids"
    )
    parser.add_argument("--db", required=True, help="Path of the GridStore SQLite file")
    parser.add_argument("--input", "-i", required=True, help="JSON file with legacy records")
    parser.add_argument(
        "--dry-run", action="store_true", help="Resolve values without writing them"
    )

    args = parser.parse_args(argv)

    try:
        report = asyncio.run(run(args.db, args.input, dry_run=args.dry_run))
    except (OSError, ValueError) as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        sys.exit(2)

    print(json.dumps(report.to_dict(), indent=2, sort_keys=True))
    sys.exit(1 if report.unresolved else 0)


if __name__ == "__main__":
    main()
