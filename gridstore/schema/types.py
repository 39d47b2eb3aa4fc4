"""
Core type definitions for the GridStore schema.

This module defines the metadata records of the EAV layout:
- ColumnType: The five supported column types
- Column: A runtime-defined column
- Option: One selectable label of a choice column
- Row: A grid row with its dense display position

Invariants:
    - Column type is immutable once the column exists
    - Option ids are canonical; labels may repeat within a column
    - Active row positions form exactly 1..N

How to change safely:
    - Add new column types at the end of ColumnType
    - Never rename stored type values (they are persisted as text)
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ColumnType(Enum):
    """Supported column types.

    These map to the storage slot used in grid_cells (or grid_selections
    for MULTI_CHOICE).
    """

    TEXT = "text"
    NUMBER = "number"
    DATETIME = "datetime"
    SINGLE_CHOICE = "single_choice"
    MULTI_CHOICE = "multi_choice"

    @property
    def is_choice(self) -> bool:
        """Whether values of this type reference options."""
        return self in (ColumnType.SINGLE_CHOICE, ColumnType.MULTI_CHOICE)

    @classmethod
    def from_str(cls, value: str) -> ColumnType:
        """Convert string representation to ColumnType.

        Accepts the legacy ``single_select``/``multi_select`` spellings.

        Args:
            value: String name of the column type

        Returns:
            Corresponding ColumnType enum value

        Raises:
            ValueError: If value is not a valid column type
        """
        value = _LEGACY_ALIASES.get(value, value)
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid column type '{value}'. Valid types: {valid}")


_LEGACY_ALIASES = {
    "single_select": "single_choice",
    "multi_select": "multi_choice",
}


@dataclass(frozen=True)
class Column:
    """A runtime-defined grid column.

    Attributes:
        id: Stable column identifier
        name: Display name
        type: Declared value type (immutable)
        display_order: Position among columns (append-only)
        active: False once the column is deactivated
    """

    id: int
    name: str
    type: ColumnType
    display_order: int
    active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Column:
        """Build from a grid_columns result row."""
        return cls(
            id=row["id"],
            name=row["name"],
            type=ColumnType(row["column_type"]),
            display_order=row["display_order"],
            active=bool(row["active"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        return {
            "id": self.id,
            "column_name": self.name,
            "column_type": self.type.value,
            "display_order": self.display_order,
        }


@dataclass(frozen=True)
class Option:
    """A selectable label belonging to exactly one choice column."""

    id: int
    column_id: int
    label: str
    display_order: int
    active: bool = True

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Option:
        """Build from a grid_options result row."""
        return cls(
            id=row["id"],
            column_id=row["column_id"],
            label=row["label"],
            display_order=row["display_order"],
            active=bool(row["active"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "display_order": self.display_order,
        }


@dataclass(frozen=True)
class Row:
    """A grid row.

    Attributes:
        id: Stable opaque identifier (UUID string)
        position: Dense 1-based rank among active rows, newest first
        active: False once the row is deleted
        created_at: Creation timestamp (Unix ms)
        updated_at: Last position or state change (Unix ms)
    """

    id: str
    position: int
    active: bool = True
    created_at: int = 0
    updated_at: int = 0

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Row:
        """Build from a grid_rows result row."""
        return cls(
            id=row["id"],
            position=row["position"],
            active=bool(row["active"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "row_number": self.position,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
