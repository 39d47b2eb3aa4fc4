"""
Storage module for GridStore.

This module owns everything that touches SQLite:
- Database: connections, schema, transactions
- ColumnRegistry / OptionRegistry: runtime schema
- RowRegistry: rows with dense positions
- CellStore: typed cells and multi-choice selections
- GridStore: facade over all of the above

Invariants:
    - One SQLite file per grid
    - Every mutation is a single transaction
"""

from .cells import CellStore
from .columns import ColumnRegistry
from .database import Database, retry_on_conflict
from .grid_store import GridStore
from .options import OptionRegistry
from .rows import RowRegistry

__all__ = [
    "Database",
    "retry_on_conflict",
    "ColumnRegistry",
    "OptionRegistry",
    "RowRegistry",
    "CellStore",
    "GridStore",
]
