"""
GridStore - dynamically-schematized tabular data store.

This package implements a spreadsheet-like grid whose columns are added at
runtime, stored in an Entity-Attribute-Value layout on SQLite:

- Columns, options and rows are rows in metadata tables
- Each (row, column) pair holds at most one typed cell value
- Multi-choice cells are a many-to-many link between a cell and options
- Column summaries are computed on demand from the stored cells

Architecture:
    ┌─────────────┐     ┌─────────────┐     ┌─────────────────┐
    │   Client    │────▶│  HTTP API   │────▶│    GridStore    │
    │  (browser)  │     │  (aiohttp)  │     │    (facade)     │
    └─────────────┘     └─────────────┘     └────────┬────────┘
                                                     │
                   ┌───────────────┬─────────────────┼───────────────┐
                   ▼               ▼                 ▼               ▼
             ┌──────────┐    ┌──────────┐     ┌──────────┐    ┌──────────┐
             │ Columns  │    │   Rows   │     │  Cells   │    │ Summary  │
             │ Options  │    │(position)│     │Selections│    │Aggregator│
             └────┬─────┘    └────┬─────┘     └────┬─────┘    └────┬─────┘
                  └───────────────┴────────┬───────┴───────────────┘
                                           ▼
                                     ┌──────────┐
                                     │  SQLite  │
                                     └──────────┘

Invariants:
    - Active row positions are always exactly 1..N
    - At most one cell per (row, column), tagged with the column's type
    - Choice cells store option ids, never labels
    - Summaries are never read from cached counters

How to change safely:
    - Column types are immutable once a column exists
    - Keep every multi-statement mutation inside Database.transaction()
    - Row-structural mutations must hold the row registry lock

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
