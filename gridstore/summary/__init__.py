"""
Summary module for GridStore.

Read-only per-column statistics computed on demand from the cell store.
No running totals are persisted; every call recomputes from scratch.
"""

from .aggregator import (
    ColumnSummary,
    MultiChoiceSummary,
    NumberSummary,
    SingleChoiceSummary,
    SummaryAggregator,
)

__all__ = [
    "SummaryAggregator",
    "ColumnSummary",
    "NumberSummary",
    "SingleChoiceSummary",
    "MultiChoiceSummary",
]
