"""
Schema module for GridStore.

Metadata records (columns, options, rows) and the tagged cell value
variant shared by the store, the HTTP layer and the tools.
"""

from .types import Column, ColumnType, Option, Row
from .values import (
    CellContent,
    CellValue,
    ChoiceValue,
    DateTimeValue,
    NumberValue,
    TextValue,
    cell_content_to_json,
    cell_value_from_json,
)

__all__ = [
    "ColumnType",
    "Column",
    "Option",
    "Row",
    "CellValue",
    "CellContent",
    "TextValue",
    "NumberValue",
    "DateTimeValue",
    "ChoiceValue",
    "cell_value_from_json",
    "cell_content_to_json",
]
