"""
Typed cell values for GridStore.

A cell holds exactly one of four value shapes, each a frozen dataclass
tagged with the ColumnType it belongs to:

    TextValue(text)          -> ColumnType.TEXT
    NumberValue(number)      -> ColumnType.NUMBER
    DateTimeValue(at)        -> ColumnType.DATETIME
    ChoiceValue(option_id)   -> ColumnType.SINGLE_CHOICE

Multi-choice cells are not a CellValue: they are a set of option ids kept
in the selection link table and read back as a sorted list of ints.

This module also owns the two codecs around the variant:
- storage: CellValue <-> grid_cells slot columns
- JSON: request payloads <-> CellValue, for the HTTP layer

Invariants:
    - Numbers are Decimal and finite
    - Datetimes are timezone-aware and stored as UTC microseconds
    - Choice values are option ids (identity), never labels
"""

from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, ClassVar, Union

from ..errors import ValidationError
from .types import ColumnType

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


@dataclass(frozen=True)
class TextValue:
    text: str
    kind: ClassVar[ColumnType] = ColumnType.TEXT


@dataclass(frozen=True)
class NumberValue:
    number: Decimal
    kind: ClassVar[ColumnType] = ColumnType.NUMBER


@dataclass(frozen=True)
class DateTimeValue:
    at: datetime
    kind: ClassVar[ColumnType] = ColumnType.DATETIME


@dataclass(frozen=True)
class ChoiceValue:
    option_id: int
    kind: ClassVar[ColumnType] = ColumnType.SINGLE_CHOICE


CellValue = Union[TextValue, NumberValue, DateTimeValue, ChoiceValue]

# What a cell read returns: a tagged value, or option ids for multi-choice
CellContent = Union[CellValue, list]

CELL_VALUE_TYPES = (TextValue, NumberValue, DateTimeValue, ChoiceValue)


def datetime_to_us(at: datetime) -> int:
    """Convert an aware datetime to Unix microseconds."""
    return (at - _EPOCH) // _MICROSECOND


def us_to_datetime(us: int) -> datetime:
    """Convert Unix microseconds to an aware UTC datetime."""
    return _EPOCH + timedelta(microseconds=us)


def parse_datetime(text: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive results are taken as UTC.

    Raises:
        ValidationError: If the text is not a valid instant
    """
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Invalid datetime value", field_name="value")
    raw = text.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid datetime value '{text}'", field_name="value"
        ) from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_decimal(number: Any) -> Decimal:
    if isinstance(number, bool):
        raise ValidationError("Number value must not be a boolean", field_name="value")
    if isinstance(number, Decimal):
        result = number
    elif isinstance(number, int):
        result = Decimal(number)
    elif isinstance(number, float):
        if not math.isfinite(number):
            raise ValidationError("Number value must be finite", field_name="value")
        result = Decimal(repr(number))
    else:
        raise ValidationError(
            f"Invalid number value of type {type(number).__name__}", field_name="value"
        )
    if not result.is_finite():
        raise ValidationError("Number value must be finite", field_name="value")
    return result


def normalize_cell_value(value: Any) -> CellValue:
    """Validate a tagged value and return its canonical form.

    This is the per-type validation step of a cell write. Option ownership
    is checked separately, against the database.

    Raises:
        ValidationError: If the payload is not a well-formed CellValue
    """
    if isinstance(value, TextValue):
        if not isinstance(value.text, str):
            raise ValidationError("Text value must be a string", field_name="value")
        return value

    if isinstance(value, NumberValue):
        return NumberValue(_to_decimal(value.number))

    if isinstance(value, DateTimeValue):
        at = value.at
        if isinstance(at, str):
            at = parse_datetime(at)
        if not isinstance(at, datetime):
            raise ValidationError("Invalid datetime value", field_name="value")
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        try:
            return DateTimeValue(at.astimezone(timezone.utc))
        except OverflowError:
            # The instant falls outside year 1..9999 once shifted to UTC
            raise ValidationError("Invalid datetime value", field_name="value") from None

    if isinstance(value, ChoiceValue):
        if isinstance(value.option_id, bool) or not isinstance(value.option_id, int):
            raise ValidationError("Choice value must be an option id", field_name="value")
        return value

    raise ValidationError(
        f"Unsupported cell value of type {type(value).__name__}", field_name="value"
    )


def to_storage(value: CellValue) -> dict[str, Any]:
    """Map a normalized value onto the grid_cells slot columns."""
    slots: dict[str, Any] = {
        "kind": value.kind.value,
        "text_value": None,
        "number_value": None,
        "datetime_us": None,
        "option_id": None,
    }
    if isinstance(value, TextValue):
        slots["text_value"] = value.text
    elif isinstance(value, NumberValue):
        slots["number_value"] = str(value.number)
    elif isinstance(value, DateTimeValue):
        slots["datetime_us"] = datetime_to_us(value.at)
    else:
        slots["option_id"] = value.option_id
    return slots


def from_storage(row: sqlite3.Row) -> CellValue:
    """Rebuild the tagged value from a grid_cells result row."""
    kind = ColumnType(row["kind"])
    if kind == ColumnType.TEXT:
        return TextValue(row["text_value"])
    if kind == ColumnType.NUMBER:
        return NumberValue(Decimal(row["number_value"]))
    if kind == ColumnType.DATETIME:
        return DateTimeValue(us_to_datetime(row["datetime_us"]))
    return ChoiceValue(row["option_id"])


def cell_value_from_json(column_type: ColumnType, raw: Any) -> Any:
    """Decode a JSON payload declared as ``column_type``.

    Returns a CellValue, or a list of option ids for MULTI_CHOICE.

    Raises:
        ValidationError: If the payload does not fit the declared type
    """
    if column_type == ColumnType.TEXT:
        if not isinstance(raw, str):
            raise ValidationError("Text value must be a string", field_name="value")
        return TextValue(raw)

    if column_type == ColumnType.NUMBER:
        if isinstance(raw, bool) or not isinstance(raw, (int, float)):
            raise ValidationError("Invalid number value", field_name="value")
        return NumberValue(_to_decimal(raw))

    if column_type == ColumnType.DATETIME:
        return DateTimeValue(parse_datetime(raw))

    if column_type == ColumnType.SINGLE_CHOICE:
        if isinstance(raw, bool) or not isinstance(raw, int):
            raise ValidationError(
                "Single choice value must be an option id", field_name="value"
            )
        return ChoiceValue(raw)

    if not isinstance(raw, list):
        raise ValidationError("Multi choice value must be an array", field_name="value")
    bad = [item for item in raw if isinstance(item, bool) or not isinstance(item, int)]
    if bad:
        raise ValidationError(
            "Multi choice value must contain option ids only",
            field_name="value",
            errors=[repr(item) for item in bad],
        )
    return list(raw)


def decimal_to_json(number: Decimal) -> int | float:
    """Render a Decimal as a JSON number."""
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def cell_content_to_json(content: Any) -> Any:
    """Encode a cell read result for a JSON response."""
    if isinstance(content, list):
        return content
    if isinstance(content, TextValue):
        return content.text
    if isinstance(content, NumberValue):
        return decimal_to_json(content.number)
    if isinstance(content, DateTimeValue):
        return content.at.isoformat()
    if isinstance(content, ChoiceValue):
        return content.option_id
    return None
