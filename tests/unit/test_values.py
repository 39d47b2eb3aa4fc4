"""
Unit tests for typed cell values.

Tests cover:
- Per-type normalization and validation
- Datetime parsing and microsecond conversion
- Storage slot mapping
- JSON decoding and encoding
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from gridstore.errors import ValidationError
from gridstore.schema.types import ColumnType
from gridstore.schema.values import (
    ChoiceValue,
    DateTimeValue,
    NumberValue,
    TextValue,
    cell_content_to_json,
    cell_value_from_json,
    datetime_to_us,
    decimal_to_json,
    from_storage,
    normalize_cell_value,
    parse_datetime,
    to_storage,
    us_to_datetime,
)

UTC = timezone.utc


class TestNormalize:
    """Tests for normalize_cell_value."""

    def test_variant_kinds(self):
        """Each variant is tagged with its column type."""
        assert TextValue("a").kind is ColumnType.TEXT
        assert NumberValue(Decimal(1)).kind is ColumnType.NUMBER
        assert DateTimeValue(datetime.now(UTC)).kind is ColumnType.DATETIME
        assert ChoiceValue(1).kind is ColumnType.SINGLE_CHOICE

    def test_number_from_int_and_float(self):
        """Ints and floats become exact decimals."""
        assert normalize_cell_value(NumberValue(28)) == NumberValue(Decimal(28))
        assert normalize_cell_value(NumberValue(34.4)) == NumberValue(Decimal("34.4"))

    def test_number_rejects_non_finite(self):
        """NaN and infinity are not numbers a cell can hold."""
        with pytest.raises(ValidationError):
            normalize_cell_value(NumberValue(float("nan")))
        with pytest.raises(ValidationError):
            normalize_cell_value(NumberValue(Decimal("Infinity")))

    def test_number_rejects_bool(self):
        """Booleans are not numbers."""
        with pytest.raises(ValidationError):
            normalize_cell_value(NumberValue(True))

    def test_text_must_be_string(self):
        """Text payloads must be strings."""
        with pytest.raises(ValidationError):
            normalize_cell_value(TextValue(12))

    def test_datetime_converted_to_utc(self):
        """Aware datetimes are stored in UTC; naive ones are taken as UTC."""
        plus_two = timezone(timedelta(hours=2))
        value = normalize_cell_value(DateTimeValue(datetime(2024, 3, 1, 14, 0, tzinfo=plus_two)))
        assert value.at == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        assert value.at.tzinfo == UTC

        naive = normalize_cell_value(DateTimeValue(datetime(2024, 3, 1, 12, 0)))
        assert naive.at == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    def test_datetime_outside_utc_range_rejected(self):
        """Instants that leave year 1..9999 when shifted to UTC are invalid."""
        late = datetime(9999, 12, 31, 23, 0, tzinfo=timezone(timedelta(hours=-5)))
        early = datetime(1, 1, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))
        with pytest.raises(ValidationError):
            normalize_cell_value(DateTimeValue(late))
        with pytest.raises(ValidationError):
            normalize_cell_value(DateTimeValue(early))
        with pytest.raises(ValidationError):
            normalize_cell_value(DateTimeValue("9999-12-31T23:00:00-05:00"))

    def test_choice_must_be_int(self):
        """Choice values carry option ids, not labels."""
        with pytest.raises(ValidationError):
            normalize_cell_value(ChoiceValue("Engineering"))

    def test_unknown_value_rejected(self):
        """Plain Python values are not cell values."""
        with pytest.raises(ValidationError):
            normalize_cell_value("hello")


class TestDatetimes:
    """Tests for datetime helpers."""

    def test_parse_z_suffix(self):
        """Trailing Z means UTC."""
        assert parse_datetime("2024-03-01T12:00:00Z") == datetime(2024, 3, 1, 12, tzinfo=UTC)

    def test_parse_naive_is_utc(self):
        """Timestamps without offset are taken as UTC."""
        assert parse_datetime("2024-03-01T12:00:00").tzinfo == UTC

    def test_parse_invalid(self):
        """Unparseable text raises ValidationError."""
        with pytest.raises(ValidationError):
            parse_datetime("yesterday")
        with pytest.raises(ValidationError):
            parse_datetime("")

    def test_microseconds(self):
        """Conversion to and from Unix microseconds is exact."""
        at = datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC)
        assert datetime_to_us(at) == 1_000_000

        at = datetime(2024, 3, 1, 12, 30, 15, 123456, tzinfo=UTC)
        assert us_to_datetime(datetime_to_us(at)) == at


class TestStorage:
    """Tests for the grid_cells slot mapping."""

    def test_number_stored_as_text(self):
        """Numbers keep their exact decimal representation."""
        slots = to_storage(NumberValue(Decimal("1.50")))
        assert slots["kind"] == "number"
        assert slots["number_value"] == "1.50"
        assert slots["text_value"] is None
        assert slots["datetime_us"] is None
        assert slots["option_id"] is None

    def test_from_storage(self):
        """Stored slots rebuild the tagged value."""
        row = {
            "kind": "single_choice",
            "text_value": None,
            "number_value": None,
            "datetime_us": None,
            "option_id": 5,
        }
        assert from_storage(row) == ChoiceValue(5)

        row = dict(row, kind="datetime", option_id=None, datetime_us=1_000_000)
        assert from_storage(row) == DateTimeValue(datetime(1970, 1, 1, 0, 0, 1, tzinfo=UTC))


class TestJson:
    """Tests for JSON decoding and encoding."""

    def test_decode_each_type(self):
        """Payloads decode to the variant of the declared type."""
        assert cell_value_from_json(ColumnType.TEXT, "hi") == TextValue("hi")
        assert cell_value_from_json(ColumnType.NUMBER, 34.4) == NumberValue(Decimal("34.4"))
        assert cell_value_from_json(ColumnType.SINGLE_CHOICE, 3) == ChoiceValue(3)
        assert cell_value_from_json(ColumnType.MULTI_CHOICE, [2, 1]) == [2, 1]
        decoded = cell_value_from_json(ColumnType.DATETIME, "2024-03-01T12:00:00Z")
        assert decoded == DateTimeValue(datetime(2024, 3, 1, 12, tzinfo=UTC))

    def test_decode_rejects_wrong_shapes(self):
        """Payloads that don't fit the declared type are rejected."""
        cases = [
            (ColumnType.TEXT, 5),
            (ColumnType.NUMBER, "5"),
            (ColumnType.NUMBER, True),
            (ColumnType.SINGLE_CHOICE, "3"),
            (ColumnType.MULTI_CHOICE, 3),
            (ColumnType.MULTI_CHOICE, [1, "2"]),
            (ColumnType.DATETIME, None),
        ]
        for column_type, raw in cases:
            with pytest.raises(ValidationError):
                cell_value_from_json(column_type, raw)

    def test_decimal_to_json(self):
        """Integral decimals render as ints, others as floats."""
        assert decimal_to_json(Decimal("172")) == 172
        assert isinstance(decimal_to_json(Decimal("172.0")), int)
        assert decimal_to_json(Decimal("34.4")) == 34.4

    def test_encode_content(self):
        """Read results encode to plain JSON values."""
        at = datetime(2024, 3, 1, 12, tzinfo=UTC)
        assert cell_content_to_json(TextValue("x")) == "x"
        assert cell_content_to_json(NumberValue(Decimal("2.5"))) == 2.5
        assert cell_content_to_json(DateTimeValue(at)) == "2024-03-01T12:00:00+00:00"
        assert cell_content_to_json(ChoiceValue(4)) == 4
        assert cell_content_to_json([1, 2]) == [1, 2]
        assert cell_content_to_json(None) is None
