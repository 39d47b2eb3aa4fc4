"""
Unit tests for schema types.

Tests cover:
- ColumnType parsing, including legacy spellings
- Column, Option and Row construction and serialization
"""

import pytest

from gridstore.schema.types import Column, ColumnType, Option, Row


class TestColumnType:
    """Tests for ColumnType."""

    def test_from_str(self):
        """Every stored value parses back to its member."""
        for kind in ColumnType:
            assert ColumnType.from_str(kind.value) is kind

    def test_legacy_aliases(self):
        """Legacy select spellings map to the choice types."""
        assert ColumnType.from_str("single_select") is ColumnType.SINGLE_CHOICE
        assert ColumnType.from_str("multi_select") is ColumnType.MULTI_CHOICE

    def test_invalid_type_raises(self):
        """Unknown names are rejected with the valid list."""
        with pytest.raises(ValueError, match="Invalid column type"):
            ColumnType.from_str("currency")

    def test_is_choice(self):
        """Only the two choice types reference options."""
        assert ColumnType.SINGLE_CHOICE.is_choice
        assert ColumnType.MULTI_CHOICE.is_choice
        assert not ColumnType.TEXT.is_choice
        assert not ColumnType.NUMBER.is_choice
        assert not ColumnType.DATETIME.is_choice


class TestRecords:
    """Tests for Column, Option and Row."""

    def test_column_from_row(self):
        """Column is built from a result row."""
        column = Column.from_row(
            {
                "id": 3,
                "name": "Age",
                "column_type": "number",
                "display_order": 2,
                "active": 0,
            }
        )
        assert column.type is ColumnType.NUMBER
        assert column.active is False

    def test_column_to_dict(self):
        """Column serializes with its type value."""
        column = Column(id=1, name="Department", type=ColumnType.SINGLE_CHOICE, display_order=1)
        assert column.to_dict() == {
            "id": 1,
            "column_name": "Department",
            "column_type": "single_choice",
            "display_order": 1,
        }

    def test_option_to_dict(self):
        """Option serializes without its column id."""
        option = Option(id=7, column_id=1, label="Sales", display_order=2)
        assert option.to_dict() == {"id": 7, "label": "Sales", "display_order": 2}

    def test_row_to_dict(self):
        """Row exposes its position as row_number."""
        row = Row(id="abc", position=4, created_at=1700000000000, updated_at=1700000000500)
        assert row.to_dict() == {
            "id": "abc",
            "row_number": 4,
            "created_at": 1700000000000,
            "updated_at": 1700000000500,
        }

    def test_records_are_frozen(self):
        """Records are immutable."""
        option = Option(id=1, column_id=1, label="A", display_order=1)
        with pytest.raises(AttributeError):
            option.label = "B"
