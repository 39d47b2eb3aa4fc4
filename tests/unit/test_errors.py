"""
Unit tests for error types.

Tests cover:
- Error codes and details
- Discriminated error bodies
"""

from gridstore.errors import (
    ConflictError,
    GridStoreError,
    InvalidReferenceError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
)


class TestErrors:
    """Tests for GridStore errors."""

    def test_hierarchy(self):
        """Every error is a GridStoreError."""
        errors = [
            ValidationError("bad"),
            NotFoundError("missing", resource_type="row", resource_id="r1"),
            TypeMismatchError("mismatch", column_id=1, expected="number", actual="text"),
            InvalidReferenceError("bad ref", column_id=1, option_ids=[9]),
            ConflictError("busy", operation="delete_row"),
        ]
        for error in errors:
            assert isinstance(error, GridStoreError)

    def test_validation_error_body(self):
        """Validation errors name the offending field."""
        error = ValidationError("Column name is required", field_name="name")
        assert error.to_dict() == {
            "error": "Column name is required",
            "error_code": "VALIDATION_ERROR",
            "details": {"field": "name", "errors": []},
        }

    def test_type_mismatch_details(self):
        """Type mismatches carry expected and actual types."""
        error = TypeMismatchError("mismatch", column_id=4, expected="number", actual="text")
        assert error.code == "TYPE_MISMATCH"
        assert error.details == {"column_id": 4, "expected": "number", "actual": "text"}

    def test_invalid_reference_details(self):
        """Invalid references list the offending option ids."""
        error = InvalidReferenceError("bad", column_id=2, option_ids=[7, 8])
        assert error.code == "INVALID_REFERENCE"
        assert error.option_ids == [7, 8]

    def test_not_found_and_conflict_codes(self):
        """Codes are stable strings for programmatic handling."""
        assert NotFoundError("x", resource_type="column", resource_id=1).code == "NOT_FOUND"
        assert ConflictError("x").code == "CONFLICT"
        assert GridStoreError("x").code == "GRIDSTORE_ERROR"
