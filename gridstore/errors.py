"""
Error types for GridStore.

This module defines all exception types raised by the core:
- GridStoreError: Base exception
- ValidationError: Malformed input (empty name, unknown type, bad option)
- NotFoundError: Row, column or option missing or inactive
- TypeMismatchError: Value tag does not match the column type
- InvalidReferenceError: Option id not owned by or not active in a column
- ConflictError: Concurrent structural mutation detected

Invariants:
    - All errors inherit from GridStoreError
    - Errors carry enough detail to render a message (field, constraint)
    - Storage internals (SQL, file paths) never appear in messages
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class GridStoreError(Exception):
    """Base exception for all GridStore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "GRIDSTORE_ERROR"
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the discriminated error body returned to callers."""
        return {
            "error": self.message,
            "error_code": self.code,
            "details": self.details,
        }


class ValidationError(GridStoreError):
    """Input validation failed.

    Raised when:
    - Column name is empty or too long
    - Column type is unknown
    - An option label is malformed
    - A cell payload cannot be interpreted as its declared type
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class NotFoundError(GridStoreError):
    """Resource not found.

    Raised when:
    - Row doesn't exist or was deleted
    - Column doesn't exist or was deactivated
    """

    def __init__(
        self,
        message: str,
        resource_type: str,
        resource_id: Any,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={
                "resource_type": resource_type,
                "resource_id": resource_id,
            },
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class TypeMismatchError(GridStoreError):
    """Value tag does not match the column's declared type."""

    def __init__(
        self,
        message: str,
        column_id: int,
        expected: str,
        actual: str,
    ) -> None:
        super().__init__(
            message,
            code="TYPE_MISMATCH",
            details={
                "column_id": column_id,
                "expected": expected,
                "actual": actual,
            },
        )
        self.column_id = column_id
        self.expected = expected
        self.actual = actual


class InvalidReferenceError(GridStoreError):
    """Option reference is not owned by, or not active in, the target column.

    Attributes:
        column_id: Column the write targeted
        option_ids: The offending option ids
    """

    def __init__(
        self,
        message: str,
        column_id: int,
        option_ids: Optional[List[Any]] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_REFERENCE",
            details={
                "column_id": column_id,
                "option_ids": option_ids or [],
            },
        )
        self.column_id = column_id
        self.option_ids = option_ids or []


class ConflictError(GridStoreError):
    """Concurrent modification detected.

    Raised when:
    - The database write lock could not be acquired in time
    - A row renumbering would produce a duplicate position
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="CONFLICT",
            details={"operation": operation},
        )
        self.operation = operation
