"""Error taxonomy for the expense tracker.

Every error carries an ErrorKind. The presentation layer maps kinds to
responses; it never needs to know the concrete exception class.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    TRANSPORT_VALIDATION = "transport_validation"
    UNEXPECTED = "unexpected"


class ExpenseTrackerError(Exception):
    """Base exception for all expense tracker errors."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ExpenseNotFoundError(ExpenseTrackerError):
    """No record exists for the referenced id."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, expense_id: int) -> None:
        super().__init__(
            f"Expense not found with id: {expense_id}",
            context={"expense_id": expense_id},
        )
        self.expense_id = expense_id


class InvalidExpenseError(ExpenseTrackerError):
    """A business rule rejected a create/update request."""

    kind = ErrorKind.INVALID_INPUT


class TransportValidationError(ExpenseTrackerError):
    """Request shape violations, one message per offending field."""

    kind = ErrorKind.TRANSPORT_VALIDATION

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("Validation failed", context={"fields": sorted(errors)})
        self.errors = errors


class UnexpectedError(ExpenseTrackerError):
    kind = ErrorKind.UNEXPECTED

    def __init__(self, message: str = "An unexpected error occurred") -> None:
        super().__init__(message)
