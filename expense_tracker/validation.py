"""Two tiers of input checking.

Transport-level errors (raised by pydantic while parsing a request) are
collected per field so the caller sees every problem at once. Business rules
run afterwards inside the service and stop at the first failure.
"""

from collections.abc import Sequence
from decimal import Decimal
from typing import Any, Optional

from expense_tracker.exceptions import InvalidExpenseError
from expense_tracker.schemas import MAX_AMOUNT, MIN_AMOUNT, ExpenseRequest

MAX_AMOUNT_DECIMAL_PLACES = 2

FIELD_LABELS = {
    "transactionDate": "Transaction date",
    "name": "Name",
    "amount": "Amount",
    "description": "Description",
    "category": "Category",
    "tag": "Tag",
    "startDate": "Start date",
    "endDate": "End date",
}

FIELD_MESSAGES = {
    ("name", "string_too_short"): "Name is required",
    ("name", "string_too_long"): "Name must not exceed 255 characters",
    ("category", "string_too_short"): "Category is required",
    ("category", "string_too_long"): "Category must not exceed 255 characters",
    ("description", "string_too_long"): "Description must not exceed 500 characters",
    ("tag", "string_too_long"): "Tag must not exceed 100 characters",
    ("amount", "greater_than"): "Amount must be greater than zero",
    ("amount", "greater_than_equal"): "Amount must be at least 0.01",
    ("amount", "less_than_equal"): "Amount must not exceed 99999999.99",
    ("amount", "decimal_parsing"): "Amount must be a valid number",
}

_LOCATION_PREFIXES = {"body", "query", "path"}


def decimal_places(value: Decimal) -> int:
    exponent = value.as_tuple().exponent
    if not isinstance(exponent, int):  # NaN / Infinity
        return 0
    return max(0, -exponent)


def validate_expense_request(request: ExpenseRequest) -> None:
    """Apply business rules in order; raise InvalidExpenseError on the first failure."""
    if request.name is not None and not request.name.strip():
        raise InvalidExpenseError("Name cannot be empty or just whitespace")

    if request.category is not None and not request.category.strip():
        raise InvalidExpenseError("Category cannot be empty or just whitespace")

    amount = request.amount
    if amount is not None and (amount.is_nan() or amount < MIN_AMOUNT):
        raise InvalidExpenseError("Amount must be greater than zero")

    if amount is not None and amount > MAX_AMOUNT:
        raise InvalidExpenseError("Amount must not exceed 99999999.99")

    if amount is not None and decimal_places(amount) > MAX_AMOUNT_DECIMAL_PLACES:
        raise InvalidExpenseError("Amount cannot have more than 2 decimal places")


def _field_name(loc: Sequence[Any]) -> str:
    parts = [str(p) for p in loc if not isinstance(p, int)]
    if len(parts) > 1 and parts[0] in _LOCATION_PREFIXES:
        parts = parts[1:]
    return ".".join(parts) or "request"


def field_message(field: str, error: dict[str, Any]) -> str:
    error_type = error.get("type", "")
    label = FIELD_LABELS.get(field, field)

    if error_type == "missing" or ("input" in error and error["input"] is None):
        return f"{label} is required"
    if error_type == "value_error":
        cause: Optional[BaseException] = error.get("ctx", {}).get("error")
        if cause is not None:
            return str(cause)
    return FIELD_MESSAGES.get((field, error_type), error.get("msg", "Invalid value"))


def collect_field_errors(errors: Sequence[dict[str, Any]]) -> dict[str, str]:
    """
    Map pydantic errors to {field: message}. Every failing field is reported;
    when a field fails more than one check, the first message is kept.
    """
    field_errors: dict[str, str] = {}
    for error in errors:
        field = _field_name(error.get("loc", ()))
        field_errors.setdefault(field, field_message(field, error))
    return field_errors
