"""HTTP helpers for the Streamlit UI.

Every helper returns (success, message, data) and never raises on network
failures, so the page can always render something.
"""

import os
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import requests

API_BASE = os.getenv("API_BASE_URL", "http://localhost:8000")
EXPENSES_URL = f"{API_BASE}/api/expenses"
TIMEOUT = 10

ApiResult = tuple[bool, str, Any]


def _error_body(resp: requests.Response) -> dict:
    try:
        body = resp.json()
    except ValueError:
        return {"message": resp.text}
    return body if isinstance(body, dict) else {"message": str(body)}


def _request(method: str, url: str, action: str, **kwargs) -> tuple[Optional[requests.Response], str]:
    try:
        return requests.request(method, url, timeout=TIMEOUT, **kwargs), ""
    except requests.exceptions.ConnectionError:
        return None, "Could not connect to the API. Please try again."
    except requests.exceptions.Timeout:
        return None, f"Request timed out while {action}."
    except requests.exceptions.RequestException as e:
        return None, f"Unexpected error: {e}"


def fetch_expenses(search: str = "", category: str = "") -> ApiResult:
    """GET /api/expenses. A search keyword wins over the category filter."""
    params = {}
    if search.strip():
        params["search"] = search.strip()
    elif category and category != "All":
        params["category"] = category
    resp, err = _request("GET", EXPENSES_URL, "loading expenses", params=params)
    if resp is None:
        return False, err, None
    if resp.status_code == 200:
        return True, "", resp.json()
    return False, f"API error {resp.status_code}: {_error_body(resp).get('message', resp.text)}", None


def fetch_expense(expense_id: int) -> ApiResult:
    resp, err = _request("GET", f"{EXPENSES_URL}/{expense_id}", "loading the expense")
    if resp is None:
        return False, err, None
    if resp.status_code == 200:
        return True, "", resp.json()
    return False, _error_body(resp).get("message", f"API error {resp.status_code}"), None


def fetch_summary() -> ApiResult:
    """GET /api/expenses/summary."""
    resp, err = _request("GET", f"{EXPENSES_URL}/summary", "loading the summary")
    if resp is None:
        return False, err, []
    if resp.status_code == 200:
        return True, "", resp.json()
    return False, f"API error {resp.status_code}", []


def fetch_categories() -> list[str]:
    """Distinct categories for the filter dropdown, taken from the summary."""
    ok, _, summary = fetch_summary()
    if not ok:
        return ["All"]
    return ["All"] + sorted(row["category"] for row in summary)


def save_expense(payload: dict, expense_id: Optional[int] = None) -> ApiResult:
    """
    POST a new expense, or PUT over an existing one when expense_id is given.
    On a 400 the data is the error body, so field-level `errors` can be shown
    next to the form.
    """
    if expense_id is None:
        resp, err = _request("POST", EXPENSES_URL, "saving the expense", json=payload)
        done = "Expense created successfully!"
    else:
        resp, err = _request("PUT", f"{EXPENSES_URL}/{expense_id}", "saving the expense", json=payload)
        done = "Expense updated successfully!"
    if resp is None:
        return False, err, None
    if resp.status_code in (200, 201):
        return True, done, resp.json()
    body = _error_body(resp)
    return False, body.get("message", f"API error {resp.status_code}"), body


def delete_expense(expense_id: int) -> ApiResult:
    resp, err = _request("DELETE", f"{EXPENSES_URL}/{expense_id}", "deleting the expense")
    if resp is None:
        return False, err, None
    if resp.status_code == 204:
        return True, "Expense deleted successfully!", None
    return False, f"Error deleting expense: {_error_body(resp).get('message', resp.text)}", None


def build_payload(
    name: str,
    amount_str: str,
    category: str,
    transaction_date: datetime,
    description: str = "",
    tag: str = "",
) -> tuple[Optional[dict], dict[str, str]]:
    """
    Client-side presence checks before anything is sent. Returns (payload, {})
    or (None, field errors).
    """
    errors: dict[str, str] = {}

    if not name.strip():
        errors["name"] = "Name is required"

    amount_val: Optional[Decimal] = None
    try:
        amount_val = Decimal(amount_str.strip())
        if not amount_val.is_finite() or amount_val <= 0:
            errors["amount"] = "Amount must be greater than zero"
    except (InvalidOperation, AttributeError):
        errors["amount"] = "Amount must be a valid positive number (e.g. 250 or 99.99)"

    if not category.strip():
        errors["category"] = "Category is required"

    if errors:
        return None, errors

    return {
        "transactionDate": transaction_date.isoformat(),
        "name": name,
        "amount": str(amount_val),
        "description": description.strip() or None,
        "category": category,
        "tag": tag.strip() or None,
    }, {}


def resolve_transaction_date(picked: datetime, original: Optional[datetime] = None) -> datetime:
    """
    The date and time widgets only carry minutes. When an edit leaves them
    untouched, keep the stored timestamp with its seconds and microseconds.
    """
    if original is not None and picked == original.replace(second=0, microsecond=0):
        return original
    return picked


def format_amount(amount) -> str:
    try:
        return f"{Decimal(str(amount)):,.2f}"
    except (InvalidOperation, TypeError):
        return f"{amount}"
