"""Expense use cases: CRUD, filtered queries and the per-category summary.

Every function takes the request's Session and returns transfer shapes, never
ORM objects. Get/update/delete each check existence themselves rather than
trusting an earlier lookup.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from expense_tracker import crud
from expense_tracker.exceptions import ExpenseNotFoundError, InvalidExpenseError
from expense_tracker.logging_config import get_logger
from expense_tracker.models import Expense
from expense_tracker.schemas import ExpenseRequest, ExpenseResponse, ExpenseSummary, to_local_naive
from expense_tracker.validation import validate_expense_request

logger = get_logger(__name__)


def _now() -> datetime:
    return datetime.now()


def _to_views(expenses: list[Expense]) -> list[ExpenseResponse]:
    return [ExpenseResponse.model_validate(e) for e in expenses]


def _mutable_fields(request: ExpenseRequest) -> dict:
    return {
        "transaction_date": request.transaction_date,
        "name": request.name,
        "amount": request.amount,
        "description": request.description,
        "category": request.category,
        "tag": request.tag,
    }


def _validate(request: ExpenseRequest) -> None:
    try:
        validate_expense_request(request)
    except InvalidExpenseError as e:
        logger.warning("expense_rejected", reason=e.message)
        raise


def _get_or_raise(db: Session, expense_id: int) -> Expense:
    expense = crud.get_expense(db, expense_id)
    if expense is None:
        logger.warning("expense_not_found", expense_id=expense_id)
        raise ExpenseNotFoundError(expense_id)
    return expense


def get_all_expenses(db: Session) -> list[ExpenseResponse]:
    return _to_views(crud.get_expenses(db))


def get_expense(db: Session, expense_id: int) -> ExpenseResponse:
    return ExpenseResponse.model_validate(_get_or_raise(db, expense_id))


def create_expense(db: Session, request: ExpenseRequest) -> ExpenseResponse:
    """
    Validate business rules, then persist a new expense. Both timestamps are
    set here to the same instant.
    """
    _validate(request)

    now = _now()
    expense = Expense(**_mutable_fields(request), entered_date=now, updated_at=now)
    expense_id = crud.insert_expense(db, expense)

    logger.info("expense_created", expense_id=expense_id, category=expense.category)
    return ExpenseResponse.model_validate(expense)


def update_expense(db: Session, expense_id: int, request: ExpenseRequest) -> ExpenseResponse:
    """
    Replace every mutable field of an existing expense (no partial updates)
    and refresh updated_at. entered_date is never touched.
    """
    expense = _get_or_raise(db, expense_id)
    _validate(request)

    changes = _mutable_fields(request)
    # Never move updated_at behind entered_date, even if the clock stepped back
    changes["updated_at"] = max(_now(), expense.entered_date)
    crud.save_expense(db, expense, changes)

    logger.info("expense_updated", expense_id=expense_id)
    return ExpenseResponse.model_validate(expense)


def delete_expense(db: Session, expense_id: int) -> None:
    if not crud.expense_exists(db, expense_id):
        logger.warning("expense_not_found", expense_id=expense_id)
        raise ExpenseNotFoundError(expense_id)
    crud.delete_expense(db, expense_id)
    logger.info("expense_deleted", expense_id=expense_id)


def search_expenses(db: Session, keyword: Optional[str]) -> list[ExpenseResponse]:
    """Case-insensitive name search. A missing or blank keyword lists everything."""
    if keyword is None or not keyword.strip():
        return get_all_expenses(db)
    return _to_views(crud.search_expenses_by_name(db, keyword))


def get_expenses_by_category(db: Session, category: str) -> list[ExpenseResponse]:
    return _to_views(crud.get_expenses_by_category(db, category))


def get_expenses_by_date_range(db: Session, start: datetime, end: datetime) -> list[ExpenseResponse]:
    """Inclusive at both ends; start after end simply matches nothing."""
    return _to_views(crud.get_expenses_between(db, to_local_naive(start), to_local_naive(end)))


def get_expenses_above_amount(db: Session, amount: Decimal) -> list[ExpenseResponse]:
    return _to_views(crud.get_expenses_above(db, amount))


def get_total_by_category(db: Session) -> list[ExpenseSummary]:
    return [
        ExpenseSummary(category=category, total_amount=total, count=count)
        for category, total, count in crud.sum_amount_by_category(db)
    ]
