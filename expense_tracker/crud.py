from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
import time

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from expense_tracker.config import get_settings
from expense_tracker.logging_config import get_logger
from expense_tracker.models import Expense

logger = get_logger(__name__)


def commit_with_retry(db: Session, apply: Callable[[], None]) -> None:
    """
    Stage a change with `apply` and commit it. Transient DB errors roll the
    whole change back and it is re-applied, so each write is all-or-nothing.
    """
    max_attempts = get_settings().db_max_retries
    for attempt in range(max_attempts):
        try:
            apply()
            db.commit()
            return
        except OperationalError as e:
            db.rollback()
            if attempt < max_attempts - 1:
                logger.warning("db_commit_retry", attempt=attempt + 1, error=str(e))
                # Exponential backoff: 1, 2, 4 seconds
                time.sleep(2 ** attempt)
            else:
                # Give up after last attempt
                raise
        except Exception:
            db.rollback()
            raise


def insert_expense(db: Session, expense: Expense) -> int:
    """Persist a new expense and return its store-assigned id."""
    commit_with_retry(db, lambda: db.add(expense))
    db.refresh(expense)
    return expense.id


def save_expense(db: Session, expense: Expense, changes: dict[str, Any]) -> Expense:
    """
    Apply `changes` to an already persisted expense and write it back.
    Changes are re-applied on retry since a rollback expires them.
    """

    def apply() -> None:
        for field, value in changes.items():
            setattr(expense, field, value)

    commit_with_retry(db, apply)
    db.refresh(expense)
    return expense


def get_expense(db: Session, expense_id: int) -> Optional[Expense]:
    return db.query(Expense).filter(Expense.id == expense_id).first()


def expense_exists(db: Session, expense_id: int) -> bool:
    return db.query(Expense.id).filter(Expense.id == expense_id).first() is not None


def delete_expense(db: Session, expense_id: int) -> None:
    commit_with_retry(db, lambda: db.query(Expense).filter(Expense.id == expense_id).delete())


def get_expenses(db: Session) -> list[Expense]:
    """All expenses in insertion order."""
    return db.query(Expense).order_by(Expense.id).all()


def get_expenses_by_category(db: Session, category: str) -> list[Expense]:
    """Exact, case-sensitive category match."""
    return db.query(Expense).filter(Expense.category == category).order_by(Expense.id).all()


def search_expenses_by_name(db: Session, keyword: str) -> list[Expense]:
    """Case-insensitive substring match on name; % and _ in the keyword are literal."""
    return (
        db.query(Expense)
        .filter(Expense.name.icontains(keyword, autoescape=True))
        .order_by(Expense.id)
        .all()
    )


def get_expenses_between(db: Session, start: datetime, end: datetime) -> list[Expense]:
    """Both endpoints are inclusive."""
    return (
        db.query(Expense)
        .filter(Expense.transaction_date.between(start, end))
        .order_by(Expense.id)
        .all()
    )


def get_expenses_above(db: Session, amount: Decimal) -> list[Expense]:
    """Strictly greater than `amount`."""
    return db.query(Expense).filter(Expense.amount > amount).order_by(Expense.id).all()


def sum_amount_by_category(db: Session) -> list[tuple[str, Decimal, int]]:
    """(category, total amount, number of expenses) for each distinct category."""
    rows = (
        db.query(Expense.category, func.sum(Expense.amount), func.count(Expense.id))
        .group_by(Expense.category)
        .order_by(Expense.category)
        .all()
    )
    return [(category, total, count) for category, total, count in rows]
