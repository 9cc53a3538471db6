import os

# Must be set before expense_tracker.database builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DB_MAX_RETRIES"] = "3"

from collections.abc import Callable, Iterator
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from expense_tracker import models  # noqa: F401
from expense_tracker.database import Base, get_db
from expense_tracker.main import create_app
from expense_tracker.schemas import ExpenseRequest


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory: sessionmaker):
    from starlette.testclient import TestClient

    app = create_app()

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def make_request() -> Callable[..., ExpenseRequest]:
    """Build a valid ExpenseRequest, overriding any field by keyword."""

    def _make(**overrides) -> ExpenseRequest:
        data = {
            "transaction_date": datetime(2024, 3, 1, 12, 30),
            "name": "Lunch",
            "amount": Decimal("12.50"),
            "description": "Team lunch",
            "category": "Food",
            "tag": "work",
        }
        data.update(overrides)
        return ExpenseRequest(**data)

    return _make


@pytest.fixture
def expense_payload() -> dict:
    """JSON body for POST/PUT /api/expenses."""
    return {
        "transactionDate": "2024-03-01T12:30:00",
        "name": "Lunch",
        "amount": "12.50",
        "description": "Team lunch",
        "category": "Food",
        "tag": "work",
    }
