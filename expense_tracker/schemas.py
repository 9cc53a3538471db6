from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from decimal import Decimal
from datetime import datetime
from typing import Optional

# Bounds of the DECIMAL(10, 2) amount column
MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("99999999.99")


class CamelModel(BaseModel):
    """JSON uses camelCase (transactionDate), Python uses snake_case; both are accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def to_local_naive(value: datetime) -> datetime:
    """Timestamps are stored as naive local time; convert aware values first."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


class ExpenseRequest(CamelModel):
    """Create/update payload. Every mutable field is replaced on update."""

    transaction_date: datetime
    name: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(
        ..., gt=0, ge=MIN_AMOUNT, le=MAX_AMOUNT, description="Positive, at most 99999999.99"
    )
    description: Optional[str] = Field(default=None, max_length=500)
    category: str = Field(..., min_length=1, max_length=255)
    tag: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def name_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v

    @field_validator("category")
    @classmethod
    def category_must_not_be_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Category is required")
        return v

    @field_validator("amount", mode="before")
    @classmethod
    def amount_from_float(cls, v):
        # 10.1 must become Decimal("10.1"), not the binary float expansion
        if isinstance(v, float):
            return Decimal(str(v))
        return v

    @field_validator("transaction_date")
    @classmethod
    def transaction_date_not_in_future(cls, v: datetime) -> datetime:
        v = to_local_naive(v)
        if v > datetime.now():
            raise ValueError("Transaction date cannot be in the future")
        return v


class ExpenseResponse(CamelModel):
    id: int
    transaction_date: datetime
    name: str
    amount: Decimal
    description: Optional[str]
    category: str
    tag: Optional[str]
    entered_date: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ExpenseSummary(CamelModel):
    category: str
    total_amount: Decimal
    count: int


class ErrorResponse(BaseModel):
    status: int
    message: str
    timestamp: datetime
    path: str
    errors: Optional[dict[str, str]] = None
