from sqlalchemy import Column, Integer, String, DateTime, DECIMAL

from expense_tracker.database import Base


class Expense(Base):
    __tablename__ = "expenses"
    # Ids are never reused, even after the newest row is deleted
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_date = Column(DateTime, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    amount = Column(DECIMAL(10, 2), nullable=False)   # Never use float for money
    description = Column(String(500), nullable=True)
    category = Column(String(255), nullable=False, index=True)
    tag = Column(String(100), nullable=True)
    # Both timestamps are set by the service layer, never by the caller
    entered_date = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<Expense id={self.id} name={self.name!r} amount={self.amount} category={self.category!r}>"
