from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from expense_tracker.config import get_settings

DATABASE_URL = get_settings().database_url

# SQLite connections are shared across FastAPI's worker threads
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
    pool_recycle=300,
    echo=False,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db() -> None:
    """Create the expenses table if it doesn't exist."""
    # Import so the model is registered on Base.metadata
    from expense_tracker import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency that provides a DB session and ensures it's closed after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
