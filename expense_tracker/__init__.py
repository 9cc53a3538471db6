"""Personal expense tracker: FastAPI backend over a single SQLAlchemy table."""

__version__ = "1.0.0"
