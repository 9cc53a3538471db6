from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
import uuid

from fastapi import FastAPI, Depends, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from expense_tracker import schemas, service
from expense_tracker.config import get_settings
from expense_tracker.database import get_db, init_db
from expense_tracker.exceptions import (
    ErrorKind,
    ExpenseTrackerError,
    TransportValidationError,
    UnexpectedError,
)
from expense_tracker.logging_config import bind_context, clear_context, configure_logging, get_logger
from expense_tracker.validation import collect_field_errors

logger = get_logger(__name__)

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.TRANSPORT_VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNEXPECTED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorResponse, "description": "Invalid input"},
    404: {"model": schemas.ErrorResponse, "description": "Expense not found"},
}


def error_response(error: ExpenseTrackerError, path: str) -> JSONResponse:
    """The single place where error kinds become HTTP responses."""
    status_code = STATUS_BY_KIND.get(error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    body = schemas.ErrorResponse(
        status=status_code,
        message=error.message,
        timestamp=datetime.now(timezone.utc),
        path=path,
        errors=error.errors if error.kind is ErrorKind.TRANSPORT_VALIDATION else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body, exclude_none=True),
    )


async def expense_error_handler(request: Request, exc: ExpenseTrackerError) -> JSONResponse:
    logger.warning("request_rejected", kind=exc.kind.value, message=exc.message, context=exc.context)
    return error_response(exc, request.url.path)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = TransportValidationError(collect_field_errors(exc.errors()))
    logger.warning("request_invalid", errors=error.errors)
    return error_response(error, request.url.path)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Runs outside the request middleware, so the request is named explicitly
    logger.exception(
        "unexpected_error",
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )
    return error_response(UnexpectedError(), request.url.path)


async def log_request_middleware(request: Request, call_next):
    """
    Bind request context to every log line emitted while handling the request.
    The context is replaced when the next request starts, so exception handlers
    running after this middleware still see it.
    """
    clear_context()
    bind_context(request_id=str(uuid.uuid4())[:8], path=request.url.path, method=request.method)
    response = await call_next(request)
    logger.info("request_completed", status_code=response.status_code)
    return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    configure_logging(settings)
    # Create all tables on startup if they don't exist
    init_db()
    logger.info("application_started", app_name=settings.app_name, version=settings.app_version)
    yield
    logger.info("application_stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="A personal expense tracker API: CRUD, filtered queries and category totals.",
        version=settings.app_version,
        lifespan=lifespan,
    )

    # CORS — allow the Streamlit UI and local dev to reach this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_request_middleware)

    app.add_exception_handler(ExpenseTrackerError, expense_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/", tags=["Health"])
    def root():
        return {"status": "ok", "message": "Expense Tracker API is running."}

    @app.get("/health", tags=["Health"])
    def health():
        return {"status": "healthy"}

    @app.get(
        "/api/expenses",
        response_model=list[schemas.ExpenseResponse],
        tags=["Expenses"],
        summary="List, search or filter expenses",
    )
    def list_expenses(
        category: Optional[str] = Query(default=None, description="Exact category match"),
        search: Optional[str] = Query(default=None, description="Case-insensitive name search"),
        db: Session = Depends(get_db),
    ):
        """
        - `search` takes precedence over `category`.
        - With neither parameter, every expense is returned in insertion order.
        """
        if search:
            return service.search_expenses(db, search)
        if category:
            return service.get_expenses_by_category(db, category)
        return service.get_all_expenses(db)

    @app.get(
        "/api/expenses/range",
        response_model=list[schemas.ExpenseResponse],
        tags=["Expenses"],
        summary="Expenses with a transaction date inside a range",
    )
    def list_expenses_in_range(
        start_date: datetime = Query(..., alias="startDate", description="ISO datetime, inclusive"),
        end_date: datetime = Query(..., alias="endDate", description="ISO datetime, inclusive"),
        db: Session = Depends(get_db),
    ):
        return service.get_expenses_by_date_range(db, start_date, end_date)

    @app.get(
        "/api/expenses/above",
        response_model=list[schemas.ExpenseResponse],
        tags=["Expenses"],
        summary="Expenses strictly above an amount",
    )
    def list_expenses_above(
        amount: Decimal = Query(..., description="Threshold (exclusive)"),
        db: Session = Depends(get_db),
    ):
        return service.get_expenses_above_amount(db, amount)

    @app.get(
        "/api/expenses/summary",
        response_model=list[schemas.ExpenseSummary],
        tags=["Expenses"],
        summary="Total amount and count per category",
    )
    def expense_summary(db: Session = Depends(get_db)):
        return service.get_total_by_category(db)

    @app.get(
        "/api/expenses/{expense_id}",
        response_model=schemas.ExpenseResponse,
        responses=ERROR_RESPONSES,
        tags=["Expenses"],
    )
    def get_expense(expense_id: int, db: Session = Depends(get_db)):
        return service.get_expense(db, expense_id)

    @app.post(
        "/api/expenses",
        response_model=schemas.ExpenseResponse,
        status_code=status.HTTP_201_CREATED,
        responses=ERROR_RESPONSES,
        tags=["Expenses"],
        summary="Create a new expense",
    )
    def create_expense(expense_in: schemas.ExpenseRequest, db: Session = Depends(get_db)):
        """
        Shape problems (missing fields, too long, non-positive amount, future date)
        come back together as a per-field `errors` map. Business rules such as
        the two-decimal limit on `amount` fail with a single message.
        """
        return service.create_expense(db, expense_in)

    @app.put(
        "/api/expenses/{expense_id}",
        response_model=schemas.ExpenseResponse,
        responses=ERROR_RESPONSES,
        tags=["Expenses"],
        summary="Replace every field of an expense",
    )
    def update_expense(expense_id: int, expense_in: schemas.ExpenseRequest, db: Session = Depends(get_db)):
        return service.update_expense(db, expense_id, expense_in)

    @app.delete(
        "/api/expenses/{expense_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        responses=ERROR_RESPONSES,
        tags=["Expenses"],
    )
    def delete_expense(expense_id: int, db: Session = Depends(get_db)):
        service.delete_expense(db, expense_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


app = create_app()
