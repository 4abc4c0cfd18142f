"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from activity_ledger import __version__
from activity_ledger.api.routes import (
    activities_router,
    clients_router,
    contracts_router,
    health_router,
    invoices_router,
    workers_router,
)
from activity_ledger.api.schemas import ActivityResponse
from activity_ledger.config import Settings, get_settings
from activity_ledger.database import Database
from activity_ledger.errors import (
    CapacityExceededError,
    ConflictError,
    EntityNotFoundError,
    InfrastructureError,
    LedgerError,
    SchedulingConflictError,
    ValidationFailedError,
)
from activity_ledger.services import LockRegistry

logger = logging.getLogger(__name__)


def _error_body(detail: str, code: str, context: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"detail": detail, "code": code, "context": context or None}


def _ledger_error_response(exc: LedgerError, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.message, exc.code, exc.context),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map each error family onto an HTTP status."""

    @app.exception_handler(ValidationFailedError)
    async def validation_handler(request: Request, exc: ValidationFailedError) -> JSONResponse:
        return _ledger_error_response(exc, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(CapacityExceededError)
    async def capacity_handler(request: Request, exc: CapacityExceededError) -> JSONResponse:
        return _ledger_error_response(exc, status.HTTP_400_BAD_REQUEST)

    @app.exception_handler(EntityNotFoundError)
    async def not_found_handler(request: Request, exc: EntityNotFoundError) -> JSONResponse:
        return _ledger_error_response(exc, status.HTTP_404_NOT_FOUND)

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        if isinstance(exc, SchedulingConflictError):
            context = dict(exc.context)
            context["conflicting_activities"] = [
                ActivityResponse.model_validate(a).model_dump(mode="json", by_alias=True)
                for a in exc.conflicting_activities
            ]
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content=_error_body(exc.message, exc.code, context),
            )
        return _ledger_error_response(exc, status.HTTP_409_CONFLICT)

    @app.exception_handler(InfrastructureError)
    async def infrastructure_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
        logger.warning("Infrastructure failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_error_body(str(exc), exc.code),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning("Constraint violation on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=_error_body("Request conflicts with existing data", ConflictError.code),
        )

    @app.exception_handler(OperationalError)
    @app.exception_handler(DBAPIError)
    async def database_handler(request: Request, exc: DBAPIError) -> JSONResponse:
        logger.error("Database failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_error_body("Database unavailable", "STORE_UNAVAILABLE"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("An unexpected error occurred", "INTERNAL_ERROR"),
        )


def create_app(settings: Settings | None = None, database: Database | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A ``database`` passed in is used as-is and left open on shutdown; otherwise
    the lifespan builds one from ``settings.database_url`` and disposes it.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        owned = app.state.database is None
        if owned:
            app.state.database = Database(settings.database_url, echo=settings.debug)
            await app.state.database.create_all()
        logger.info("Activity ledger %s started", settings.engine_version)
        try:
            yield
        finally:
            if owned:
                await app.state.database.dispose()
                app.state.database = None

    app = FastAPI(
        title="Activity Ledger API",
        description="Field activities, worker scheduling, contract hours and invoicing",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.locks = LockRegistry()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    for router in (
        workers_router,
        clients_router,
        contracts_router,
        activities_router,
        invoices_router,
    ):
        app.include_router(router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
