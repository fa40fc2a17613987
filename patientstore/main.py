"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.middleware.base import BaseHTTPMiddleware

from patientstore.config import Settings, configure_logging, settings
from patientstore.database import create_db_engine, create_schema, create_session_factory, get_db
from patientstore.errors import (
    ErrorCategory,
    InternalStoreError,
    InvalidResourceError,
    PatientStoreError,
)
from patientstore.routes import patients
from patientstore.schemas import OperationOutcome

logger = logging.getLogger(__name__)

APP_NAME = "patientstore"
APP_VERSION = "0.1.0"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def _outcome_response(error: PatientStoreError) -> JSONResponse:
    outcome = OperationOutcome.from_error(error)
    return JSONResponse(
        status_code=error.http_status,
        content=outcome.model_dump(exclude_none=True),
    )


async def store_error_handler(request: Request, exc: PatientStoreError) -> JSONResponse:
    """Render store errors as OperationOutcome."""
    if exc.category is ErrorCategory.INTERNAL:
        logger.error(
            "Internal error on %s %s: %s", request.method, request.url.path, exc.message
        )
    return _outcome_response(exc)


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render malformed requests (bad path id, non-object body) as invalid."""
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ())) or None
    message = f"{location}: {error.get('msg')}" if location else str(error.get("msg"))
    return _outcome_response(InvalidResourceError(message, location=location))


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Catch-all for database errors raised outside a service unit of work."""
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _outcome_response(InternalStoreError("Database operation failed"))


def create_app(config: Settings = settings) -> FastAPI:
    """Build the application.

    The database engine is created in the lifespan and disposed at shutdown;
    requests get sessions through ``get_db``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events for startup/shutdown."""
        configure_logging(config)
        engine = create_db_engine(config.database_url, echo=config.database_echo)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        if config.auto_create_schema:
            await create_schema(engine)
            logger.info("Database schema ensured")

        yield  # Application runs here

        await engine.dispose()
        logger.info("Database engine disposed")

    app = FastAPI(
        title="Patient Store",
        description="FHIR Patient record server with version history and search",
        version=APP_VERSION,
        debug=config.debug,
        lifespan=lifespan,
    )

    # Security headers middleware (applied to all responses)
    app.add_middleware(SecurityHeadersMiddleware)

    # Parse comma-separated origins from config
    cors_origins = [origin.strip() for origin in config.cors_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
        expose_headers=["Location"],
    )

    app.add_exception_handler(PatientStoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    app.include_router(patients.router, prefix="/fhir")

    @app.get("/health")
    async def health_check(db: AsyncSession = Depends(get_db)) -> JSONResponse:
        """Health check endpoint; also verifies the database answers."""
        try:
            await db.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": "unreachable"},
            )
        return JSONResponse(content={"status": "healthy", "database": "ok"})

    @app.get("/")
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "docs": "/docs",
            "fhir": "/fhir",
        }

    return app


app = create_app()
