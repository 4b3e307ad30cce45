"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice_engine.api.routes import (
    adjustments_router,
    enrollments_router,
    health_router,
    payroll_runs_router,
    sms_router,
)
from backoffice_engine.config import Settings, get_settings
from backoffice_engine.database import create_schema, get_engine, make_session_factory
from backoffice_engine.exceptions import (
    InconsistentStateError,
    MissingRequiredFieldError,
    NotFoundError,
    StaleRunError,
    ValidationError,
)
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.services.state_machine import InvalidTransitionError
from backoffice_engine.sms.providers import SmsProvider, StubSmsProvider, TwilioSmsProvider

logger = logging.getLogger(__name__)


def build_sms_provider(settings: Settings) -> SmsProvider:
    """Twilio when credentials are configured, else the in-memory stub."""
    if settings.sms_configured:
        return TwilioSmsProvider(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_phone=settings.twilio_phone_number,
            status_callback_url=settings.sms_status_callback_url,
        )
    logger.warning("Twilio credentials not configured; SMS goes to the stub provider")
    return StubSmsProvider()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    await create_schema(app.state.engine)
    yield
    # Shutdown
    await app.state.dispatcher.drain()
    await app.state.engine.dispose()


def _error(status_code: int, exc: Exception, code: str, context: dict | None = None) -> JSONResponse:
    content = {"detail": str(exc), "code": code}
    if context:
        content["context"] = context
    return JSONResponse(status_code=status_code, content=content)


def create_app(
    settings: Settings | None = None,
    sms_provider: SmsProvider | None = None,
    dispatcher: PaymentNotificationDispatcher | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Back-office Engine API",
        description="Teacher payroll runs and family SMS outreach",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = get_engine(settings.database_url)
    app.state.session_factory = make_session_factory(app.state.engine)
    app.state.sms_provider = sms_provider or build_sms_provider(settings)
    app.state.dispatcher = dispatcher or PaymentNotificationDispatcher(
        settings.payroll_webhook_url,
        timeout=settings.notification_timeout_seconds,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(MissingRequiredFieldError)
    async def missing_field_handler(request: Request, exc: MissingRequiredFieldError) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            exc,
            "MISSING_REQUIRED_FIELD",
            {"template_key": exc.template_key, "missing": exc.missing},
        )

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, exc, "VALIDATION_ERROR")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, exc, "NOT_FOUND")

    @app.exception_handler(InvalidTransitionError)
    async def transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            exc,
            "INVALID_TRANSITION",
            {"from_status": exc.from_status, "to_status": exc.to_status},
        )

    @app.exception_handler(StaleRunError)
    async def stale_handler(request: Request, exc: StaleRunError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            exc,
            "STALE_VERSION",
            {"expected": exc.expected, "actual": exc.actual},
        )

    @app.exception_handler(InconsistentStateError)
    async def inconsistent_handler(request: Request, exc: InconsistentStateError) -> JSONResponse:
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc, "INCONSISTENT_STATE")

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_runs_router, prefix="/api/v1")
    app.include_router(adjustments_router, prefix="/api/v1")
    app.include_router(enrollments_router, prefix="/api/v1")
    app.include_router(sms_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
