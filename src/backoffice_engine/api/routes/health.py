"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Request, status
from pydantic import BaseModel
from sqlalchemy import text

from backoffice_engine.api.dependencies import AppSettings, DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response.

    ``sms_provider`` is ``stub`` until Twilio credentials are set, and
    ``payment_webhook`` is ``missing`` while paid runs notify nobody.
    """

    status: str
    timestamp: datetime
    database: str
    sms_provider: str
    payment_webhook: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession, settings: AppSettings) -> HealthResponse:
    """Check database health and report which integrations are configured."""
    db_status = "unhealthy"
    try:
        await db.execute(text("SELECT 1"))
        db_status = "healthy"
    except Exception:
        logger.exception("Database health check failed")

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        sms_provider="twilio" if settings.sms_configured else "stub",
        payment_webhook="configured" if settings.payroll_webhook_url else "missing",
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(request: Request) -> dict[str, str | int]:
    """Readiness check; includes payment notifications still in flight."""
    return {"status": "ready", "pending_notifications": request.app.state.dispatcher.pending}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
