"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice_engine.calculators.engine import PayrollEngine
from backoffice_engine.config import Settings
from backoffice_engine.services.enrollment_service import EnrollmentService
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.services.payroll_run_service import PayrollRunService
from backoffice_engine.sms.providers import SmsProvider
from backoffice_engine.sms.service import SmsService


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_dispatcher(request: Request) -> PaymentNotificationDispatcher:
    return request.app.state.dispatcher


def get_sms_provider(request: Request) -> SmsProvider:
    return request.app.state.sms_provider


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]


def get_payroll_service(
    db: DbSession,
    settings: AppSettings,
    dispatcher: Annotated[PaymentNotificationDispatcher, Depends(get_dispatcher)],
) -> PayrollRunService:
    return PayrollRunService(
        db,
        engine=PayrollEngine(settings.payroll_proration),
        dispatcher=dispatcher,
        company_name=settings.company_name,
    )


def get_enrollment_service(db: DbSession) -> EnrollmentService:
    return EnrollmentService.for_session(db)


def get_sms_service(
    db: DbSession,
    provider: Annotated[SmsProvider, Depends(get_sms_provider)],
) -> SmsService:
    return SmsService(db, provider)


PayrollService = Annotated[PayrollRunService, Depends(get_payroll_service)]
Enrollments = Annotated[EnrollmentService, Depends(get_enrollment_service)]
Sms = Annotated[SmsService, Depends(get_sms_service)]
