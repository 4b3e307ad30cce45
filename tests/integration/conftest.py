"""Integration test fixtures: the FastAPI app over the in-memory test database."""

from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice_engine.api.app import create_app
from backoffice_engine.api.dependencies import get_db_session
from backoffice_engine.config import Settings
from backoffice_engine.services.notifications import PaymentNotificationDispatcher
from backoffice_engine.sms.providers import StubSmsProvider

WEBHOOK_URL = "https://hooks.example.com/payroll"


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite+aiosqlite://",
        host="127.0.0.1",
        port=8000,
        debug=False,
        log_level="INFO",
        payroll_webhook_url=WEBHOOK_URL,
        payroll_proration="calendar",
        company_name="Eaton Academic",
        notification_timeout_seconds=5.0,
        twilio_account_sid=None,
        twilio_auth_token=None,
        twilio_phone_number=None,
        sms_status_callback_url=None,
    )


@pytest.fixture
def sms_provider() -> StubSmsProvider:
    return StubSmsProvider()


@pytest.fixture
def webhook_payloads() -> list[bytes]:
    return []


@pytest.fixture
def dispatcher(webhook_payloads) -> PaymentNotificationDispatcher:
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_payloads.append(request.content)
        return httpx.Response(200)

    return PaymentNotificationDispatcher(WEBHOOK_URL, transport=httpx.MockTransport(handler))


@pytest_asyncio.fixture
async def client(
    session_factory, test_settings, sms_provider, dispatcher
) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for API testing."""
    app = create_app(settings=test_settings, sms_provider=sms_provider, dispatcher=dispatcher)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    await dispatcher.drain()
