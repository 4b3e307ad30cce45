"""Configuration management for the back-office engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    host: str
    port: int
    debug: bool
    log_level: str

    # Payroll
    payroll_webhook_url: str | None
    payroll_proration: str
    company_name: str
    notification_timeout_seconds: float

    # SMS provider
    twilio_account_sid: str | None
    twilio_auth_token: str | None
    twilio_phone_number: str | None
    sms_status_callback_url: str | None

    @property
    def HOST(self) -> str:
        """Alias for host."""
        return self.host

    @property
    def PORT(self) -> int:
        """Alias for port."""
        return self.port

    @property
    def DEBUG(self) -> bool:
        """Alias for debug."""
        return self.debug

    @property
    def sms_configured(self) -> bool:
        """True when all provider credentials are present."""
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        proration = os.getenv("PAYROLL_PRORATION", "calendar").lower()
        if proration not in ("calendar", "weekday"):
            raise ValueError(
                f"PAYROLL_PRORATION must be 'calendar' or 'weekday', got {proration!r}"
            )

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./backoffice.db",
            ),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            payroll_webhook_url=os.getenv("PAYROLL_WEBHOOK_URL") or None,
            payroll_proration=proration,
            company_name=os.getenv("COMPANY_NAME", "Eaton Academic"),
            notification_timeout_seconds=float(
                os.getenv("NOTIFICATION_TIMEOUT_SECONDS", "10")
            ),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER") or None,
            sms_status_callback_url=os.getenv("SMS_STATUS_CALLBACK_URL") or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
