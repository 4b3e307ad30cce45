"""SMS templates, segment counting, cost estimation and sending."""

from backoffice_engine.sms.bulk import BulkSendResult, Recipient, partition_recipients, send_bulk
from backoffice_engine.sms.phone import format_phone_display, is_valid_phone, normalize_phone
from backoffice_engine.sms.providers import (
    SmsProvider,
    SmsSendResult,
    StubSmsProvider,
    TwilioSmsProvider,
    map_provider_status,
)
from backoffice_engine.sms.segments import (
    MMS_RATE,
    SMS_RATE,
    analyze_message,
    calculate_segments,
    estimate_cost,
)
from backoffice_engine.sms.service import SmsService
from backoffice_engine.sms.templates import (
    TemplateKey,
    generate_from_request,
    generate_message,
    preview_message,
)

__all__ = [
    "BulkSendResult",
    "Recipient",
    "partition_recipients",
    "send_bulk",
    "format_phone_display",
    "is_valid_phone",
    "normalize_phone",
    "SmsProvider",
    "SmsSendResult",
    "StubSmsProvider",
    "TwilioSmsProvider",
    "map_provider_status",
    "MMS_RATE",
    "SMS_RATE",
    "analyze_message",
    "calculate_segments",
    "estimate_cost",
    "SmsService",
    "TemplateKey",
    "generate_from_request",
    "generate_message",
    "preview_message",
]
