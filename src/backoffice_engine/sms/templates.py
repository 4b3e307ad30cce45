"""SMS message templates with per-template merge data.

Each template declares a pydantic model for its merge data. Required
fields are checked before rendering so a gap is reported by name
instead of producing a message with blanks in it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Callable, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from backoffice_engine.exceptions import MissingRequiredFieldError, ValidationError

logger = logging.getLogger(__name__)

OPT_OUT_FOOTER = "\n\nReply STOP to opt out of texts."
SIGN_OFF = "\n\n- Eaton Academic"


class TemplateKey(str, Enum):
    INVOICE_REMINDER = "invoice_reminder"
    EVENT_REMINDER = "event_reminder"
    ANNOUNCEMENT = "announcement"


# ============================================================================
# Merge data
# ============================================================================


class MergeData(BaseModel):
    """Base for merge data; accepts camelCase keys or field names."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class InvoiceReminderData(MergeData):
    family_name: str = Field(alias="familyName", min_length=1)
    invoice_number: str = Field(alias="invoiceNumber", min_length=1)
    amount: Decimal
    due_date: str = Field(alias="dueDate", min_length=1)
    invoice_url: str = Field(alias="invoiceUrl", min_length=1)


class EventReminderData(MergeData):
    family_name: str = Field(alias="familyName", min_length=1)
    event_name: str = Field(alias="eventName", min_length=1)
    event_date: str = Field(alias="eventDate", min_length=1)
    event_time: str = Field(alias="eventTime", min_length=1)
    location: str | None = None


class AnnouncementData(MergeData):
    custom_message: str = Field(alias="customMessage", min_length=1)


# ============================================================================
# Tagged requests
# ============================================================================


class InvoiceReminderRequest(BaseModel):
    kind: Literal["invoice_reminder"] = "invoice_reminder"
    data: InvoiceReminderData


class EventReminderRequest(BaseModel):
    kind: Literal["event_reminder"] = "event_reminder"
    data: EventReminderData


class AnnouncementRequest(BaseModel):
    kind: Literal["announcement"] = "announcement"
    data: AnnouncementData


TemplateRequest = Annotated[
    Union[InvoiceReminderRequest, EventReminderRequest, AnnouncementRequest],
    Field(discriminator="kind"),
]

template_request_adapter: TypeAdapter[Any] = TypeAdapter(TemplateRequest)


# ============================================================================
# Formatting helpers
# ============================================================================


def format_currency(amount: Decimal | float | int) -> str:
    """``$1,234.50`` style (negative amounts as ``-$5.00``)."""
    value = Decimal(str(amount))
    sign = "-" if value < 0 else ""
    return f"{sign}${abs(value):,.2f}"


def format_month_day(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}"


def describe_due_date(due_date: str, today: date | None = None) -> str:
    """Due date wording for an invoice reminder; 'due soon' if unparseable."""
    try:
        due = date.fromisoformat(due_date.strip()[:10])
    except ValueError:
        return "due soon"

    today = today or date.today()
    overdue_days = (today - due).days
    if overdue_days > 0:
        plural = "" if overdue_days == 1 else "s"
        return (
            f"that was due on {format_month_day(due)} "
            f"and is overdue by {overdue_days} day{plural}"
        )
    return f"that is due {format_month_day(due)}"


# ============================================================================
# Renderers
# ============================================================================


def render_invoice_reminder(data: InvoiceReminderData, today: date | None = None) -> str:
    due_part = describe_due_date(data.due_date, today)
    return (
        f"Hi {data.family_name}, this is Eaton Academic. You have an outstanding "
        f"invoice #{data.invoice_number} for {format_currency(data.amount)} {due_part}. "
        f"View and pay online: {data.invoice_url}{OPT_OUT_FOOTER}"
    )


def render_event_reminder(data: EventReminderData, today: date | None = None) -> str:
    location_part = f" at {data.location}" if data.location else ""
    return (
        f"Hi {data.family_name}, reminder: {data.event_name} is {data.event_date} "
        f"at {data.event_time}{location_part}. We look forward to seeing you!"
        f"{SIGN_OFF}{OPT_OUT_FOOTER}"
    )


def render_announcement(data: AnnouncementData, today: date | None = None) -> str:
    return f"{data.custom_message}{SIGN_OFF}{OPT_OUT_FOOTER}"


@dataclass(frozen=True)
class SmsTemplate:
    """Registry entry for one template."""

    key: TemplateKey
    name: str
    description: str
    data_model: type[MergeData]
    render: Callable[..., str]

    @property
    def required_fields(self) -> list[str]:
        """Required merge fields by their camelCase names."""
        return [
            info.alias or name
            for name, info in self.data_model.model_fields.items()
            if info.is_required()
        ]


SMS_TEMPLATES: dict[TemplateKey, SmsTemplate] = {
    TemplateKey.INVOICE_REMINDER: SmsTemplate(
        key=TemplateKey.INVOICE_REMINDER,
        name="Invoice Reminder",
        description="Reminds family about outstanding invoice",
        data_model=InvoiceReminderData,
        render=render_invoice_reminder,
    ),
    TemplateKey.EVENT_REMINDER: SmsTemplate(
        key=TemplateKey.EVENT_REMINDER,
        name="Event Reminder",
        description="Reminds family about upcoming event",
        data_model=EventReminderData,
        render=render_event_reminder,
    ),
    TemplateKey.ANNOUNCEMENT: SmsTemplate(
        key=TemplateKey.ANNOUNCEMENT,
        name="Announcement",
        description="Custom announcement with standard footer",
        data_model=AnnouncementData,
        render=render_announcement,
    ),
}


def get_template(template_key: TemplateKey | str) -> SmsTemplate:
    try:
        return SMS_TEMPLATES[TemplateKey(template_key)]
    except ValueError:
        raise ValidationError(f"Unknown SMS template: {template_key!r}") from None


def find_missing_fields(template: SmsTemplate, data: Mapping[str, Any]) -> list[str]:
    """Required fields that are absent, None or blank in ``data``."""
    missing = []
    for name, info in template.data_model.model_fields.items():
        if not info.is_required():
            continue
        alias = info.alias or name
        value = data.get(alias, data.get(name))
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(alias)
    return missing


def coerce_merge_data(template: SmsTemplate, data: MergeData | Mapping[str, Any]) -> MergeData:
    if isinstance(data, template.data_model):
        return data
    if isinstance(data, MergeData):
        raise ValidationError(
            f"Template '{template.key.value}' expects {template.data_model.__name__}, "
            f"got {type(data).__name__}"
        )

    missing = find_missing_fields(template, data)
    if missing:
        raise MissingRequiredFieldError(template.key.value, missing)
    try:
        return template.data_model.model_validate(dict(data))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid merge data for '{template.key.value}': {exc}") from exc


def generate_message(
    template_key: TemplateKey | str,
    data: MergeData | Mapping[str, Any],
    today: date | None = None,
) -> str:
    """Render a template, including the opt-out footer.

    Raises MissingRequiredFieldError naming every absent required field.
    """
    template = get_template(template_key)
    return template.render(coerce_merge_data(template, data), today)


def generate_from_request(
    request: InvoiceReminderRequest | EventReminderRequest | AnnouncementRequest | Mapping[str, Any],
    today: date | None = None,
) -> str:
    """Render a tagged request (``{"kind": ..., "data": {...}}``)."""
    if isinstance(request, Mapping):
        data = request.get("data")
        if isinstance(data, Mapping) and request.get("kind") in SMS_TEMPLATES:
            missing = find_missing_fields(get_template(request["kind"]), data)
            if missing:
                raise MissingRequiredFieldError(str(request["kind"]), missing)
        try:
            request = template_request_adapter.validate_python(request)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid template request: {exc}") from exc

    return generate_message(request.kind, request.data, today)


def preview_message(
    template_key: TemplateKey | str,
    data: MergeData | Mapping[str, Any],
    today: date | None = None,
) -> str:
    """Like generate_message but returns "" instead of raising."""
    try:
        return generate_message(template_key, data, today)
    except Exception:
        logger.exception("Could not render SMS template %r for preview", template_key)
        return ""
