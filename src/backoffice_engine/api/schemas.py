"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from backoffice_engine.sms.templates import TemplateKey


# ============================================================================
# Payroll run schemas
# ============================================================================


class PayrollRunCreate(BaseModel):
    """Schema for generating a run; both bounds omitted = current bi-weekly period."""

    period_start: date | None = None
    period_end: date | None = None
    notes: str | None = None


class PayrollLineItemResponse(BaseModel):
    """Schema for payroll line item response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    payroll_run_id: UUID
    teacher_id: UUID
    teacher_name: str | None = None
    teacher_assignment_id: UUID | None = None
    enrollment_id: UUID | None = None
    service_id: UUID | None = None
    description: str
    calculated_hours: Decimal
    actual_hours: Decimal
    hourly_rate: Decimal
    rate_source: str
    calculated_amount: Decimal
    adjustment_amount: Decimal
    adjustment_note: str | None = None
    final_amount: Decimal
    is_variable_hours: bool
    is_manual: bool


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    period_start: date
    period_end: date
    status: str
    total_hours: Decimal
    total_calculated: Decimal
    total_adjusted: Decimal
    teacher_count: int
    approved_by: str | None = None
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    notes: str | None = None
    version: int
    created_at: datetime | None = None


class PayrollRunDetailResponse(PayrollRunResponse):
    """Schema for a run with its line items."""

    line_items: list[PayrollLineItemResponse] = []
    next_statuses: list[str] = []


class PayrollRunListResponse(BaseModel):
    """Schema for list of payroll runs."""

    items: list[PayrollRunResponse]
    total: int


class CreateRunResponse(BaseModel):
    """Schema for a generated run plus operator warnings."""

    run: PayrollRunDetailResponse
    warnings: list[str] = []
    applied_adjustments: int = 0


class StatusTransitionRequest(BaseModel):
    """Schema for moving a run through its lifecycle."""

    status: str
    approved_by: str | None = None
    expected_version: int | None = None


class LineItemUpdate(BaseModel):
    """Schema for editing a line item; send hours, an adjustment, or both."""

    actual_hours: Decimal | None = None
    adjustment_amount: Decimal | None = None
    adjustment_note: str | None = None
    expected_version: int | None = None


class BulkHoursRequest(BaseModel):
    """Schema for setting the same hours on every line of some teachers."""

    teacher_ids: list[UUID]
    hours: Decimal
    expected_version: int | None = None


class BulkHoursResponse(BaseModel):
    """Schema for bulk hours result."""

    updated: int


class ManualLineItemCreate(BaseModel):
    """Schema for a one-off line item."""

    teacher_id: UUID
    description: str
    hours: Decimal
    hourly_rate: Decimal


# ============================================================================
# Carry-forward adjustment schemas
# ============================================================================


class AdjustmentCreate(BaseModel):
    """Schema for creating a carry-forward adjustment."""

    teacher_id: UUID
    amount: Decimal
    reason: str
    source_payroll_run_id: UUID | None = None
    created_by: str | None = None


class AdjustmentResponse(BaseModel):
    """Schema for carry-forward adjustment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    teacher_id: UUID
    amount: Decimal
    reason: str
    source_payroll_run_id: UUID | None = None
    target_payroll_run_id: UUID | None = None
    created_by: str | None = None


# ============================================================================
# Enrollment schemas
# ============================================================================


class EndEnrollmentRequest(BaseModel):
    """Schema for ending an enrollment."""

    end_date: date


class EndEnrollmentResponse(BaseModel):
    """Schema for the outcome of ending an enrollment."""

    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    ended: bool
    rolled_back: bool
    assignments_ended: int
    warnings: list[str]


# ============================================================================
# SMS schemas
# ============================================================================


class SmsTemplateResponse(BaseModel):
    """Schema for an available SMS template."""

    key: TemplateKey
    name: str
    description: str
    required_fields: list[str]


class SmsPreviewRequest(BaseModel):
    """Schema for previewing a message: a template with merge data, or raw text."""

    template_key: TemplateKey | None = None
    merge_data: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None
    recipient_count: int = Field(default=1, ge=0)
    has_media: bool = False


class SmsPreviewResponse(BaseModel):
    """Schema for rendered message, segments and estimated cost."""

    message: str
    encoding: str
    length: int
    effective_length: int
    segments: int
    recipient_count: int
    estimated_cost: Decimal


class SmsSendRequest(BaseModel):
    """Schema for sending to families or a single number."""

    family_ids: list[UUID] = []
    to_phone: str | None = None
    message_body: str | None = None
    template_key: TemplateKey | None = None
    merge_data: dict[str, Any] | None = None
    message_type: str = "custom"
    campaign_name: str | None = None
    media_urls: list[str] | None = None
    invoice_id: UUID | None = None
    sent_by: str = "system"


class SmsRecipientResult(BaseModel):
    """Schema for one recipient's send outcome."""

    family_id: UUID | None = None
    phone: str
    success: bool
    status: str
    provider_sid: str | None = None
    error: str | None = None


class SmsSendResponse(BaseModel):
    """Schema for aggregate send outcome."""

    success: bool
    sent: int
    failed: int
    skipped: int
    results: list[SmsRecipientResult] = []


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
