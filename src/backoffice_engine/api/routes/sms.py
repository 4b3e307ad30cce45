"""SMS preview and send endpoints."""

from fastapi import APIRouter

from backoffice_engine.api.dependencies import Sms
from backoffice_engine.api.schemas import (
    ErrorResponse,
    SmsPreviewRequest,
    SmsPreviewResponse,
    SmsRecipientResult,
    SmsSendRequest,
    SmsSendResponse,
    SmsTemplateResponse,
)
from backoffice_engine.exceptions import ValidationError
from backoffice_engine.sms.bulk import BulkSendResult
from backoffice_engine.sms.segments import analyze_message, estimate_cost
from backoffice_engine.sms.templates import SMS_TEMPLATES, generate_message, preview_message

router = APIRouter(prefix="/sms", tags=["sms"])


def to_send_response(outcome: BulkSendResult) -> SmsSendResponse:
    return SmsSendResponse(
        success=outcome.success,
        sent=outcome.sent,
        failed=outcome.failed,
        skipped=outcome.skipped,
        results=[
            SmsRecipientResult(
                family_id=item.recipient.family_id,
                phone=item.recipient.phone,
                success=item.result.success,
                status=item.result.status,
                provider_sid=item.result.provider_sid,
                error=item.result.error_message,
            )
            for item in outcome.results
        ],
    )


@router.get("/templates", response_model=list[SmsTemplateResponse])
async def list_templates() -> list[SmsTemplateResponse]:
    """Available templates and their required merge fields."""
    return [
        SmsTemplateResponse(
            key=template.key,
            name=template.name,
            description=template.description,
            required_fields=template.required_fields,
        )
        for template in SMS_TEMPLATES.values()
    ]


@router.post("/preview", response_model=SmsPreviewResponse)
async def preview_sms(payload: SmsPreviewRequest) -> SmsPreviewResponse:
    """Render a message and estimate its segments and cost.

    A template that cannot be rendered yet (missing merge fields)
    previews as an empty message.
    """
    if payload.template_key is not None:
        message = preview_message(payload.template_key, payload.merge_data)
    else:
        message = payload.message or ""

    analysis = analyze_message(message)
    cost = estimate_cost(payload.recipient_count, analysis.segments, payload.has_media)
    return SmsPreviewResponse(
        message=message,
        encoding=analysis.encoding.value,
        length=analysis.length,
        effective_length=analysis.effective_length,
        segments=analysis.segments,
        recipient_count=payload.recipient_count,
        estimated_cost=cost.estimated_cost,
    )


@router.post(
    "/send",
    response_model=SmsSendResponse,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def send_sms(service: Sms, payload: SmsSendRequest) -> SmsSendResponse:
    """Send to families (bulk) or one number; counts sent, failed and skipped."""
    if payload.template_key is not None:
        body = generate_message(payload.template_key, payload.merge_data or {})
        template_key = payload.template_key.value
    else:
        body = payload.message_body or ""
        template_key = None
    if not body.strip():
        raise ValidationError("Message body is required")

    if payload.family_ids:
        outcome = await service.send_to_families(
            payload.family_ids,
            body,
            message_type=payload.message_type,
            template_key=template_key,
            merge_data=payload.merge_data,
            campaign_name=payload.campaign_name,
            media_urls=payload.media_urls,
            invoice_id=payload.invoice_id,
            sent_by=payload.sent_by,
        )
    elif payload.to_phone:
        outcome = await service.send_to_phone(
            payload.to_phone,
            body,
            message_type=payload.message_type,
            template_key=template_key,
            merge_data=payload.merge_data,
            campaign_name=payload.campaign_name,
            media_urls=payload.media_urls,
            sent_by=payload.sent_by,
        )
    else:
        raise ValidationError("No recipient specified")

    return to_send_response(outcome)
