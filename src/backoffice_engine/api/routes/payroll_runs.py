"""Payroll run API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, Response, status

from backoffice_engine.api.dependencies import PayrollService
from backoffice_engine.api.schemas import (
    AdjustmentCreate,
    AdjustmentResponse,
    BulkHoursRequest,
    BulkHoursResponse,
    CreateRunResponse,
    ErrorResponse,
    LineItemUpdate,
    ManualLineItemCreate,
    PayrollLineItemResponse,
    PayrollRunCreate,
    PayrollRunDetailResponse,
    PayrollRunListResponse,
    PayrollRunResponse,
    StatusTransitionRequest,
)
from backoffice_engine.models import PayrollRun
from backoffice_engine.services.state_machine import PayrollRunStateMachine

router = APIRouter(prefix="/payroll-runs", tags=["payroll-runs"])
adjustments_router = APIRouter(prefix="/payroll-adjustments", tags=["payroll-adjustments"])


def to_detail(run: PayrollRun) -> PayrollRunDetailResponse:
    detail = PayrollRunDetailResponse.model_validate(run)
    detail.next_statuses = [
        str(getattr(s, "value", s)) for s in PayrollRunStateMachine.get_next_statuses(run.status)
    ]
    return detail


# ============================================================================
# Payroll run CRUD
# ============================================================================


@router.post(
    "",
    response_model=CreateRunResponse,
    status_code=status.HTTP_201_CREATED,
    responses={422: {"model": ErrorResponse}},
)
async def create_payroll_run(
    service: PayrollService,
    payload: PayrollRunCreate,
) -> CreateRunResponse:
    """Generate a draft run from all active teacher assignments."""
    result = await service.create_run(payload.period_start, payload.period_end, payload.notes)
    return CreateRunResponse(
        run=to_detail(result.run),
        warnings=result.warnings,
        applied_adjustments=result.applied_adjustments,
    )


@router.get("", response_model=PayrollRunListResponse)
async def list_payroll_runs(
    service: PayrollService,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> PayrollRunListResponse:
    """List payroll runs, newest period first."""
    runs = await service.list_runs(status_filter)
    return PayrollRunListResponse(
        items=[PayrollRunResponse.model_validate(run) for run in runs],
        total=len(runs),
    )


@router.get(
    "/{run_id}",
    response_model=PayrollRunDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll_run(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
) -> PayrollRunDetailResponse:
    """Get a payroll run with its line items."""
    return to_detail(await service.require_run(run_id))


@router.delete(
    "/{run_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_payroll_run(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a draft run."""
    await service.delete_run(run_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{run_id}/status",
    response_model=PayrollRunDetailResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_payroll_run(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
    payload: StatusTransitionRequest,
) -> PayrollRunDetailResponse:
    """Move a run to its next status (paid also sends payment notifications)."""
    run = await service.transition_status(
        run_id,
        payload.status,
        approved_by=payload.approved_by,
        expected_version=payload.expected_version,
    )
    return to_detail(run)


# ============================================================================
# Line items
# ============================================================================


@router.patch(
    "/line-items/{line_item_id}",
    response_model=PayrollLineItemResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def update_line_item(
    service: PayrollService,
    line_item_id: Annotated[UUID, Path()],
    payload: LineItemUpdate,
) -> PayrollLineItemResponse:
    """Edit actual hours and/or the manual adjustment of a line item."""
    line = await service.update_line_item(
        line_item_id,
        actual_hours=payload.actual_hours,
        adjustment_amount=payload.adjustment_amount,
        adjustment_note=payload.adjustment_note,
        expected_version=payload.expected_version,
    )
    return PayrollLineItemResponse.model_validate(line)


@router.post(
    "/{run_id}/bulk-hours",
    response_model=BulkHoursResponse,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def bulk_adjust_hours(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
    payload: BulkHoursRequest,
) -> BulkHoursResponse:
    """Set the same actual hours on every line of the selected teachers."""
    updated = await service.bulk_adjust_hours(
        run_id,
        payload.teacher_ids,
        payload.hours,
        expected_version=payload.expected_version,
    )
    return BulkHoursResponse(updated=updated)


@router.post(
    "/{run_id}/line-items",
    response_model=PayrollLineItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def add_manual_line_item(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
    payload: ManualLineItemCreate,
) -> PayrollLineItemResponse:
    """Add a one-off line item to a run under review."""
    line = await service.add_manual_line_item(
        run_id,
        payload.teacher_id,
        payload.description,
        payload.hours,
        payload.hourly_rate,
    )
    return PayrollLineItemResponse.model_validate(line)


@router.delete(
    "/line-items/{line_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def delete_line_item(
    service: PayrollService,
    line_item_id: Annotated[UUID, Path()],
) -> Response:
    """Delete a manual line item."""
    await service.delete_line_item(line_item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{run_id}/export.csv",
    response_class=Response,
    responses={404: {"model": ErrorResponse}},
)
async def export_payroll_csv(
    service: PayrollService,
    run_id: Annotated[UUID, Path()],
) -> Response:
    """Bank bulk-payment CSV (one row per paid teacher)."""
    content = await service.export_csv(run_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="payroll-{run_id}.csv"'},
    )


# ============================================================================
# Carry-forward adjustments
# ============================================================================


@adjustments_router.post(
    "",
    response_model=AdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_adjustment(
    service: PayrollService,
    payload: AdjustmentCreate,
) -> AdjustmentResponse:
    """Record an amount to apply to the teacher's next payroll run."""
    adjustment = await service.create_adjustment(
        payload.teacher_id,
        payload.amount,
        payload.reason,
        source_run_id=payload.source_payroll_run_id,
        created_by=payload.created_by,
    )
    return AdjustmentResponse.model_validate(adjustment)


@adjustments_router.get("", response_model=list[AdjustmentResponse])
async def list_pending_adjustments(
    service: PayrollService,
    teacher_id: UUID | None = None,
) -> list[AdjustmentResponse]:
    """Adjustments not yet applied to a run."""
    adjustments = await service.list_pending_adjustments(teacher_id)
    return [AdjustmentResponse.model_validate(a) for a in adjustments]
