"""Enrollment API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from backoffice_engine.api.dependencies import Enrollments
from backoffice_engine.api.schemas import EndEnrollmentRequest, EndEnrollmentResponse, ErrorResponse

router = APIRouter(prefix="/enrollments", tags=["enrollments"])


@router.post(
    "/{enrollment_id}/end",
    response_model=EndEnrollmentResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def end_enrollment(
    service: Enrollments,
    enrollment_id: Annotated[UUID, Path()],
    payload: EndEnrollmentRequest,
) -> EndEnrollmentResponse:
    """End an enrollment and all of its active teacher assignments.

    ``rolled_back`` is true when ending the assignments failed and the
    enrollment was restored.
    """
    result = await service.end_enrollment(enrollment_id, payload.end_date)
    return EndEnrollmentResponse.model_validate(result)
