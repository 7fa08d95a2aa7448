"""Payroll API endpoints. Admin only."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query

from workforce_engine.api.dependencies import AdminAuth, Calculator, DbSession, commit
from workforce_engine.api.schemas import (
    BatchRequest,
    Envelope,
    ErrorResponse,
    PreviewRequest,
    PreviewResponse,
    PublishResponse,
    SnapshotResponse,
    SummaryResponse,
    TransitionResponse,
)
from workforce_engine.models import EmploymentType
from workforce_engine.services import PayrollAggregationService

router = APIRouter(prefix="/payroll", tags=["payroll"])

ERRORS = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}


# ============================================================================
# Preview and summaries
# ============================================================================


@router.post(
    "/preview",
    response_model=Envelope[PreviewResponse],
    responses=ERRORS,
)
async def preview_payroll(
    db: DbSession,
    auth: AdminAuth,
    calculator: Calculator,
    payload: PreviewRequest,
) -> Envelope[PreviewResponse]:
    """Calculate one worker's month without persisting it."""
    service = PayrollAggregationService(db, calculator)
    preview = await service.preview(payload.worker_id, payload.year, payload.month, auth)
    return Envelope(data=PreviewResponse.model_validate(preview))


@router.get(
    "/summaries",
    response_model=Envelope[list[SummaryResponse]],
    responses=ERRORS,
)
async def list_month_summaries(
    db: DbSession,
    auth: AdminAuth,
    calculator: Calculator,
    year: Annotated[int, Query(ge=2000, le=2100)],
    month: Annotated[int, Query(ge=1, le=12)],
    employment_type: EmploymentType | None = None,
    site_id: UUID | None = None,
) -> Envelope[list[SummaryResponse]]:
    """List every worker with work in the month and their publish status."""
    service = PayrollAggregationService(db, calculator)
    summaries = await service.list_month_summaries(
        year, month, employment_type, site_id, auth
    )
    return Envelope(data=[SummaryResponse.model_validate(s) for s in summaries])


# ============================================================================
# Snapshots
# ============================================================================


@router.post(
    "/snapshots/publish",
    response_model=Envelope[PublishResponse],
    responses=ERRORS,
)
async def publish_snapshots(
    db: DbSession,
    auth: AdminAuth,
    calculator: Calculator,
    payload: BatchRequest,
) -> Envelope[PublishResponse]:
    """Publish snapshots for a batch of workers. Safe to retry."""
    service = PayrollAggregationService(db, calculator)
    result = await service.publish(payload.year, payload.month, payload.worker_ids, auth)
    await commit(db)
    return Envelope(data=PublishResponse.model_validate(result))


@router.post(
    "/snapshots/approve",
    response_model=Envelope[TransitionResponse],
    responses=ERRORS,
)
async def approve_snapshots(
    db: DbSession,
    auth: AdminAuth,
    payload: BatchRequest,
) -> Envelope[TransitionResponse]:
    """Approve issued snapshots."""
    service = PayrollAggregationService(db)
    result = await service.approve(payload.year, payload.month, payload.worker_ids, auth)
    await commit(db)
    return Envelope(data=TransitionResponse.model_validate(result))


@router.post(
    "/snapshots/pay",
    response_model=Envelope[TransitionResponse],
    responses=ERRORS,
)
async def pay_snapshots(
    db: DbSession,
    auth: AdminAuth,
    payload: BatchRequest,
) -> Envelope[TransitionResponse]:
    """Mark approved snapshots as paid."""
    service = PayrollAggregationService(db)
    result = await service.mark_paid(payload.year, payload.month, payload.worker_ids, auth)
    await commit(db)
    return Envelope(data=TransitionResponse.model_validate(result))


@router.get(
    "/snapshots",
    response_model=Envelope[list[SnapshotResponse]],
    responses=ERRORS,
)
async def list_snapshots(
    db: DbSession,
    auth: AdminAuth,
    year: Annotated[int, Query(ge=2000, le=2100)],
    month: Annotated[int, Query(ge=1, le=12)],
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> Envelope[list[SnapshotResponse]]:
    """List published snapshots for a month."""
    service = PayrollAggregationService(db)
    snapshots = await service.list_snapshots(year, month, status_filter, auth)
    return Envelope(data=[SnapshotResponse.model_validate(s) for s in snapshots])
