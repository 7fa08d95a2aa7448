"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from workforce_engine.models import AssignmentRole, EmploymentType

T = TypeVar("T")


# ============================================================================
# Envelopes
# ============================================================================


class Envelope(BaseModel, Generic[T]):
    """Successful response wrapper."""

    success: bool = True
    data: T


class ErrorResponse(BaseModel):
    """Failed response wrapper."""

    success: bool = False
    error: str
    code: str


# ============================================================================
# Site assignment schemas
# ============================================================================


class AssignRequest(BaseModel):
    """Schema for assigning a worker to a site."""

    worker_id: UUID
    site_id: UUID
    role: AssignmentRole = AssignmentRole.WORKER


class SelectSiteRequest(BaseModel):
    """Schema for a worker choosing their site. Defaults to the caller."""

    site_id: UUID
    worker_id: UUID | None = None


class AssignmentResponse(BaseModel):
    """Schema for a site assignment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: UUID
    site_id: UUID
    assigned_date: date
    unassigned_date: date | None = None
    role: str
    is_active: bool


class SiteInfoResponse(BaseModel):
    """Schema for a worker's current site."""

    model_config = ConfigDict(from_attributes=True)

    site_id: UUID
    site_name: str
    site_address: str | None = None
    site_status: str
    start_date: date | None = None
    end_date: date | None = None
    assignment_id: UUID
    assigned_date: date
    unassigned_date: date | None = None
    user_role: str
    is_active: bool
    manager_name: str | None = None
    construction_manager_phone: str | None = None
    safety_manager_name: str | None = None
    safety_manager_phone: str | None = None
    accommodation_name: str | None = None
    accommodation_address: str | None = None
    work_process: str | None = None
    work_section: str | None = None
    component_name: str | None = None


class SiteWorkerResponse(BaseModel):
    """Schema for a worker actively assigned to a site."""

    worker_id: UUID
    full_name: str
    email: str | None = None
    role: str
    employment_type: str | None = None
    assignment: AssignmentResponse


class RemovalResponse(BaseModel):
    """Schema for removing a worker from a site."""

    removed: bool


# ============================================================================
# Payroll schemas
# ============================================================================


class PeriodRequest(BaseModel):
    """A calendar month."""

    year: int = Field(ge=2000, le=2100)
    month: int = Field(ge=1, le=12)


class PreviewRequest(PeriodRequest):
    """Schema for previewing one worker's month."""

    worker_id: UUID


class BatchRequest(PeriodRequest):
    """Schema for publish, approve and pay batches."""

    worker_ids: list[UUID] = Field(min_length=1)


class DeductionResponse(BaseModel):
    """One deduction component."""

    model_config = ConfigDict(from_attributes=True)

    code: str
    label: str
    percent: Decimal
    amount: Decimal


class PreviewResponse(BaseModel):
    """Schema for a payroll preview at full precision."""

    model_config = ConfigDict(from_attributes=True)

    worker_id: UUID
    year: int
    month: int
    employment_type: EmploymentType
    daily_wage: Decimal | None = None
    hourly_rate: Decimal
    work_days: int
    total_labor_hours: Decimal
    total_overtime_hours: Decimal
    total_gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    deductions: list[DeductionResponse]
    site_ids: list[UUID]


class SummaryResponse(BaseModel):
    """Schema for one worker's month summary."""

    model_config = ConfigDict(from_attributes=True)

    worker_id: UUID
    name: str
    employment_type: EmploymentType | None = None
    daily_wage: Decimal | None = None
    work_days: int
    total_labor_hours: Decimal
    total_gross_pay: Decimal
    net_pay: Decimal | None = None
    status: str | None = None
    site_ids: list[UUID]
    error: str | None = None


class PublishResponse(BaseModel):
    """Schema for a publish batch result."""

    model_config = ConfigDict(from_attributes=True)

    inserted: int
    skipped: list[UUID]
    errors: dict[UUID, str]
    processed: int


class TransitionResponse(BaseModel):
    """Schema for an approve or pay batch result."""

    model_config = ConfigDict(from_attributes=True)

    updated: int
    skipped: list[UUID]
    errors: dict[UUID, str]


class SnapshotResponse(BaseModel):
    """Schema for a published payroll snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    worker_id: UUID
    year: int
    month: int
    employment_type: str
    work_days: int
    total_labor_hours: Decimal
    total_gross_pay: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    status: str
    issued_at: datetime
    approved_at: datetime | None = None
    paid_at: datetime | None = None
