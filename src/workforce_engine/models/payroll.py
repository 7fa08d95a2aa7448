"""Work record and payroll snapshot models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce_engine.models.base import Base, TimestampMixin
from workforce_engine.models.enums import EmploymentType, sql_values

if TYPE_CHECKING:
    from workforce_engine.models.site import Site
    from workforce_engine.models.worker import Worker


class WorkRecord(Base, TimestampMixin):
    """Hours a worker logged at one site on one date."""

    __tablename__ = "work_records"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    site_id: Mapped[UUID] = mapped_column(
        ForeignKey("sites.id", ondelete="RESTRICT"),
        nullable=False,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    labor_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "worker_id", "work_date", "site_id", name="work_records_worker_date_site_unique"
        ),
        CheckConstraint("labor_hours >= 0", name="work_records_labor_hours_check"),
    )

    # Relationships
    worker: Mapped[Worker] = relationship(back_populates="work_records")
    site: Mapped[Site] = relationship()


class PayrollSnapshot(Base, TimestampMixin):
    """Frozen payroll result for one worker and month."""

    __tablename__ = "payroll_snapshots"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    employment_type: Mapped[str] = mapped_column(String, nullable=False)
    work_days: Mapped[int] = mapped_column(Integer, nullable=False)
    total_labor_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_gross_pay: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    deductions_json: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="issued")
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("worker_id", "year", "month", name="payroll_snapshots_period_unique"),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_snapshots_month_check"),
        CheckConstraint(
            "status IN ('issued', 'approved', 'paid')",
            name="payroll_snapshots_status_check",
        ),
        CheckConstraint(
            f"employment_type IN ({sql_values(EmploymentType)})",
            name="payroll_snapshots_employment_type_check",
        ),
    )

    # Relationships
    worker: Mapped[Worker] = relationship(back_populates="snapshots")
