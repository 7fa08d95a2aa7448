"""Worker profile model."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce_engine.models.base import Base, TimestampMixin
from workforce_engine.models.enums import EmploymentType, UserRole, sql_values

if TYPE_CHECKING:
    from workforce_engine.models.payroll import PayrollSnapshot, WorkRecord
    from workforce_engine.models.site import SiteAssignment


class Worker(Base, TimestampMixin):
    """Identity and employment metadata for a person on site."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(String, nullable=False, default=UserRole.WORKER.value)
    employment_type: Mapped[str | None] = mapped_column(String, nullable=True)
    daily_wage: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    organization_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)

    __table_args__ = (
        CheckConstraint(f"role IN ({sql_values(UserRole)})", name="profiles_role_check"),
        CheckConstraint(
            f"employment_type IS NULL OR employment_type IN ({sql_values(EmploymentType)})",
            name="profiles_employment_type_check",
        ),
        CheckConstraint(
            "daily_wage IS NULL OR daily_wage >= 0",
            name="profiles_daily_wage_check",
        ),
    )

    # Relationships
    assignments: Mapped[list[SiteAssignment]] = relationship(back_populates="worker")
    work_records: Mapped[list[WorkRecord]] = relationship(back_populates="worker")
    snapshots: Mapped[list[PayrollSnapshot]] = relationship(back_populates="worker")
