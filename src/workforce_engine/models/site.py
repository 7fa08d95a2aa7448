"""Site and site assignment models."""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workforce_engine.models.base import Base, TimestampMixin
from workforce_engine.models.enums import AssignmentRole, SiteStatus, sql_values

if TYPE_CHECKING:
    from workforce_engine.models.worker import Worker


class Site(Base, TimestampMixin):
    """Physical work location."""

    __tablename__ = "sites"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    organization_id: Mapped[UUID | None] = mapped_column(nullable=True, index=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default=SiteStatus.ACTIVE.value)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Contacts and on-site details shown to assigned workers
    manager_name: Mapped[str | None] = mapped_column(String, nullable=True)
    construction_manager_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    safety_manager_name: Mapped[str | None] = mapped_column(String, nullable=True)
    safety_manager_phone: Mapped[str | None] = mapped_column(String, nullable=True)
    accommodation_name: Mapped[str | None] = mapped_column(String, nullable=True)
    accommodation_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_process: Mapped[str | None] = mapped_column(String, nullable=True)
    work_section: Mapped[str | None] = mapped_column(String, nullable=True)
    component_name: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(f"status IN ({sql_values(SiteStatus)})", name="sites_status_check"),
    )

    # Relationships
    assignments: Mapped[list[SiteAssignment]] = relationship(back_populates="site")


class SiteAssignment(Base, TimestampMixin):
    """A worker's assignment to a site.

    At most one row per worker may be active; the partial unique index below
    enforces it in the store.
    """

    __tablename__ = "site_assignments"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    worker_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    site_id: Mapped[UUID] = mapped_column(
        ForeignKey("sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_date: Mapped[date] = mapped_column(Date, nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    unassigned_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    role: Mapped[str] = mapped_column(
        String, nullable=False, default=AssignmentRole.WORKER.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        Index(
            "site_assignments_one_active_per_worker",
            "worker_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
        CheckConstraint(
            f"role IN ({sql_values(AssignmentRole)})",
            name="site_assignments_role_check",
        ),
    )

    # Relationships
    worker: Mapped[Worker] = relationship(back_populates="assignments")
    site: Mapped[Site] = relationship(back_populates="assignments")
