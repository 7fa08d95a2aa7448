"""ORM models."""

from workforce_engine.models.base import Base, TimestampMixin
from workforce_engine.models.enums import (
    AssignmentRole,
    EmploymentType,
    SiteStatus,
    UserRole,
)
from workforce_engine.models.payroll import PayrollSnapshot, WorkRecord
from workforce_engine.models.site import Site, SiteAssignment
from workforce_engine.models.worker import Worker

__all__ = [
    "AssignmentRole",
    "Base",
    "EmploymentType",
    "PayrollSnapshot",
    "Site",
    "SiteAssignment",
    "SiteStatus",
    "TimestampMixin",
    "UserRole",
    "WorkRecord",
    "Worker",
]
