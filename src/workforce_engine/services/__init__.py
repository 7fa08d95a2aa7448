"""Workforce engine services."""

from workforce_engine.services.payroll_service import (
    PayrollAggregationService,
    PublishResult,
    TransitionResult,
    WorkerPayrollSummary,
)
from workforce_engine.services.site_assignment_service import SiteAssignmentService, SiteInfo
from workforce_engine.services.state_machine import (
    InvalidTransitionError,
    SnapshotStateMachine,
    SnapshotStatus,
)

__all__ = [
    "InvalidTransitionError",
    "PayrollAggregationService",
    "PublishResult",
    "SiteAssignmentService",
    "SiteInfo",
    "SnapshotStateMachine",
    "SnapshotStatus",
    "TransitionResult",
    "WorkerPayrollSummary",
]
