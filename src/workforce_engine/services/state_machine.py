"""Payroll snapshot state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from workforce_engine.errors import ConflictError


class SnapshotStatus(str, Enum):
    """Payroll snapshot status values.

    DRAFT is never stored: a period without a snapshot row is a draft.
    """

    DRAFT = "draft"
    ISSUED = "issued"
    APPROVED = "approved"
    PAID = "paid"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = getattr(from_status, "value", from_status)
        self.to_status = getattr(to_status, "value", to_status)
        self.reason = reason
        msg = f"Invalid transition from '{self.from_status}' to '{self.to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SnapshotStateMachine:
    """State machine for payroll snapshot status transitions.

    Allowed transitions:
    - draft → issued (publish)
    - issued → approved
    - approved → paid

    There is no way back: a published snapshot is never unpublished.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        SnapshotStatus.DRAFT: [SnapshotStatus.ISSUED],
        SnapshotStatus.ISSUED: [SnapshotStatus.APPROVED],
        SnapshotStatus.APPROVED: [SnapshotStatus.PAID],
        SnapshotStatus.PAID: [],  # Terminal state
    }

    # Statuses stored in payroll_snapshots
    PERSISTED = {
        SnapshotStatus.ISSUED,
        SnapshotStatus.APPROVED,
        SnapshotStatus.PAID,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        try:
            allowed = cls.VALID_TRANSITIONS[SnapshotStatus(from_status)]
            return SnapshotStatus(to_status) in allowed
        except (KeyError, ValueError):
            return False

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def is_published(cls, status: str | None) -> bool:
        """Check if a period already carries a snapshot."""
        try:
            return SnapshotStatus(status) in cls.PERSISTED
        except ValueError:
            return False

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        try:
            return list(cls.VALID_TRANSITIONS[SnapshotStatus(current_status)])
        except ValueError:
            return []
