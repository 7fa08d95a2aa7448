"""Tests for payroll snapshot state machine."""

import pytest

from workforce_engine.errors import ConflictError
from workforce_engine.services.state_machine import (
    InvalidTransitionError,
    SnapshotStateMachine,
    SnapshotStatus,
)


class TestSnapshotStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # draft → issued (publish)
        assert SnapshotStateMachine.can_transition("draft", "issued") is True

        # issued → approved
        assert SnapshotStateMachine.can_transition("issued", "approved") is True

        # approved → paid
        assert SnapshotStateMachine.can_transition("approved", "paid") is True

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't skip approval
        assert SnapshotStateMachine.can_transition("issued", "paid") is False
        assert SnapshotStateMachine.can_transition("draft", "approved") is False

        # Can't go backwards
        assert SnapshotStateMachine.can_transition("issued", "draft") is False
        assert SnapshotStateMachine.can_transition("paid", "approved") is False

        # Unknown statuses never transition
        assert SnapshotStateMachine.can_transition("voided", "paid") is False
        assert SnapshotStateMachine.can_transition("issued", "voided") is False

    def test_accepts_enum_members(self):
        assert SnapshotStateMachine.can_transition(
            SnapshotStatus.ISSUED, SnapshotStatus.APPROVED
        ) is True

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            SnapshotStateMachine.validate_transition("issued", SnapshotStatus.PAID)

        assert exc_info.value.from_status == "issued"
        assert exc_info.value.to_status == "paid"
        assert "'issued' to 'paid'" in exc_info.value.message

    def test_invalid_transition_is_a_conflict(self):
        with pytest.raises(ConflictError):
            SnapshotStateMachine.validate_transition("paid", "issued")

    def test_paid_is_terminal(self):
        """Test that paid allows no further transitions."""
        assert SnapshotStateMachine.get_next_statuses("paid") == []

    def test_get_next_statuses(self):
        assert SnapshotStateMachine.get_next_statuses("issued") == [SnapshotStatus.APPROVED]
        assert SnapshotStateMachine.get_next_statuses("bogus") == []

    def test_is_published(self):
        """Draft is the absence of a snapshot, so it is not published."""
        assert SnapshotStateMachine.is_published("issued") is True
        assert SnapshotStateMachine.is_published("approved") is True
        assert SnapshotStateMachine.is_published("paid") is True
        assert SnapshotStateMachine.is_published("draft") is False
        assert SnapshotStateMachine.is_published(None) is False
