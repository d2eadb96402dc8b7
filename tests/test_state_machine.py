"""Tests for deliverable state machine validation."""
import pytest
from shelvey_core.exceptions import InvalidRequestError
from shelvey_core.models import DeliverableStatus
from shelvey_core.state_machine import (
    is_transition_valid,
    validate_transition,
    DeliverableStateTransitionError,
    get_allowed_transitions
)


class TestStateTransitions:
    """Test deliverable status transition validation."""

    def test_valid_forward_transitions(self):
        """Test the assignment and review path."""
        # Pending → In Progress (assigned)
        assert is_transition_valid(DeliverableStatus.PENDING, DeliverableStatus.IN_PROGRESS)
        validate_transition(DeliverableStatus.PENDING, DeliverableStatus.IN_PROGRESS)  # Should not raise

        # In Progress → Review (submitted)
        assert is_transition_valid(DeliverableStatus.IN_PROGRESS, DeliverableStatus.REVIEW)
        validate_transition(DeliverableStatus.IN_PROGRESS, DeliverableStatus.REVIEW)

    def test_valid_back_transitions(self):
        """Test that rework transitions are allowed."""
        # Review → Rejected (manager sends it back)
        assert is_transition_valid(DeliverableStatus.REVIEW, DeliverableStatus.REJECTED)
        validate_transition(DeliverableStatus.REVIEW, DeliverableStatus.REJECTED)

        # Rejected → In Progress (reassigned for revision)
        assert is_transition_valid(DeliverableStatus.REJECTED, DeliverableStatus.IN_PROGRESS)
        validate_transition(DeliverableStatus.REJECTED, DeliverableStatus.IN_PROGRESS)

        # Revision Requested → In Progress
        assert is_transition_valid(DeliverableStatus.REVISION_REQUESTED, DeliverableStatus.IN_PROGRESS)
        validate_transition(DeliverableStatus.REVISION_REQUESTED, DeliverableStatus.IN_PROGRESS)

    def test_noop_transitions_allowed(self):
        """Test that no-op transitions (same status) are always allowed."""
        for status in DeliverableStatus:
            assert is_transition_valid(status, status)
            validate_transition(status, status)  # Should not raise

    def test_accepts_raw_status_strings(self):
        """Status columns hold plain strings."""
        assert is_transition_valid("pending", "in_progress")
        validate_transition("in_progress", "review")

    def test_invalid_skip_assignment(self):
        """Test that submitting unassigned work (Pending → Review) is blocked."""
        assert not is_transition_valid(DeliverableStatus.PENDING, DeliverableStatus.REVIEW)

        with pytest.raises(DeliverableStateTransitionError) as exc_info:
            validate_transition(DeliverableStatus.PENDING, DeliverableStatus.REVIEW)

        error = exc_info.value
        assert error.current_status == DeliverableStatus.PENDING
        assert error.requested_status == DeliverableStatus.REVIEW
        assert "must be assigned" in str(error).lower()

    def test_nothing_enters_approved(self):
        """Only the approval gate sets approved; the matrix never allows it."""
        for status in DeliverableStatus:
            if status != DeliverableStatus.APPROVED:
                assert not is_transition_valid(status, DeliverableStatus.APPROVED)

                with pytest.raises(DeliverableStateTransitionError) as exc_info:
                    validate_transition(status, DeliverableStatus.APPROVED)

                assert "ceo and user sign-off" in str(exc_info.value).lower()

    def test_approved_is_final(self):
        """Test that approved status cannot be changed by the coordinator."""
        for status in DeliverableStatus:
            if status != DeliverableStatus.APPROVED:
                assert not is_transition_valid(DeliverableStatus.APPROVED, status)

                with pytest.raises(DeliverableStateTransitionError) as exc_info:
                    validate_transition(DeliverableStatus.APPROVED, status)

                assert "final" in str(exc_info.value).lower()

    def test_get_allowed_transitions(self):
        """Test getting allowed transitions from each state."""
        assert get_allowed_transitions(DeliverableStatus.PENDING) == [DeliverableStatus.IN_PROGRESS]

        allowed = get_allowed_transitions(DeliverableStatus.REVIEW)
        assert set(allowed) == {DeliverableStatus.IN_PROGRESS, DeliverableStatus.REJECTED}

        assert get_allowed_transitions(DeliverableStatus.APPROVED) == []

    def test_state_transition_error_attributes(self):
        """Test that DeliverableStateTransitionError contains all required attributes."""
        with pytest.raises(DeliverableStateTransitionError) as exc_info:
            validate_transition(DeliverableStatus.PENDING, DeliverableStatus.REJECTED)

        error = exc_info.value
        assert isinstance(error, InvalidRequestError)
        assert error.status_code == 400
        assert error.current_status == DeliverableStatus.PENDING
        assert error.requested_status == DeliverableStatus.REJECTED
        assert isinstance(error.allowed_transitions, list)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
