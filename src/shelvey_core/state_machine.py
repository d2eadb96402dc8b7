"""State machine validation for deliverable status transitions.

Covers the transitions driven by the task assignment coordinator:
- Work moves pending → in_progress → review
- A manager can send reviewed work back as rejected
- Rejected / revision_requested work is reassigned and redone
- approved is only entered through the approval gate and is terminal here

The approval gate's own writes (flag merge, rejection reset) do not go
through this matrix: see approvals.py.
"""
import logging

from .exceptions import InvalidRequestError
from .models import DeliverableStatus

logger = logging.getLogger("shelvey-core.state_machine")


class DeliverableStateTransitionError(InvalidRequestError):
    """Raised when an invalid deliverable state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: DeliverableStatus,
        requested_status: DeliverableStatus,
        allowed_transitions: list[DeliverableStatus]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# Maps current status → list of allowed next statuses
TRANSITION_MATRIX: dict[DeliverableStatus, list[DeliverableStatus]] = {
    DeliverableStatus.PENDING: [
        DeliverableStatus.PENDING,
        DeliverableStatus.IN_PROGRESS,      # Assigned to an agent
    ],
    DeliverableStatus.IN_PROGRESS: [
        DeliverableStatus.IN_PROGRESS,      # Reassigned
        DeliverableStatus.REVIEW,           # Submitted for manager review
        DeliverableStatus.REJECTED,
    ],
    DeliverableStatus.REVIEW: [
        DeliverableStatus.REVIEW,           # Manager sign-off keeps it here for the CEO/user gate
        DeliverableStatus.IN_PROGRESS,      # Pulled back and reassigned
        DeliverableStatus.REJECTED,         # Manager sends it back
    ],
    DeliverableStatus.REVISION_REQUESTED: [
        DeliverableStatus.REVISION_REQUESTED,
        DeliverableStatus.IN_PROGRESS,
    ],
    DeliverableStatus.REJECTED: [
        DeliverableStatus.REJECTED,
        DeliverableStatus.IN_PROGRESS,      # Reassigned for revision
        DeliverableStatus.REVIEW,           # Revised work resubmitted
    ],
    DeliverableStatus.APPROVED: [
        DeliverableStatus.APPROVED,
        # Only a rejection through the approval gate reopens approved work
    ],
}


def is_transition_valid(
    current_status: DeliverableStatus,
    new_status: DeliverableStatus
) -> bool:
    """
    Check if a status transition is valid.

    Args:
        current_status: Current deliverable status
        new_status: Requested new status

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = TRANSITION_MATRIX.get(DeliverableStatus(current_status), [])
    return DeliverableStatus(new_status) in allowed_transitions


def validate_transition(
    current_status: DeliverableStatus,
    new_status: DeliverableStatus
) -> None:
    """
    Validate a status transition and raise exception if invalid.

    Args:
        current_status: Current deliverable status
        new_status: Requested new status

    Raises:
        DeliverableStateTransitionError: If the transition is not allowed
    """
    current_status = DeliverableStatus(current_status)
    new_status = DeliverableStatus(new_status)

    if current_status == new_status:
        logger.debug(f"No-op transition: {current_status.value} → {new_status.value}")
        return

    if not is_transition_valid(current_status, new_status):
        allowed_transitions = TRANSITION_MATRIX.get(current_status, [])
        allowed_names = [s.value for s in allowed_transitions if s != current_status]

        error_msg = (
            f"Invalid deliverable status transition: {current_status.value} → {new_status.value}. "
        )
        if allowed_names:
            error_msg += f"From {current_status.value}, you can only transition to: {', '.join(allowed_names)}."

        if current_status == DeliverableStatus.APPROVED:
            error_msg += " Approved deliverables are final. Reject through the approval gate to reopen."
        elif current_status == DeliverableStatus.PENDING and new_status == DeliverableStatus.REVIEW:
            error_msg += " Deliverables must be assigned before they can be submitted for review."
        elif new_status == DeliverableStatus.APPROVED:
            error_msg += " Only CEO and user sign-off can approve a deliverable."

        logger.warning(f"Blocked transition: {error_msg}")
        raise DeliverableStateTransitionError(
            message=error_msg,
            current_status=current_status,
            requested_status=new_status,
            allowed_transitions=allowed_transitions
        )

    logger.debug(f"Valid transition: {current_status.value} → {new_status.value}")


def get_allowed_transitions(current_status: DeliverableStatus) -> list[DeliverableStatus]:
    """List allowed next statuses, excluding the no-op."""
    current_status = DeliverableStatus(current_status)
    return [s for s in TRANSITION_MATRIX.get(current_status, []) if s != current_status]


# Status sort order for team views
# Lower number = shown first
STATUS_SORT_ORDER: dict[DeliverableStatus, int] = {
    DeliverableStatus.IN_PROGRESS: 1,
    DeliverableStatus.REVIEW: 2,
    DeliverableStatus.REVISION_REQUESTED: 3,
    DeliverableStatus.REJECTED: 4,
    DeliverableStatus.PENDING: 5,
    DeliverableStatus.APPROVED: 6,
}
