"""Team manager coordination: pairing deliverables with team members.

Every action commits the deliverable and member changes it makes together,
and reports the manager state change it made (if any) as a
ManagerTransition. The manager is only touched by the actions that start or
finish a review cycle.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import activity_log, models
from .exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from .models import DeliverableStatus, MemberRole, MemberStatus
from .registry import TEAM_MANAGER_NAME, agent_display_name
from .schemas import FeedbackEntry
from .state_machine import STATUS_SORT_ORDER, validate_transition

logger = logging.getLogger("shelvey-core.task_assignment")

ASSIGNABLE_ROLES = (MemberRole.MEMBER.value, MemberRole.LEAD.value)
REVIEWING_TASK = "Reviewing deliverable"


@dataclass
class ManagerTransition:
    agent_id: str
    from_status: MemberStatus
    to_status: MemberStatus


@dataclass
class Assignment:
    deliverable: models.Deliverable
    member: models.TeamMember


@dataclass
class TeamActionOutcome:
    """Result of one team manager action."""

    deliverable: Optional[models.Deliverable] = None
    manager_transition: Optional[ManagerTransition] = None
    assignments: list[Assignment] = field(default_factory=list)


@dataclass
class TeamStatus:
    team: models.Team
    members: list[models.TeamMember]
    deliverables: list[models.Deliverable]
    stats: dict[str, int]


# =============================================================================
# Lookups
# =============================================================================

def get_team(db: Session, team_id: UUID, owner_id: Optional[UUID] = None) -> models.Team:
    """Load a team, enforcing ownership when ``owner_id`` is given."""
    team = db.query(models.Team).filter(models.Team.id == team_id).first()
    if not team:
        raise NotFoundError("Team", team_id)
    if owner_id is not None and team.user_id is not None and team.user_id != owner_id:
        logger.warning(f"User {owner_id} attempted to manage team {team_id} owned by {team.user_id}")
        raise ForbiddenError("Team belongs to another user")
    return team


def find_manager(team: models.Team) -> Optional[models.TeamMember]:
    return next((m for m in team.members if m.role == MemberRole.MANAGER.value), None)


def _get_member(db: Session, agent_id: str, team_id: Optional[UUID] = None) -> models.TeamMember:
    query = db.query(models.TeamMember).filter(models.TeamMember.agent_id == agent_id)
    if team_id is not None:
        query = query.filter(models.TeamMember.team_id == team_id)
    member = query.order_by(models.TeamMember.created_at).first()
    if not member:
        raise NotFoundError("Team member", agent_id)
    return member


def _get_team_deliverable(db: Session, team: models.Team, deliverable_id: Optional[UUID]) -> models.Deliverable:
    if deliverable_id is None:
        raise InvalidRequestError("deliverableId is required")
    deliverable = db.query(models.Deliverable).filter(models.Deliverable.id == deliverable_id).first()
    if not deliverable:
        raise NotFoundError("Deliverable", deliverable_id)
    if deliverable.assigned_team_id is not None and deliverable.assigned_team_id != team.id:
        raise InvalidRequestError(f"Deliverable {deliverable_id} is not assigned to team {team.id}")
    return deliverable


def _set_manager_status(
    manager: Optional[models.TeamMember],
    status: MemberStatus,
    current_task: Optional[str],
) -> Optional[ManagerTransition]:
    if manager is None:
        return None
    transition = ManagerTransition(
        agent_id=manager.agent_id,
        from_status=MemberStatus(manager.status),
        to_status=status,
    )
    manager.status = status.value
    manager.current_task = current_task
    return transition


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error during {what}: {e}", exc_info=True)
        raise


def _log_manager_action(
    db: Session,
    team: models.Team,
    manager: Optional[models.TeamMember],
    action: str,
    manager_id: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
) -> None:
    activity_log.record(
        db,
        manager_id or team.manager_agent_id,
        manager.agent_name if manager else agent_display_name(team.manager_agent_id, TEAM_MANAGER_NAME),
        action,
        metadata={"team_id": str(team.id), **(metadata or {})},
    )


# =============================================================================
# Assignment
# =============================================================================

def _assign(
    deliverable: models.Deliverable,
    member: models.TeamMember,
    team_id: Optional[UUID] = None,
) -> None:
    validate_transition(deliverable.status, DeliverableStatus.IN_PROGRESS)

    deliverable.assigned_agent_id = member.agent_id
    deliverable.status = DeliverableStatus.IN_PROGRESS.value
    if team_id is not None and deliverable.assigned_team_id is None:
        deliverable.assigned_team_id = team_id

    member.status = MemberStatus.WORKING.value
    member.current_task = deliverable.name


def assign_task(
    db: Session,
    deliverable_id: UUID,
    agent_id: str,
    team_id: Optional[UUID] = None,
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamActionOutcome:
    """
    Assign a deliverable to an agent and mark the agent working on it.

    The agent is not required to be idle; the caller decides. Approved
    deliverables cannot be reassigned.

    Raises:
        NotFoundError: Team, deliverable or member does not exist
        DeliverableStateTransitionError: Deliverable cannot move to in_progress
    """
    if not agent_id:
        raise InvalidRequestError("agentId is required")

    team = get_team(db, team_id, owner_id) if team_id is not None else None
    if team is not None:
        deliverable = _get_team_deliverable(db, team, deliverable_id)
    else:
        deliverable = db.query(models.Deliverable).filter(models.Deliverable.id == deliverable_id).first()
        if not deliverable:
            raise NotFoundError("Deliverable", deliverable_id)

    member = _get_member(db, agent_id, team_id)
    previous_agent_id = deliverable.assigned_agent_id

    _assign(deliverable, member, team_id)

    # Free the previous assignee if it was still on this deliverable
    if previous_agent_id and previous_agent_id != agent_id:
        previous = (
            db.query(models.TeamMember)
            .filter(
                models.TeamMember.agent_id == previous_agent_id,
                models.TeamMember.current_task == deliverable.name,
            )
            .first()
        )
        if previous is not None:
            previous.status = MemberStatus.IDLE.value
            previous.current_task = None

    _commit(db, f"assignment of deliverable {deliverable_id}")
    db.refresh(deliverable)
    logger.info(f"Assigned deliverable {deliverable.id} to {agent_id}")

    if team is not None:
        _log_manager_action(
            db, team, find_manager(team), "assign_task", manager_id,
            {"deliverable_id": str(deliverable_id), "agent_id": agent_id},
        )
    return TeamActionOutcome(deliverable=deliverable)


def auto_assign_pending(
    db: Session,
    team_id: UUID,
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamActionOutcome:
    """
    Pair the team's pending deliverables with its idle members and leads.

    Both lists are taken in creation order and zipped, so exactly
    ``min(pending, idle)`` assignments are made. Whatever is left over waits
    for a later call.
    """
    team = get_team(db, team_id, owner_id)

    pending = (
        db.query(models.Deliverable)
        .filter(
            models.Deliverable.assigned_team_id == team.id,
            models.Deliverable.status == DeliverableStatus.PENDING.value,
        )
        .order_by(models.Deliverable.created_at, models.Deliverable.id)
        .all()
    )
    idle_members = (
        db.query(models.TeamMember)
        .filter(
            models.TeamMember.team_id == team.id,
            models.TeamMember.status == MemberStatus.IDLE.value,
            models.TeamMember.role.in_(ASSIGNABLE_ROLES),
        )
        .order_by(models.TeamMember.created_at, models.TeamMember.id)
        .all()
    )

    assignments = []
    for deliverable, member in zip(pending, idle_members):
        _assign(deliverable, member, team.id)
        assignments.append(Assignment(deliverable=deliverable, member=member))

    if assignments:
        _commit(db, f"auto-assignment for team {team_id}")
        logger.info(f"Auto-assigned {len(assignments)} deliverables in team {team_id}")
    else:
        logger.debug(
            f"Nothing to auto-assign in team {team_id} "
            f"({len(pending)} pending, {len(idle_members)} idle)"
        )

    _log_manager_action(
        db, team, find_manager(team), "auto_assign_deliverables", manager_id,
        {"assignments": [
            {"deliverable_id": str(a.deliverable.id), "agent_id": a.member.agent_id}
            for a in assignments
        ]},
    )
    return TeamActionOutcome(assignments=assignments)


# =============================================================================
# Review cycle
# =============================================================================

def submit_for_review(
    db: Session,
    team_id: UUID,
    deliverable_id: UUID,
    agent_id: Optional[str] = None,
    content: Any = None,
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamActionOutcome:
    """
    Hand finished work to the team manager.

    The deliverable moves to review with the submitted content, the
    submitting member goes idle and the manager starts reviewing. New content
    needs fresh CEO and user sign-off, so both flags are cleared.
    """
    team = get_team(db, team_id, owner_id)
    deliverable = _get_team_deliverable(db, team, deliverable_id)
    manager = find_manager(team)

    validate_transition(deliverable.status, DeliverableStatus.REVIEW)

    deliverable.status = DeliverableStatus.REVIEW.value
    if content is not None:
        deliverable.generated_content = content
        deliverable.ceo_approved = False
        deliverable.user_approved = False
    deliverable.reviewed_by = manager_id or team.manager_agent_id

    submitter_id = agent_id or deliverable.assigned_agent_id
    if submitter_id:
        submitter = (
            db.query(models.TeamMember)
            .filter(models.TeamMember.team_id == team.id, models.TeamMember.agent_id == submitter_id)
            .first()
        )
        if submitter is not None:
            submitter.status = MemberStatus.IDLE.value
            submitter.current_task = None

    transition = _set_manager_status(manager, MemberStatus.REVIEWING, REVIEWING_TASK)

    _commit(db, f"review submission of deliverable {deliverable_id}")
    logger.info(f"Deliverable {deliverable_id} submitted for review by {submitter_id}")

    _log_manager_action(
        db, team, manager, "submit_for_review", manager_id,
        {"deliverable_id": str(deliverable_id), "agent_id": submitter_id},
    )
    return TeamActionOutcome(deliverable=deliverable, manager_transition=transition)


def complete_review_cycle(manager: Optional[models.TeamMember]) -> Optional[ManagerTransition]:
    """Return a reviewing manager to active with no task. The caller commits."""
    return _set_manager_status(manager, MemberStatus.ACTIVE, None)


def manager_approve(
    db: Session,
    team_id: UUID,
    deliverable_id: UUID,
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamActionOutcome:
    """
    Record the team manager's sign-off on a deliverable under review.

    The deliverable stays in review: only the CEO and user approvals through
    the approval gate can make it approved.
    """
    team = get_team(db, team_id, owner_id)
    deliverable = _get_team_deliverable(db, team, deliverable_id)
    manager = find_manager(team)

    if deliverable.status != DeliverableStatus.REVIEW.value:
        raise InvalidRequestError(
            f"Only deliverables in review can be approved by a manager (status is {deliverable.status})"
        )

    deliverable.reviewed_by = manager_id or team.manager_agent_id
    transition = complete_review_cycle(manager)

    _commit(db, f"manager approval of deliverable {deliverable_id}")
    logger.info(f"Manager {deliverable.reviewed_by} approved deliverable {deliverable_id}")

    _log_manager_action(
        db, team, manager, "approve_deliverable", manager_id,
        {"deliverable_id": str(deliverable_id)},
    )
    return TeamActionOutcome(deliverable=deliverable, manager_transition=transition)


def manager_reject(
    db: Session,
    team_id: UUID,
    deliverable_id: UUID,
    feedback: Optional[str],
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamActionOutcome:
    """
    Send a deliverable back to its assigned agent with feedback.

    Clears both sign-offs and puts the assigned agent back to work on the
    revision.
    """
    if not feedback:
        raise InvalidRequestError("feedback is required to reject a deliverable")

    team = get_team(db, team_id, owner_id)
    deliverable = _get_team_deliverable(db, team, deliverable_id)
    manager = find_manager(team)

    validate_transition(deliverable.status, DeliverableStatus.REJECTED)

    entry = FeedbackEntry.model_validate({
        "from": "manager",
        "feedback": feedback,
        "timestamp": datetime.utcnow(),
        "approved": False,
    })
    deliverable.feedback_history = list(deliverable.feedback_history or []) + [entry.to_json()]
    deliverable.feedback = feedback
    deliverable.status = DeliverableStatus.REJECTED.value
    deliverable.ceo_approved = False
    deliverable.user_approved = False

    if deliverable.assigned_agent_id:
        assignee = (
            db.query(models.TeamMember)
            .filter(
                models.TeamMember.team_id == team.id,
                models.TeamMember.agent_id == deliverable.assigned_agent_id,
            )
            .first()
        )
        if assignee is not None:
            assignee.status = MemberStatus.WORKING.value
            assignee.current_task = f"Revising: {deliverable.name}"

    transition = complete_review_cycle(manager)

    _commit(db, f"manager rejection of deliverable {deliverable_id}")
    logger.info(f"Deliverable {deliverable_id} rejected by manager; returned to {deliverable.assigned_agent_id}")

    _log_manager_action(
        db, team, manager, "reject_deliverable", manager_id,
        {"deliverable_id": str(deliverable_id), "feedback": feedback},
    )
    return TeamActionOutcome(deliverable=deliverable, manager_transition=transition)


# =============================================================================
# Status
# =============================================================================

def get_team_status(
    db: Session,
    team_id: UUID,
    manager_id: Optional[str] = None,
    owner_id: Optional[UUID] = None,
) -> TeamStatus:
    """Members, deliverables and headline counts for one team."""
    team = get_team(db, team_id, owner_id)
    members = (
        db.query(models.TeamMember)
        .filter(models.TeamMember.team_id == team.id)
        .order_by(models.TeamMember.created_at)
        .all()
    )
    deliverables = (
        db.query(models.Deliverable)
        .filter(models.Deliverable.assigned_team_id == team.id)
        .order_by(models.Deliverable.created_at)
        .all()
    )
    deliverables.sort(key=lambda d: STATUS_SORT_ORDER.get(DeliverableStatus(d.status), 99))

    stats = {
        "total_members": len(members),
        "working": sum(1 for m in members if m.status == MemberStatus.WORKING.value),
        "idle": sum(1 for m in members if m.status == MemberStatus.IDLE.value),
        "pending_deliverables": sum(1 for d in deliverables if d.status == DeliverableStatus.PENDING.value),
        "in_progress": sum(1 for d in deliverables if d.status == DeliverableStatus.IN_PROGRESS.value),
        "completed": sum(1 for d in deliverables if d.status == DeliverableStatus.APPROVED.value),
    }

    _log_manager_action(db, team, find_manager(team), "get_team_status", manager_id)
    return TeamStatus(team=team, members=members, deliverables=deliverables, stats=stats)
