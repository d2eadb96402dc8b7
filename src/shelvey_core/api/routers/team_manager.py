"""Team manager endpoint: assignment, review cycle and team status."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelvey_core import models, schemas, task_assignment
from shelvey_core.schemas import TeamAction
from shelvey_core.task_assignment import ManagerTransition, TeamActionOutcome

from ...database import get_db
from ..dependencies import get_current_user

logger = logging.getLogger("shelvey-core.team-manager-api")

router = APIRouter(tags=["team-manager"])


def _transition_to_response(
    transition: Optional[ManagerTransition],
) -> Optional[schemas.ManagerTransitionResponse]:
    if transition is None:
        return None
    return schemas.ManagerTransitionResponse(
        agent_id=transition.agent_id,
        from_status=transition.from_status,
        to_status=transition.to_status,
    )


def _action_result(action: TeamAction, outcome: TeamActionOutcome):
    transition = _transition_to_response(outcome.manager_transition)

    if action == TeamAction.ASSIGN_TASK:
        return schemas.AssignTaskResult(
            deliverable=schemas.deliverable_to_response(outcome.deliverable),
            manager_transition=transition,
        )
    if action == TeamAction.SUBMIT_FOR_REVIEW:
        return schemas.SubmitForReviewResult(manager_transition=transition)
    if action == TeamAction.APPROVE_DELIVERABLE:
        return schemas.ApproveDeliverableResult(
            deliverable=schemas.deliverable_to_response(outcome.deliverable),
            manager_transition=transition,
        )
    if action == TeamAction.REJECT_DELIVERABLE:
        return schemas.RejectDeliverableResult(
            deliverable=schemas.deliverable_to_response(outcome.deliverable),
            manager_transition=transition,
        )
    return schemas.AutoAssignResult(
        assignments=[
            schemas.AssignmentResponse(
                deliverable_id=a.deliverable.id,
                deliverable=a.deliverable.name,
                agent_id=a.member.agent_id,
                agent=a.member.agent_name,
            )
            for a in outcome.assignments
        ],
        manager_transition=transition,
    )


@router.post(
    "/team-manager",
    response_model=schemas.TeamManagerResponse,
    response_model_by_alias=True,
)
def team_manager(
    body: schemas.TeamManagerRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Run one team manager action.

    - **action**: assign_task, submit_for_review, approve_deliverable,
      reject_deliverable, get_team_status or auto_assign_deliverables
    - **teamId**: Team the action runs in (must belong to the caller)
    - **deliverableId**, **agentId**, **content**, **feedback**: Per action
    """
    owner_id = current_user.id
    logger.info(f"Team manager action {body.action.value} on team {body.team_id}")

    if body.action == TeamAction.GET_TEAM_STATUS:
        status = task_assignment.get_team_status(db, body.team_id, body.manager_id, owner_id)
        return schemas.TeamStatusResult(
            team=schemas.TeamResponse.model_validate(status.team),
            members=[schemas.TeamMemberResponse.model_validate(m) for m in status.members],
            deliverables=[schemas.deliverable_to_response(d) for d in status.deliverables],
            stats=schemas.TeamStats(**status.stats),
        )

    if body.action == TeamAction.ASSIGN_TASK:
        outcome = task_assignment.assign_task(
            db, body.deliverable_id, body.agent_id, body.team_id, body.manager_id, owner_id
        )
    elif body.action == TeamAction.SUBMIT_FOR_REVIEW:
        outcome = task_assignment.submit_for_review(
            db, body.team_id, body.deliverable_id, body.agent_id, body.content, body.manager_id, owner_id
        )
    elif body.action == TeamAction.APPROVE_DELIVERABLE:
        outcome = task_assignment.manager_approve(
            db, body.team_id, body.deliverable_id, body.manager_id, owner_id
        )
    elif body.action == TeamAction.REJECT_DELIVERABLE:
        outcome = task_assignment.manager_reject(
            db, body.team_id, body.deliverable_id, body.feedback, body.manager_id, owner_id
        )
    else:
        outcome = task_assignment.auto_assign_pending(db, body.team_id, body.manager_id, owner_id)

    return _action_result(body.action, outcome)
