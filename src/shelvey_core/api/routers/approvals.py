"""Approval gate endpoint."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelvey_core import approvals, models, schemas
from shelvey_core.exceptions import InvalidRequestError

from ...database import get_db
from ...reviewer import CEOReviewer
from ..dependencies import get_current_user, get_reviewer

logger = logging.getLogger("shelvey-core.approvals-api")

router = APIRouter(tags=["approvals"])


def _outcome_to_response(outcome: approvals.ApprovalOutcome) -> schemas.ApprovalResponse:
    """Convert an ApprovalOutcome to the wire envelope."""
    response = schemas.ApprovalResponse(
        message=outcome.message,
        ceo_approved=outcome.ceo_approved,
        user_approved=outcome.user_approved,
        feedback=outcome.feedback,
        phase_completed=outcome.phase_completed,
        next_phase=outcome.next_phase,
        ready_for_hosting=outcome.ready_for_hosting,
    )
    if outcome.requires_regeneration:
        response.requires_regeneration = True
    else:
        response.fully_approved = outcome.fully_approved
    if outcome.deliverable is not None:
        response.deliverable = schemas.deliverable_to_response(outcome.deliverable)
    if outcome.website is not None:
        response.website = schemas.WebsiteResponse.model_validate(outcome.website)
    return response


@router.post(
    "/approve-deliverable",
    response_model=schemas.ApprovalResponse,
    response_model_exclude_none=True,
    response_model_by_alias=True,
)
def approve_deliverable(
    body: schemas.ApprovalRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    reviewer: CEOReviewer = Depends(get_reviewer),
):
    """
    Record a CEO or user decision on a deliverable or generated website.

    - **deliverableId** / **websiteId**: Target (one is required)
    - **approver**: ceo or user (required unless **action** is given)
    - **approved**: Decision; rejection needs **feedback**
    - **feedback**: Rejection reason or approval note
    - **action**: ceo_review, user_approve or user_reject
    """
    if body.deliverable_id is not None:
        outcome = approvals.submit_approval(
            db,
            body.deliverable_id,
            approver=body.approver,
            approved=body.approved,
            feedback=body.feedback,
            action=body.action,
            owner_id=current_user.id,
            reviewer=reviewer,
        )
    elif body.website_id is not None:
        outcome = approvals.submit_website_approval(
            db,
            body.website_id,
            approver=body.approver,
            approved=body.approved,
            feedback=body.feedback,
            action=body.action,
            owner_id=current_user.id,
            reviewer=reviewer,
        )
    else:
        raise InvalidRequestError("No deliverableId or websiteId provided")

    return _outcome_to_response(outcome)
