"""Phase manager endpoint."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shelvey_core import models, phases, schemas
from shelvey_core.exceptions import ForbiddenError
from shelvey_core.schemas import PhaseAction

from ...database import get_db
from ..dependencies import get_current_user

logger = logging.getLogger("shelvey-core.phases-api")

router = APIRouter(tags=["phases"])


@router.post(
    "/phase-manager",
    response_model=schemas.PhaseManagerResponse,
    response_model_by_alias=True,
)
def phase_manager(
    body: schemas.PhaseManagerRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """
    Seed a phase's deliverables or report its completion.

    - **action**: initialize_deliverables or check_phase_completion
    - **phaseId**: Phase UUID (must belong to the caller)
    """
    phase = phases.get_phase(db, body.phase_id)
    if phase.user_id != current_user.id:
        raise ForbiddenError("Phase belongs to another user")

    if body.action == PhaseAction.INITIALIZE_DELIVERABLES:
        created = phases.initialize_phase_deliverables(db, phase)
        return schemas.InitializeDeliverablesResult(
            phase_id=phase.id,
            created=[schemas.deliverable_to_response(d) for d in created],
        )

    progress = phases.check_phase_completion(db, phase.id)
    return schemas.PhaseCompletionResult(
        phase_id=progress.phase_id,
        phase_name=progress.phase_name,
        phase_number=progress.phase_number,
        phase_status=progress.phase_status,
        total_deliverables=progress.total_deliverables,
        approved_deliverables=progress.approved_deliverables,
        progress=progress.progress,
        is_complete=progress.is_complete,
        can_advance=progress.can_advance,
        exit_criteria=progress.exit_criteria,
        next_phase_entry_criteria=progress.next_phase_entry_criteria,
    )
