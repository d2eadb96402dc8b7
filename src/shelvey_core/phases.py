"""Business phase seeding and completion."""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import activity_log, models
from .exceptions import InvalidRequestError, NotFoundError
from .models import DeliverableStatus, PhaseStatus
from .registry import CEO_AGENT_ID, CEO_AGENT_NAME, get_division_by_phase, get_next_phase, get_phase_by_number

logger = logging.getLogger("shelvey-core.phases")


@dataclass
class PhaseProgress:
    phase_id: UUID
    phase_name: str
    phase_number: int
    phase_status: PhaseStatus
    total_deliverables: int
    approved_deliverables: int

    @property
    def progress(self) -> int:
        """Percent of deliverables fully approved, rounded down."""
        if self.total_deliverables == 0:
            return 0
        return (self.approved_deliverables * 100) // self.total_deliverables

    @property
    def is_complete(self) -> bool:
        return self.total_deliverables > 0 and self.approved_deliverables == self.total_deliverables

    @property
    def can_advance(self) -> bool:
        return self.is_complete and get_next_phase(self.phase_number) is not None

    @property
    def exit_criteria(self) -> list[str]:
        definition = get_phase_by_number(self.phase_number)
        return list(definition.exit_criteria) if definition else []

    @property
    def next_phase_entry_criteria(self) -> list[str]:
        """What the following phase expects this one to have produced."""
        next_definition = get_next_phase(self.phase_number)
        return list(next_definition.entry_criteria) if next_definition else []


def get_phase(db: Session, phase_id: UUID) -> models.BusinessPhase:
    phase = db.query(models.BusinessPhase).filter(models.BusinessPhase.id == phase_id).first()
    if not phase:
        raise NotFoundError("Phase", phase_id)
    return phase


def initialize_phase_deliverables(db: Session, phase: models.BusinessPhase) -> list[models.Deliverable]:
    """
    Create one pending deliverable per registry template for the phase.

    Templates whose name already exists in the phase are skipped, so calling
    this twice creates nothing the second time.

    Returns:
        The newly created deliverables
    """
    definition = get_phase_by_number(phase.phase_number)
    if definition is None:
        raise InvalidRequestError(f"No deliverable templates for phase {phase.phase_number}")

    existing = {
        name for (name,) in db.query(models.Deliverable.name)
        .filter(models.Deliverable.phase_id == phase.id)
        .all()
    }
    division = get_division_by_phase(phase.phase_number)

    created = []
    for template in definition.deliverables:
        if template.name in existing:
            continue
        deliverable = models.Deliverable(
            phase_id=phase.id,
            user_id=phase.user_id,
            assigned_team_id=phase.team_id,
            name=template.name,
            description=f"{template.name} for {definition.name}",
            deliverable_type=template.type,
            status=DeliverableStatus.PENDING.value,
            feedback_history=[],
            screenshots=[],
            citations=[],
        )
        db.add(deliverable)
        created.append(deliverable)

    if not created:
        logger.debug(f"Phase {phase.id} already has all template deliverables")
        return created

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error initializing deliverables for phase {phase.id}: {e}", exc_info=True)
        raise
    for deliverable in created:
        db.refresh(deliverable)

    logger.info(f"Created {len(created)} deliverables for phase {phase.phase_number} ({phase.id})")
    activity_log.record(
        db,
        division.manager_id if division else CEO_AGENT_ID,
        division.manager_name if division else CEO_AGENT_NAME,
        f"Initialized {len(created)} deliverables for {definition.name}",
        metadata={"phase_id": str(phase.id), "phase_number": phase.phase_number},
    )
    return created


def check_phase_completion(db: Session, phase_id: UUID) -> PhaseProgress:
    """Count fully approved deliverables (both sign-offs) in a phase."""
    phase = get_phase(db, phase_id)
    deliverables = db.query(models.Deliverable).filter(models.Deliverable.phase_id == phase.id).all()
    return PhaseProgress(
        phase_id=phase.id,
        phase_name=phase.phase_name,
        phase_number=phase.phase_number,
        phase_status=PhaseStatus(phase.status),
        total_deliverables=len(deliverables),
        approved_deliverables=sum(1 for d in deliverables if d.fully_approved),
    )


def complete_phase_if_ready(db: Session, phase_id: UUID) -> tuple[bool, Optional[int]]:
    """
    Mark a fully approved phase completed and activate the next one.

    Returns:
        (phase_completed, next_phase_number). ``phase_completed`` is True only
        on the call that moved the phase to completed.
    """
    progress = check_phase_completion(db, phase_id)
    if not progress.is_complete:
        return False, None

    phase = get_phase(db, phase_id)
    if phase.status == PhaseStatus.COMPLETED.value:
        return False, None
    project_id = phase.project_id
    next_number = phase.phase_number + 1

    now = datetime.utcnow()
    try:
        # Claims the transition; a concurrent caller matches no row
        result = db.execute(
            update(models.BusinessPhase)
            .where(
                models.BusinessPhase.id == phase_id,
                models.BusinessPhase.status != PhaseStatus.COMPLETED.value,
            )
            .values(status=PhaseStatus.COMPLETED.value, completed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            return False, None

        next_phase = (
            db.query(models.BusinessPhase)
            .filter(
                models.BusinessPhase.project_id == project_id,
                models.BusinessPhase.phase_number == next_number,
            )
            .first()
        )
        if next_phase is not None:
            next_phase.status = PhaseStatus.ACTIVE.value
            next_phase.started_at = now

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error completing phase {phase_id}: {e}", exc_info=True)
        raise

    logger.info(
        f"Phase {progress.phase_number} ({phase_id}) completed"
        + (f"; phase {next_number} activated" if next_phase is not None else "")
    )
    activity_log.record(
        db, CEO_AGENT_ID, CEO_AGENT_NAME,
        f"Completed phase {progress.phase_number}: {progress.phase_name}",
        metadata={"phase_id": str(phase_id), "next_phase": next_number if next_phase is not None else None},
    )
    return True, next_number if next_phase is not None else None
