"""Two-party approval gate for deliverables and generated websites.

A deliverable is approved exactly when both the CEO and the user have signed
off. Sign-offs are merged with a single conditional UPDATE so that two
approvals racing on the same row always converge to ``approved``:

    UPDATE phase_deliverables
       SET ceo_approved = true,
           status = CASE WHEN user_approved IS true THEN 'approved' ELSE status END,
           version = version + 1
     WHERE id = :id

Rejections lock the row (SELECT ... FOR UPDATE), append to the feedback
history and clear both sign-offs.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union
from uuid import UUID

from sqlalchemy import case, literal, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import activity_log, models, phases
from .exceptions import ForbiddenError, InvalidRequestError, NotFoundError
from .models import Approver, DeliverableStatus, WebsiteStatus, is_fully_approved
from .registry import CEO_AGENT_ID, CEO_AGENT_NAME, USER_AGENT_ID, USER_AGENT_NAME
from .reviewer import CEOReviewer
from .schemas import ApprovalAction, FeedbackEntry

logger = logging.getLogger("shelvey-core.approvals")

GatedRow = Union[models.Deliverable, models.GeneratedWebsite]


@dataclass
class ApprovalOutcome:
    """What one approval gate call did."""

    deliverable: Optional[models.Deliverable] = None
    website: Optional[models.GeneratedWebsite] = None
    fully_approved: bool = False
    requires_regeneration: bool = False
    message: Optional[str] = None
    ceo_approved: Optional[bool] = None
    feedback: Optional[str] = None
    phase_completed: Optional[bool] = None
    next_phase: Optional[int] = None
    user_approved: Optional[bool] = None

    @property
    def ready_for_hosting(self) -> Optional[bool]:
        if self.website is None:
            return None
        return self.fully_approved


@dataclass
class SignOff:
    """Flags and status written by one sign-off, captured before its commit."""

    row: GatedRow
    ceo_approved: bool
    user_approved: bool
    status: str

    @property
    def fully_approved(self) -> bool:
        return is_fully_approved(self.ceo_approved, self.user_approved)


def _actor_label(approver: Approver) -> tuple[str, str]:
    if approver == Approver.CEO:
        return CEO_AGENT_ID, CEO_AGENT_NAME
    return USER_AGENT_ID, USER_AGENT_NAME


def _feedback_entry(
    approver: Union[Approver, str],
    feedback: str,
    approved: bool,
    version: Optional[int] = None,
) -> dict[str, Any]:
    source = approver.value if isinstance(approver, Approver) else approver
    entry = FeedbackEntry(
        from_=source,
        feedback=feedback,
        timestamp=datetime.utcnow(),
        approved=approved,
        version=version,
    )
    return entry.to_json()


def _load(db: Session, model: type, row_id: UUID, owner_id: Optional[UUID], label: str) -> GatedRow:
    row = db.query(model).filter(model.id == row_id).first()
    if not row:
        raise NotFoundError(label, row_id)
    if owner_id is not None and row.user_id != owner_id:
        logger.warning(f"User {owner_id} attempted to approve {label.lower()} {row_id} owned by {row.user_id}")
        raise ForbiddenError(f"{label} belongs to another user")
    return row


def _lock(db: Session, model: type, row_id: UUID) -> GatedRow:
    row = (
        db.query(model)
        .filter(model.id == row_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not row:
        raise NotFoundError("Deliverable" if model is models.Deliverable else "Website", row_id)
    return row


def _merge_sign_off(
    db: Session,
    model: type,
    row_id: UUID,
    approver: Approver,
    actor_id: Optional[str] = None,
    history_entry: Optional[dict[str, Any]] = None,
) -> SignOff:
    """
    Set one approver's flag and recompute status in a single UPDATE.

    The status only moves to approved when the other flag is already set in
    the row being updated; it is never downgraded. The row is re-read inside
    the transaction and its flags are captured before the commit, so a
    concurrent sign-off committed afterwards cannot change what this call
    reports.
    """
    now = datetime.utcnow()
    is_deliverable = model is models.Deliverable

    if approver == Approver.CEO:
        values: dict[str, Any] = {"ceo_approved": True}
        other_flag = model.user_approved
        if is_deliverable:
            values["reviewed_by"] = CEO_AGENT_NAME
    else:
        values = {"user_approved": True}
        other_flag = model.ceo_approved
        if is_deliverable:
            values["approved_by"] = actor_id or USER_AGENT_ID
            values["approved_at"] = now

    values["status"] = case(
        (other_flag.is_(True), literal(DeliverableStatus.APPROVED.value)),
        else_=model.status,
    )
    values["updated_at"] = now
    if is_deliverable:
        values["version"] = model.version + 1

    try:
        if history_entry is not None:
            locked = _lock(db, model, row_id)
            values["feedback_history"] = list(locked.feedback_history or []) + [history_entry]

        result = db.execute(
            update(model)
            .where(model.id == row_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise NotFoundError("Deliverable" if is_deliverable else "Website", row_id)

        row = db.query(model).filter(model.id == row_id).populate_existing().one()
        sign_off = SignOff(
            row=row,
            ceo_approved=bool(row.ceo_approved),
            user_approved=bool(row.user_approved),
            status=row.status,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error merging {approver.value} sign-off on {row_id}: {e}", exc_info=True)
        raise

    logger.info(
        f"{approver.value} signed off {model.__tablename__} {row_id}: "
        f"ceo={sign_off.ceo_approved} user={sign_off.user_approved} status={sign_off.status}"
    )
    return sign_off


def _reject(
    db: Session,
    model: type,
    row_id: UUID,
    approver: Union[Approver, str],
    feedback: str,
    status: str,
) -> GatedRow:
    """
    Append one rejection entry, clear both sign-offs and reset status.

    Both flags are cleared so that the regenerated work needs a fresh CEO and
    user sign-off.
    """
    try:
        row = _lock(db, model, row_id)
        version = row.version if model is models.GeneratedWebsite else None
        row.feedback_history = list(row.feedback_history or []) + [
            _feedback_entry(approver, feedback, approved=False, version=version)
        ]
        row.ceo_approved = False
        row.user_approved = False
        row.status = status
        if model is models.Deliverable:
            row.feedback = feedback
            row.version = (row.version or 0) + 1
        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Database error rejecting {model.__tablename__} {row_id}: {e}", exc_info=True)
        raise

    source = approver.value if isinstance(approver, Approver) else approver
    logger.info(f"{source} rejected {model.__tablename__} {row_id}; status reset to {status}")
    return row


def _finish_full_approval(db: Session, outcome: ApprovalOutcome) -> ApprovalOutcome:
    deliverable = outcome.deliverable
    if deliverable is None or not outcome.fully_approved:
        return outcome
    phase_completed, next_phase = phases.complete_phase_if_ready(db, deliverable.phase_id)
    outcome.phase_completed = phase_completed
    outcome.next_phase = next_phase
    return outcome


# =============================================================================
# Deliverables
# =============================================================================

def submit_approval(
    db: Session,
    deliverable_id: UUID,
    approver: Optional[Approver] = None,
    approved: Optional[bool] = None,
    feedback: Optional[str] = None,
    action: Optional[ApprovalAction] = None,
    owner_id: Optional[UUID] = None,
    reviewer: Optional[CEOReviewer] = None,
) -> ApprovalOutcome:
    """
    Record a CEO or user decision on a deliverable.

    Args:
        db: Database session
        deliverable_id: Deliverable to approve or reject
        approver: "ceo" or "user" (required unless ``action`` is given)
        approved: The decision; a falsy decision without feedback is treated
            as an approval
        feedback: Rejection reason or optional approval note
        action: Explicit action (ceo_review, user_approve, user_reject)
        owner_id: When given, the deliverable must belong to this user
        reviewer: LLM reviewer used by ``ceo_review``

    Returns:
        ApprovalOutcome with the persisted deliverable

    Raises:
        NotFoundError: Deliverable does not exist
        ForbiddenError: Deliverable belongs to another user
        InvalidRequestError: Missing approver / feedback
        UpstreamError: LLM review failed (nothing is written)
    """
    deliverable = _load(db, models.Deliverable, deliverable_id, owner_id, "Deliverable")

    if action == ApprovalAction.CEO_REVIEW:
        return _ceo_review_deliverable(db, deliverable, reviewer)

    if action == ApprovalAction.USER_APPROVE:
        history_entry = _feedback_entry(Approver.USER, feedback, approved=True) if feedback else None
        return _approve_deliverable(db, deliverable, Approver.USER, owner_id, history_entry)

    if action == ApprovalAction.USER_REJECT:
        if not feedback:
            raise InvalidRequestError("feedback is required to request a revision")
        return _reject_deliverable(
            db, deliverable, Approver.USER, feedback,
            DeliverableStatus.REVISION_REQUESTED,
            "Feedback submitted, revision requested",
        )

    if approver is None:
        raise InvalidRequestError("approver is required")
    approver = Approver(approver)

    if not approved and feedback:
        return _reject_deliverable(
            db, deliverable, approver, feedback,
            DeliverableStatus.PENDING,
            "Feedback added, regeneration requested",
        )

    return _approve_deliverable(db, deliverable, approver, owner_id)


def _approve_deliverable(
    db: Session,
    deliverable: models.Deliverable,
    approver: Approver,
    owner_id: Optional[UUID] = None,
    history_entry: Optional[dict[str, Any]] = None,
) -> ApprovalOutcome:
    deliverable_type = deliverable.deliverable_type
    deliverable_id = deliverable.id
    sign_off = _merge_sign_off(
        db, models.Deliverable, deliverable_id, approver,
        actor_id=str(owner_id) if owner_id else None,
        history_entry=history_entry,
    )

    agent_id, agent_name = _actor_label(approver)
    activity_log.record(
        db, agent_id, agent_name,
        f"Approved {deliverable_type} deliverable",
        metadata={
            "deliverable_id": str(deliverable_id),
            "approver": approver.value,
            "fully_approved": sign_off.fully_approved,
        },
    )

    outcome = ApprovalOutcome(deliverable=sign_off.row, fully_approved=sign_off.fully_approved)
    if approver == Approver.USER:
        outcome.user_approved = True
    return _finish_full_approval(db, outcome)


def _reject_deliverable(
    db: Session,
    deliverable: models.Deliverable,
    approver: Approver,
    feedback: str,
    status: DeliverableStatus,
    message: str,
) -> ApprovalOutcome:
    deliverable_type = deliverable.deliverable_type
    row = _reject(db, models.Deliverable, deliverable.id, approver, feedback, status.value)

    agent_id, agent_name = _actor_label(approver)
    activity_log.record(
        db, agent_id, agent_name,
        f"Requested revision of {deliverable_type} deliverable",
        metadata={"deliverable_id": str(row.id), "approver": approver.value, "feedback": feedback},
    )
    return ApprovalOutcome(
        deliverable=row,
        requires_regeneration=True,
        message=message,
        feedback=feedback,
    )


def _ceo_review_deliverable(
    db: Session,
    deliverable: models.Deliverable,
    reviewer: Optional[CEOReviewer],
) -> ApprovalOutcome:
    reviewer = reviewer or CEOReviewer()
    # Called before any write: an LLM failure leaves the row untouched
    verdict = reviewer.review_deliverable(deliverable)
    deliverable_type = deliverable.deliverable_type

    deliverable_id = deliverable.id

    if verdict.approved:
        sign_off = _merge_sign_off(
            db, models.Deliverable, deliverable_id, Approver.CEO,
            history_entry=_feedback_entry(Approver.CEO, verdict.feedback, approved=True),
        )
        outcome = ApprovalOutcome(deliverable=sign_off.row, fully_approved=sign_off.fully_approved)
    else:
        row = _reject(
            db, models.Deliverable, deliverable_id, Approver.CEO,
            verdict.feedback, DeliverableStatus.PENDING.value,
        )
        outcome = ApprovalOutcome(deliverable=row, requires_regeneration=True)

    outcome.ceo_approved = verdict.approved
    outcome.feedback = verdict.feedback

    activity_log.record(
        db, CEO_AGENT_ID, CEO_AGENT_NAME,
        f"Reviewed {deliverable_type}: {'Approved' if verdict.approved else 'Needs revision'}",
        metadata={
            "deliverable_id": str(deliverable_id),
            "quality_score": verdict.quality_score,
            "approved": verdict.approved,
        },
    )
    return _finish_full_approval(db, outcome)


# =============================================================================
# Websites
# =============================================================================

def submit_website_approval(
    db: Session,
    website_id: UUID,
    approver: Optional[Approver] = None,
    approved: Optional[bool] = None,
    feedback: Optional[str] = None,
    action: Optional[ApprovalAction] = None,
    owner_id: Optional[UUID] = None,
    reviewer: Optional[CEOReviewer] = None,
) -> ApprovalOutcome:
    """
    Record a CEO or user decision on a generated website.

    Same gate as deliverables. Rejected websites go to revision_requested and
    feedback entries carry the website version they apply to. A CEO rejection
    without feedback has the reviewer write the feedback.
    """
    website = _load(db, models.GeneratedWebsite, website_id, owner_id, "Website")
    version = website.version

    if action == ApprovalAction.CEO_REVIEW:
        reviewer = reviewer or CEOReviewer()
        verdict = reviewer.review_website(website)
        if verdict.approved:
            sign_off = _merge_sign_off(
                db, models.GeneratedWebsite, website_id, Approver.CEO,
                history_entry=_feedback_entry(Approver.CEO, verdict.feedback, True, version),
            )
            outcome = ApprovalOutcome(website=sign_off.row, fully_approved=sign_off.fully_approved)
        else:
            row = _reject(
                db, models.GeneratedWebsite, website_id, Approver.CEO,
                verdict.feedback, WebsiteStatus.REVISION_REQUESTED.value,
            )
            outcome = ApprovalOutcome(website=row, requires_regeneration=True)
        outcome.ceo_approved = verdict.approved
        outcome.feedback = verdict.feedback
        _record_website_activity(db, website_id, version, Approver.CEO, verdict.approved, outcome.fully_approved)
        return outcome

    if action == ApprovalAction.USER_APPROVE:
        approver, approved = Approver.USER, True
    elif action == ApprovalAction.USER_REJECT:
        if not feedback:
            raise InvalidRequestError("feedback is required to request a revision")
        approver, approved = Approver.USER, False
    elif approver is None:
        raise InvalidRequestError("approver is required")
    approver = Approver(approver)

    if not approved and approver == Approver.CEO and not feedback:
        reviewer = reviewer or CEOReviewer()
        feedback = reviewer.synthesize_rejection_feedback(website)

    if not approved and feedback:
        row = _reject(
            db, models.GeneratedWebsite, website_id, approver,
            feedback, WebsiteStatus.REVISION_REQUESTED.value,
        )
        _record_website_activity(db, website_id, version, approver, False, False)
        return ApprovalOutcome(
            website=row,
            requires_regeneration=True,
            message="Feedback submitted for website revision",
            feedback=feedback,
        )

    sign_off = _merge_sign_off(db, models.GeneratedWebsite, website_id, approver)
    _record_website_activity(db, website_id, version, approver, True, sign_off.fully_approved)
    outcome = ApprovalOutcome(website=sign_off.row, fully_approved=sign_off.fully_approved)
    if approver == Approver.USER:
        outcome.user_approved = True
    return outcome


def _record_website_activity(
    db: Session,
    website_id: UUID,
    version: int,
    approver: Approver,
    approved: bool,
    fully_approved: bool,
) -> None:
    agent_id, agent_name = _actor_label(approver)
    action = "Approved website" if approved else "Requested website revision"
    activity_log.record(
        db, agent_id, agent_name, action,
        metadata={
            "website_id": str(website_id),
            "version": version,
            "fully_approved": fully_approved,
        },
    )
