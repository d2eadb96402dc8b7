"""Best-effort audit trail of workflow actions."""
import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models

logger = logging.getLogger("shelvey-core.activity_log")


def record(
    db: Session,
    agent_id: str,
    agent_name: str,
    action: str,
    status: models.ActivityStatus = models.ActivityStatus.COMPLETED,
    metadata: Optional[dict[str, Any]] = None,
) -> Optional[models.AgentActivityLog]:
    """
    Append one activity log entry in its own commit.

    Call after the primary mutation has been committed. A failed write is
    rolled back and logged; it never undoes or fails the primary mutation.

    Args:
        db: Database session
        agent_id: Acting agent (or "user")
        agent_name: Display name of the acting agent
        action: Free-text description of what happened
        status: Outcome of the action
        metadata: Arbitrary JSON context

    Returns:
        The stored entry, or None if the write failed
    """
    entry = models.AgentActivityLog(
        agent_id=agent_id,
        agent_name=agent_name,
        action=action,
        status=models.ActivityStatus(status).value,
        metadata_=metadata,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"Failed to record activity '{action}' for {agent_id}: {e}")
        return None

    logger.debug(f"Recorded activity for {agent_id}: {action}")
    return entry


def list_recent(
    db: Session,
    agent_id: Optional[str] = None,
    limit: int = 50,
) -> list[models.AgentActivityLog]:
    """Newest-first activity entries, optionally for one agent."""
    query = db.query(models.AgentActivityLog)
    if agent_id:
        query = query.filter(models.AgentActivityLog.agent_id == agent_id)
    return query.order_by(models.AgentActivityLog.created_at.desc()).limit(limit).all()
