"""Personal access token authentication."""
import hashlib
import logging
import secrets
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .exceptions import UnauthorizedError

logger = logging.getLogger("shelvey-core.auth")

TOKEN_PREFIX = "shv_"


def hash_token(token: str) -> str:
    """SHA-256 hex digest stored in place of the raw token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_access_token(
    db: Session,
    user_id: UUID,
    name: str,
    expires_at: Optional[datetime] = None,
) -> tuple[models.PersonalAccessToken, str]:
    """
    Issue a new personal access token for a user.

    Returns:
        (stored token row, raw token). The raw token is not recoverable later.
    """
    raw_token = TOKEN_PREFIX + secrets.token_urlsafe(32)
    token = models.PersonalAccessToken(
        user_id=user_id,
        name=name,
        token_hash=hash_token(raw_token),
        expires_at=expires_at,
    )
    db.add(token)
    db.commit()
    db.refresh(token)
    logger.info(f"Issued access token '{name}' for user {user_id}")
    return token, raw_token


def authenticate(db: Session, raw_token: Optional[str]) -> models.User:
    """
    Resolve a bearer token to its user.

    Raises:
        UnauthorizedError: Token missing, unknown, revoked or expired
    """
    if not raw_token:
        raise UnauthorizedError("Missing authorization header")

    token = (
        db.query(models.PersonalAccessToken)
        .filter(models.PersonalAccessToken.token_hash == hash_token(raw_token))
        .first()
    )
    if token is None or not token.is_active:
        logger.warning("Rejected unknown, revoked or expired access token")
        raise UnauthorizedError("Unauthorized")

    token.last_used_at = datetime.utcnow()
    try:
        db.commit()
    except SQLAlchemyError as e:
        # last_used_at is informational
        db.rollback()
        logger.warning(f"Failed to update last_used_at for token {token.id}: {e}")

    return token.user
