"""Shared FastAPI dependencies."""
from typing import Generator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .. import auth, models
from ..database import get_db
from ..reviewer import CEOReviewer

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the bearer token on the request; 401 when missing or invalid."""
    return auth.authenticate(db, credentials.credentials if credentials else None)


def get_reviewer() -> Generator[CEOReviewer, None, None]:
    """One LLM reviewer per request, closed afterwards."""
    reviewer = CEOReviewer()
    try:
        yield reviewer
    finally:
        reviewer.close()
