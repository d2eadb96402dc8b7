"""Error taxonomy for the workflow service.

Every error carries the HTTP status it is serialized with. The API layer
turns each of them into a ``{"error": message}`` body; nothing here is
retried internally.
"""
from typing import Optional


class WorkflowError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnauthorizedError(WorkflowError):
    """Missing, unknown, revoked or expired bearer token."""

    status_code = 401


class ForbiddenError(WorkflowError):
    """Authenticated caller does not own the target entity."""

    status_code = 403


class NotFoundError(WorkflowError):
    """Unknown deliverable, website, team, member or phase."""

    status_code = 404

    def __init__(self, entity: str, identifier: Optional[object] = None):
        message = f"{entity} not found" if identifier is None else f"{entity} not found: {identifier}"
        super().__init__(message)
        self.entity = entity
        self.identifier = identifier


class InvalidRequestError(WorkflowError):
    """Missing or inconsistent request fields."""

    status_code = 400


class UpstreamError(WorkflowError):
    """Database or LLM call failure."""

    status_code = 500
