"""API routers for ShelVey Core."""

from . import approvals, phases, team_manager

__all__ = ["approvals", "phases", "team_manager"]
