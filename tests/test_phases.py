"""Tests for phase seeding and completion."""
from uuid import uuid4

import pytest

from conftest import reload
from shelvey_core import activity_log, models, phases
from shelvey_core.exceptions import NotFoundError


class TestInitializeDeliverables:
    def test_creates_one_pending_deliverable_per_template(self, db, phase, team):
        created = phases.initialize_phase_deliverables(db, phase)

        assert [d.name for d in created] == [
            "Market Analysis Report",
            "Competitor Landscape",
            "Target Customer Profiles",
            "Trend Forecast",
        ]
        assert {d.status for d in created} == {"pending"}
        assert all(d.assigned_team_id == team.id for d in created)
        assert all(d.user_id == phase.user_id for d in created)

    def test_is_idempotent(self, db, phase):
        phases.initialize_phase_deliverables(db, phase)

        assert phases.initialize_phase_deliverables(db, phase) == []
        assert len(reload(db, phase).deliverables) == 4


class TestPhaseCompletion:
    def test_progress_counts_only_fully_approved(self, db, phase, make_deliverable):
        make_deliverable(status="approved", ceo_approved=True, user_approved=True)
        make_deliverable(status="review", ceo_approved=True)
        make_deliverable(status="review")
        make_deliverable(status="pending")

        progress = phases.check_phase_completion(db, phase.id)

        assert progress.total_deliverables == 4
        assert progress.approved_deliverables == 1
        assert progress.progress == 25
        assert progress.is_complete is False
        assert progress.can_advance is False

    def test_empty_phase_is_not_complete(self, db, phase):
        progress = phases.check_phase_completion(db, phase.id)

        assert progress.is_complete is False
        assert progress.progress == 0

    def test_unknown_phase(self, db):
        with pytest.raises(NotFoundError):
            phases.check_phase_completion(db, uuid4())

    def test_complete_phase_activates_next(self, db, phase, next_phase, make_deliverable):
        make_deliverable(status="approved", ceo_approved=True, user_approved=True)

        completed, next_number = phases.complete_phase_if_ready(db, phase.id)

        assert (completed, next_number) == (True, 2)
        assert reload(db, phase).status == "completed"
        activated = reload(db, next_phase)
        assert activated.status == "active"
        assert activated.started_at is not None

    def test_completion_reported_once(self, db, phase, next_phase, make_deliverable):
        make_deliverable(status="approved", ceo_approved=True, user_approved=True)
        phases.complete_phase_if_ready(db, phase.id)

        assert phases.complete_phase_if_ready(db, phase.id) == (False, None)

    def test_incomplete_phase_is_left_alone(self, db, phase, next_phase, make_deliverable):
        make_deliverable(status="review", ceo_approved=True)

        assert phases.complete_phase_if_ready(db, phase.id) == (False, None)
        assert reload(db, next_phase).status == "pending"

    def test_stale_session_does_not_complete_twice(self, db, session_factory, phase, next_phase, make_deliverable):
        make_deliverable(status="approved", ceo_approved=True, user_approved=True)
        stale = session_factory()
        try:
            # Loaded before the other session completes the phase
            assert stale.get(models.BusinessPhase, phase.id).status == "active"

            assert phases.complete_phase_if_ready(db, phase.id) == (True, 2)
            assert phases.complete_phase_if_ready(stale, phase.id) == (False, None)
        finally:
            stale.close()

        completions = [e for e in activity_log.list_recent(db) if e.action.startswith("Completed phase")]
        assert len(completions) == 1

    def test_progress_carries_phase_criteria(self, db, phase):
        progress = phases.check_phase_completion(db, phase.id)

        assert progress.exit_criteria == [
            "Market validated",
            "Target audience identified",
            "Competitive advantage defined",
        ]
        assert progress.next_phase_entry_criteria == ["Market research completed", "Target audience defined"]
