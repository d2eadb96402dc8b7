"""Shared fixtures: a file-backed SQLite database per test plus seeded rows."""
import itertools
import os
from datetime import datetime, timedelta
from uuid import uuid4

# Must be set before shelvey_core.database builds its module-level engine
os.environ.setdefault("SHELVEY_DATABASE_URL", "sqlite://")
os.environ.setdefault("SHELVEY_LLM_API_KEY", "test-key")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from shelvey_core import auth, models
from shelvey_core.api.dependencies import get_reviewer
from shelvey_core.api.main import app
from shelvey_core.config import Settings
from shelvey_core.database import build_engine, get_db
from shelvey_core.reviewer import CEOReviewer

BASE_TIME = datetime(2026, 1, 1, 9, 0, 0)
LLM_BASE_URL = "https://llm.test/v1"


def llm_reply(content: str, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})


def make_reviewer(reply: str = "", status_code: int = 200, handler=None, requests=None) -> CEOReviewer:
    """CEOReviewer wired to an in-process transport instead of the network."""

    def default_handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return llm_reply(reply, status_code)

    client = httpx.Client(
        base_url=LLM_BASE_URL,
        transport=httpx.MockTransport(handler or default_handler),
    )
    settings = Settings(llm_base_url=LLM_BASE_URL, llm_api_key="test-key", llm_model="test-model")
    return CEOReviewer(settings=settings, client=client)


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'shelvey.db'}")
    models.Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = models.User(email="founder@example.com", full_name="Founder")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db):
    user = models.User(email="someone-else@example.com", full_name="Someone Else")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(db, user):
    _, raw_token = auth.create_access_token(db, user.id, "pytest")
    return {"Authorization": f"Bearer {raw_token}"}


def _member(team, offset, agent_id, agent_name, role, status):
    return models.TeamMember(
        team_id=team.id,
        agent_id=agent_id,
        agent_name=agent_name,
        role=role,
        status=status,
        created_at=BASE_TIME + timedelta(minutes=offset),
    )


@pytest.fixture
def team(db, user):
    """Research team: an active manager, an idle lead and two idle members."""
    team = models.Team(
        user_id=user.id,
        name="Research Team",
        division="research",
        manager_agent_id="head-of-research",
        activation_phase=1,
        status="active",
    )
    db.add(team)
    db.flush()
    db.add_all([
        _member(team, 0, "head-of-research", "Head of Research", "manager", "active"),
        _member(team, 1, "research-lead", "Research Lead", "lead", "idle"),
        _member(team, 2, "research-agent", "Research Agent", "member", "idle"),
        _member(team, 3, "trend-agent", "Trend Agent", "member", "idle"),
    ])
    db.commit()
    db.refresh(team)
    return team


@pytest.fixture
def member(db, team):
    def _get(agent_id):
        db.expire_all()
        return (
            db.query(models.TeamMember)
            .filter(models.TeamMember.team_id == team.id, models.TeamMember.agent_id == agent_id)
            .one()
        )
    return _get


@pytest.fixture
def project_id():
    return uuid4()


@pytest.fixture
def phase(db, user, team, project_id):
    phase = models.BusinessPhase(
        project_id=project_id,
        user_id=user.id,
        team_id=team.id,
        phase_number=1,
        phase_name="Research & Discovery",
        status="active",
        started_at=BASE_TIME,
    )
    db.add(phase)
    db.commit()
    db.refresh(phase)
    return phase


@pytest.fixture
def next_phase(db, user, project_id):
    phase = models.BusinessPhase(
        project_id=project_id,
        user_id=user.id,
        phase_number=2,
        phase_name="Brand & Identity",
        status="pending",
    )
    db.add(phase)
    db.commit()
    db.refresh(phase)
    return phase


@pytest.fixture
def make_deliverable(db, user, phase, team):
    counter = itertools.count()

    def _make(**overrides):
        i = next(counter)
        values = dict(
            phase_id=phase.id,
            user_id=user.id,
            assigned_team_id=team.id,
            name=f"Market Analysis Report {i}",
            description="Sizing of the target market",
            deliverable_type="report",
            status="review",
            generated_content={"summary": "The market is growing 12% a year."},
            feedback_history=[],
            screenshots=[],
            citations=[],
            created_at=BASE_TIME + timedelta(minutes=i),
        )
        values.update(overrides)
        deliverable = models.Deliverable(**values)
        db.add(deliverable)
        db.commit()
        db.refresh(deliverable)
        return deliverable

    return _make


@pytest.fixture
def make_website(db, user, project_id):
    def _make(**overrides):
        values = dict(
            user_id=user.id,
            project_id=project_id,
            name="Launch Site",
            html_content="<html><body><h1>Welcome</h1></body></html>",
            status="review",
            feedback_history=[],
            version=3,
        )
        values.update(overrides)
        website = models.GeneratedWebsite(**values)
        db.add(website)
        db.commit()
        db.refresh(website)
        return website

    return _make


@pytest.fixture
def reviewer():
    """Reviewer whose model approves with a score of 8."""
    return make_reviewer('{"quality_score": 8, "approved": true, "feedback": "Market-ready."}')


@pytest.fixture
def client(session_factory, reviewer):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reviewer] = lambda: reviewer
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def reload(db, entity):
    """Fresh copy of a row as committed by another session."""
    db.expire_all()
    return db.get(type(entity), entity.id)
