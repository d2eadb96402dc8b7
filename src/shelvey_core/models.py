"""SQLAlchemy database models."""
from datetime import datetime
from typing import Optional
from uuid import uuid4
import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()

# JSONB on Postgres (Supabase), plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class DeliverableStatus(str, enum.Enum):
    """Lifecycle status for phase deliverables.

    ``approved`` is reached only through the approval gate, when both the CEO
    and the user have signed off.
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    REVISION_REQUESTED = "revision_requested"
    REJECTED = "rejected"
    APPROVED = "approved"


class WebsiteStatus(str, enum.Enum):
    """Lifecycle status for generated websites."""

    DRAFT = "draft"
    PENDING = "pending"
    REVIEW = "review"
    REVISION_REQUESTED = "revision_requested"
    APPROVED = "approved"
    DEPLOYED = "deployed"


class Approver(str, enum.Enum):
    """The two principals whose sign-off finalizes a deliverable."""

    CEO = "ceo"
    USER = "user"


class MemberRole(str, enum.Enum):
    """Team member role enum."""

    MANAGER = "manager"
    LEAD = "lead"
    MEMBER = "member"


class MemberStatus(str, enum.Enum):
    """Team member activity status."""

    IDLE = "idle"
    WORKING = "working"
    REVIEWING = "reviewing"
    ACTIVE = "active"


class ActivityStatus(str, enum.Enum):
    """Outcome recorded on an activity log entry."""

    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"
    FAILED = "failed"


class PhaseStatus(str, enum.Enum):
    """Business phase status."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"


class User(Base):
    """Authenticated principal (the human approver)."""

    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<User {self.email}>"


class PersonalAccessToken(Base):
    """
    Personal Access Token for API authentication.

    Tokens are hashed before storage (like passwords); the raw value is only
    ever known to the caller presenting it as a bearer token.
    """

    __tablename__ = "personal_access_tokens"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)  # User-friendly name like "Dashboard - Laptop"
    token_hash = Column(String(255), nullable=False, unique=True, index=True)  # SHA-256 hash of token
    last_used_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)  # Optional expiration
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    revoked_at = Column(DateTime, nullable=True)  # Soft delete via revocation

    # Relationships
    user = relationship("User", backref="access_tokens")

    @property
    def is_active(self) -> bool:
        """Check if token is active (not revoked and not expired)."""
        if self.revoked_at:
            return False
        if self.expires_at and self.expires_at < datetime.utcnow():
            return False
        return True

    def __repr__(self) -> str:
        return f"<PersonalAccessToken {self.name} for user_id={self.user_id}>"


class Team(Base):
    """A division team: one manager plus leads and members."""

    __tablename__ = "teams"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    division = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    manager_agent_id = Column(String(100), nullable=False)
    activation_phase = Column(Integer, nullable=True)
    status = Column(String(30), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    members = relationship(
        "TeamMember",
        back_populates="team",
        order_by="TeamMember.created_at",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Team {self.name} ({self.division})>"


class TeamMember(Base):
    """An agent seated on a team.

    ``current_task`` is singular: a member works on at most one deliverable.
    """

    __tablename__ = "team_members"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    team_id = Column(Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    agent_id = Column(String(100), nullable=False, index=True)
    agent_name = Column(String(200), nullable=False)
    role = Column(String(20), nullable=False, default=MemberRole.MEMBER.value)
    status = Column(String(20), nullable=False, default=MemberStatus.IDLE.value, index=True)
    current_task = Column(Text, nullable=True)
    reports_to = Column(String(100), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    team = relationship("Team", back_populates="members")

    def __repr__(self) -> str:
        return f"<TeamMember {self.agent_id} ({self.role}, {self.status})>"


class BusinessPhase(Base):
    """A numbered stage of a project that groups deliverables."""

    __tablename__ = "business_phases"
    __table_args__ = (
        UniqueConstraint("project_id", "phase_number", name="uq_business_phase_project_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    project_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    team_id = Column(Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)
    phase_number = Column(Integer, nullable=False)
    phase_name = Column(String(200), nullable=False)
    status = Column(String(20), nullable=False, default=PhaseStatus.PENDING.value)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    deliverables = relationship("Deliverable", back_populates="phase", order_by="Deliverable.created_at")
    team = relationship("Team")

    def __repr__(self) -> str:
        return f"<BusinessPhase {self.phase_number}: {self.phase_name} ({self.status})>"


class Deliverable(Base):
    """A unit of work product moving through the approval workflow.

    ``status == "approved"`` holds exactly when both ``ceo_approved`` and
    ``user_approved`` are set. ``feedback_history`` is append-only.
    """

    __tablename__ = "phase_deliverables"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    phase_id = Column(Uuid(as_uuid=True), ForeignKey("business_phases.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_team_id = Column(Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)
    # Weak reference into the agent registry / team_members.agent_id (lookup only)
    assigned_agent_id = Column(String(100), nullable=True)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    deliverable_type = Column(String(50), nullable=False)
    status = Column(String(30), nullable=False, default=DeliverableStatus.PENDING.value, index=True)

    generated_content = Column(JSONType, nullable=True)
    screenshots = Column(JSONType, nullable=False, default=list)
    citations = Column(JSONType, nullable=False, default=list)
    feedback = Column(Text, nullable=True)
    feedback_history = Column(JSONType, nullable=False, default=list)

    # Two independent sign-offs
    ceo_approved = Column(Boolean, nullable=False, default=False)
    user_approved = Column(Boolean, nullable=False, default=False)
    reviewed_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)

    # Bumped on every approval gate write
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    phase = relationship("BusinessPhase", back_populates="deliverables")

    @property
    def fully_approved(self) -> bool:
        return is_fully_approved(self.ceo_approved, self.user_approved)

    def __repr__(self) -> str:
        return f"<Deliverable {self.name[:30]} ({self.status})>"


class GeneratedWebsite(Base):
    """A generated website going through the same two-party approval."""

    __tablename__ = "generated_websites"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    html_content = Column(Text, nullable=False, default="")
    status = Column(String(30), nullable=False, default=WebsiteStatus.DRAFT.value)
    ceo_approved = Column(Boolean, nullable=False, default=False)
    user_approved = Column(Boolean, nullable=False, default=False)
    feedback_history = Column(JSONType, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def fully_approved(self) -> bool:
        return is_fully_approved(self.ceo_approved, self.user_approved)

    def __repr__(self) -> str:
        return f"<GeneratedWebsite {self.name[:30]} v{self.version} ({self.status})>"


class AgentActivityLog(Base):
    """Append-only audit trail of workflow actions, for UI display."""

    __tablename__ = "agent_activity_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    agent_id = Column(String(100), nullable=False, index=True)
    agent_name = Column(String(200), nullable=False)
    action = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=ActivityStatus.COMPLETED.value)
    # "metadata" is reserved on declarative classes
    metadata_ = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    def __repr__(self) -> str:
        return f"<AgentActivityLog {self.agent_id}: {self.action[:30]}>"


def is_fully_approved(ceo_approved: Optional[bool], user_approved: Optional[bool]) -> bool:
    """The conjunction that defines an approved deliverable or website."""
    return bool(ceo_approved) and bool(user_approved)
