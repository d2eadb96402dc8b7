"""Pydantic schemas for request/response validation.

Request bodies and response envelopes use camelCase keys on the wire;
entity rows (deliverables, websites, members) keep their column names.
"""
from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID
import enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from . import models
from .models import (
    Approver,
    DeliverableStatus,
    MemberRole,
    MemberStatus,
    PhaseStatus,
    WebsiteStatus,
)


class CamelModel(BaseModel):
    """Base for wire-level envelopes with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Feedback history
# =============================================================================

class FeedbackEntry(BaseModel):
    """One entry of a deliverable's or website's append-only feedback history."""

    model_config = ConfigDict(populate_by_name=True)

    from_: str = Field(..., alias="from", description="ceo, user or manager")
    feedback: str
    timestamp: datetime
    approved: bool
    version: Optional[int] = Field(None, description="Website version the feedback applies to")

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Generated content (tagged by deliverable_type)
# =============================================================================

class ReportSection(BaseModel):
    heading: str
    body: str = ""


class ReportContent(BaseModel):
    """Reports, analyses and documents."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["report"] = "report"
    summary: str
    title: Optional[str] = None
    sections: list[ReportSection] = Field(default_factory=list)
    key_findings: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class DesignAsset(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    url: Optional[str] = None
    description: Optional[str] = None


class DesignContent(BaseModel):
    """Logos, visual identities and ad creatives."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["design"] = "design"
    assets: list[DesignAsset]
    color_palette: list[str] = Field(default_factory=list)
    typography: Optional[dict[str, Any]] = None


class CodeContent(BaseModel):
    """Code artifacts and websites: file path → source."""

    model_config = ConfigDict(extra="allow")

    kind: Literal["code"] = "code"
    files: dict[str, str]
    language: Optional[str] = None
    entrypoint: Optional[str] = None


class RawContent(BaseModel):
    """Fallback for payload shapes not known for the deliverable type."""

    kind: Literal["raw"] = "raw"
    data: Any = None


GeneratedContent = Annotated[
    Union[ReportContent, DesignContent, CodeContent, RawContent],
    Field(discriminator="kind"),
]

CONTENT_MODEL_BY_TYPE: dict[str, type[BaseModel]] = {
    "report": ReportContent,
    "analysis": ReportContent,
    "document": ReportContent,
    "design": DesignContent,
    "code": CodeContent,
    "website": CodeContent,
}


def parse_generated_content(deliverable_type: str, payload: Any) -> Optional[BaseModel]:
    """Resolve a stored payload into the content shape for its deliverable type.

    Unknown types, non-object payloads and payloads that fail validation come
    back as RawContent so nothing stored is ever dropped.
    """
    if payload is None:
        return None
    content_model = CONTENT_MODEL_BY_TYPE.get(deliverable_type)
    if content_model is not None and isinstance(payload, dict):
        try:
            return content_model.model_validate({k: v for k, v in payload.items() if k != "kind"})
        except ValidationError:
            pass
    return RawContent(data=payload)


# =============================================================================
# Entity responses
# =============================================================================

class DeliverableResponse(BaseModel):
    """Schema for a phase deliverable row."""

    id: UUID
    phase_id: UUID
    user_id: UUID
    assigned_team_id: Optional[UUID] = None
    assigned_agent_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    deliverable_type: str
    status: DeliverableStatus
    generated_content: Optional[GeneratedContent] = None
    screenshots: list[str] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    feedback: Optional[str] = None
    feedback_history: list[FeedbackEntry] = Field(default_factory=list)
    ceo_approved: bool
    user_approved: bool
    reviewed_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    version: int
    created_at: datetime
    updated_at: datetime


class WebsiteResponse(BaseModel):
    """Schema for a generated website row (HTML omitted)."""

    id: UUID
    user_id: UUID
    project_id: Optional[UUID] = None
    name: str
    status: WebsiteStatus
    ceo_approved: bool
    user_approved: bool
    feedback_history: list[FeedbackEntry] = Field(default_factory=list)
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TeamMemberResponse(BaseModel):
    id: UUID
    team_id: UUID
    agent_id: str
    agent_name: str
    role: MemberRole
    status: MemberStatus
    current_task: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TeamResponse(BaseModel):
    id: UUID
    name: str
    division: str
    description: Optional[str] = None
    manager_agent_id: str
    status: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# Approval gate
# =============================================================================

class ApprovalAction(str, enum.Enum):
    """Explicit approval actions; omit to use approver/approved."""

    CEO_REVIEW = "ceo_review"
    USER_APPROVE = "user_approve"
    USER_REJECT = "user_reject"


class ApprovalRequest(CamelModel):
    """Body of POST /approve-deliverable."""

    deliverable_id: Optional[UUID] = None
    website_id: Optional[UUID] = None
    approver: Optional[Approver] = None
    approved: Optional[bool] = None
    feedback: Optional[str] = None
    action: Optional[ApprovalAction] = None


class ApprovalResponse(CamelModel):
    """Result of an approval gate call; unset keys are omitted."""

    success: bool = True
    message: Optional[str] = None
    deliverable: Optional[DeliverableResponse] = None
    website: Optional[WebsiteResponse] = None
    fully_approved: Optional[bool] = None
    requires_regeneration: Optional[bool] = None
    ceo_approved: Optional[bool] = None
    user_approved: Optional[bool] = None
    feedback: Optional[str] = None
    phase_completed: Optional[bool] = None
    next_phase: Optional[int] = None
    ready_for_hosting: Optional[bool] = None


# =============================================================================
# Team manager
# =============================================================================

class TeamAction(str, enum.Enum):
    ASSIGN_TASK = "assign_task"
    SUBMIT_FOR_REVIEW = "submit_for_review"
    APPROVE_DELIVERABLE = "approve_deliverable"
    REJECT_DELIVERABLE = "reject_deliverable"
    GET_TEAM_STATUS = "get_team_status"
    AUTO_ASSIGN_DELIVERABLES = "auto_assign_deliverables"


class TeamManagerRequest(CamelModel):
    """Body of POST /team-manager."""

    action: TeamAction
    team_id: UUID
    manager_id: Optional[str] = None
    deliverable_id: Optional[UUID] = None
    agent_id: Optional[str] = None
    content: Optional[Any] = None
    feedback: Optional[str] = None


class ManagerTransitionResponse(CamelModel):
    """The manager state change an action made, if any."""

    agent_id: str
    from_status: MemberStatus
    to_status: MemberStatus


class AssignmentResponse(CamelModel):
    deliverable_id: UUID
    deliverable: str
    agent_id: str
    agent: str


class TeamStats(CamelModel):
    total_members: int
    working: int
    idle: int
    pending_deliverables: int
    in_progress: int
    completed: int


class _TeamActionResult(CamelModel):
    success: bool = True
    manager_transition: Optional[ManagerTransitionResponse] = None


class AssignTaskResult(_TeamActionResult):
    action: Literal["assign_task"] = "assign_task"
    deliverable: DeliverableResponse


class SubmitForReviewResult(_TeamActionResult):
    action: Literal["submit_for_review"] = "submit_for_review"
    message: str = "Submitted for review"


class ApproveDeliverableResult(_TeamActionResult):
    action: Literal["approve_deliverable"] = "approve_deliverable"
    message: str = "Deliverable approved by manager, awaiting CEO and user sign-off"
    deliverable: DeliverableResponse


class RejectDeliverableResult(_TeamActionResult):
    action: Literal["reject_deliverable"] = "reject_deliverable"
    message: str = "Deliverable rejected with feedback"
    deliverable: DeliverableResponse


class TeamStatusResult(_TeamActionResult):
    action: Literal["get_team_status"] = "get_team_status"
    team: TeamResponse
    members: list[TeamMemberResponse]
    deliverables: list[DeliverableResponse]
    stats: TeamStats


class AutoAssignResult(_TeamActionResult):
    action: Literal["auto_assign_deliverables"] = "auto_assign_deliverables"
    assignments: list[AssignmentResponse]


TeamManagerResponse = Annotated[
    Union[
        AssignTaskResult,
        SubmitForReviewResult,
        ApproveDeliverableResult,
        RejectDeliverableResult,
        TeamStatusResult,
        AutoAssignResult,
    ],
    Field(discriminator="action"),
]


# =============================================================================
# Phase manager
# =============================================================================

class PhaseAction(str, enum.Enum):
    INITIALIZE_DELIVERABLES = "initialize_deliverables"
    CHECK_PHASE_COMPLETION = "check_phase_completion"


class PhaseManagerRequest(CamelModel):
    """Body of POST /phase-manager."""

    action: PhaseAction
    phase_id: UUID


class PhaseCompletionResult(CamelModel):
    action: Literal["check_phase_completion"] = "check_phase_completion"
    phase_id: UUID
    phase_name: str
    phase_number: int
    phase_status: PhaseStatus
    total_deliverables: int
    approved_deliverables: int
    progress: int
    is_complete: bool
    can_advance: bool
    exit_criteria: list[str] = Field(default_factory=list)
    next_phase_entry_criteria: list[str] = Field(default_factory=list)


class InitializeDeliverablesResult(CamelModel):
    action: Literal["initialize_deliverables"] = "initialize_deliverables"
    success: bool = True
    phase_id: UUID
    created: list[DeliverableResponse]


PhaseManagerResponse = Annotated[
    Union[PhaseCompletionResult, InitializeDeliverablesResult],
    Field(discriminator="action"),
]


# =============================================================================
# Converters
# =============================================================================

def deliverable_to_response(deliverable: models.Deliverable) -> DeliverableResponse:
    """Convert a Deliverable model to DeliverableResponse, resolving its content shape."""
    return DeliverableResponse(
        id=deliverable.id,
        phase_id=deliverable.phase_id,
        user_id=deliverable.user_id,
        assigned_team_id=deliverable.assigned_team_id,
        assigned_agent_id=deliverable.assigned_agent_id,
        name=deliverable.name,
        description=deliverable.description,
        deliverable_type=deliverable.deliverable_type,
        status=deliverable.status,
        generated_content=parse_generated_content(deliverable.deliverable_type, deliverable.generated_content),
        screenshots=deliverable.screenshots or [],
        citations=deliverable.citations or [],
        feedback=deliverable.feedback,
        feedback_history=[FeedbackEntry.model_validate(e) for e in deliverable.feedback_history or []],
        ceo_approved=bool(deliverable.ceo_approved),
        user_approved=bool(deliverable.user_approved),
        reviewed_by=deliverable.reviewed_by,
        approved_by=deliverable.approved_by,
        approved_at=deliverable.approved_at,
        version=deliverable.version,
        created_at=deliverable.created_at,
        updated_at=deliverable.updated_at,
    )
