"""Static registry of agents, divisions and business phases.

Lookup only: the workflow uses these to label who produced or reviewed a
deliverable and to seed phase deliverables. Nothing here drives control flow.
"""
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Agent:
    id: str
    name: str
    role: str
    title: str
    reports_to: Optional[str] = None
    phase_number: Optional[int] = None


@dataclass(frozen=True)
class Division:
    id: str
    name: str
    manager_id: str
    manager_name: str
    phase: Optional[int]


@dataclass(frozen=True)
class DeliverableTemplate:
    name: str
    type: str


@dataclass(frozen=True)
class PhaseDefinition:
    number: int
    name: str
    division: str
    description: str
    deliverables: tuple[DeliverableTemplate, ...]
    entry_criteria: tuple[str, ...] = field(default_factory=tuple)
    exit_criteria: tuple[str, ...] = field(default_factory=tuple)


CEO_AGENT_ID = "ceo-agent"
CEO_AGENT_NAME = "CEO Agent"
USER_AGENT_ID = "user"
USER_AGENT_NAME = "User"
TEAM_MANAGER_NAME = "Team Manager"

EXECUTIVE_AGENTS: tuple[Agent, ...] = (
    Agent(CEO_AGENT_ID, CEO_AGENT_NAME, "executive", "Chief Executive Officer"),
    Agent("coo-agent", "COO Agent", "executive", "Chief Operating Officer", reports_to=CEO_AGENT_ID),
    Agent("cfo-agent", "CFO Agent", "executive", "Chief Financial Officer", reports_to=CEO_AGENT_ID),
)

DIVISIONS: tuple[Division, ...] = (
    Division("research", "Research Division", "head-of-research", "Head of Research", 1),
    Division("brand", "Brand & Design Division", "creative-director", "Creative Director", 2),
    Division("development", "Development Division", "head-of-development", "Head of Development", 3),
    Division("content", "Content Division", "content-director", "Content Director", 4),
    Division("marketing", "Marketing Division", "head-of-marketing", "Head of Marketing", 5),
    Division("sales", "Sales Division", "head-of-sales", "Head of Sales", 6),
    Division("operations", "Operations Division", "head-of-operations", "Head of Operations", None),
)

# One dedicated worker agent per phase
PHASE_AGENTS: tuple[Agent, ...] = (
    Agent("research-agent", "Research Agent", "member", "Market Research & Analysis", "head-of-research", 1),
    Agent("brand-agent", "Brand Agent", "member", "Brand Identity & Design", "creative-director", 2),
    Agent("development-agent", "Development Agent", "member", "Website Development & Build", "head-of-development", 3),
    Agent("content-agent", "Content Agent", "member", "Content Creation & Copywriting", "content-director", 4),
    Agent("marketing-agent", "Marketing Agent", "member", "Marketing Launch & Campaigns", "head-of-marketing", 5),
    Agent("sales-agent", "Sales Agent", "member", "Sales & Growth", "head-of-sales", 6),
)

BUSINESS_PHASES: tuple[PhaseDefinition, ...] = (
    PhaseDefinition(
        1, "Research & Discovery", "research",
        "Market research, competitor analysis, and opportunity identification",
        (
            DeliverableTemplate("Market Analysis Report", "report"),
            DeliverableTemplate("Competitor Landscape", "analysis"),
            DeliverableTemplate("Target Customer Profiles", "document"),
            DeliverableTemplate("Trend Forecast", "report"),
        ),
        ("Business idea defined", "Initial project created"),
        ("Market validated", "Target audience identified", "Competitive advantage defined"),
    ),
    PhaseDefinition(
        2, "Brand & Identity", "brand",
        "Brand identity creation, visual design, and brand guidelines",
        (
            DeliverableTemplate("Brand Strategy Document", "document"),
            DeliverableTemplate("Logo & Visual Identity", "design"),
            DeliverableTemplate("Brand Guidelines", "document"),
            DeliverableTemplate("Brand Voice & Messaging", "document"),
        ),
        ("Market research completed", "Target audience defined"),
        ("Brand identity approved", "Visual assets created", "Brand guidelines documented"),
    ),
    PhaseDefinition(
        3, "Development & Build", "development",
        "Product architecture, website/app development, and QA testing",
        (
            DeliverableTemplate("Technical Architecture", "document"),
            DeliverableTemplate("Landing Page", "website"),
            DeliverableTemplate("Product MVP", "code"),
            DeliverableTemplate("QA Test Report", "report"),
        ),
        ("Brand identity completed", "Visual assets ready"),
        ("Website deployed", "Product functional", "QA passed"),
    ),
    PhaseDefinition(
        4, "Content Creation", "content",
        "Content strategy, copywriting, SEO optimization, and media creation",
        (
            DeliverableTemplate("Content Strategy", "document"),
            DeliverableTemplate("Website Copy", "content"),
            DeliverableTemplate("Blog Articles", "content"),
            DeliverableTemplate("SEO Optimization Report", "report"),
        ),
        ("Website deployed", "Brand voice defined"),
        ("All content published", "SEO implemented", "Content calendar created"),
    ),
    PhaseDefinition(
        5, "Marketing Launch", "marketing",
        "Social media, paid advertising, influencer outreach, and PR",
        (
            DeliverableTemplate("Marketing Strategy", "document"),
            DeliverableTemplate("Social Media Campaigns", "campaign"),
            DeliverableTemplate("Ad Creatives", "design"),
            DeliverableTemplate("Influencer Partnerships", "partnerships"),
        ),
        ("Content ready", "Website live", "Budget allocated"),
        ("Campaigns launched", "Initial traffic generated", "Brand awareness established"),
    ),
    PhaseDefinition(
        6, "Sales & Growth", "sales",
        "Sales development, customer acquisition, and revenue generation",
        (
            DeliverableTemplate("Sales Playbook", "document"),
            DeliverableTemplate("Lead Pipeline", "data"),
            DeliverableTemplate("Customer Onboarding", "process"),
            DeliverableTemplate("Revenue Report", "report"),
        ),
        ("Marketing generating leads", "Product ready"),
        ("First customers acquired", "Revenue generated", "Growth metrics established"),
    ),
)

LAST_PHASE_NUMBER = BUSINESS_PHASES[-1].number

_AGENTS_BY_ID: dict[str, Agent] = {a.id: a for a in EXECUTIVE_AGENTS + PHASE_AGENTS}
_AGENTS_BY_ID.update({
    d.manager_id: Agent(d.manager_id, d.manager_name, "manager", d.name, "coo-agent", d.phase)
    for d in DIVISIONS
})


def get_agent(agent_id: str) -> Optional[Agent]:
    return _AGENTS_BY_ID.get(agent_id)


def agent_display_name(agent_id: Optional[str], default: Optional[str] = None) -> str:
    """Human-readable label for an agent id, falling back to the id itself."""
    if agent_id == USER_AGENT_ID:
        return USER_AGENT_NAME
    agent = _AGENTS_BY_ID.get(agent_id) if agent_id else None
    if agent:
        return agent.name
    return default or agent_id or "Unknown Agent"


def get_phase_by_number(phase_number: int) -> Optional[PhaseDefinition]:
    return next((p for p in BUSINESS_PHASES if p.number == phase_number), None)


def get_division_by_phase(phase_number: int) -> Optional[Division]:
    return next((d for d in DIVISIONS if d.phase == phase_number), None)


def get_next_phase(current_phase: int) -> Optional[PhaseDefinition]:
    if current_phase >= LAST_PHASE_NUMBER:
        return None
    return get_phase_by_number(current_phase + 1)
