"""
Core Data Models

Pydantic models representing the relationship graph: contacts, accounts and
deals as nodes, typed weighted edges between them, and tracked interactions.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class NodeType(str, Enum):
    """Node variants in the graph."""
    CONTACT = "contact"
    ACCOUNT = "account"
    DEAL = "deal"


class ContactRole(str, Enum):
    """Buying role of a contact."""
    DECISION_MAKER = "decision_maker"
    INFLUENCER = "influencer"
    END_USER = "end_user"


class DealStage(str, Enum):
    """Pipeline stages a deal moves through."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    CLOSED = "closed"


class EdgeType(str, Enum):
    """Relationship types between nodes."""
    REPORTS_TO = "reports_to"
    MANAGES = "manages"
    WORKS_AT = "works_at"
    BELONGS_TO = "belongs_to"
    DECISION_MAKER_FOR = "decision_maker_for"
    INFLUENCER_FOR = "influencer_for"
    FORMER_COLLEAGUE = "former_colleague"
    ALUMNI = "alumni"
    MUTUAL_CONNECTION = "mutual_connection"

    @property
    def is_structural(self) -> bool:
        """Employment and ownership edges, not person-to-person paths."""
        return self in (EdgeType.WORKS_AT, EdgeType.BELONGS_TO)

    @property
    def is_deal_role(self) -> bool:
        """Contact-to-deal buying role edges."""
        return self in (EdgeType.DECISION_MAKER_FOR, EdgeType.INFLUENCER_FOR)


class InteractionType(str, Enum):
    """Types of interactions tracked against a contact."""
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    NOTE = "note"
    TASK = "task"


class LinkedInProfile(BaseModel):
    """Profile block merged into a contact by enrichment."""
    profile_url: Optional[str] = None
    headline: Optional[str] = None
    summary: Optional[str] = None
    location: Optional[str] = None
    industry: Optional[str] = None
    connections: Optional[int] = None
    verified: bool = False
    last_enriched: Optional[datetime] = None


class Contact(BaseModel):
    """A person at an account."""
    type: Literal["contact"] = "contact"
    id: str
    name: str
    title: str = ""
    company: str = ""
    company_ref: Optional[str] = Field(
        default=None,
        description="Weak reference to an Account id",
    )
    email: str = ""
    phone: str = ""
    role: ContactRole = ContactRole.END_USER
    reports_to_ref: Optional[str] = Field(
        default=None,
        description="Weak reference to the manager's Contact id",
    )
    influence_score: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Derived score, recomputed by the store's scorer",
    )
    interaction_count: int = 0
    last_interaction: Optional[datetime] = None

    # Enrichment data
    location: str = ""
    industry: str = ""
    linkedin: Optional[LinkedInProfile] = None
    experience: list[dict] = Field(default_factory=list)
    education: list[dict] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)

    external_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)

    @property
    def first_name(self) -> str:
        parts = self.name.split()
        return parts[0] if parts else ""

    @property
    def has_linkedin_data(self) -> bool:
        return bool(self.linkedin and self.linkedin.verified)


class Account(BaseModel):
    """A company being sold into."""
    type: Literal["account"] = "account"
    id: str
    name: str
    industry: str = ""
    size: str = ""
    location: str = ""
    website: str = ""
    external_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)


class Deal(BaseModel):
    """An opportunity in the pipeline."""
    type: Literal["deal"] = "deal"
    id: str
    name: str
    value: float = Field(default=0.0, ge=0.0)
    stage: DealStage = DealStage.NEW
    probability: float = Field(default=0.0, ge=0.0, le=100.0)
    close_date: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    stage_entered_at: Optional[datetime] = None
    external_id: Optional[str] = None
    metadata: dict = Field(default_factory=dict)

    @property
    def is_closed(self) -> bool:
        return self.stage == DealStage.CLOSED


Node = Annotated[Union[Contact, Account, Deal], Field(discriminator="type")]


class Edge(BaseModel):
    """A directed, typed, weighted relationship between two nodes."""
    id: str
    source: str
    target: str
    type: EdgeType
    strength: float = Field(default=0.5, description="Clamped to [0, 1]")
    confirmed: bool = True
    metadata: dict = Field(default_factory=dict)

    @field_validator("strength")
    @classmethod
    def _clamp_strength(cls, value: float) -> float:
        return min(max(value, 0.0), 1.0)

    def touches(self, node_id: str) -> bool:
        return self.source == node_id or self.target == node_id

    def other_end(self, node_id: str) -> str:
        """Return the endpoint opposite to node_id."""
        return self.target if self.source == node_id else self.source

    def joins(self, a: str, b: str) -> bool:
        """True if this edge connects a and b in either direction."""
        return {self.source, self.target} == {a, b}


class Interaction(BaseModel):
    """A single timestamped touchpoint with a contact."""
    id: str = Field(default="", description="Unique interaction identifier")
    contact_id: str
    type: InteractionType
    date: datetime
    duration: Optional[float] = Field(default=None, description="Minutes")
    subject: str = ""
    notes: str = ""
    deal_id: Optional[str] = None
    completed: bool = True
    metadata: dict = Field(default_factory=dict)

    def model_post_init(self, __context) -> None:
        """Generate ID if not provided."""
        if not self.id:
            self.id = f"{self.contact_id}_{self.type.value}_{self.date.isoformat()}"


class GraphFilter(BaseModel):
    """Restrictions applied when extracting a subgraph."""
    account_id: Optional[str] = None
    deal_id: Optional[str] = None
    min_influence: Optional[int] = Field(default=None, ge=0, le=100)


class GraphData(BaseModel):
    """Nodes and edges handed to a visualisation."""
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @property
    def node_ids(self) -> set[str]:
        return {n.id for n in self.nodes}
