"""Pydantic schemas for the proposal wizard.

Defines all structured types the wizard reads, accumulates, and submits:
- Enums: DealStatus, DealPriority, ProposalStatus, WizardStep
- Deal source data: Deal
- Speaker matching: MatchCriteria, SpeakerMatchRequest, SpeakerCandidate,
  SpeakerMatchResponse, SelectedSpeaker
- Pricing: ServiceLineItem, PaymentMilestone, Deliverable
- Aggregate answer-set: WizardData
- Persistence payloads: ProposalSpeaker, ProposalService, ProposalCreate, ProposalRead
- Step assistant: AssistantRole, AssistantMessage, AssistantRequest, AssistantReply

Money inside the wizard is integer cents (``*_cents`` fields). Wire models
carry dollars.
"""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum, IntEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from src.backoffice.proposals.money import cents_to_dollars


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStatus(str, Enum):
    """CRM pipeline status of a deal."""

    LEAD = "lead"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    WON = "won"
    LOST = "lost"


class DealPriority(str, Enum):
    """Sales priority assigned to a deal."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProposalStatus(str, Enum):
    """Status a finalized proposal is created with."""

    DRAFT = "draft"
    SENT = "sent"


class WizardStep(IntEnum):
    """Ordered steps of the proposal wizard."""

    DEAL_SELECTION = 0
    SPEAKER_SELECTION = 1
    SERVICES = 2
    REVIEW = 3


# ── Deals ───────────────────────────────────────────────────────────────────


class Deal(BaseModel):
    """A sales opportunity as returned by the deal list endpoint.

    Read-only from the wizard's perspective. ``event_date`` is kept as the raw
    string the API sent; the deal selector parses it.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | str
    client_name: str = ""
    client_email: str = ""
    company: str | None = None
    event_title: str = ""
    event_date: str | None = None
    event_location: str | None = None
    event_type: str | None = None
    attendee_count: int = 0
    deal_value: float = 0.0
    status: DealStatus
    priority: DealPriority = DealPriority.MEDIUM
    speaker_requested: str | None = None

    @field_validator("attendee_count", "deal_value", mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0 if value is None else value


# ── Speaker Matching ────────────────────────────────────────────────────────


class MatchCriteria(BaseModel):
    """Event criteria sent to the speaker matching service."""

    event_type: str | None = None
    event_location: str | None = None
    budget: float | None = None
    attendee_count: int | None = None
    topics: list[str] = Field(default_factory=list)
    session_format: str | None = None


class SpeakerMatchRequest(BaseModel):
    """Request body for the speaker matching endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    deal_id: str | None = Field(default=None, serialization_alias="dealId")
    criteria: MatchCriteria


class SpeakerCandidate(BaseModel):
    """A ranked speaker recommendation supplied by the matching service."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int | str
    name: str
    slug: str | None = None
    title: str | None = None
    bio: str | None = None
    short_bio: str | None = None
    headshot_url: str | None = None
    speaking_fee_range: str | None = None
    match_score: float = Field(default=0.0, ge=0.0, le=100.0)
    match_reasons: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    industries: list[str] = Field(default_factory=list)

    @field_validator("match_score", mode="before")
    @classmethod
    def _missing_score(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("match_reasons", "topics", "industries", mode="before")
    @classmethod
    def _coerce_string_list(cls, value: Any) -> Any:
        # Speaker rows sometimes carry topics as a JSON-encoded string.
        if value is None:
            return []
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                return [value] if value else []
            return decoded if isinstance(decoded, list) else [str(decoded)]
        return value


class SpeakerMatchResponse(BaseModel):
    """Response of the speaker matching endpoint."""

    model_config = ConfigDict(extra="ignore")

    speakers: list[SpeakerCandidate] = Field(default_factory=list)
    total: int | None = None


class SelectedSpeaker(BaseModel):
    """Projection of a chosen SpeakerCandidate kept in WizardData."""

    model_config = ConfigDict(frozen=True)

    id: int | str
    name: str
    slug: str | None = None
    title: str | None = None
    bio: str = ""
    fee_cents: int = Field(default=0, ge=0)
    image_url: str = ""
    match_score: float | None = None
    match_reasons: list[str] = Field(default_factory=list)


# ── Pricing ─────────────────────────────────────────────────────────────────


class ServiceLineItem(BaseModel):
    """One priced, optionally included service in the proposal package.

    ``locked`` items may be edited and toggled but never removed.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    description: str = ""
    price_cents: int = Field(default=0, ge=0)
    included: bool = False
    locked: bool = False


class PaymentMilestone(BaseModel):
    """One scheduled installment of the total investment."""

    model_config = ConfigDict(frozen=True)

    milestone: str
    percentage: int = Field(ge=0, le=100)
    amount_cents: int = Field(exclude=True)
    due_date: str

    @computed_field  # type: ignore[prop-decorator]
    @property
    def amount(self) -> float:
        return cents_to_dollars(self.amount_cents)


class Deliverable(BaseModel):
    """A fixed deliverable listed on every generated proposal."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    timeline: str


# ── Wizard Aggregate ────────────────────────────────────────────────────────


class WizardData(BaseModel):
    """The accumulated answer-set shared by every wizard step.

    Fields are merged shallowly: a merge replaces whole values, so callers
    pass already computed lists rather than deltas. Unknown keys are rejected.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    deal_id: str | None = None

    # Client
    client_name: str = ""
    client_email: str = ""
    client_company: str = ""

    # Event
    event_title: str = ""
    event_date: date | None = None
    event_location: str = ""
    event_type: str = ""
    event_format: str | None = None
    attendee_count: int = Field(default=0, ge=0)
    budget_cents: int | None = None

    # Populated by an earlier event-clarification collaborator
    main_theme: str | None = None
    session_format: str | None = None
    speaker_preferences: str | None = None

    # Accumulated by the steps
    selected_speakers: list[SelectedSpeaker] = Field(default_factory=list)
    services: list[ServiceLineItem] = Field(default_factory=list)
    payment_terms: str = "50% deposit upon signing, balance due 7 days before the event"
    valid_days: int = Field(default=30, gt=0)
    total_investment_cents: int = Field(default=0, ge=0)

    @field_validator("selected_speakers")
    @classmethod
    def _unique_speaker_ids(cls, speakers: list[SelectedSpeaker]) -> list[SelectedSpeaker]:
        ids = [str(s.id) for s in speakers]
        if len(ids) != len(set(ids)):
            raise ValueError("selected_speakers contains duplicate ids")
        return speakers

    def merge(self, partial: dict[str, Any]) -> WizardData:
        """Return a new WizardData with ``partial`` shallow-merged over this one."""
        current = {name: getattr(self, name) for name in type(self).model_fields}
        current.update(partial)
        return type(self).model_validate(current)


# ── Proposal Payloads ───────────────────────────────────────────────────────


class ProposalSpeaker(BaseModel):
    """Speaker entry of a proposal payload."""

    name: str
    slug: str | None = None
    title: str | None = None
    bio: str = ""
    topics: list[str] = Field(default_factory=list)
    fee: float = 0.0
    image_url: str = ""


class ProposalService(BaseModel):
    """Service entry of a proposal payload."""

    name: str
    description: str = ""
    price: float = 0.0
    included: bool = False


class ProposalCreate(BaseModel):
    """Full payload submitted to the proposal creation endpoint."""

    deal_id: str | None = None
    title: str
    status: ProposalStatus

    client_name: str
    client_email: str
    client_company: str | None = None

    event_title: str
    event_date: str | None = None
    event_location: str | None = None
    event_type: str | None = None
    event_format: str | None = None
    attendee_count: int | None = None

    speakers: list[ProposalSpeaker] = Field(default_factory=list)
    services: list[ProposalService] = Field(default_factory=list)
    total_investment: float = 0.0
    payment_terms: str | None = None
    payment_schedule: list[PaymentMilestone] = Field(default_factory=list)
    deliverables: list[Deliverable] = Field(default_factory=list)

    valid_until: datetime
    version: int = 1


class ProposalRead(BaseModel):
    """Proposal as returned by the API after creation."""

    model_config = ConfigDict(extra="allow")

    id: int | str
    title: str | None = None
    status: str | None = None
    version: int | None = None
    proposal_number: str | None = None


# ── Step Assistant ──────────────────────────────────────────────────────────


AssistantRole = Literal["user", "assistant"]


class AssistantMessage(BaseModel):
    """One turn of the step assistant conversation."""

    model_config = ConfigDict(frozen=True)

    role: AssistantRole
    content: str
    timestamp: datetime


class AssistantRequest(BaseModel):
    """Request body for the proposal assistant endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    step: int
    context: dict[str, Any] = Field(default_factory=dict)
    conversation_history: list[AssistantMessage] = Field(
        default_factory=list, serialization_alias="conversationHistory"
    )


class AssistantReply(BaseModel):
    """Response of the proposal assistant endpoint."""

    model_config = ConfigDict(extra="ignore")

    response: str
    suggestions: list[str] = Field(default_factory=list)
