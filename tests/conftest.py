"""Shared fixtures for proposal wizard tests.

Provides:
- InMemoryProposalBackend: ProposalBackend test double with scripted responses
- Deal / candidate factories with sensible defaults
- A fixed clock and a ProposalWizard wired to the in-memory backend
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.notifications import NotificationCenter
from src.backoffice.proposals.schemas import (
    AssistantReply,
    AssistantRequest,
    Deal,
    ProposalCreate,
    ProposalRead,
    SpeakerCandidate,
    SpeakerMatchRequest,
    SpeakerMatchResponse,
)
from src.backoffice.proposals.state import WizardSession
from src.backoffice.proposals.wizard import ProposalWizard

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


# ── In-Memory Test Double ────────────────────────────────────────────────────


class InMemoryProposalBackend(ProposalBackend):
    """In-memory ProposalBackend for testing without the back-office API.

    Setting ``deals_error``, ``match_error``, ``create_error`` or
    ``assistant_error`` makes the corresponding call raise it. Created
    payloads are kept in ``created``, assistant requests in
    ``assistant_requests``.
    """

    def __init__(
        self,
        deals: list[Deal] | None = None,
        candidates: list[SpeakerCandidate] | None = None,
    ) -> None:
        self.deals = deals or []
        self.candidates = candidates or []
        self.deals_error: Exception | None = None
        self.match_error: Exception | None = None
        self.create_error: Exception | None = None
        self.assistant_error: Exception | None = None
        self.assistant_reply = "Happy to help."
        self.match_requests: list[SpeakerMatchRequest] = []
        self.created: list[ProposalCreate] = []
        self.assistant_requests: list[AssistantRequest] = []

    async def list_deals(self) -> list[Deal]:
        if self.deals_error is not None:
            raise self.deals_error
        return list(self.deals)

    async def match_speakers(self, request: SpeakerMatchRequest) -> SpeakerMatchResponse:
        self.match_requests.append(request)
        if self.match_error is not None:
            raise self.match_error
        return SpeakerMatchResponse(speakers=list(self.candidates), total=len(self.candidates))

    async def create_proposal(self, proposal: ProposalCreate) -> ProposalRead:
        if self.create_error is not None:
            raise self.create_error
        self.created.append(proposal)
        return ProposalRead(
            id=len(self.created),
            title=proposal.title,
            status=proposal.status.value,
            version=proposal.version,
        )

    async def ask_assistant(self, request: AssistantRequest) -> AssistantReply:
        self.assistant_requests.append(request)
        if self.assistant_error is not None:
            raise self.assistant_error
        return AssistantReply(response=self.assistant_reply)


class ScriptedMatchBackend(InMemoryProposalBackend):
    """Backend whose match responses are released manually, in any order."""

    def __init__(self) -> None:
        super().__init__()
        self._pending: list[tuple[asyncio.Event, list[SpeakerCandidate]]] = []

    def script(self, candidates: list[SpeakerCandidate]) -> asyncio.Event:
        release = asyncio.Event()
        self._pending.append((release, candidates))
        return release

    async def match_speakers(self, request: SpeakerMatchRequest) -> SpeakerMatchResponse:
        self.match_requests.append(request)
        release, candidates = self._pending.pop(0)
        await release.wait()
        return SpeakerMatchResponse(speakers=candidates)


# ── Factories ────────────────────────────────────────────────────────────────


def _make_deal(**overrides: Any) -> Deal:
    """Create a test Deal with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": 1,
        "client_name": "Dana Reyes",
        "client_email": "dana@acme.example",
        "company": "Acme Corp",
        "event_title": "Acme Leadership Summit",
        "event_date": "2026-06-15",
        "event_location": "San Francisco, CA",
        "event_type": "conference",
        "attendee_count": 250,
        "deal_value": 25000,
        "status": "qualified",
        "priority": "medium",
    }
    defaults.update(overrides)
    return Deal.model_validate(defaults)


def _make_candidate(**overrides: Any) -> SpeakerCandidate:
    """Create a test SpeakerCandidate with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": 101,
        "name": "Ada Byron",
        "slug": "ada-byron",
        "title": "AI Researcher",
        "bio": "Pioneer of applied machine learning.",
        "headshot_url": "https://img.example/ada.jpg",
        "speaking_fee_range": "$10,000 - $20,000",
        "match_score": 87,
        "match_reasons": ["Expert in AI"],
        "topics": ["Artificial Intelligence", "Ethics"],
    }
    defaults.update(overrides)
    return SpeakerCandidate.model_validate(defaults)


def _connect_error(message: str = "connection refused") -> httpx.ConnectError:
    return httpx.ConnectError(message, request=httpx.Request("GET", "https://backoffice.test"))


# ── Fixtures ─────────────────────────────────────────────────────────────────


@pytest.fixture
def backend() -> InMemoryProposalBackend:
    return InMemoryProposalBackend()


@pytest.fixture
def session() -> WizardSession:
    return WizardSession()


@pytest.fixture
def notifications() -> NotificationCenter:
    return NotificationCenter()


@pytest.fixture
def wizard(backend: InMemoryProposalBackend) -> ProposalWizard:
    return ProposalWizard(backend, clock=lambda: FIXED_NOW)


@pytest.fixture
def scripted_backend() -> ScriptedMatchBackend:
    return ScriptedMatchBackend()


@pytest.fixture
def make_deal():
    """Factory fixture for Deal objects."""
    return _make_deal


@pytest.fixture
def make_candidate():
    """Factory fixture for SpeakerCandidate objects."""
    return _make_candidate


@pytest.fixture
def connect_error():
    """Factory fixture for transient httpx connection errors."""
    return _connect_error


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
