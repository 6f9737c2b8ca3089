"""Back-office backend abstract base class -- the collaborator operations the wizard consumes.

The HTTP client talks to the real back-office API; tests substitute an
in-memory implementation. Persistence, matching, and the deal pipeline all
live behind this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.backoffice.proposals.schemas import (
    AssistantReply,
    AssistantRequest,
    Deal,
    ProposalCreate,
    ProposalRead,
    SpeakerMatchRequest,
    SpeakerMatchResponse,
)


class ProposalBackend(ABC):
    """Abstract interface for the back-office API used by the proposal wizard.

    Methods:
        list_deals: Fetch all deals visible to the caller.
        match_speakers: Rank speakers against event criteria.
        create_proposal: Persist a new proposal and return it.
        ask_assistant: Ask the step assistant a question about the current step.
    """

    @abstractmethod
    async def list_deals(self) -> list[Deal]:
        """Fetch all deals."""
        ...

    @abstractmethod
    async def match_speakers(self, request: SpeakerMatchRequest) -> SpeakerMatchResponse:
        """Request ranked speaker candidates for the given criteria."""
        ...

    @abstractmethod
    async def create_proposal(self, proposal: ProposalCreate) -> ProposalRead:
        """Create a proposal, return the persisted record (with id)."""
        ...

    @abstractmethod
    async def ask_assistant(self, request: AssistantRequest) -> AssistantReply:
        """Send one user message (plus recent history) to the step assistant."""
        ...
