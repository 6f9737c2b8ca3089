"""Async HTTP client for the back-office REST API.

Provides BackofficeClient with retry logic (tenacity, 3 attempts, exponential
backoff 1-10s) on the read operations and the step assistant. Proposal
creation is sent once: the API has no idempotency key, so a retried POST
could create a duplicate.
All methods are async and log with structlog.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.backoffice.config import Settings, get_settings
from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.schemas import (
    AssistantReply,
    AssistantRequest,
    Deal,
    ProposalCreate,
    ProposalRead,
    SpeakerMatchRequest,
    SpeakerMatchResponse,
)

logger = structlog.get_logger(__name__)

_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


class BackofficeAPIError(Exception):
    """Raised when the API returns a body the wizard cannot use."""


class BackofficeClient(ProposalBackend):
    """Async client for the deal, speaker-match, proposal, and assistant endpoints.

    Args:
        base_url: Root URL of the back-office app (no trailing slash needed).
        api_token: Optional bearer token.
        read_timeout: Timeout in seconds for GET / matching requests.
        write_timeout: Timeout in seconds for proposal creation.
        assistant_timeout: Timeout in seconds for step assistant replies.
    """

    DEALS_PATH = "/api/deals"
    SPEAKER_MATCH_PATH = "/api/admin/tools/speaker-match"
    PROPOSALS_PATH = "/api/proposals"
    ASSISTANT_PATH = "/api/admin/tools/proposal-assistant"

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        read_timeout: float = 10.0,
        write_timeout: float = 30.0,
        assistant_timeout: float = 60.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._read_timeout = read_timeout
        self._write_timeout = write_timeout
        self._assistant_timeout = assistant_timeout
        self._headers = {"Content-Type": "application/json"}
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BackofficeClient:
        settings = settings or get_settings()
        return cls(
            base_url=settings.BACKOFFICE_API_URL,
            api_token=settings.BACKOFFICE_API_TOKEN,
            read_timeout=settings.BACKOFFICE_READ_TIMEOUT,
            write_timeout=settings.BACKOFFICE_WRITE_TIMEOUT,
            assistant_timeout=settings.BACKOFFICE_ASSISTANT_TIMEOUT,
        )

    def _client(self, timeout: float) -> httpx.AsyncClient:
        """Create a new httpx client with specified timeout."""
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=timeout,
        )

    @_read_retry
    async def list_deals(self) -> list[Deal]:
        """Fetch all deals.

        GET /api/deals returns a JSON array. Rows that do not validate as a
        Deal are skipped with a warning rather than failing the whole list.

        Returns:
            Parsed deals in API order.
        """
        async with self._client(self._read_timeout) as client:
            response = await client.get(f"{self._base_url}{self.DEALS_PATH}")
            response.raise_for_status()
            payload = response.json()

        if not isinstance(payload, list):
            raise BackofficeAPIError(
                f"Expected a list of deals, got {type(payload).__name__}"
            )

        deals: list[Deal] = []
        for row in payload:
            try:
                deals.append(Deal.model_validate(row))
            except ValidationError as exc:
                logger.warning(
                    "backoffice.deal_skipped",
                    deal_id=row.get("id") if isinstance(row, dict) else None,
                    errors=exc.error_count(),
                )
        logger.info(
            "backoffice.deals_listed",
            received=len(payload),
            parsed=len(deals),
        )
        return deals

    @_read_retry
    async def match_speakers(self, request: SpeakerMatchRequest) -> SpeakerMatchResponse:
        """Request ranked speaker candidates.

        POST /api/admin/tools/speaker-match with ``{dealId?, criteria}``.

        Args:
            request: Deal linkage and event criteria.

        Returns:
            Ranked candidates, best match first.
        """
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        async with self._client(self._read_timeout) as client:
            response = await client.post(
                f"{self._base_url}{self.SPEAKER_MATCH_PATH}",
                json=body,
            )
            response.raise_for_status()
            data = response.json()

        try:
            result = SpeakerMatchResponse.model_validate(data)
        except ValidationError as exc:
            raise BackofficeAPIError("Malformed speaker match response") from exc

        logger.info(
            "backoffice.speakers_matched",
            deal_id=request.deal_id,
            candidate_count=len(result.speakers),
        )
        return result

    async def create_proposal(self, proposal: ProposalCreate) -> ProposalRead:
        """Create a proposal.

        POST /api/proposals with the assembled payload.

        Args:
            proposal: Fully assembled proposal payload.

        Returns:
            The created proposal, including its id.
        """
        body: dict[str, Any] = proposal.model_dump(mode="json", exclude_none=True)
        async with self._client(self._write_timeout) as client:
            response = await client.post(
                f"{self._base_url}{self.PROPOSALS_PATH}",
                json=body,
            )
            response.raise_for_status()
            data = response.json()

        try:
            created = ProposalRead.model_validate(data)
        except ValidationError as exc:
            raise BackofficeAPIError("Proposal created but response has no id") from exc

        logger.info(
            "backoffice.proposal_created",
            proposal_id=created.id,
            status=proposal.status.value,
            deal_id=proposal.deal_id,
        )
        return created

    @_read_retry
    async def ask_assistant(self, request: AssistantRequest) -> AssistantReply:
        """Ask the step assistant.

        POST /api/admin/tools/proposal-assistant with
        ``{message, step, context, conversationHistory}``. Nothing is
        persisted server-side, so transient failures are retried.

        Args:
            request: User message, step index, context, and recent turns.

        Returns:
            The assistant's reply text and any suggestions.
        """
        body = request.model_dump(mode="json", by_alias=True)
        async with self._client(self._assistant_timeout) as client:
            response = await client.post(
                f"{self._base_url}{self.ASSISTANT_PATH}",
                json=body,
            )
            response.raise_for_status()
            data = response.json()

        try:
            reply = AssistantReply.model_validate(data)
        except ValidationError as exc:
            raise BackofficeAPIError("Malformed assistant response") from exc

        logger.info(
            "backoffice.assistant_replied",
            step=request.step,
            history_turns=len(request.conversation_history),
        )
        return reply
