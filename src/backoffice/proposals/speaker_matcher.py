"""Speaker selection step -- ranked recommendations, local filters, and the chosen set.

On entry the step asks the matching service for candidates ranked against the
event criteria accumulated so far. The user narrows the list locally (text
search, budget fit) and toggles speakers in and out of the selection.

Fee ranges are free text ("$5,000 - $10,000", "$10K+", "Contact for pricing").
The fee kept for a selected speaker is an approximation: the first run of
digits times 1000. "$5,000" reads as 5 -> 5000, "$50,000" as 50 -> 50000.

Every matching request gets a sequence number. A response that arrives after
a newer request was issued is dropped, so a slow first search can never
overwrite the results of a later one.
"""

from __future__ import annotations

import re

import httpx
import structlog

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeAPIError
from src.backoffice.proposals.gates import can_leave, ensure_can_leave
from src.backoffice.proposals.money import CENTS_PER_DOLLAR, cents_to_dollars
from src.backoffice.proposals.notifications import NotificationCenter
from src.backoffice.proposals.schemas import (
    MatchCriteria,
    SelectedSpeaker,
    SpeakerCandidate,
    SpeakerMatchRequest,
    WizardData,
    WizardStep,
)
from src.backoffice.proposals.state import NextStep, UpdateWizardData, WizardSession, WizardState

logger = structlog.get_logger(__name__)

_DIGIT_RUN = re.compile(r"\d+")

# Fee ranges are quoted in thousands.
FEE_MULTIPLIER = 1000

FETCH_ERROR_MESSAGE = "Failed to load speaker recommendations. Please try again."


# ── Fee Derivation ──────────────────────────────────────────────────────────


def fee_lower_bound(fee_range: str | None) -> int | None:
    """First digit run of ``fee_range`` times 1000, or None when there are no digits."""
    if not fee_range:
        return None
    match = _DIGIT_RUN.search(fee_range)
    if match is None:
        return None
    return int(match.group(0)) * FEE_MULTIPLIER


def derive_fee(fee_range: str | None) -> int:
    """Whole-dollar fee recorded for a selected speaker (0 when unparseable)."""
    return fee_lower_bound(fee_range) or 0


# ── Pure Helpers ────────────────────────────────────────────────────────────


def build_match_criteria(data: WizardData) -> MatchCriteria:
    """Criteria for the matching service from the accumulated answers."""
    return MatchCriteria(
        event_type=data.event_type or None,
        event_location=data.event_location or None,
        budget=cents_to_dollars(data.budget_cents) if data.budget_cents is not None else None,
        attendee_count=data.attendee_count or None,
        topics=[data.main_theme] if data.main_theme else [],
        session_format=data.session_format,
    )


def matches_search(candidate: SpeakerCandidate, term: str) -> bool:
    """Case-insensitive substring match on name, title, or any topic."""
    if not term:
        return True
    needle = term.lower()
    if needle in candidate.name.lower():
        return True
    if candidate.title and needle in candidate.title.lower():
        return True
    return any(needle in topic.lower() for topic in candidate.topics)


def fits_budget(candidate: SpeakerCandidate, budget_cents: int | None) -> bool:
    """Whether the candidate's lowest quoted fee fits the budget.

    Candidates without a parseable fee, and every candidate when no budget
    is set, pass.
    """
    if not budget_cents:
        return True
    lower_bound = fee_lower_bound(candidate.speaking_fee_range)
    if lower_bound is None:
        return True
    return lower_bound * CENTS_PER_DOLLAR <= budget_cents


def to_selected_speaker(candidate: SpeakerCandidate) -> SelectedSpeaker:
    return SelectedSpeaker(
        id=candidate.id,
        name=candidate.name,
        slug=candidate.slug,
        title=candidate.title,
        bio=candidate.bio or candidate.short_bio or "",
        fee_cents=derive_fee(candidate.speaking_fee_range) * CENTS_PER_DOLLAR,
        image_url=candidate.headshot_url or "",
        match_score=candidate.match_score,
        match_reasons=list(candidate.match_reasons),
    )


def toggle_selection(
    selected: list[SelectedSpeaker], candidate: SpeakerCandidate
) -> list[SelectedSpeaker]:
    """Return the selection with ``candidate`` removed if present, else appended."""
    candidate_id = str(candidate.id)
    if any(str(s.id) == candidate_id for s in selected):
        return [s for s in selected if str(s.id) != candidate_id]
    return [*selected, to_selected_speaker(candidate)]


# ── Step Component ──────────────────────────────────────────────────────────


class SpeakerMatcher:
    """Second wizard step: shortlist and choose speakers.

    Args:
        backend: Speaker matching service.
        session: Shared wizard session.
        notifications: Where fetch failures are reported.
    """

    def __init__(
        self,
        backend: ProposalBackend,
        session: WizardSession,
        notifications: NotificationCenter,
    ) -> None:
        self._backend = backend
        self._session = session
        self._notifications = notifications
        self._candidates: list[SpeakerCandidate] = []
        self._issued_sequence = 0
        self._settled_sequence = 0
        self.search_term = ""
        self.filter_budget = True

    @property
    def loading(self) -> bool:
        """True while the most recently issued request has not settled."""
        return self._settled_sequence < self._issued_sequence

    @property
    def candidates(self) -> list[SpeakerCandidate]:
        """All candidates from the latest settled request, ranked."""
        return list(self._candidates)

    async def fetch_recommendations(self) -> list[SpeakerCandidate]:
        """Request candidates for the current criteria.

        Returns the candidate list after the request settles. Responses (and
        failures) belonging to a superseded request are ignored.
        """
        self._issued_sequence += 1
        sequence = self._issued_sequence
        data = self._session.data
        request = SpeakerMatchRequest(
            deal_id=data.deal_id,
            criteria=build_match_criteria(data),
        )

        try:
            response = await self._backend.match_speakers(request)
        except (httpx.HTTPError, BackofficeAPIError) as exc:
            if sequence != self._issued_sequence:
                logger.info("speaker_match.stale_failure_ignored", sequence=sequence)
                return self.candidates
            self._settled_sequence = sequence
            logger.warning(
                "speaker_match.fetch_failed",
                sequence=sequence,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._notifications.error(FETCH_ERROR_MESSAGE)
            return self.candidates

        if sequence != self._issued_sequence:
            logger.info(
                "speaker_match.stale_response_discarded",
                sequence=sequence,
                latest_sequence=self._issued_sequence,
            )
            return self.candidates

        self._settled_sequence = sequence
        self._candidates = list(response.speakers)
        logger.info(
            "speaker_match.loaded",
            sequence=sequence,
            candidate_count=len(self._candidates),
        )
        return self.candidates

    def filtered_candidates(self) -> list[SpeakerCandidate]:
        """Candidates passing the search term and (if enabled) the budget filter."""
        budget_cents = self._session.data.budget_cents
        return [
            c
            for c in self._candidates
            if matches_search(c, self.search_term)
            and (not self.filter_budget or fits_budget(c, budget_cents))
        ]

    def clear_filters(self) -> None:
        self.search_term = ""
        self.filter_budget = False

    def is_selected(self, candidate: SpeakerCandidate) -> bool:
        candidate_id = str(candidate.id)
        return any(str(s.id) == candidate_id for s in self._session.data.selected_speakers)

    def toggle(self, candidate: SpeakerCandidate) -> WizardState:
        """Add ``candidate`` to the selection, or remove it if already chosen."""
        was_selected = self.is_selected(candidate)
        selection = toggle_selection(self._session.data.selected_speakers, candidate)
        state = self._session.dispatch(UpdateWizardData(partial={"selected_speakers": selection}))
        logger.info(
            "speaker_match.selection_toggled",
            speaker_id=str(candidate.id),
            selected=not was_selected,
            selection_size=len(selection),
        )
        return state

    def can_proceed(self) -> bool:
        return can_leave(WizardStep.SPEAKER_SELECTION, self._session.data)

    def continue_to_services(self) -> WizardState:
        """Advance to the services step once at least one speaker is chosen.

        Raises:
            StepGateError: No speaker selected.
        """
        ensure_can_leave(WizardStep.SPEAKER_SELECTION, self._session.data)
        return self._session.dispatch(NextStep())
