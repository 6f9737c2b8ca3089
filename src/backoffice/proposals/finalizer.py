"""Review step -- assemble the proposal payload and persist it.

"Save as Draft" and "Generate & Send" share one path and differ only in the
status sent. Every successful call creates a new proposal at version 1; the
wizard never edits an existing one.

Payment milestones are computed in cents. Every milestone but the last is a
rounded percentage of the total; the last takes the remainder, so the
schedule always sums to the total exactly.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import httpx
import structlog
from pydantic import BaseModel

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeAPIError
from src.backoffice.proposals.gates import StepGateError, ensure_can_leave
from src.backoffice.proposals.money import cents_to_dollars, percentage_of
from src.backoffice.proposals.notifications import NotificationCenter
from src.backoffice.proposals.schemas import (
    Deliverable,
    PaymentMilestone,
    ProposalCreate,
    ProposalRead,
    ProposalService,
    ProposalSpeaker,
    ProposalStatus,
    WizardData,
    WizardStep,
)
from src.backoffice.proposals.state import WizardError, WizardSession

logger = structlog.get_logger(__name__)

PROPOSAL_VERSION = 1

# (milestone, percentage, due date label); percentages sum to 100.
PAYMENT_MILESTONES: tuple[tuple[str, int, str], ...] = (
    ("Deposit", 50, "Upon signing"),
    ("Final Payment", 50, "7 days before event"),
)

DEFAULT_DELIVERABLES: tuple[Deliverable, ...] = (
    Deliverable(
        name="Pre-event consultation",
        description="Virtual meeting to align on objectives",
        timeline="2 weeks before event",
    ),
    Deliverable(
        name="Customized presentation",
        description="Tailored content for your audience",
        timeline="1 week before event",
    ),
)

SUCCESS_MESSAGES: dict[ProposalStatus, str] = {
    ProposalStatus.DRAFT: "Proposal saved as draft",
    ProposalStatus.SENT: "Proposal generated and ready to send",
}
FAILURE_MESSAGE = "Failed to generate proposal. Please try again."


class SubmissionInProgressError(WizardError):
    """Raised when a submit is attempted while another is still pending."""

    def __init__(self) -> None:
        super().__init__("A proposal submission is already in progress")


class FinalizationResult(BaseModel):
    """Outcome of a finalize attempt."""

    success: bool
    status: ProposalStatus
    proposal: ProposalRead | None = None
    error: str | None = None


# ── Payload Assembly ────────────────────────────────────────────────────────


def build_payment_schedule(total_cents: int) -> list[PaymentMilestone]:
    """Split ``total_cents`` over PAYMENT_MILESTONES; the last entry takes the remainder."""
    schedule: list[PaymentMilestone] = []
    allocated = 0
    last_index = len(PAYMENT_MILESTONES) - 1
    for index, (milestone, percentage, due_date) in enumerate(PAYMENT_MILESTONES):
        if index == last_index:
            amount = total_cents - allocated
        else:
            amount = percentage_of(total_cents, percentage)
        allocated += amount
        schedule.append(
            PaymentMilestone(
                milestone=milestone,
                percentage=percentage,
                amount_cents=amount,
                due_date=due_date,
            )
        )
    return schedule


def compute_valid_until(created_at: datetime, valid_days: int) -> datetime:
    return created_at + timedelta(days=valid_days)


def build_proposal_payload(
    data: WizardData,
    status: ProposalStatus,
    created_at: datetime,
) -> ProposalCreate:
    """Assemble the full creation payload from the wizard answers."""
    return ProposalCreate(
        deal_id=data.deal_id or None,
        title=f"{data.event_title} - Proposal",
        status=status,
        client_name=data.client_name,
        client_email=data.client_email,
        client_company=data.client_company or None,
        event_title=data.event_title,
        event_date=data.event_date.isoformat() if data.event_date else None,
        event_location=data.event_location or None,
        event_type=data.event_type or None,
        event_format=data.event_format,
        attendee_count=data.attendee_count,
        speakers=[
            ProposalSpeaker(
                name=s.name,
                slug=s.slug,
                title=s.title,
                bio=s.bio,
                topics=[],
                fee=cents_to_dollars(s.fee_cents),
                image_url=s.image_url,
            )
            for s in data.selected_speakers
        ],
        services=[
            ProposalService(
                name=item.name,
                description=item.description,
                price=cents_to_dollars(item.price_cents),
                included=item.included,
            )
            for item in data.services
        ],
        total_investment=cents_to_dollars(data.total_investment_cents),
        payment_terms=data.payment_terms,
        payment_schedule=build_payment_schedule(data.total_investment_cents),
        deliverables=list(DEFAULT_DELIVERABLES),
        valid_until=compute_valid_until(created_at, data.valid_days),
        version=PROPOSAL_VERSION,
    )


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Step Component ──────────────────────────────────────────────────────────


class ProposalFinalizer:
    """Final wizard step: submit the proposal as draft or sent.

    The session is never reset here; on success the caller navigates to the
    created proposal. On failure the user stays on review with every answer
    intact and may retry.

    Args:
        backend: Proposal persistence API.
        session: Shared wizard session (read only).
        notifications: Where outcomes are reported.
        clock: Returns the creation timestamp; defaults to UTC now.
    """

    def __init__(
        self,
        backend: ProposalBackend,
        session: WizardSession,
        notifications: NotificationCenter,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._backend = backend
        self._session = session
        self._notifications = notifications
        self._clock = clock
        self._submitting = False

    @property
    def submitting(self) -> bool:
        """True while a submission is in flight (submit controls disabled)."""
        return self._submitting

    def preview(self, status: ProposalStatus = ProposalStatus.DRAFT) -> ProposalCreate:
        """Payload that would be submitted right now."""
        return build_proposal_payload(self._session.data, status, self._clock())

    async def submit(self, status: ProposalStatus) -> FinalizationResult:
        """Assemble and persist the proposal with the given status.

        Raises:
            SubmissionInProgressError: Another submission is still pending.
            StepGateError: The wizard is not on the review step, or no
                speaker is selected.
        """
        if self._submitting:
            raise SubmissionInProgressError()
        if self._session.step != WizardStep.REVIEW:
            raise StepGateError(self._session.step, "proposals are submitted from the review step")
        ensure_can_leave(WizardStep.SPEAKER_SELECTION, self._session.data)

        self._submitting = True
        try:
            payload = build_proposal_payload(self._session.data, status, self._clock())
            try:
                proposal = await self._backend.create_proposal(payload)
            except (httpx.HTTPError, BackofficeAPIError) as exc:
                logger.error(
                    "finalizer.submit_failed",
                    status=status.value,
                    deal_id=payload.deal_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                self._notifications.error(FAILURE_MESSAGE)
                return FinalizationResult(success=False, status=status, error=str(exc))
        finally:
            self._submitting = False

        logger.info(
            "finalizer.proposal_created",
            proposal_id=proposal.id,
            status=status.value,
            total_investment=payload.total_investment,
        )
        self._notifications.success(SUCCESS_MESSAGES[status])
        return FinalizationResult(success=True, status=status, proposal=proposal)

    async def save_draft(self) -> FinalizationResult:
        return await self.submit(ProposalStatus.DRAFT)

    async def generate_and_send(self) -> FinalizationResult:
        return await self.submit(ProposalStatus.SENT)
