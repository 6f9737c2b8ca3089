"""ProposalWizard -- one proposal workflow from deal to persisted proposal.

Owns the session, the notification queue, the four step components and the
step assistant, and exposes the navigation rules of the wizard page. Moving
forward runs the current step's own continue action, so its gate applies and
its edits are written. Moving back (previous step, or a jump to any earlier
step) is always allowed. A reset needs explicit confirmation.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime

import structlog
from pydantic import BaseModel
from structlog.contextvars import bound_contextvars

from src.backoffice.config import Settings, get_settings
from src.backoffice.core.logging import configure_structlog
from src.backoffice.proposals.assistant import ProposalAssistant
from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeClient
from src.backoffice.proposals.deal_selector import DealSelector
from src.backoffice.proposals.finalizer import FinalizationResult, ProposalFinalizer, utcnow
from src.backoffice.proposals.gates import can_leave, ensure_can_leave
from src.backoffice.proposals.notifications import NotificationCenter
from src.backoffice.proposals.schemas import AssistantMessage, ProposalStatus, WizardData, WizardStep
from src.backoffice.proposals.services import ServicePackageBuilder
from src.backoffice.proposals.speaker_matcher import SpeakerMatcher
from src.backoffice.proposals.state import WizardSession, WizardState, initial_state

logger = structlog.get_logger(__name__)


class StepInfo(BaseModel):
    step: WizardStep
    title: str


WIZARD_STEPS: tuple[StepInfo, ...] = (
    StepInfo(step=WizardStep.DEAL_SELECTION, title="Deal Selection"),
    StepInfo(step=WizardStep.SPEAKER_SELECTION, title="Speaker Selection"),
    StepInfo(step=WizardStep.SERVICES, title="Services & Pricing"),
    StepInfo(step=WizardStep.REVIEW, title="Review & Generate"),
)


class ProposalWizard:
    """Facade over one proposal workflow.

    Every async operation runs with ``wizard_id`` bound in the logging
    context, so the events of one workflow can be correlated.

    Args:
        backend: Back-office API (deals, matching, persistence).
        session: Existing session to resume; a fresh one is created otherwise.
        notifications: Notification queue; a fresh one is created otherwise.
        clock: Timestamp source for proposal validity.
    """

    def __init__(
        self,
        backend: ProposalBackend,
        *,
        session: WizardSession | None = None,
        notifications: NotificationCenter | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.wizard_id = str(uuid.uuid4())
        self._default_valid_days = get_settings().PROPOSAL_DEFAULT_VALID_DAYS
        if session is None:
            session = WizardSession(initial_state(WizardData(valid_days=self._default_valid_days)))
        self.session = session
        self.notifications = notifications or NotificationCenter()
        self.deals = DealSelector(backend, self.session)
        self.speakers = SpeakerMatcher(backend, self.session, self.notifications)
        self.finalizer = ProposalFinalizer(backend, self.session, self.notifications, clock=clock)
        self.assistant = ProposalAssistant(
            backend,
            self.session,
            {info.step: info.title for info in WIZARD_STEPS},
            clock=clock,
        )
        self._services: ServicePackageBuilder | None = None

    # ── Navigation ──────────────────────────────────────────────────────────

    @property
    def state(self) -> WizardState:
        return self.session.state

    @property
    def current_step(self) -> WizardStep:
        return self.session.step

    @property
    def step_title(self) -> str:
        return WIZARD_STEPS[self.current_step].title

    @property
    def progress_percent(self) -> int:
        return round((self.current_step + 1) / len(WIZARD_STEPS) * 100)

    def can_advance(self) -> bool:
        """Whether the "continue" control of the current step is enabled."""
        return can_leave(self.current_step, self.session.data)

    def next(self) -> WizardState:
        """Run the current step's continue action.

        On deal selection this starts without a deal. On services the edited
        package is written into WizardData before moving on.

        Raises:
            StepGateError: The current step cannot be left yet.
        """
        step = self.current_step
        if step == WizardStep.DEAL_SELECTION:
            return self.deals.start_from_scratch()
        if step == WizardStep.SPEAKER_SELECTION:
            state = self.speakers.continue_to_services()
            self._services = None
            return state
        if step == WizardStep.SERVICES:
            return self.services.continue_to_review()
        ensure_can_leave(step, self.session.data)
        return self.session.go_to_next_step()

    def back(self) -> WizardState:
        state = self.session.go_to_previous_step()
        self._services = None
        return state

    def go_to(self, step: WizardStep) -> WizardState:
        """Jump back to an already visited step."""
        state = self.session.go_to_step(step)
        self._services = None
        return state

    def reset(self, *, confirmed: bool = False) -> WizardState:
        """Discard every answer and return to the first step.

        Raises:
            ResetNotConfirmedError: ``confirmed`` was not set.
        """
        self.session.reset_wizard(confirmed=confirmed)
        self._services = None
        return self.session.update_wizard_data(valid_days=self._default_valid_days)

    # ── Step Entry ──────────────────────────────────────────────────────────

    async def enter_deal_selection(self) -> None:
        with bound_contextvars(wizard_id=self.wizard_id):
            await self.deals.load()

    async def enter_speaker_selection(self) -> None:
        with bound_contextvars(wizard_id=self.wizard_id, deal_id=self.session.data.deal_id):
            await self.speakers.fetch_recommendations()

    def enter_services(self) -> ServicePackageBuilder:
        """Start a services editor seeded from the current answers."""
        self._services = ServicePackageBuilder(self.session)
        return self._services

    @property
    def services(self) -> ServicePackageBuilder:
        """Services editor of the current visit (created on first access)."""
        if self._services is None:
            return self.enter_services()
        return self._services

    # ── Finalization ────────────────────────────────────────────────────────

    async def finalize(self, status: ProposalStatus) -> FinalizationResult:
        with bound_contextvars(wizard_id=self.wizard_id, deal_id=self.session.data.deal_id):
            result = await self.finalizer.submit(status)
            if result.success:
                logger.info(
                    "wizard.completed",
                    proposal_id=result.proposal.id if result.proposal else None,
                    status=status.value,
                )
        return result

    # ── Assistant ───────────────────────────────────────────────────────────

    async def ask_assistant(self, text: str) -> AssistantMessage | None:
        with bound_contextvars(wizard_id=self.wizard_id, step=self.current_step.name):
            return await self.assistant.ask(text)


def create_wizard(settings: Settings | None = None) -> ProposalWizard:
    """Build a wizard against the configured back-office API.

    Entry point for embedding applications: configures structlog from the
    same settings and wires a BackofficeClient.
    """
    settings = settings or get_settings()
    configure_structlog(settings)
    wizard = ProposalWizard(BackofficeClient.from_settings(settings))
    logger.info("wizard.created", wizard_id=wizard.wizard_id, api_url=settings.BACKOFFICE_API_URL)
    return wizard
