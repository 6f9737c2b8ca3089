"""Step assistant -- a short conversation about whatever step the user is on.

The conversation belongs to one step. When the wizard moves to another step
the history is replaced by that step's welcome message. Only the most recent
turns are sent with each question; the assistant endpoint adds its own
step-specific instructions.

A failed request never raises out of ``ask``: the assistant answers with a
fixed apology instead, and the user may simply ask again.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import structlog

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeAPIError
from src.backoffice.proposals.schemas import AssistantMessage, AssistantRequest, WizardStep
from src.backoffice.proposals.state import WizardSession

logger = structlog.get_logger(__name__)

# Turns of prior conversation sent with each question.
HISTORY_LIMIT = 5

WELCOME_MESSAGES: dict[WizardStep, str] = {
    WizardStep.DEAL_SELECTION: (
        "Hi! I'll help you create a winning proposal. Select a deal to get started, "
        "or create one from scratch."
    ),
    WizardStep.SPEAKER_SELECTION: (
        "Based on the deal details, I'll recommend speakers who are the best match. "
        "You can also search for others or ask me questions about any speaker."
    ),
    WizardStep.SERVICES: (
        "Now let's build the perfect service package. I'll suggest what typically "
        "works best for this type of event."
    ),
    WizardStep.REVIEW: (
        "Almost done! Let's review everything before generating your proposal. "
        "Feel free to ask me to adjust anything."
    ),
}

ERROR_REPLY = "Sorry, I encountered an error. Please try again."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProposalAssistant:
    """Per-step chat assistant shown next to every wizard step.

    Args:
        backend: Assistant endpoint.
        session: Shared wizard session (read only); decides the current step.
        step_titles: Display title per step, sent as context.
        clock: Timestamp source for messages.
    """

    def __init__(
        self,
        backend: ProposalBackend,
        session: WizardSession,
        step_titles: dict[WizardStep, str],
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._backend = backend
        self._session = session
        self._step_titles = step_titles
        self._clock = clock
        self._step: WizardStep | None = None
        self._messages: list[AssistantMessage] = []
        self.loading = False

    def _sync_step(self) -> None:
        step = self._session.step
        if step == self._step:
            return
        self._step = step
        self._messages = [self._message("assistant", WELCOME_MESSAGES[step])]

    def _message(self, role: str, content: str) -> AssistantMessage:
        return AssistantMessage(role=role, content=content, timestamp=self._clock())

    @property
    def messages(self) -> list[AssistantMessage]:
        """Conversation of the current step, welcome message first."""
        self._sync_step()
        return list(self._messages)

    async def ask(self, text: str) -> AssistantMessage | None:
        """Send ``text`` and append the reply to the conversation.

        Blank input is ignored and returns None.
        """
        if not text.strip():
            return None

        self._sync_step()
        step = self._step
        history = self._messages[-HISTORY_LIMIT:]
        self._messages.append(self._message("user", text))
        request = AssistantRequest(
            message=text,
            step=int(step),
            context={"currentStepTitle": self._step_titles[step]},
            conversation_history=history,
        )

        self.loading = True
        try:
            reply = await self._backend.ask_assistant(request)
            content = reply.response
        except (httpx.HTTPError, BackofficeAPIError) as exc:
            logger.warning(
                "assistant.request_failed",
                step=step.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            content = ERROR_REPLY
        finally:
            self.loading = False

        answer = self._message("assistant", content)
        # The user may have moved on while the reply was pending.
        if self._step == step and self._session.step == step:
            self._messages.append(answer)
        return answer
