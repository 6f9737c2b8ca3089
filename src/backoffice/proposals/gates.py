"""Forward-navigation gates for the wizard steps.

The reducer advances unconditionally; each step checks its gate before it
dispatches NextStep. A failed gate is a disabled "continue" control, not an
error condition, so ``can_leave`` is the primary API and ``ensure_can_leave``
exists for callers that want an exception instead.
"""

from __future__ import annotations

from src.backoffice.proposals.schemas import WizardData, WizardStep
from src.backoffice.proposals.state import LAST_STEP, WizardError


class StepGateError(WizardError):
    """Raised when leaving a step forward is not allowed yet."""

    def __init__(self, step: WizardStep, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"Cannot continue from {step.name}: {reason}")


def blocking_reason(step: WizardStep, data: WizardData) -> str | None:
    """Return why ``step`` cannot be left forward, or None if it can."""
    if step >= LAST_STEP:
        return "review is the final step"
    # Speakers are required to leave the speaker step, and stay required
    # for every later step (a user may go back and deselect them).
    if step >= WizardStep.SPEAKER_SELECTION and not data.selected_speakers:
        return "select at least one speaker"
    return None


def can_leave(step: WizardStep, data: WizardData) -> bool:
    return blocking_reason(step, data) is None


def ensure_can_leave(step: WizardStep, data: WizardData) -> None:
    """Raise StepGateError if ``step`` cannot be left forward."""
    reason = blocking_reason(step, data)
    if reason is not None:
        raise StepGateError(step, reason)
