"""Wizard state and its transition reducer.

The wizard's answers and step index live in an immutable WizardState. Every
change goes through ``transition(state, action)``, a pure function, so each
step's effect can be tested in isolation. WizardSession is the thin mutable
holder the step components share; it is passed to them explicitly.

No business validation lives here: gating the forward move is the calling
step's job (see ``gates``). The reducer only keeps the step index in range
and refuses an unconfirmed reset.
"""

from __future__ import annotations

from typing import Any, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from src.backoffice.proposals.schemas import WizardData, WizardStep

logger = structlog.get_logger(__name__)

FIRST_STEP = WizardStep.DEAL_SELECTION
LAST_STEP = WizardStep.REVIEW


class WizardError(Exception):
    """Base class for errors raised by the proposal wizard."""


class ResetNotConfirmedError(WizardError):
    """Raised when a reset is requested without explicit confirmation."""

    def __init__(self) -> None:
        super().__init__(
            "Resetting the wizard discards all answers; pass confirmed=True to proceed"
        )


class InvalidStepJumpError(WizardError, ValueError):
    """Raised when a jump targets a step the user has not reached yet."""

    def __init__(self, from_step: WizardStep, to_step: WizardStep) -> None:
        self.from_step = from_step
        self.to_step = to_step
        super().__init__(
            f"Cannot jump from step {from_step.name} to {to_step.name}: "
            "only earlier steps can be revisited"
        )


# ── State ───────────────────────────────────────────────────────────────────


class WizardState(BaseModel):
    """Current step plus the accumulated answers."""

    model_config = ConfigDict(frozen=True)

    step: WizardStep = FIRST_STEP
    data: WizardData = Field(default_factory=WizardData)


# ── Actions ─────────────────────────────────────────────────────────────────


class UpdateWizardData(BaseModel):
    """Shallow-merge ``partial`` into the aggregate."""

    model_config = ConfigDict(frozen=True)

    partial: dict[str, Any]


class NextStep(BaseModel):
    model_config = ConfigDict(frozen=True)


class PreviousStep(BaseModel):
    model_config = ConfigDict(frozen=True)


class GoToStep(BaseModel):
    """Revisit an already reached step."""

    model_config = ConfigDict(frozen=True)

    step: WizardStep


class ResetWizard(BaseModel):
    """Restore step index and answers to their defaults."""

    model_config = ConfigDict(frozen=True)

    confirmed: bool = False


WizardAction = Union[UpdateWizardData, NextStep, PreviousStep, GoToStep, ResetWizard]


def initial_state(data: WizardData | None = None) -> WizardState:
    """Fresh state at the first step."""
    return WizardState(step=FIRST_STEP, data=data or WizardData())


def transition(state: WizardState, action: WizardAction) -> WizardState:
    """Apply ``action`` to ``state`` and return the resulting state.

    Raises:
        ResetNotConfirmedError: ResetWizard without ``confirmed=True``.
        InvalidStepJumpError: GoToStep targeting a later step.
        pydantic.ValidationError: UpdateWizardData with invalid field values.
    """
    if isinstance(action, UpdateWizardData):
        return state.model_copy(update={"data": state.data.merge(action.partial)})

    if isinstance(action, NextStep):
        return state.model_copy(update={"step": WizardStep(min(state.step + 1, LAST_STEP))})

    if isinstance(action, PreviousStep):
        return state.model_copy(update={"step": WizardStep(max(state.step - 1, FIRST_STEP))})

    if isinstance(action, GoToStep):
        if action.step > state.step:
            raise InvalidStepJumpError(state.step, action.step)
        return state.model_copy(update={"step": action.step})

    if isinstance(action, ResetWizard):
        if not action.confirmed:
            raise ResetNotConfirmedError()
        return initial_state()

    raise TypeError(f"Unsupported wizard action: {type(action).__name__}")


# ── Session ─────────────────────────────────────────────────────────────────


class WizardSession:
    """Holds the current WizardState for one proposal workflow.

    Step components receive the session in their constructor and change it
    only through ``dispatch``.

    Args:
        state: Starting state (defaults to a fresh wizard).
    """

    def __init__(self, state: WizardState | None = None) -> None:
        self._state = state or initial_state()

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def data(self) -> WizardData:
        return self._state.data

    @property
    def step(self) -> WizardStep:
        return self._state.step

    def dispatch(self, action: WizardAction) -> WizardState:
        """Apply an action and keep the resulting state."""
        new_state = transition(self._state, action)
        if new_state.step != self._state.step:
            logger.debug(
                "wizard.step_changed",
                from_step=self._state.step.name,
                to_step=new_state.step.name,
                action=type(action).__name__,
            )
        self._state = new_state
        return new_state

    def update_wizard_data(self, **partial: Any) -> WizardState:
        return self.dispatch(UpdateWizardData(partial=partial))

    def go_to_next_step(self) -> WizardState:
        return self.dispatch(NextStep())

    def go_to_previous_step(self) -> WizardState:
        return self.dispatch(PreviousStep())

    def go_to_step(self, step: WizardStep) -> WizardState:
        return self.dispatch(GoToStep(step=step))

    def reset_wizard(self, *, confirmed: bool = False) -> WizardState:
        state = self.dispatch(ResetWizard(confirmed=confirmed))
        logger.info("wizard.reset")
        return state
