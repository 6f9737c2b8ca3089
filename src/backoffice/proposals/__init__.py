"""Proposal generation workflow -- the four-step wizard that turns a deal into a proposal.

Steps: deal selection, speaker selection, services & pricing, review. State is
an immutable WizardState changed only through ``transition``; step
components share it through a WizardSession.

Exports:
    ProposalWizard, create_wizard: Facade over one workflow (navigation, gating, steps).
    ProposalAssistant: Per-step chat assistant.
    WizardSession, WizardState, transition: State container and reducer.
    DealSelector, SpeakerMatcher, ServicePackageBuilder, ProposalFinalizer: Step components.
    ProposalBackend, BackofficeClient: Back-office API interface and HTTP client.
"""

from src.backoffice.proposals.assistant import ProposalAssistant
from src.backoffice.proposals.backend import BackofficeAPIError, BackofficeClient, ProposalBackend
from src.backoffice.proposals.deal_selector import DealSelector, DealStatusFilter
from src.backoffice.proposals.finalizer import FinalizationResult, ProposalFinalizer
from src.backoffice.proposals.gates import StepGateError
from src.backoffice.proposals.notifications import Notification, NotificationCenter
from src.backoffice.proposals.schemas import (
    Deal,
    DealPriority,
    DealStatus,
    ProposalStatus,
    SelectedSpeaker,
    ServiceLineItem,
    SpeakerCandidate,
    WizardData,
    WizardStep,
)
from src.backoffice.proposals.services import LockedLineItemError, ServicePackageBuilder
from src.backoffice.proposals.speaker_matcher import SpeakerMatcher
from src.backoffice.proposals.state import (
    ResetNotConfirmedError,
    WizardError,
    WizardSession,
    WizardState,
    transition,
)
from src.backoffice.proposals.wizard import ProposalWizard, create_wizard

__all__ = [
    "BackofficeAPIError",
    "BackofficeClient",
    "Deal",
    "DealPriority",
    "DealSelector",
    "DealStatus",
    "DealStatusFilter",
    "FinalizationResult",
    "LockedLineItemError",
    "Notification",
    "NotificationCenter",
    "ProposalAssistant",
    "ProposalBackend",
    "ProposalFinalizer",
    "ProposalStatus",
    "ProposalWizard",
    "ResetNotConfirmedError",
    "SelectedSpeaker",
    "ServiceLineItem",
    "ServicePackageBuilder",
    "SpeakerCandidate",
    "SpeakerMatcher",
    "StepGateError",
    "WizardData",
    "WizardError",
    "WizardSession",
    "WizardState",
    "WizardStep",
    "create_wizard",
    "transition",
]
