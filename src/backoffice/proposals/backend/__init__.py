"""Back-office API backends for the proposal wizard.

Exports:
    ProposalBackend: ABC for the deal list, speaker match, proposal create, and assistant operations.
    BackofficeClient: httpx implementation against the back-office REST API.
    BackofficeAPIError: Raised when the API answers with an unusable body.
"""

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeAPIError, BackofficeClient

__all__ = ["BackofficeAPIError", "BackofficeClient", "ProposalBackend"]
