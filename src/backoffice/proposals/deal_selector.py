"""Deal selection step -- seed the wizard from an open opportunity or start blank.

Only deals that are actively being worked (qualified, proposal, negotiation)
are offered. They are shown in a fixed order: status, then priority, then
event date, so the list is deterministic for identical inputs.

A failed deal fetch leaves the pool empty and is only logged; the user can
still start from scratch.
"""

from __future__ import annotations

from collections import Counter
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx
import structlog

from src.backoffice.proposals.backend.adapter import ProposalBackend
from src.backoffice.proposals.backend.http import BackofficeAPIError
from src.backoffice.proposals.money import dollars_to_cents
from src.backoffice.proposals.schemas import Deal, DealPriority, DealStatus
from src.backoffice.proposals.state import NextStep, UpdateWizardData, WizardError, WizardSession, WizardState

logger = structlog.get_logger(__name__)

# ── Ordering ────────────────────────────────────────────────────────────────

# Statuses offered by the selector, in display order.
CANDIDATE_STATUSES: tuple[DealStatus, ...] = (
    DealStatus.QUALIFIED,
    DealStatus.PROPOSAL,
    DealStatus.NEGOTIATION,
)

_STATUS_RANK: dict[DealStatus, int] = {status: rank for rank, status in enumerate(CANDIDATE_STATUSES)}

_PRIORITY_RANK: dict[DealPriority, int] = {
    DealPriority.URGENT: 0,
    DealPriority.HIGH: 1,
    DealPriority.MEDIUM: 2,
    DealPriority.LOW: 3,
}


class DealStatusFilter(str, Enum):
    """Status tabs of the deal selector."""

    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    ALL = "all"


class DealNotSelectableError(WizardError, ValueError):
    """Raised when a deal outside the candidate pool is selected."""

    def __init__(self, deal: Deal) -> None:
        self.deal = deal
        super().__init__(
            f"Deal {deal.id} has status {deal.status.value}; only "
            f"{', '.join(s.value for s in CANDIDATE_STATUSES)} deals can seed a proposal"
        )


def parse_event_date(raw: str | None) -> date | None:
    """Parse an API event date (ISO date or datetime) to a date, or None."""
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        logger.debug("deal_selector.unparseable_event_date", raw=raw)
        return None


def deal_sort_key(deal: Deal) -> tuple[int, int, int, date]:
    """Status rank, priority rank, then event date (undated deals last)."""
    event_date = parse_event_date(deal.event_date)
    return (
        _STATUS_RANK.get(deal.status, len(_STATUS_RANK)),
        _PRIORITY_RANK.get(deal.priority, len(_PRIORITY_RANK)),
        1 if event_date is None else 0,
        event_date or date.max,
    )


def build_candidate_pool(deals: list[Deal]) -> list[Deal]:
    """Keep actively worked deals and sort them for display."""
    pool = [d for d in deals if d.status in _STATUS_RANK]
    return sorted(pool, key=deal_sort_key)


def filter_by_status(pool: list[Deal], status_filter: DealStatusFilter) -> list[Deal]:
    """Narrow the candidate pool to one status tab (``all`` keeps every candidate)."""
    if status_filter == DealStatusFilter.ALL:
        return [d for d in pool if d.status in _STATUS_RANK]
    return [d for d in pool if d.status.value == status_filter.value]


def seed_from_deal(deal: Deal) -> dict[str, Any]:
    """Map a deal's fields onto WizardData field names."""
    return {
        "deal_id": str(deal.id),
        "client_name": deal.client_name,
        "client_email": deal.client_email,
        "client_company": deal.company or "",
        "event_title": deal.event_title,
        "event_date": parse_event_date(deal.event_date),
        "event_location": deal.event_location or "",
        "event_type": deal.event_type or "",
        "attendee_count": deal.attendee_count,
        "budget_cents": dollars_to_cents(deal.deal_value),
    }


# ── Step Component ──────────────────────────────────────────────────────────


class DealSelector:
    """First wizard step: choose a deal to seed the proposal, or skip.

    Args:
        backend: Source of deals.
        session: Shared wizard session to seed and advance.
    """

    def __init__(self, backend: ProposalBackend, session: WizardSession) -> None:
        self._backend = backend
        self._session = session
        self._pool: list[Deal] = []
        self.status_filter = DealStatusFilter.QUALIFIED

    async def load(self) -> list[Deal]:
        """Fetch deals and rebuild the candidate pool.

        Failures are logged and yield an empty pool; no notification is
        raised at this step.
        """
        try:
            deals = await self._backend.list_deals()
        except (httpx.HTTPError, BackofficeAPIError) as exc:
            logger.warning(
                "deal_selector.fetch_failed",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self._pool = []
            return []

        self._pool = build_candidate_pool(deals)
        logger.info(
            "deal_selector.loaded",
            fetched=len(deals),
            candidates=len(self._pool),
        )
        return list(self._pool)

    @property
    def pool(self) -> list[Deal]:
        return list(self._pool)

    def visible_deals(self, status_filter: DealStatusFilter | None = None) -> list[Deal]:
        """Deals shown under the given (or current) status tab."""
        return filter_by_status(self._pool, status_filter or self.status_filter)

    def counts(self) -> dict[DealStatusFilter, int]:
        """Number of deals under each status tab."""
        by_status = Counter(d.status.value for d in self._pool)
        counts = {DealStatusFilter.ALL: len(self._pool)}
        for status in CANDIDATE_STATUSES:
            counts[DealStatusFilter(status.value)] = by_status.get(status.value, 0)
        return counts

    def select_deal(self, deal: Deal) -> WizardState:
        """Seed WizardData from ``deal`` and advance to speaker selection."""
        if deal.status not in _STATUS_RANK:
            raise DealNotSelectableError(deal)

        self._session.dispatch(UpdateWizardData(partial=seed_from_deal(deal)))
        logger.info("deal_selector.deal_selected", deal_id=str(deal.id))
        return self._session.dispatch(NextStep())

    def start_from_scratch(self) -> WizardState:
        """Advance without seeding; WizardData keeps its defaults."""
        logger.info("deal_selector.started_blank")
        return self._session.dispatch(NextStep())
