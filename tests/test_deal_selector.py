"""Unit tests for the deal selection step.

Tests cover:
- build_candidate_pool / filter_by_status: status pool, tab filters, ordering keys
- parse_event_date: ISO dates and datetimes, garbage
- DealSelector: load, silent fetch failure, counts, seeding, start from scratch
"""

from __future__ import annotations

from datetime import date

import pytest

from src.backoffice.proposals.deal_selector import (
    DealNotSelectableError,
    DealSelector,
    DealStatusFilter,
    build_candidate_pool,
    filter_by_status,
    parse_event_date,
    seed_from_deal,
)
from src.backoffice.proposals.schemas import DealStatus, WizardStep
from src.backoffice.proposals.state import WizardSession


@pytest.fixture
def mixed_deals(make_deal):
    return [
        make_deal(id=1, status="lead"),
        make_deal(id=2, status="qualified"),
        make_deal(id=3, status="proposal"),
        make_deal(id=4, status="negotiation"),
        make_deal(id=5, status="won"),
        make_deal(id=6, status="lost"),
        make_deal(id=7, status="qualified", priority="urgent"),
    ]


# ── Pool & Filters ──────────────────────────────────────────────────────────


class TestCandidatePool:
    """Tests for pool construction, filtering, and ordering."""

    def test_pool_excludes_inactive_statuses(self, mixed_deals) -> None:
        pool = build_candidate_pool(mixed_deals)
        assert {d.status for d in pool} <= {
            DealStatus.QUALIFIED,
            DealStatus.PROPOSAL,
            DealStatus.NEGOTIATION,
        }
        assert {d.id for d in pool} == {2, 3, 4, 7}

    def test_all_filter_is_union_of_status_filters(self, mixed_deals) -> None:
        pool = build_candidate_pool(mixed_deals)
        union = set()
        for status_filter in (
            DealStatusFilter.QUALIFIED,
            DealStatusFilter.PROPOSAL,
            DealStatusFilter.NEGOTIATION,
        ):
            union |= {d.id for d in filter_by_status(pool, status_filter)}
        assert {d.id for d in filter_by_status(pool, DealStatusFilter.ALL)} == union

    def test_all_filter_never_offers_inactive_deals(self, mixed_deals) -> None:
        # Even if a raw list slips through, "all" keeps to the candidate statuses.
        visible = filter_by_status(mixed_deals, DealStatusFilter.ALL)
        assert all(d.status not in (DealStatus.LEAD, DealStatus.WON, DealStatus.LOST) for d in visible)

    def test_sorted_by_status_rank(self, make_deal) -> None:
        deals = [
            make_deal(id="n", status="negotiation"),
            make_deal(id="q", status="qualified"),
            make_deal(id="p", status="proposal"),
        ]
        assert [d.status.value for d in build_candidate_pool(deals)] == [
            "qualified",
            "proposal",
            "negotiation",
        ]

    def test_sorted_by_priority_within_status(self, make_deal) -> None:
        deals = [
            make_deal(id="l", priority="low"),
            make_deal(id="u", priority="urgent"),
            make_deal(id="m", priority="medium"),
        ]
        assert [d.priority.value for d in build_candidate_pool(deals)] == ["urgent", "medium", "low"]

    def test_sorted_by_event_date_last(self, make_deal) -> None:
        deals = [
            make_deal(id="late", event_date="2026-09-01"),
            make_deal(id="none", event_date=None),
            make_deal(id="early", event_date="2026-04-01T09:00:00.000Z"),
        ]
        assert [d.id for d in build_candidate_pool(deals)] == ["early", "late", "none"]

    def test_status_outranks_priority_and_date(self, make_deal) -> None:
        deals = [
            make_deal(id="a", status="proposal", priority="urgent", event_date="2026-01-01"),
            make_deal(id="b", status="qualified", priority="low", event_date="2027-01-01"),
        ]
        assert [d.id for d in build_candidate_pool(deals)] == ["b", "a"]


class TestParseEventDate:
    def test_plain_date(self) -> None:
        assert parse_event_date("2026-06-15") == date(2026, 6, 15)

    def test_utc_datetime(self) -> None:
        assert parse_event_date("2026-06-15T00:00:00.000Z") == date(2026, 6, 15)

    def test_missing_or_garbage(self) -> None:
        assert parse_event_date(None) is None
        assert parse_event_date("") is None
        assert parse_event_date("next spring") is None


# ── DealSelector ────────────────────────────────────────────────────────────


class TestDealSelector:
    """Tests for the DealSelector step component."""

    @pytest.mark.asyncio
    async def test_load_builds_sorted_pool(self, backend, session, mixed_deals) -> None:
        backend.deals = mixed_deals
        selector = DealSelector(backend, session)
        pool = await selector.load()
        assert [d.id for d in pool] == [7, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_default_tab_is_qualified(self, backend, session, mixed_deals) -> None:
        backend.deals = mixed_deals
        selector = DealSelector(backend, session)
        await selector.load()
        assert [d.id for d in selector.visible_deals()] == [7, 2]

    @pytest.mark.asyncio
    async def test_counts_per_tab(self, backend, session, mixed_deals) -> None:
        backend.deals = mixed_deals
        selector = DealSelector(backend, session)
        await selector.load()
        assert selector.counts() == {
            DealStatusFilter.ALL: 4,
            DealStatusFilter.QUALIFIED: 2,
            DealStatusFilter.PROPOSAL: 1,
            DealStatusFilter.NEGOTIATION: 1,
        }

    @pytest.mark.asyncio
    async def test_fetch_failure_yields_empty_pool_silently(
        self, backend, session, notifications, connect_error
    ) -> None:
        backend.deals_error = connect_error()
        selector = DealSelector(backend, session)
        assert await selector.load() == []
        assert selector.pool == []
        assert notifications.pending == []

    def test_select_deal_seeds_and_advances(self, backend, session, make_deal) -> None:
        deal = make_deal(id=42, deal_value=18500.5, company="Globex")
        selector = DealSelector(backend, session)

        state = selector.select_deal(deal)

        assert state.step == WizardStep.SPEAKER_SELECTION
        data = state.data
        assert data.deal_id == "42"
        assert data.client_name == "Dana Reyes"
        assert data.client_email == "dana@acme.example"
        assert data.client_company == "Globex"
        assert data.event_title == "Acme Leadership Summit"
        assert data.event_date == date(2026, 6, 15)
        assert data.event_location == "San Francisco, CA"
        assert data.event_type == "conference"
        assert data.attendee_count == 250
        assert data.budget_cents == 1_850_050

    def test_select_deal_without_date(self, backend, session, make_deal) -> None:
        selector = DealSelector(backend, session)
        state = selector.select_deal(make_deal(event_date=None))
        assert state.data.event_date is None

    def test_select_inactive_deal_rejected(self, backend, session, make_deal) -> None:
        selector = DealSelector(backend, session)
        with pytest.raises(DealNotSelectableError):
            selector.select_deal(make_deal(status="won"))
        assert session.step == WizardStep.DEAL_SELECTION

    def test_start_from_scratch_keeps_defaults(self, backend) -> None:
        session = WizardSession()
        before = session.data
        state = DealSelector(backend, session).start_from_scratch()
        assert state.step == WizardStep.SPEAKER_SELECTION
        assert state.data == before

    def test_seed_maps_company_to_client_company(self, make_deal) -> None:
        seed = seed_from_deal(make_deal(company=None))
        assert seed["client_company"] == ""
        assert "company" not in seed
