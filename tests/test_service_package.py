"""Unit tests for the services step.

Tests cover:
- derive_default_services: rule table thresholds, percentages, locked items
- calculate_total_cents: included items only
- ServicePackageBuilder: toggle, edit, custom items, locked removal,
  validity, continue to review
"""

from __future__ import annotations

import pytest

from src.backoffice.proposals.gates import StepGateError
from src.backoffice.proposals.schemas import (
    SelectedSpeaker,
    ServiceLineItem,
    WizardData,
    WizardStep,
)
from src.backoffice.proposals.services import (
    LockedLineItemError,
    ServicePackageBuilder,
    calculate_total_cents,
    derive_default_services,
)
from src.backoffice.proposals.state import WizardSession, WizardState


def _speakers(*fees_cents: int) -> list[SelectedSpeaker]:
    return [
        SelectedSpeaker(id=index, name=f"Speaker {index}", fee_cents=fee)
        for index, fee in enumerate(fees_cents, start=1)
    ]


def _session_at_services(**data) -> WizardSession:
    data.setdefault("selected_speakers", _speakers(1_000_000))
    return WizardSession(WizardState(step=WizardStep.SERVICES, data=WizardData(**data)))


# ── Default Package ─────────────────────────────────────────────────────────


class TestDefaultServices:
    """Tests for the default package rule table."""

    def test_mid_size_event_package(self) -> None:
        data = WizardData(attendee_count=250, selected_speakers=_speakers(1_000_000, 500_000))
        items = derive_default_services(data)

        assert [i.name for i in items] == [
            "Keynote Presentation",
            "Pre-event consultation",
            "Customized presentation",
            "Q&A session (15-20 min)",
            "Executive roundtable",
            "Post-event recording rights",
        ]
        base, _, _, _, roundtable, recording = items
        assert base.price_cents == 1_500_000
        assert base.included
        assert roundtable.price_cents == 300_000
        assert not roundtable.included
        assert recording.price_cents == 150_000
        assert not recording.included
        assert calculate_total_cents(items) == 1_500_000

    def test_small_event_has_no_qa(self) -> None:
        names = [i.name for i in derive_default_services(WizardData(attendee_count=100))]
        assert "Q&A session (15-20 min)" not in names
        assert len(names) == 3

    def test_qa_threshold(self) -> None:
        names = [i.name for i in derive_default_services(WizardData(attendee_count=101))]
        assert "Q&A session (15-20 min)" in names
        assert "Executive roundtable" not in names

    def test_roundtable_and_recording_threshold(self) -> None:
        below = [i.name for i in derive_default_services(WizardData(attendee_count=199))]
        at = [i.name for i in derive_default_services(WizardData(attendee_count=200))]
        assert "Executive roundtable" not in below
        assert "Executive roundtable" in at
        assert "Post-event recording rights" in at

    def test_book_signing_for_large_events(self) -> None:
        items = derive_default_services(WizardData(attendee_count=500))
        assert items[-1].name == "Book signing session"
        assert items[-1].price_cents == 100_000
        assert not items[-1].included
        assert "Book signing session" not in [
            i.name for i in derive_default_services(WizardData(attendee_count=499))
        ]

    def test_percentages_round_to_whole_dollars(self) -> None:
        data = WizardData(attendee_count=200, selected_speakers=_speakers(1_234_567))
        by_name = {i.name: i for i in derive_default_services(data)}
        assert by_name["Executive roundtable"].price_cents == 246_900
        assert by_name["Post-event recording rights"].price_cents == 123_500

    def test_base_item_uses_session_format(self) -> None:
        workshop = derive_default_services(WizardData(session_format="workshop"))[0]
        assert workshop.name == "workshop"
        assert workshop.description == "Interactive workshop session"

        keynote = derive_default_services(WizardData())[0]
        assert keynote.name == "Keynote Presentation"
        assert keynote.description == "60-minute keynote address"

    def test_base_items_locked(self) -> None:
        items = derive_default_services(WizardData(attendee_count=600))
        assert [i.locked for i in items[:2]] == [True, True]
        assert not any(i.locked for i in items[2:])

    def test_total_ignores_excluded_items(self) -> None:
        items = [
            ServiceLineItem(name="a", price_cents=100, included=True),
            ServiceLineItem(name="b", price_cents=250, included=False),
            ServiceLineItem(name="c", price_cents=50, included=True),
        ]
        assert calculate_total_cents(items) == 150


# ── ServicePackageBuilder ───────────────────────────────────────────────────


class TestServicePackageBuilder:
    """Tests for the ServicePackageBuilder step component."""

    def test_existing_services_are_kept(self) -> None:
        existing = [ServiceLineItem(name="Kept", price_cents=500, included=True)]
        builder = ServicePackageBuilder(_session_at_services(services=existing))
        assert [i.name for i in builder.items] == ["Kept"]
        assert builder.total_cents == 500

    def test_double_toggle_restores_total(self) -> None:
        builder = ServicePackageBuilder(_session_at_services(attendee_count=250))
        before = builder.total_cents
        roundtable_index = [i.name for i in builder.items].index("Executive roundtable")

        assert builder.toggle(roundtable_index).included
        assert builder.total_cents == before + 200_000
        assert not builder.toggle(roundtable_index).included
        assert builder.total_cents == before

    def test_update_price_in_dollars(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        item = builder.update(0, price="12500.50")
        assert item.price_cents == 1_250_050
        assert builder.total_cents == 1_250_050

    def test_update_rejects_negative_price(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        with pytest.raises(ValueError):
            builder.update(0, price=-1)
        assert builder.items[0].price_cents == 1_000_000

    def test_update_rejects_non_numeric_price(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        with pytest.raises(ValueError):
            builder.update(0, price="ten thousand")

    def test_renamed_base_item_stays_locked(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        builder.update(0, name="Fireside chat", description="Moderated conversation")
        with pytest.raises(LockedLineItemError):
            builder.remove(0)

    def test_locked_removal_leaves_package_unchanged(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        before = builder.items
        with pytest.raises(LockedLineItemError):
            builder.remove(1)
        assert builder.items == before

    def test_add_and_remove_custom_item(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        count = len(builder.items)

        custom = builder.add_custom()
        assert custom == ServiceLineItem(name="", description="", price_cents=0, included=False)
        assert len(builder.items) == count + 1

        builder.update(count, name="Travel", price=800)
        builder.toggle(count)
        assert builder.total_cents == 1_080_000

        removed = builder.remove(count)
        assert removed.name == "Travel"
        assert builder.total_cents == 1_000_000

    def test_valid_days_must_be_positive(self) -> None:
        builder = ServicePackageBuilder(_session_at_services())
        with pytest.raises(ValueError):
            builder.valid_days = 0
        builder.valid_days = 14
        assert builder.valid_days == 14

    def test_continue_writes_package_and_advances(self) -> None:
        session = _session_at_services(attendee_count=250)
        builder = ServicePackageBuilder(session)
        builder.payment_terms = "Net 30"
        builder.valid_days = 45

        state = builder.continue_to_review()

        assert state.step == WizardStep.REVIEW
        assert state.data.services == builder.items
        assert state.data.payment_terms == "Net 30"
        assert state.data.valid_days == 45
        assert state.data.total_investment_cents == 1_000_000

    def test_edits_stay_local_until_continue(self) -> None:
        session = _session_at_services()
        builder = ServicePackageBuilder(session)
        builder.toggle(0)
        assert session.data.services == []
        assert session.data.total_investment_cents == 0

    def test_continue_blocked_without_speakers(self) -> None:
        session = _session_at_services(selected_speakers=[])
        builder = ServicePackageBuilder(session)
        with pytest.raises(StepGateError):
            builder.continue_to_review()
        assert session.step == WizardStep.SERVICES
