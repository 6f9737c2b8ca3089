"""Services step -- default package derivation and live pricing.

When the wizard reaches this step with no services yet, a default package is
derived from the event parameters with an ordered rule table. Each rule is a
(predicate, line item factory) pair evaluated in order; the table is the
complete set of package rules, not an extension point.

The base session item and the pre-event consultation are locked: they can be
toggled and edited but not removed.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

import structlog

from src.backoffice.proposals.gates import ensure_can_leave
from src.backoffice.proposals.money import CENTS_PER_DOLLAR, dollars_to_cents, percentage_of
from src.backoffice.proposals.schemas import ServiceLineItem, WizardData, WizardStep
from src.backoffice.proposals.state import NextStep, UpdateWizardData, WizardError, WizardSession, WizardState

logger = structlog.get_logger(__name__)

DEFAULT_SESSION_NAME = "Keynote Presentation"

ServicePredicate = Callable[[WizardData], bool]
ServiceFactory = Callable[[WizardData, int], ServiceLineItem]


class LockedLineItemError(WizardError, ValueError):
    """Raised when removal of a locked line item is attempted."""

    def __init__(self, item: ServiceLineItem) -> None:
        self.item = item
        super().__init__(f"'{item.name}' is part of the base package and cannot be removed")


# ── Default Package Rules ───────────────────────────────────────────────────


def total_speaker_fee_cents(data: WizardData) -> int:
    return sum(s.fee_cents for s in data.selected_speakers)


def _always(data: WizardData) -> bool:
    return True


def _base_session(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name=data.session_format or DEFAULT_SESSION_NAME,
        description=(
            "Interactive workshop session"
            if data.session_format == "workshop"
            else "60-minute keynote address"
        ),
        price_cents=fees,
        included=True,
        locked=True,
    )


def _consultation(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Pre-event consultation",
        description="Virtual meeting to align on event objectives and customize content",
        price_cents=0,
        included=True,
        locked=True,
    )


def _customized_presentation(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Customized presentation",
        description="Tailored content addressing your specific audience and goals",
        price_cents=0,
        included=True,
    )


def _qa_session(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Q&A session (15-20 min)",
        description="Interactive audience Q&A following the presentation",
        price_cents=0,
        included=True,
    )


def _executive_roundtable(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Executive roundtable",
        description="Intimate discussion with leadership team (up to 15 people)",
        price_cents=percentage_of(fees, 20, quantum=CENTS_PER_DOLLAR),
        included=False,
    )


def _recording_rights(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Post-event recording rights",
        description="Rights to record and share presentation internally",
        price_cents=percentage_of(fees, 10, quantum=CENTS_PER_DOLLAR),
        included=False,
    )


def _book_signing(data: WizardData, fees: int) -> ServiceLineItem:
    return ServiceLineItem(
        name="Book signing session",
        description="Meet & greet with book signing (if applicable)",
        price_cents=1000 * CENTS_PER_DOLLAR,
        included=False,
    )


DEFAULT_SERVICE_RULES: list[tuple[ServicePredicate, ServiceFactory]] = [
    (_always, _base_session),
    (_always, _consultation),
    (_always, _customized_presentation),
    (lambda data: data.attendee_count > 100, _qa_session),
    (lambda data: data.attendee_count >= 200, _executive_roundtable),
    (lambda data: data.attendee_count >= 200, _recording_rights),
    (lambda data: data.attendee_count >= 500, _book_signing),
]


def derive_default_services(data: WizardData) -> list[ServiceLineItem]:
    """Recommended package for the event, in rule-table order."""
    fees = total_speaker_fee_cents(data)
    return [factory(data, fees) for predicate, factory in DEFAULT_SERVICE_RULES if predicate(data)]


def calculate_total_cents(items: list[ServiceLineItem]) -> int:
    """Sum of prices over included items."""
    return sum(item.price_cents for item in items if item.included)


# ── Step Component ──────────────────────────────────────────────────────────


class ServicePackageBuilder:
    """Third wizard step: edit the priced package, payment terms, and validity.

    Edits stay local until ``continue_to_review`` writes them into the
    session. The total is recomputed after every mutation.

    Args:
        session: Shared wizard session.
    """

    def __init__(self, session: WizardSession) -> None:
        self._session = session
        data = session.data
        if data.services:
            self._items = list(data.services)
        else:
            self._items = derive_default_services(data)
            logger.info(
                "services.defaults_derived",
                item_count=len(self._items),
                attendee_count=data.attendee_count,
                speaker_fees_cents=total_speaker_fee_cents(data),
            )
        self.payment_terms = data.payment_terms
        self._valid_days = data.valid_days
        self._total_cents = calculate_total_cents(self._items)

    @property
    def items(self) -> list[ServiceLineItem]:
        return list(self._items)

    @property
    def total_cents(self) -> int:
        return self._total_cents

    @property
    def valid_days(self) -> int:
        return self._valid_days

    @valid_days.setter
    def valid_days(self, value: int) -> None:
        if value <= 0:
            raise ValueError(f"valid_days must be positive, got {value}")
        self._valid_days = value

    def _replace(self, index: int, item: ServiceLineItem) -> None:
        self._items[index] = item
        self._recalculate()

    def _recalculate(self) -> None:
        self._total_cents = calculate_total_cents(self._items)

    def toggle(self, index: int) -> ServiceLineItem:
        """Flip the ``included`` flag of the item at ``index``."""
        item = self._items[index]
        updated = item.model_copy(update={"included": not item.included})
        self._replace(index, updated)
        logger.debug("services.item_toggled", name=item.name, included=updated.included)
        return updated

    def update(
        self,
        index: int,
        *,
        name: str | None = None,
        description: str | None = None,
        price: int | float | str | Decimal | None = None,
    ) -> ServiceLineItem:
        """Edit an item in place. ``price`` is in dollars.

        Raises:
            ValueError: Negative or non-numeric price.
        """
        changes: dict[str, object] = {}
        if name is not None:
            changes["name"] = name
        if description is not None:
            changes["description"] = description
        if price is not None:
            price_cents = dollars_to_cents(price)
            if price_cents < 0:
                raise ValueError(f"Price cannot be negative: {price}")
            changes["price_cents"] = price_cents

        updated = self._items[index].model_copy(update=changes)
        self._replace(index, updated)
        return updated

    def add_custom(self) -> ServiceLineItem:
        """Append a blank, unpriced, not-included item."""
        item = ServiceLineItem()
        self._items.append(item)
        self._recalculate()
        return item

    def remove(self, index: int) -> ServiceLineItem:
        """Remove the item at ``index``.

        Raises:
            LockedLineItemError: The item is part of the base package.
        """
        item = self._items[index]
        if item.locked:
            raise LockedLineItemError(item)
        del self._items[index]
        self._recalculate()
        logger.debug("services.item_removed", name=item.name)
        return item

    def continue_to_review(self) -> WizardState:
        """Write the package into WizardData and advance to review.

        Raises:
            StepGateError: No speaker is selected.
        """
        ensure_can_leave(WizardStep.SERVICES, self._session.data)
        self._session.dispatch(
            UpdateWizardData(
                partial={
                    "services": list(self._items),
                    "payment_terms": self.payment_terms,
                    "valid_days": self._valid_days,
                    "total_investment_cents": self._total_cents,
                }
            )
        )
        logger.info(
            "services.package_saved",
            item_count=len(self._items),
            included_count=sum(1 for i in self._items if i.included),
            total_investment_cents=self._total_cents,
        )
        return self._session.dispatch(NextStep())
