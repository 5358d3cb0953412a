"""Tests for Order events: versions and construction."""

from datetime import UTC, datetime

import pytest
from negotiation.order.events import (
    DeadlineExtended,
    ItemAdded,
    ItemRemoved,
    ItemUpdated,
    OrderCancelled,
    OrderClosed,
    OrderCreated,
    OrderStatusChanged,
    ProposalSubmitted,
    ShipmentFreightUpdated,
    ShipmentPlanned,
    ShipmentRemoved,
    ShipmentRescheduled,
    TotalsReplaced,
)

ALL_EVENTS = [
    OrderCreated,
    ItemAdded,
    ItemRemoved,
    ItemUpdated,
    ShipmentPlanned,
    ShipmentRemoved,
    ShipmentRescheduled,
    ShipmentFreightUpdated,
    OrderClosed,
    OrderCancelled,
    OrderStatusChanged,
    TotalsReplaced,
    DeadlineExtended,
    ProposalSubmitted,
]


@pytest.mark.parametrize("event_cls", ALL_EVENTS)
def test_version(event_cls):
    assert event_cls.__version__ == 1


class TestOrderCreatedEvent:
    def test_construction(self):
        now = datetime.now(UTC)
        event = OrderCreated(
            order_id="ord-001",
            supplier_id=1,
            buyer_id=2,
            allow_direct_contact=True,
            negotiable=False,
            interaction_deadline=now,
            created_at=now,
        )
        assert event.order_id == "ord-001"
        assert event.allow_direct_contact is True
        assert event.negotiable is False


class TestOrderCancelledEvent:
    def test_construction(self):
        event = OrderCancelled(
            order_id="ord-001",
            cancelled_by="Buyer",
            status="Cancelled_By_Buyer",
            cancelled_at=datetime.now(UTC),
        )
        assert event.cancelled_by == "Buyer"


class TestProposalSubmittedEvent:
    def test_supplier_note_without_action(self):
        event = ProposalSubmitted(
            order_id="ord-001",
            proposal_id="prop-001",
            sequence=3,
            author="Supplier",
            author_id=9,
            note="Price holds until Friday",
        )
        assert event.action is None
        assert event.sequence == 3
