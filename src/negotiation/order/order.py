"""Order aggregate — a single negotiation between a buyer and a supplier.

The Order is the only mutation boundary of the negotiation context. It owns
its items, the shipments planned for those items, and the append-only log of
proposals exchanged by the two parties.

State Machine (4 states):
    NEGOTIATING → CLOSED                (requires at least one item)
    NEGOTIATING → CANCELLED_BY_BUYER
    NEGOTIATING → CANCELLED_BY_TIMEOUT
    CLOSED, CANCELLED_BY_BUYER and CANCELLED_BY_TIMEOUT are terminal.

Items and shipments can only be added, changed through the aggregate, or
removed while the order is negotiating. Proposals can be appended at any
time; they are the audit trail of the negotiation.
"""

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import Boolean, DateTime, HasMany, Integer, String, Text

from negotiation.domain import negotiation
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
from negotiation.order.proposal import Proposal
from negotiation.shared.clock import as_utc
from negotiation.shared.money import (
    AMOUNT_TEXT_LENGTH,
    DERIVED_TEXT_LENGTH,
    ZERO,
    bounded_text,
    line_amounts,
    non_negative,
    percentage,
    positive,
    to_decimal,
)
from negotiation.shipping.shipment import ItemShipment, check_shipment

DEFAULT_DEADLINE_DAYS = 7


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    NEGOTIATING = "Negotiating"
    CLOSED = "Closed"
    CANCELLED_BY_BUYER = "Cancelled_By_Buyer"
    CANCELLED_BY_TIMEOUT = "Cancelled_By_Timeout"


class CartStatus(Enum):
    OPEN = "Open"
    FINALIZED = "Finalized"


class CancellationActor(Enum):
    BUYER = "Buyer"
    TIMEOUT = "Timeout"


_TERMINAL_STATES = {
    OrderStatus.CLOSED,
    OrderStatus.CANCELLED_BY_BUYER,
    OrderStatus.CANCELLED_BY_TIMEOUT,
}


def validate_days(days, field):
    if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
        raise ValidationError({field: ["Number of days must be greater than zero"]})
    return days


def check_line(item):
    """Raise ValidationError unless the line's inputs are in range and its
    derived amounts are exactly the ones they produce."""
    quantity = positive(item.quantity, "quantity")
    unit_price = non_negative(item.unit_price, "unit_price")
    discount_percent = percentage(item.discount_percent, "discount_percent")

    expected = line_amounts(quantity, unit_price, discount_percent)
    for field, amount in zip(("total", "discount_amount", "final_value"), expected, strict=True):
        if to_decimal(getattr(item, field), field) != amount:
            raise ValidationError({field: [f"{field} must follow from quantity, unit price and discount"]})


def _line_texts(quantity, unit_price, discount_percent):
    total, discount_amount, final_value = line_amounts(quantity, unit_price, discount_percent)
    return {
        "quantity": bounded_text(quantity, "quantity", AMOUNT_TEXT_LENGTH),
        "unit_price": bounded_text(unit_price, "unit_price", AMOUNT_TEXT_LENGTH),
        "discount_percent": bounded_text(discount_percent, "discount_percent", AMOUNT_TEXT_LENGTH),
        "total": bounded_text(total, "total", DERIVED_TEXT_LENGTH),
        "discount_amount": bounded_text(discount_amount, "discount_amount", DERIVED_TEXT_LENGTH),
        "final_value": bounded_text(final_value, "final_value", DERIVED_TEXT_LENGTH),
    }


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@negotiation.entity(part_of="Order")
class OrderItem:
    """One product line of an order: quantity, unit price and discount.

    ``total``, ``discount_amount`` and ``final_value`` are derived from the
    three inputs and recomputed whenever one of them changes. All amounts are
    stored as exact decimal text.
    """

    product_id = Integer(required=True, min_value=1)
    quantity = String(required=True, max_length=AMOUNT_TEXT_LENGTH)
    unit_price = String(required=True, max_length=AMOUNT_TEXT_LENGTH)
    discount_percent = String(default="0", max_length=AMOUNT_TEXT_LENGTH)
    total = String(max_length=DERIVED_TEXT_LENGTH)
    discount_amount = String(max_length=DERIVED_TEXT_LENGTH)
    final_value = String(max_length=DERIVED_TEXT_LENGTH)
    note = Text()
    extra_data = Text()  # JSON blob

    @invariant.post
    def amounts_must_follow_from_inputs(self):
        check_line(self)

    @classmethod
    def create(cls, product_id, quantity, unit_price, discount_percent=0, note=None):
        texts = _line_texts(
            positive(quantity, "quantity"),
            non_negative(unit_price, "unit_price"),
            percentage(discount_percent, "discount_percent"),
        )
        return cls(product_id=product_id, note=note, **texts)

    def _recalculate(self, quantity, unit_price, discount_percent):
        # All six texts are built and size-checked before the first assignment
        texts = _line_texts(quantity, unit_price, discount_percent)

        with atomic_change(self):
            self.quantity = texts["quantity"]
            self.unit_price = texts["unit_price"]
            self.discount_percent = texts["discount_percent"]
            self.total = texts["total"]
            self.discount_amount = texts["discount_amount"]
            self.final_value = texts["final_value"]

    def update_quantity(self, quantity):
        quantity = positive(quantity, "quantity")
        self._recalculate(quantity, Decimal(self.unit_price), Decimal(self.discount_percent))

    def update_price(self, unit_price):
        unit_price = non_negative(unit_price, "unit_price")
        self._recalculate(Decimal(self.quantity), unit_price, Decimal(self.discount_percent))

    def update_discount(self, discount_percent):
        discount_percent = percentage(discount_percent, "discount_percent")
        self._recalculate(Decimal(self.quantity), Decimal(self.unit_price), discount_percent)

    def update_note(self, note):
        self.note = note

    def update_extra_data(self, extra_data):
        self.extra_data = json.dumps(extra_data, default=str) if extra_data is not None else None

    def amounts(self):
        """All numeric fields of the line as Decimals."""
        return {
            "quantity": to_decimal(self.quantity, "quantity"),
            "unit_price": to_decimal(self.unit_price, "unit_price"),
            "discount_percent": to_decimal(self.discount_percent, "discount_percent"),
            "total": to_decimal(self.total, "total"),
            "discount_amount": to_decimal(self.discount_amount, "discount_amount"),
            "final_value": to_decimal(self.final_value, "final_value"),
        }


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@negotiation.aggregate
class Order:
    supplier_id = Integer(required=True, min_value=1)
    buyer_id = Integer(required=True, min_value=1)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.NEGOTIATING.value,
    )
    cart_status = String(
        choices=CartStatus,
        default=CartStatus.OPEN.value,
    )
    item_count = Integer(default=0)
    totals = Text()  # JSON blob written by the pricing collaborator
    allow_direct_contact = Boolean(default=False)
    negotiable = Boolean(default=False)
    interaction_deadline = DateTime(required=True)
    items = HasMany(OrderItem)
    shipments = HasMany(ItemShipment)
    proposals = HasMany(Proposal)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def item_count_must_match_items(self):
        if (self.item_count or 0) != len(self.items):
            raise ValidationError({"item_count": ["Item count must match the number of items"]})

    @invariant.post
    def closed_order_must_have_items(self):
        if self.status == OrderStatus.CLOSED.value and not self.items:
            raise ValidationError({"status": ["A closed order must have at least one item"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        supplier_id,
        buyer_id,
        allow_direct_contact,
        negotiable,
        deadline_days=DEFAULT_DEADLINE_DAYS,
    ):
        """Open a negotiation between a supplier and a buyer.

        The interaction deadline is set ``deadline_days`` days from now.
        """
        validate_days(deadline_days, "deadline_days")
        now = datetime.now(UTC)

        order = cls(
            supplier_id=supplier_id,
            buyer_id=buyer_id,
            allow_direct_contact=bool(allow_direct_contact),
            negotiable=bool(negotiable),
            status=OrderStatus.NEGOTIATING.value,
            cart_status=CartStatus.OPEN.value,
            item_count=0,
            interaction_deadline=now + timedelta(days=deadline_days),
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                supplier_id=order.supplier_id,
                buyer_id=order.buyer_id,
                allow_direct_contact=order.allow_direct_contact,
                negotiable=order.negotiable,
                interaction_deadline=order.interaction_deadline,
                created_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _touch(self):
        now = datetime.now(UTC)
        self.updated_at = now
        return now

    def _assert_negotiating(self, message):
        if OrderStatus(self.status) != OrderStatus.NEGOTIATING:
            raise InvalidOperationError(message)

    def is_terminal(self):
        return OrderStatus(self.status) in _TERMINAL_STATES

    def find_item(self, item_id):
        return next((i for i in self.items if str(i.id) == str(item_id)), None)

    def _editable_item(self, item_id):
        self._assert_negotiating("Items can only be changed while the order is in negotiation")

        item = self.find_item(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found"]})
        return item

    # -------------------------------------------------------------------
    # Item management (only in NEGOTIATING state)
    # -------------------------------------------------------------------
    def add_item(self, item):
        """Attach a line created with ``OrderItem.create``."""
        if item is None:
            raise ValidationError({"item": ["Item is required"]})
        self._assert_negotiating("Cannot add items to an order that is not in negotiation")
        check_line(item)

        with atomic_change(self):
            self.add_items(item)
            self.item_count = len(self.items)
        self._touch()

        self.raise_(
            ItemAdded(
                order_id=str(self.id),
                item_id=str(item.id),
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_percent=item.discount_percent,
                final_value=item.final_value,
                item_count=self.item_count,
            )
        )

    def remove_item(self, item_id):
        """Remove a line and its planned shipments. Unknown ids are ignored."""
        self._assert_negotiating("Cannot remove items from an order that is not in negotiation")

        item = self.find_item(item_id)
        if item is None:
            return

        with atomic_change(self):
            for shipment in self.shipments_for(item_id):
                self.remove_shipments(shipment)
            self.remove_items(item)
            self.item_count = len(self.items)
        self._touch()

        self.raise_(
            ItemRemoved(
                order_id=str(self.id),
                item_id=str(item_id),
                product_id=item.product_id,
                item_count=self.item_count,
            )
        )

    def update_item_quantity(self, item_id, quantity):
        self._update_item(item_id, lambda item: item.update_quantity(quantity))

    def update_item_price(self, item_id, unit_price):
        self._update_item(item_id, lambda item: item.update_price(unit_price))

    def update_item_discount(self, item_id, discount_percent):
        self._update_item(item_id, lambda item: item.update_discount(discount_percent))

    def update_item_note(self, item_id, note):
        self._update_item(item_id, lambda item: item.update_note(note))

    def _update_item(self, item_id, change):
        item = self._editable_item(item_id)
        with atomic_change(self):
            change(item)
        self._item_updated(item)

    def _item_updated(self, item):
        self._touch()
        self.raise_(
            ItemUpdated(
                order_id=str(self.id),
                item_id=str(item.id),
                quantity=item.quantity,
                unit_price=item.unit_price,
                discount_percent=item.discount_percent,
                total=item.total,
                discount_amount=item.discount_amount,
                final_value=item.final_value,
            )
        )

    # -------------------------------------------------------------------
    # Shipments (only in NEGOTIATING state)
    # -------------------------------------------------------------------
    def shipments_for(self, item_id):
        return [s for s in self.shipments if str(s.item_id) == str(item_id)]

    def scheduled_quantity(self, item_id):
        return sum((to_decimal(s.quantity, "quantity") for s in self.shipments_for(item_id)), ZERO)

    def available_quantity(self, item_id):
        """Quantity of the item not yet covered by any shipment."""
        item = self.find_item(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found"]})
        return max(ZERO, to_decimal(item.quantity, "quantity") - self.scheduled_quantity(item_id))

    def find_shipment(self, shipment_id):
        return next((s for s in self.shipments if str(s.id) == str(shipment_id)), None)

    def add_shipment(self, shipment):
        if shipment is None:
            raise ValidationError({"shipment": ["Shipment is required"]})
        self._assert_negotiating("Cannot plan shipments for an order that is not in negotiation")
        if self.find_item(shipment.item_id) is None:
            raise ValidationError({"item_id": ["Item not found"]})
        check_shipment(shipment)

        self.add_shipments(shipment)
        self._touch()

        self.raise_(
            ShipmentPlanned(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                item_id=str(shipment.item_id),
                quantity=shipment.quantity,
                freight_value=shipment.freight_value,
                scheduled_for=shipment.scheduled_for,
            )
        )

    def remove_shipment(self, shipment_id):
        """Drop a planned shipment. Unknown ids are ignored."""
        self._assert_negotiating("Cannot remove shipments from an order that is not in negotiation")

        shipment = self.find_shipment(shipment_id)
        if shipment is None:
            return

        self.remove_shipments(shipment)
        self._touch()

        self.raise_(
            ShipmentRemoved(
                order_id=str(self.id),
                shipment_id=str(shipment_id),
                item_id=str(shipment.item_id),
            )
        )

    def _editable_shipment(self, shipment_id):
        self._assert_negotiating("Shipments can only be changed while the order is in negotiation")

        shipment = self.find_shipment(shipment_id)
        if shipment is None:
            raise ValidationError({"shipment_id": ["Shipment not found"]})
        return shipment

    def reschedule_shipment(self, shipment_id, scheduled_for, remark=None):
        """Move a shipment to a new date.

        A line is appended to the shipment note and the change is kept in the
        ``reschedule_history`` list of its extra data.
        """
        shipment = self._editable_shipment(shipment_id)
        previous = shipment.scheduled_for
        shipment.schedule(scheduled_for)

        line = f"Rescheduled to {scheduled_for:%Y-%m-%d %H:%M}"
        if remark and remark.strip():
            line = f"{line} - {remark.strip()}"
        shipment.update_note(f"{shipment.note}\n{line}" if shipment.note and shipment.note.strip() else line)

        extra = shipment.extra_data_dict()
        extra.setdefault("reschedule_history", []).append(
            {
                "rescheduled_at": datetime.now(UTC).isoformat(),
                "scheduled_for": scheduled_for.isoformat(),
                "remark": remark,
            }
        )
        shipment.update_extra_data(extra)
        self._touch()

        self.raise_(
            ShipmentRescheduled(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                previous_scheduled_for=previous,
                scheduled_for=scheduled_for,
            )
        )

    def update_shipment_freight(self, shipment_id, freight_value, reason=None):
        """Change the freight charged for a shipment, noting old and new value."""
        shipment = self._editable_shipment(shipment_id)
        previous = shipment.freight_value
        shipment.update_freight_value(freight_value)

        line = (
            f"Freight changed from {to_decimal(previous, 'freight_value'):.2f} "
            f"to {to_decimal(shipment.freight_value, 'freight_value'):.2f}"
        )
        if reason and reason.strip():
            line = f"{line} - Reason: {reason.strip()}"
        shipment.update_note(f"{shipment.note}\n{line}" if shipment.note and shipment.note.strip() else line)
        self._touch()

        self.raise_(
            ShipmentFreightUpdated(
                order_id=str(self.id),
                shipment_id=str(shipment.id),
                previous_value=previous,
                freight_value=shipment.freight_value,
                reason=reason,
            )
        )

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def close(self):
        """Conclude the negotiation with a deal."""
        self._assert_negotiating("Only orders in negotiation can be closed")
        if not self.items:
            raise InvalidOperationError("Cannot close an order without items")

        self.status = OrderStatus.CLOSED.value
        now = self._touch()

        self.raise_(
            OrderClosed(
                order_id=str(self.id),
                item_count=self.item_count,
                closed_at=now,
            )
        )

    def cancel_by_buyer(self):
        self._cancel(OrderStatus.CANCELLED_BY_BUYER, CancellationActor.BUYER)

    def cancel_by_timeout(self):
        self._cancel(OrderStatus.CANCELLED_BY_TIMEOUT, CancellationActor.TIMEOUT)

    def _cancel(self, target_status, actor):
        current = OrderStatus(self.status)
        if current == OrderStatus.CLOSED:
            raise InvalidOperationError("Cannot cancel an order that is already closed")
        if current in _TERMINAL_STATES:
            raise InvalidOperationError(f"Order is already cancelled ({current.value})")

        self.status = target_status.value
        now = self._touch()

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                cancelled_by=actor.value,
                status=target_status.value,
                cancelled_at=now,
            )
        )

    def update_status(self, new_status):
        """Force a status chosen by a trusted collaborator.

        No transition table is consulted. Terminal orders still refuse any
        change, and an order without items still cannot become Closed.
        """
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {new_status}"]}) from None

        current = OrderStatus(self.status)
        if current in _TERMINAL_STATES:
            raise InvalidOperationError(f"Cannot change the status of an order in {current.value} state")
        if target == OrderStatus.CLOSED and not self.items:
            raise InvalidOperationError("Cannot close an order without items")

        self.status = target.value
        now = self._touch()

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def replace_totals(self, totals):
        """Store totals computed elsewhere. The content is not interpreted."""
        self.totals = json.dumps(totals, default=str) if totals is not None else None
        self._touch()

        self.raise_(
            TotalsReplaced(
                order_id=str(self.id),
                totals=self.totals,
            )
        )

    # -------------------------------------------------------------------
    # Interaction deadline
    # -------------------------------------------------------------------
    def is_within_deadline(self):
        return datetime.now(UTC) <= as_utc(self.interaction_deadline)

    def extend_deadline(self, days):
        """Reset the deadline to ``days`` days from now, whatever it was before."""
        validate_days(days, "days")

        previous = self.interaction_deadline
        now = self._touch()
        self.interaction_deadline = now + timedelta(days=days)

        self.raise_(
            DeadlineExtended(
                order_id=str(self.id),
                days=days,
                previous_deadline=previous,
                new_deadline=self.interaction_deadline,
            )
        )

    # -------------------------------------------------------------------
    # Proposals (append-only, never gated on status)
    # -------------------------------------------------------------------
    def add_proposal(self, proposal):
        if proposal is None:
            raise ValidationError({"proposal": ["Proposal is required"]})

        proposal.sequence = len(self.proposals) + 1
        self.add_proposals(proposal)
        self._touch()

        self.raise_(
            ProposalSubmitted(
                order_id=str(self.id),
                proposal_id=str(proposal.id),
                sequence=proposal.sequence,
                author=proposal.author.value,
                author_id=proposal.author_id,
                action=proposal.action.value if proposal.action else None,
                note=proposal.note,
            )
        )

    def proposal_log(self):
        """Proposals in the order they were appended."""
        return sorted(self.proposals, key=lambda p: p.sequence or 0)

    def latest_proposal(self):
        log = self.proposal_log()
        return log[-1] if log else None
