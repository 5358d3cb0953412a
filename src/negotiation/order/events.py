"""Domain events for the Order aggregate.

Every state change on an order is announced as a versioned, immutable fact.
Notification and persistence collaborators subscribe to these; the aggregate
never calls them directly. Monetary values travel as decimal text.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from negotiation.domain import negotiation


@negotiation.event(part_of="Order")
class OrderCreated:
    """A buyer opened a negotiation with a supplier."""

    __version__ = 1

    order_id = Identifier(required=True)
    supplier_id = Integer(required=True)
    buyer_id = Integer(required=True)
    allow_direct_contact = Boolean(default=False)
    negotiable = Boolean(default=False)
    interaction_deadline = DateTime(required=True)
    created_at = DateTime(required=True)


@negotiation.event(part_of="Order")
class ItemAdded:
    """A product line was added to an order under negotiation."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Integer(required=True)
    quantity = String(required=True)
    unit_price = String(required=True)
    discount_percent = String(required=True)
    final_value = String(required=True)
    item_count = Integer(required=True)


@negotiation.event(part_of="Order")
class ItemRemoved:
    """A product line was removed from an order under negotiation."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Integer(required=True)
    item_count = Integer(required=True)


@negotiation.event(part_of="Order")
class ItemUpdated:
    """Quantity, price, discount or note of an order line changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = String(required=True)
    unit_price = String(required=True)
    discount_percent = String(required=True)
    total = String(required=True)
    discount_amount = String(required=True)
    final_value = String(required=True)


@negotiation.event(part_of="Order")
class ShipmentPlanned:
    """A shipment covering part or all of an item's quantity was planned."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = String(required=True)
    freight_value = String(required=True)
    scheduled_for = DateTime()


@negotiation.event(part_of="Order")
class ShipmentRemoved:
    """A planned shipment was dropped from an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    item_id = Identifier(required=True)


@negotiation.event(part_of="Order")
class OrderClosed:
    """Negotiation concluded with a deal."""

    __version__ = 1

    order_id = Identifier(required=True)
    item_count = Integer(required=True)
    closed_at = DateTime(required=True)


@negotiation.event(part_of="Order")
class OrderCancelled:
    """Negotiation ended without a deal, by the buyer or by timeout."""

    __version__ = 1

    order_id = Identifier(required=True)
    cancelled_by = String(required=True)  # Buyer | Timeout
    status = String(required=True)
    cancelled_at = DateTime(required=True)


@negotiation.event(part_of="Order")
class OrderStatusChanged:
    """A trusted collaborator forced the order into a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@negotiation.event(part_of="Order")
class TotalsReplaced:
    """The pricing collaborator stored freshly computed totals."""

    __version__ = 1

    order_id = Identifier(required=True)
    totals = Text()  # JSON blob, opaque to the aggregate


@negotiation.event(part_of="Order")
class DeadlineExtended:
    """The interaction deadline was reset relative to the current time."""

    __version__ = 1

    order_id = Identifier(required=True)
    days = Integer(required=True)
    previous_deadline = DateTime(required=True)
    new_deadline = DateTime(required=True)


@negotiation.event(part_of="Order")
class ProposalSubmitted:
    """A buyer action or supplier note was appended to the negotiation log."""

    __version__ = 1

    order_id = Identifier(required=True)
    proposal_id = Identifier(required=True)
    sequence = Integer(required=True)
    author = String(required=True)  # Buyer | Supplier
    author_id = Integer(required=True)
    action = String()
    note = Text()


@negotiation.event(part_of="Order")
class ShipmentRescheduled:
    """A planned shipment was moved to a new delivery date."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    previous_scheduled_for = DateTime()
    scheduled_for = DateTime(required=True)


@negotiation.event(part_of="Order")
class ShipmentFreightUpdated:
    """The freight charged for a planned shipment changed."""

    __version__ = 1

    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    previous_value = String(required=True)
    freight_value = String(required=True)
    reason = Text()
