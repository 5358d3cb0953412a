"""ItemShipment entity — one planned physical delivery for part of an order item.

Shipments belong to the Order aggregate and point at their item through a
plain ``item_id`` value. Several shipments may cover one item; the entity
itself does not compare its quantity with the item's.
"""

import json
from datetime import datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from negotiation.domain import negotiation
from negotiation.shared.clock import as_utc, utcnow
from negotiation.shared.money import AMOUNT_TEXT_LENGTH, bounded_text, non_negative, positive


def check_shipment(shipment):
    """Raise ValidationError unless quantity is positive and freight, weight and volume are not negative."""
    positive(shipment.quantity, "quantity")
    non_negative(shipment.freight_value, "freight_value")
    if shipment.total_weight is not None:
        non_negative(shipment.total_weight, "total_weight")
    if shipment.total_volume is not None:
        non_negative(shipment.total_volume, "total_volume")


@negotiation.entity(part_of="Order")
class ItemShipment:
    item_id = Identifier(required=True)
    quantity = String(required=True, max_length=AMOUNT_TEXT_LENGTH)
    freight_value = String(required=True, max_length=AMOUNT_TEXT_LENGTH)
    scheduled_for = DateTime()
    total_weight = String(max_length=AMOUNT_TEXT_LENGTH)
    total_volume = String(max_length=AMOUNT_TEXT_LENGTH)
    origin_address = Text()
    destination_address = Text()
    extra_data = Text()  # JSON blob
    note = Text()

    @invariant.post
    def amounts_must_be_in_range(self):
        check_shipment(self)

    @classmethod
    def create(cls, item_id, quantity, freight_value, origin_address=None, destination_address=None):
        if not item_id:
            raise ValidationError({"item_id": ["Shipment must reference an order item"]})

        return cls(
            item_id=str(item_id),
            quantity=bounded_text(positive(quantity, "quantity"), "quantity", AMOUNT_TEXT_LENGTH),
            freight_value=bounded_text(
                non_negative(freight_value, "freight_value"), "freight_value", AMOUNT_TEXT_LENGTH
            ),
            origin_address=origin_address,
            destination_address=destination_address,
        )

    def schedule(self, scheduled_for):
        """Set the delivery date. It must lie strictly in the future."""
        if not isinstance(scheduled_for, datetime):
            raise ValidationError({"scheduled_for": ["Scheduled date must be a datetime"]})
        if as_utc(scheduled_for) <= utcnow():
            raise ValidationError({"scheduled_for": ["Scheduled date must be in the future"]})

        self.scheduled_for = scheduled_for

    def update_weight_volume(self, total_weight=None, total_volume=None):
        weight = (
            bounded_text(non_negative(total_weight, "total_weight"), "total_weight", AMOUNT_TEXT_LENGTH)
            if total_weight is not None
            else None
        )
        volume = (
            bounded_text(non_negative(total_volume, "total_volume"), "total_volume", AMOUNT_TEXT_LENGTH)
            if total_volume is not None
            else None
        )

        with atomic_change(self):
            self.total_weight = weight
            self.total_volume = volume

    def update_freight_value(self, freight_value):
        self.freight_value = bounded_text(
            non_negative(freight_value, "freight_value"), "freight_value", AMOUNT_TEXT_LENGTH
        )

    def update_addresses(self, origin_address, destination_address):
        self.origin_address = origin_address
        self.destination_address = destination_address

    def update_extra_data(self, extra_data):
        self.extra_data = json.dumps(extra_data, default=str) if extra_data is not None else None

    def update_note(self, note):
        self.note = note

    def extra_data_dict(self):
        return json.loads(self.extra_data) if self.extra_data else {}
