"""Shipment scheduling: commands, handler and the per-order shipment summary.

Scheduling checks that the requested quantity is still uncovered by other
shipments of the same item and that the delivery date lies within the
scheduling window. When the product's freight weight and the trip distance
are supplied, freight is quoted with ``quote_freight`` and the calculation
is kept in the shipment's extra data; supplying only one of them is an
error. ``validate_schedule_requests`` runs the same checks over a batch of
requests and reports instead of raising.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.order import Order
from negotiation.shared.clock import as_utc, utcnow
from negotiation.shared.money import ZERO, positive, to_decimal, to_text
from negotiation.shipping.freight import quote_freight
from negotiation.shipping.shipment import ItemShipment

logger = structlog.get_logger(__name__)

MAX_SCHEDULE_DAYS_AHEAD = 90


@dataclass(frozen=True)
class ShipmentSummary:
    """Shipment figures for one order."""

    item_count: int
    items_with_shipments: int
    shipment_count: int
    scheduled_count: int
    total_weight: Decimal
    total_volume: Decimal
    total_freight: Decimal
    next_scheduled_for: datetime | None = None


def validate_schedule_date(scheduled_for):
    if not isinstance(scheduled_for, datetime):
        raise ValidationError({"scheduled_for": ["Scheduled date must be a datetime"]})

    now = utcnow()
    moment = as_utc(scheduled_for)
    if moment <= now:
        raise ValidationError({"scheduled_for": ["Scheduled date must be in the future"]})
    if moment > now + timedelta(days=MAX_SCHEDULE_DAYS_AHEAD):
        raise ValidationError(
            {"scheduled_for": [f"Scheduled date cannot be more than {MAX_SCHEDULE_DAYS_AHEAD} days ahead"]}
        )


@dataclass(frozen=True)
class ScheduleRequest:
    """One shipment someone intends to schedule."""

    item_id: str
    quantity: Decimal | str
    scheduled_for: datetime


@dataclass(frozen=True)
class ScheduleValidation:
    is_valid: bool
    errors: tuple[str, ...] = ()


def validate_schedule_requests(order, requests) -> ScheduleValidation:
    """Check several scheduling requests against one order without raising.

    Each request must have a date inside the scheduling window and a
    quantity the item can still cover. Requests for the same item draw on
    the same remaining quantity in the given order. Problems are reported
    as ``"Item <id>: <message>"`` lines.
    """
    errors = []
    requested = {}

    for request in requests or ():
        item_id = str(request.item_id)
        try:
            validate_schedule_date(request.scheduled_for)
            quantity = positive(request.quantity, "quantity")
            available = order.available_quantity(item_id) - requested.get(item_id, ZERO)
        except ValidationError as exc:
            messages = [message for field_messages in exc.messages.values() for message in field_messages]
            errors.append(f"Item {item_id}: {'; '.join(messages)}")
            continue

        if quantity > available:
            errors.append(
                f"Item {item_id}: Requested quantity ({to_text(quantity)}) "
                f"exceeds the available quantity ({to_text(available)})"
            )
            continue
        requested[item_id] = requested.get(item_id, ZERO) + quantity

    return ScheduleValidation(is_valid=not errors, errors=tuple(errors))


def summarize_shipments(order) -> ShipmentSummary:
    shipments = list(order.shipments)
    now = utcnow()
    upcoming = sorted(
        as_utc(s.scheduled_for) for s in shipments if s.scheduled_for and as_utc(s.scheduled_for) > now
    )

    return ShipmentSummary(
        item_count=len(order.items),
        items_with_shipments=len({str(s.item_id) for s in shipments}),
        shipment_count=len(shipments),
        scheduled_count=sum(1 for s in shipments if s.scheduled_for),
        total_weight=sum((to_decimal(s.total_weight, "total_weight") for s in shipments if s.total_weight), ZERO),
        total_volume=sum((to_decimal(s.total_volume, "total_volume") for s in shipments if s.total_volume), ZERO),
        total_freight=sum((to_decimal(s.freight_value, "freight_value") for s in shipments), ZERO),
        next_scheduled_for=upcoming[0] if upcoming else None,
    )


@negotiation.command(part_of="Order")
class ScheduleShipment:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = String(required=True, max_length=40)
    scheduled_for = DateTime(required=True)
    freight_value = String(max_length=40)  # used when no quote inputs are given
    unit_weight = String(max_length=40)  # freight weight per unit, from the product catalogue
    unit_volume = String(max_length=40)
    distance_km = String(max_length=40)
    origin_address = Text()
    destination_address = Text()
    note = Text()


@negotiation.command(part_of="Order")
class RescheduleShipment:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    scheduled_for = DateTime(required=True)
    remark = Text()


@negotiation.command(part_of="Order")
class UpdateShipmentFreight:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)
    freight_value = String(required=True, max_length=40)
    reason = Text()


@negotiation.command(part_of="Order")
class RemoveShipment:
    order_id = Identifier(required=True)
    shipment_id = Identifier(required=True)


@negotiation.command_handler(part_of=Order)
class ShipmentSchedulingHandler:
    @handle(ScheduleShipment)
    def schedule_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        quantity = positive(command.quantity, "quantity")
        if command.unit_weight is not None and command.distance_km is None:
            raise ValidationError({"distance_km": ["Distance is required to quote freight from a unit weight"]})
        if command.distance_km is not None and command.unit_weight is None:
            raise ValidationError({"unit_weight": ["Unit weight is required to quote freight over a distance"]})

        available = order.available_quantity(command.item_id)
        if quantity > available:
            raise InvalidOperationError(
                f"Requested quantity ({to_text(quantity)}) exceeds the available quantity ({to_text(available)})"
            )
        validate_schedule_date(command.scheduled_for)

        quote = None
        if command.unit_weight is not None and command.distance_km is not None:
            quote = quote_freight(
                command.unit_weight,
                quantity,
                command.distance_km,
                unit_volume=command.unit_volume,
            )
            freight_value = quote.freight_value
        else:
            freight_value = command.freight_value if command.freight_value is not None else ZERO

        shipment = ItemShipment.create(
            item_id=command.item_id,
            quantity=quantity,
            freight_value=freight_value,
            origin_address=command.origin_address,
            destination_address=command.destination_address,
        )
        shipment.schedule(command.scheduled_for)
        if command.note and command.note.strip():
            shipment.update_note(command.note.strip())
        if quote is not None:
            shipment.update_weight_volume(quote.total_weight, quote.total_volume)
            shipment.update_extra_data(
                {
                    "freight_calculation": {
                        "total_weight": to_text(quote.total_weight),
                        "total_volume": to_text(quote.total_volume) if quote.total_volume is not None else None,
                        "distance_km": to_text(quote.distance_km),
                        "freight_value": to_text(quote.freight_value),
                    }
                }
            )

        order.add_shipment(shipment)
        repo.add(order)

        logger.info(
            "Shipment scheduled",
            order_id=str(order.id),
            shipment_id=str(shipment.id),
            item_id=str(command.item_id),
            quantity=shipment.quantity,
            freight_value=shipment.freight_value,
        )
        return str(shipment.id)

    @handle(RescheduleShipment)
    def reschedule_shipment(self, command):
        validate_schedule_date(command.scheduled_for)

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reschedule_shipment(command.shipment_id, command.scheduled_for, remark=command.remark)
        repo.add(order)

        logger.info(
            "Shipment rescheduled",
            order_id=str(order.id),
            shipment_id=str(command.shipment_id),
            scheduled_for=command.scheduled_for.isoformat(),
        )

    @handle(UpdateShipmentFreight)
    def update_shipment_freight(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.update_shipment_freight(command.shipment_id, command.freight_value, reason=command.reason)
        repo.add(order)

        logger.info(
            "Shipment freight updated",
            order_id=str(order.id),
            shipment_id=str(command.shipment_id),
            freight_value=command.freight_value,
        )

    @handle(RemoveShipment)
    def remove_shipment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.remove_shipment(command.shipment_id)
        repo.add(order)

        logger.info(
            "Shipment removed",
            order_id=str(order.id),
            shipment_id=str(command.shipment_id),
        )
