"""Interaction deadline extension command and the expiry sweep.

The sweep is meant to be triggered periodically by an external scheduler.
It loads orders still in negotiation whose interaction deadline has passed
and dispatches ``CancelOrderByTimeout`` for each of them. The aggregate
itself never cancels on its own; it only reports whether it is within its
deadline.

``orders_near_deadline`` lists the negotiations that are about to expire.
"""

from datetime import timedelta

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.closure import CancelOrderByTimeout
from negotiation.order.order import Order, OrderStatus, validate_days
from negotiation.shared.clock import as_utc, utcnow

logger = structlog.get_logger(__name__)


def _negotiating_orders():
    return (
        current_domain.repository_for(Order)
        ._dao.query.filter(status=OrderStatus.NEGOTIATING.value)
        .all()
        .items
    )


def orders_near_deadline(days_before=1, as_of=None):
    """Orders in negotiation whose deadline falls after ``as_of`` but no later
    than ``days_before`` days from it, earliest deadline first."""
    validate_days(days_before, "days_before")
    as_of = as_utc(as_of) if as_of else utcnow()
    limit = as_of + timedelta(days=days_before)

    upcoming = [
        order
        for order in _negotiating_orders()
        if order.interaction_deadline and as_of < as_utc(order.interaction_deadline) <= limit
    ]
    return sorted(upcoming, key=lambda order: as_utc(order.interaction_deadline))


@negotiation.command(part_of="Order")
class ExtendDeadline:
    order_id = Identifier(required=True)
    days = Integer(required=True, min_value=1)


@negotiation.command(part_of="Order")
class CancelExpiredOrders:
    """Cancel every negotiation whose interaction deadline lies before ``as_of``."""

    as_of = DateTime()  # Optional: defaults to now


@negotiation.command_handler(part_of=Order)
class OrderDeadlineHandler:
    @handle(ExtendDeadline)
    def extend_deadline(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.extend_deadline(command.days)
        repo.add(order)

        logger.info(
            "Interaction deadline extended",
            order_id=str(order.id),
            days=command.days,
            interaction_deadline=order.interaction_deadline.isoformat(),
        )

    @handle(CancelExpiredOrders)
    def cancel_expired_orders(self, command):
        as_of = as_utc(command.as_of) if command.as_of else utcnow()

        logger.info("Checking for expired negotiations", as_of=as_of.isoformat())

        expired = [
            order
            for order in _negotiating_orders()
            if order.interaction_deadline and as_utc(order.interaction_deadline) < as_of
        ]

        if not expired:
            logger.info("No expired negotiations found")
            return 0

        cancelled_count = 0
        for order in expired:
            try:
                current_domain.process(
                    CancelOrderByTimeout(order_id=str(order.id)),
                    asynchronous=False,
                )
                cancelled_count += 1
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning(
                    "Failed to cancel expired order",
                    order_id=str(order.id),
                    error=str(exc),
                )

        logger.info(
            "Expired negotiations cancelled",
            cancelled=cancelled_count,
            found=len(expired),
        )
        return cancelled_count
