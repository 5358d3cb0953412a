"""PlaceOrder command and its handler."""

import structlog
from protean import handle
from protean.fields import Boolean, Integer
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.order import DEFAULT_DEADLINE_DAYS, Order

logger = structlog.get_logger(__name__)


@negotiation.command(part_of="Order")
class PlaceOrder:
    supplier_id = Integer(required=True, min_value=1)
    buyer_id = Integer(required=True, min_value=1)
    allow_direct_contact = Boolean(default=False)
    negotiable = Boolean(default=False)
    deadline_days = Integer(default=DEFAULT_DEADLINE_DAYS, min_value=1)


@negotiation.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        order = Order.create(
            supplier_id=command.supplier_id,
            buyer_id=command.buyer_id,
            allow_direct_contact=command.allow_direct_contact,
            negotiable=command.negotiable,
            deadline_days=command.deadline_days or DEFAULT_DEADLINE_DAYS,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            supplier_id=order.supplier_id,
            buyer_id=order.buyer_id,
            interaction_deadline=order.interaction_deadline.isoformat(),
        )
        return str(order.id)
