"""Commands and handler that close or cancel an order."""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.order import Order

logger = structlog.get_logger(__name__)


@negotiation.command(part_of="Order")
class CloseOrder:
    order_id = Identifier(required=True)


@negotiation.command(part_of="Order")
class CancelOrderByBuyer:
    order_id = Identifier(required=True)


@negotiation.command(part_of="Order")
class CancelOrderByTimeout:
    order_id = Identifier(required=True)


@negotiation.command_handler(part_of=Order)
class OrderClosureHandler:
    @handle(CloseOrder)
    def close_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.close()
        repo.add(order)

        logger.info("Order closed", order_id=str(order.id), item_count=order.item_count)

    @handle(CancelOrderByBuyer)
    def cancel_order_by_buyer(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel_by_buyer()
        repo.add(order)

        logger.info("Order cancelled by buyer", order_id=str(order.id))

    @handle(CancelOrderByTimeout)
    def cancel_order_by_timeout(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.cancel_by_timeout()
        repo.add(order)

        logger.info(
            "Order cancelled by timeout",
            order_id=str(order.id),
            interaction_deadline=str(order.interaction_deadline),
        )
