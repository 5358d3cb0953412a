"""Order item commands and their handler.

Every change to the order lines refreshes the stored totals. When the buyer
user who made the change is known, a ``Cart_Changed`` proposal is appended
so the negotiation log shows when the cart moved.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.order import Order, OrderItem
from negotiation.order.proposal import BuyerActionType, Proposal
from negotiation.order.totals import calculate_totals

logger = structlog.get_logger(__name__)


@negotiation.command(part_of="Order")
class AddOrderItem:
    order_id = Identifier(required=True)
    product_id = Integer(required=True, min_value=1)
    quantity = String(required=True, max_length=40)
    unit_price = String(required=True, max_length=40)
    discount_percent = String(default="0", max_length=40)
    note = Text()
    buyer_user_id = Integer(min_value=1)


@negotiation.command(part_of="Order")
class UpdateOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = String(max_length=40)
    unit_price = String(max_length=40)
    discount_percent = String(max_length=40)
    note = Text()
    buyer_user_id = Integer(min_value=1)


@negotiation.command(part_of="Order")
class RemoveOrderItem:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    buyer_user_id = Integer(min_value=1)


def _record_cart_change(order, buyer_user_id, note):
    if buyer_user_id is None:
        return
    order.add_proposal(Proposal.from_buyer(BuyerActionType.CART_CHANGED, buyer_user_id, note=note))


@negotiation.command_handler(part_of=Order)
class ManageOrderItemsHandler:
    @handle(AddOrderItem)
    def add_order_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        item = OrderItem.create(
            product_id=command.product_id,
            quantity=command.quantity,
            unit_price=command.unit_price,
            discount_percent=command.discount_percent or "0",
            note=command.note,
        )
        order.add_item(item)
        order.replace_totals(calculate_totals(order))
        _record_cart_change(
            order,
            command.buyer_user_id,
            f"Added product {item.product_id} (quantity {item.quantity})",
        )
        repo.add(order)

        logger.info(
            "Item added to order",
            order_id=str(order.id),
            item_id=str(item.id),
            product_id=item.product_id,
            item_count=order.item_count,
        )
        return str(item.id)

    @handle(UpdateOrderItem)
    def update_order_item(self, command):
        changes = {
            "quantity": command.quantity,
            "unit_price": command.unit_price,
            "discount_percent": command.discount_percent,
            "note": command.note,
        }
        changes = {field: value for field, value in changes.items() if value is not None}
        if not changes:
            raise ValidationError({"item_id": ["No changes given for the order item"]})

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if "quantity" in changes:
            order.update_item_quantity(command.item_id, changes["quantity"])
        if "unit_price" in changes:
            order.update_item_price(command.item_id, changes["unit_price"])
        if "discount_percent" in changes:
            order.update_item_discount(command.item_id, changes["discount_percent"])
        if "note" in changes:
            order.update_item_note(command.item_id, changes["note"])

        order.replace_totals(calculate_totals(order))
        _record_cart_change(
            order,
            command.buyer_user_id,
            f"Changed item {command.item_id}: {', '.join(sorted(changes))}",
        )
        repo.add(order)

        logger.info(
            "Order item updated",
            order_id=str(order.id),
            item_id=str(command.item_id),
            fields=sorted(changes),
        )

    @handle(RemoveOrderItem)
    def remove_order_item(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        item = order.find_item(command.item_id)
        order.remove_item(command.item_id)
        if item is None:
            logger.debug(
                "Order item already absent",
                order_id=str(order.id),
                item_id=str(command.item_id),
            )
            return

        order.replace_totals(calculate_totals(order))
        _record_cart_change(
            order,
            command.buyer_user_id,
            f"Removed product {item.product_id}",
        )
        repo.add(order)

        logger.info(
            "Item removed from order",
            order_id=str(order.id),
            item_id=str(command.item_id),
            item_count=order.item_count,
        )
