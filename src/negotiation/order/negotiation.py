"""Negotiation flow: buyer actions and supplier notes.

The aggregate appends proposals in any status. This flow applies the
negotiation rules on top of it:

- nothing more can be said on a closed or cancelled order;
- the buyer's first proposal always starts the negotiation, whatever action
  was requested;
- later buyer proposals must name an action. ``Accepted`` closes the order
  and ``Cancelled`` cancels it on the buyer's behalf;
- a buyer action equal to the latest proposal's action is not recorded again;
- supplier notes must carry text.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from negotiation.domain import negotiation
from negotiation.order.order import Order, OrderStatus
from negotiation.order.proposal import BuyerActionType, Proposal

logger = structlog.get_logger(__name__)

NEGOTIATION_STARTED_NOTE = "Negotiation started"


@negotiation.command(part_of="Order")
class SubmitBuyerAction:
    order_id = Identifier(required=True)
    buyer_user_id = Integer(required=True, min_value=1)
    action = String(choices=BuyerActionType, max_length=20)
    note = Text()


@negotiation.command(part_of="Order")
class SubmitSupplierNote:
    order_id = Identifier(required=True)
    supplier_user_id = Integer(required=True, min_value=1)
    note = Text()


def _assert_open_for_proposals(order):
    status = OrderStatus(order.status)
    if status in (OrderStatus.CANCELLED_BY_BUYER, OrderStatus.CANCELLED_BY_TIMEOUT):
        raise InvalidOperationError("Cannot continue with the proposal: the order has been cancelled")
    if status == OrderStatus.CLOSED:
        raise InvalidOperationError("Cannot continue with the proposal: the order has already been negotiated")


@negotiation.command_handler(part_of=Order)
class NegotiationHandler:
    @handle(SubmitBuyerAction)
    def submit_buyer_action(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _assert_open_for_proposals(order)

        latest = order.latest_proposal()

        if latest is None:
            action = BuyerActionType.STARTED
            note = NEGOTIATION_STARTED_NOTE
        else:
            if not command.action:
                raise ValidationError({"action": ["An action is required"]})
            action = BuyerActionType(command.action)
            note = command.note

            if action == BuyerActionType.ACCEPTED:
                order.close()
            elif action == BuyerActionType.CANCELLED:
                order.cancel_by_buyer()

        if latest is not None and latest.action == action:
            logger.debug(
                "Repeated buyer action not recorded",
                order_id=str(order.id),
                action=action.value,
            )
            repo.add(order)
            return None

        proposal = Proposal.from_buyer(action, command.buyer_user_id, note=note)
        order.add_proposal(proposal)
        repo.add(order)

        logger.info(
            "Buyer proposal recorded",
            order_id=str(order.id),
            proposal_id=str(proposal.id),
            action=action.value,
            status=order.status,
        )
        return str(proposal.id)

    @handle(SubmitSupplierNote)
    def submit_supplier_note(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        _assert_open_for_proposals(order)

        proposal = Proposal.from_supplier(command.note, command.supplier_user_id)
        order.add_proposal(proposal)
        repo.add(order)

        logger.info(
            "Supplier proposal recorded",
            order_id=str(order.id),
            proposal_id=str(proposal.id),
        )
        return str(proposal.id)
