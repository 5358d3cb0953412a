"""Shared BDD fixtures and step definitions for the Negotiation domain."""

from decimal import Decimal

import pytest
from negotiation.order.events import (
    DeadlineExtended,
    ItemAdded,
    ItemRemoved,
    OrderCancelled,
    OrderClosed,
    OrderCreated,
    ProposalSubmitted,
)
from protean.exceptions import InvalidOperationError, ValidationError
from pytest_bdd import parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_ORDER_EVENT_CLASSES = {
    "OrderCreated": OrderCreated,
    "ItemAdded": ItemAdded,
    "ItemRemoved": ItemRemoved,
    "OrderClosed": OrderClosed,
    "OrderCancelled": OrderCancelled,
    "DeadlineExtended": DeadlineExtended,
    "ProposalSubmitted": ProposalSubmitted,
}


@pytest.fixture()
def error():
    """Container for the exception raised by the last When step."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Then steps (shared)
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then("the action fails with an invalid state error")
def action_fails_with_invalid_state(error):
    assert error["exc"] is not None, "Expected an invalid state error but none was raised"
    assert isinstance(error["exc"], InvalidOperationError)


@then("the action fails with a validation error")
def action_fails_with_validation_error(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse("an {event_type} event is raised"))
def order_event_raised(order, event_type):
    event_cls = _ORDER_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in order._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in order._events]}"


@then(parsers.cfparse("the item total is {amount}"))
def item_total_is(item, amount):
    assert item.amounts()["total"] == Decimal(amount)


@then(parsers.cfparse("the item discount amount is {amount}"))
def item_discount_amount_is(item, amount):
    assert item.amounts()["discount_amount"] == Decimal(amount)


@then(parsers.cfparse("the item final value is {amount}"))
def item_final_value_is(item, amount):
    assert item.amounts()["final_value"] == Decimal(amount)
