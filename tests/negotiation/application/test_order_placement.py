"""Application tests for placing an order."""

from datetime import timedelta

import pytest
from negotiation.order.creation import PlaceOrder
from negotiation.order.order import Order, OrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


class TestPlaceOrder:
    def test_returns_persisted_order_id(self):
        order_id = current_domain.process(
            PlaceOrder(supplier_id=1, buyer_id=2, allow_direct_contact=True, negotiable=True),
            asynchronous=False,
        )
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.NEGOTIATING.value
        assert order.supplier_id == 1
        assert order.buyer_id == 2
        assert order.allow_direct_contact is True
        assert order.item_count == 0

    def test_custom_deadline(self):
        order_id = current_domain.process(
            PlaceOrder(supplier_id=1, buyer_id=2, deadline_days=3),
            asynchronous=False,
        )
        order = current_domain.repository_for(Order).get(order_id)
        assert order.interaction_deadline - order.created_at == timedelta(days=3)

    def test_invalid_party_rejected(self):
        with pytest.raises(ValidationError):
            PlaceOrder(supplier_id=0, buyer_id=2)

    def test_unknown_order_not_found(self):
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Order).get("no-such-order")
