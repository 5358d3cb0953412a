"""Tests for Order construction and item management."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from negotiation.order.events import ItemAdded, ItemRemoved, ItemUpdated, OrderCreated, TotalsReplaced
from negotiation.order.order import CartStatus, Order, OrderItem, OrderStatus
from protean.exceptions import InvalidOperationError, ValidationError


def _make_order(**overrides):
    data = {
        "supplier_id": 1,
        "buyer_id": 2,
        "allow_direct_contact": True,
        "negotiable": True,
        "deadline_days": 7,
    }
    data.update(overrides)
    return Order.create(**data)


def _make_item(product_id=10, quantity=5, unit_price="20.00", discount_percent=0):
    return OrderItem.create(product_id, quantity, unit_price, discount_percent)


class TestOrderCreation:
    def test_defaults(self):
        order = _make_order()
        assert order.status == OrderStatus.NEGOTIATING.value
        assert order.cart_status == CartStatus.OPEN.value
        assert order.item_count == 0
        assert len(order.items) == 0
        assert len(order.proposals) == 0
        assert order.totals is None

    def test_flags_and_parties(self):
        order = _make_order(allow_direct_contact=False, negotiable=True)
        assert order.supplier_id == 1
        assert order.buyer_id == 2
        assert order.allow_direct_contact is False
        assert order.negotiable is True

    def test_deadline_is_days_from_now(self):
        before = datetime.now(UTC)
        order = _make_order(deadline_days=7)
        after = datetime.now(UTC)
        assert before + timedelta(days=7) <= order.interaction_deadline <= after + timedelta(days=7)

    def test_default_deadline_is_seven_days(self):
        order = Order.create(supplier_id=1, buyer_id=2, allow_direct_contact=False, negotiable=False)
        assert order.interaction_deadline - order.created_at == timedelta(days=7)

    def test_timestamps_set(self):
        order = _make_order()
        assert order.created_at is not None
        assert order.updated_at == order.created_at

    def test_raises_created_event(self):
        order = _make_order()
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderCreated)
        assert event.order_id == str(order.id)
        assert event.supplier_id == 1
        assert event.buyer_id == 2

    @pytest.mark.parametrize("field", ["supplier_id", "buyer_id"])
    @pytest.mark.parametrize("value", [0, -5])
    def test_party_ids_must_be_positive(self, field, value):
        with pytest.raises(ValidationError):
            _make_order(**{field: value})

    @pytest.mark.parametrize("days", [0, -1])
    def test_deadline_days_must_be_positive(self, days):
        with pytest.raises(ValidationError) as exc:
            _make_order(deadline_days=days)
        assert "deadline_days" in exc.value.messages


class TestAddItem:
    def test_add_item(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        assert order.item_count == 1
        assert order.find_item(item.id).id == item.id

    def test_item_count_follows_items(self):
        order = _make_order()
        for product_id in (10, 11, 12):
            order.add_item(_make_item(product_id=product_id))
            assert order.item_count == len(order.items)
        assert order.item_count == 3

    def test_raises_item_added_event(self):
        order = _make_order()
        order._events.clear()
        item = _make_item(discount_percent=10)
        order.add_item(item)
        events = [e for e in order._events if isinstance(e, ItemAdded)]
        assert len(events) == 1
        assert events[0].item_id == str(item.id)
        assert events[0].final_value == item.final_value
        assert events[0].item_count == 1

    def test_missing_item_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError):
            order.add_item(None)

    def test_updates_last_modified(self):
        order = _make_order()
        before = order.updated_at
        order.add_item(_make_item())
        assert order.updated_at >= before


class TestRemoveItem:
    def test_remove_item(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order.remove_item(item.id)
        assert len(order.items) == 0
        assert order.item_count == 0

    def test_remove_is_idempotent(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order.remove_item(item.id)
        order.remove_item(item.id)
        assert order.item_count == 0

    def test_remove_unknown_id_is_noop(self):
        order = _make_order()
        order.add_item(_make_item())
        order._events.clear()
        order.remove_item("does-not-exist")
        assert order.item_count == 1
        assert order._events == []

    def test_raises_item_removed_event(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order._events.clear()
        order.remove_item(item.id)
        assert len(order._events) == 1
        assert isinstance(order._events[0], ItemRemoved)
        assert order._events[0].item_count == 0


class TestAggregateItemEdits:
    def test_update_item_quantity(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order.update_item_quantity(item.id, 8)
        assert order.find_item(item.id).total == "160.00"

    def test_update_item_discount_raises_event(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order._events.clear()
        order.update_item_discount(item.id, 10)
        assert isinstance(order._events[0], ItemUpdated)
        assert order._events[0].final_value == order.find_item(item.id).final_value

    def test_update_item_price_and_note(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order.update_item_price(item.id, "25")
        order.update_item_note(item.id, "Price revised")
        found = order.find_item(item.id)
        assert found.unit_price == "25"
        assert found.note == "Price revised"

    def test_unknown_item_rejected(self):
        order = _make_order()
        with pytest.raises(ValidationError) as exc:
            order.update_item_quantity("missing", 3)
        assert "item_id" in exc.value.messages

    def test_edits_blocked_after_close(self):
        order = _make_order()
        item = _make_item()
        order.add_item(item)
        order.close()
        with pytest.raises(InvalidOperationError):
            order.update_item_price(item.id, "1.00")
        assert order.find_item(item.id).unit_price == "20.00"

    def test_rejected_edit_changes_nothing(self):
        order = _make_order()
        item = OrderItem.create(10, 5, "1e30")
        order.add_item(item)
        before = order.find_item(item.id).amounts()
        order._events.clear()

        with pytest.raises(ValidationError):
            order.update_item_quantity(item.id, "1e39")

        assert order.find_item(item.id).amounts() == before
        assert order.item_count == 1
        assert order._events == []


class TestInvariants:
    def test_item_count_mismatch_rejected(self):
        order = _make_order()
        order.add_item(_make_item())
        with pytest.raises(ValidationError) as exc:
            order.item_count = 5
        assert "item_count" in exc.value.messages


class TestTotals:
    def test_replace_totals_stores_blob(self):
        order = _make_order()
        order.replace_totals({"net_value": "90.00", "item_count": 1})
        assert json.loads(order.totals) == {"net_value": "90.00", "item_count": 1}

    def test_replace_totals_is_not_validated(self):
        order = _make_order()
        order.replace_totals({"anything": ["goes", 1, None]})
        assert json.loads(order.totals) == {"anything": ["goes", 1, None]}

    def test_replace_totals_raises_event(self):
        order = _make_order()
        order._events.clear()
        order.replace_totals({"net_value": "0"})
        assert isinstance(order._events[0], TotalsReplaced)
        assert order._events[0].totals == order.totals

    def test_replace_totals_allowed_on_terminal_order(self):
        order = _make_order()
        order.cancel_by_buyer()
        order.replace_totals({"net_value": "0"})
        assert order.totals is not None
