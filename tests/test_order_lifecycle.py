"""Tests for the order state machine on the Order entity."""

import pytest

from inksoul.models.order import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Order,
    OrderStatus,
    StatusTransitionError,
)


def build_order(status=OrderStatus.PENDING):
    order = Order(user_id=1, shipping_address={"email": "ada@example.com"}, items_price=40, total_price=40)
    order.mark_created("INK17000000000000001")
    order.status = status
    return order


class TestOrderCreation:

    def test_mark_created_writes_single_history_entry(self):
        order = build_order()
        assert order.order_number == "INK17000000000000001"
        assert len(order.status_history) == 1
        entry = order.status_history[0]
        assert entry.status == OrderStatus.PENDING
        assert entry.note == "Order created"

    def test_order_number_is_assigned_once(self):
        order = build_order()
        with pytest.raises(ValueError):
            order.mark_created("INK17000000000000002")
        assert order.order_number == "INK17000000000000001"

    def test_new_order_flags(self):
        order = build_order()
        assert order.status == OrderStatus.PENDING
        assert order.is_paid is False
        assert order.is_delivered is False


class TestStatusTransitions:

    def test_happy_path(self):
        order = build_order()
        order.update_status(OrderStatus.PROCESSING, "Payment received")
        order.update_status(OrderStatus.SHIPPED, "Handed to carrier")
        order.update_status(OrderStatus.DELIVERED)

        assert order.status == OrderStatus.DELIVERED
        assert [entry.status for entry in order.status_history] == [
            OrderStatus.PENDING,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ]
        assert order.status_history[2].note == "Handed to carrier"
        assert order.status_history[3].note == ""

    def test_delivered_sets_delivery_flags(self):
        order = build_order(OrderStatus.SHIPPED)
        order.update_status(OrderStatus.DELIVERED)
        assert order.is_delivered is True
        assert order.delivered_at is not None

    def test_accepts_plain_string_status(self):
        order = build_order()
        order.update_status("processing")
        assert order.status == OrderStatus.PROCESSING

    def test_illegal_transition_leaves_order_untouched(self):
        order = build_order()
        history_before = list(order.status_history)
        updated_before = order.updated_at

        with pytest.raises(StatusTransitionError):
            order.update_status(OrderStatus.SHIPPED)

        assert order.status == OrderStatus.PENDING
        assert list(order.status_history) == history_before
        assert order.updated_at == updated_before

    @pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_terminal_states_allow_nothing(self, terminal, target):
        order = build_order(terminal)
        with pytest.raises(StatusTransitionError):
            order.update_status(target)
        assert order.status == terminal

    def test_cancel_message_names_current_status(self):
        order = build_order(OrderStatus.SHIPPED)
        with pytest.raises(StatusTransitionError) as exc_info:
            order.update_status(OrderStatus.CANCELLED)
        assert exc_info.value.message == "Cannot cancel order with status: shipped"

    @pytest.mark.parametrize("source", [OrderStatus.PROCESSING, OrderStatus.SHIPPED])
    def test_refund_is_reachable(self, source):
        order = build_order(source)
        order.update_status(OrderStatus.REFUNDED, "Refunded")
        assert order.status == OrderStatus.REFUNDED

    def test_pending_cannot_be_refunded(self):
        with pytest.raises(StatusTransitionError):
            build_order().update_status(OrderStatus.REFUNDED)

    def test_table_covers_every_status(self):
        assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)
        assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}


class TestMarkPaid:

    def test_mark_paid_moves_to_processing(self):
        order = build_order()
        order.mark_paid({"id": "pay_123", "status": "captured"})

        assert order.is_paid is True
        assert order.paid_at is not None
        assert order.status == OrderStatus.PROCESSING
        assert order.payment_result["id"] == "pay_123"
        assert order.status_history[-1].note == "Payment received"

    def test_cancelled_order_cannot_be_paid(self):
        order = build_order(OrderStatus.CANCELLED)
        with pytest.raises(StatusTransitionError):
            order.mark_paid()
        assert order.is_paid is False

    def test_paid_flag_is_not_reverted_by_cancel(self):
        order = build_order()
        order.mark_paid()
        order.update_status(OrderStatus.CANCELLED)
        assert order.is_paid is True
