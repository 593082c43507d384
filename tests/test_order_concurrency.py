"""Order lifecycle writes from two sessions that loaded the same rows."""

import pytest
from fastapi import HTTPException
from sqlmodel import Session, select

from inksoul.models.notification import Notification, NotificationType
from inksoul.models.order import Order, OrderCounter, OrderStatus, OrderStatusEntry
from inksoul.models.product import Product, ProductCategory
from inksoul.models.user import User
from inksoul.services.order import OrderService
from tests.conftest import make_user, shipping_address


def seed_catalogue(engine, stock=10):
    with Session(engine) as session:
        user = make_user(session, "buyer@example.com")
        product = Product(
            name="Koi Tee",
            slug="koi-tee",
            description="A comfortable printed cotton tee.",
            category=ProductCategory.T_SHIRTS,
            product_code="TSH-KOI",
            sku="KOI-001",
            price=20.0,
            stock=stock,
        )
        session.add(product)
        session.commit()
        return user.id, product.id


def place(session, user_id, product_id, quantity=1):
    user = session.get(User, user_id)
    return OrderService(session).create_order(
        user,
        [{"product_id": product_id, "quantity": quantity}],
        shipping_address(),
        items_price=20.0 * quantity,
    )


def stored(engine, order_id, product_id):
    with Session(engine) as session:
        history = session.exec(
            select(OrderStatusEntry.status).where(OrderStatusEntry.order_id == order_id).order_by(OrderStatusEntry.id)
        ).all()
        notifications = session.exec(select(Notification.type).where(Notification.type == NotificationType.PAYMENT_RECEIVED)).all()
        return session.get(Product, product_id).stock, list(history), len(notifications)


class TestConcurrentCancel:

    def test_second_cancel_is_rejected(self, file_engine):
        user_id, product_id = seed_catalogue(file_engine, stock=10)
        with Session(file_engine) as session:
            order_id = place(session, user_id, product_id, quantity=3).id

        with Session(file_engine) as session_a, Session(file_engine) as session_b:
            user_a = session_a.get(User, user_id)
            user_b = session_b.get(User, user_id)
            assert session_a.get(Order, order_id).status == OrderStatus.PENDING
            assert session_b.get(Order, order_id).status == OrderStatus.PENDING

            OrderService(session_a).cancel_order(order_id, user_a)

            with pytest.raises(HTTPException) as exc_info:
                OrderService(session_b).cancel_order(order_id, user_b)

        assert exc_info.value.status_code == 409
        stock, history, _ = stored(file_engine, order_id, product_id)
        assert stock == 10
        assert history == [OrderStatus.PENDING, OrderStatus.CANCELLED]

    def test_stale_admin_update_does_not_overwrite_cancel(self, file_engine):
        user_id, product_id = seed_catalogue(file_engine, stock=10)
        with Session(file_engine) as session:
            order_id = place(session, user_id, product_id, quantity=2).id

        with Session(file_engine) as session_a, Session(file_engine) as session_b:
            user_a = session_a.get(User, user_id)
            session_a.get(Order, order_id)
            session_b.get(Order, order_id)

            OrderService(session_a).cancel_order(order_id, user_a)

            with pytest.raises(HTTPException) as exc_info:
                OrderService(session_b).update_status(order_id, OrderStatus.PROCESSING, "Picked")

        assert exc_info.value.status_code == 409
        stock, history, _ = stored(file_engine, order_id, product_id)
        assert stock == 10
        assert history == [OrderStatus.PENDING, OrderStatus.CANCELLED]


class TestConcurrentPayment:

    def test_payment_is_recorded_once(self, file_engine):
        user_id, product_id = seed_catalogue(file_engine)
        with Session(file_engine) as session:
            order_id = place(session, user_id, product_id).id

        with Session(file_engine) as session_a, Session(file_engine) as session_b:
            order_a = session_a.get(Order, order_id)
            order_b = session_b.get(Order, order_id)
            assert order_a.is_paid is False and order_b.is_paid is False

            first = OrderService(session_a).record_payment(order_a, {"id": "pay_webhook", "status": "captured"})
            second = OrderService(session_b).record_payment(order_b, {"id": "pay_confirm", "status": "captured"})

            assert (first, second) == (True, False)
            assert order_b.is_paid is True

        _, history, payment_notifications = stored(file_engine, order_id, product_id)
        assert history == [OrderStatus.PENDING, OrderStatus.PROCESSING]
        assert payment_notifications == 1

    def test_payment_after_concurrent_cancel_is_rejected(self, file_engine):
        user_id, product_id = seed_catalogue(file_engine)
        with Session(file_engine) as session:
            order_id = place(session, user_id, product_id).id

        with Session(file_engine) as session_a, Session(file_engine) as session_b:
            user_a = session_a.get(User, user_id)
            session_a.get(Order, order_id)
            order_b = session_b.get(Order, order_id)

            OrderService(session_a).cancel_order(order_id, user_a)

            with pytest.raises(HTTPException) as exc_info:
                OrderService(session_b).record_payment(order_b, {"id": "pay_late", "status": "captured"})

        assert exc_info.value.status_code == 409
        _, history, payment_notifications = stored(file_engine, order_id, product_id)
        assert history == [OrderStatus.PENDING, OrderStatus.CANCELLED]
        assert payment_notifications == 0


class TestOrderNumbers:

    def test_sessions_with_stale_counters_get_distinct_numbers(self, file_engine):
        user_id, product_id = seed_catalogue(file_engine)

        with Session(file_engine) as session_a, Session(file_engine) as session_b:
            assert session_a.exec(select(OrderCounter)).one().value == 0
            assert session_b.exec(select(OrderCounter)).one().value == 0

            first = place(session_a, user_id, product_id)
            second = place(session_b, user_id, product_id)
            third = place(session_a, user_id, product_id)

            numbers = [first.order_number, second.order_number, third.order_number]

        assert len(set(numbers)) == 3
        assert [number[-4:] for number in numbers] == ["0001", "0002", "0003"]

    def test_failed_checkout_leaves_no_gap(self, session, customer, make_product, monkeypatch):
        tee = make_product(stock=5)
        bump = OrderService.next_order_number

        def bump_then_fail(self):
            bump(self)
            raise RuntimeError("connection lost")

        with monkeypatch.context() as patched:
            patched.setattr(OrderService, "next_order_number", bump_then_fail)
            with pytest.raises(RuntimeError):
                OrderService(session).create_order(customer, [{"product_id": tee.id, "quantity": 2}], shipping_address(), items_price=40.0)

        assert session.exec(select(OrderCounter)).one().value == 0
        assert session.get(Product, tee.id).stock == 5

        order = OrderService(session).create_order(customer, [{"product_id": tee.id, "quantity": 1}], shipping_address(), items_price=20.0)
        assert order.order_number.endswith("0001")
