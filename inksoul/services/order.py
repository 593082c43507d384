import logging
import time
from collections import OrderedDict
from typing import List, Optional, Tuple
from sqlalchemy import func, or_, update
from sqlmodel import Session, select
from fastapi import HTTPException

from inksoul.core.money import round_currency
from inksoul.core.pagination import offset_for
from inksoul.models.order import (
    Order, OrderItem, OrderStatus, OrderCounter, PaymentMethod, StatusTransitionError,
    ORDER_COUNTER_NAME, ORDER_NUMBER_PREFIX,
)
from inksoul.models.product import Product
from inksoul.models.coupon import CouponType
from inksoul.models.user import User
from inksoul.models.notification import NotificationType
from inksoul.services.coupon import CouponService
from inksoul.services.notification import NotificationService
from inksoul.services.email import send_order_confirmation_email, send_order_status_email

logger = logging.getLogger(__name__)

PRICE_TOLERANCE = 0.01

STATUS_NOTIFICATIONS = {
    OrderStatus.SHIPPED: (NotificationType.ORDER_SHIPPED, "Order shipped", "Your order {number} is on its way."),
    OrderStatus.DELIVERED: (NotificationType.ORDER_DELIVERED, "Order delivered", "Your order {number} has been delivered."),
    OrderStatus.CANCELLED: (NotificationType.ORDER_CANCELLED, "Order cancelled", "Your order {number} has been cancelled."),
}

class OrderService:
    def __init__(self, session: Session):
        self.session = session
        self.coupons = CouponService(session)
        self.notifications = NotificationService(session)

    # Creation

    def next_order_number(self) -> str:
        """Bump the counter row in the current transaction and format a new order number"""
        bumped = self.session.execute(
            update(OrderCounter)
            .where(OrderCounter.name == ORDER_COUNTER_NAME)
            .values(value=OrderCounter.value + 1)
            .execution_options(synchronize_session=False)
        ).rowcount
        if bumped == 0:
            self.session.add(OrderCounter(name=ORDER_COUNTER_NAME, value=1))
            self.session.flush()

        seq = self.session.exec(
            select(OrderCounter.value).where(OrderCounter.name == ORDER_COUNTER_NAME)
        ).one()
        return f"{ORDER_NUMBER_PREFIX}{int(time.time() * 1000)}{seq:04d}"

    def _build_items(self, items_data: List[dict]) -> Tuple[List[OrderItem], "OrderedDict[int, Tuple[Product, int]]"]:
        order_items = []
        reserved = OrderedDict()  # product id -> (product, total quantity)

        for item in items_data:
            product = self.session.get(Product, item["product_id"])
            if not product:
                raise HTTPException(status_code=404, detail=f"Product not found: {item['product_id']}")
            if not product.is_active:
                raise HTTPException(status_code=400, detail=f"Product is not available: {product.name}")

            quantity = reserved.get(product.id, (product, 0))[1] + item["quantity"]
            if product.stock < quantity:
                raise HTTPException(
                    status_code=400,
                    detail=f"Insufficient stock for {product.name}. Available: {product.stock}",
                )
            reserved[product.id] = (product, quantity)

            order_items.append(OrderItem(
                product_id=product.id,
                name=product.name,
                image=product.primary_image,
                price=product.price,
                quantity=item["quantity"],
                size=item.get("size") or "One Size",
                color=item.get("color") or "Default",
            ))
        return order_items, reserved

    def _reserve_stock(self, reserved):
        for product, quantity in reserved.values():
            claimed = self.session.execute(
                update(Product)
                .where(Product.id == product.id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed == 0:
                raise HTTPException(status_code=400, detail=f"Insufficient stock for {product.name}")

    def _restore_stock(self, order: Order):
        for item in order.items:
            self.session.execute(
                update(Product)
                .where(Product.id == item.product_id)
                .values(stock=Product.stock + item.quantity)
                .execution_options(synchronize_session=False)
            )

    def create_order(
        self,
        user: User,
        items_data: List[dict],
        shipping_address: dict,
        items_price: float,
        payment_method: PaymentMethod = PaymentMethod.RAZORPAY,
        tax_price: float = 0.0,
        shipping_price: float = 0.0,
        total_price: Optional[float] = None,
        coupon_code: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        """
        Price, redeem, reserve and number a new order in one transaction.

        Line prices come from the catalogue, not the client. The client's
        items_price (and total_price when given) must agree with the server
        figures within a cent. Any failure rolls back every step, including
        the coupon claim and the stock already reserved.
        """
        if not items_data:
            raise HTTPException(status_code=400, detail="Order must contain at least one item")

        try:
            order_items, reserved = self._build_items(items_data)

            expected_items_price = round_currency(sum(item.price * item.quantity for item in order_items))
            if abs(items_price - expected_items_price) > PRICE_TOLERANCE:
                logger.warning("Price mismatch for user %s: sent %s, expected %s", user.id, items_price, expected_items_price)
                raise HTTPException(status_code=400, detail="Price mismatch detected")

            discount = 0.0
            redemption = None
            code = ""
            if coupon_code:
                coupon = self.coupons.find_by_code(coupon_code)
                if not coupon:
                    raise HTTPException(status_code=404, detail="Invalid coupon code")
                cart_items = [
                    {"product": product.id, "category": product.category.value}
                    for product, _ in reserved.values()
                ]
                redemption = self.coupons.redeem(coupon, user.id, expected_items_price, cart_items)
                discount = coupon.calculate_discount(expected_items_price)
                if coupon.type == CouponType.FREE_SHIPPING:
                    shipping_price = 0.0
                code = coupon.code

            expected_total = round_currency(max(expected_items_price + tax_price + shipping_price - discount, 0))
            if total_price is not None and abs(total_price - expected_total) > PRICE_TOLERANCE:
                logger.warning("Total mismatch for user %s: sent %s, expected %s", user.id, total_price, expected_total)
                raise HTTPException(status_code=400, detail="Price mismatch detected")

            self._reserve_stock(reserved)

            order = Order(
                user_id=user.id,
                shipping_address=shipping_address,
                payment_method=payment_method,
                items_price=expected_items_price,
                tax_price=round_currency(tax_price),
                shipping_price=round_currency(shipping_price),
                discount_amount=discount,
                total_price=expected_total,
                coupon_code=code,
                notes=notes,
            )
            order.items = order_items
            order.mark_created(self.next_order_number())
            self.session.add(order)
            self.session.flush()

            if redemption is not None:
                redemption.order_id = order.id
                self.session.add(redemption)

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(order)
        logger.info("Order %s created for user %s, total %s", order.order_number, user.id, order.total_price)

        send_order_confirmation_email(order, user.name)
        self.notifications.notify_safely(
            user.id,
            NotificationType.ORDER_PLACED,
            "Order placed",
            f"Your order {order.order_number} has been placed.",
            link=f"/orders/{order.id}",
            data={"order_id": order.id},
        )
        return order

    # Queries

    def get_order(self, order_id: int) -> Order:
        order = self.session.get(Order, order_id)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    def get_order_for(self, order_id: int, user: User, allow_admin: bool = True) -> Order:
        order = self.get_order(order_id)
        if order.user_id != user.id and not (allow_admin and user.is_admin):
            raise HTTPException(status_code=403, detail="Access denied")
        return order

    def get_user_orders(self, user_id: int, page: int = 1, limit: int = 10, status: Optional[OrderStatus] = None) -> Tuple[List[Order], int]:
        conditions = [Order.user_id == user_id]
        if status:
            conditions.append(Order.status == status)
        return self._paginate(conditions, page, limit)

    def list_all(self, page: int = 1, limit: int = 20, status: Optional[OrderStatus] = None, search: Optional[str] = None) -> Tuple[List[Order], int]:
        conditions = []
        if status:
            conditions.append(Order.status == status)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Order.order_number.ilike(pattern),
                Order.shipping_address["first_name"].as_string().ilike(pattern),
                Order.shipping_address["last_name"].as_string().ilike(pattern),
                Order.shipping_address["email"].as_string().ilike(pattern),
            ))
        return self._paginate(conditions, page, limit)

    def _paginate(self, conditions, page: int, limit: int) -> Tuple[List[Order], int]:
        total = self.session.exec(select(func.count(Order.id)).where(*conditions)).one()
        orders = self.session.exec(
            select(Order)
            .where(*conditions)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(offset_for(page, limit))
            .limit(limit)
        ).all()
        return orders, total

    # Lifecycle

    def record_payment(self, order: Order, payment_result: Optional[dict] = None, note: str = "Payment received") -> bool:
        """
        Mark `order` paid exactly once. Returns False when it was already
        paid, so repeated confirmations and webhooks are harmless.

        The stored row is flipped with a conditional update on is_paid, so
        a webhook and a client confirmation racing each other record the
        payment once.
        """
        if order.is_paid:
            logger.info("Order %s already paid, ignoring payment confirmation", order.order_number)
            return False

        try:
            if not order.can_transition_to(OrderStatus.PROCESSING):
                raise StatusTransitionError(order.status, OrderStatus.PROCESSING)
            claimed = self.session.execute(
                update(Order)
                .where(Order.id == order.id, Order.is_paid == False, Order.status == order.status)  # noqa: E712
                .values(is_paid=True, status=OrderStatus.PROCESSING)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed == 0:
                self.session.rollback()
                self.session.refresh(order)
                if order.is_paid:
                    logger.info("Order %s was paid by another request", order.order_number)
                    return False
                raise HTTPException(status_code=409, detail="Order was updated by another request, please retry")
            order.mark_paid(payment_result, note)
        except StatusTransitionError as e:
            self.session.rollback()
            raise HTTPException(status_code=400, detail=e.message)

        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)
        logger.info("Order %s paid", order.order_number)

        self.notifications.notify_safely(
            order.user_id,
            NotificationType.PAYMENT_RECEIVED,
            "Payment received",
            f"We received your payment for order {order.order_number}.",
            link=f"/orders/{order.id}",
            data={"order_id": order.id},
        )
        return True

    def pay_order(self, order_id: int, user: User, payment_result: dict) -> Order:
        order = self.get_order_for(order_id, user, allow_admin=False)
        if order.is_paid or not self.record_payment(order, payment_result):
            raise HTTPException(status_code=400, detail="Order is already paid")
        return order

    def cancel_order(self, order_id: int, user: User, reason: Optional[str] = None) -> Order:
        order = self.get_order_for(order_id, user, allow_admin=False)
        return self._transition(order, OrderStatus.CANCELLED, reason or "Cancelled by customer")

    def update_status(
        self,
        order_id: int,
        status: OrderStatus,
        note: str = "",
        tracking_number: Optional[str] = None,
        shipping_carrier: Optional[str] = None,
    ) -> Order:
        order = self.get_order(order_id)
        return self._transition(order, status, note, tracking_number, shipping_carrier)

    def _claim_status(self, order: Order, status: OrderStatus) -> bool:
        """Move the stored row from the status this session loaded to `status`. False when another request got there first."""
        return self.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == order.status)
            .values(status=status)
            .execution_options(synchronize_session=False)
        ).rowcount == 1

    def _transition(self, order: Order, status: OrderStatus, note: str = "", tracking_number=None, shipping_carrier=None) -> Order:
        status = OrderStatus(status)
        try:
            if not order.can_transition_to(status):
                raise StatusTransitionError(order.status, status)
            if not self._claim_status(order, status):
                logger.info("Order %s changed before the move to %s", order.order_number, status.value)
                raise HTTPException(status_code=409, detail="Order was updated by another request, please retry")
            order.update_status(status, note)
            if status == OrderStatus.CANCELLED:
                self._restore_stock(order)
            if tracking_number:
                order.tracking_number = tracking_number
            if shipping_carrier:
                order.shipping_carrier = shipping_carrier
            self.session.add(order)
            self.session.commit()
        except StatusTransitionError as e:
            self.session.rollback()
            logger.info("Rejected transition for order %s: %s", order.order_number, e)
            raise HTTPException(status_code=400, detail=e.message)
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(order)
        logger.info("Order %s moved to %s", order.order_number, order.status.value)
        self._notify_status(order)
        return order

    def _notify_status(self, order: Order):
        if order.status not in STATUS_NOTIFICATIONS:
            return
        kind, title, message = STATUS_NOTIFICATIONS[order.status]
        self.notifications.notify_safely(
            order.user_id,
            kind,
            title,
            message.format(number=order.order_number),
            link=f"/orders/{order.id}",
            data={"order_id": order.id, "status": order.status.value},
        )
        user = self.session.get(User, order.user_id)
        send_order_status_email(order, user.name if user else "there")
