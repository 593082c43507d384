import json
import logging
from datetime import datetime
from typing import Optional
from sqlmodel import Session, select
from fastapi import HTTPException

from inksoul.core.config import settings
from inksoul.core.money import to_minor_units
from inksoul.models.order import Order, OrderStatus
from inksoul.models.user import User
from inksoul.services.order import OrderService

logger = logging.getLogger(__name__)

RAZORPAY_NOTE = "Payment received via Razorpay"

def get_payment_client():
    import razorpay
    return razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))

class PaymentService:
    def __init__(self, session: Session, client):
        self.session = session
        self.client = client
        self.orders = OrderService(session)

    def create_payment_order(self, order_id: int, user: User, amount: float) -> dict:
        order = self.orders.get_order_for(order_id, user, allow_admin=False)
        if order.is_paid:
            raise HTTPException(status_code=400, detail="Order is already paid")

        order_amount = to_minor_units(order.total_price)
        if abs(order_amount - to_minor_units(amount)) > 1:
            raise HTTPException(status_code=400, detail="Amount mismatch")

        data = {
            "amount": order_amount,
            "currency": settings.CURRENCY,
            "receipt": order.order_number,
            "payment_capture": 1,
            "notes": {
                "internal_order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": str(user.id),
            },
        }
        try:
            payment_order = self.client.order.create(data=data)
        except Exception:
            logger.exception("Razorpay order creation failed for order %s", order.order_number)
            raise HTTPException(status_code=502, detail="Payment provider error")

        order.payment_result = {"razorpay_order_id": payment_order.get("id"), "status": "created"}
        order.updated_at = datetime.utcnow()
        self.session.add(order)
        self.session.commit()
        logger.info("Razorpay order %s created for %s", payment_order.get("id"), order.order_number)

        return {
            "razorpay_order_id": payment_order.get("id"),
            "amount": order_amount,
            "currency": settings.CURRENCY,
            "key_id": settings.RAZORPAY_KEY_ID,
            "order_number": order.order_number,
        }

    def confirm_payment(self, order_id: int, user: User, razorpay_order_id: str, razorpay_payment_id: str, razorpay_signature: str) -> Order:
        order = self.orders.get_order_for(order_id, user, allow_admin=False)

        try:
            self.client.utility.verify_payment_signature({
                "razorpay_order_id": razorpay_order_id,
                "razorpay_payment_id": razorpay_payment_id,
                "razorpay_signature": razorpay_signature,
            })
        except Exception:
            logger.warning("Invalid payment signature for order %s", order.order_number)
            raise HTTPException(status_code=400, detail="Invalid payment signature")

        self.orders.record_payment(order, {
            "id": razorpay_payment_id,
            "razorpay_order_id": razorpay_order_id,
            "status": "captured",
            "update_time": datetime.utcnow().isoformat(),
            "email_address": user.email,
        }, RAZORPAY_NOTE)
        return order

    def _find_order(self, entity: dict) -> Optional[Order]:
        internal_order_id = (entity.get("notes") or {}).get("internal_order_id")
        if internal_order_id:
            try:
                return self.session.get(Order, int(internal_order_id))
            except (TypeError, ValueError):
                logger.warning("Webhook carries a malformed internal_order_id: %r", internal_order_id)
                return None

        razorpay_order_id = entity.get("order_id")
        if razorpay_order_id:
            return self.session.exec(
                select(Order).where(Order.payment_result["razorpay_order_id"].as_string() == razorpay_order_id)
            ).first()
        return None

    def handle_webhook(self, body: bytes, signature: Optional[str]) -> dict:
        if not signature:
            raise HTTPException(status_code=400, detail="Missing signature")

        try:
            self.client.utility.verify_webhook_signature(body.decode(), signature, settings.RAZORPAY_WEBHOOK_SECRET)
        except Exception:
            logger.warning("Rejected webhook with invalid signature")
            raise HTTPException(status_code=400, detail="Invalid signature")

        event = json.loads(body)
        event_type = event.get("event")
        entity = event.get("payload", {}).get("payment", {}).get("entity", {})

        if event_type == "payment.captured":
            order = self._find_order(entity)
            if not order:
                logger.warning("Captured payment %s has no matching order", entity.get("id"))
                return {"status": "ignored"}

            self.orders.record_payment(order, {
                "id": entity.get("id"),
                "razorpay_order_id": entity.get("order_id"),
                "status": entity.get("status", "captured"),
                "update_time": datetime.utcnow().isoformat(),
                "email_address": entity.get("email"),
            }, RAZORPAY_NOTE)
        elif event_type == "payment.failed":
            order = self._find_order(entity)
            # The order stays pending so the customer can retry
            logger.warning(
                "Payment %s failed for order %s: %s",
                entity.get("id"),
                order.order_number if order else "unknown",
                entity.get("error_description"),
            )
        else:
            logger.info("Ignoring Razorpay event %s", event_type)

        return {"status": "ok"}

    def refund(self, order_id: int, amount: Optional[float] = None, note: str = "") -> Order:
        order = self.orders.get_order(order_id)
        payment_id = (order.payment_result or {}).get("id")
        if not order.is_paid or not payment_id:
            raise HTTPException(status_code=400, detail="Order has no captured payment to refund")
        if not order.can_transition_to(OrderStatus.REFUNDED):
            raise HTTPException(status_code=400, detail=f"Cannot refund order with status: {order.status.value}")

        refund_amount = to_minor_units(amount if amount is not None else order.total_price)
        if refund_amount > to_minor_units(order.total_price):
            raise HTTPException(status_code=400, detail="Refund amount exceeds order total")

        try:
            refund = self.client.payment.refund(payment_id, {"amount": refund_amount})
        except Exception:
            logger.exception("Razorpay refund failed for order %s", order.order_number)
            raise HTTPException(status_code=502, detail="Payment provider error")

        order.payment_result = {**order.payment_result, "refund_id": refund.get("id"), "refunded_amount": refund_amount}
        logger.info("Refund %s issued for order %s", refund.get("id"), order.order_number)
        return self.orders.update_status(order.id, OrderStatus.REFUNDED, note or f"Refunded via Razorpay ({refund.get('id')})")
