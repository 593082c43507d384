from typing import Dict, FrozenSet, List, Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import JSON
from pydantic import computed_field

class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    CASH_ON_DELIVERY = "cash_on_delivery"

class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in ALLOWED_TRANSITIONS.items() if not targets)

ORDER_NUMBER_PREFIX = "INK"
ORDER_COUNTER_NAME = "order_number"

class StatusTransitionError(ValueError):
    def __init__(self, current: OrderStatus, requested: OrderStatus):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change order status from {current.value} to {requested.value}")

    @property
    def message(self) -> str:
        if self.requested == OrderStatus.CANCELLED:
            return f"Cannot cancel order with status: {self.current.value}"
        return str(self)


class OrderCounter(SQLModel, table=True):
    """Single-row sequence bumped atomically for every new order number."""
    name: str = Field(primary_key=True)
    value: int = Field(default=0)


class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)
    product_id: int = Field(foreign_key="product.id")

    # Snapshot at time of purchase
    name: str
    image: str = ""
    price: float
    quantity: int = Field(ge=1)
    size: str = "One Size"
    color: str = "Default"


class OrderStatusEntry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: Optional[int] = Field(default=None, foreign_key="order.id", index=True)
    status: OrderStatus
    date: datetime = Field(default_factory=datetime.utcnow)
    note: str = ""


class Order(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    # Order number stored in database (e.g., INK17290000000000042)
    order_number: Optional[str] = Field(default=None, unique=True, index=True)

    # Shipping: first_name, last_name, email, phone, address, city, state, zip_code, country
    shipping_address: dict = Field(sa_column=Column(JSON))

    # Payment Info
    payment_method: PaymentMethod = Field(default=PaymentMethod.RAZORPAY)
    # Gateway confirmation: id, status, update_time, email_address
    payment_result: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Pricing
    items_price: float = Field(default=0.0, ge=0)
    tax_price: float = Field(default=0.0, ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)

    # Coupon
    coupon_code: str = ""

    # Flags set by status transitions
    is_paid: bool = Field(default=False, index=True)
    paid_at: Optional[datetime] = None
    is_delivered: bool = Field(default=False)
    delivered_at: Optional[datetime] = None

    # Order Status
    status: OrderStatus = Field(default=OrderStatus.PENDING, index=True)

    # Shipping
    tracking_number: str = ""
    shipping_carrier: str = ""
    notes: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    items: List["OrderItem"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderItem.id"}
    )
    status_history: List["OrderStatusEntry"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "OrderStatusEntry.id"}
    )

    @computed_field
    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def full_shipping_address(self) -> str:
        addr = self.shipping_address or {}
        return f"{addr.get('address', '')}, {addr.get('city', '')}, {addr.get('state', '')} {addr.get('zip_code', '')}, {addr.get('country', '')}"

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        return new_status in ALLOWED_TRANSITIONS[self.status]

    def mark_created(self, order_number: str):
        """Assign the order number and write the opening history entry. Called once, before the first insert."""
        if self.order_number:
            raise ValueError(f"Order already created as {self.order_number}")
        self.order_number = order_number
        self.status_history.append(OrderStatusEntry(status=self.status, note="Order created"))

    def update_status(self, new_status: OrderStatus, note: str = ""):
        new_status = OrderStatus(new_status)
        if not self.can_transition_to(new_status):
            raise StatusTransitionError(self.status, new_status)

        now = datetime.utcnow()
        self.status = new_status
        self.status_history.append(OrderStatusEntry(status=new_status, date=now, note=note or ""))

        if new_status == OrderStatus.DELIVERED:
            self.is_delivered = True
            self.delivered_at = now
        # Stock restoration on cancel is run by OrderService, refunds by PaymentService

        self.updated_at = now

    def mark_paid(self, payment_result: Optional[dict] = None, note: str = "Payment received"):
        """Set the payment flags and move the order to processing. Idempotency is the caller's check on is_paid."""
        self.update_status(OrderStatus.PROCESSING, note)
        self.is_paid = True
        self.paid_at = datetime.utcnow()
        if payment_result is not None:
            self.payment_result = payment_result


class OrderItemRead(SQLModel):
    product_id: int
    name: str
    image: str
    price: float
    quantity: int
    size: str
    color: str

class OrderStatusEntryRead(SQLModel):
    status: OrderStatus
    date: datetime
    note: str

class OrderRead(SQLModel):
    id: int
    user_id: int
    order_number: str
    items: List[OrderItemRead] = []
    shipping_address: dict
    payment_method: PaymentMethod
    payment_result: Optional[dict] = None
    items_price: float
    tax_price: float
    shipping_price: float
    discount_amount: float
    total_price: float
    coupon_code: str
    is_paid: bool
    paid_at: Optional[datetime] = None
    is_delivered: bool
    delivered_at: Optional[datetime] = None
    status: OrderStatus
    status_history: List[OrderStatusEntryRead] = []
    tracking_number: str
    shipping_carrier: str
    notes: Optional[str] = None
    total_items: int
    created_at: datetime
    updated_at: datetime
