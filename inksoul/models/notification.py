from typing import Optional
from datetime import datetime
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON

class NotificationType(str, Enum):
    ORDER_PLACED = "order_placed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    PAYMENT_RECEIVED = "payment_received"
    DESIGN_APPROVED = "design_approved"
    DESIGN_REJECTED = "design_rejected"
    PRICE_DROP = "price_drop"
    NEW_PRODUCT = "new_product"
    PROMOTION = "promotion"
    SYSTEM = "system"

class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)

    type: NotificationType
    title: str = Field(max_length=100)
    message: str = Field(max_length=500)
    icon: str = "bell"
    link: str = ""
    data: dict = Field(default={}, sa_column=Column(JSON))
    priority: NotificationPriority = Field(default=NotificationPriority.NORMAL)

    read: bool = Field(default=False, index=True)
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    def mark_as_read(self):
        self.read = True
        self.read_at = datetime.utcnow()


class NotificationRead(SQLModel):
    id: int
    user_id: int
    type: NotificationType
    title: str
    message: str
    icon: str
    link: str
    data: dict = {}
    priority: NotificationPriority
    read: bool
    read_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    created_at: datetime
