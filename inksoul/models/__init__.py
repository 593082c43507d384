# Import all models to register them with SQLModel
from inksoul.models.user import User, UserRole
from inksoul.models.product import Product, Review, ProductCategory
from inksoul.models.order import Order, OrderItem, OrderStatusEntry, OrderCounter, OrderStatus, PaymentMethod
from inksoul.models.coupon import Coupon, CouponRedemption, CouponType
from inksoul.models.design import Design, DesignStatus, ProductType
from inksoul.models.notification import Notification, NotificationType, NotificationPriority

__all__ = [
    "User",
    "UserRole",
    "Product",
    "Review",
    "ProductCategory",
    "Order",
    "OrderItem",
    "OrderStatusEntry",
    "OrderCounter",
    "OrderStatus",
    "PaymentMethod",
    "Coupon",
    "CouponRedemption",
    "CouponType",
    "Design",
    "DesignStatus",
    "ProductType",
    "Notification",
    "NotificationType",
    "NotificationPriority",
]
