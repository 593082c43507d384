from typing import Iterable, List, Optional, Union
from datetime import datetime
from enum import Enum
from pydantic import BaseModel
from sqlmodel import Field, Relationship, SQLModel, Column
from sqlalchemy import JSON
from inksoul.core.money import round_currency

class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"
    FREE_SHIPPING = "free_shipping"

# Fields an administrator may change after creation. used_count and the
# redemption log are only ever touched by a redemption.
COUPON_UPDATABLE_FIELDS = (
    "description",
    "value",
    "min_order_value",
    "max_discount",
    "max_uses",
    "max_uses_per_user",
    "is_active",
    "is_public",
    "expires_at",
)

class CartLine(BaseModel):
    product: int
    category: Optional[str] = None

class CouponValidation(BaseModel):
    valid: bool
    message: str

    @classmethod
    def ok(cls) -> "CouponValidation":
        return cls(valid=True, message="Coupon is valid")

    @classmethod
    def reject(cls, message: str) -> "CouponValidation":
        return cls(valid=False, message=message)


class CouponRedemption(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # References
    coupon_id: int = Field(foreign_key="coupon.id", index=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)  # null for anonymous
    order_id: Optional[int] = Field(default=None, foreign_key="order.id")

    # Usage Details
    order_value: float
    used_at: datetime = Field(default_factory=datetime.utcnow)


class Coupon(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    # Coupon Details
    code: str = Field(unique=True, index=True)  # always stored uppercase, e.g. "SUMMER20"
    description: Optional[str] = None

    # Discount
    type: CouponType
    value: float  # Percentage (0-100) or fixed amount
    max_discount: Optional[float] = None  # Cap for percentage coupons
    min_order_value: float = Field(default=0)

    # Usage Limits
    max_uses: Optional[int] = None  # null = unlimited
    max_uses_per_user: int = Field(default=1)
    used_count: int = Field(default=0)

    # Restrictions
    applicable_products: List[int] = Field(default=[], sa_column=Column(JSON))
    applicable_categories: List[str] = Field(default=[], sa_column=Column(JSON))
    excluded_products: List[int] = Field(default=[], sa_column=Column(JSON))

    # Visibility
    is_active: bool = Field(default=True, index=True)
    is_public: bool = Field(default=True)

    # Validity
    start_date: datetime = Field(default_factory=datetime.utcnow)
    expires_at: datetime = Field(index=True)

    # Ownership & Timestamps
    created_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    redemptions: List["CouponRedemption"] = Relationship(
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "order_by": "CouponRedemption.id"}
    )

    @property
    def is_expired(self) -> bool:
        return datetime.utcnow() > self.expires_at

    @property
    def is_exhausted(self) -> bool:
        if not self.max_uses:
            return False
        return self.used_count >= self.max_uses

    def uses_by(self, user_id: int) -> int:
        return sum(1 for redemption in self.redemptions if redemption.user_id is not None and redemption.user_id == user_id)

    def _has_applicable_item(self, cart_items: Iterable[Union[CartLine, dict]]) -> bool:
        included_products = {str(p) for p in self.applicable_products}
        excluded_products = {str(p) for p in self.excluded_products}

        for item in cart_items:
            if isinstance(item, dict):
                item = CartLine(**item)
            product = str(item.product)
            matches = product in included_products or item.category in self.applicable_categories
            if matches and product not in excluded_products:
                return True
        return False

    def validate_for_order(
        self,
        order_value: float,
        user_id: Optional[int] = None,
        cart_items: Iterable[Union[CartLine, dict]] = (),
        now: Optional[datetime] = None,
    ) -> CouponValidation:
        """
        Run the redemption rules in order and report the first one that fails.

        A rejected coupon is a normal business outcome, so the result is
        returned rather than raised.
        """
        now = now or datetime.utcnow()

        if not self.is_active:
            return CouponValidation.reject("This coupon is not active")

        if now > self.expires_at:
            return CouponValidation.reject("This coupon has expired")

        if now < self.start_date:
            return CouponValidation.reject("This coupon is not yet valid")

        if self.max_uses and self.used_count >= self.max_uses:
            return CouponValidation.reject("This coupon has been fully redeemed")

        if user_id is not None and self.uses_by(user_id) >= self.max_uses_per_user:
            return CouponValidation.reject("You have already used this coupon the maximum number of times")

        if order_value < self.min_order_value:
            return CouponValidation.reject(f"Minimum order value of ${self.min_order_value:g} required")

        if self.applicable_products or self.applicable_categories:
            if not self._has_applicable_item(cart_items):
                return CouponValidation.reject("This coupon is not applicable to your cart items")

        return CouponValidation.ok()

    def calculate_discount(self, order_value: float) -> float:
        order_value = max(order_value, 0)
        discount = 0.0

        if self.type == CouponType.PERCENTAGE:
            discount = order_value * self.value / 100
            if self.max_discount is not None and discount > self.max_discount:
                discount = self.max_discount
            discount = min(discount, order_value)
        elif self.type == CouponType.FIXED:
            discount = min(self.value, order_value)
        elif self.type == CouponType.FREE_SHIPPING:
            discount = 0.0  # shipping is waived by the order service

        return round_currency(max(discount, 0))

    def apply(self, user_id: Optional[int], order_value: float, order_id: Optional[int] = None) -> CouponRedemption:
        """Record one redemption. Does not validate; callers run validate_for_order first."""
        self.used_count += 1
        redemption = CouponRedemption(user_id=user_id, order_value=order_value, order_id=order_id)
        self.redemptions.append(redemption)
        return redemption


class CouponRead(SQLModel):
    id: int
    code: str
    description: Optional[str] = None
    type: CouponType
    value: float
    max_discount: Optional[float] = None
    min_order_value: float
    max_uses: Optional[int] = None
    max_uses_per_user: int
    used_count: int
    applicable_products: List[int] = []
    applicable_categories: List[str] = []
    excluded_products: List[int] = []
    is_active: bool
    is_public: bool
    start_date: datetime
    expires_at: datetime
    created_at: datetime

class CouponRedemptionRead(SQLModel):
    user_id: Optional[int] = None
    order_id: Optional[int] = None
    order_value: float
    used_at: datetime

class CouponAdminRead(CouponRead):
    created_by: Optional[int] = None
    updated_at: datetime
    redemptions: List[CouponRedemptionRead] = []
