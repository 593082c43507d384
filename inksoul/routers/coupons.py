from typing import List, Optional
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlmodel import Session
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from inksoul.db.session import get_session
from inksoul.core.money import round_currency
from inksoul.models.coupon import CartLine, CouponAdminRead, CouponRead, CouponType
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_user_optional, get_current_admin
from inksoul.services.coupon import CouponService

router = APIRouter()

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class CouponCreate(BaseModel):
    code: str = Field(min_length=3, max_length=20)
    description: Optional[str] = Field(default=None, max_length=200)
    type: CouponType
    value: float = Field(ge=0)
    max_discount: Optional[float] = Field(default=None, ge=0)
    min_order_value: float = Field(default=0, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    max_uses_per_user: int = Field(default=1, ge=1)
    applicable_products: List[int] = []
    applicable_categories: List[str] = []
    excluded_products: List[int] = []
    is_active: bool = True
    is_public: bool = True
    start_date: Optional[datetime] = None
    expires_at: datetime

    @field_validator("code", mode="before")
    @classmethod
    def strip_code(cls, value):
        # Length limits apply to the stored code
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("start_date", "expires_at")
    @classmethod
    def to_naive_utc(cls, value):
        return _naive_utc(value)

    @model_validator(mode="after")
    def check_values(self):
        if self.type == CouponType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage value cannot exceed 100")
        if self.start_date and self.start_date >= self.expires_at:
            raise ValueError("expires_at must be after start_date")
        return self

class CouponUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = Field(default=None, max_length=200)
    value: Optional[float] = Field(default=None, ge=0)
    min_order_value: Optional[float] = Field(default=None, ge=0)
    max_discount: Optional[float] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    max_uses_per_user: Optional[int] = Field(default=None, ge=1)
    is_active: Optional[bool] = None
    is_public: Optional[bool] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def to_naive_utc(cls, value):
        return _naive_utc(value)

class CouponCheck(BaseModel):
    code: str = Field(min_length=1)
    order_value: float = Field(ge=0)
    cart_items: List[CartLine] = []

class CouponValidated(BaseModel):
    code: str
    type: CouponType
    value: float
    discount: float
    free_shipping: bool
    description: Optional[str] = None

class CouponApplied(BaseModel):
    code: str
    discount: float
    final_price: float

def get_coupon_service(session: Session = Depends(get_session)) -> CouponService:
    return CouponService(session)

@router.get("/", response_model=List[CouponRead])
def list_active_coupons(service: CouponService = Depends(get_coupon_service)):
    return service.get_active_coupons()

@router.get("/admin", response_model=List[CouponAdminRead])
def list_all_coupons(admin: User = Depends(get_current_admin), service: CouponService = Depends(get_coupon_service)):
    return service.list_all()

@router.post("/validate", response_model=CouponValidated)
def validate_coupon(
    data: CouponCheck,
    current_user: Optional[User] = Depends(get_current_user_optional),
    service: CouponService = Depends(get_coupon_service),
):
    user_id = current_user.id if current_user else None
    coupon, discount = service.validate(data.code, data.order_value, user_id, data.cart_items)
    return CouponValidated(
        code=coupon.code,
        type=coupon.type,
        value=coupon.value,
        discount=discount,
        free_shipping=coupon.type == CouponType.FREE_SHIPPING,
        description=coupon.description,
    )

@router.post("/apply", response_model=CouponApplied)
def apply_coupon(
    data: CouponCheck,
    current_user: User = Depends(get_current_user),
    service: CouponService = Depends(get_coupon_service),
):
    coupon, discount = service.apply_code(data.code, current_user.id, data.order_value)
    return CouponApplied(code=coupon.code, discount=discount, final_price=round_currency(max(data.order_value - discount, 0)))

@router.post("/", response_model=CouponAdminRead, status_code=201)
def create_coupon(
    coupon_in: CouponCreate,
    admin: User = Depends(get_current_admin),
    service: CouponService = Depends(get_coupon_service),
):
    data = coupon_in.model_dump(exclude_none=True)
    return service.create_coupon(data, created_by=admin.id)

@router.put("/{coupon_id}", response_model=CouponAdminRead)
def update_coupon(
    coupon_id: int,
    coupon_in: CouponUpdate,
    admin: User = Depends(get_current_admin),
    service: CouponService = Depends(get_coupon_service),
):
    return service.update_coupon(coupon_id, coupon_in.model_dump(exclude_unset=True))

@router.delete("/{coupon_id}")
def delete_coupon(
    coupon_id: int,
    admin: User = Depends(get_current_admin),
    service: CouponService = Depends(get_coupon_service),
):
    service.delete_coupon(coupon_id)
    return {"message": "Coupon deleted successfully"}
