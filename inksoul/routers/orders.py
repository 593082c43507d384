from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session
from pydantic import BaseModel, EmailStr, Field
from inksoul.db.session import get_session
from inksoul.core.pagination import Pagination
from inksoul.models.order import OrderRead, OrderStatus, PaymentMethod
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.order import OrderService

router = APIRouter()

class OrderCreateItem(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)
    size: Optional[str] = None
    color: Optional[str] = None

class ShippingAddress(BaseModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    phone: str = Field(min_length=7, max_length=20)
    address: str = Field(min_length=5, max_length=200)
    city: str = Field(min_length=2, max_length=50)
    state: str = ""
    zip_code: str = Field(min_length=5, max_length=10)
    country: str = "United States"

class OrderCreate(BaseModel):
    items: List[OrderCreateItem] = Field(min_length=1)
    shipping_address: ShippingAddress
    payment_method: PaymentMethod = PaymentMethod.RAZORPAY
    items_price: float = Field(ge=0)
    tax_price: float = Field(default=0, ge=0)
    shipping_price: float = Field(default=0, ge=0)
    total_price: Optional[float] = Field(default=None, ge=0)
    coupon_code: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)

class PaymentResult(BaseModel):
    id: str
    status: str
    update_time: Optional[str] = None
    email_address: Optional[str] = None

class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)

class StatusUpdate(BaseModel):
    status: OrderStatus
    note: str = Field(default="", max_length=500)
    tracking_number: Optional[str] = None
    shipping_carrier: Optional[str] = None

class OrderPage(BaseModel):
    orders: List[OrderRead]
    pagination: Pagination

def get_order_service(session: Session = Depends(get_session)) -> OrderService:
    return OrderService(session)

@router.post("/", response_model=OrderRead, status_code=201)
def create_order(
    order_in: OrderCreate,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.create_order(
        user=current_user,
        items_data=[item.model_dump() for item in order_in.items],
        shipping_address=order_in.shipping_address.model_dump(),
        items_price=order_in.items_price,
        payment_method=order_in.payment_method,
        tax_price=order_in.tax_price,
        shipping_price=order_in.shipping_price,
        total_price=order_in.total_price,
        coupon_code=order_in.coupon_code,
        notes=order_in.notes,
    )

@router.get("/", response_model=OrderPage)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    status: Optional[OrderStatus] = None,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.get_user_orders(current_user.id, page, limit, status)
    return {"orders": orders, "pagination": Pagination.build(page, limit, total)}

@router.get("/admin/all", response_model=OrderPage)
def list_all_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    admin: User = Depends(get_current_admin),
    service: OrderService = Depends(get_order_service),
):
    orders, total = service.list_all(page, limit, status, search)
    return {"orders": orders, "pagination": Pagination.build(page, limit, total)}

@router.get("/{order_id}", response_model=OrderRead)
def read_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.get_order_for(order_id, current_user)

@router.put("/{order_id}/pay", response_model=OrderRead)
def pay_order(
    order_id: int,
    payment: PaymentResult,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.pay_order(order_id, current_user, payment.model_dump())

@router.put("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.cancel_order(order_id, current_user, data.reason if data else None)

@router.put("/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: int,
    update: StatusUpdate,
    admin: User = Depends(get_current_admin),
    service: OrderService = Depends(get_order_service),
):
    return service.update_status(
        order_id,
        update.status,
        update.note,
        tracking_number=update.tracking_number,
        shipping_carrier=update.shipping_carrier,
    )
