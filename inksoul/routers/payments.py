from typing import Optional
from fastapi import APIRouter, Depends, Header, Request
from sqlmodel import Session
from pydantic import BaseModel, Field
from inksoul.core.config import settings
from inksoul.db.session import get_session
from inksoul.models.order import OrderRead
from inksoul.models.user import User
from inksoul.routers.auth import get_current_user, get_current_admin
from inksoul.services.payment import PaymentService, get_payment_client

router = APIRouter()

class PaymentOrderCreate(BaseModel):
    order_id: int
    amount: float = Field(ge=0.5)

class PaymentConfirm(BaseModel):
    order_id: int
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

class RefundRequest(BaseModel):
    order_id: int
    amount: Optional[float] = Field(default=None, gt=0)
    reason: str = Field(default="", max_length=500)

def get_payment_service(session: Session = Depends(get_session), client=Depends(get_payment_client)) -> PaymentService:
    return PaymentService(session, client)

@router.post("/create-order")
def create_payment_order(
    data: PaymentOrderCreate,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.create_payment_order(data.order_id, current_user, data.amount)

@router.post("/confirm", response_model=OrderRead)
def confirm_payment(
    data: PaymentConfirm,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return service.confirm_payment(
        data.order_id,
        current_user,
        data.razorpay_order_id,
        data.razorpay_payment_id,
        data.razorpay_signature,
    )

@router.post("/webhook")
async def payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    service: PaymentService = Depends(get_payment_service),
):
    body = await request.body()
    return service.handle_webhook(body, x_razorpay_signature)

@router.post("/refund", response_model=OrderRead)
def refund_payment(
    data: RefundRequest,
    admin: User = Depends(get_current_admin),
    service: PaymentService = Depends(get_payment_service),
):
    return service.refund(data.order_id, data.amount, data.reason)

@router.get("/config")
def payment_config():
    return {"key_id": settings.RAZORPAY_KEY_ID, "currency": settings.CURRENCY}
