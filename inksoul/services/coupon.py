import logging
from typing import Iterable, List, Optional, Tuple
from datetime import datetime
from sqlalchemy import update
from sqlmodel import Session, select
from fastapi import HTTPException
from inksoul.models.coupon import Coupon, CouponRedemption, CouponType, COUPON_UPDATABLE_FIELDS
from inksoul.core.updates import apply_allowed_updates, ForbiddenFieldError

logger = logging.getLogger(__name__)

# Lost compare-and-swap rounds before a redemption gives up
MAX_REDEEM_ATTEMPTS = 3

class CouponService:
    def __init__(self, session: Session):
        self.session = session

    def get_active_coupons(self) -> List[Coupon]:
        now = datetime.utcnow()
        return self.session.exec(
            select(Coupon)
            .where(
                Coupon.is_active == True,  # noqa: E712
                Coupon.is_public == True,  # noqa: E712
                Coupon.start_date <= now,
                Coupon.expires_at >= now,
            )
            .order_by(Coupon.created_at.desc())
        ).all()

    def find_by_code(self, code: str) -> Optional[Coupon]:
        return self.session.exec(
            select(Coupon).where(Coupon.code == code.strip().upper(), Coupon.is_active == True)  # noqa: E712
        ).first()

    def validate(self, code: str, order_value: float, user_id: Optional[int] = None, cart_items: Iterable = ()) -> Tuple[Coupon, float]:
        """Look up a code and check it against an order. Returns the coupon and the discount it would give."""
        coupon = self.find_by_code(code)
        if not coupon:
            raise HTTPException(status_code=404, detail="Invalid coupon code")

        result = coupon.validate_for_order(order_value, user_id, cart_items)
        if not result.valid:
            logger.info("Coupon %s rejected: %s", coupon.code, result.message)
            raise HTTPException(status_code=400, detail=result.message)

        return coupon, coupon.calculate_discount(order_value)

    def redeem(
        self,
        coupon: Coupon,
        user_id: Optional[int],
        order_value: float,
        cart_items: Iterable = (),
        order_id: Optional[int] = None,
    ) -> CouponRedemption:
        """
        Claim one use of `coupon` inside the caller's transaction.

        The claim is a conditional UPDATE on used_count, so two requests that
        both validated against the same count can not both succeed. The loser
        reloads the coupon and validates again, which normally ends in
        "fully redeemed" or the per-user limit. Nothing is committed here.
        """
        cart_items = list(cart_items)
        for attempt in range(1, MAX_REDEEM_ATTEMPTS + 1):
            result = coupon.validate_for_order(order_value, user_id, cart_items)
            if not result.valid:
                logger.info("Coupon %s rejected: %s", coupon.code, result.message)
                raise HTTPException(status_code=400, detail=result.message)

            expected = coupon.used_count
            claimed = self.session.execute(
                update(Coupon)
                .where(Coupon.id == coupon.id, Coupon.used_count == expected)
                .values(used_count=expected + 1)
                .execution_options(synchronize_session=False)
            ).rowcount

            if claimed == 1:
                # In-memory count now matches the row written above
                redemption = coupon.apply(user_id, order_value, order_id)
                self.session.add(coupon)
                logger.info("Coupon %s redeemed by user %s (%s/%s)", coupon.code, user_id, coupon.used_count, coupon.max_uses or "unlimited")
                return redemption

            logger.warning("Coupon %s changed during redemption, retrying (attempt %s)", coupon.code, attempt)
            # Counters and the redemption list reload on next access
            self.session.expire(coupon)

        raise HTTPException(status_code=409, detail="Coupon is being redeemed by other orders, please try again")

    def apply_code(self, code: str, user_id: int, order_value: float) -> Tuple[Coupon, float]:
        """Validate and redeem a code outside of order checkout"""
        coupon = self.find_by_code(code)
        if not coupon:
            raise HTTPException(status_code=404, detail="Invalid coupon code")

        try:
            self.redeem(coupon, user_id, order_value)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(coupon)
        return coupon, coupon.calculate_discount(order_value)

    def list_all(self) -> List[Coupon]:
        return self.session.exec(select(Coupon).order_by(Coupon.created_at.desc())).all()

    def get_coupon(self, coupon_id: int) -> Coupon:
        coupon = self.session.get(Coupon, coupon_id)
        if not coupon:
            raise HTTPException(status_code=404, detail="Coupon not found")
        return coupon

    def create_coupon(self, data: dict, created_by: Optional[int] = None) -> Coupon:
        data = dict(data)
        data["code"] = data["code"].strip().upper()
        if self.session.exec(select(Coupon).where(Coupon.code == data["code"])).first():
            raise HTTPException(status_code=400, detail="Coupon code already exists")

        coupon = Coupon(**data, created_by=created_by)
        self.session.add(coupon)
        self.session.commit()
        self.session.refresh(coupon)
        logger.info("Coupon %s created by user %s", coupon.code, created_by)
        return coupon

    def update_coupon(self, coupon_id: int, changes: dict) -> Coupon:
        coupon = self.get_coupon(coupon_id)
        try:
            apply_allowed_updates(coupon, changes, COUPON_UPDATABLE_FIELDS)
        except ForbiddenFieldError as e:
            raise HTTPException(status_code=400, detail=str(e))

        if coupon.type == CouponType.PERCENTAGE and coupon.value > 100:
            self.session.rollback()
            raise HTTPException(status_code=400, detail="Percentage value cannot exceed 100")
        if coupon.start_date and coupon.start_date >= coupon.expires_at:
            self.session.rollback()
            raise HTTPException(status_code=400, detail="expires_at must be after start_date")

        self.session.add(coupon)
        self.session.commit()
        self.session.refresh(coupon)
        return coupon

    def delete_coupon(self, coupon_id: int):
        coupon = self.get_coupon(coupon_id)
        self.session.delete(coupon)
        self.session.commit()
        logger.info("Coupon %s deleted", coupon.code)
