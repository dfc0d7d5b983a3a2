"""
Coupon applier - discount code handling against the current cart
"""
import logging
from decimal import Decimal
from typing import Optional

from core.errors import ValidationError
from models.money import money, ZERO
from models.order import AppliedCoupon

logger = logging.getLogger(__name__)


class CouponApplier:

    def __init__(self, coupon_client):
        self.coupons = coupon_client
        self.applied: Optional[AppliedCoupon] = None

    @property
    def discount(self) -> Decimal:
        return self.applied.discount if self.applied else ZERO

    @property
    def code(self) -> Optional[str]:
        return self.applied.code if self.applied else None

    @staticmethod
    def normalize(code: str) -> str:
        return (code or "").strip().upper()

    def apply(self, code: str) -> AppliedCoupon:
        normalized = self.normalize(code)
        if not normalized:
            raise ValidationError("Enter a discount code", {"couponCode": "required"})
        if self.applied and self.applied.code == normalized:
            return self.applied

        result = self.coupons.apply_coupon(normalized)
        self.applied = AppliedCoupon(code=result.code, discount=money(result.discount))
        logger.info("Coupon %s applied, discount %s", self.applied.code, self.applied.discount)
        return self.applied

    def remove(self) -> None:
        # Removing when nothing is applied is a no-op
        if self.applied is None:
            return
        self.coupons.remove_coupon()
        logger.info("Coupon %s removed", self.applied.code)
        self.applied = None
