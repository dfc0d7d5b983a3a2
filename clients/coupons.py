"""
Coupon service client
"""
from core.errors import CollaboratorError
from models.order import AppliedCoupon
from .http import ApiClient


class CouponClient(ApiClient):
    service_name = "coupons"

    def apply_coupon(self, code: str) -> AppliedCoupon:
        body = self.request("POST", "/cart/coupon", {"code": code})
        if "couponCode" not in body:
            raise CollaboratorError(self.service_name, "Coupon service returned no coupon")
        return AppliedCoupon.from_dict(body)

    def remove_coupon(self) -> None:
        self.request("DELETE", "/cart/coupon")
