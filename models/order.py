"""
Order submission related data models
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Dict, Any

from .money import money, to_float


@dataclass(frozen=True)
class OrderResult:
    """Order service answer to a submission"""
    order_id: str
    payment_url: Optional[str] = None

    @property
    def is_payment_redirect(self) -> bool:
        return bool(self.payment_url)

    @property
    def redirect_url(self) -> str:
        # Hard redirect to the payment gateway, otherwise the confirmation view
        if self.payment_url:
            return self.payment_url
        return f"/order/{self.order_id}/confirmation"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "orderId": self.order_id,
            "paymentUrl": self.payment_url,
            "paymentRedirect": self.is_payment_redirect,
            "redirect": self.redirect_url
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderResult":
        return cls(order_id=str(data["orderId"]), payment_url=data.get("paymentUrl") or None)


@dataclass(frozen=True)
class SavedAddress:
    """Address book record of an authenticated customer"""
    id: str
    first_name: str
    last_name: str
    street: str
    postal_code: str
    city: str
    phone: str = ""
    country: str = "PL"
    apartment: str = ""
    is_default: bool = False
    type: str = "SHIPPING"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "street": self.street,
            "apartment": self.apartment,
            "postalCode": self.postal_code,
            "city": self.city,
            "phone": self.phone,
            "country": self.country,
            "isDefault": self.is_default,
            "type": self.type
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedAddress":
        return cls(
            id=str(data["id"]),
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            street=data.get("street") or "",
            apartment=data.get("apartment") or "",
            postal_code=data.get("postalCode") or "",
            city=data.get("city") or "",
            phone=data.get("phone") or "",
            country=data.get("country") or "PL",
            is_default=bool(data.get("isDefault", False)),
            type=data.get("type") or "SHIPPING"
        )


@dataclass(frozen=True)
class AppliedCoupon:
    """Discount code accepted by the coupon service"""
    code: str
    discount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"couponCode": self.code, "discount": to_float(self.discount)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppliedCoupon":
        return cls(code=data["couponCode"], discount=money(data.get("discount", 0)))
