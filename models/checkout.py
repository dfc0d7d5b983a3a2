"""
Checkout draft related data models
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum, IntEnum
from typing import List, Optional, Dict, Any

from .money import money, to_float, ZERO
from .shipping import PackageShippingSelection


class CheckoutStep(IntEnum):
    AUTH_CHOICE = 0
    ADDRESS = 1
    SHIPPING = 2
    PAYMENT = 3
    SUMMARY = 4


class PaymentMethod(Enum):
    BLIK = "blik"
    CARD = "card"
    TRANSFER = "transfer"
    COD = "cod"


PAYMENT_FEES = {
    PaymentMethod.BLIK: Decimal("0.00"),
    PaymentMethod.CARD: Decimal("0.00"),
    PaymentMethod.TRANSFER: Decimal("0.00"),
    PaymentMethod.COD: Decimal("5.00"),
}

ADDRESS_REQUIRED = ("first_name", "last_name", "email", "phone", "street", "postal_code", "city")
BILLING_REQUIRED = ("billing_street", "billing_postal_code", "billing_city")


@dataclass(frozen=True)
class Address:
    """Primary shipping address and contact data for the order"""
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    street: str = ""
    apartment: str = ""
    postal_code: str = ""
    city: str = ""
    country: str = "PL"
    different_billing_address: bool = False
    billing_street: str = ""
    billing_apartment: str = ""
    billing_postal_code: str = ""
    billing_city: str = ""
    want_invoice: bool = False
    billing_company_name: str = ""
    billing_nip: str = ""

    def missing_fields(self) -> List[str]:
        missing = [name for name in ADDRESS_REQUIRED if not getattr(self, name).strip()]
        if self.different_billing_address:
            missing.extend(name for name in BILLING_REQUIRED if not getattr(self, name).strip())
        if self.want_invoice and not self.billing_nip.strip():
            missing.append("billing_nip")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "street": self.street,
            "apartment": self.apartment,
            "postalCode": self.postal_code,
            "city": self.city,
            "country": self.country,
            "differentBillingAddress": self.different_billing_address,
            "billingStreet": self.billing_street,
            "billingApartment": self.billing_apartment,
            "billingPostalCode": self.billing_postal_code,
            "billingCity": self.billing_city,
            "wantInvoice": self.want_invoice,
            "billingCompanyName": self.billing_company_name,
            "billingNip": self.billing_nip
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            first_name=(data.get("firstName") or "").strip(),
            last_name=(data.get("lastName") or "").strip(),
            email=(data.get("email") or "").strip(),
            phone=(data.get("phone") or "").strip(),
            street=(data.get("street") or "").strip(),
            apartment=(data.get("apartment") or "").strip(),
            postal_code=(data.get("postalCode") or "").strip(),
            city=(data.get("city") or "").strip(),
            country=data.get("country") or "PL",
            different_billing_address=bool(data.get("differentBillingAddress", False)),
            billing_street=(data.get("billingStreet") or "").strip(),
            billing_apartment=(data.get("billingApartment") or "").strip(),
            billing_postal_code=(data.get("billingPostalCode") or "").strip(),
            billing_city=(data.get("billingCity") or "").strip(),
            want_invoice=bool(data.get("wantInvoice", False)),
            billing_company_name=(data.get("billingCompanyName") or "").strip(),
            billing_nip=(data.get("billingNip") or "").strip()
        )


@dataclass(frozen=True)
class PaymentSelection:
    """Chosen payment method and its fee"""
    method: PaymentMethod = PaymentMethod.BLIK
    extra_fee: Decimal = ZERO

    @classmethod
    def for_method(cls, method: PaymentMethod) -> "PaymentSelection":
        return cls(method=method, extra_fee=PAYMENT_FEES[method])

    def to_dict(self) -> Dict[str, Any]:
        return {"method": self.method.value, "extraFee": to_float(self.extra_fee)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentSelection":
        return cls.for_method(PaymentMethod(data.get("method", PaymentMethod.BLIK.value)))


@dataclass(frozen=True)
class CheckoutDraft:
    """In-progress, not yet submitted state of one checkout session"""
    step: CheckoutStep = CheckoutStep.AUTH_CHOICE
    is_guest: bool = False
    address: Address = field(default_factory=Address)
    shipping_selections: List[PackageShippingSelection] = field(default_factory=list)
    payment: PaymentSelection = field(default_factory=PaymentSelection)
    accept_terms: bool = False
    accept_newsletter: bool = False

    def with_changes(self, **changes) -> "CheckoutDraft":
        return replace(self, **changes)

    def selection_for(self, package_id: str) -> Optional[PackageShippingSelection]:
        for selection in self.shipping_selections:
            if selection.package_id == package_id:
                return selection
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "step": int(self.step),
            "isGuest": self.is_guest,
            "address": self.address.to_dict(),
            "shippingSelections": [sel.to_dict() for sel in self.shipping_selections],
            "payment": self.payment.to_dict(),
            "acceptTerms": self.accept_terms,
            "acceptNewsletter": self.accept_newsletter
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckoutDraft":
        return cls(
            step=CheckoutStep(int(data.get("step", 0))),
            is_guest=bool(data.get("isGuest", False)),
            address=Address.from_dict(data.get("address") or {}),
            shipping_selections=[PackageShippingSelection.from_dict(s)
                                 for s in data.get("shippingSelections") or []],
            payment=PaymentSelection.from_dict(data.get("payment") or {}),
            accept_terms=bool(data.get("acceptTerms", False)),
            accept_newsletter=bool(data.get("acceptNewsletter", False))
        )


@dataclass(frozen=True)
class Totals:
    """Order totals; every component is already rounded to 2 places"""
    subtotal: Decimal
    shipping: Decimal
    payment_fee: Decimal
    discount: Decimal
    total: Decimal

    @classmethod
    def compute(cls, subtotal: Decimal, shipping: Decimal, payment_fee: Decimal,
                discount: Decimal) -> "Totals":
        subtotal = money(subtotal)
        shipping = money(shipping)
        payment_fee = money(payment_fee)
        discount = money(discount)
        return cls(
            subtotal=subtotal,
            shipping=shipping,
            payment_fee=payment_fee,
            discount=discount,
            total=money(subtotal + shipping + payment_fee - discount)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "subtotal": to_float(self.subtotal),
            "shipping": to_float(self.shipping),
            "paymentFee": to_float(self.payment_fee),
            "discount": to_float(self.discount),
            "total": to_float(self.total)
        }
