"""
Shipping related data models
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Dict, Any

from .cart import CartLine, cart_subtotal, total_quantity
from .money import money, to_float, ZERO

DEFAULT_WAREHOUSE = "default"


class ShippingMethodId(Enum):
    INPOST_PACZKOMAT = "inpost_paczkomat"
    INPOST_KURIER = "inpost_kurier"
    WYSYLKA_GABARYT = "wysylka_gabaryt"
    DPD = "dpd"
    POCZTEX = "pocztex"
    DHL = "dhl"
    GLS = "gls"

    @property
    def is_locker(self) -> bool:
        return self is ShippingMethodId.INPOST_PACZKOMAT

    @classmethod
    def parse(cls, value: str) -> "ShippingMethodId":
        # Raises ValueError for identifiers outside the closed set
        if isinstance(value, cls):
            return value
        return cls(value)


def shipping_method_label(method: ShippingMethodId) -> str:
    if method is ShippingMethodId.INPOST_PACZKOMAT:
        return "InPost Paczkomat"
    elif method is ShippingMethodId.INPOST_KURIER:
        return "Kurier InPost"
    elif method is ShippingMethodId.WYSYLKA_GABARYT:
        return "Wysyłka gabarytowa"
    elif method is ShippingMethodId.DPD:
        return "Kurier DPD"
    elif method is ShippingMethodId.POCZTEX:
        return "Pocztex Kurier48"
    elif method is ShippingMethodId.DHL:
        return "Kurier DHL"
    elif method is ShippingMethodId.GLS:
        return "Kurier GLS"
    raise ValueError(f"Unhandled shipping method: {method!r}")


class PackageKind(Enum):
    STANDARD = "standard"
    OVERSIZED = "gabaryt"


@dataclass(frozen=True)
class Package:
    """Cart lines shipped together from one warehouse at one goods class"""
    id: str
    warehouse_id: Optional[str]
    kind: PackageKind
    lines: List[CartLine]
    is_locker_eligible: bool
    is_carrier_only: bool
    is_locker_only: bool
    warehouse_subtotal: Decimal
    has_free_shipping: bool
    locker_parcel_count: int
    free_shipping_threshold: Decimal = Decimal("300.00")

    @property
    def warehouse_key(self) -> str:
        return self.warehouse_id or DEFAULT_WAREHOUSE

    @property
    def total_quantity(self) -> int:
        return total_quantity(self.lines)

    def remaining_for_free_shipping(self, threshold: Optional[Decimal] = None) -> Decimal:
        # Amount still needed to reach the free-shipping threshold
        if self.has_free_shipping:
            return ZERO
        if threshold is None:
            threshold = self.free_shipping_threshold
        return max(ZERO, money(money(threshold) - self.warehouse_subtotal))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "warehouseId": self.warehouse_id,
            "kind": self.kind.value,
            "lines": [line.to_dict() for line in self.lines],
            "isLockerEligible": self.is_locker_eligible,
            "isCarrierOnly": self.is_carrier_only,
            "isLockerOnly": self.is_locker_only,
            "warehouseSubtotal": to_float(self.warehouse_subtotal),
            "hasFreeShipping": self.has_free_shipping,
            "lockerParcelCount": self.locker_parcel_count,
            "freeShippingThreshold": to_float(self.free_shipping_threshold)
        }


def package_id_for(warehouse_key: str, kind: PackageKind) -> str:
    return f"{warehouse_key}-{kind.value}"


@dataclass(frozen=True)
class ShippingOption:
    """Shipping method offered for one package"""
    id: ShippingMethodId
    name: str
    price: Decimal
    available: bool
    forced: bool = False
    blocked_reason: Optional[str] = None
    estimated_delivery: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id.value,
            "name": self.name,
            "label": shipping_method_label(self.id),
            "price": to_float(self.price),
            "available": self.available,
            "forced": self.forced,
            "blockedReason": self.blocked_reason,
            "estimatedDelivery": self.estimated_delivery
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingOption":
        return cls(
            id=ShippingMethodId.parse(data["id"]),
            name=data.get("name", ""),
            price=money(data.get("price", 0)),
            available=bool(data.get("available", False)),
            forced=bool(data.get("forced", False)),
            blocked_reason=data.get("blockedReason") or data.get("message"),
            estimated_delivery=data.get("estimatedDelivery") or ""
        )


@dataclass(frozen=True)
class RemotePackageInfo:
    """Per-package facts returned by the pricing service"""
    warehouse_key: str
    kind: PackageKind
    options: List[ShippingOption]
    selected_method: Optional[ShippingMethodId] = None
    locker_parcel_count: int = 1
    is_locker_eligible: bool = True
    is_carrier_only: bool = False
    is_locker_only: bool = False
    has_free_shipping: Optional[bool] = None
    free_shipping_threshold: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemotePackageInfo":
        package = data.get("package", {})
        kind = PackageKind(package.get("type", PackageKind.STANDARD.value))
        selected = data.get("selectedMethod")
        threshold = package.get("freeShippingThreshold")
        has_free = package.get("hasFreeShipping")
        return cls(
            warehouse_key=package.get("wholesaler") or DEFAULT_WAREHOUSE,
            kind=kind,
            options=[ShippingOption.from_dict(opt) for opt in data.get("shippingMethods", [])],
            selected_method=ShippingMethodId.parse(selected) if selected else None,
            locker_parcel_count=int(package.get("paczkomatPackageCount", 1) or 0),
            is_locker_eligible=bool(package.get("isPaczkomatAvailable", kind is PackageKind.STANDARD)),
            is_carrier_only=bool(package.get("isCourierOnly", kind is PackageKind.OVERSIZED)),
            is_locker_only=bool(package.get("isInPostOnly", False)),
            has_free_shipping=None if has_free is None else bool(has_free),
            free_shipping_threshold=None if threshold is None else money(threshold)
        )


@dataclass(frozen=True)
class ShippingQuote:
    """Raw pricing-service answer for one cart selection"""
    packages: List[RemotePackageInfo]
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShippingQuote":
        return cls(
            packages=[RemotePackageInfo.from_dict(pkg) for pkg in data.get("packagesWithOptions", [])],
            warnings=[str(w) for w in data.get("warnings", [])]
        )


@dataclass(frozen=True)
class PackageOptions:
    """A package together with its resolved shipping options"""
    package: Package
    options: List[ShippingOption]
    default_method: Optional[ShippingMethodId] = None
    error: Optional[str] = None

    @property
    def forced_option(self) -> Optional[ShippingOption]:
        for option in self.options:
            if option.forced:
                return option
        return None

    @property
    def selectable_options(self) -> List[ShippingOption]:
        forced = self.forced_option
        if forced is not None:
            return [forced]
        return [option for option in self.options if option.available]

    def find(self, method: Optional[ShippingMethodId]) -> Optional[ShippingOption]:
        for option in self.options:
            if option.id is method:
                return option
        return None

    def is_selectable(self, method: Optional[ShippingMethodId]) -> bool:
        return any(option.id is method for option in self.selectable_options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "package": self.package.to_dict(),
            "shippingMethods": [option.to_dict() for option in self.options],
            "selectable": [option.id.value for option in self.selectable_options],
            "defaultMethod": self.default_method.value if self.default_method else None,
            "error": self.error
        }


@dataclass(frozen=True)
class LockerSlotSelection:
    """Locker chosen for one physical parcel of a package"""
    slot_index: int
    locker_code: str = ""
    locker_address: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slotIndex": self.slot_index,
            "lockerCode": self.locker_code,
            "lockerAddress": self.locker_address
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockerSlotSelection":
        return cls(
            slot_index=int(data.get("slotIndex", 0)),
            locker_code=data.get("lockerCode") or "",
            locker_address=data.get("lockerAddress") or ""
        )


@dataclass(frozen=True)
class LockerSlotItem:
    """Quantity of one cart line assigned to a locker slot"""
    line_id: str
    variant_id: str
    product_id: str
    product_name: str
    quantity: int
    image_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cartItemId": self.line_id,
            "variantId": self.variant_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "image": self.image_ref
        }


CUSTOM_ADDRESS_REQUIRED = ("first_name", "last_name", "phone", "street", "postal_code", "city")


@dataclass(frozen=True)
class CustomAddress:
    """Delivery address used by one package instead of the order address"""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    street: str = ""
    apartment: str = ""
    postal_code: str = ""
    city: str = ""

    def missing_fields(self) -> List[str]:
        return [name for name in CUSTOM_ADDRESS_REQUIRED if not getattr(self, name).strip()]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "street": self.street,
            "apartment": self.apartment,
            "postalCode": self.postal_code,
            "city": self.city
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CustomAddress":
        return cls(
            first_name=data.get("firstName") or "",
            last_name=data.get("lastName") or "",
            phone=data.get("phone") or "",
            street=data.get("street") or "",
            apartment=data.get("apartment") or "",
            postal_code=data.get("postalCode") or "",
            city=data.get("city") or ""
        )


@dataclass(frozen=True)
class PackageShippingSelection:
    """Committed shipping choice for one package"""
    package_id: str
    method: ShippingMethodId
    price: Decimal
    warehouse_id: Optional[str] = None
    locker_selections: List[LockerSlotSelection] = field(default_factory=list)
    use_custom_address: bool = False
    custom_address: Optional[CustomAddress] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "packageId": self.package_id,
            "warehouseId": self.warehouse_id,
            "method": self.method.value,
            "price": to_float(self.price),
            "lockerSelections": [sel.to_dict() for sel in self.locker_selections],
            "useCustomAddress": self.use_custom_address,
            "customAddress": self.custom_address.to_dict() if self.custom_address else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageShippingSelection":
        custom = data.get("customAddress")
        return cls(
            package_id=data["packageId"],
            warehouse_id=data.get("warehouseId"),
            method=ShippingMethodId.parse(data["method"]),
            price=money(data.get("price", 0)),
            locker_selections=[LockerSlotSelection.from_dict(s) for s in data.get("lockerSelections") or []],
            use_custom_address=bool(data.get("useCustomAddress", False)),
            custom_address=CustomAddress.from_dict(custom) if custom else None
        )


def build_package(package_id: str, warehouse_id: Optional[str], kind: PackageKind,
                  lines: List[CartLine], free_shipping_threshold: Decimal) -> Package:
    # Package with locally derivable facts; pricing-service facts use defaults
    subtotal = cart_subtotal(lines)
    is_standard = kind is PackageKind.STANDARD
    return Package(
        id=package_id,
        warehouse_id=warehouse_id,
        kind=kind,
        lines=list(lines),
        is_locker_eligible=is_standard,
        is_carrier_only=not is_standard,
        is_locker_only=False,
        warehouse_subtotal=subtotal,
        has_free_shipping=subtotal >= money(free_shipping_threshold),
        locker_parcel_count=1 if is_standard else 0,
        free_shipping_threshold=money(free_shipping_threshold)
    )
