"""
Cart related data models
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Dict, Any

from .money import money, money_sum, to_float


@dataclass(frozen=True)
class CartLine:
    """One line of the shopping cart, read-only to checkout"""
    id: str
    variant_id: str
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    warehouse_id: Optional[str] = None
    is_oversized: bool = False
    image_ref: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "id": self.id,
            "variantId": self.variant_id,
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": to_float(self.unit_price),
            "warehouseId": self.warehouse_id,
            "isOversized": self.is_oversized,
            "imageRef": self.image_ref
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CartLine":
        quantity = int(data.get("quantity", 0))
        if quantity <= 0:
            raise ValueError(f"Cart line {data.get('id')} has non-positive quantity")
        return cls(
            id=str(data["id"]),
            variant_id=str(data.get("variantId", "")),
            product_id=str(data.get("productId", "")),
            product_name=data.get("productName", ""),
            quantity=quantity,
            unit_price=money(data.get("unitPrice", 0)),
            warehouse_id=data.get("warehouseId") or None,
            is_oversized=bool(data.get("isOversized", False)),
            image_ref=data.get("imageRef")
        )


def cart_subtotal(lines: List[CartLine]) -> Decimal:
    # Rounded sum of unit_price * quantity over the given lines
    return money_sum(line.unit_price * line.quantity for line in lines)


def total_quantity(lines: List[CartLine]) -> int:
    return sum(line.quantity for line in lines)
