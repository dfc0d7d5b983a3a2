"""
Shared builders for checkout tests
"""
from decimal import Decimal

from models import CartLine


def make_line(line_id, quantity=1, price="10.00", warehouse=None, oversized=False):
    return CartLine(
        id=line_id,
        variant_id=f"v-{line_id}",
        product_id=f"p-{line_id}",
        product_name=f"Product {line_id}",
        quantity=quantity,
        unit_price=Decimal(price),
        warehouse_id=warehouse,
        is_oversized=oversized
    )


def method(method_id, price, available=True, forced=False, message=None):
    data = {"id": method_id, "name": method_id, "price": price, "available": available, "forced": forced}
    if message:
        data["message"] = message
    return data


def remote_package(warehouse=None, kind="standard", methods=None, selected=None, parcels=1, **flags):
    package = {"type": kind, "wholesaler": warehouse, "paczkomatPackageCount": parcels}
    package.update(flags)
    data = {"package": package, "shippingMethods": methods or []}
    if selected:
        data["selectedMethod"] = selected
    return data


def quote_body(*packages, warnings=None):
    return {"packagesWithOptions": list(packages), "warnings": warnings or []}


ADDRESS = {
    "firstName": "Jan",
    "lastName": "Kowalski",
    "email": "jan@example.com",
    "phone": "500600700",
    "street": "Długa 1",
    "postalCode": "00-001",
    "city": "Warszawa"
}
