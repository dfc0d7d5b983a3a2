"""
Custom address override - per-package delivery address for non-locker methods
"""
from dataclasses import replace
from typing import Dict, Optional

from core.errors import ValidationError
from models.shipping import CustomAddress, ShippingMethodId

FIELD_NAMES = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phone": "phone",
    "street": "street",
    "apartment": "apartment",
    "postalCode": "postal_code",
    "city": "city",
}


class CustomAddressOverride:
    # Editor state for the shipping step; addresses outlive a toggle-off until the step is left

    def __init__(self):
        self.enabled: Dict[str, bool] = {}
        self.addresses: Dict[str, CustomAddress] = {}

    def is_enabled(self, package_id: str) -> bool:
        return self.enabled.get(package_id, False)

    def address_for(self, package_id: str) -> Optional[CustomAddress]:
        return self.addresses.get(package_id)

    def toggle(self, package_id: str, method: Optional[ShippingMethodId]) -> bool:
        if method is not None and method.is_locker:
            raise ValidationError(
                "Locker delivery has no destination address",
                {package_id: "custom address is not available for parcel lockers"}
            )
        enabled = not self.is_enabled(package_id)
        if enabled and package_id not in self.addresses:
            self.addresses[package_id] = CustomAddress()
        self.enabled[package_id] = enabled
        return enabled

    def force_off(self, package_id: str) -> None:
        self.enabled[package_id] = False

    def update(self, package_id: str, field: str, value: str) -> CustomAddress:
        attribute = FIELD_NAMES.get(field, field)
        if attribute not in FIELD_NAMES.values():
            raise ValidationError(f"Unknown address field: {field}", {field: "unknown field"})
        if not self.is_enabled(package_id):
            raise ValidationError(
                f"Custom address is not enabled for package {package_id}",
                {package_id: "custom address disabled"}
            )
        current = self.addresses.get(package_id, CustomAddress())
        updated = replace(current, **{attribute: value})
        self.addresses[package_id] = updated
        return updated

    def restore(self, package_id: str, address: CustomAddress) -> None:
        self.enabled[package_id] = True
        self.addresses[package_id] = address

    def discard_disabled(self) -> None:
        # Called when the shipping step is left
        for package_id in [pid for pid in self.addresses if not self.is_enabled(pid)]:
            del self.addresses[package_id]

    def validation_errors(self, package_id: str) -> Dict[str, str]:
        if not self.is_enabled(package_id):
            return {}
        address = self.addresses.get(package_id, CustomAddress())
        return {
            f"{package_id}.{name}": f"{name} is required for the delivery address of package {package_id}"
            for name in address.missing_fields()
        }
