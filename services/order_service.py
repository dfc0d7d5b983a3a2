"""
Order service - assembles the order payload and submits it
"""
import json
import logging
import re
import threading
from collections import Counter
from typing import Dict, List, Any, Optional

from core.errors import SubmissionInProgressError, ValidationError
from models.cart import CartLine
from models.checkout import Address, CheckoutDraft
from models.money import money_sum, to_float
from models.order import OrderResult
from models.shipping import (
    CustomAddress, LockerSlotSelection, Package, PackageShippingSelection, ShippingMethodId
)
from .locker_allocator import LockerSlotAllocator

logger = logging.getLogger(__name__)

SLOT_SUFFIX = re.compile(r"^(?P<base>.+)_slot(?P<index>\d+)$")


class OrderService:
    # Builds the guest or account payload, then performs the single order submission

    def __init__(self, address_book_client, order_client,
                 allocator: Optional[LockerSlotAllocator] = None):
        self.address_book = address_book_client
        self.order_client = order_client
        self.allocator = allocator or LockerSlotAllocator()
        # Taken before validation so concurrent submits cannot both pass
        self.submit_lock = threading.Lock()
        # Address records created during this checkout, keyed by their content
        self._created_addresses: Dict[str, str] = {}

    @property
    def submitting(self) -> bool:
        return self.submit_lock.locked()

    # === Validation ===
    def validate_draft(self, draft: CheckoutDraft, packages: List[Package]) -> None:
        errors: Dict[str, str] = {}
        if not draft.accept_terms:
            errors["acceptTerms"] = "You must accept the terms and privacy policy"

        for name in draft.address.missing_fields():
            errors[f"address.{name}"] = f"{name} is required"

        for package in packages:
            selection = draft.selection_for(package.id)
            if selection is None:
                errors[package.id] = f"Choose a shipping method for package {package.id}"
                continue
            if selection.method.is_locker:
                if selection.use_custom_address:
                    errors[f"{package.id}.useCustomAddress"] = "Locker delivery cannot use a custom address"
                errors.update(self.allocator.validation_errors(package, selection.locker_selections))
            elif selection.use_custom_address:
                address = selection.custom_address or CustomAddress()
                for name in address.missing_fields():
                    errors[f"{package.id}.{name}"] = (
                        f"{name} is required for the delivery address of package {package.id}"
                    )

        known = {package.id for package in packages}
        for selection in draft.shipping_selections:
            if selection.package_id not in known:
                errors[selection.package_id] = "Shipping was chosen for a package that no longer exists"

        if errors:
            raise ValidationError("Please correct the highlighted fields", errors)

    # === Shipping flattening ===
    def flatten_shipping(self, selections: List[PackageShippingSelection],
                         packages: List[Package]) -> List[Dict[str, Any]]:
        by_id = {package.id: package for package in packages}
        entries = []
        for selection in selections:
            package = by_id[selection.package_id]
            slot_count = self.allocator.slot_count(package)
            lockers = {sel.slot_index: sel for sel in selection.locker_selections}

            if selection.method.is_locker and slot_count > 1:
                slots = self.allocator.allocate(package.lines, slot_count)
                prices = self.allocator.split_price(selection.price, slot_count)
                for index, (slot_items, price) in enumerate(zip(slots, prices)):
                    locker = lockers.get(index, LockerSlotSelection(slot_index=index))
                    entries.append({
                        "packageId": f"{package.id}_slot{index}",
                        "wholesaler": package.warehouse_id,
                        "method": selection.method.value,
                        "price": to_float(price),
                        "paczkomatCode": locker.locker_code,
                        "paczkomatAddress": locker.locker_address,
                        "items": [item.to_dict() for item in slot_items],
                        "useCustomAddress": False
                    })
                continue

            locker = lockers.get(0)
            use_custom = selection.use_custom_address and not selection.method.is_locker
            entries.append({
                "packageId": package.id,
                "wholesaler": package.warehouse_id,
                "method": selection.method.value,
                "price": to_float(selection.price),
                "paczkomatCode": locker.locker_code if selection.method.is_locker and locker else None,
                "paczkomatAddress": locker.locker_address if selection.method.is_locker and locker else None,
                "items": [item.to_dict() for item in self.allocator.allocate(package.lines, 1)[0]],
                "useCustomAddress": use_custom,
                "customAddress": selection.custom_address.to_dict() if use_custom and selection.custom_address else None
            })
        return entries

    @staticmethod
    def read_shipping(payload: Dict[str, Any]) -> List[PackageShippingSelection]:
        # Inverse of flatten_shipping: slot entries fold back into their package
        grouped: Dict[str, List[Any]] = {}
        for entry in payload.get("packageShipping", []):
            match = SLOT_SUFFIX.match(entry["packageId"])
            if match:
                base, index = match.group("base"), int(match.group("index"))
            else:
                base, index = entry["packageId"], 0
            grouped.setdefault(base, []).append((index, entry))

        selections = []
        for package_id, slot_entries in grouped.items():
            slot_entries.sort(key=lambda pair: pair[0])
            first = slot_entries[0][1]
            method = ShippingMethodId.parse(first["method"])
            lockers = [
                LockerSlotSelection(
                    slot_index=index,
                    locker_code=entry.get("paczkomatCode") or "",
                    locker_address=entry.get("paczkomatAddress") or ""
                )
                for index, entry in slot_entries
            ] if method.is_locker else []
            custom = first.get("customAddress")
            selections.append(PackageShippingSelection(
                package_id=package_id,
                warehouse_id=first.get("wholesaler"),
                method=method,
                price=money_sum(entry.get("price", 0) for _, entry in slot_entries),
                locker_selections=lockers,
                use_custom_address=bool(first.get("useCustomAddress", False)),
                custom_address=CustomAddress.from_dict(custom) if custom else None
            ))
        return selections

    @staticmethod
    def primary_method(entries: List[Dict[str, Any]]) -> str:
        counts = Counter(entry["method"] for entry in entries)
        if not counts:
            return ShippingMethodId.INPOST_KURIER.value
        return counts.most_common(1)[0][0]

    # === Payload assembly ===
    def _common_fields(self, draft: CheckoutDraft, lines: List[CartLine],
                       packages: List[Package]) -> Dict[str, Any]:
        entries = self.flatten_shipping(draft.shipping_selections, packages)
        first_locker = next((e for e in entries if e.get("paczkomatCode")), None)
        payload = {
            "selectedItemIds": [line.id for line in lines],
            "packageShipping": entries,
            "shippingMethod": self.primary_method(entries),
            "shippingPrice": to_float(money_sum(sel.price for sel in draft.shipping_selections)),
            "pickupPointCode": first_locker["paczkomatCode"] if first_locker else None,
            "pickupPointAddress": first_locker["paczkomatAddress"] if first_locker else None,
            "paymentMethod": draft.payment.method.value,
            "acceptTerms": draft.accept_terms,
            "acceptNewsletter": draft.accept_newsletter,
            "wantInvoice": draft.address.want_invoice,
            "customerNotes": ""
        }
        if draft.address.want_invoice:
            payload["billingCompanyName"] = draft.address.billing_company_name
            payload["billingNip"] = draft.address.billing_nip
        return payload

    def build_guest_payload(self, draft: CheckoutDraft, lines: List[CartLine],
                            packages: List[Package]) -> Dict[str, Any]:
        address = draft.address
        missing = [name for name in ("email", "first_name", "last_name") if not getattr(address, name)]
        if missing:
            raise ValidationError(
                "Email, first name and last name are required for guest checkout",
                {f"address.{name}": f"{name} is required" for name in missing}
            )

        guest_address = {
            "firstName": address.first_name,
            "lastName": address.last_name,
            "phone": address.phone,
            "street": address.street,
            "apartment": address.apartment,
            "postalCode": address.postal_code,
            "city": address.city,
            "country": address.country,
            "differentBillingAddress": address.different_billing_address
        }
        if address.different_billing_address:
            guest_address["billingAddress"] = self._billing_fields(address)

        payload = self._common_fields(draft, lines, packages)
        payload.update({
            "guestEmail": address.email,
            "guestFirstName": address.first_name,
            "guestLastName": address.last_name,
            "guestPhone": address.phone,
            "guestAddress": guest_address
        })
        return payload

    def build_account_payload(self, draft: CheckoutDraft, lines: List[CartLine],
                              packages: List[Package]) -> Dict[str, Any]:
        # Address records first, then the ids go into the payload
        address = draft.address
        shipping_id = self._create_address({
            "firstName": address.first_name,
            "lastName": address.last_name,
            "street": address.street + (f" {address.apartment}" if address.apartment else ""),
            "city": address.city,
            "postalCode": address.postal_code,
            "country": address.country,
            "phone": address.phone,
            "isDefault": False,
            "label": "Zamówienie",
            "type": "SHIPPING"
        })

        billing_id = shipping_id
        if address.different_billing_address:
            billing = self._billing_fields(address)
            billing.update({"isDefault": False, "label": "Faktura", "type": "BILLING"})
            billing_id = self._create_address(billing)

        payload = self._common_fields(draft, lines, packages)
        payload.update({"shippingAddressId": shipping_id, "billingAddressId": billing_id})
        return payload

    @staticmethod
    def _billing_fields(address: Address) -> Dict[str, Any]:
        billing = {
            "firstName": address.first_name,
            "lastName": address.last_name,
            "street": address.billing_street + (f" {address.billing_apartment}" if address.billing_apartment else ""),
            "city": address.billing_city,
            "postalCode": address.billing_postal_code,
            "country": address.country,
            "phone": address.phone
        }
        if address.want_invoice:
            billing["companyName"] = address.billing_company_name
            billing["nip"] = address.billing_nip
        return billing

    def _create_address(self, data: Dict[str, Any]) -> str:
        # A resubmission after a failed order reuses the record instead of duplicating it
        fingerprint = json.dumps(data, sort_keys=True)
        if fingerprint in self._created_addresses:
            return self._created_addresses[fingerprint]
        address_id = self.address_book.create(data)
        self._created_addresses[fingerprint] = address_id
        logger.info("Created %s address record %s", data.get("type", "SHIPPING"), address_id)
        return address_id

    # === Submission ===
    def submit(self, draft: CheckoutDraft, lines: List[CartLine],
               packages: List[Package]) -> OrderResult:
        if not self.submit_lock.acquire(blocking=False):
            raise SubmissionInProgressError("Order submission already in progress")
        try:
            self.validate_draft(draft, packages)
            if draft.is_guest:
                payload = self.build_guest_payload(draft, lines, packages)
            else:
                payload = self.build_account_payload(draft, lines, packages)
            logger.info("Submitting order with %d items in %d shipments",
                        len(payload["selectedItemIds"]), len(payload["packageShipping"]))
            result = self.order_client.submit_order(payload)
        finally:
            self.submit_lock.release()

        logger.info("Order %s created%s", result.order_id,
                    ", redirecting to payment" if result.is_payment_redirect else "")
        return result

    @staticmethod
    def shipment_count(selections: List[PackageShippingSelection], packages: List[Package]) -> int:
        by_id = {package.id: package for package in packages}
        count = 0
        for selection in selections:
            package = by_id.get(selection.package_id)
            if package is not None and selection.method.is_locker:
                count += max(1, package.locker_parcel_count)
            else:
                count += 1
        return count
