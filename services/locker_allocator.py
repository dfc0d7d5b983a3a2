"""
Paczkomat slot allocator - spreads a locker package over several parcels
"""
import math
from decimal import Decimal
from typing import Dict, List, Optional

from models.cart import CartLine
from models.money import money
from models.shipping import LockerSlotItem, LockerSlotSelection, Package


class LockerSlotAllocator:
    # Greedy bin fill over the package lines, in line order

    def allocate(self, lines: List[CartLine], slot_count: int) -> List[List[LockerSlotItem]]:
        if slot_count <= 1:
            return [[self._slot_item(line, line.quantity) for line in lines]]

        total = sum(line.quantity for line in lines)
        items_per_slot = math.ceil(total / slot_count)
        slots: List[List[LockerSlotItem]] = [[] for _ in range(slot_count)]
        current_slot = 0
        current_count = 0

        for line in lines:
            remaining = line.quantity
            while remaining > 0:
                if current_slot == slot_count - 1:
                    # The final slot absorbs whatever is left
                    quantity = remaining
                else:
                    quantity = min(remaining, items_per_slot - current_count)
                self._add(slots[current_slot], line, quantity)
                current_count += quantity
                remaining -= quantity

                if current_count >= items_per_slot and current_slot < slot_count - 1:
                    current_slot += 1
                    current_count = 0

        return slots

    @staticmethod
    def slot_quantities(slots: List[List[LockerSlotItem]]) -> List[int]:
        return [sum(item.quantity for item in slot) for slot in slots]

    def _add(self, slot: List[LockerSlotItem], line: CartLine, quantity: int) -> None:
        # A line spanning a slot boundary keeps a single entry per slot
        for index, item in enumerate(slot):
            if item.line_id == line.id:
                slot[index] = self._slot_item(line, item.quantity + quantity)
                return
        slot.append(self._slot_item(line, quantity))

    @staticmethod
    def _slot_item(line: CartLine, quantity: int) -> LockerSlotItem:
        return LockerSlotItem(
            line_id=line.id,
            variant_id=line.variant_id,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=quantity,
            image_ref=line.image_ref
        )

    @staticmethod
    def slot_count(package: Package) -> int:
        return max(1, package.locker_parcel_count)

    def empty_selections(self, package: Package) -> List[LockerSlotSelection]:
        return [LockerSlotSelection(slot_index=i) for i in range(self.slot_count(package))]

    def resize(self, package: Package,
               selections: Optional[List[LockerSlotSelection]]) -> List[LockerSlotSelection]:
        # Keep chosen lockers that still fit after the parcel count changed
        by_index = {sel.slot_index: sel for sel in selections or []}
        return [by_index.get(i, LockerSlotSelection(slot_index=i))
                for i in range(self.slot_count(package))]

    def select(self, package: Package, selections: List[LockerSlotSelection], slot_index: int,
               locker_code: str, locker_address: str = "") -> List[LockerSlotSelection]:
        count = self.slot_count(package)
        if not 0 <= slot_index < count:
            raise IndexError(f"Slot {slot_index} out of range for package {package.id} ({count} slots)")
        updated = self.resize(package, selections)
        updated[slot_index] = LockerSlotSelection(
            slot_index=slot_index,
            locker_code=locker_code.strip(),
            locker_address=locker_address.strip()
        )
        return updated

    def missing_slots(self, package: Package, selections: List[LockerSlotSelection]) -> List[int]:
        by_index = {sel.slot_index: sel for sel in selections or []}
        return [
            i for i in range(self.slot_count(package))
            if not (by_index.get(i) and by_index[i].locker_code.strip())
        ]

    def validation_errors(self, package: Package,
                          selections: List[LockerSlotSelection]) -> Dict[str, str]:
        count = self.slot_count(package)
        errors = {}
        for i in self.missing_slots(package, selections):
            if count > 1:
                errors[f"{package.id}.slot{i}"] = (
                    f"Select parcel locker #{i + 1} of {count} for package {package.id}"
                )
            else:
                errors[package.id] = f"Select a parcel locker for package {package.id}"
        return errors

    @staticmethod
    def split_price(price: Decimal, slot_count: int) -> List[Decimal]:
        # Per-slot prices; the last slot takes the rounding remainder
        price = money(price)
        if slot_count <= 1:
            return [price]
        share = money(price / slot_count)
        shares = [share] * (slot_count - 1)
        shares.append(money(price - share * (slot_count - 1)))
        return shares
