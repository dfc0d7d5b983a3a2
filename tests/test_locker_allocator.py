"""
Tests for spreading a locker package over several parcels
"""
import unittest
from dataclasses import replace
from decimal import Decimal

from services import LockerSlotAllocator, PackagePartitioner
from helpers import make_line


class TestLockerSlotAllocator(unittest.TestCase):
    """Test cases for LockerSlotAllocator"""

    def setUp(self):
        self.allocator = LockerSlotAllocator()

    def package(self, lines, parcels):
        package = PackagePartitioner().partition(lines)[0]
        return replace(package, locker_parcel_count=parcels)

    def test_seven_items_over_three_slots(self):
        slots = self.allocator.allocate([make_line("a", quantity=7)], 3)
        self.assertEqual(self.allocator.slot_quantities(slots), [3, 3, 1])

    def test_line_spanning_slots(self):
        lines = [make_line("a", quantity=5), make_line("b", quantity=2)]
        slots = self.allocator.allocate(lines, 3)

        self.assertEqual([(i.line_id, i.quantity) for i in slots[0]], [("a", 3)])
        self.assertEqual([(i.line_id, i.quantity) for i in slots[1]], [("a", 2), ("b", 1)])
        self.assertEqual([(i.line_id, i.quantity) for i in slots[2]], [("b", 1)])

    def test_quantities_are_preserved(self):
        lines = [make_line("a", quantity=4), make_line("b", quantity=9), make_line("c", quantity=1)]
        for slot_count in (1, 2, 4, 5):
            slots = self.allocator.allocate(lines, slot_count)
            self.assertEqual(len(slots), slot_count)
            self.assertEqual(sum(self.allocator.slot_quantities(slots)), 14)

    def test_only_final_slot_may_exceed_share(self):
        lines = [make_line("a", quantity=5), make_line("b", quantity=6)]
        slots = self.allocator.allocate(lines, 4)
        quantities = self.allocator.slot_quantities(slots)
        self.assertTrue(all(q <= 3 for q in quantities[:-1]))
        self.assertEqual(sum(quantities), 11)

    def test_final_slot_absorbs_remainder(self):
        # ceil(4 / 3) = 2 fills two slots and leaves the last one empty
        slots = self.allocator.allocate([make_line("a", quantity=4)], 3)
        self.assertEqual(self.allocator.slot_quantities(slots), [2, 2, 0])

    def test_slot_count_at_least_one(self):
        self.assertEqual(self.allocator.slot_count(self.package([make_line("a")], 0)), 1)
        self.assertEqual(self.allocator.slot_count(self.package([make_line("a")], 3)), 3)

    def test_split_price_last_slot_takes_remainder(self):
        shares = self.allocator.split_price(Decimal("20.00"), 3)
        self.assertEqual(shares, [Decimal("6.67"), Decimal("6.67"), Decimal("6.66")])
        self.assertEqual(sum(shares), Decimal("20.00"))

    def test_select_and_validate(self):
        package = self.package([make_line("a", quantity=4)], 2)
        selections = self.allocator.empty_selections(package)
        self.assertEqual(
            set(self.allocator.validation_errors(package, selections)),
            {f"{package.id}.slot0", f"{package.id}.slot1"}
        )

        selections = self.allocator.select(package, selections, 1, " WAW01M ", "Warszawa")
        self.assertEqual(selections[1].locker_code, "WAW01M")
        self.assertEqual(self.allocator.missing_slots(package, selections), [0])

        with self.assertRaises(IndexError):
            self.allocator.select(package, selections, 2, "WAW02M")

    def test_single_slot_error_keyed_by_package(self):
        package = self.package([make_line("a")], 1)
        errors = self.allocator.validation_errors(package, [])
        self.assertEqual(list(errors), [package.id])

    def test_resize_keeps_fitting_choices(self):
        package = self.package([make_line("a", quantity=6)], 3)
        selections = self.allocator.select(package, [], 0, "WAW01M")
        selections = self.allocator.select(package, selections, 2, "WAW03M")

        smaller = replace(package, locker_parcel_count=2)
        resized = self.allocator.resize(smaller, selections)
        self.assertEqual([s.locker_code for s in resized], ["WAW01M", ""])


if __name__ == '__main__':
    unittest.main()
