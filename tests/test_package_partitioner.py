"""
Tests for splitting the cart into shipping packages
"""
import unittest
from decimal import Decimal

from models import PackageKind
from models.cart import cart_subtotal
from services import PackagePartitioner
from helpers import make_line


class TestPackagePartitioner(unittest.TestCase):
    """Test cases for PackagePartitioner"""

    def setUp(self):
        self.partitioner = PackagePartitioner(Decimal("300.00"))

    def test_groups_by_warehouse_in_first_appearance_order(self):
        lines = [
            make_line("1", warehouse="w2"),
            make_line("2", warehouse="w1"),
            make_line("3", warehouse="w2"),
        ]
        packages = self.partitioner.partition(lines)

        self.assertEqual([p.id for p in packages], ["w2-standard", "w1-standard"])
        self.assertEqual([line.id for line in packages[0].lines], ["1", "3"])

    def test_oversized_goods_get_their_own_package(self):
        lines = [
            make_line("1", warehouse="w1"),
            make_line("2", warehouse="w1", oversized=True),
        ]
        standard, oversized = self.partitioner.partition(lines)

        self.assertEqual(oversized.kind, PackageKind.OVERSIZED)
        self.assertEqual(oversized.id, "w1-gabaryt")
        self.assertFalse(oversized.is_locker_eligible)
        self.assertTrue(oversized.is_carrier_only)
        self.assertEqual(oversized.locker_parcel_count, 0)
        self.assertTrue(standard.is_locker_eligible)

    def test_lines_without_warehouse_share_default_package(self):
        packages = self.partitioner.partition([make_line("1"), make_line("2")])
        self.assertEqual(len(packages), 1)
        self.assertIsNone(packages[0].warehouse_id)
        self.assertEqual(packages[0].warehouse_key, "default")

    def test_every_line_in_exactly_one_package(self):
        lines = [make_line(str(i), warehouse=f"w{i % 3}", oversized=i % 2 == 0) for i in range(10)]
        packages = self.partitioner.partition(lines)
        ids = [line.id for package in packages for line in package.lines]
        self.assertEqual(sorted(ids), sorted(line.id for line in lines))

    def test_subtotal_and_free_shipping(self):
        packages = self.partitioner.partition([
            make_line("1", quantity=2, price="125.00", warehouse="w1"),
            make_line("2", quantity=1, price="400.00", warehouse="w2"),
        ])
        cheap, expensive = packages

        self.assertEqual(cheap.warehouse_subtotal, Decimal("250.00"))
        self.assertFalse(cheap.has_free_shipping)
        self.assertEqual(self.partitioner.remaining_for_free_shipping(cheap), Decimal("50.00"))
        self.assertTrue(expensive.has_free_shipping)
        self.assertEqual(self.partitioner.remaining_for_free_shipping(expensive), Decimal("0.00"))

    def test_package_subtotals_add_up_to_cart_subtotal(self):
        lines = [make_line(str(i), quantity=i + 1, price=f"{i}.333", warehouse=f"w{i % 2}") for i in range(6)]
        packages = self.partitioner.partition(lines)
        self.assertEqual(sum(p.warehouse_subtotal for p in packages), cart_subtotal(lines))

    def test_empty_cart(self):
        self.assertEqual(self.partitioner.partition([]), [])


if __name__ == '__main__':
    unittest.main()
