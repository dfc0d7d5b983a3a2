"""
Tests for discount code handling
"""
import unittest
from decimal import Decimal
from unittest.mock import Mock

from core.errors import CollaboratorError, ValidationError
from models import AppliedCoupon
from services import CouponApplier


class TestCouponApplier(unittest.TestCase):

    def setUp(self):
        self.client = Mock()
        self.client.apply_coupon.return_value = AppliedCoupon("SPRING10", Decimal("10.00"))
        self.coupons = CouponApplier(self.client)

    def test_apply_normalizes_code(self):
        coupon = self.coupons.apply("  spring10 ")
        self.client.apply_coupon.assert_called_once_with("SPRING10")
        self.assertEqual(coupon.discount, Decimal("10.00"))
        self.assertEqual(self.coupons.discount, Decimal("10.00"))

    def test_same_code_applied_once(self):
        self.coupons.apply("SPRING10")
        self.coupons.apply("spring10")
        self.assertEqual(self.client.apply_coupon.call_count, 1)

    def test_empty_code_rejected_locally(self):
        with self.assertRaises(ValidationError):
            self.coupons.apply("   ")
        self.client.apply_coupon.assert_not_called()

    def test_rejected_code_leaves_state(self):
        self.client.apply_coupon.side_effect = CollaboratorError("coupons", "Coupon expired", 400)
        with self.assertRaises(CollaboratorError):
            self.coupons.apply("OLD")
        self.assertIsNone(self.coupons.applied)
        self.assertEqual(self.coupons.discount, Decimal("0.00"))

    def test_remove(self):
        self.coupons.remove()
        self.client.remove_coupon.assert_not_called()

        self.coupons.apply("SPRING10")
        self.coupons.remove()
        self.client.remove_coupon.assert_called_once()
        self.assertIsNone(self.coupons.code)


if __name__ == '__main__':
    unittest.main()
