"""
Tests for the per-package custom delivery address
"""
import unittest

from core.errors import ValidationError
from models import ShippingMethodId
from services import CustomAddressOverride


class TestCustomAddressOverride(unittest.TestCase):

    def setUp(self):
        self.override = CustomAddressOverride()

    def test_toggle_initialises_empty_address(self):
        self.assertTrue(self.override.toggle("p1", ShippingMethodId.DPD))
        self.assertTrue(self.override.is_enabled("p1"))
        self.assertEqual(self.override.address_for("p1").street, "")

    def test_locker_method_cannot_use_custom_address(self):
        with self.assertRaises(ValidationError):
            self.override.toggle("p1", ShippingMethodId.INPOST_PACZKOMAT)
        self.assertFalse(self.override.is_enabled("p1"))

    def test_update_requires_enabled_override(self):
        with self.assertRaises(ValidationError):
            self.override.update("p1", "city", "Kraków")
        self.override.toggle("p1", ShippingMethodId.DPD)
        address = self.override.update("p1", "postalCode", "30-001")
        self.assertEqual(address.postal_code, "30-001")

    def test_unknown_field_rejected(self):
        self.override.toggle("p1", ShippingMethodId.DPD)
        with self.assertRaises(ValidationError):
            self.override.update("p1", "planet", "Mars")

    def test_address_survives_toggle_until_step_left(self):
        self.override.toggle("p1", ShippingMethodId.DPD)
        self.override.update("p1", "city", "Kraków")
        self.override.toggle("p1", ShippingMethodId.DPD)
        self.assertEqual(self.override.address_for("p1").city, "Kraków")

        self.override.toggle("p1", ShippingMethodId.DPD)
        self.assertEqual(self.override.address_for("p1").city, "Kraków")

        self.override.force_off("p1")
        self.override.discard_disabled()
        self.assertIsNone(self.override.address_for("p1"))

    def test_validation_errors(self):
        self.assertEqual(self.override.validation_errors("p1"), {})
        self.override.toggle("p1", ShippingMethodId.DPD)
        errors = self.override.validation_errors("p1")
        self.assertIn("p1.street", errors)
        self.assertIn("p1.city", errors)


if __name__ == '__main__':
    unittest.main()
