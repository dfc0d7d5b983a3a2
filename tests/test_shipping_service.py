"""
Tests for per-package shipping option resolution
"""
import unittest
from decimal import Decimal
from unittest.mock import Mock

from core.errors import ValidationError
from models import ShippingMethodId, ShippingQuote
from services import PackagePartitioner, ShippingOptionResolver
from services.shipping_service import NO_OPTIONS_ERROR
from helpers import make_line, method, quote_body, remote_package

LOCKER = ShippingMethodId.INPOST_PACZKOMAT
COURIER = ShippingMethodId.INPOST_KURIER


class TestShippingOptionResolver(unittest.TestCase):
    """Test cases for ShippingOptionResolver"""

    def setUp(self):
        self.catalog = Mock()
        self.resolver = ShippingOptionResolver(self.catalog)
        self.packages = PackagePartitioner().partition([
            make_line("1", quantity=2, warehouse="w1"),
            make_line("2", warehouse="w1", oversized=True),
        ])

    def quote(self, *packages, warnings=None):
        self.catalog.resolve_shipping_options.return_value = ShippingQuote.from_dict(
            quote_body(*packages, warnings=warnings)
        )

    def test_request_items_cover_every_line(self):
        self.assertEqual(
            self.resolver.request_items(self.packages),
            [{"variantId": "v-1", "quantity": 2}, {"variantId": "v-2", "quantity": 1}]
        )

    def test_merge_attaches_options_and_flags(self):
        self.quote(
            remote_package("w1", methods=[method("inpost_paczkomat", 12.99), method("dpd", 18)],
                           selected="dpd", parcels=2, isPaczkomatAvailable=True),
            remote_package("w1", kind="gabaryt", methods=[method("wysylka_gabaryt", 49, forced=True)]),
            warnings=["Oversized goods ship separately"]
        )
        options, warnings = self.resolver.resolve(self.packages)

        self.assertEqual(warnings, ["Oversized goods ship separately"])
        self.assertEqual(options[0].package.locker_parcel_count, 2)
        self.assertEqual(options[0].default_method, ShippingMethodId.DPD)
        self.assertEqual(options[1].forced_option.id, ShippingMethodId.WYSYLKA_GABARYT)
        self.catalog.resolve_shipping_options.assert_called_once()

    def test_package_missing_from_response_gets_error(self):
        self.quote(remote_package("w1", methods=[method("dpd", 18)]))
        options, _ = self.resolver.resolve(self.packages)

        self.assertIsNone(options[0].error)
        self.assertEqual(options[1].options, [])
        self.assertEqual(options[1].error, NO_OPTIONS_ERROR)

    def test_remote_free_shipping_flag_wins(self):
        self.quote(
            remote_package("w1", methods=[method("dpd", 0)], hasFreeShipping=True),
            remote_package("w1", kind="gabaryt", methods=[method("wysylka_gabaryt", 49)])
        )
        options, _ = self.resolver.resolve(self.packages)
        self.assertTrue(options[0].package.has_free_shipping)
        self.assertFalse(options[1].package.has_free_shipping)

    def resolved(self, methods, selected=None):
        self.quote(
            remote_package("w1", methods=methods, selected=selected),
            remote_package("w1", kind="gabaryt", methods=[method("wysylka_gabaryt", 49)])
        )
        options, _ = self.resolver.resolve(self.packages)
        return options[0]

    def test_reconcile_forced_method_wins(self):
        options = self.resolved([method("inpost_paczkomat", 12), method("dpd", 18, forced=True)])
        self.assertEqual(self.resolver.reconcile(options, LOCKER), (ShippingMethodId.DPD, None))

    def test_reconcile_keeps_valid_choice(self):
        options = self.resolved([method("inpost_paczkomat", 12), method("inpost_kurier", 15)],
                                selected="inpost_paczkomat")
        self.assertEqual(self.resolver.reconcile(options, COURIER), (COURIER, None))

    def test_reconcile_uses_default_then_first_available(self):
        options = self.resolved([method("inpost_paczkomat", 12, available=False),
                                 method("inpost_kurier", 15), method("dpd", 18)], selected="dpd")
        self.assertEqual(self.resolver.reconcile(options, None), (ShippingMethodId.DPD, None))
        # An invalidated choice falls back to the first available option
        self.assertEqual(self.resolver.reconcile(options, LOCKER), (COURIER, None))

    def test_reconcile_without_available_option(self):
        options = self.resolved([method("inpost_paczkomat", 12, available=False)])
        method_id, error = self.resolver.reconcile(options, None)
        self.assertIsNone(method_id)
        self.assertEqual(error, NO_OPTIONS_ERROR)

    def test_validate_choice(self):
        options = self.resolved([method("inpost_paczkomat", 12, available=False, message="Too big"),
                                 method("inpost_kurier", 15)])
        self.resolver.validate_choice(options, COURIER)

        with self.assertRaises(ValidationError) as ctx:
            self.resolver.validate_choice(options, LOCKER)
        self.assertIn("Too big", ctx.exception.message)

        with self.assertRaises(ValidationError):
            self.resolver.validate_choice(options, ShippingMethodId.GLS)

    def test_validate_choice_rejects_override_of_forced(self):
        options = self.resolved([method("inpost_kurier", 15), method("dpd", 18, forced=True)])
        with self.assertRaises(ValidationError):
            self.resolver.validate_choice(options, COURIER)

    def test_selected_price(self):
        options = self.resolved([method("inpost_kurier", "15.499")])
        self.assertEqual(self.resolver.selected_price(options, COURIER), Decimal("15.50"))
        self.assertEqual(self.resolver.selected_price(options, None), Decimal("0.00"))


if __name__ == '__main__':
    unittest.main()
