"""
Tests for checkout data models
"""
import unittest
from decimal import Decimal

from models import (
    Address, CartLine, CheckoutDraft, CheckoutStep, OrderResult, PaymentMethod,
    PaymentSelection, ShippingMethodId, Totals, shipping_method_label
)
from models.money import money, money_sum
from helpers import ADDRESS


class TestMoney(unittest.TestCase):

    def test_half_up_rounding(self):
        self.assertEqual(money("0.005"), Decimal("0.01"))
        self.assertEqual(money(2.675), Decimal("2.68"))
        self.assertEqual(money(10), Decimal("10.00"))

    def test_sum_rounds_each_term(self):
        self.assertEqual(money_sum(["0.004", "0.004", "0.004"]), Decimal("0.00"))
        self.assertEqual(money_sum(["0.005", "0.005"]), Decimal("0.02"))


class TestTotals(unittest.TestCase):

    def test_total_formula(self):
        totals = Totals.compute(Decimal("100.10"), Decimal("15.99"), Decimal("5"), Decimal("10.00"))
        self.assertEqual(totals.total, Decimal("111.09"))
        self.assertEqual(totals.to_dict()["paymentFee"], 5.0)

    def test_components_rounded_before_total(self):
        totals = Totals.compute(Decimal("0.005"), Decimal("0.005"), Decimal("0"), Decimal("0"))
        self.assertEqual(totals.total, Decimal("0.02"))


class TestModels(unittest.TestCase):

    def test_cart_line_rejects_non_positive_quantity(self):
        with self.assertRaises(ValueError):
            CartLine.from_dict({"id": "1", "quantity": 0, "unitPrice": 5})

    def test_cart_line_total(self):
        line = CartLine.from_dict({"id": "1", "variantId": "v1", "quantity": 3, "unitPrice": "19.99"})
        self.assertEqual(line.line_total, Decimal("59.97"))

    def test_unknown_shipping_method_rejected(self):
        with self.assertRaises(ValueError):
            ShippingMethodId.parse("pigeon")

    def test_every_method_has_label(self):
        for method_id in ShippingMethodId:
            self.assertTrue(shipping_method_label(method_id))
        self.assertTrue(ShippingMethodId.INPOST_PACZKOMAT.is_locker)
        self.assertFalse(ShippingMethodId.DPD.is_locker)

    def test_cash_on_delivery_fee(self):
        self.assertEqual(PaymentSelection.for_method(PaymentMethod.COD).extra_fee, Decimal("5.00"))
        self.assertEqual(PaymentSelection.for_method(PaymentMethod.BLIK).extra_fee, Decimal("0.00"))

    def test_address_required_fields(self):
        self.assertEqual(Address.from_dict(ADDRESS).missing_fields(), [])
        address = Address.from_dict(dict(ADDRESS, wantInvoice=True, differentBillingAddress=True))
        self.assertEqual(
            address.missing_fields(),
            ["billing_street", "billing_postal_code", "billing_city", "billing_nip"]
        )

    def test_draft_serialization(self):
        draft = CheckoutDraft(
            step=CheckoutStep.PAYMENT,
            is_guest=True,
            address=Address.from_dict(ADDRESS),
            payment=PaymentSelection.for_method(PaymentMethod.COD),
            accept_terms=True
        )
        self.assertEqual(CheckoutDraft.from_dict(draft.to_dict()), draft)

    def test_order_result_redirect(self):
        self.assertEqual(OrderResult("42").redirect_url, "/order/42/confirmation")
        paid = OrderResult("42", "https://pay.example.com/x")
        self.assertTrue(paid.is_payment_redirect)
        self.assertEqual(paid.redirect_url, "https://pay.example.com/x")


if __name__ == '__main__':
    unittest.main()
