"""
Models package for the storefront checkout
Contains data models and type definitions
"""

from .cart import CartLine
from .shipping import (
    ShippingMethodId, PackageKind, Package, ShippingOption, ShippingQuote,
    RemotePackageInfo, PackageOptions, LockerSlotSelection, LockerSlotItem,
    CustomAddress, PackageShippingSelection, shipping_method_label
)
from .checkout import (
    CheckoutStep, PaymentMethod, PaymentSelection, Address, CheckoutDraft, Totals
)
from .order import OrderResult, SavedAddress, AppliedCoupon

__all__ = [
    'CartLine',
    'ShippingMethodId', 'PackageKind', 'Package', 'ShippingOption', 'ShippingQuote',
    'RemotePackageInfo', 'PackageOptions', 'LockerSlotSelection', 'LockerSlotItem',
    'CustomAddress', 'PackageShippingSelection', 'shipping_method_label',
    'CheckoutStep', 'PaymentMethod', 'PaymentSelection', 'Address', 'CheckoutDraft', 'Totals',
    'OrderResult', 'SavedAddress', 'AppliedCoupon'
]
