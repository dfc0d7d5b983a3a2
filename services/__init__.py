"""
Services package for the storefront checkout
Contains business logic services
"""

from .package_partitioner import PackagePartitioner
from .shipping_service import ShippingOptionResolver
from .locker_allocator import LockerSlotAllocator
from .address_override import CustomAddressOverride
from .cart_selector import CartItemSelector
from .coupon_service import CouponApplier
from .order_service import OrderService

__all__ = [
    'PackagePartitioner', 'ShippingOptionResolver', 'LockerSlotAllocator',
    'CustomAddressOverride', 'CartItemSelector', 'CouponApplier', 'OrderService'
]
