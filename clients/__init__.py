"""
Clients package for the storefront checkout
Contains HTTP clients for the remote collaborators
"""

from .http import ApiClient
from .catalog import CatalogClient
from .address_book import AddressBookClient
from .orders import OrderClient
from .coupons import CouponClient

__all__ = [
    'ApiClient',
    'CatalogClient', 'AddressBookClient', 'OrderClient', 'CouponClient'
]
