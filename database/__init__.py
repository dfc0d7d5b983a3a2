"""
Database package for the storefront checkout
Contains database connection and repository classes
"""

from .connection import DatabaseConnection
from .repository import SelectionRepository, DraftRepository, ParkedCheckout

__all__ = [
    'DatabaseConnection',
    'SelectionRepository', 'DraftRepository', 'ParkedCheckout'
]
