"""
Core package for the storefront checkout
Contains configuration and error types; the controller lives in core.checkout_controller
"""

from .errors import (
    CheckoutError, CollaboratorError, SubmissionInProgressError,
    UnknownShippingMethodError, ValidationError
)
from .settings import Settings

__all__ = [
    'CheckoutError',
    'CollaboratorError',
    'SubmissionInProgressError',
    'UnknownShippingMethodError',
    'ValidationError',
    'Settings'
]
