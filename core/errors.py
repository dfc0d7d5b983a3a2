"""
Checkout error types
"""
from typing import Dict, Optional


class CheckoutError(Exception):
    """Base class for every checkout failure"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    """Local, field-scoped validation failure; never sent to a collaborator"""

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.field_errors = field_errors or {}


class CollaboratorError(CheckoutError):
    """A remote service call failed or returned an error response"""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None,
                 field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.service = service
        self.status_code = status_code
        self.field_errors = field_errors or {}


class UnknownShippingMethodError(CollaboratorError):
    """The pricing service returned a shipping method outside the known set"""


class SubmissionInProgressError(CheckoutError):
    """An order submission is already in flight for this checkout"""
