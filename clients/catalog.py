"""
Catalog / pricing service client - per-package shipping options
"""
from typing import Dict, List, Any

from core.errors import CollaboratorError, UnknownShippingMethodError
from models.shipping import ShippingQuote
from .http import ApiClient


class CatalogClient(ApiClient):
    service_name = "catalog"

    def resolve_shipping_options(self, items: List[Dict[str, Any]]) -> ShippingQuote:
        # items: [{"variantId": ..., "quantity": ...}]
        body = self.request("POST", "/checkout/shipping/per-package", {"items": items})
        if not isinstance(body, dict):
            raise CollaboratorError(self.service_name, "Malformed shipping response")
        try:
            return ShippingQuote.from_dict(body)
        except KeyError as e:
            raise CollaboratorError(self.service_name, f"Malformed shipping response: missing {e}") from e
        except ValueError as e:
            raise UnknownShippingMethodError(self.service_name, f"Unsupported shipping data: {e}") from e
