"""
Order service client - the sole order creation entry point
"""
from typing import Dict, Any

from core.errors import CollaboratorError
from models.order import OrderResult
from .http import ApiClient


class OrderClient(ApiClient):
    service_name = "orders"

    def submit_order(self, payload: Dict[str, Any]) -> OrderResult:
        body = self.request("POST", "/checkout", payload)
        if not body.get("orderId"):
            raise CollaboratorError(self.service_name, "Order service did not return an order id")
        return OrderResult.from_dict(body)
