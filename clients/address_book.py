"""
Address book service client
"""
from typing import Dict, List, Any

from core.errors import CollaboratorError
from models.order import SavedAddress
from .http import ApiClient


class AddressBookClient(ApiClient):
    service_name = "address_book"

    def create(self, address: Dict[str, Any]) -> str:
        body = self.request("POST", "/addresses", address)
        record = body.get("address", body)
        if not record.get("id"):
            raise CollaboratorError(self.service_name, "Address was not created")
        return str(record["id"])

    def list(self) -> List[SavedAddress]:
        body = self.request("GET", "/addresses")
        records = body.get("addresses", []) if isinstance(body, dict) else body
        return [SavedAddress.from_dict(record) for record in records]
