"""
Shared HTTP plumbing for the remote collaborators
"""
import logging
from typing import Any, Dict, Optional

import requests

from core.errors import CollaboratorError

logger = logging.getLogger(__name__)


class ApiClient:
    # Thin JSON wrapper around a requests.Session

    service_name = "api"

    def __init__(self, base_url: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None,
                 auth_token: Optional[str] = None,
                 session_id: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()
        if auth_token:
            self.http.headers["Authorization"] = f"Bearer {auth_token}"
        if session_id:
            self.http.headers["X-Session-Id"] = session_id

    def request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", method, url, e)
            raise CollaboratorError(self.service_name, f"Service unavailable: {e}") from e

        if response.status_code >= 400:
            body = self._json_or_empty(response)
            message = body.get("message") or body.get("error") or f"HTTP {response.status_code}"
            logger.warning("%s %s returned %s: %s", method, url, response.status_code, message)
            raise CollaboratorError(
                self.service_name, message,
                status_code=response.status_code,
                field_errors=self._field_errors(body)
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            # requests raises a ValueError subclass for non-JSON bodies
            logger.warning("%s %s returned a non-JSON body", method, url)
            raise CollaboratorError(self.service_name, "Malformed response", status_code=response.status_code) from e

    @staticmethod
    def _json_or_empty(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _field_errors(body: Dict[str, Any]) -> Dict[str, str]:
        # Accepts {"errors": {"field": "msg"}} or {"errors": [{"field": .., "message": ..}]}
        errors = body.get("errors")
        if isinstance(errors, dict):
            return {str(k): str(v) for k, v in errors.items()}
        if isinstance(errors, list):
            return {
                str(err.get("field") or err.get("path") or i): str(err.get("message", ""))
                for i, err in enumerate(errors) if isinstance(err, dict)
            }
        return {}
