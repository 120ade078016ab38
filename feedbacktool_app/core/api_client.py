"""
HTTP client for the FeedbackTool REST API.

Every call made by the session store and the survey services goes through
``ApiClient``. The REST API wraps most payloads in a standard envelope::

    {"success": true, "message": "...", "data": {...},
     "errors": [...], "timestamp": "...", "status": 200, "path": "..."}

``extract_data`` and ``get_response_metadata`` unwrap that envelope, while
``get_error_details`` and ``get_error_message`` turn any failure into the
strings shown to users.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from django.conf import settings
import requests

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = (
    "Unable to connect to server. Please check your connection and try again."
)
SESSION_EXPIRED_MESSAGE = "Session expired. Please login again."

_ENVELOPE_KEYS = {"success", "data", "message", "errors", "timestamp"}


class ApiError(Exception):
    """Raised when the REST API cannot be reached or rejects a request."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errors: Optional[List[str]] = None,
        fields: Optional[Dict[str, str]] = None,
        error_type: str = "api",
        payload: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or []
        self.fields = fields or {}
        self.error_type = error_type
        self.payload = payload

    @property
    def is_network_error(self) -> bool:
        return self.error_type == "network"

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


def _is_envelope(payload: Any) -> bool:
    return isinstance(payload, dict) and "success" in payload and bool(
        _ENVELOPE_KEYS & (set(payload) - {"success"})
    )


def extract_data(payload: Any) -> Any:
    """Return the ``data`` member of an envelope, or the payload itself."""
    if _is_envelope(payload):
        return payload.get("data")
    return payload


def get_response_metadata(payload: Any) -> Optional[Dict[str, Any]]:
    if not _is_envelope(payload):
        return None
    return {
        "success": payload.get("success"),
        "message": payload.get("message"),
        "timestamp": payload.get("timestamp"),
        "status": payload.get("status"),
        "path": payload.get("path"),
    }


def get_error_details(exc: BaseException) -> Dict[str, Any]:
    if isinstance(exc, ApiError):
        return {
            "message": exc.message,
            "status": exc.status,
            "errors": list(exc.errors),
            "fields": dict(exc.fields),
            "type": exc.error_type,
        }
    return {
        "message": str(exc) or "An unexpected error occurred",
        "status": None,
        "errors": [],
        "fields": {},
        "type": "unknown",
    }


def get_error_message(exc: BaseException) -> str:
    return get_error_details(exc)["message"]


def _error_from_response(response: requests.Response) -> ApiError:
    try:
        body = response.json()
    except ValueError:
        body = None

    message = None
    errors: List[str] = []
    fields: Dict[str, str] = {}
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        raw_errors = body.get("errors")
        if isinstance(raw_errors, list):
            errors = [str(e) for e in raw_errors]
        raw_fields = body.get("fields")
        if isinstance(raw_fields, dict):
            fields = {str(k): str(v) for k, v in raw_fields.items()}
    elif response.text:
        message = response.text[:200]

    if response.status_code == 401:
        message = message or SESSION_EXPIRED_MESSAGE
    if not message:
        message = f"Request failed with status {response.status_code}"
    return ApiError(
        message,
        status=response.status_code,
        errors=errors or [message],
        fields=fields,
        payload=body,
    )


class ApiClient:
    """Thin wrapper over ``requests`` with bearer-token injection.

    ``token_provider`` is called before every request so that a token stored
    mid-flow (e.g. straight after login) is picked up by the next call.
    ``on_unauthorized`` runs whenever the API answers 401.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        token_provider: Optional[Callable[[], Optional[str]]] = None,
        on_unauthorized: Optional[Callable[[], None]] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or settings.FEEDBACK_API_URL).rstrip("/")
        self.timeout = timeout or settings.FEEDBACK_API_TIMEOUT
        self.token_provider = token_provider
        self.on_unauthorized = on_unauthorized
        self.session = session or requests.Session()

    def get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.token_provider() if self.token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def request(self, method: str, path: str, data: Any = None, params=None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(
                method,
                url,
                headers=self.get_headers(),
                json=data,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"API {method} {path} failed: {e}")
            raise ApiError(NETWORK_ERROR_MESSAGE, error_type="network") from e

        if response.status_code == 401:
            logger.warning(f"API {method} {path} returned 401, clearing session")
            if self.on_unauthorized:
                self.on_unauthorized()

        if not response.ok:
            error = _error_from_response(response)
            logger.warning(
                f"API {method} {path} returned {response.status_code}: {error.message}"
            )
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    def get(self, path: str, params=None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, data: Any = None) -> Any:
        return self.request("POST", path, data=data)

    def put(self, path: str, data: Any = None) -> Any:
        return self.request("PUT", path, data=data)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)
