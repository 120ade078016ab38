"""
Authentication state for a browser session.

``SessionStore`` holds the signed-in user, verifies the stored bearer token
against ``/auth/me`` and exposes login/register/logout and role checks. A
profile cached in storage is only a convenience copy: nothing counts as
authenticated until the API has confirmed the token in this process.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
import json
import logging
from typing import Any

from .api_client import ApiClient, ApiError, extract_data, get_error_details

logger = logging.getLogger(__name__)

TOKEN_KEY = "jwt_token"
USER_KEY = "user_data"

ROLE_ADMIN = "ADMIN"
ROLE_USER = "USER"


@dataclass
class User:
    id: Any
    name: str = ""
    email: str = ""
    role: str = ""

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "User":
        return cls(
            id=payload.get("userId", payload.get("id")),
            name=payload.get("name") or "",
            email=payload.get("email") or "",
            role=(payload.get("role") or "").upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AuthResult:
    success: bool
    user: User | None = None
    message: str = ""
    error: str = ""
    field_errors: dict[str, str] = field(default_factory=dict)


class MemoryTokenStorage:
    """Dict-backed storage, used by management commands and tests."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class SessionTokenStorage:
    """Storage backed by the Django session of the current request."""

    def __init__(self, session):
        self.session = session

    def get(self, key: str) -> str | None:
        return self.session.get(key)

    def set(self, key: str, value: str) -> None:
        self.session[key] = value

    def remove(self, key: str) -> None:
        self.session.pop(key, None)


class SessionStore:
    def __init__(self, storage, api_client: ApiClient | None = None):
        self.storage = storage
        self.api = api_client or ApiClient()
        self.api.token_provider = lambda: self.token
        self.api.on_unauthorized = self.clear
        self.user: User | None = None
        self.token: str | None = storage.get(TOKEN_KEY)
        self.verified = False
        self.initialized = False

    # ------------------------------------------------------------------ state

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user and self.token and self.verified)

    def has_role(self, role: str) -> bool:
        if not self.is_authenticated:
            return False
        return self.user.role == role.upper()

    def is_admin(self) -> bool:
        return self.has_role(ROLE_ADMIN)

    def is_user(self) -> bool:
        return self.has_role(ROLE_USER)

    def clear(self) -> None:
        self.user = None
        self.token = None
        self.verified = False
        self.storage.remove(TOKEN_KEY)
        self.storage.remove(USER_KEY)

    def _store_token(self, token: str) -> None:
        self.token = token
        self.storage.set(TOKEN_KEY, token)

    def _accept_profile(self, user: User) -> None:
        self.user = user
        self.verified = True
        self.storage.set(USER_KEY, json.dumps(user.to_dict()))

    def _fetch_profile(self) -> User:
        profile = extract_data(self.api.get("/auth/me"))
        if not isinstance(profile, dict):
            raise ApiError("Invalid profile response", error_type="invalid")
        return User.from_payload(profile)

    # ------------------------------------------------------------- lifecycle

    def initialize(self) -> None:
        """Verify the stored token, failing closed on any error."""
        self.initialized = True
        self.token = self.storage.get(TOKEN_KEY)
        if not self.token:
            self.user = None
            self.verified = False
            return
        try:
            self._accept_profile(self._fetch_profile())
        except Exception as e:
            logger.warning(f"Stored session could not be verified: {e}")
            self.clear()

    def _authenticate(self, path: str, payload: dict[str, Any], action: str) -> AuthResult:
        try:
            response = self.api.post(path, payload)
        except ApiError as e:
            details = get_error_details(e)
            logger.warning(f"{action} failed for {payload.get('email')}: {e.message}")
            return AuthResult(
                success=False,
                error=details["message"] or f"{action} failed",
                field_errors=details["fields"],
            )

        data = extract_data(response) or {}
        token = data.get("token") if isinstance(data, dict) else None
        if not token:
            logger.error(f"{action} response did not include a token")
            return AuthResult(success=False, error=f"{action} failed")

        self._store_token(token)
        try:
            user = self._fetch_profile()
        except ApiError as e:
            if e.is_unauthorized:
                # The token was rejected straight away; nothing is kept
                logger.warning(f"{action} token rejected by /auth/me: {e.message}")
                self.clear()
                return AuthResult(success=False, error=e.message or f"{action} failed")
            logger.warning(f"Profile fetch after {action.lower()} failed, using response data: {e}")
            user = User.from_payload(data)
        self._accept_profile(user)
        self.initialized = True

        message = ""
        if isinstance(response, dict):
            message = response.get("message") or ""
        return AuthResult(success=True, user=user, message=message or f"{action} successful")

    def login(self, email: str, password: str) -> AuthResult:
        return self._authenticate(
            "/auth/login", {"email": email, "password": password}, "Login"
        )

    def register(self, name: str, email: str, password: str) -> AuthResult:
        return self._authenticate(
            "/auth/register",
            {"name": name, "email": email, "password": password},
            "Registration",
        )

    def logout(self) -> None:
        """Invalidate the token server-side; local state always clears."""
        try:
            if self.token:
                self.api.post("/auth/logout")
        except ApiError as e:
            logger.warning(f"Server logout failed, clearing local session anyway: {e}")
        finally:
            self.clear()

    def refresh_user(self) -> User:
        try:
            user = self._fetch_profile()
        except ApiError:
            self.clear()
            raise
        self._accept_profile(user)
        return user
