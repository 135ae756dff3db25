"""Admin token login that binds bearer sessions to an operator identity."""

from __future__ import annotations

import secrets
from threading import RLock
from typing import Optional

from backend.utils.config import Settings, get_settings


MAX_SESSIONS = 256


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when provided token is invalid."""


class InvalidOperatorError(AuthenticationError):
    """Raised when the operator name is blank."""


class AuthService:
    """Validates login credentials and resolves bearer tokens to operators.

    Sessions live in memory, oldest evicted first once MAX_SESSIONS is reached.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        max_sessions: int = MAX_SESSIONS,
    ) -> None:
        if max_sessions <= 0:
            raise ValueError("max_sessions must be > 0")
        self._settings = settings or get_settings()
        self._max_sessions = max_sessions
        self._sessions: dict[str, str] = {}
        self._lock = RLock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def _expected_token(self) -> str:
        if not self._settings.admin_token:
            raise AdminTokenNotConfiguredError(
                "ADMIN_TOKEN is not configured. Set ADMIN_TOKEN in environment variables."
            )
        return self._settings.admin_token

    def login(self, provided_admin_token: str, operator: str) -> str:
        expected = self._expected_token()
        if not secrets.compare_digest(provided_admin_token, expected):
            raise InvalidAdminTokenError("Invalid admin token")
        operator_name = operator.strip()
        if not operator_name:
            raise InvalidOperatorError("operator must be a non-blank name")
        session_token = secrets.token_urlsafe(32)
        with self._lock:
            while len(self._sessions) >= self._max_sessions:
                del self._sessions[next(iter(self._sessions))]
            self._sessions[session_token] = operator_name
        return session_token

    def resolve_operator(self, bearer_token: str) -> str:
        """Return the operator that owns ``bearer_token``."""
        with self._lock:
            operator = self._sessions.get(bearer_token)
        if operator is None:
            raise InvalidAdminTokenError("Invalid bearer token")
        return operator
