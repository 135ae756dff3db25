from __future__ import annotations

from dataclasses import replace

import pytest

from backend.services.auth_service import (
    AdminTokenNotConfiguredError,
    AuthService,
    InvalidAdminTokenError,
    InvalidOperatorError,
)
from backend.utils.config import get_settings


def _build_auth_service(admin_token: str | None = "admin-token", **kwargs) -> AuthService:
    settings = replace(get_settings(), admin_token=admin_token)
    return AuthService(settings=settings, **kwargs)


def test_login_binds_session_to_stripped_operator():
    service = _build_auth_service()
    token = service.login("admin-token", "  jordan ")
    assert service.resolve_operator(token) == "jordan"


def test_login_rejects_blank_operator():
    service = _build_auth_service()
    with pytest.raises(InvalidOperatorError):
        service.login("admin-token", "   ")


def test_login_rejects_wrong_token():
    service = _build_auth_service()
    with pytest.raises(InvalidAdminTokenError):
        service.login("wrong", "jordan")


def test_login_requires_configured_token():
    service = _build_auth_service(admin_token=None)
    assert service.auth_enabled is False
    with pytest.raises(AdminTokenNotConfiguredError):
        service.login("anything", "jordan")


def test_unknown_bearer_is_rejected():
    service = _build_auth_service()
    with pytest.raises(InvalidAdminTokenError):
        service.resolve_operator("not-a-session")


def test_oldest_session_is_evicted_at_capacity():
    service = _build_auth_service(max_sessions=2)
    first = service.login("admin-token", "alex")
    second = service.login("admin-token", "blair")
    third = service.login("admin-token", "casey")

    with pytest.raises(InvalidAdminTokenError):
        service.resolve_operator(first)
    assert service.resolve_operator(second) == "blair"
    assert service.resolve_operator(third) == "casey"


def test_max_sessions_must_be_positive():
    with pytest.raises(ValueError):
        _build_auth_service(max_sessions=0)
