"""Tests for websocket handshake identity resolution."""

import pytest
from jose import jwt

from task_notifications.config import Settings
from task_notifications.infrastructure.security import resolve_connection_identity

SETTINGS = Settings(secret_key="test-secret", jwt_algorithm="HS256")


def _token(claims, key="test-secret"):
    return jwt.encode(claims, key, algorithm="HS256")


def test_token_identity_wins_over_query_parameters():
    params = {"token": _token({"sub": "u-1", "username": "alice"}), "user_id": "u-2"}

    identity = resolve_connection_identity(params, SETTINGS)

    assert identity.user_id == "u-1"
    assert identity.username == "alice"


def test_forwarded_parameters_are_used_without_token():
    identity = resolve_connection_identity({"userId": "u-2", "username": " "}, SETTINGS)

    assert identity.user_id == "u-2"
    assert identity.username is None


def test_missing_identity_returns_none():
    assert resolve_connection_identity({}, SETTINGS) is None
    assert resolve_connection_identity({"user_id": "  "}, SETTINGS) is None


@pytest.mark.parametrize(
    "token",
    [_token({"sub": "u-1"}, key="other-secret"), _token({"username": "alice"}), "garbage"],
)
def test_invalid_tokens_are_rejected(token):
    with pytest.raises(ValueError):
        resolve_connection_identity({"token": token}, SETTINGS)


def test_tokens_need_a_configured_secret():
    settings = Settings(secret_key=None)

    with pytest.raises(ValueError):
        resolve_connection_identity({"token": _token({"sub": "u-1"})}, settings)
