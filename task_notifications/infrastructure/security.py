"""Resolve the user identity presented on a websocket handshake."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from jose import JWTError, jwt

from task_notifications.config import Settings, get_settings


@dataclass(frozen=True)
class ConnectionIdentity:
    user_id: str
    username: str | None = None


def decode_access_token(token: str, settings: Settings | None = None) -> dict:
    settings = settings or get_settings()
    if not settings.secret_key:
        raise ValueError("Token authentication is not configured")
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise ValueError("Could not validate credentials") from exc


def resolve_connection_identity(
    params: Mapping[str, str], settings: Settings | None = None
) -> ConnectionIdentity | None:
    """Return who is connecting, or ``None`` when no identity was given.

    A ``token`` parameter wins: its ``sub`` claim is the user id and the
    ``username`` claim is optional. Without a token the gateway-forwarded
    ``user_id``/``username`` parameters are used. An invalid token raises
    ``ValueError``.
    """

    token = (params.get("token") or "").strip()
    if token:
        claims = decode_access_token(token, settings)
        subject = str(claims.get("sub") or "").strip()
        if not subject:
            raise ValueError("Token does not carry a subject")
        return ConnectionIdentity(user_id=subject, username=claims.get("username"))

    user_id = (params.get("user_id") or params.get("userId") or "").strip()
    if not user_id:
        return None
    username = (params.get("username") or "").strip() or None
    return ConnectionIdentity(user_id=user_id, username=username)


__all__ = ["ConnectionIdentity", "decode_access_token", "resolve_connection_identity"]
