"""
Session Serialization
=====================
Lossless conversion between auth models and JSON-ready dicts.

The expiry instant is written as an ISO-8601 string with its UTC offset
so a stored token round-trips to the exact same ``expires_at``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from ..errors import DeserializationError, ValidationError
from .models import AuthToken, User


def serialize_token(token: AuthToken) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "accessToken": token.access_token,
        "tokenType": token.token_type,
        "expiresAt": token.expires_at.isoformat(),
    }
    if token.refresh_token:
        data["refreshToken"] = token.refresh_token
    return data


def deserialize_token(data: Any) -> AuthToken:
    if not isinstance(data, dict):
        raise DeserializationError("Token data must be a JSON object")

    for key in ("accessToken", "tokenType", "expiresAt"):
        if key not in data or data[key] in (None, ""):
            raise DeserializationError(f"Missing token field: {key}", field=key)
        if not isinstance(data[key], str):
            raise DeserializationError(
                f"Token field {key} must be a string", field=key
            )

    try:
        expires_at = datetime.fromisoformat(data["expiresAt"].replace("Z", "+00:00"))
    except ValueError as exc:
        raise DeserializationError(
            f"Invalid expiresAt: {data['expiresAt']!r}",
            field="expiresAt",
            original_error=exc,
        ) from exc

    try:
        return AuthToken(
            access_token=data["accessToken"],
            token_type=data["tokenType"],
            expires_at=expires_at,
            refresh_token=data.get("refreshToken") or None,
        )
    except ValidationError as exc:
        raise DeserializationError(
            f"Invalid token data: {exc.message}",
            field=exc.field,
            original_error=exc,
        ) from exc


def serialize_user(user: User) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": user.id,
        "name": user.name,
        "username": user.username,
    }
    if user.avatar is not None:
        data["avatar"] = user.avatar
    if user.preferences is not None:
        data["preferences"] = dict(user.preferences)
    return data


def deserialize_user(data: Any) -> User:
    if not isinstance(data, dict):
        raise DeserializationError("User data must be a JSON object")

    for key in ("id", "name"):
        if key not in data or data[key] in (None, ""):
            raise DeserializationError(f"Missing user field: {key}", field=key)

    preferences = data.get("preferences")
    if preferences is not None and not isinstance(preferences, dict):
        raise DeserializationError(
            "User preferences must be a JSON object", field="preferences"
        )

    try:
        return User(
            id=str(data["id"]),
            name=data["name"],
            username=data.get("username") or "",
            avatar=data.get("avatar"),
            preferences=preferences,
        )
    except ValidationError as exc:
        raise DeserializationError(
            f"Invalid user data: {exc.message}",
            field=exc.field,
            original_error=exc,
        ) from exc
