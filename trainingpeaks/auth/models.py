"""
Auth Data Model
===============
Immutable value types for one login attempt and its result.

    - ``Credentials``  username/password, validated once, never persisted
    - ``AuthToken``    access token + expiry instant (+ optional refresh token)
    - ``User``         identity produced alongside the token
    - ``Session``      the ``(token, user)`` pair from one exchange

Lifecycle predicates over ``AuthToken`` are plain functions so the
repository and the domain service can share them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from ..errors import ValidationError

MAX_USERNAME_LENGTH = 100
MAX_NAME_LENGTH = 100
DEFAULT_REFRESH_WINDOW = timedelta(minutes=5)
DEFAULT_TOKEN_TYPE = "Bearer"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are interpreted as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _require_text(value: Any, field_name: str, owner: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{owner} {field_name} must be a non-empty string", field=field_name
        )


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Credentials:
    """Credential container for a single login attempt."""
    username: str
    password: str = field(repr=False)

    def __post_init__(self):
        _require_text(self.username, "username", "Credentials")
        _require_text(self.password, "password", "Credentials")
        if len(self.username.strip()) > MAX_USERNAME_LENGTH:
            raise ValidationError(
                f"Credentials username must be at most {MAX_USERNAME_LENGTH} characters",
                field="username",
            )
        object.__setattr__(self, "username", self.username.strip())


# ---------------------------------------------------------------------------
# AuthToken
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AuthToken:
    access_token: str = field(repr=False)
    token_type: str
    expires_at: datetime
    refresh_token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self):
        _require_text(self.access_token, "access_token", "AuthToken")
        _require_text(self.token_type, "token_type", "AuthToken")
        if not isinstance(self.expires_at, datetime):
            raise ValidationError(
                "AuthToken expires_at must be a datetime", field="expires_at"
            )
        object.__setattr__(self, "expires_at", _ensure_aware(self.expires_at))

    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"


def create_auth_token(
    access_token: str,
    expires_in: timedelta,
    token_type: str = DEFAULT_TOKEN_TYPE,
    refresh_token: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AuthToken:
    """Build a token whose expiry is computed locally as ``now + expires_in``."""
    issued = _ensure_aware(now) if now else utcnow()
    return AuthToken(
        access_token=access_token,
        token_type=token_type or DEFAULT_TOKEN_TYPE,
        expires_at=issued + expires_in,
        refresh_token=refresh_token or None,
    )


def is_token_expired(token: AuthToken, now: Optional[datetime] = None) -> bool:
    now = _ensure_aware(now) if now else utcnow()
    return now >= token.expires_at


def is_token_valid(token: AuthToken, now: Optional[datetime] = None) -> bool:
    return not is_token_expired(token, now)


def should_refresh_token(
    token: AuthToken,
    now: Optional[datetime] = None,
    refresh_window: timedelta = DEFAULT_REFRESH_WINDOW,
) -> bool:
    now = _ensure_aware(now) if now else utcnow()
    return now >= token.expires_at - refresh_window


def get_remaining_validity_time(
    token: AuthToken, now: Optional[datetime] = None
) -> timedelta:
    now = _ensure_aware(now) if now else utcnow()
    return max(timedelta(0), token.expires_at - now)


def has_refresh_capability(token: AuthToken) -> bool:
    return isinstance(token.refresh_token, str) and bool(token.refresh_token)


def refresh_auth_token(
    token: AuthToken,
    new_access_token: str,
    new_expires_at: datetime,
    new_refresh_token: Optional[str] = None,
) -> AuthToken:
    """Return a new token; the old refresh token is kept unless replaced."""
    return replace(
        token,
        access_token=new_access_token,
        expires_at=new_expires_at,
        refresh_token=new_refresh_token or token.refresh_token,
    )


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

def _is_valid_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class User:
    id: str
    name: str
    username: str
    avatar: Optional[str] = None
    preferences: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        _require_text(self.id, "id", "User")
        _require_text(self.name, "name", "User")
        if len(self.name.strip()) > MAX_NAME_LENGTH:
            raise ValidationError(
                f"User name must be at most {MAX_NAME_LENGTH} characters",
                field="name",
            )
        if not isinstance(self.username, str):
            raise ValidationError("User username must be a string", field="username")
        if self.avatar is not None and not _is_valid_url(self.avatar):
            raise ValidationError(
                f"User avatar is not a valid URL: {self.avatar!r}", field="avatar"
            )

    def with_updates(self, **changes: Any) -> "User":
        """Users change independently of tokens; returns a validated copy."""
        return replace(self, **changes)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Session:
    """Result of one successful authentication exchange."""
    token: AuthToken
    user: User
