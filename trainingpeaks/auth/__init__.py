"""
Authentication Module
=====================
Session engine for TrainingPeaks: obtain, cache, persist and refresh the
bearer token and user identity every other SDK call depends on.

Architecture:
    - ``BaseAuthStrategy``       abstract base class for login strategies
    - ``StrategyRegistry``       ordered (predicate, strategy) capability list
    - ``AuthSessionRepository``  cache + storage + strategy coordination
    - ``AuthDomainService``      token lifecycle policy (expiry, refresh window)
    - ``StoragePort``            durable persistence supplied by the host

Built-in strategies:
    - ``WebBrowserAuthStrategy``  drives the real login page with Playwright
                                  and intercepts the token/user responses
    - ``ApiAuthStrategy``         OAuth password grant against the API;
                                  the only strategy that can refresh

Extending:
    Subclass ``BaseAuthStrategy``, implement ``name``, ``can_handle`` and
    ``authenticate``, and register it on the repository's registry.

Usage::

    from trainingpeaks.auth import AuthSessionRepository, Credentials, FileSystemStorage

    repo = await AuthSessionRepository.create(FileSystemStorage())
    if not repo.is_authenticated():
        await repo.authenticate(Credentials("athlete", "secret"))
    token = repo.get_current_token()
"""

from .models import (
    AuthToken,
    Credentials,
    Session,
    User,
    create_auth_token,
    get_remaining_validity_time,
    has_refresh_capability,
    is_token_expired,
    is_token_valid,
    refresh_auth_token,
    should_refresh_token,
)
from .domain import AuthDomainService
from .serialization import (
    deserialize_token,
    deserialize_user,
    serialize_token,
    serialize_user,
)
from .base_strategy import BaseAuthStrategy
from .api_strategy import ApiAuthStrategy
from .web_strategy import InterceptedAuthData, WebBrowserAuthStrategy, make_chromium_launcher
from .storage import FileSystemStorage, InMemoryStorage, StoragePort
from .registry import StrategyRegistry
from .repository import AuthSessionRepository, default_strategies
from .manager import AuthManager

__all__ = [
    # Data model
    "AuthToken",
    "Credentials",
    "Session",
    "User",
    "create_auth_token",
    "get_remaining_validity_time",
    "has_refresh_capability",
    "is_token_expired",
    "is_token_valid",
    "refresh_auth_token",
    "should_refresh_token",
    "AuthDomainService",
    # Serialization
    "serialize_token",
    "deserialize_token",
    "serialize_user",
    "deserialize_user",
    # Strategies
    "BaseAuthStrategy",
    "ApiAuthStrategy",
    "WebBrowserAuthStrategy",
    "InterceptedAuthData",
    "make_chromium_launcher",
    "StrategyRegistry",
    # Storage
    "StoragePort",
    "InMemoryStorage",
    "FileSystemStorage",
    # Session
    "AuthSessionRepository",
    "AuthManager",
    "default_strategies",
]
