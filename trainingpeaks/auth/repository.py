"""
Auth Session Repository
=======================
The single coordination point between callers and the auth subsystem.

Responsibilities:
    1. Select the first registered strategy compatible with the active
       ``AuthenticationConfig`` and delegate login / refresh to it
    2. Write results through to the ``StoragePort``
    3. Keep an in-memory cache that answers synchronous queries
       (``is_authenticated``, ``get_current_token``, ``get_user_id``)
       without awaiting any I/O
    4. Hydrate the cache from storage on start (best-effort)

Concurrency:
    Cache mutations (authenticate / refresh / clear) are serialized by a
    per-repository ``asyncio.Lock``; a second concurrent login waits for
    the first and its result replaces the first one.  Synchronous reads
    take no lock.

Usage::

    repo = await AuthSessionRepository.create(FileSystemStorage())
    session = await repo.authenticate(Credentials("athlete", "secret"))
    if repo.is_authenticated():
        token = repo.get_current_token()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, Optional, Union

import requests

from ..config import AuthenticationConfig, SDKConfig
from ..errors import (
    AUTH_NO_STRATEGY,
    AuthenticationError,
    SDKError,
    UnsupportedOperationError,
    ValidationError,
)
from .api_strategy import ApiAuthStrategy
from .base_strategy import BaseAuthStrategy
from .domain import AuthDomainService
from .models import AuthToken, Credentials, Session, User, has_refresh_capability
from .registry import StrategyRegistry
from .storage import StoragePort
from .web_strategy import BrowserLauncher, WebBrowserAuthStrategy

logger = logging.getLogger(__name__)


@dataclass
class _SessionCache:
    token: Optional[AuthToken] = None
    user: Optional[User] = None
    valid: bool = False

    def set(self, token: AuthToken, user: Optional[User]) -> None:
        self.token = token
        self.user = user
        self.valid = True

    def clear(self) -> None:
        self.token = None
        self.user = None
        self.valid = False


def default_strategies(
    sdk_config: SDKConfig,
    browser_launcher: Optional[BrowserLauncher] = None,
    http_session: Optional[requests.Session] = None,
) -> StrategyRegistry:
    """Browser automation first (the reliable path), direct API second."""
    return StrategyRegistry([
        WebBrowserAuthStrategy(sdk_config, browser_launcher=browser_launcher),
        ApiAuthStrategy(sdk_config, http_session=http_session),
    ])


class AuthSessionRepository:
    """Caches and persists the session produced by authentication strategies."""

    def __init__(
        self,
        storage: StoragePort,
        config: Optional[AuthenticationConfig] = None,
        strategies: Optional[Union[StrategyRegistry, Iterable[BaseAuthStrategy]]] = None,
        domain_service: Optional[AuthDomainService] = None,
        sdk_config: Optional[SDKConfig] = None,
    ):
        """
        Args:
            storage:        Durable persistence supplied by the host.
            config:         Active authentication configuration.  Defaults to
                            browser automation built from *sdk_config*.
            strategies:     Registry or ordered strategies.  Defaults to
                            ``default_strategies(sdk_config)``.
            domain_service: Token lifecycle policy.
            sdk_config:     SDK-wide settings (URLs, windows, timeouts).
        """
        self.storage = storage
        self.sdk_config = sdk_config or SDKConfig()
        self.config = config or AuthenticationConfig.from_sdk_config(self.sdk_config)

        if strategies is None:
            self.registry = default_strategies(self.sdk_config)
        elif isinstance(strategies, StrategyRegistry):
            self.registry = strategies
        else:
            self.registry = StrategyRegistry(strategies)

        self.domain = domain_service or AuthDomainService.from_settings(
            self.sdk_config.tokens
        )
        self._cache = _SessionCache()
        self._lock = asyncio.Lock()

    @classmethod
    def create_default(
        cls,
        storage: StoragePort,
        sdk_config: Optional[SDKConfig] = None,
        config: Optional[AuthenticationConfig] = None,
        *,
        browser_launcher: Optional[BrowserLauncher] = None,
        http_session: Optional[requests.Session] = None,
    ) -> "AuthSessionRepository":
        """Repository with the built-in strategies (browser ahead of API)."""
        sdk_config = sdk_config or SDKConfig()
        return cls(
            storage,
            config=config,
            strategies=default_strategies(sdk_config, browser_launcher, http_session),
            sdk_config=sdk_config,
        )

    @classmethod
    async def create(cls, storage: StoragePort, **kwargs) -> "AuthSessionRepository":
        """Construct a repository and hydrate its cache from *storage*."""
        repository = cls(storage, **kwargs)
        await repository.hydrate()
        return repository

    # ── Cache hydration ───────────────────────────────────────────

    async def hydrate(self) -> bool:
        """Load the last known session from storage into the cache.

        A cold or unreadable store is a normal first-run state: the cache
        is left empty and no error is raised.

        Returns:
            True if a token was loaded.
        """
        try:
            token = await self.storage.get_token()
            user = await self.storage.get_user()
        except Exception as exc:
            logger.warning(f"[SESSION] Could not hydrate session from storage: {exc}")
            self._cache.clear()
            return False

        if token is None:
            logger.info("[SESSION] No stored session found")
            self._cache.clear()
            return False

        self._cache.set(token, user)
        logger.info("[SESSION] Session hydrated from storage")
        return True

    # ── Synchronous, cache-only reads ─────────────────────────────

    def _live_token(self) -> Optional[AuthToken]:
        cache = self._cache
        if not cache.valid or cache.token is None:
            return None
        if self.domain.is_token_expired(cache.token):
            logger.info("[SESSION] Cached token expired — clearing cache")
            cache.clear()
            return None
        return cache.token

    def is_authenticated(self) -> bool:
        try:
            return self._live_token() is not None
        except Exception as exc:
            logger.warning(f"[SESSION] is_authenticated check failed: {exc}")
            return False

    def get_current_token(self) -> Optional[AuthToken]:
        return self._live_token()

    def get_current_user(self) -> Optional[User]:
        if self._live_token() is None:
            return None
        return self._cache.user

    def get_user_id(self) -> Optional[str]:
        try:
            user = self.get_current_user()
        except Exception as exc:
            logger.warning(f"[SESSION] get_user_id failed: {exc}")
            return None
        return user.id if user else None

    def get_time_until_refresh(self) -> Optional[timedelta]:
        token = self._live_token()
        return self.domain.get_time_until_refresh(token) if token else None

    # ── Operations ────────────────────────────────────────────────

    async def authenticate(self, credentials: Credentials) -> Session:
        """Log in with the first compatible strategy and cache the session.

        Raises:
            AuthenticationError: no compatible strategy, or the exchange failed
                (context carries ``operation`` and ``username``).
        """
        strategy = self.registry.select(self.config)
        if strategy is None:
            raise AuthenticationError(
                "No compatible authentication strategy for the active configuration",
                code=AUTH_NO_STRATEGY,
                context={
                    "operation": "authenticate",
                    "username": credentials.username,
                    "registered": ",".join(self.registry.names()) or "none",
                },
            )

        logger.info(f"[SESSION] Authenticating via {strategy.name} strategy")
        async with self._lock:
            try:
                session = await strategy.authenticate(credentials, self.config)
                await self._persist(session.token, session.user)
            except SDKError as exc:
                exc.with_context(
                    operation="authenticate",
                    username=credentials.username,
                    strategy=strategy.name,
                )
                raise
            except Exception as exc:
                raise AuthenticationError(
                    f"Authentication failed: {exc}",
                    context={
                        "operation": "authenticate",
                        "username": credentials.username,
                        "strategy": strategy.name,
                    },
                    original_error=exc,
                ) from exc

            self._cache.set(session.token, session.user)

        logger.info(f"[SESSION] Authenticated user id {session.user.id}")
        return session

    async def refresh_token(
        self,
        refresh_token: Optional[str] = None,
        config: Optional[AuthenticationConfig] = None,
    ) -> AuthToken:
        """Renew the token through a strategy that supports non-interactive refresh.

        Args:
            refresh_token: Defaults to the cached token's refresh token.
            config:        Override the active configuration (e.g. an
                           API-only config as a fallback).

        Raises:
            UnsupportedOperationError: no refresh-capable strategy is compatible.
        """
        config = config or self.config
        if refresh_token is None and self._cache.token is not None:
            refresh_token = self._cache.token.refresh_token
        if not refresh_token:
            raise ValidationError(
                "No refresh token available", field="refresh_token",
                context={"operation": "refresh_token"},
            )

        strategy = self.registry.select_refreshable(config)
        if strategy is None:
            compatible = self.registry.select(config)
            raise UnsupportedOperationError(
                "Token refresh not supported by the configured authentication strategy",
                context={
                    "operation": "refresh_token",
                    "strategy": compatible.name if compatible else "none",
                },
            )

        async with self._lock:
            user = self._cache.user
            try:
                token = await strategy.refresh_token(refresh_token, config)
                await self._persist(token, user)
            except SDKError as exc:
                exc.with_context(operation="refresh_token", strategy=strategy.name)
                raise
            except Exception as exc:
                raise AuthenticationError(
                    f"Token refresh failed: {exc}",
                    context={"operation": "refresh_token", "strategy": strategy.name},
                    original_error=exc,
                ) from exc

            self._cache.set(token, user)

        logger.info("[SESSION] Token refreshed")
        return token

    async def _persist(self, token: AuthToken, user: Optional[User]) -> None:
        """Write token and user as one pair; a half-written pair is rolled back."""
        await self.storage.store_token(token)
        if user is None:
            return
        try:
            await self.storage.store_user(user)
        except Exception:
            await self._restore_storage()
            raise

    async def _restore_storage(self) -> None:
        # Storage must never pair a token with a user from another exchange
        previous = self._cache
        try:
            if previous.valid and previous.token is not None and previous.user is not None:
                await self.storage.store_token(previous.token)
                await self.storage.store_user(previous.user)
            else:
                await self.storage.clear()
            logger.warning("[SESSION] Partial session write rolled back")
        except Exception as exc:
            logger.error(f"[SESSION] Could not roll back partial session write: {exc}")

    async def get_valid_token(self) -> Optional[AuthToken]:
        """Return the cached token, refreshing it first when policy says so.

        An unsupported or failed refresh degrades to the current token while
        it is still unexpired.
        """
        token = self._live_token()
        if token is None:
            return None
        if not self.domain.should_refresh_token(token) or not has_refresh_capability(token):
            return token

        try:
            return await self.refresh_token(token.refresh_token)
        except UnsupportedOperationError:
            logger.info("[SESSION] Refresh unsupported — keeping current token")
        except SDKError as exc:
            logger.warning(f"[SESSION] Proactive refresh failed: {exc}")
            if self._live_token() is None:
                raise
        return self._live_token()

    async def clear_auth(self) -> None:
        """Log out: invalidate the cache and clear storage.  Idempotent."""
        async with self._lock:
            self._cache.clear()
            try:
                await self.storage.clear()
            except SDKError as exc:
                exc.with_context(operation="clear_auth")
                raise
        logger.info("[SESSION] Session cleared")
