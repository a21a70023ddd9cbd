"""
Auth Manager
============
Convenience layer over ``AuthSessionRepository`` for long-running hosts:
automatic token refresh and event callbacks.

Usage::

    manager = AuthManager(repository, auto_refresh=True)
    manager.on_token_refresh = lambda token: print("refreshed")
    await manager.login("athlete", "secret")
    ...
    await manager.logout()
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from ..config import AuthenticationConfig
from ..errors import AuthenticationError, SDKError, UnsupportedOperationError
from .models import AuthToken, Credentials, Session, has_refresh_capability
from .repository import AuthSessionRepository

logger = logging.getLogger(__name__)


class AuthManager:
    """Login / logout / refresh with optional background auto-refresh."""

    def __init__(
        self,
        repository: AuthSessionRepository,
        *,
        auto_refresh: bool = True,
        fallback_config: Optional[AuthenticationConfig] = None,
    ):
        """
        Args:
            repository:      The session repository to drive.
            auto_refresh:    Schedule a refresh when the token enters its
                             refresh window.
            fallback_config: Configuration used for refresh when the active
                             strategy cannot refresh (typically API-only).
        """
        self.repository = repository
        self.auto_refresh = auto_refresh
        self.fallback_config = fallback_config
        self._refresh_task: Optional[asyncio.Task] = None

        self.on_login: Optional[Callable[[Session], Any]] = None
        self.on_logout: Optional[Callable[[], Any]] = None
        self.on_token_refresh: Optional[Callable[[AuthToken], Any]] = None
        self.on_token_expired: Optional[Callable[[AuthToken], Any]] = None
        self.on_error: Optional[Callable[[Exception], Any]] = None

    @property
    def refresh_scheduled(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def is_authenticated(self) -> bool:
        return self.repository.is_authenticated()

    async def login(self, username: str, password: str) -> Session:
        try:
            session = await self.repository.authenticate(Credentials(username, password))
        except SDKError as exc:
            self._emit(self.on_error, exc)
            raise
        self._emit(self.on_login, session)
        self._schedule_refresh(session.token)
        return session

    async def logout(self) -> None:
        self._cancel_refresh()
        try:
            await self.repository.clear_auth()
        except SDKError as exc:
            self._emit(self.on_error, exc)
            raise
        self._emit(self.on_logout)

    async def refresh(self) -> AuthToken:
        token = self.repository.get_current_token()
        if token is None or not has_refresh_capability(token):
            raise AuthenticationError(
                "No refreshable session", context={"operation": "refresh"}
            )

        try:
            try:
                new_token = await self.repository.refresh_token(token.refresh_token)
            except UnsupportedOperationError:
                if self.fallback_config is None:
                    raise
                logger.info("[SESSION] Falling back to API refresh")
                new_token = await self.repository.refresh_token(
                    token.refresh_token, config=self.fallback_config
                )
        except SDKError as exc:
            self._emit(self.on_error, exc)
            raise

        self._emit(self.on_token_refresh, new_token)
        self._schedule_refresh(new_token)
        return new_token

    def close(self) -> None:
        """Cancel any pending background refresh."""
        self._cancel_refresh()

    # ── Internal ──────────────────────────────────────────────────

    def _schedule_refresh(self, token: AuthToken) -> None:
        if not self.auto_refresh or not has_refresh_capability(token):
            return
        self._cancel_refresh()
        delay = self.repository.domain.get_time_until_refresh(token).total_seconds()
        logger.debug(f"[SESSION] Auto-refresh scheduled in {delay:.0f}s")
        self._refresh_task = asyncio.create_task(self._refresh_after(delay, token))

    def _cancel_refresh(self) -> None:
        task = self._refresh_task
        # The refresh task reschedules itself; never cancel the running one
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
        self._refresh_task = None

    async def _refresh_after(self, delay: float, token: AuthToken) -> None:
        await asyncio.sleep(delay)
        try:
            await self.refresh()
        except SDKError as exc:
            # refresh() has already reported SDK errors through on_error
            logger.warning(f"[SESSION] Auto-refresh failed: {exc}")
            self._emit(self.on_token_expired, token)
        except Exception as exc:
            logger.error(f"[SESSION] Auto-refresh crashed: {exc}")
            self._emit(self.on_error, exc)
            self._emit(self.on_token_expired, token)

    @staticmethod
    def _emit(callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as exc:
            logger.warning(f"[SESSION] Event callback error: {exc}")
