"""
Auth Domain Service
===================
Stateless token lifecycle policy.  No I/O, no shared state — windows are
configuration so operators can tune them per deployment.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from ..config import TokenSettings
from .models import AuthToken, utcnow


class AuthDomainService:
    """Answers "is expired", "should refresh" and "time remaining"."""

    def __init__(
        self,
        refresh_window: Optional[timedelta] = None,
        validation_window: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        defaults = TokenSettings()
        self.refresh_window = (
            refresh_window if refresh_window is not None
            else defaults.refresh_window_delta
        )
        self.validation_window = (
            validation_window if validation_window is not None
            else defaults.validation_window_delta
        )
        self._clock = clock or utcnow

    @classmethod
    def from_settings(
        cls, tokens: TokenSettings, clock: Optional[Callable[[], datetime]] = None
    ) -> "AuthDomainService":
        return cls(
            refresh_window=tokens.refresh_window_delta,
            validation_window=tokens.validation_window_delta,
            clock=clock,
        )

    def now(self) -> datetime:
        return self._clock()

    def is_token_expired(self, token: AuthToken) -> bool:
        return self.now() >= token.expires_at

    def is_token_valid(self, token: AuthToken) -> bool:
        """Stricter than "not expired": the validation window counts as stale."""
        return self.now() < token.expires_at - self.validation_window

    def should_refresh_token(self, token: AuthToken) -> bool:
        return self.now() >= token.expires_at - self.refresh_window

    def get_remaining_validity_time(self, token: AuthToken) -> timedelta:
        return max(timedelta(0), token.expires_at - self.now())

    def get_time_until_refresh(self, token: AuthToken) -> timedelta:
        refresh_at = token.expires_at - self.refresh_window
        return max(timedelta(0), refresh_at - self.now())
