"""
Base Authentication Strategy (Abstract)
=======================================
Defines the contract that every authentication strategy implements.

To add a new strategy:
    1. Create a module with a class inheriting from ``BaseAuthStrategy``
    2. Implement ``can_handle``, ``authenticate`` and ``refresh_token``
    3. Register an instance with a ``StrategyRegistry``
    4. No changes to the repository are needed.

Design principles:
    - ``can_handle`` is a pure predicate over ``AuthenticationConfig``
    - Strategies fail fast; the repository attaches operation context
    - Strategies never touch storage or the session cache
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..config import AuthenticationConfig
from ..errors import UnsupportedOperationError
from .models import AuthToken, Credentials, Session


class BaseAuthStrategy(ABC):
    """Abstract base for authentication strategies.

    Subclasses MUST implement:
        - ``name``                  — short identifier for logs (e.g. "api")
        - ``can_handle(config)``    — True if this strategy applies
        - ``authenticate(creds, config)`` — full exchange → ``Session``

    ``refresh_token`` defaults to ``UnsupportedOperationError``; strategies
    that can refresh non-interactively override it and set
    ``supports_refresh = True``.
    """

    supports_refresh: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def can_handle(self, config: AuthenticationConfig) -> bool:
        """Return True if this strategy should serve *config*.

        Must be fast and side-effect free (no network, no browser).
        """
        ...

    @abstractmethod
    async def authenticate(
        self, credentials: Credentials, config: AuthenticationConfig
    ) -> Session:
        """Exchange *credentials* for a token and a resolvable user.

        Raises:
            AuthenticationError: the exchange did not yield both artifacts.
            InvalidCredentialsError: the platform rejected the credentials.
            NetworkError: transport failure.
        """
        ...

    async def refresh_token(
        self, refresh_token: str, config: AuthenticationConfig
    ) -> AuthToken:
        raise UnsupportedOperationError(
            f"Token refresh not supported by the {self.name} strategy",
            context={"strategy": self.name},
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
