"""
Strategy Registry
=================
Ordered ``(predicate, strategy)`` pairs resolved once per call.

The first entry whose predicate accepts the active configuration wins,
so registration order is the priority order.  Each repository owns its
own registry — there is no process-wide handler table.

Usage::

    registry = StrategyRegistry()
    registry.register(WebBrowserAuthStrategy())   # preferred
    registry.register(ApiAuthStrategy())          # fallback
    strategy = registry.select(config)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from ..config import AuthenticationConfig
from .base_strategy import BaseAuthStrategy

logger = logging.getLogger(__name__)

Predicate = Callable[[AuthenticationConfig], bool]


@dataclass(frozen=True)
class StrategyEntry:
    predicate: Predicate
    strategy: BaseAuthStrategy


class StrategyRegistry:
    """Ordered capability list for authentication strategies."""

    def __init__(self, strategies: Optional[Iterable[BaseAuthStrategy]] = None):
        self._entries: List[StrategyEntry] = []
        for strategy in strategies or ():
            self.register(strategy)

    def register(
        self, strategy: BaseAuthStrategy, predicate: Optional[Predicate] = None
    ) -> None:
        """Append *strategy*; *predicate* defaults to ``strategy.can_handle``."""
        self._entries.append(
            StrategyEntry(predicate=predicate or strategy.can_handle, strategy=strategy)
        )
        logger.debug(f"[AUTH-REGISTRY] Registered strategy: {strategy.name}")

    def select(self, config: AuthenticationConfig) -> Optional[BaseAuthStrategy]:
        """Return the first strategy compatible with *config*, or None."""
        for entry in self._entries:
            if entry.predicate(config):
                logger.debug(f"[AUTH-REGISTRY] Selected strategy: {entry.strategy.name}")
                return entry.strategy
        return None

    def select_refreshable(
        self, config: AuthenticationConfig
    ) -> Optional[BaseAuthStrategy]:
        """First compatible strategy that can refresh non-interactively."""
        for entry in self._entries:
            if entry.strategy.supports_refresh and entry.predicate(config):
                return entry.strategy
        return None

    def names(self) -> List[str]:
        return [entry.strategy.name for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)
