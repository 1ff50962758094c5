"""Token and cost accounting per provider."""

import logging
import threading
from typing import Dict

from nexus.core.schema import (
    Model,
    Usage,
)

logger = logging.getLogger(__name__)


class UsageTracker:
    """
    Accumulates tokens and estimated spend (USD) per provider.

    A warning is logged once when cumulative spend first crosses *cost_warning_threshold*.
    """

    def __init__(self, cost_warning_threshold: float = 5.0):
        self.cost_warning_threshold = cost_warning_threshold
        self._lock = threading.Lock()
        self._cost: Dict[str, float] = {}
        self._tokens: Dict[str, int] = {}
        self._warned = False

    @staticmethod
    def estimate_cost(model: Model, usage: Usage) -> float:
        """Price *usage* with *model*'s per-million-token rates."""
        return (
            usage.input_tokens * model.input_price + usage.output_tokens * model.output_price
        ) / 1_000_000

    def record(self, model: Model, usage: Usage) -> float:
        """Add one call's usage and return its estimated cost."""
        cost = self.estimate_cost(model, usage)
        provider = model.provider.value
        with self._lock:
            self._cost[provider] = self._cost.get(provider, 0.0) + cost
            self._tokens[provider] = self._tokens.get(provider, 0) + usage.total_tokens
            total = sum(self._cost.values())
            crossed = not self._warned and total > self.cost_warning_threshold
            if crossed:
                self._warned = True
        if crossed:
            logger.warning(
                "Estimated spend $%.2f exceeds the cost warning threshold of $%.2f",
                total,
                self.cost_warning_threshold,
            )
        return cost

    @property
    def total_cost(self) -> float:
        with self._lock:
            return sum(self._cost.values())

    def by_provider(self) -> Dict[str, Dict[str, float]]:
        """Return ``{provider: {"cost": ..., "tokens": ...}}``."""
        with self._lock:
            return {
                provider: {"cost": cost, "tokens": self._tokens.get(provider, 0)}
                for provider, cost in self._cost.items()
            }
