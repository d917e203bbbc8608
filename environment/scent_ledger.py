"""In-memory scent ledger: directed edge weights with reinforcement and decay."""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict, dataclass
from typing import Any

from .decay import fade_strength, is_evaporated
from .guardrails import Guardrails

EDGE_SEPARATOR = " → "
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Highway:
    """One ledger edge and its current strength."""

    edge: str
    strength: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def edge_key(source: str, target: str) -> str:
    """Build the externally visible key for a directed edge."""
    return f"{source}{EDGE_SEPARATOR}{target}"


def split_edge(edge: str) -> tuple[str, str]:
    """Recover (source, target) labels from an edge key."""
    source, separator, target = edge.partition(EDGE_SEPARATOR)
    if not separator:
        raise ValueError(f"Not an edge key: {edge!r}")
    return source, target


class ScentLedger:
    """Owns edge weights; the only place weights are read or written."""

    def __init__(self, reinforcement: float = 1.0, epsilon: float = 0.01) -> None:
        self.reinforcement = Guardrails.enforce_strength(reinforcement)
        self.epsilon = Guardrails.enforce_epsilon(epsilon)
        self._weights: dict[str, float] = {}
        self._lock = threading.RLock()

    def mark(self, edge: str, strength: float | None = None) -> float:
        """Deposit scent on one edge and return its new weight."""
        amount = (
            self.reinforcement
            if strength is None
            else Guardrails.enforce_strength(strength)
        )
        with self._lock:
            if amount == 0:
                return self._weights.get(edge, 0.0)
            updated = self._weights.get(edge, 0.0) + amount
            self._weights[edge] = updated
        return updated

    def smell(self, edge: str) -> float:
        """Read one edge weight; absent edges smell of nothing."""
        with self._lock:
            return self._weights.get(edge, 0.0)

    def fade(self, rate: float = 0.1) -> list[str]:
        """Evaporate every edge by `rate` and prune those below epsilon.

        Returns the sorted list of edges removed by this pass.
        """
        rate = Guardrails.enforce_rate(rate)
        removed: list[str] = []

        with self._lock:
            for edge in list(self._weights):
                updated = fade_strength(self._weights[edge], rate)
                if is_evaporated(updated, self.epsilon):
                    del self._weights[edge]
                    removed.append(edge)
                else:
                    self._weights[edge] = updated

        if removed:
            LOGGER.debug("fade rate=%.3f pruned=%s", rate, removed)
        return sorted(removed)

    def highways(self, limit: int = 10) -> list[Highway]:
        """Return the strongest edges, strongest first, ties by edge key."""
        limit = Guardrails.enforce_limit(limit)
        with self._lock:
            ranked = sorted(self._weights.items(), key=lambda item: (-item[1], item[0]))
        return [Highway(edge=edge, strength=strength) for edge, strength in ranked[:limit]]

    def snapshot(self) -> dict[str, float]:
        with self._lock:
            return dict(self._weights)

    def total_strength(self) -> float:
        with self._lock:
            return float(sum(self._weights.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._weights)

    def __contains__(self, edge: object) -> bool:
        with self._lock:
            return edge in self._weights
