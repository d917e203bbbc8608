"""Environment guardrails enforcing the norms of the scent medium."""

from __future__ import annotations

from typing import Any, Mapping


class ColonyError(RuntimeError):
    """Base exception for invalid use of the colony or its medium."""


class EnvelopeError(ColonyError):
    """Raised when an envelope cannot be built from its input."""


class InvalidRateError(ColonyError):
    """Raised when a fade rate falls outside [0.0, 1.0]."""


class InvalidStrengthError(ColonyError):
    """Raised when a reinforcement would make a weight negative."""


class InvalidLimitError(ColonyError):
    """Raised when a highway limit is negative."""


class DefinitionError(ColonyError):
    """Raised when a colony definition is malformed."""


class Guardrails:
    """Validate rates, strengths, and limits against the configured medium."""

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        scent = (config or {}).get("scent") or {}
        highways = (config or {}).get("highways") or {}

        self.reinforcement = self.enforce_strength(scent.get("reinforcement", 1.0))
        self.fade_rate = self.enforce_rate(scent.get("fade_rate", 0.1))
        self.epsilon = self.enforce_epsilon(scent.get("epsilon", 0.01))
        self.highway_limit = self.enforce_limit(highways.get("limit", 10))

    @staticmethod
    def enforce_rate(rate: Any) -> float:
        """Return the rate as a float, raising when outside [0.0, 1.0]."""
        value = float(rate)
        if not 0.0 <= value <= 1.0:
            raise InvalidRateError(f"Fade rate must be within [0, 1]: {rate}")
        return value

    @staticmethod
    def enforce_strength(strength: Any) -> float:
        """Return the strength as a float, raising when negative."""
        value = float(strength)
        if value < 0:
            raise InvalidStrengthError(f"Strength must be non-negative: {strength}")
        return value

    @staticmethod
    def enforce_epsilon(epsilon: Any) -> float:
        value = float(epsilon)
        if value < 0:
            raise InvalidStrengthError(f"Epsilon must be non-negative: {epsilon}")
        return value

    @staticmethod
    def enforce_limit(limit: Any) -> int:
        value = int(limit)
        if value < 0:
            raise InvalidLimitError(f"Highway limit must be non-negative: {limit}")
        return value
