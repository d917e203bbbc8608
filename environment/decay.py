"""Decay helpers for scent weights."""

from __future__ import annotations

from .guardrails import Guardrails


def fade_strength(value: float, rate: float) -> float:
    """Apply one multiplicative fade step: w * (1 - rate)."""
    rate = Guardrails.enforce_rate(rate)
    return max(0.0, float(value)) * (1.0 - rate)


def is_evaporated(value: float, epsilon: float) -> bool:
    """Return True when a faded weight should leave the ledger."""
    return float(value) < float(epsilon)
