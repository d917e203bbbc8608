"""Environment primitives for the scent medium."""

from .decay import fade_strength, is_evaporated
from .guardrails import (
    ColonyError,
    DefinitionError,
    EnvelopeError,
    Guardrails,
    InvalidLimitError,
    InvalidRateError,
    InvalidStrengthError,
)
from .scent_ledger import EDGE_SEPARATOR, Highway, ScentLedger, edge_key, split_edge

__all__ = [
    "fade_strength",
    "is_evaporated",
    "ColonyError",
    "DefinitionError",
    "EnvelopeError",
    "Guardrails",
    "InvalidLimitError",
    "InvalidRateError",
    "InvalidStrengthError",
    "EDGE_SEPARATOR",
    "Highway",
    "ScentLedger",
    "edge_key",
    "split_edge",
]
