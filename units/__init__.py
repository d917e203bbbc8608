"""Unit package exports."""

from .envelope import (
    RESULT_MARKER,
    ContinuationTemplate,
    Envelope,
    continue_with,
    envelope,
    substitute,
)
from .unit import DEFAULT_TASK, ENTRY_SOURCE, Unit

__all__ = [
    "RESULT_MARKER",
    "ContinuationTemplate",
    "Envelope",
    "continue_with",
    "envelope",
    "substitute",
    "DEFAULT_TASK",
    "ENTRY_SOURCE",
    "Unit",
]
