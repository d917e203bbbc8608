"""Build colonies and signal schedules from YAML definitions."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml  # type: ignore[import-untyped]

from environment.guardrails import DefinitionError, EnvelopeError
from stigmergy.colony import Colony
from units.envelope import Envelope


@dataclass(frozen=True)
class Signal:
    """An envelope injected from the entry point on a tick schedule."""

    envelope: Envelope
    start_tick: int = 0
    repeat: int = 1
    every: int = 1

    def is_due(self, tick: int) -> bool:
        offset = tick - self.start_tick
        if offset < 0 or offset % self.every:
            return False
        return offset // self.every < self.repeat

    def last_tick(self) -> int:
        return self.start_tick + (self.repeat - 1) * self.every


def load_definition(source: Mapping[str, Any] | str | Path) -> dict[str, Any]:
    """Read a definition mapping from a YAML file, or pass a mapping through."""
    if isinstance(source, Mapping):
        return dict(source)

    path = Path(source)
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}

    if not isinstance(loaded, dict):
        raise DefinitionError(f"Colony definition must be a mapping: {path}")
    return loaded


def build_colony(
    definition: Mapping[str, Any],
    config: Mapping[str, Any] | None = None,
) -> Colony:
    """Spawn every unit declared under `units`.

    `units` may be a mapping of id -> spec or a list of specs carrying `id`.
    """
    colony = Colony(config=config)
    units = definition.get("units") or {}

    if isinstance(units, Mapping):
        specs = [{"id": unit_id, **(spec or {})} for unit_id, spec in units.items()]
    elif isinstance(units, list):
        specs = list(units)
    else:
        raise DefinitionError("`units` must be a mapping or a list")

    for spec in specs:
        if not isinstance(spec, Mapping):
            raise DefinitionError(f"Unit spec must be a mapping: {spec!r}")
        colony.spawn_from_mapping(spec)
    return colony


def build_signals(definition: Mapping[str, Any]) -> list[Signal]:
    """Parse the `signals` schedule of a definition."""
    signals: list[Signal] = []
    for index, raw in enumerate(definition.get("signals") or []):
        if not isinstance(raw, Mapping):
            raise DefinitionError(f"Signal #{index} must be a mapping")
        try:
            envelope = Envelope.from_mapping(raw.get("envelope") or {})
        except EnvelopeError as exc:
            raise DefinitionError(f"Signal #{index} has an invalid envelope") from exc

        start_tick = int(raw.get("start_tick", 0))
        repeat = int(raw.get("repeat", 1))
        every = int(raw.get("every", 1))
        if start_tick < 0 or repeat < 0 or every < 1:
            raise DefinitionError(
                f"Signal #{index} needs start_tick >= 0, repeat >= 0, every >= 1"
            )
        signals.append(
            Signal(envelope=envelope, start_tick=start_tick, repeat=repeat, every=every)
        )
    return signals
