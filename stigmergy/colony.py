"""Colony: the space where units live and signals leave scent behind."""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import threading
from collections import deque
from types import MappingProxyType
from typing import Any, Awaitable, Mapping

from environment.guardrails import DefinitionError, Guardrails
from environment.scent_ledger import Highway, ScentLedger, edge_key
from units.envelope import Envelope
from units.unit import ENTRY_SOURCE, Unit


class Colony:
    """Routes envelopes between units and reinforces the edges they travel.

    Sending to an id that was never spawned is dropped on purpose: routing
    misses leave no trace and raise nothing. Handler exceptions are a
    different class of failure and propagate to the caller of `send`.
    """

    def __init__(self, config: Mapping[str, Any] | None = None) -> None:
        self.config = dict(config or {})
        self.guardrails = Guardrails(self.config)
        self.entry = str((self.config.get("scent") or {}).get("entry", ENTRY_SOURCE))
        self.ledger = ScentLedger(
            reinforcement=self.guardrails.reinforcement,
            epsilon=self.guardrails.epsilon,
        )
        self._units: dict[str, Unit] = {}
        self.stats = {"delivered": 0, "dropped": 0}
        self._local = threading.local()
        self.logger = logging.getLogger("colony")

    def spawn(self, unit_id: str) -> Unit:
        """Register a unit (or return the existing one) for task registration."""
        existing = self._units.get(unit_id)
        if existing is not None:
            return existing

        unit = Unit(unit_id, route=lambda envelope, source: self.send(envelope, source))
        self._units[unit_id] = unit
        self.logger.debug("spawned unit=%s", unit_id)
        return unit

    def spawn_from_mapping(self, data: Mapping[str, Any]) -> Unit:
        """Spawn a unit whose tasks return static results.

        Expected keys: `id`, and optionally `actions` (task -> result),
        `continuations` (task -> envelope template) and `roles`
        (name -> {task, context}).
        """
        unit_id = data.get("id")
        if not isinstance(unit_id, str) or not unit_id:
            raise DefinitionError(f"Unit definition requires an id: {dict(data)}")

        unit = self.spawn(unit_id)
        for task, result in (data.get("actions") or {}).items():
            unit.on(task, _static_handler(result))
        for task, template in (data.get("continuations") or {}).items():
            unit.then(task, template)
        for name, role in (data.get("roles") or {}).items():
            if not isinstance(role, Mapping) or "task" not in role:
                raise DefinitionError(f"Role {unit_id}:{name} requires a task")
            unit.role(name, str(role["task"]), role.get("context") or {})
        return unit

    def send(
        self,
        envelope: Envelope | Mapping[str, Any],
        source: str | None = None,
    ) -> Awaitable[Any] | None:
        """Deliver one envelope and every synchronous hop that follows it.

        Each hop's edge is reinforced before its handler runs. Hops are
        driven from a queue, so chain length is not bounded by the stack.
        Envelopes sent from inside a running handler join the current queue.

        Returns None when every hop completed synchronously. Otherwise it
        returns an awaitable for the asynchronous hops. Inside a running
        event loop those hops are already scheduled as tasks.
        """
        envelope = Envelope.from_mapping(envelope)
        origin = source or self.entry

        active = getattr(self._local, "queue", None)
        if active is not None:
            self._admit(active, envelope, origin)
            return None

        queue: deque[tuple[Unit, Envelope, str]] = deque()
        pending: list[Awaitable[Any]] = []
        self._local.queue = queue
        try:
            self._admit(queue, envelope, origin)
            while queue:
                unit, current, hop_source = queue.popleft()
                outcome = unit.step(current, hop_source)
                if inspect.isawaitable(outcome):
                    pending.append(_schedule(self._follow(outcome, current.label)))
                elif outcome is not None:
                    self._admit(queue, outcome, current.label)
        except Exception:
            for waiting in pending:
                if inspect.iscoroutine(waiting):
                    waiting.close()
            raise
        finally:
            self._local.queue = None

        return _settle(pending)

    async def deliver(
        self,
        envelope: Envelope | Mapping[str, Any],
        source: str | None = None,
    ) -> None:
        """Send and wait for the whole chain, async hops included."""
        outcome = self.send(envelope, source)
        if inspect.isawaitable(outcome):
            await outcome

    def _admit(
        self,
        queue: deque[tuple[Unit, Envelope, str]],
        envelope: Envelope,
        source: str,
    ) -> None:
        target = self._units.get(envelope.unit_id)
        if target is None:
            self.stats["dropped"] += 1
            self.logger.debug(
                "dropped envelope for unknown unit=%s from=%s", envelope.unit_id, source
            )
            return

        self.ledger.mark(edge_key(source, envelope.label))
        self.stats["delivered"] += 1
        queue.append((target, envelope, source))

    async def _follow(self, step: Awaitable[Envelope | None], label: str) -> None:
        next_envelope = await step
        if next_envelope is None:
            return
        outcome = self.send(next_envelope, label)
        if inspect.isawaitable(outcome):
            await outcome

    def mark(self, edge: str, strength: float | None = None) -> float:
        return self.ledger.mark(edge, strength)

    def smell(self, edge: str) -> float:
        return self.ledger.smell(edge)

    def fade(self, rate: float | None = None) -> list[str]:
        """Evaporate all trails; returns the edges pruned by this pass."""
        return self.ledger.fade(self.guardrails.fade_rate if rate is None else rate)

    def highways(self, limit: int | None = None) -> list[Highway]:
        return self.ledger.highways(
            self.guardrails.highway_limit if limit is None else limit
        )

    @property
    def scent(self) -> dict[str, float]:
        return self.ledger.snapshot()

    @property
    def units(self) -> Mapping[str, Unit]:
        return MappingProxyType(self._units)

    def has(self, unit_id: str) -> bool:
        return unit_id in self._units

    def list(self) -> list[str]:
        return sorted(self._units)

    def get(self, unit_id: str) -> Unit | None:
        return self._units.get(unit_id)


def _static_handler(result: Any):  # type: ignore[no-untyped-def]
    def handler(payload: Any) -> Any:
        return copy.deepcopy(result)

    return handler


def _schedule(step: Awaitable[Any]) -> Awaitable[Any]:
    """Start `step` as a task when an event loop is running in this thread."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return step
    return asyncio.ensure_future(step)


def _settle(pending: list[Awaitable[Any]]) -> Awaitable[Any] | None:
    if not pending:
        return None
    if len(pending) == 1:
        return pending[0]
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return _gather(pending)
    return asyncio.gather(*pending)


async def _gather(pending: list[Awaitable[Any]]) -> None:
    await asyncio.gather(*pending)
