"""Unit: a named task/continuation registry that processes envelopes."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Union

from .envelope import ContinuationTemplate, Envelope, continue_with

DEFAULT_TASK = "default"
ENTRY_SOURCE = "entry"

Emit = Callable[[Union[Envelope, Mapping[str, Any]]], Any]
Handler = Callable[..., Any]
Route = Callable[[Envelope, str], Any]
Step = Union[Envelope, None, Awaitable[Union[Envelope, None]]]


class Unit:
    """Runs handlers by task name and emits follow-up envelopes.

    A unit never sees other units or the ledger. Its only way out is the
    `route` callback handed over by the colony at spawn time.

    Handlers take `(payload)`, `(payload, emit)` or `(payload, emit, ctx)`.
    `emit` sends an extra envelope from this hop; `ctx` carries `from`
    (the previous hop's label), `self` (this hop's label) and `unit`.
    """

    def __init__(self, unit_id: str, route: Route | None = None) -> None:
        self.id = unit_id
        self._route = route
        self._tasks: dict[str, Handler] = {}
        self._continuations: dict[str, ContinuationTemplate] = {}
        self.logger = logging.getLogger(f"unit.{unit_id}")

    def on(self, task: str, handler: Handler) -> Unit:
        """Register or overwrite the handler for `task`."""
        if not callable(handler):
            raise TypeError(f"Handler for {self.id}:{task} must be callable")
        self._tasks[task] = _normalize(handler)
        return self

    def then(self, task: str, template: ContinuationTemplate) -> Unit:
        """Register or overwrite the continuation run after `task` completes."""
        self._continuations[task] = template
        return self

    def role(self, name: str, task: str, context: Mapping[str, Any]) -> Unit:
        """Register `name` as `task` invoked with `context` merged under the payload."""
        bound_context = dict(context)

        def run_role(payload: Any, emit: Emit, ctx: Mapping[str, Any]) -> Any:
            handler = self._tasks.get(task)
            if handler is None:
                return None
            if payload is None:
                merged: Any = dict(bound_context)
            elif isinstance(payload, Mapping):
                merged = {**bound_context, **payload}
            else:
                merged = {**bound_context, "payload": payload}
            return handler(merged, emit, ctx)

        return self.on(name, run_role)

    def has(self, task: str) -> bool:
        return task in self._tasks

    def tasks(self) -> list[str]:
        return sorted(self._tasks)

    def step(
        self,
        envelope: Envelope | Mapping[str, Any],
        source: str = ENTRY_SOURCE,
    ) -> Step:
        """Run one hop and return the continuation envelope instead of sending it.

        Returns None when the chain ends here, the next Envelope for a
        synchronous handler, or an awaitable resolving to it for an async one.
        Handler exceptions are not caught here.
        """
        envelope = Envelope.from_mapping(envelope)
        requested = envelope.task or DEFAULT_TASK
        task_name = requested if requested in self._tasks else DEFAULT_TASK
        handler = self._tasks.get(task_name)

        if handler is None:
            self.logger.debug(
                "[%s] no handler for task=%s from=%s", self.id, requested, source
            )
            return None

        template = self._continuations.get(requested)
        if template is None:
            template = self._continuations.get(task_name)

        ctx = {"from": source, "self": envelope.label, "unit": self.id}
        result = handler(envelope.payload, self._emitter(envelope.label), ctx)
        if inspect.isawaitable(result):
            return self._next_async(template, envelope, result)
        return _next_envelope(template, envelope, result)

    def receive(
        self,
        envelope: Envelope | Mapping[str, Any],
        source: str = ENTRY_SOURCE,
    ) -> Any:
        """Run the matching handler and hand its continuation to `route`.

        Returns whatever `route` returned for the continuation, or an
        awaitable finishing the rest of the chain when the handler was async.
        """
        envelope = Envelope.from_mapping(envelope)
        outcome = self.step(envelope, source)
        if inspect.isawaitable(outcome):
            return self._forward_async(outcome, envelope.label)
        return self._forward(outcome, envelope.label)

    __call__ = receive

    def _emitter(self, label: str) -> Emit:
        def emit(signal: Envelope | Mapping[str, Any]) -> Any:
            if self._route is None:
                return None
            return self._route(Envelope.from_mapping(signal), label)

        return emit

    def _forward(self, next_envelope: Envelope | None, label: str) -> Any:
        if next_envelope is None or self._route is None:
            return None
        return self._route(next_envelope, label)

    async def _forward_async(
        self, pending: Awaitable[Envelope | None], label: str
    ) -> None:
        outcome = self._forward(await pending, label)
        if inspect.isawaitable(outcome):
            await outcome

    async def _next_async(
        self,
        template: ContinuationTemplate | None,
        envelope: Envelope,
        pending: Awaitable[Any],
    ) -> Envelope | None:
        return _next_envelope(template, envelope, await pending)

    def __repr__(self) -> str:
        return f"Unit(id={self.id!r}, tasks={self.tasks()!r})"


def _next_envelope(
    template: ContinuationTemplate | None, envelope: Envelope, result: Any
) -> Envelope | None:
    if template is not None:
        return continue_with(template, result)
    if envelope.callback is not None:
        return continue_with(envelope.callback, result)
    return None


def _normalize(handler: Handler) -> Handler:
    """Adapt a 1-, 2- or 3-argument handler to `(payload, emit, ctx)`."""
    arity = _positional_arity(handler)
    if arity >= 3:
        return handler
    if arity == 2:
        return lambda payload, emit, ctx: handler(payload, emit)
    return lambda payload, emit, ctx: handler(payload)


def _positional_arity(handler: Handler) -> int:
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError):
        return 1

    count = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return 3
        if parameter.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            count += 1
    return max(1, min(count, 3))
