"""Unit tests for the unit task/continuation registry."""

from __future__ import annotations

import asyncio

import pytest

from units.envelope import Envelope
from units.unit import DEFAULT_TASK, Unit


class RecordingRoute:
    """Captures everything a unit emits."""

    def __init__(self) -> None:
        self.sent: list[tuple[Envelope, str]] = []

    def __call__(self, envelope: Envelope, source: str) -> None:
        self.sent.append((envelope, source))


def test_on_and_then_are_chainable_and_overwrite() -> None:
    unit = Unit("scout")

    returned = unit.on("observe", lambda payload: 1).on("observe", lambda payload: 2)

    assert returned is unit
    assert unit.then("observe", {"receiver": "analyst"}) is unit
    assert unit.has("observe")
    assert unit.tasks() == ["observe"]


def test_on_rejects_non_callable_handler() -> None:
    with pytest.raises(TypeError):
        Unit("scout").on("observe", "not callable")  # type: ignore[arg-type]


def test_receive_runs_handler_and_emits_continuation() -> None:
    route = RecordingRoute()
    seen: list[object] = []
    unit = Unit("scout", route=route)
    unit.on("observe", lambda payload: seen.append(payload) or {"seen": 3})
    unit.then(
        "observe",
        {"receiver": "analyst", "receive": "evaluate", "payload": {"seen": "{{result.seen}}"}},
    )

    outcome = unit.receive(Envelope(receiver="scout", receive="observe", payload={"area": 1}))

    assert outcome is None
    assert seen == [{"area": 1}]
    assert route.sent == [
        (Envelope(receiver="analyst", receive="evaluate", payload={"seen": 3}), "scout:observe")
    ]


def test_receive_without_continuation_terminates_silently() -> None:
    route = RecordingRoute()
    unit = Unit("analyst", route=route).on("evaluate", lambda payload: {"verdict": "ok"})

    assert unit.receive({"receiver": "analyst", "receive": "evaluate"}) is None
    assert route.sent == []


def test_unknown_task_without_default_is_a_noop() -> None:
    route = RecordingRoute()
    calls: list[object] = []
    unit = Unit("analyst", route=route).on("evaluate", calls.append)

    assert unit.receive(Envelope(receiver="analyst", receive="missing")) is None
    assert calls == []
    assert route.sent == []


def test_unknown_task_falls_back_to_default_handler() -> None:
    calls: list[object] = []
    route = RecordingRoute()
    unit = Unit("analyst", route=route)
    unit.on(DEFAULT_TASK, lambda payload: calls.append(payload) or "fallback")
    unit.then(DEFAULT_TASK, lambda result: {"receiver": "archivist", "payload": result})

    unit.receive(Envelope(receiver="analyst", receive="missing", payload=7))

    assert calls == [7]
    assert route.sent == [(Envelope(receiver="archivist", payload="fallback"), "analyst:missing")]


def test_nested_callback_is_used_without_registered_continuation() -> None:
    route = RecordingRoute()
    unit = Unit("scout", route=route).on("observe", lambda payload: {"seen": 5})
    callback = Envelope(
        receiver="analyst:evaluate",
        payload={"report": "{{result}}"},
        callback=Envelope(receiver="archivist"),
    )

    unit.receive(Envelope(receiver="scout:observe", callback=callback))

    sent, source = route.sent[0]
    assert source == "scout:observe"
    assert sent.payload == {"report": {"seen": 5}}
    assert sent.callback == Envelope(receiver="archivist")
    assert callback.payload == {"report": "{{result}}"}


def test_role_merges_context_under_payload() -> None:
    calls: list[object] = []
    unit = Unit("analyst").on("evaluate", lambda payload: calls.append(payload))
    unit.role("audit", "evaluate", {"strict": True, "seen": 0})

    unit.receive(Envelope(receiver="analyst:audit", payload={"seen": 2}))
    unit.receive(Envelope(receiver="analyst:audit"))
    unit.receive(Envelope(receiver="analyst:audit", payload="raw"))

    assert calls == [
        {"strict": True, "seen": 2},
        {"strict": True, "seen": 0},
        {"strict": True, "seen": 0, "payload": "raw"},
    ]


def test_role_for_missing_task_returns_none() -> None:
    route = RecordingRoute()
    unit = Unit("analyst", route=route).role("audit", "evaluate", {})
    unit.then("audit", lambda result: {"receiver": "x", "payload": result})

    unit.receive(Envelope(receiver="analyst:audit"))

    assert route.sent == [(Envelope(receiver="x", payload=None), "analyst:audit")]


def test_sync_handler_exception_propagates() -> None:
    def explode(payload: object) -> None:
        raise ValueError("boom")

    unit = Unit("scout").on("observe", explode)

    with pytest.raises(ValueError, match="boom"):
        unit.receive(Envelope(receiver="scout:observe"))


def test_async_handler_defers_continuation_until_awaited() -> None:
    route = RecordingRoute()

    async def observe(payload: object) -> dict:
        await asyncio.sleep(0)
        return {"seen": 9}

    unit = Unit("scout", route=route).on("observe", observe)
    unit.then("observe", {"receiver": "analyst", "payload": "{{result.seen}}"})

    outcome = unit.receive(Envelope(receiver="scout:observe"))
    assert outcome is not None
    assert route.sent == []

    asyncio.run(outcome)  # type: ignore[arg-type]
    assert route.sent == [(Envelope(receiver="analyst", payload=9), "scout:observe")]


def test_async_handler_exception_surfaces_on_await() -> None:
    async def explode(payload: object) -> None:
        raise RuntimeError("async boom")

    unit = Unit("scout").on("observe", explode)
    outcome = unit.receive(Envelope(receiver="scout:observe"))

    with pytest.raises(RuntimeError, match="async boom"):
        asyncio.run(outcome)  # type: ignore[arg-type]


def test_requested_task_continuation_wins_over_default() -> None:
    route = RecordingRoute()
    unit = Unit("a", route=route).on(DEFAULT_TASK, lambda payload: "r")
    unit.then("x", lambda result: {"receiver": "b", "payload": result})
    unit.then(DEFAULT_TASK, lambda result: {"receiver": "c", "payload": result})

    unit.receive(Envelope(receiver="a:x"))

    assert route.sent == [(Envelope(receiver="b", payload="r"), "a:x")]


def test_handler_receives_emit_and_context() -> None:
    route = RecordingRoute()
    contexts: list[dict] = []

    def observe(payload: object, emit, ctx) -> None:  # type: ignore[no-untyped-def]
        contexts.append(dict(ctx))
        emit({"receiver": "left", "payload": payload})
        emit(Envelope(receiver="right:tally"))

    unit = Unit("scout", route=route).on("observe", observe)

    unit.receive(Envelope(receiver="scout:observe", payload=4), "gate")

    assert contexts == [{"from": "gate", "self": "scout:observe", "unit": "scout"}]
    assert route.sent == [
        (Envelope(receiver="left", payload=4), "scout:observe"),
        (Envelope(receiver="right:tally"), "scout:observe"),
    ]


def test_two_argument_handler_gets_emit_only() -> None:
    route = RecordingRoute()
    unit = Unit("hub", route=route)
    unit.on(DEFAULT_TASK, lambda payload, emit: emit({"receiver": "spoke", "payload": payload}))

    unit.receive(Envelope(receiver="hub", payload="p"))

    assert route.sent == [(Envelope(receiver="spoke", payload="p"), "hub")]
