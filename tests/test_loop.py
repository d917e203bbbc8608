"""Integration-style tests for the colony tick loop."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from stigmergy.colony import Colony
from stigmergy.definition import Signal
from stigmergy.loop import run_loop
from units.envelope import Envelope


def _build_config(base_path: Path) -> dict:
    return {
        "scent": {
            "reinforcement": 1.0,
            "fade_rate": 0.5,
            "epsilon": 0.01,
        },
        "highways": {
            "limit": 5,
        },
        "loop": {
            "max_ticks": 10,
            "fade_every": 1,
            "idle_ticks_to_stop": 2,
        },
        "metrics": {
            "output_dir": "metrics/output",
        },
        "runtime": {
            "base_path": str(base_path),
            "run_id": "test_run",
        },
    }


def _pipeline(config: dict) -> Colony:
    colony = Colony(config)
    colony.spawn("scout").on("observe", lambda payload: {"seen": 3}).then(
        "observe", {"receiver": "analyst:evaluate", "payload": "{{result.seen}}"}
    )
    colony.spawn("analyst").on("evaluate", lambda payload: None)
    return colony


def test_loop_stops_on_max_ticks(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 3
    colony = _pipeline(config)
    signals = [Signal(envelope=Envelope(receiver="scout:observe"), repeat=100)]

    result = run_loop(config=config, colony=colony, signals=signals)

    assert result["stop_reason"] == "max_ticks"
    assert result["summary"]["total_ticks"] == 3
    assert result["summary"]["delivered_total"] == 6
    assert result["highways"][0]["edge"] == "entry → scout:observe"


def test_loop_stops_when_ledger_evaporates(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 50
    colony = _pipeline(config)
    signals = [Signal(envelope=Envelope(receiver="scout:observe"))]

    result = run_loop(config=config, colony=colony, signals=signals)

    assert result["stop_reason"] == "ledger_empty"
    assert result["summary"]["edges_total"] == 0
    assert result["summary"]["pruned_total"] == 2
    assert result["highways"] == []


def test_loop_counts_drops_for_unknown_receivers(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 2
    colony = _pipeline(config)
    signals = [
        Signal(envelope=Envelope(receiver="ghost"), repeat=2),
        Signal(envelope=Envelope(receiver="scout:observe"), repeat=2),
    ]

    result = run_loop(config=config, colony=colony, signals=signals)

    assert result["summary"]["dropped_total"] == 2
    assert result["summary"]["drop_rate"] == round(2 / 6, 6)


def test_loop_respects_fade_cadence(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 1
    config["loop"]["fade_every"] = 2
    colony = _pipeline(config)
    signals = [Signal(envelope=Envelope(receiver="scout:observe"))]

    run_loop(config=config, colony=colony, signals=signals)

    assert colony.smell("entry → scout:observe") == 1.0


def test_loop_drains_async_chains(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 1
    config["loop"]["fade_every"] = 5
    colony = Colony(config)

    async def observe(payload: object) -> int:
        await asyncio.sleep(0)
        return 1

    colony.spawn("scout").on("observe", observe).then("observe", {"receiver": "analyst"})
    colony.spawn("analyst")

    run_loop(
        config=config,
        colony=colony,
        signals=[Signal(envelope=Envelope(receiver="scout:observe"))],
    )

    assert colony.smell("scout:observe → analyst") == 1.0


def test_loop_writes_artifacts(tmp_path: Path) -> None:
    config = _build_config(tmp_path)
    config["loop"]["max_ticks"] = 2
    config["runtime"]["manifest"] = {"run_id": "test_run"}
    colony = _pipeline(config)
    signals = [Signal(envelope=Envelope(receiver="scout:observe"), repeat=2)]

    result = run_loop(config=config, colony=colony, signals=signals)

    output_dir = tmp_path / "metrics" / "output"
    assert Path(result["ticks_path"]) == output_dir / "run_test_run_ticks.csv"
    assert (output_dir / "run_test_run_ticks.csv").exists()
    assert (output_dir / "run_test_run_manifest.json").exists()

    summary = json.loads((output_dir / "run_test_run_summary.json").read_text(encoding="utf-8"))
    assert summary["run_id"] == "test_run"

    highways = json.loads((output_dir / "run_test_run_highways.json").read_text(encoding="utf-8"))
    assert highways[0]["source"] == "entry"
    assert highways[0]["target"] == "scout:observe"
    assert highways[0]["rank"] == 1
