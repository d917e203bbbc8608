"""Tick driver: inject scheduled signals, evaporate scent, record metrics."""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Sequence

from metrics.collector import MetricsCollector
from metrics.export import (
    ensure_output_dir,
    write_highways_json,
    write_manifest_json,
    write_summary_json,
    write_ticks_csv,
)
from stigmergy.colony import Colony
from stigmergy.definition import Signal


def run_loop(
    config: dict[str, Any],
    colony: Colony,
    signals: Sequence[Signal],
) -> dict[str, Any]:
    """Run the colony tick by tick until it goes quiet or max_ticks is hit."""
    runtime = config.setdefault("runtime", {})
    base_path = Path(runtime.get("base_path", Path.cwd()))
    logger = logging.getLogger("loop")

    loop_config = config.get("loop") or {}
    max_ticks = int(loop_config.get("max_ticks", 20))
    fade_every = max(1, int(loop_config.get("fade_every", 1)))
    idle_ticks_to_stop = int(loop_config.get("idle_ticks_to_stop", 3))

    collector = MetricsCollector()
    idle_ticks = 0
    stop_reason = "max_ticks"

    for tick in range(max_ticks):
        runtime["tick"] = tick

        due = [signal for signal in signals if signal.is_due(tick)]
        for signal in due:
            _drain(colony.send(signal.envelope))

        pruned: list[str] = []
        if (tick + 1) % fade_every == 0:
            pruned = colony.fade()

        highways = colony.highways()
        collector.record_tick(
            tick=tick,
            signals_sent=len(due),
            stats=colony.stats,
            scent=colony.scent,
            highways=highways,
            pruned=pruned,
        )
        if due or pruned:
            logger.info(
                "tick=%s sent=%s edges=%s pruned=%s top=%s",
                tick,
                len(due),
                len(colony.ledger),
                len(pruned),
                highways[0].edge if highways else "-",
            )

        pending = any(signal.repeat > 0 and signal.last_tick() > tick for signal in signals)
        if not pending and len(colony.ledger) == 0:
            idle_ticks += 1
        else:
            idle_ticks = 0

        if idle_ticks >= idle_ticks_to_stop:
            stop_reason = "ledger_empty"
            break

    summary = collector.build_summary(stop_reason=stop_reason)
    run_id = str(runtime.get("run_id", _default_run_id()))
    summary["run_id"] = run_id

    output_dir = Path((config.get("metrics") or {}).get("output_dir", "metrics/output"))
    if not output_dir.is_absolute():
        output_dir = base_path / output_dir
    ensure_output_dir(output_dir)

    ticks_path = output_dir / f"run_{run_id}_ticks.csv"
    summary_path = output_dir / f"run_{run_id}_summary.json"
    highways_path = output_dir / f"run_{run_id}_highways.json"
    manifest_path = output_dir / f"run_{run_id}_manifest.json"

    final_highways = colony.highways()
    write_ticks_csv(path=ticks_path, tick_rows=collector.tick_rows)
    write_summary_json(path=summary_path, summary=summary)
    write_highways_json(path=highways_path, highways=final_highways)

    manifest = runtime.get("manifest")
    if isinstance(manifest, dict) and manifest:
        write_manifest_json(path=manifest_path, manifest=manifest)

    return {
        "run_id": run_id,
        "stop_reason": stop_reason,
        "summary": summary,
        "highways": [highway.to_dict() for highway in final_highways],
        "ticks_path": str(ticks_path),
        "summary_path": str(summary_path),
        "highways_path": str(highways_path),
        "manifest_path": str(manifest_path) if manifest else None,
    }


def _drain(outcome: Awaitable[None] | None) -> None:
    """Block until an asynchronous chain has run to completion."""
    if inspect.isawaitable(outcome):
        asyncio.run(_await(outcome))


async def _await(outcome: Awaitable[None]) -> None:
    await outcome


def _default_run_id() -> str:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return now.strftime("%Y%m%dT%H%M%SZ")
