"""Tick-level metrics collector for colony runs."""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from environment.scent_ledger import Highway


class MetricsCollector:
    """Collect and aggregate per-tick ledger metrics for one run."""

    def __init__(self) -> None:
        self.tick_rows: list[dict[str, Any]] = []
        self._previous_stats: dict[str, int] = {"delivered": 0, "dropped": 0}
        self._pruned_total = 0
        self._peak_edges = 0

    def record_tick(
        self,
        tick: int,
        signals_sent: int,
        stats: Mapping[str, int],
        scent: Mapping[str, float],
        highways: Sequence[Highway],
        pruned: Sequence[str],
    ) -> None:
        """Record one loop tick worth of metrics.

        `stats` holds the colony's cumulative counters; per-tick deliveries
        and drops are derived from the previous tick.
        """
        delivered_total = int(stats.get("delivered", 0))
        dropped_total = int(stats.get("dropped", 0))
        delivered = delivered_total - self._previous_stats["delivered"]
        dropped = dropped_total - self._previous_stats["dropped"]
        self._previous_stats = {"delivered": delivered_total, "dropped": dropped_total}

        edges_total = len(scent)
        total_strength = float(sum(scent.values()))
        self._pruned_total += len(pruned)
        self._peak_edges = max(self._peak_edges, edges_total)

        top = highways[0] if highways else None
        row = {
            "tick": tick,
            "signals_sent": int(signals_sent),
            "delivered": delivered,
            "dropped": dropped,
            "delivered_total": delivered_total,
            "dropped_total": dropped_total,
            "edges_total": edges_total,
            "total_strength": round(total_strength, 6),
            "mean_strength": round(total_strength / edges_total, 6) if edges_total else 0.0,
            "pruned": len(pruned),
            "top_edge": top.edge if top else "",
            "top_strength": round(top.strength, 6) if top else 0.0,
        }
        self.tick_rows.append(row)

    def build_summary(self, stop_reason: str) -> dict[str, Any]:
        """Build summary payload from collected ticks."""
        if not self.tick_rows:
            return {
                "stop_reason": stop_reason,
                "total_ticks": 0,
                "delivered_total": 0,
                "dropped_total": 0,
                "drop_rate": 0.0,
                "edges_total": 0,
                "peak_edges": 0,
                "pruned_total": 0,
                "total_strength": 0.0,
                "top_edge": "",
                "top_strength": 0.0,
            }

        last = self.tick_rows[-1]
        attempts = last["delivered_total"] + last["dropped_total"]
        drop_rate = float(last["dropped_total"]) / float(attempts) if attempts else 0.0
        return {
            "stop_reason": stop_reason,
            "total_ticks": last["tick"] + 1,
            "delivered_total": last["delivered_total"],
            "dropped_total": last["dropped_total"],
            "drop_rate": round(drop_rate, 6),
            "edges_total": last["edges_total"],
            "peak_edges": self._peak_edges,
            "pruned_total": self._pruned_total,
            "total_strength": last["total_strength"],
            "top_edge": last["top_edge"],
            "top_strength": last["top_strength"],
        }
