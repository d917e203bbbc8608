"""Export helpers for colony run artifacts."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Any, Mapping, Sequence

from environment.scent_ledger import Highway, split_edge

TICK_FIELDNAMES = [
    "tick",
    "signals_sent",
    "delivered",
    "dropped",
    "delivered_total",
    "dropped_total",
    "edges_total",
    "total_strength",
    "mean_strength",
    "pruned",
    "top_edge",
    "top_strength",
]


def ensure_output_dir(output_dir: Path) -> Path:
    """Create the output directory if missing."""
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def write_ticks_csv(path: Path, tick_rows: Sequence[Mapping[str, Any]]) -> None:
    """Write tick-level metrics as CSV."""
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=TICK_FIELDNAMES)
        writer.writeheader()
        for row in tick_rows:
            payload = {field: row.get(field) for field in TICK_FIELDNAMES}
            writer.writerow(payload)


def write_summary_json(path: Path, summary: Mapping[str, Any]) -> None:
    """Write run summary as JSON."""
    _write_json(path, summary)


def write_manifest_json(path: Path, manifest: Mapping[str, Any]) -> None:
    """Write run manifest as JSON."""
    _write_json(path, manifest)


def write_highways_json(path: Path, highways: Sequence[Highway]) -> None:
    """Write the ranked highways with their source/target labels split out."""
    rows = []
    for rank, highway in enumerate(highways, start=1):
        source, target = split_edge(highway.edge)
        rows.append(
            {
                "rank": rank,
                "edge": highway.edge,
                "source": source,
                "target": target,
                "strength": highway.strength,
            }
        )
    with path.open("w", encoding="utf-8") as handle:
        json.dump(rows, handle, indent=2, ensure_ascii=False)
        handle.write("\n")


def _write_json(path: Path, payload: Mapping[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True, ensure_ascii=False)
        handle.write("\n")
