"""CLI entrypoint for colony runs."""

from __future__ import annotations

import argparse
import copy
import hashlib
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from stigmergy.definition import build_colony, build_signals, load_definition
from stigmergy.loop import run_loop


DEFAULT_CONFIG_PATH = Path("stigmergy/config.yaml")
DEFAULT_COLONY_PATH = Path("stigmergy/colony.yaml")


def main(argv: list[str] | None = None) -> int:
    base_path = Path(__file__).resolve().parent
    load_dotenv(base_path / ".env")

    args = _parse_args(argv)

    config = _load_config(path=_resolve(base_path, args.config))
    _apply_cli_overrides(config=config, args=args)
    config.setdefault("runtime", {})
    config["runtime"]["base_path"] = str(base_path)

    _configure_logging(
        base_path=base_path,
        verbose=bool(args.verbose),
    )
    logger = logging.getLogger("main")

    definition_path = _resolve(base_path, args.colony)
    definition = load_definition(definition_path)
    colony = build_colony(definition, config=config)
    signals = build_signals(definition)

    run_id = _build_run_id()
    config["runtime"]["run_id"] = run_id
    config["runtime"]["manifest"] = _build_run_manifest(
        run_id=run_id,
        config=config,
        definition=definition,
        definition_path=definition_path,
    )

    logger.info(
        "Starting run_id=%s units=%s signals=%s", run_id, colony.list(), len(signals)
    )
    result = run_loop(config=config, colony=colony, signals=signals)
    summary = result["summary"]

    logger.info(
        "Run completed run_id=%s stop_reason=%s edges=%s",
        run_id,
        summary.get("stop_reason", "unknown"),
        summary.get("edges_total", 0),
    )
    print(
        json.dumps(
            {"summary": summary, "highways": result["highways"]},
            indent=2,
            sort_keys=True,
            ensure_ascii=False,
        )
    )
    return 0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a stigmergic signal colony")
    parser.add_argument(
        "--config",
        type=str,
        default=os.environ.get("COLONY_CONFIG", str(DEFAULT_CONFIG_PATH)),
        help="Config file path",
    )
    parser.add_argument(
        "--colony",
        type=str,
        default=os.environ.get("COLONY_DEFINITION", str(DEFAULT_COLONY_PATH)),
        help="Colony definition (units and signals) file path",
    )
    parser.add_argument("--max-ticks", type=int, default=None, help="Override loop.max_ticks")
    parser.add_argument(
        "--fade-rate",
        type=float,
        default=None,
        help="Override scent.fade_rate",
    )
    parser.add_argument(
        "--highways",
        type=int,
        default=None,
        help="Override highways.limit",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Override metrics output directory",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def _resolve(base_path: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute() and not path.exists():
        path = base_path / path
    return path


def _load_config(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config must be a mapping: {path}")
    return loaded


def _apply_cli_overrides(config: dict[str, Any], args: argparse.Namespace) -> None:
    if args.max_ticks is not None:
        _section(config, "loop")["max_ticks"] = int(args.max_ticks)
    if args.fade_rate is not None:
        _section(config, "scent")["fade_rate"] = float(args.fade_rate)
    if args.highways is not None:
        _section(config, "highways")["limit"] = int(args.highways)
    if args.output_dir:
        _section(config, "metrics")["output_dir"] = str(args.output_dir)


def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
    if not isinstance(config.get(name), dict):
        config[name] = {}
    return config[name]


def _configure_logging(base_path: Path, verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    log_dir = base_path / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "colony.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    file_handler.setLevel(level)

    logging.basicConfig(
        level=level,
        handlers=[stream_handler, file_handler],
        force=True,
    )


def _build_run_manifest(
    run_id: str,
    config: dict[str, Any],
    definition: dict[str, Any],
    definition_path: Path,
) -> dict[str, Any]:
    config_hash = _hash_json_payload(_normalized_config_for_hash(config))
    definition_hash = _hash_json_payload(definition)

    return {
        "run_id": run_id,
        "timestamp_utc": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "config_hash": f"sha256:{config_hash}",
        "definition_hash": f"sha256:{definition_hash}",
        "definition_path": str(definition_path),
        "python_version": sys.version.split()[0],
    }


def _normalized_config_for_hash(config: dict[str, Any]) -> dict[str, Any]:
    payload = copy.deepcopy(config)
    runtime = payload.get("runtime", {})
    if isinstance(runtime, dict):
        runtime.pop("manifest", None)
        runtime.pop("run_id", None)
        runtime.pop("tick", None)
        runtime.pop("base_path", None)
    return payload


def _hash_json_payload(payload: dict[str, Any]) -> str:
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def _build_run_id() -> str:
    now = datetime.now(timezone.utc).replace(microsecond=0)
    return now.strftime("%Y%m%dT%H%M%SZ")


if __name__ == "__main__":
    raise SystemExit(main())
