#!/usr/bin/env python3
"""Check a node list and print the ranked healthy nodes as JSON."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from node_health.checker import HealthChecker
from node_health.config import load_config
from node_health.targets import load_nodes

LOG_FILE = REPO_ROOT / "logs" / "node_health.log"
DEFAULT_TARGETS = REPO_ROOT / "targets.json"


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe nodes and rank the healthy ones")
    parser.add_argument("--targets", default=str(DEFAULT_TARGETS), help="JSON file with the node list")
    parser.add_argument("--config", help="Optional JSON file with health check settings")
    parser.add_argument("--workers", type=int, default=1, help="Nodes checked in parallel (default 1)")
    parser.add_argument("--log-file", default=str(LOG_FILE), help="Rotating log file path")
    return parser.parse_args(argv)


def _logger(log_file: Path) -> logging.Logger:
    # Handlers go on the package logger so library modules inherit them.
    logger = logging.getLogger("node_health")
    if logger.handlers:
        return logger

    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.setLevel(logging.INFO)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")

    file_handler = TimedRotatingFileHandler(
        log_file,
        when="midnight",
        interval=1,
        backupCount=14,
        encoding="utf-8",
        utc=True,
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # stdout carries the JSON result.
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    return logger


def run(targets_path: Path, config_path: Optional[Path], workers: int) -> Dict[str, Any]:
    config = load_config(config_path)
    nodes = load_nodes(targets_path)

    checker = HealthChecker(config)
    report = checker.check_all(nodes, max_workers=workers)
    best = checker.best_node()

    payload = report.as_dict()
    payload["best_node"] = best.as_dict() if best is not None else None
    payload["config"] = config.as_dict()
    return payload


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logger = _logger(Path(args.log_file))

    try:
        payload = run(
            Path(args.targets),
            Path(args.config) if args.config else None,
            args.workers,
        )
    except Exception as exc:  # noqa: BLE001
        logger.exception("health check failed: %s", exc)
        return 1

    print(json.dumps(payload, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
