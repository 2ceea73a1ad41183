from __future__ import annotations

import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from node_health import checker, stability
from node_health.models import ProbeResult
from scripts import run_health_check


def _ok(latency_ms: float) -> ProbeResult:
    return ProbeResult(healthy=True, latency_ms=latency_ms, timestamp_ms=0, status_code=200)


def test_main_prints_ranked_json(tmp_path, monkeypatch, capsys) -> None:
    targets = tmp_path / "targets.json"
    targets.write_text(
        json.dumps(
            [
                {"id": "slow", "address": "https://slow.example", "region": "us"},
                {"id": "fast", "address": "https://fast.example", "region": "eu"},
                {"id": "down", "address": "https://down.example"},
            ]
        ),
        encoding="utf-8",
    )
    latencies = {"slow": 90.0, "fast": 20.0}

    def _fake_probe(node, **kwargs):
        if node.id == "down":
            return ProbeResult(healthy=False, latency_ms=None, timestamp_ms=0, error_message="refused")
        return _ok(latencies[node.id])

    monkeypatch.setattr(stability, "probe", _fake_probe)
    monkeypatch.setattr(checker, "probe", _fake_probe)
    monkeypatch.setattr(stability.time_module, "sleep", lambda *_: None)
    monkeypatch.delenv("NODE_HEALTH_REQUIRED_ATTEMPTS", raising=False)

    exit_code = run_health_check.main(
        ["--targets", str(targets), "--log-file", str(tmp_path / "logs" / "run.log")]
    )

    captured = capsys.readouterr()
    assert exit_code == 0
    payload = json.loads(captured.out)
    assert [node["id"] for node in payload["healthy"]] == ["fast", "slow"]
    assert payload["healthy"][0]["region"] == "eu"
    assert payload["stats"] == {
        "total_checked": 3,
        "succeeded": 2,
        "failed": 1,
        "health_rate": "66.7%",
    }
    assert payload["best_node"]["id"] == "fast"


def test_main_missing_targets_returns_error(tmp_path, capsys) -> None:
    exit_code = run_health_check.main(
        ["--targets", str(tmp_path / "nope.json"), "--log-file", str(tmp_path / "run.log")]
    )

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
