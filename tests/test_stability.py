from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from node_health import stability
from node_health.config import HealthConfig
from node_health.models import Node, ProbeResult

NODE = Node(id="mirror-1", address="https://mirror.example.net")


def _ok(latency_ms: float) -> ProbeResult:
    return ProbeResult(healthy=True, latency_ms=latency_ms, timestamp_ms=0, status_code=200)


def _bad(message=None) -> ProbeResult:
    return ProbeResult(healthy=False, latency_ms=None, timestamp_ms=0, error_message=message)


def _script_probes(monkeypatch, results):
    calls = []
    queue = iter(results)

    def _fake_probe(node, **kwargs):
        calls.append((node.id, kwargs))
        return next(queue)

    monkeypatch.setattr(stability, "probe", _fake_probe)
    return calls


def _record_sleeps(monkeypatch):
    sleeps = []
    monkeypatch.setattr(stability.time_module, "sleep", sleeps.append)
    return sleeps


def test_stops_at_first_failure(monkeypatch) -> None:
    calls = _script_probes(monkeypatch, [_ok(40), _ok(45), _bad("timeout after 5000 ms"), _ok(40)])
    _record_sleeps(monkeypatch)

    result = stability.evaluate(NODE, HealthConfig(required_attempts=4))

    assert result.stable is False
    assert result.attempts_made == 3
    assert result.reason == "timeout after 5000 ms"
    assert result.average_latency_ms is None
    assert len(calls) == 3


def test_all_attempts_healthy_averages_latency(monkeypatch) -> None:
    _script_probes(monkeypatch, [_ok(100), _ok(110), _ok(90)])
    sleeps = _record_sleeps(monkeypatch)

    result = stability.evaluate(NODE, HealthConfig(required_attempts=3))

    assert result.stable is True
    assert result.attempts_made == 3
    assert result.average_latency_ms == pytest.approx(100)
    assert result.success_rate == 1.0
    assert result.reason is None
    assert sleeps == [0.3, 0.3]


def test_failure_without_message_gets_generic_reason(monkeypatch) -> None:
    _script_probes(monkeypatch, [_bad()])
    sleeps = _record_sleeps(monkeypatch)

    result = stability.evaluate(NODE)

    assert result.stable is False
    assert result.attempts_made == 1
    assert result.reason == stability.GENERIC_FAILURE_REASON
    assert sleeps == []


def test_probe_receives_config_values(monkeypatch) -> None:
    calls = _script_probes(monkeypatch, [_ok(20)])
    _record_sleeps(monkeypatch)

    config = HealthConfig(
        required_attempts=1,
        check_timeout_ms=1500,
        max_latency_ms=80,
        resolve_dns=False,
    )
    result = stability.evaluate(NODE, config)

    assert result.stable is True
    assert calls == [
        ("mirror-1", {"timeout_ms": 1500, "max_latency_ms": 80, "resolve_dns": False})
    ]


def test_zero_delay_does_not_sleep(monkeypatch) -> None:
    _script_probes(monkeypatch, [_ok(20), _ok(25)])
    sleeps = _record_sleeps(monkeypatch)

    result = stability.evaluate(NODE, HealthConfig(required_attempts=2, inter_attempt_delay_ms=0))

    assert result.stable is True
    assert sleeps == []


def test_cancel_during_delay_stops_evaluation(monkeypatch) -> None:
    calls = _script_probes(monkeypatch, [_ok(20), _ok(25), _ok(30)])
    cancel_event = threading.Event()
    cancel_event.set()

    result = stability.evaluate(NODE, HealthConfig(), cancel_event=cancel_event)

    assert result.stable is False
    assert result.attempts_made == 1
    assert result.reason == stability.CANCELLED_REASON
    assert result.cancelled is True
    assert len(calls) == 1


def test_average_keeps_full_precision(monkeypatch) -> None:
    _script_probes(monkeypatch, [_ok(50.01), _ok(50.01), _ok(50.02)])
    _record_sleeps(monkeypatch)

    result = stability.evaluate(NODE)

    assert result.average_latency_ms == pytest.approx((50.01 + 50.01 + 50.02) / 3, abs=1e-12)
    assert result.as_dict()["avg_latency_ms"] == 50.01


def test_ordinary_failure_is_not_marked_cancelled(monkeypatch) -> None:
    _script_probes(monkeypatch, [_bad("refused")])
    _record_sleeps(monkeypatch)

    assert stability.evaluate(NODE).cancelled is False
