"""Result records shared by the node health checker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

_ID_KEYS = ("id", "name")
_ADDRESS_KEYS = ("address", "url")


@dataclass(frozen=True)
class Node:
    """A candidate endpoint. Metadata is carried through untouched."""

    id: str
    address: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Node":
        if not isinstance(payload, dict):
            raise ValueError("Each node entry must be an object")

        node_id = _first_present(payload, _ID_KEYS)
        address = _first_present(payload, _ADDRESS_KEYS)
        if node_id is None or address is None:
            raise ValueError("Each node must include 'id' and 'address'")

        used = {_matching_key(payload, _ID_KEYS), _matching_key(payload, _ADDRESS_KEYS)}
        metadata = {key: value for key, value in payload.items() if key not in used}
        return cls(id=str(node_id), address=str(address), metadata=metadata)

    def as_dict(self) -> Dict[str, Any]:
        payload = dict(self.metadata)
        payload["id"] = self.id
        payload["address"] = self.address
        return payload


def _matching_key(payload: Dict[str, Any], keys: tuple) -> Optional[str]:
    for key in keys:
        if payload.get(key) not in (None, ""):
            return key
    return None


def _first_present(payload: Dict[str, Any], keys: tuple) -> Optional[Any]:
    key = _matching_key(payload, keys)
    return payload[key] if key is not None else None


def _rounded(value: Optional[float]) -> Optional[float]:
    return round(value, 2) if value is not None else None


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of one bounded-time connectivity attempt."""

    healthy: bool
    latency_ms: Optional[float]
    timestamp_ms: int
    status_code: Optional[int] = None
    error_message: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "latency_ms": self.latency_ms,
            "timestamp_ms": self.timestamp_ms,
            "status_code": self.status_code,
            "error": self.error_message,
        }


@dataclass(frozen=True)
class StabilityResult:
    """Summary of a node's repeated probes.

    ``reason`` is only set for unstable nodes and ``average_latency_ms`` only
    for stable ones. ``cancelled`` marks an evaluation stopped before it could
    reach a verdict.
    """

    stable: bool
    attempts_made: int
    success_rate: float
    reason: Optional[str] = None
    average_latency_ms: Optional[float] = None
    cancelled: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "stable": self.stable,
            "attempts": self.attempts_made,
            "reason": self.reason,
            "avg_latency_ms": _rounded(self.average_latency_ms),
            "success_rate": self.success_rate,
        }


@dataclass(frozen=True)
class ScoredNode:
    """A node that passed stability and confirmation, with its score."""

    node: Node
    latency_ms: float
    average_latency_ms: float
    score: float

    @property
    def id(self) -> str:
        return self.node.id

    def as_dict(self) -> Dict[str, Any]:
        payload = self.node.as_dict()
        payload.update(
            {
                "latency_ms": self.latency_ms,
                "avg_latency_ms": round(self.average_latency_ms, 2),
                "score": self.score,
            }
        )
        return payload


@dataclass(frozen=True)
class RunStats:
    """Counters for a single batch run."""

    total_checked: int = 0
    succeeded: int = 0
    failed: int = 0
    health_rate_percent: float = 0.0

    @property
    def health_rate(self) -> str:
        return f"{self.health_rate_percent:.1f}%"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_checked": self.total_checked,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "health_rate": self.health_rate,
        }


@dataclass(frozen=True)
class CheckReport:
    healthy: List[ScoredNode]
    stats: RunStats

    def as_dict(self) -> Dict[str, Any]:
        return {
            "healthy": [scored.as_dict() for scored in self.healthy],
            "stats": self.stats.as_dict(),
        }
