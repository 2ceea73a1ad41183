"""In-memory record of the last known health of each node."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from node_health.models import Node, ProbeResult, StabilityResult


@dataclass(frozen=True)
class RegistryEntry:
    node: Node
    health: ProbeResult
    stability: StabilityResult

    def as_dict(self) -> Dict[str, object]:
        payload: Dict[str, object] = self.node.as_dict()
        payload["health"] = self.health.as_dict()
        payload["stability"] = self.stability.as_dict()
        return payload


class HealthRegistry:
    """Last-known node state, kept for the lifetime of the process.

    Construct one at startup and hand it to every checker and query caller.
    Runs overwrite entries; nothing clears them.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._healthy: Dict[str, RegistryEntry] = {}
        self._unhealthy: Set[str] = set()

    def record_healthy(self, node: Node, health: ProbeResult, stability: StabilityResult) -> None:
        with self._lock:
            self._healthy[node.id] = RegistryEntry(node=node, health=health, stability=stability)
            self._unhealthy.discard(node.id)

    def record_unhealthy(self, node_id: str) -> None:
        with self._lock:
            self._healthy.pop(node_id, None)
            self._unhealthy.add(node_id)

    def get(self, node_id: str) -> Optional[RegistryEntry]:
        with self._lock:
            return self._healthy.get(node_id)

    def healthy_ids(self) -> List[str]:
        with self._lock:
            return list(self._healthy)

    def unhealthy_ids(self) -> Set[str]:
        with self._lock:
            return set(self._unhealthy)

    def best_known_node(self) -> Optional[Node]:
        """Healthy node with the lowest last-confirmed latency, if any."""

        best: Optional[RegistryEntry] = None
        with self._lock:
            for entry in self._healthy.values():
                latency = entry.health.latency_ms
                if latency is None:
                    continue
                if best is None or latency < best.health.latency_ms:
                    best = entry
        return best.node if best is not None else None

    def __contains__(self, node_id: object) -> bool:
        with self._lock:
            return node_id in self._healthy

    def __len__(self) -> int:
        with self._lock:
            return len(self._healthy)
