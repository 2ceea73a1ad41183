"""Node health checking: real-connection probes, stability tests and ranking."""

from node_health.checker import HealthChecker, check_all
from node_health.config import HealthConfig, load_config
from node_health.models import CheckReport, Node, ProbeResult, RunStats, ScoredNode, StabilityResult
from node_health.registry import HealthRegistry

__all__ = [
    "CheckReport",
    "HealthChecker",
    "HealthConfig",
    "HealthRegistry",
    "Node",
    "ProbeResult",
    "RunStats",
    "ScoredNode",
    "StabilityResult",
    "check_all",
    "load_config",
]
