"""Batch health check: stability test, confirmation probe, scoring and ranking."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Optional

from node_health.config import HealthConfig
from node_health.models import CheckReport, Node, ProbeResult, RunStats, ScoredNode, StabilityResult
from node_health.prober import probe
from node_health.registry import HealthRegistry
from node_health.scoring import score
from node_health.stability import evaluate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NodeOutcome:
    """Everything measured for one node during a run."""

    node: Node
    stability: StabilityResult
    confirmation: Optional[ProbeResult] = None

    @property
    def passed(self) -> bool:
        return (
            self.stability.stable
            and self.confirmation is not None
            and self.confirmation.healthy
        )

    @property
    def reason(self) -> Optional[str]:
        if not self.stability.stable:
            return self.stability.reason
        if self.confirmation is not None and not self.confirmation.healthy:
            return f"confirmation failed: {self.confirmation.error_message or 'connection failed'}"
        return None


def health_rate_percent(succeeded: int, total_checked: int) -> float:
    """Success share as a percentage, rounded half up to one decimal."""

    if total_checked == 0:
        return 0.0
    percent = Decimal(succeeded * 100) / Decimal(total_checked)
    return float(percent.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class HealthChecker:
    """Runs batch health checks and keeps a registry of the results.

    The registry is shared by reference, so several checkers (or a query-only
    caller) can use the same one.
    """

    def __init__(
        self,
        config: Optional[HealthConfig] = None,
        registry: Optional[HealthRegistry] = None,
    ) -> None:
        self.config = (config or HealthConfig()).validate()
        self.registry = registry if registry is not None else HealthRegistry()

    def evaluate_node(
        self,
        node: Node,
        cancel_event: Optional[threading.Event] = None,
    ) -> Optional[NodeOutcome]:
        """Stability test plus confirmation probe for one node.

        Returns None when ``cancel_event`` stops the node before a verdict;
        such a node is left out of the stats and the registry.
        """

        if cancel_event is not None and cancel_event.is_set():
            return None

        stability = evaluate(node, self.config, cancel_event=cancel_event)
        if stability.cancelled:
            return None
        if not stability.stable:
            return NodeOutcome(node=node, stability=stability)

        confirmation = probe(
            node,
            timeout_ms=self.config.check_timeout_ms,
            max_latency_ms=self.config.max_latency_ms,
            resolve_dns=self.config.resolve_dns,
        )
        return NodeOutcome(node=node, stability=stability, confirmation=confirmation)

    def _collect(
        self,
        nodes: List[Node],
        max_workers: int,
        cancel_event: Optional[threading.Event],
    ) -> List[NodeOutcome]:
        if max_workers <= 1 or len(nodes) <= 1:
            outcomes: List[NodeOutcome] = []
            for node in nodes:
                outcome = self.evaluate_node(node, cancel_event)
                if outcome is None:
                    break
                outcomes.append(outcome)
            return outcomes

        # Workers only measure; results are merged here in input order.
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(self.evaluate_node, node, cancel_event) for node in nodes]
            results = [future.result() for future in futures]
        return [outcome for outcome in results if outcome is not None]

    def check_all(
        self,
        nodes: Iterable[Node],
        *,
        max_workers: int = 1,
        cancel_event: Optional[threading.Event] = None,
    ) -> CheckReport:
        """Check every node and return the healthy ones ranked by score.

        Stats cover this call only. Ties in score keep their input order.
        """

        nodes = list(nodes)
        logger.info(
            "starting health check of %d nodes (max latency %g ms, %d attempts)",
            len(nodes),
            self.config.max_latency_ms,
            self.config.required_attempts,
        )

        outcomes = self._collect(nodes, max_workers, cancel_event)
        if len(outcomes) < len(nodes):
            logger.warning("health check cancelled; %d nodes not checked", len(nodes) - len(outcomes))

        healthy: List[ScoredNode] = []
        succeeded = 0
        failed = 0

        for outcome in outcomes:
            node = outcome.node
            if outcome.passed:
                confirmation = outcome.confirmation
                average = outcome.stability.average_latency_ms
                scored = ScoredNode(
                    node=node,
                    latency_ms=confirmation.latency_ms,
                    average_latency_ms=average,
                    score=score(confirmation.latency_ms, average),
                )
                healthy.append(scored)
                self.registry.record_healthy(node, confirmation, outcome.stability)
                succeeded += 1
                logger.info(
                    "node %s healthy: latency %.2f ms, avg %.2f ms, score %.2f",
                    node.id,
                    scored.latency_ms,
                    scored.average_latency_ms,
                    scored.score,
                )
            else:
                self.registry.record_unhealthy(node.id)
                failed += 1
                logger.info("node %s unhealthy: %s", node.id, outcome.reason)

        healthy.sort(key=lambda scored: scored.score, reverse=True)

        total_checked = succeeded + failed
        stats = RunStats(
            total_checked=total_checked,
            succeeded=succeeded,
            failed=failed,
            health_rate_percent=health_rate_percent(succeeded, total_checked),
        )
        logger.info(
            "health check finished: %d/%d healthy (%s)",
            stats.succeeded,
            stats.total_checked,
            stats.health_rate,
        )
        return CheckReport(healthy=healthy, stats=stats)

    def best_node(self) -> Optional[Node]:
        return self.registry.best_known_node()


def check_all(
    nodes: Iterable[Node],
    config: Optional[HealthConfig] = None,
    registry: Optional[HealthRegistry] = None,
    *,
    max_workers: int = 1,
) -> CheckReport:
    return HealthChecker(config, registry).check_all(nodes, max_workers=max_workers)
