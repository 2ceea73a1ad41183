"""All-or-nothing stability test built on repeated probes."""

from __future__ import annotations

import logging
import threading
import time as time_module
from typing import List, Optional

from node_health.config import HealthConfig
from node_health.models import Node, ProbeResult, StabilityResult
from node_health.prober import probe

logger = logging.getLogger(__name__)

GENERIC_FAILURE_REASON = "connection failed"
CANCELLED_REASON = "cancelled"


def _wait(delay_ms: float, cancel_event: Optional[threading.Event]) -> bool:
    """Sleep between attempts. Returns False if cancelled while waiting."""

    delay_s = delay_ms / 1000.0
    if cancel_event is None:
        if delay_s > 0:
            time_module.sleep(delay_s)
        return True
    return not cancel_event.wait(delay_s)


def _unstable(
    attempts_made: int,
    successes: int,
    reason: str,
    cancelled: bool = False,
) -> StabilityResult:
    return StabilityResult(
        stable=False,
        attempts_made=attempts_made,
        success_rate=round(successes / attempts_made, 4) if attempts_made else 0.0,
        reason=reason,
        cancelled=cancelled,
    )


def evaluate(
    node: Node,
    config: Optional[HealthConfig] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
) -> StabilityResult:
    """Probe ``node`` up to ``required_attempts`` times, stopping at the first failure.

    A node is stable only if every attempt is healthy. Attempts run one after
    another with ``inter_attempt_delay_ms`` between them.
    """

    config = config or HealthConfig()
    results: List[ProbeResult] = []

    for attempt in range(1, config.required_attempts + 1):
        result = probe(
            node,
            timeout_ms=config.check_timeout_ms,
            max_latency_ms=config.max_latency_ms,
            resolve_dns=config.resolve_dns,
        )
        logger.debug(
            "node %s attempt %d/%d: healthy=%s latency_ms=%s",
            node.id,
            attempt,
            config.required_attempts,
            result.healthy,
            result.latency_ms,
        )

        if not result.healthy:
            return _unstable(attempt, len(results), result.error_message or GENERIC_FAILURE_REASON)
        results.append(result)

        if attempt < config.required_attempts:
            if not _wait(config.inter_attempt_delay_ms, cancel_event):
                return _unstable(attempt, len(results), CANCELLED_REASON, cancelled=True)

    average = sum(r.latency_ms for r in results) / len(results)
    return StabilityResult(
        stable=True,
        attempts_made=config.required_attempts,
        success_rate=1.0,
        average_latency_ms=average,
    )
