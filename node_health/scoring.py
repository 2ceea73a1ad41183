"""Score healthy nodes for ranking."""

from __future__ import annotations

LATENCY_CEILING_MS = 100.0
STABILITY_BONUS = 20.0
STABILITY_WINDOW_MS = 20.0


def score(current_latency_ms: float, average_latency_ms: float) -> float:
    """Lower latency scores higher; a confirmation close to the average earns a bonus.

    The result lies in ``[0, 120]``.
    """

    latency_component = max(0.0, LATENCY_CEILING_MS - current_latency_ms)
    drift = abs(current_latency_ms - average_latency_ms)
    bonus = STABILITY_BONUS if drift < STABILITY_WINDOW_MS else 0.0
    return latency_component + bonus
