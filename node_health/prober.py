"""Single-attempt connectivity probe for one node."""

from __future__ import annotations

import http.client
import ipaddress
import logging
import socket
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Callable, Optional
from urllib.error import HTTPError, URLError
from urllib.parse import urlsplit
from urllib.request import Request, urlopen

from node_health.config import DEFAULT_CHECK_TIMEOUT_MS, DEFAULT_MAX_LATENCY_MS
from node_health.models import Node, ProbeResult

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (NodeHealthChecker)"
MIN_LATENCY_MS = 1.0
HTTP_SCHEMES = ("http", "https")
TCP_SCHEME = "tcp"
_NXDOMAIN_ERRNOS = {
    errno
    for errno in (getattr(socket, "EAI_NONAME", None), getattr(socket, "EAI_NODATA", None))
    if errno is not None
}


@dataclass(frozen=True)
class Target:
    scheme: str
    host: str
    port: int
    url: Optional[str] = None


def parse_target(address: str) -> Target:
    """Parse a node address into a probe target.

    ``http(s)://`` addresses are probed with a HEAD request. ``tcp://host:port``
    and bare ``host:port`` addresses are probed with a TCP connect.
    """

    text = (address or "").strip()
    if not text:
        raise ValueError("empty address")
    if "://" not in text:
        text = f"{TCP_SCHEME}://{text}"

    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in HTTP_SCHEMES and scheme != TCP_SCHEME:
        raise ValueError(f"unsupported scheme {scheme!r}")

    host = parts.hostname
    if not host:
        raise ValueError("missing host")

    port = parts.port
    if port is None:
        if scheme == TCP_SCHEME:
            raise ValueError("tcp address requires a port")
        port = 443 if scheme == "https" else 80

    return Target(scheme=scheme, host=host, port=port, url=text if scheme in HTTP_SCHEMES else None)


def rejection_reason(
    latency_ms: float,
    status_code: Optional[int],
    max_latency_ms: float = DEFAULT_MAX_LATENCY_MS,
) -> Optional[str]:
    if latency_ms > max_latency_ms:
        return f"latency {latency_ms:g} ms exceeds {max_latency_ms:g} ms"
    # Zero latency is a clock artifact, not a fast node.
    if latency_ms < MIN_LATENCY_MS:
        return f"latency {latency_ms:g} ms below {MIN_LATENCY_MS:g} ms"
    # An absent (or zero, opaque) status only gates on latency.
    if status_code and status_code >= 400:
        return f"HTTP status {status_code}"
    return None


def validate_response(
    latency_ms: float,
    status_code: Optional[int],
    max_latency_ms: float = DEFAULT_MAX_LATENCY_MS,
) -> bool:
    return rejection_reason(latency_ms, status_code, max_latency_ms) is None


def _now_ms() -> int:
    return int(time.time() * 1000)


def _failure(message: str) -> ProbeResult:
    return ProbeResult(
        healthy=False,
        latency_ms=None,
        timestamp_ms=_now_ms(),
        status_code=None,
        error_message=message,
    )


def _is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def _run_with_deadline(func: Callable[..., Any], timeout_s: float, *args: Any) -> Any:
    """Run ``func`` in a worker and give up on it after ``timeout_s``.

    Raises ``FuturesTimeout`` when the deadline passes; other exceptions from
    ``func`` propagate unchanged.
    """

    executor = ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(func, *args)
        return future.result(timeout=timeout_s)
    finally:
        # An abandoned call keeps its worker until its own socket timeout fires.
        executor.shutdown(wait=False)


def _resolve_host(host: str, timeout_s: float) -> Optional[str]:
    """Return a short DNS failure label, or None when the host resolves.

    Uses the system resolver, so hosts-file entries and search domains apply
    exactly as they will for the request itself.
    """

    if _is_ip_address(host):
        return None

    try:
        records = _run_with_deadline(
            socket.getaddrinfo,
            timeout_s,
            host,
            None,
            socket.AF_UNSPEC,
            socket.SOCK_STREAM,
        )
    except FuturesTimeout:
        return "timeout"
    except socket.gaierror as exc:
        if exc.errno in _NXDOMAIN_ERRNOS:
            return "nxdomain"
        if exc.errno == socket.EAI_AGAIN:
            return "timeout"
        return "error"
    except (OSError, ValueError):
        return "error"

    return None if records else "no_answer"


def _http_head(target: Target, timeout_s: float) -> Optional[int]:
    request = Request(
        target.url,
        method="HEAD",
        headers={"User-Agent": USER_AGENT, "Cache-Control": "no-cache"},
    )
    try:
        with urlopen(request, timeout=timeout_s) as response:  # nosec - operator-supplied node list
            status = getattr(response, "status", None)
    except HTTPError as exc:
        # An error status is still a response; classification decides.
        status = exc.code
        exc.close()
    return int(status) if status is not None else None


def _tcp_connect(target: Target, timeout_s: float) -> None:
    with socket.create_connection((target.host, target.port), timeout=timeout_s):
        return None


def _request(target: Target, timeout_s: float) -> Optional[int]:
    if target.scheme == TCP_SCHEME:
        _tcp_connect(target, timeout_s)
        return None
    return _http_head(target, timeout_s)


def probe(
    node: Node,
    timeout_ms: float = DEFAULT_CHECK_TIMEOUT_MS,
    max_latency_ms: float = DEFAULT_MAX_LATENCY_MS,
    resolve_dns: bool = True,
) -> ProbeResult:
    """Probe ``node`` once and classify the outcome.

    The request runs under a hard ``timeout_ms`` deadline. Transport failures
    and malformed addresses come back as unhealthy results with
    ``latency_ms=None``; this function does not raise for them.
    """

    try:
        target = parse_target(node.address)
    except ValueError as exc:
        return _failure(f"invalid address {node.address!r}: {exc}")

    timeout_s = timeout_ms / 1000.0
    timeout_message = f"timeout after {timeout_ms:g} ms"

    if resolve_dns:
        dns_error = _resolve_host(target.host, timeout_s)
        if dns_error is not None:
            logger.debug("node %s: DNS lookup for %s failed (%s)", node.id, target.host, dns_error)
            return _failure(f"DNS lookup failed: {dns_error}")

    started = perf_counter()
    try:
        status_code = _run_with_deadline(_request, timeout_s, target, timeout_s)
    except FuturesTimeout:
        return _failure(timeout_message)
    except socket.timeout:
        return _failure(timeout_message)
    except URLError as exc:
        if isinstance(exc.reason, socket.timeout):
            return _failure(timeout_message)
        return _failure(f"connection failed: {exc.reason}")
    except (OSError, ValueError, http.client.HTTPException) as exc:
        return _failure(f"connection failed: {exc}")

    elapsed_ms = (perf_counter() - started) * 1000
    if elapsed_ms > timeout_ms:
        return _failure(timeout_message)

    # Classify on the raw measurement; rounding is for the stored value only.
    reason = rejection_reason(elapsed_ms, status_code, max_latency_ms)
    if reason is not None:
        logger.debug("node %s: response rejected (%s)", node.id, reason)

    return ProbeResult(
        healthy=reason is None,
        latency_ms=round(elapsed_ms, 2),
        timestamp_ms=_now_ms(),
        status_code=status_code,
        error_message=reason,
    )
