"""Engine configuration: JSON file defaults plus environment overrides."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

DEFAULT_MAX_LATENCY_MS = 150.0
DEFAULT_CHECK_TIMEOUT_MS = 5000.0
DEFAULT_REQUIRED_ATTEMPTS = 3
DEFAULT_INTER_ATTEMPT_DELAY_MS = 300.0

ENV_PREFIX = "NODE_HEALTH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class HealthConfig:
    max_latency_ms: float = DEFAULT_MAX_LATENCY_MS
    check_timeout_ms: float = DEFAULT_CHECK_TIMEOUT_MS
    required_attempts: int = DEFAULT_REQUIRED_ATTEMPTS
    inter_attempt_delay_ms: float = DEFAULT_INTER_ATTEMPT_DELAY_MS
    resolve_dns: bool = True

    def validate(self) -> "HealthConfig":
        if self.max_latency_ms <= 0:
            raise ValueError("max_latency_ms must be positive")
        if self.check_timeout_ms <= 0:
            raise ValueError("check_timeout_ms must be positive")
        if self.required_attempts < 1:
            raise ValueError("required_attempts must be at least 1")
        if self.inter_attempt_delay_ms < 0:
            raise ValueError("inter_attempt_delay_ms must not be negative")
        return self

    def as_dict(self) -> Dict[str, Any]:
        return {
            "max_latency_ms": self.max_latency_ms,
            "check_timeout_ms": self.check_timeout_ms,
            "required_attempts": self.required_attempts,
            "inter_attempt_delay_ms": self.inter_attempt_delay_ms,
            "resolve_dns": self.resolve_dns,
        }


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _from_payload(payload: Mapping[str, Any]) -> HealthConfig:
    try:
        return HealthConfig(
            max_latency_ms=float(payload.get("max_latency_ms", DEFAULT_MAX_LATENCY_MS)),
            check_timeout_ms=float(payload.get("check_timeout_ms", DEFAULT_CHECK_TIMEOUT_MS)),
            required_attempts=int(payload.get("required_attempts", DEFAULT_REQUIRED_ATTEMPTS)),
            inter_attempt_delay_ms=float(
                payload.get("inter_attempt_delay_ms", DEFAULT_INTER_ATTEMPT_DELAY_MS)
            ),
            resolve_dns=_parse_bool(payload.get("resolve_dns", True), "resolve_dns"),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid health check configuration: {exc}") from exc


def _env_overrides(config: HealthConfig, environ: Mapping[str, str]) -> HealthConfig:
    overrides: Dict[str, Any] = {}
    casts = {
        "max_latency_ms": float,
        "check_timeout_ms": float,
        "required_attempts": int,
        "inter_attempt_delay_ms": float,
    }
    for field_name, cast in casts.items():
        raw = environ.get(ENV_PREFIX + field_name.upper())
        if raw is None or raw == "":
            continue
        try:
            overrides[field_name] = cast(raw)
        except ValueError as exc:
            raise ValueError(f"{ENV_PREFIX}{field_name.upper()}: {exc}") from exc

    raw_dns = environ.get(ENV_PREFIX + "RESOLVE_DNS")
    if raw_dns:
        overrides["resolve_dns"] = _parse_bool(raw_dns, ENV_PREFIX + "RESOLVE_DNS")

    return replace(config, **overrides) if overrides else config


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> HealthConfig:
    """Build a validated config from an optional JSON file and the environment.

    A missing file is not an error; the defaults apply. Environment variables
    named ``NODE_HEALTH_<FIELD>`` win over the file.
    """

    payload: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if config_path.exists():
            loaded = json.loads(config_path.read_text(encoding="utf-8"))
            if not isinstance(loaded, dict):
                raise ValueError(f"{config_path} must contain a JSON object")
            payload = loaded

    config = _from_payload(payload)
    config = _env_overrides(config, os.environ if environ is None else environ)
    return config.validate()
