"""Configuration loading from FLEET_INSPECTOR_* environment variables."""

import os
from dataclasses import dataclass
from typing import Optional

ENV_PREFIX = "FLEET_INSPECTOR_"

TRANSPORTS = ("stdio", "streamable-http", "sse")
LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class InspectorConfig:
    log_level: str = "info"
    transport: str = "streamable-http"
    host: str = "0.0.0.0"
    port: int = 9092
    insecure: bool = False
    request_timeout: float = 30.0
    pod_log_tail_lines: int = 50
    event_limit: int = 15
    default_namespace: str = "fleet-default"
    rancher_url: str = ""
    rancher_token: str = ""


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"{ENV_PREFIX}{key}", default)


def _env_bool(key: str, default: bool = False) -> bool:
    val = _env(key, str(default).lower())
    return val.lower() in ("true", "1", "yes")


def _env_int(key: str, default: int, min_val: Optional[int] = None, max_val: Optional[int] = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _env_float(key: str, default: float) -> float:
    val = float(_env(key, str(default)))
    if val <= 0:
        raise ValueError(f"{ENV_PREFIX}{key} must be positive, got {val}")
    return val


def _validate_choice(key: str, value: str, choices) -> str:
    if value.lower() not in choices:
        raise ValueError(f"Invalid {ENV_PREFIX}{key}: {value}. Must be one of {choices}")
    return value.lower()


def load_config() -> InspectorConfig:
    return InspectorConfig(
        log_level=_validate_choice("LOG_LEVEL", _env("LOG_LEVEL", "info"), LOG_LEVELS),
        transport=_validate_choice("TRANSPORT", _env("TRANSPORT", "streamable-http"), TRANSPORTS),
        host=_env("HOST", "0.0.0.0"),
        port=_env_int("PORT", 9092, min_val=1024, max_val=65535),
        insecure=_env_bool("INSECURE", False),
        request_timeout=_env_float("REQUEST_TIMEOUT", 30.0),
        pod_log_tail_lines=_env_int("POD_LOG_TAIL_LINES", 50, min_val=1, max_val=1000),
        event_limit=_env_int("EVENT_LIMIT", 15, min_val=1, max_val=500),
        default_namespace=_env("DEFAULT_NAMESPACE", "fleet-default"),
        rancher_url=_env("RANCHER_URL", ""),
        rancher_token=_env("RANCHER_TOKEN", ""),
    )
