from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_URL = "http://localhost:5001/api"
DEFAULT_SOCKET_URL = "ws://localhost:5001/ws"


@dataclass(frozen=True)
class SyncConfig:
    api_url: str = DEFAULT_API_URL
    socket_url: str = DEFAULT_SOCKET_URL
    request_timeout_s: float = 10.0
    heartbeat_s: float = 20.0


def _parse_url(name: str, default: str) -> str:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().rstrip("/")


def _parse_positive_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        parsed = float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive")
    return parsed


def load_config_from_env() -> SyncConfig:
    return SyncConfig(
        api_url=_parse_url("CHAT_API_URL", DEFAULT_API_URL),
        socket_url=_parse_url("CHAT_SOCKET_URL", DEFAULT_SOCKET_URL),
        request_timeout_s=_parse_positive_float("CHAT_REQUEST_TIMEOUT_S", 10.0),
        heartbeat_s=_parse_positive_float("CHAT_HEARTBEAT_S", 20.0),
    )
