"""Client configuration and environment loading utilities."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional


class ConfigurationError(ValueError):
    """Raised when the client configuration is incomplete or invalid."""


def _load_dotenv() -> None:
    env_path = Path(".env")
    if not env_path.exists():
        return
    for line in env_path.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _validate_non_empty(value: Optional[str], name: str) -> str:
    if not value:
        raise ConfigurationError(f"Missing required environment variable: {name}")
    return value


def _parse_bool(value: str) -> bool:
    return value.strip().lower() not in {"0", "false", "no", "off", ""}


def _parse_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc


def _derive_realtime_url(base_url: str) -> str:
    if base_url.startswith("https://"):
        return "wss://" + base_url[len("https://"):]
    if base_url.startswith("http://"):
        return "ws://" + base_url[len("http://"):]
    raise ConfigurationError(
        f"cannot derive a websocket URL from {base_url!r}; set realtime_url"
    )


@dataclass(frozen=True)
class ClientConfig:
    """Connection and caching options for a Poster API client.

    ``auth_token`` is only the initial token; rotate it on the client with
    ``PosterClient.set_auth_token``.
    """

    base_url: str
    auth_token: Optional[str] = field(default=None, repr=False)
    cache_enabled: bool = True
    default_ttl_seconds: float = 60.0
    timeout_seconds: Optional[float] = 30.0
    realtime_url: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.base_url or not self.base_url.strip():
            raise ConfigurationError("base_url is required")
        if self.default_ttl_seconds <= 0:
            raise ConfigurationError("default_ttl_seconds must be positive")
        object.__setattr__(self, "base_url", self.base_url.strip().rstrip("/"))
        if not self.realtime_url:
            object.__setattr__(self, "realtime_url", _derive_realtime_url(self.base_url))

    @classmethod
    def from_env(cls) -> "ClientConfig":
        _load_dotenv()
        base_url = _validate_non_empty(os.getenv("POSTER_BASE_URL"), "POSTER_BASE_URL")

        cache_enabled = _parse_bool(os.getenv("POSTER_CACHE_ENABLED", "true"))
        cache_ttl = _parse_float(
            os.getenv("POSTER_CACHE_TTL_SECONDS", "60"), "POSTER_CACHE_TTL_SECONDS"
        )
        timeout = _parse_float(os.getenv("POSTER_TIMEOUT_SECONDS", "30"), "POSTER_TIMEOUT_SECONDS")

        return cls(
            base_url=base_url,
            auth_token=os.getenv("POSTER_AUTH_TOKEN") or None,
            cache_enabled=cache_enabled,
            default_ttl_seconds=cache_ttl,
            timeout_seconds=timeout,
            realtime_url=os.getenv("POSTER_REALTIME_URL") or None,
        )


@lru_cache()
def get_config() -> ClientConfig:
    """Return cached client configuration from the environment."""

    return ClientConfig.from_env()
