"""Poster API client package exports commonly used helpers for convenience."""

from .cache import ReadThroughCache, TTLCache
from .clients import PosterClient
from .config import ClientConfig, ConfigurationError, get_config
from .logging_config import configure_logging
from .realtime import RealtimeChannel, RealtimeEvent, Subscription

__all__ = [
    "ClientConfig",
    "ConfigurationError",
    "PosterClient",
    "ReadThroughCache",
    "RealtimeChannel",
    "RealtimeEvent",
    "Subscription",
    "TTLCache",
    "configure_logging",
    "get_config",
]
