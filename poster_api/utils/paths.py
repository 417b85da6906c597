"""URL path helpers."""
from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote


def path_segment(value: Any) -> str:
    """Percent-encode ``value`` so it stays a single path segment."""

    return quote(str(value), safe="")


def join_path(prefix: str, *segments: Any) -> str:
    """Append encoded ``segments`` to ``prefix``."""

    encoded = [path_segment(segment) for segment in segments]
    return "/".join([prefix.rstrip("/"), *encoded])


def optional_segment(prefix: str, value: Optional[Any]) -> str:
    """Return ``prefix`` with ``value`` appended only when it is given."""

    if value is None or value == "":
        return prefix
    return join_path(prefix, value)
