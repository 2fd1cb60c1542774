"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def to_ms(seconds: float) -> int:
    return int(seconds * 1000)


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp used as ``updated_at`` on vector records."""
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds")
