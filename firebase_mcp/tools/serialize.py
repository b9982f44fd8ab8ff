"""JSON-friendly conversion of backend values."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def to_iso(value: datetime) -> str:
    """ISO-8601 UTC string with millisecond precision and a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def ms_to_iso(millis: int | float | None) -> str | None:
    """Epoch milliseconds (as the Auth API reports them) to ISO-8601."""
    if millis is None:
        return None
    return to_iso(datetime.fromtimestamp(millis / 1000, tz=timezone.utc))


def convert_timestamps(data: Any) -> Any:
    """Rewrite Firestore timestamps (datetime subclasses) as ISO strings."""
    if isinstance(data, datetime):
        return to_iso(data)
    if isinstance(data, dict):
        return {key: convert_timestamps(value) for key, value in data.items()}
    if isinstance(data, list):
        return [convert_timestamps(item) for item in data]
    return data
