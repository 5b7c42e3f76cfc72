from datetime import datetime, timezone
from typing import Any


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a trailing Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def with_sync_markers(value: Any, source: str, synced_at: str) -> dict:
    """
    - Copy `value` and stamp it with where/when it was synced from.
    - Non-dict payloads are wrapped as {"value": ...} so the markers have a home.
    """
    body = dict(value) if isinstance(value, dict) else {"value": value}
    body["synced_from"] = source
    body["synced_at"] = synced_at
    return body


def sync_markers(value: Any) -> tuple[str | None, str | None]:
    if not isinstance(value, dict):
        return None, None
    src = value.get("synced_from")
    at = value.get("synced_at")
    return (
        src if isinstance(src, str) else None,
        at if isinstance(at, str) else None,
    )
