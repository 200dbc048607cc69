from __future__ import annotations

from datetime import datetime, timezone


def utc() -> datetime:
    return datetime.now(timezone.utc)


def utc_iso() -> str:
    return utc().isoformat().replace("+00:00", "Z")


def seconds_to_datetime(seconds: int | float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def year_of(date_str: str) -> int | None:
    """Calendar year of an ISO-ish date string (``2023-03-31``, ``2023-03-31T00:00:00Z``)."""
    if not date_str:
        return None
    try:
        return datetime.fromisoformat(date_str.replace("Z", "+00:00")).year
    except ValueError:
        head = date_str[:4]
        return int(head) if head.isdigit() else None
