"""Shared timestamp normalization helpers."""
from __future__ import annotations

import re
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path


def format_datetime_utc(value: datetime) -> str:
    """Render a datetime as fixed-width ISO 8601 UTC (``...Z``)."""
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_epoch_ms() -> int:
    return int(time.time() * 1000)


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_FRACTION_RE = re.compile(r"(\d{2}:\d{2}:\d{2})\.(\d+)")


def _normalize_fraction(match: re.Match) -> str:
    # fromisoformat on 3.10 only takes 3 or 6 fractional digits.
    digits = match.group(2)[:6].ljust(6, "0")
    return f"{match.group(1)}.{digits}"


def parse_iso_datetime(token: str) -> datetime | None:
    cleaned = (token or "").strip()
    if not cleaned:
        return None
    try:
        normalized = _FRACTION_RE.sub(_normalize_fraction, cleaned.replace("Z", "+00:00"), count=1)
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def iso_to_epoch_ms(value: str) -> int | None:
    parsed = parse_iso_datetime(value)
    if parsed is None:
        return None
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def file_modified_iso(path: Path) -> str:
    """Return the file's modification time as ISO 8601, or "" if unreadable."""
    try:
        stats = path.stat()
    except OSError:
        return ""
    return format_datetime_utc(datetime.fromtimestamp(float(stats.st_mtime), timezone.utc))
