"""Shared timestamp normalization helpers.

Session metadata stores epoch milliseconds while event logs carry ISO-8601
strings (and occasionally epoch numbers). Everything exposed to observers is
normalized here: epoch ms for ordering fields, ISO strings for log-derived
timestamps.
"""
from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Anything below this is treated as epoch seconds rather than milliseconds.
_EPOCH_MS_THRESHOLD = 10_000_000_000


def now_ms() -> int:
    return int(time.time() * 1000)


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _parse_datetime_token(token: str) -> datetime | None:
    cleaned = token.strip()
    if not cleaned:
        return None
    try:
        return datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in ("%Y/%m/%d %H:%M:%S", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(cleaned, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _epoch_number_to_ms(value: float) -> int:
    if not math.isfinite(value) or value <= 0:
        return 0
    if value < _EPOCH_MS_THRESHOLD:
        return int(value * 1000)
    return int(value)


def to_epoch_ms(value: Any) -> int:
    """Convert epoch seconds/ms, numeric strings or ISO strings to epoch ms.

    Unknown or empty input yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return _epoch_number_to_ms(float(value))
    if isinstance(value, datetime):
        dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    if isinstance(value, str):
        token = value.strip()
        if not token:
            return 0
        try:
            return _epoch_number_to_ms(float(token))
        except ValueError:
            pass
        parsed = _parse_datetime_token(token)
        if parsed is None:
            return 0
        dt = parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
        return int(dt.timestamp() * 1000)
    return 0


def epoch_ms_to_iso(value: int) -> str:
    if not value:
        return ""
    return _format_datetime_utc(datetime.fromtimestamp(value / 1000, timezone.utc))


def normalize_timestamp(value: Any) -> str | None:
    """Normalize a log timestamp to an ISO-8601 UTC string (None if unknown)."""
    try:
        epoch = to_epoch_ms(value)
        if not epoch:
            return None
        return epoch_ms_to_iso(epoch)
    except (ValueError, OverflowError, OSError):
        return None


def file_mtime_ms(path: Path | None) -> int | None:
    """Return the file's modification time in epoch ms, or None if missing."""
    if path is None:
        return None
    try:
        return int(path.stat().st_mtime * 1000)
    except OSError:
        return None
