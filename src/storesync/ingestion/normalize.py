"""Normalization helpers.

Centralizes defensive parsing of loosely typed backend values.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 100_000_000_000


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    # NaN and +/-inf (JSON ``1e999`` decodes to inf).
    if not math.isfinite(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def drop_none(values: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values so the next alias in a precedence list is used.

    Nested mappings are cleaned too, which keeps nested-metadata fallbacks
    (``user_metadata.name`` and friends) consistent with top-level keys.
    """

    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, Mapping):
            value = drop_none(value)
        cleaned[key] = value
    return cleaned


def parse_timestamp(value: Any) -> datetime | None:
    """Convert a backend timestamp to an aware UTC datetime.

    Accepts ISO-8601 strings (``Z`` suffix included), epoch seconds or
    milliseconds, Firestore-style ``{"seconds": ..., "nanoseconds": ...}``
    mappings and ``datetime`` objects. Anything else yields ``None``.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, Mapping):
        seconds = safe_float(value.get("seconds", value.get("_seconds")))
        if seconds is None:
            return None
        nanos = safe_float(value.get("nanoseconds", value.get("_nanoseconds"))) or 0.0
        return datetime.fromtimestamp(seconds + nanos / 1e9, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        number = safe_float(text)
        if number is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
        value = number
    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


def is_truthy_flag(value: Any) -> bool:
    """Interpret flags that may arrive as booleans, timestamps or ``"true"``."""

    if isinstance(value, str):
        return value.strip().lower() not in {"", "0", "false", "no", "off"}
    return bool(value)
