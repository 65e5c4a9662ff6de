"""Shared utility functions used across DARE modules."""
from __future__ import annotations

import json
import re
from datetime import UTC, date, datetime
from typing import Any

_MISSING = object()
_DELIMITERS = re.compile(r"\r?\n|;")


def json_parse(value: str | None, default: Any = _MISSING) -> Any:
    """Safely parse a JSON string, returning *default* on failure.

    If no default is given, returns ``{}`` on parse error.
    """
    try:
        return json.loads(value or "")
    except (json.JSONDecodeError, TypeError):
        return {} if default is _MISSING else default


def normalize_string_list(value: Any) -> list[str]:
    """Coerce the historical shapes of a multi-value text field to a list of strings.

    Accepts a list, a JSON-encoded list or string, a newline/semicolon
    delimited string, or a single plain string. Blank entries are dropped and
    order is preserved.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return []
        parsed = json_parse(stripped, None)
        if isinstance(parsed, list):
            items = parsed
        elif isinstance(parsed, str):
            items = _DELIMITERS.split(parsed)
        else:
            items = _DELIMITERS.split(stripped)
    else:
        items = [value]
    return [str(item).strip() for item in items if item is not None and str(item).strip()]


def dump_list(value: Any) -> str:
    """Canonical write format for multi-value text fields: a JSON array."""
    return json.dumps(normalize_string_list(value))


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def period_key(tracking_period: str, on: date) -> str:
    """Calendar bucket a tracking date falls into for the given period type."""
    if tracking_period == "weekly":
        year, week, _ = on.isocalendar()
        return f"{year}-W{week:02d}"
    if tracking_period == "monthly":
        return f"{on.year}-{on.month:02d}"
    if tracking_period == "quarterly":
        return f"{on.year}-Q{(on.month - 1) // 3 + 1}"
    if tracking_period == "semi_annual":
        return f"{on.year}-H{1 if on.month <= 6 else 2}"
    return str(on.year)
