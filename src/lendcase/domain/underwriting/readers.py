from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping
from datetime import date, datetime, timezone
from typing import Any

_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_FIRST_NUMBER = re.compile(r"(\d+(?:\.\d+)?)")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_TRUE_STRINGS = {"1", "true", "yes", "y", "on"}
_FALSE_STRINGS = {"0", "false", "no", "n", "off"}

Aliases = str | Iterable[str]


def _names(aliases: Aliases) -> tuple[str, ...]:
    if isinstance(aliases, str):
        return (aliases,)
    return tuple(aliases)


def _raw(record: object, aliases: Aliases) -> list[object]:
    if not isinstance(record, Mapping):
        return []
    return [record[name] for name in _names(aliases) if name in record]


def to_number(value: object) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        normalized = _NON_NUMERIC.sub("", value.strip())
        if not normalized or normalized in {"-", ".", "-."}:
            return None
        try:
            parsed = float(normalized)
        except ValueError:
            return None
    else:
        return None
    return parsed if math.isfinite(parsed) else None


def read_number(record: object, aliases: Aliases) -> float | None:
    """First alias holding a parseable finite number, else None."""
    for value in _raw(record, aliases):
        parsed = to_number(value)
        if parsed is not None:
            return parsed
    return None


def read_positive_number(record: object, aliases: Aliases) -> float | None:
    for value in _raw(record, aliases):
        parsed = to_number(value)
        if parsed is not None and parsed > 0:
            return parsed
    return None


def read_int(record: object, aliases: Aliases) -> int | None:
    parsed = read_number(record, aliases)
    if parsed is None:
        return None
    return int(round(parsed))


def read_string(record: object, aliases: Aliases) -> str | None:
    for value in _raw(record, aliases):
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)) and math.isfinite(value):
            return str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def read_bool(record: object, aliases: Aliases) -> bool | None:
    for value in _raw(record, aliases):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
    return None


def read_mapping(record: object, aliases: Aliases) -> dict[str, Any] | None:
    for value in _raw(record, aliases):
        if isinstance(value, Mapping):
            return dict(value)
    return None


def read_list(record: object, aliases: Aliases) -> list[Any] | None:
    for value in _raw(record, aliases):
        if isinstance(value, (list, tuple)):
            return list(value)
    return None


def read_mapping_list(record: object, aliases: Aliases) -> list[dict[str, Any]]:
    items = read_list(record, aliases) or []
    return [dict(item) for item in items if isinstance(item, Mapping)]


def read_string_list(record: object, aliases: Aliases) -> list[str]:
    items = read_list(record, aliases) or []
    return [item.strip() for item in items if isinstance(item, str) and item.strip()]


def to_date(value: object) -> date | None:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    match = _ISO_DATE.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def read_date(record: object, aliases: Aliases) -> date | None:
    for value in _raw(record, aliases):
        parsed = to_date(value)
        if parsed is not None:
            return parsed
    return None


def read_timestamp(record: object, aliases: Aliases) -> int | None:
    """Epoch milliseconds from a numeric timestamp or an ISO string."""
    for value in _raw(record, aliases):
        if isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                parsed = None
            if parsed is not None:
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return int(parsed.timestamp() * 1000)
        number = to_number(value)
        if number is not None and number > 0:
            return int(number)
    return None


def read_years(record: object, aliases: Aliases) -> float | None:
    for value in _raw(record, aliases):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return to_number(value)
        if isinstance(value, str):
            match = _FIRST_NUMBER.search(value)
            if match:
                return to_number(match.group(1))
    return None


def read_percent_ratio(record: object, aliases: Aliases) -> float | None:
    """Ratio from "80%", 80 or 0.8 (all read as 0.8)."""
    parsed = read_number(record, aliases)
    if parsed is None:
        return None
    return parsed / 100 if parsed > 1 else parsed
