"""Lenient conversion of form and spreadsheet values.

The onboarding form and the seed sheets send numbers as ``''``, ``"2 BHK"``,
``"₹25,000"`` or floats read by pandas; these helpers turn them into the
column types.
"""

import math
import re
from datetime import date, datetime
from typing import Annotated, Any

from pydantic import BeforeValidator

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")


def is_blank(value: Any) -> bool:
    """True for None, NaN and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def to_int(value: Any) -> int | None:
    """Parse the first number in a value, ignoring currency and separators.

    >>> to_int("2 BHK")
    2
    >>> to_int("₹25,000")
    25000
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)

    match = _NUMBER_RE.search(str(value).replace(",", ""))
    return int(float(match.group())) if match else None


def to_text(value: Any) -> str | None:
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def split_list(value: Any) -> list[str]:
    """Split a ``;``/``,``/``|`` separated cell into trimmed items."""
    if is_blank(value):
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = re.split(r"[;,|]", str(value))
    return [str(item).strip() for item in items if str(item).strip()]


def join_list(items: list[str]) -> str | None:
    return ";".join(items) if items else None


def to_date(value: Any) -> date | None:
    """Parse ISO dates and pandas timestamps; anything else is None."""
    if is_blank(value):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def to_seconds(value: Any) -> float | None:
    """Offset into a call as seconds; accepts ``12.5``, ``"12.5"`` and ``"00:01:03"``.

    >>> to_seconds("01:03")
    63.0
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    try:
        return float(text)
    except ValueError:
        pass
    parts = text.split(":")
    if len(parts) > 3:
        return None
    try:
        seconds = 0.0
        for part in parts:
            seconds = seconds * 60 + float(part)
    except ValueError:
        return None
    return seconds
    return None


# Request-model field types that accept the dashboard's loose values
LooseInt = Annotated[int | None, BeforeValidator(to_int)]
LooseText = Annotated[str | None, BeforeValidator(to_text)]
LooseDate = Annotated[date | None, BeforeValidator(to_date)]
