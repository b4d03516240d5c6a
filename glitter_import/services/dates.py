from __future__ import annotations

import re
import warnings
from datetime import date

import pandas as pd

"""Timezone-safe, date-only normalization for CSV date cells.

``YYYY-MM-DD`` is taken literally (no timezone shift can move it to the
previous day). Anything else goes through ``pandas.to_datetime``; values that
carry an explicit UTC offset are converted to the configured timezone before
the date part is taken. Unparseable or implausible values yield None, never
an exception.
"""

__all__ = [
    "MIN_YEAR",
    "MAX_YEAR",
    "normalize_date",
]

MIN_YEAR = 1900
MAX_YEAR = 2100

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _plausible(value: date) -> str | None:
    if MIN_YEAR <= value.year <= MAX_YEAR:
        return value.isoformat()
    return None


def normalize_date(value: str | None, timezone: str = "UTC") -> str | None:
    """Return ``value`` as an ISO ``YYYY-MM-DD`` string, or None.

    Args:
        value: Raw cell text
        timezone: IANA zone used for values that include a time and offset

    Examples:
        >>> normalize_date("2024-03-05")
        '2024-03-05'
        >>> normalize_date("2024-03-05T01:30:00+00:00", timezone="America/New_York")
        '2024-03-04'
        >>> normalize_date("not a date") is None
        True
    """
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None

    if _ISO_DATE.match(text):
        try:
            return _plausible(date.fromisoformat(text))
        except ValueError:
            return None

    try:
        with warnings.catch_warnings():
            # dayfirst 推定などの UserWarning は無視
            warnings.simplefilter("ignore")
            parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None

    if parsed.tzinfo is not None:
        try:
            parsed = parsed.tz_convert(timezone)
        except (KeyError, ValueError):
            parsed = parsed.tz_convert("UTC")
    return _plausible(parsed.date())
