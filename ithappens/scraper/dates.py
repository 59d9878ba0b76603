"""Date parsing for story timestamps.

Newer stories carry an ISO-8601 ``datetime`` attribute; older ones only have a
human-readable Russian date such as ``15 января 2022, 10:30`` which is local
Moscow time.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from ithappens.errors import DateParseError

MOSCOW = ZoneInfo("Europe/Moscow")

_DATE_RE = re.compile(r"(\d+) ([а-я]+) (\d+), (\d+):(\d+)")

# Genitive month names, matched on their first three letters.
_MONTHS = {
    "янв": 1,
    "фев": 2,
    "мар": 3,
    "апр": 4,
    "мая": 5,
    "июн": 6,
    "июл": 7,
    "авг": 8,
    "сен": 9,
    "окт": 10,
    "ноя": 11,
    "дек": 12,
}


def parse_russian_date(text: str) -> int:
    """Convert ``"<day> <month> <year>, <hh>:<mm>"`` (Moscow time) to epoch seconds.

    Raises:
        DateParseError: If no date is found in *text*, the month is not in the
            table, or the fields do not form a valid calendar date.
    """
    match = _DATE_RE.search(text)
    if match is None:
        raise DateParseError(f"Unrecognised date string: {text!r}")

    day, month_name, year, hour, minute = match.groups()
    month = _MONTHS.get(month_name[:3])
    if month is None:
        raise DateParseError(f"Unknown month {month_name!r} in {text!r}")

    try:
        local = datetime(
            int(year), month, int(day), int(hour), int(minute), tzinfo=MOSCOW
        )
    except ValueError as exc:
        raise DateParseError(f"Invalid date {text!r}: {exc}") from exc
    return int(local.timestamp())


def parse_iso_instant(value: str) -> int:
    """Convert an ISO-8601 instant to epoch seconds.

    A trailing ``Z`` is accepted; values without an offset are taken as UTC.
    """
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError as exc:
        raise DateParseError(f"Invalid ISO-8601 instant {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())
