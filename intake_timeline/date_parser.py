from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Tuple

# Heuristic anchors for approximate dates. They only need to order
# sensibly; display always keeps the user's original wording.
SEASON_ANCHORS: Tuple[Tuple[Tuple[str, ...], int, int], ...] = (
    (("spring",), 3, 15),
    (("summer",), 6, 15),
    (("fall", "autumn"), 9, 15),
    (("winter",), 12, 15),
)
MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
HOLIDAY_ANCHORS: Tuple[Tuple[str, int, int], ...] = (
    ("christmas", 12, 25),
    ("new year", 1, 1),
    ("thanksgiving", 11, 25),
    ("halloween", 10, 31),
)
EARLY_WORDS = ("early", "beginning")
LATE_WORDS = ("late", "end")
MIDDLE_WORDS = ("mid", "middle")

EARLY_MONTH_DAY = 5
MID_MONTH_DAY = 15
LATE_MONTH_DAY = 25
DEFAULT_MONTH, DEFAULT_DAY = 6, 15

EXACT_DATE_PATTERN = re.compile(r"^\s*(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})(?:[T ][0-9:.+\-Z]*)?\s*$")
YEAR_PATTERN = re.compile(r"\b(?:19|20)\d{2}\b")


def _exact_date(text: str) -> Optional[date]:
    match = EXACT_DATE_PATTERN.match(text)
    if not match:
        return None
    try:
        return date(int(match.group("year")), int(match.group("month")), int(match.group("day")))
    except ValueError:
        return None


def is_exact_date(text: Optional[str]) -> bool:
    """True when ``text`` is a ``YYYY-MM-DD`` string naming a real calendar day."""
    if not text or "-" not in text:
        return False
    return _exact_date(text) is not None


def extract_year(text: str, fallback: int) -> int:
    match = YEAR_PATTERN.search(text)
    return int(match.group()) if match else fallback


def _month_day(lowered: str) -> Optional[Tuple[int, int]]:
    for month_index, name in enumerate(MONTH_NAMES, start=1):
        if name in lowered or name[:3] in lowered:
            if any(word in lowered for word in EARLY_WORDS):
                return month_index, EARLY_MONTH_DAY
            if any(word in lowered for word in LATE_WORDS):
                return month_index, LATE_MONTH_DAY
            return month_index, MID_MONTH_DAY
    return None


def _heuristic_month_day(lowered: str) -> Tuple[int, int]:
    for words, month, day in SEASON_ANCHORS:
        if any(word in lowered for word in words):
            return month, day

    month_day = _month_day(lowered)
    if month_day is not None:
        return month_day

    for keyword, month, day in HOLIDAY_ANCHORS:
        if keyword in lowered:
            return month, day

    if any(word in lowered for word in EARLY_WORDS):
        return 1, 15
    if any(word in lowered for word in LATE_WORDS):
        return 12, 15
    if any(word in lowered for word in MIDDLE_WORDS):
        return 6, 15

    return DEFAULT_MONTH, DEFAULT_DAY


def parse_approximate_date(text: Optional[str], reference_date: Optional[date] = None) -> datetime:
    """Turn an exact or approximate date phrase into a sortable instant.

    Exact ``YYYY-MM-DD`` input is returned as that calendar day. Anything
    else goes through keyword heuristics, first match wins:

    1. seasons (spring, summer, fall/autumn, winter) -> the 15th of the
       season's first month
    2. month names or three letter abbreviations, shifted by
       early/beginning (5th) or late/end (25th), otherwise the 15th
    3. holidays (christmas, new year, thanksgiving, halloween)
    4. bare early/beginning, end/late, middle/mid of the year
    5. mid-June

    The year is the first 19xx/20xx token, else the year of
    ``reference_date`` (today when omitted). The function never raises.
    The result is a naive local midnight built from calendar parts so the
    day never shifts with the host timezone.
    """

    raw = text or ""
    exact = _exact_date(raw) if "-" in raw else None
    if exact is not None:
        return datetime(exact.year, exact.month, exact.day)

    reference = reference_date or date.today()
    lowered = raw.lower()
    year = extract_year(raw, reference.year)
    month, day = _heuristic_month_day(lowered)
    return datetime(year, month, day)


def format_event_date(text: Optional[str]) -> str:
    """Display form of a stored date: exact dates as MM/DD/YYYY, anything else verbatim."""
    raw = text or ""
    if "-" in raw:
        exact = _exact_date(raw)
        if exact is not None:
            return exact.strftime("%m/%d/%Y")
    return raw


__all__ = [
    "extract_year",
    "format_event_date",
    "is_exact_date",
    "parse_approximate_date",
]
