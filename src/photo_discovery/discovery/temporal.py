"""Date parsing helpers for temporal query filters."""

import calendar
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}
MONTH_ABBREVIATIONS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8,
    "sep": 9, "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}
MONTH_PATTERN = "january|february|march|april|may|june|july|august|september|october|november|december"

SEASONS = ("spring", "summer", "fall", "autumn", "winter")
PERIOD_UNITS = ("year", "month", "week") + SEASONS

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%m/%d/%y", "%m-%d-%Y")

# Anything shaped like a numeric date; checked against DATE_FORMATS
DATE_LIKE_RE = re.compile(r"\b\d{1,4}[/-]\d{1,2}[/-]\d{1,4}\b")

_PAST_RE = re.compile(r"^past_(\d+)_(day|week|month|year)s?$")


def month_number(text: str) -> Optional[int]:
    """Month number for a month name or abbreviation."""
    lowered = text.strip().lower().rstrip(".")
    return MONTHS.get(lowered) or MONTH_ABBREVIATIONS.get(lowered)


def month_name(number: int) -> str:
    return calendar.month_name[number]


def parse_date_token(token: str) -> Optional[date]:
    """Parse a numeric date token, or return None if it is not a real date."""
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(token, fmt).date()
        except ValueError:
            continue
    return None


def find_malformed_dates(text: str) -> List[str]:
    """Date-shaped tokens in text that do not name a real calendar date."""
    return [m.group(0) for m in DATE_LIKE_RE.finditer(text) if parse_date_token(m.group(0)) is None]


def normalize_period(phrase: str) -> Optional[str]:
    """Turn a relative time phrase into a period key.

    "last summer" -> "last_summer", "past 3 weeks" -> "past_3_weeks",
    "yesterday" -> "yesterday".
    """
    words = phrase.lower().split()
    if len(words) == 1 and words[0] in ("today", "yesterday"):
        return words[0]
    if len(words) == 2 and words[0] in ("last", "this", "next") and words[1] in PERIOD_UNITS:
        unit = "fall" if words[1] == "autumn" else words[1]
        return f"{words[0]}_{unit}"
    if len(words) == 3 and words[0] in ("past", "last") and words[1].isdigit():
        unit = words[2].rstrip("s")
        if unit in ("day", "week", "month", "year"):
            return f"past_{int(words[1])}_{unit}s"
    return None


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def season_range(season: str, year: int) -> Tuple[date, date]:
    """Date range of a (northern hemisphere) season; winter starts in December of ``year``."""
    if season == "spring":
        return date(year, 3, 1), date(year, 5, 31)
    if season == "summer":
        return date(year, 6, 1), date(year, 8, 31)
    if season in ("fall", "autumn"):
        return date(year, 9, 1), date(year, 11, 30)
    if season == "winter":
        return date(year, 12, 1), last_day_of_month(year + 1, 2)
    raise ValueError(f"Unknown season: {season}")


def _shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def resolve_relative_period(period: str, today: date) -> Optional[Tuple[date, date]]:
    """Resolve a period key against ``today`` into an inclusive date range."""
    if period == "today":
        return today, today
    if period == "yesterday":
        day = today - timedelta(days=1)
        return day, day

    past = _PAST_RE.match(period)
    if past:
        count, unit = int(past.group(1)), past.group(2)
        days = {"day": 1, "week": 7, "month": 30, "year": 365}[unit] * count
        return today - timedelta(days=days), today

    if "_" not in period:
        return None
    direction, unit = period.split("_", 1)
    if direction not in ("last", "this", "next"):
        return None
    offset = {"last": -1, "this": 0, "next": 1}[direction]

    if unit == "year":
        year = today.year + offset
        return date(year, 1, 1), date(year, 12, 31)
    if unit == "month":
        year, month = _shift_month(today.year, today.month, offset)
        return date(year, month, 1), last_day_of_month(year, month)
    if unit == "week":
        monday = today - timedelta(days=today.weekday()) + timedelta(weeks=offset)
        return monday, monday + timedelta(days=6)
    if unit in SEASONS:
        if direction == "this":
            year = today.year - 1 if unit == "winter" and today.month <= 2 else today.year
            return season_range(unit, year)
        year = today.year
        if direction == "last":
            while season_range(unit, year)[1] >= today:
                year -= 1
        else:
            while season_range(unit, year)[0] <= today:
                year += 1
        return season_range(unit, year)
    return None


def months_between(start_month: int, end_month: int) -> List[int]:
    """Inclusive month numbers from start to end, wrapping past December."""
    months = [start_month]
    current = start_month
    while current != end_month:
        current = current % 12 + 1
        months.append(current)
    return months
