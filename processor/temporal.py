"""Date inference for free-form event time strings.

Every function in this module is pure: the reference "now" is always passed
in, and dates are civil dates in New York time.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union
from zoneinfo import ZoneInfo

NYC_TZ = ZoneInfo('America/New_York')

# Dates further than this in the past are read as next year's occurrence.
PAST_GRACE_DAYS = 30

MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
)

MONTHS = {
    'january': 1, 'february': 2, 'march': 3, 'april': 4, 'may': 5, 'june': 6,
    'july': 7, 'august': 8, 'september': 9, 'october': 10, 'november': 11, 'december': 12,
    'jan': 1, 'feb': 2, 'mar': 3, 'apr': 4, 'jun': 6, 'jul': 7, 'aug': 8,
    'sep': 9, 'sept': 9, 'oct': 10, 'nov': 11, 'dec': 12,
}

WEEKDAYS = {
    'monday': 0, 'mon': 0,
    'tuesday': 1, 'tues': 1, 'tue': 1,
    'wednesday': 2, 'wed': 2,
    'thursday': 3, 'thurs': 3, 'thur': 3, 'thu': 3,
    'friday': 4, 'fri': 4,
    'saturday': 5, 'sat': 5,
    'sunday': 6, 'sun': 6,
}

ONGOING_MARKERS = ('ongoing', 'permanent')


def _alternation(names) -> str:
    return '|'.join(sorted(names, key=len, reverse=True))


_MONTH_NAME_RE = re.compile(rf"\b(?:{_alternation(MONTHS)})\b", re.IGNORECASE)
_MONTH_DAY_RE = re.compile(
    rf"\b({_alternation(MONTHS)})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b",
    re.IGNORECASE,
)
_WEEKDAY_RE = re.compile(
    rf"\b(?:(next)\s+)?({_alternation(WEEKDAYS)})\b\.?\s*,?\s*",
    re.IGNORECASE,
)
_ISO_DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
_ISO_IN_TEXT_RE = re.compile(r'\b(\d{4})-(\d{2})-(\d{2})\b')
_SLASH_DATE_RE = re.compile(r'\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b')


@dataclass(frozen=True)
class NormalizedTime:
    """Result of normalizing a raw time string."""
    canonical_date: Optional[date]
    display_time: str
    ongoing: bool = False

    @property
    def iso_date(self) -> Optional[str]:
        return self.canonical_date.isoformat() if self.canonical_date else None


def civil_date(reference_now: Union[datetime, date]) -> date:
    """Return the New York calendar date for a reference instant."""
    if isinstance(reference_now, datetime):
        if reference_now.tzinfo is None:
            return reference_now.date()
        return reference_now.astimezone(NYC_TZ).date()
    return reference_now


def today_in_nyc(now: Optional[datetime] = None) -> date:
    return civil_date(now or datetime.now(timezone.utc))


def is_ongoing(raw_time: Optional[str]) -> bool:
    if not raw_time:
        return False
    lowered = raw_time.lower()
    return any(marker in lowered for marker in ONGOING_MARKERS)


def parse_iso_date(value: Any) -> Optional[date]:
    """Parse a strict YYYY-MM-DD string into a date, or return None."""
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _infer_year(month: int, day: int, today: date) -> Optional[date]:
    """
    Combine month/day with the reference year, rolling forward when needed.

    A date more than PAST_GRACE_DAYS before today is taken to mean next year.
    """
    try:
        candidate = date(today.year, month, day)
    except ValueError:
        # February 29 outside a leap year; only next year's reading can be valid
        try:
            return date(today.year + 1, month, day)
        except ValueError:
            return None

    if candidate < today and (today - candidate).days > PAST_GRACE_DAYS:
        try:
            return date(today.year + 1, month, day)
        except ValueError:
            return None
    return candidate


def _resolve_month_day(raw_time: str, today: date) -> Optional[date]:
    match = _MONTH_DAY_RE.search(raw_time)
    if not match:
        return None
    month = MONTHS[match.group(1).lower()]
    day = int(match.group(2))
    return _infer_year(month, day, today)


def _has_numeric_date(raw_time: str) -> bool:
    return bool(_ISO_IN_TEXT_RE.search(raw_time) or _SLASH_DATE_RE.search(raw_time))


def _resolve_numeric_date(raw_time: str, today: date) -> Optional[date]:
    """
    Read an ISO date or a US-style M/D[/YY[YY]] date from the phrase.

    An explicit year is taken as written; without one the same
    grace-period rule as month names applies.
    """
    iso_match = _ISO_IN_TEXT_RE.search(raw_time)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    slash_match = _SLASH_DATE_RE.search(raw_time)
    if not slash_match:
        return None

    month, day = int(slash_match.group(1)), int(slash_match.group(2))
    year_text = slash_match.group(3)
    if year_text is None:
        return _infer_year(month, day, today)

    year = int(year_text)
    if len(year_text) == 2:
        year += 2000
    elif len(year_text) != 4:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _resolve_weekday(raw_time: str, today: date) -> Optional[NormalizedTime]:
    match = _WEEKDAY_RE.search(raw_time)
    if not match:
        return None

    target_weekday = WEEKDAYS[match.group(2).lower()]
    days_until = (target_weekday - today.weekday()) % 7
    if match.group(1):
        days_until += 7
    target = today + timedelta(days=days_until)

    replacement = f"{MONTH_NAMES[target.month - 1]} {target.day}, "
    display = raw_time[:match.start()] + replacement + raw_time[match.end():]
    display = re.sub(r'[\s,]+$', '', display).strip()
    return NormalizedTime(canonical_date=target, display_time=display)


def normalize(raw_time: Optional[str], reference_now: Union[datetime, date]) -> NormalizedTime:
    """
    Infer a canonical date and display string from a raw time phrase.

    Args:
        raw_time: Extracted phrase such as "November 9, 7:00 PM" or "Saturday 8pm"
        reference_now: Instant (or civil date) the phrase is interpreted against

    Returns:
        NormalizedTime; canonical_date is None when no date can be extracted
    """
    if not raw_time or not raw_time.strip():
        return NormalizedTime(canonical_date=None, display_time=raw_time or '')

    if is_ongoing(raw_time):
        return NormalizedTime(canonical_date=None, display_time=raw_time, ongoing=True)

    today = civil_date(reference_now)

    if _MONTH_NAME_RE.search(raw_time):
        return NormalizedTime(
            canonical_date=_resolve_month_day(raw_time, today),
            display_time=raw_time,
        )

    # A written-out date wins over any weekday name next to it
    if _has_numeric_date(raw_time):
        return NormalizedTime(
            canonical_date=_resolve_numeric_date(raw_time, today),
            display_time=raw_time,
        )

    resolved = _resolve_weekday(raw_time, today)
    if resolved:
        return resolved

    return NormalizedTime(canonical_date=None, display_time=raw_time)
