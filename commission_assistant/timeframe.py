"""
Date handling for meeting and PV queries.

Covers three things:
1. The timeframe filter shared by the meeting and PV list handlers.
2. Normalization of the free-text date given when scheduling a meeting.
3. Conversion between the acting user's timezone and naive-UTC storage.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

import dateparser

from .errors import ValidationFailed

logger = logging.getLogger("commission-assistant.timeframe")

TIMEFRAME_HELP = "Please try 'today', 'this week', 'upcoming', 'past', or a specific date."

# A calendar anchor pins a date string to a specific day; strings without one
# (e.g. "3pm") are treated as the next occurrence of that time.
_CALENDAR_ANCHOR = re.compile(
    r"\b\d{4}\b"
    r"|\d{1,2}[-/]\d{1,2}"
    r"|\b(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?"
    r"|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
    r"|mon(?:day)?|tue(?:s(?:day)?)?|wed(?:nesday)?|thu(?:r(?:s(?:day)?)?)?"
    r"|fri(?:day)?|sat(?:urday)?|sun(?:day)?)\b",
    re.IGNORECASE,
)

# dateparser rejects "next <weekday>" and resolves a bare weekday inside the
# current week, so weekday-led phrases are resolved here.
_WEEKDAY_LEAD = re.compile(
    r"^\s*(?:(?P<qualifier>next|this|coming)\s+)?"
    r"(?P<day>monday|mon|tuesday|tues|tue|wednesday|wed|thursday|thurs|thur|thu"
    r"|friday|fri|saturday|sat|sunday|sun)\b[\s,]*(?:at\s+)?(?P<rest>.*)$",
    re.IGNORECASE,
)
_WEEKDAY_INDEX = {"mon": 0, "tue": 1, "wed": 2, "thu": 3, "fri": 4, "sat": 5, "sun": 6}

_PAST_WORDS = ("last", "past", "ago")
_FUTURE_WORDS = ("next year", "in 2 years", "in 3 years")

MEETING_DATE_CUTOFF_YEARS = 5


# ---------------------------------------------------------------------------
# Storage conversion
# ---------------------------------------------------------------------------

def to_storage(moment: datetime) -> datetime:
    """Aware datetime -> naive UTC for the database."""
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(stored: datetime, tz: ZoneInfo) -> datetime:
    """Naive UTC from the database -> aware datetime in ``tz``."""
    return stored.replace(tzinfo=timezone.utc).astimezone(tz)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _dateparser_parse(text: str, base: datetime) -> Optional[datetime]:
    parsed = dateparser.parse(
        text,
        languages=["en"],
        settings={
            "RELATIVE_BASE": base.replace(tzinfo=None),
            "PREFER_DATES_FROM": "current_period",
            "RETURN_AS_TIMEZONE_AWARE": False,
        },
    )
    if parsed is None:
        return None
    return parsed.replace(tzinfo=base.tzinfo)


def parse_weekday_phrase(text: str, now: datetime) -> Optional[datetime]:
    """Resolve phrases led by a weekday, e.g. 'friday 10am' or 'next tuesday at 3pm'.

    A bare weekday is its upcoming occurrence (today included while the time
    has not passed); 'next <weekday>' never means today. Returns None when
    the phrase does not start with a weekday or its remainder is unparseable.
    """
    match = _WEEKDAY_LEAD.match(text)
    if match is None:
        return None

    target = _WEEKDAY_INDEX[match.group("day")[:3].lower()]
    days_ahead = (target - now.weekday()) % 7
    if days_ahead == 0 and (match.group("qualifier") or "").lower() == "next":
        days_ahead = 7
    day = _start_of_day(now) + timedelta(days=days_ahead)

    rest = match.group("rest").strip()
    if not rest:
        return day

    moment = _dateparser_parse(rest, day)
    if moment is None:
        return None
    if days_ahead == 0 and moment < now:
        moment = moment + timedelta(days=7)
    return moment


def parse_phrase(text: str, now: datetime) -> Optional[datetime]:
    """Parse an absolute or relative date phrase relative to ``now``.

    ``now`` must be aware; the result is aware in the same timezone, or None
    when the phrase cannot be understood.
    """
    if _WEEKDAY_LEAD.match(text):
        return parse_weekday_phrase(text, now)
    return _dateparser_parse(text, now)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_week(moment: datetime) -> datetime:
    return _start_of_day(moment) - timedelta(days=moment.weekday())


def _start_of_month(moment: datetime) -> datetime:
    return _start_of_day(moment).replace(day=1)


def _start_of_next_month(moment: datetime) -> datetime:
    first = _start_of_month(moment)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


# ---------------------------------------------------------------------------
# Timeframe filter
# ---------------------------------------------------------------------------

@dataclass
class TimeframeFilter:
    """Half-open window ``[start, end)`` over meeting dates, in local time."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    ascending: bool = True
    description: str = ""

    def storage_bounds(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        return (
            to_storage(self.start) if self.start is not None else None,
            to_storage(self.end) if self.end is not None else None,
        )


def parse_timeframe(timeframe: str, now: datetime) -> TimeframeFilter:
    """Interpret a timeframe phrase such as 'upcoming' or 'next month'.

    Raises ValidationFailed when the phrase cannot be understood.
    """
    phrase = timeframe.strip().lower()

    if phrase == "today":
        start = _start_of_day(now)
        return TimeframeFilter(start, start + timedelta(days=1), True, " for today")

    if phrase in ("this week", "this_week"):
        start = _start_of_week(now)
        return TimeframeFilter(start, start + timedelta(days=7), True, " for this week")

    if phrase == "upcoming":
        return TimeframeFilter(start=now, ascending=True, description=" (upcoming)")

    if phrase in ("past", "recent", "previous"):
        return TimeframeFilter(end=now, ascending=False, description=" (past)")

    parsed = parse_phrase(phrase, now) if phrase else None
    if parsed is None:
        logger.warning(f"Could not parse timeframe '{timeframe}'")
        raise ValidationFailed(
            f"Sorry, I couldn't understand the timeframe '{timeframe}'. {TIMEFRAME_HELP}"
        )

    if "year" in phrase:
        start = _start_of_day(parsed).replace(month=1, day=1)
        end = start.replace(year=start.year + 1)
        description = f" for the year {start.year}"
    elif "month" in phrase:
        start = _start_of_month(parsed)
        end = _start_of_next_month(parsed)
        description = f" for {start.strftime('%B %Y')}"
    elif "week" in phrase:
        start = _start_of_week(parsed)
        end = start + timedelta(days=7)
        description = f" for the week starting {start.strftime('%b')} {start.day}"
    else:
        start = _start_of_day(parsed)
        end = start + timedelta(days=1)
        description = f" for {start.strftime('%b')} {start.day}, {start.year}"

    logger.debug(f"Parsed timeframe '{timeframe}' as [{start.isoformat()}, {end.isoformat()})")
    return TimeframeFilter(start, end, True, description)


# ---------------------------------------------------------------------------
# Meeting date normalization
# ---------------------------------------------------------------------------

def has_calendar_anchor(text: str) -> bool:
    return _CALENDAR_ANCHOR.search(text) is not None


def normalize_meeting_date(raw: str, now: datetime) -> datetime:
    """Resolve the date given for a new meeting, in the timezone of ``now``.

    A bare time of day that already passed today is moved to tomorrow.
    Raises ValidationFailed for unparseable dates and for dates further back
    than the allowed cutoff.
    """
    parsed = parse_phrase(raw, now)
    if parsed is None:
        logger.warning(f"Failed to parse meeting date '{raw}'")
        raise ValidationFailed(
            f"The date '{raw}' doesn't look right. "
            "Please provide it like 'YYYY-MM-DD HH:MM' or 'next Tuesday at 3pm'."
        )

    if not has_calendar_anchor(raw) and parsed < now:
        parsed = parsed + timedelta(days=1)
        logger.debug(f"Moved meeting date '{raw}' to the next day: {parsed.isoformat()}")

    lowered = raw.lower()
    if parsed < now - timedelta(days=30) and not any(w in lowered for w in _PAST_WORDS):
        logger.warning(f"Meeting date '{raw}' parsed far in the past: {parsed.isoformat()}")
    if parsed > now + timedelta(days=3 * 365) and not any(w in lowered for w in _FUTURE_WORDS):
        logger.warning(f"Meeting date '{raw}' parsed far in the future: {parsed.isoformat()}")

    if parsed < now - timedelta(days=MEETING_DATE_CUTOFF_YEARS * 365):
        raise ValidationFailed(
            "I couldn't schedule the meeting. Problem: The meeting date seems too far in the past."
        )

    return parsed.replace(microsecond=0)


# ---------------------------------------------------------------------------
# Display formats
# ---------------------------------------------------------------------------

def _ordinal(day: int) -> str:
    if 11 <= day % 100 <= 13:
        return f"{day}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def _clock(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    return f"{hour}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


def format_friendly(moment: datetime) -> str:
    """'Tuesday, March 10th at 3:00 PM'"""
    return f"{moment.strftime('%A, %B')} {_ordinal(moment.day)} at {_clock(moment)}"


def format_weekday_time(moment: datetime) -> str:
    """'Tuesday at 3:00 PM'"""
    return f"{moment.strftime('%A')} at {_clock(moment)}"


def format_listing(moment: datetime) -> str:
    """'Tue, Mar 10 15:00'"""
    return f"{moment.strftime('%a, %b')} {moment.day} {moment.strftime('%H:%M')}"


def format_day(moment: datetime) -> str:
    """'Mar 10, 2026'"""
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"
