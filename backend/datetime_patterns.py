"""
Temporal phrase recognition.

PATTERN_CATALOG is the ordered rule set. PatternMatcher runs it over a string,
drops readings that overlap a stronger one, and memoizes the result per exact
input text. Unmatched text yields an empty list, never an error.
"""
import calendar
import logging
import os
import re
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from models import MatchRecord, WEEKDAY_NAMES

logger = logging.getLogger(__name__)

PATTERN_VERSION = "1.0"
PATTERN_CACHE_SIZE = int(os.getenv("PATTERN_CACHE_SIZE", "1024"))

_WD = "|".join(WEEKDAY_NAMES)
_MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")
_ORDINALS = {"1st": "first", "2nd": "second", "3rd": "third", "4th": "fourth", "5th": "fifth"}

# {p} is replaced with the bound name so both ends get their own groups
_CLOCK = r"(?P<{p}_hour>2[0-3]|[01]?\d)(?::(?P<{p}_minute>[0-5]\d))?\s*(?P<{p}_meridiem>[ap]\.?m\.?)?"

END_OF_WEEK_RE = re.compile(
    r"\b(?:by\s+)?end\s+of(?:\s+(?:the|this))?(?:\s+next)?\s+week\b", re.IGNORECASE
)
EXPLICIT_WEEKDAY_RE = re.compile(
    rf"\b(?:next|last|this|coming)\s+(?:week(?:'s)?\s+)?(?:{_WD})\b", re.IGNORECASE
)
MONTHLY_ORDINAL_RE = re.compile(
    r"\b(?:monthly(?:\s+\w+)?\s+on|monthly|every\s+month\s+on)\s+(?:the\s+)?"
    r"(?:(?P<position>first|second|third|fourth|fifth|last|1st|2nd|3rd|4th|5th)\s+)?"
    rf"(?P<day>{_WD})\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PatternRule:
    """A lexical rule: regex, the kind it produces and how to pull its payload."""
    name: str
    kind: str
    pattern: re.Pattern
    extractor: Callable[[re.Match], Optional[dict[str, Any]]]

    def apply(self, text: str) -> Optional[MatchRecord]:
        match = self.pattern.search(text)
        if not match:
            return None
        # Extractors return None to reject a lexical hit (e.g. February 31)
        payload = self.extractor(match)
        if payload is None:
            return None
        return MatchRecord(kind=self.kind, payload=payload)


def _rule(name: str, kind: str, regex, extractor) -> PatternRule:
    pattern = regex if isinstance(regex, re.Pattern) else re.compile(regex, re.IGNORECASE)
    return PatternRule(name=name, kind=kind, pattern=pattern, extractor=extractor)


def to_24_hour(hour: int, meridiem: Optional[str]) -> int:
    """Convert a 12-hour clock reading. pm adds 12 unless 12, 12am is 0."""
    if not meridiem:
        return hour
    meridiem = meridiem.lower().replace(".", "")
    if meridiem.startswith("p") and hour < 12:
        return hour + 12
    if meridiem.startswith("a") and hour == 12:
        return 0
    return hour


def _amount(token: str) -> int:
    return 1 if token.lower() in ("a", "an") else int(token)


def _calendar_date(year: Optional[int], month: int, day: int) -> Optional[dict[str, Any]]:
    # Without a year, allow Feb 29 by checking against a leap year
    if day > calendar.monthrange(year or 2000, month)[1]:
        return None
    return {"year": year, "month": month, "day": day}


def _relative_week_day(m: re.Match) -> dict[str, Any]:
    day = m.group("week_day") or m.group("day")
    return {
        "relative": m.group("relative").lower(),
        "day": day.lower() if day else None,
        "week": m.group("week") is not None,
    }


def _recurring(m: re.Match) -> dict[str, Any]:
    unit = m.group("unit").lower()
    if unit in ("day", "morning", "evening", "weekday"):
        frequency = "daily"
    elif unit == "month":
        frequency = "monthly"
    else:
        frequency = "weekly"
    additional = m.group("additional")
    return {
        "frequency": frequency,
        "day": unit if unit in WEEKDAY_NAMES else None,
        "additional_day": additional.lower() if additional else None,
        "position": None,
        "time_context": unit if unit in ("morning", "evening") else None,
        "weekdays_only": unit == "weekday",
    }


def _monthly_ordinal(m: re.Match) -> dict[str, Any]:
    position = (m.group("position") or "last").lower()
    return {
        "frequency": "monthly",
        "day": m.group("day").lower(),
        "additional_day": None,
        "position": _ORDINALS.get(position, position),
        "time_context": None,
        "weekdays_only": False,
    }


def _clock_time(m: re.Match) -> dict[str, Any]:
    hour = int(m.group("hour"))
    minute = int(m.group("minute") or 0)
    return {"hour": to_24_hour(hour, m.group("meridiem")), "minute": minute}


def _time_range(m: re.Match) -> dict[str, Any]:
    start_hour = int(m.group("start_hour"))
    end_hour = int(m.group("end_hour"))
    start_minute = int(m.group("start_minute") or 0)
    end_minute = int(m.group("end_minute") or 0)
    start_meridiem = m.group("start_meridiem")
    end_meridiem = m.group("end_meridiem")
    end = (to_24_hour(end_hour, end_meridiem), end_minute)
    # "between 2 and 4pm": the start borrows the end's meridiem unless that
    # would put it after the end ("between 11 and 12pm" starts at 11)
    if not start_meridiem and end_meridiem and (to_24_hour(start_hour, end_meridiem), start_minute) <= end:
        start_meridiem = end_meridiem
    return {
        "start": {"hour": to_24_hour(start_hour, start_meridiem), "minute": start_minute},
        "end": {"hour": end[0], "minute": end_minute},
    }


def _iso_date(m: re.Match) -> Optional[dict[str, Any]]:
    return _calendar_date(int(m.group("year")), int(m.group("month")), int(m.group("day")))


def _numeric_date(m: re.Match) -> Optional[dict[str, Any]]:
    year = m.group("year")
    if year is not None:
        year = int(year) + 2000 if len(year) == 2 else int(year)
    return _calendar_date(year, int(m.group("month")), int(m.group("day")))


def _month_name_date(m: re.Match) -> Optional[dict[str, Any]]:
    month = _MONTHS.index(m.group("month")[:3].lower()) + 1
    year = int(m.group("year")) if m.group("year") else None
    return _calendar_date(year, month, int(m.group("day")))


PATTERN_CATALOG: tuple[PatternRule, ...] = (
    _rule(
        "relative_day", "relative_day",
        r"\b(?P<day>today|tomorrow|yesterday)\b",
        lambda m: {"day": m.group("day").lower()},
    ),
    _rule(
        "relative_week_day", "relative_week_day",
        rf"\b(?P<relative>next|last|this|coming)\s+"
        rf"(?:(?P<week>week(?:'s)?)(?:\s+(?P<week_day>{_WD}))?|(?P<day>{_WD}))\b",
        _relative_week_day,
    ),
    _rule(
        "end_of_period", "relative_week",
        r"\b(?:by\s+)?end\s+of(?:\s+(?:the|this))?(?P<next>\s+next)?\s+(?P<period>week|month|year)\b",
        lambda m: {
            "period": m.group("period").lower(),
            "position": "end",
            "next": m.group("next") is not None,
        },
    ),
    _rule(
        "business_day", "day_type",
        r"\b(?:by\s+)?(?:end\s+of\s+)?(?:the\s+)?(?P<day_type>business\s*day)\b",
        lambda m: {"day_type": re.sub(r"\s+", "", m.group("day_type")).lower()},
    ),
    _rule(
        "every", "recurring",
        rf"\b(?:weekly\s+)?(?:every|each)\s+(?P<unit>day|morning|evening|weekday|week|month|{_WD})"
        rf"(?:\s+and\s+(?P<additional>{_WD}))?\b",
        _recurring,
    ),
    _rule("monthly_ordinal", "recurring", MONTHLY_ORDINAL_RE, _monthly_ordinal),
    _rule(
        "clock_time", "specific_time",
        r"(?<![\d:])\b(?P<hour>1[0-2]|0?[1-9])(?::(?P<minute>[0-5]\d))?\s*(?P<meridiem>[ap]\.?m\.?)(?!\w)",
        _clock_time,
    ),
    _rule(
        "noon_midnight", "specific_time",
        r"\b(?P<word>noon|midnight)\b",
        lambda m: {"hour": 12 if m.group("word").lower() == "noon" else 0, "minute": 0},
    ),
    _rule(
        "time_range", "time_range",
        r"\b(?:between|from)\s+" + _CLOCK.format(p="start")
        + r"\s*(?:to|and|-)\s*" + _CLOCK.format(p="end") + r"(?!\w)",
        _time_range,
    ),
    _rule(
        "in_duration", "relative_time",
        r"\bin\s+(?P<amount>\d{1,3}|an?)\s+(?P<unit>minute|hour|day|week|month)s?\b",
        lambda m: {"amount": _amount(m.group("amount")), "unit": m.group("unit").lower()},
    ),
    _rule(
        "duration_from_now", "relative_date",
        r"(?<!\bin\s)\b(?P<amount>\d{1,3}|an?)\s+(?P<unit>day|week|month|year)s?\s+from\s+(?:now|today)\b",
        lambda m: {"amount": _amount(m.group("amount")), "unit": m.group("unit").lower()},
    ),
    _rule(
        "iso_date", "specific_date",
        r"\b(?P<year>\d{4})-(?P<month>1[0-2]|0?[1-9])-(?P<day>3[01]|[12]\d|0?[1-9])\b",
        _iso_date,
    ),
    _rule(
        "numeric_date", "specific_date",
        r"(?<![\d/])(?P<month>1[0-2]|0?[1-9])/(?P<day>3[01]|[12]\d|0?[1-9])"
        r"(?:/(?P<year>\d{4}|\d{2}))?(?![\d/])",
        _numeric_date,
    ),
    _rule(
        "month_name_date", "specific_date",
        r"\b(?P<month>jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
        r"|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)\.?\s+"
        r"(?P<day>3[01]|[12]\d|0?[1-9])(?:st|nd|rd|th)?(?:,?\s+(?P<year>\d{4}))?\b",
        _month_name_date,
    ),
    _rule(
        "on_weekday", "specific_day",
        rf"\bon\s+(?P<day>{_WD})\b",
        lambda m: {"day": m.group("day").lower()},
    ),
    _rule(
        "weekday_weekend", "day_type",
        r"\b(?:by\s+)?(?:end\s+of\s+)?(?:the\s+)?(?P<day_type>weekday|weekend)\b",
        lambda m: {"day_type": m.group("day_type").lower()},
    ),
)


def _suppressed(rule: PatternRule, text: str) -> bool:
    """Whether a stronger reading of the same calendar reference is present."""
    if rule.kind == "relative_week_day" and END_OF_WEEK_RE.search(text):
        return True
    if rule.kind == "relative_week" and EXPLICIT_WEEKDAY_RE.search(text):
        return True
    if rule.kind in ("relative_week_day", "specific_day") and MONTHLY_ORDINAL_RE.search(text):
        return True
    return False


class PatternCache:
    """Bounded LRU of match results keyed by exact input text."""

    def __init__(self, maxsize: int = PATTERN_CACHE_SIZE):
        self.maxsize = maxsize
        self._entries: OrderedDict[str, tuple[MatchRecord, ...]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, text: str) -> Optional[tuple[MatchRecord, ...]]:
        with self._lock:
            records = self._entries.get(text)
            if records is not None:
                self._entries.move_to_end(text)
            return records

    def set(self, text: str, records: Iterable[MatchRecord]) -> None:
        with self._lock:
            self._entries[text] = tuple(records)
            self._entries.move_to_end(text)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, text: str) -> bool:
        with self._lock:
            return text in self._entries


class PatternMatcher:
    def __init__(self, catalog: Iterable[PatternRule] = PATTERN_CATALOG, cache: Optional[PatternCache] = None):
        self.catalog = tuple(catalog)
        self.cache = cache if cache is not None else PatternCache()

    def match_patterns(self, text: Optional[str]) -> list[MatchRecord]:
        """
        Return the MatchRecords for text in catalog priority order.
        Time ranges are collected first and silence loose clock times.
        """
        if not text:
            return []

        cached = self.cache.get(text)
        if cached is not None:
            logger.debug("Pattern cache hit for %r", text)
            return list(cached)

        matches: list[MatchRecord] = []
        time_range_found = False

        for rule in self.catalog:
            if rule.kind != "time_range":
                continue
            record = rule.apply(text)
            if record:
                matches.append(record)
                time_range_found = True
                break

        for rule in self.catalog:
            if rule.kind == "time_range":
                continue
            if rule.kind == "specific_time" and time_range_found:
                continue
            if _suppressed(rule, text):
                logger.debug("Rule %s suppressed for %r", rule.name, text)
                continue
            record = rule.apply(text)
            if record:
                matches.append(record)

        self.cache.set(text, matches)
        return list(matches)


_default_matcher = PatternMatcher()


def match_patterns(text: Optional[str]) -> list[MatchRecord]:
    return _default_matcher.match_patterns(text)
