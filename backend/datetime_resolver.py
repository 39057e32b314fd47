"""
Fold an ordered list of MatchRecords into one resolved instant.

Each record kind maps to a transition function (state, payload) -> state over
a frozen working state seeded from the reference instant. Records are applied
in list order, so a later record overrides an earlier one on the same field.
"""
import calendar
import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from dateutil.relativedelta import relativedelta

from datetime_patterns import match_patterns
from models import MatchRecord, Recurrence, ResolvedTemporal, WEEKDAY_NAMES

logger = logging.getLogger(__name__)

BUSINESS_WEEK_END_DAY = os.getenv("BUSINESS_WEEK_END_DAY", "friday").lower()
BUSINESS_WEEK_END_HOUR = int(os.getenv("BUSINESS_WEEK_END_HOUR", "17"))

SATURDAY = 5
SUNDAY = 6
TIME_CONTEXT_HOURS = {"morning": 9, "evening": 18}


@dataclass(frozen=True)
class _State:
    instant: datetime
    has_date: bool = False
    has_time: bool = False
    recurrence: Optional[Recurrence] = None


def _set_clock(instant: datetime, hour: int, minute: int = 0) -> datetime:
    return instant.replace(hour=hour, minute=minute, second=0, microsecond=0)


def _weekday_index(name: Optional[str]) -> Optional[int]:
    if name in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(name)
    return None


def _shift(instant: datetime, amount: int, unit: str) -> datetime:
    if unit == "minute":
        return instant + timedelta(minutes=amount)
    if unit == "hour":
        return instant + timedelta(hours=amount)
    if unit == "day":
        return instant + timedelta(days=amount)
    if unit == "week":
        return instant + timedelta(weeks=amount)
    if unit == "month":
        return instant + relativedelta(months=amount)
    if unit == "year":
        return instant + relativedelta(years=amount)
    return instant


class DateTimeResolver:
    """
    Resolve MatchRecords against a reference instant.

    week_end_day/week_end_hour anchor "end of week" and "business day"
    phrases (Friday 17:00 unless configured otherwise).
    """

    def __init__(self, week_end_day: str = BUSINESS_WEEK_END_DAY, week_end_hour: int = BUSINESS_WEEK_END_HOUR):
        week_end = _weekday_index(week_end_day.lower())
        if week_end is None:
            raise ValueError(f"Unknown week end day: {week_end_day}")
        self.week_end = week_end
        self.week_end_hour = week_end_hour
        self._transitions: dict[str, Callable[[_State, dict[str, Any]], _State]] = {
            "relative_day": self._relative_day,
            "relative_week_day": self._relative_week_day,
            "relative_specific_day": self._relative_week_day,
            "this_day": self._this_day,
            "relative_week": self._end_of_period,
            "day_type": self._day_type,
            "specific_time": self._specific_time,
            "time_range": self._time_range,
            "recurring": self._recurring,
            "relative_time": self._relative_time,
            "relative_date": self._relative_date,
            "specific_date": self._specific_date,
            "specific_day": self._specific_day,
        }

    def resolve(self, matches: Iterable[MatchRecord], reference: Optional[datetime] = None) -> Optional[ResolvedTemporal]:
        """
        Return the resolved instant, or None when there is nothing to resolve.
        A date with no clock time lands on the end of that day.
        """
        matches = list(matches or [])
        if not matches:
            return None

        state = _State(instant=reference if reference is not None else datetime.now())
        for match in matches:
            transition = self._transitions.get(match.kind)
            if transition is None:
                logger.debug("Ignoring match of unknown kind %s", match.kind)
                continue
            state = transition(state, match.payload)

        instant = state.instant
        if state.has_date and not state.has_time:
            instant = instant.replace(hour=23, minute=59, second=59, microsecond=999000)

        return ResolvedTemporal(
            instant=instant.isoformat(timespec="milliseconds"),
            has_date=state.has_date,
            has_time=state.has_time,
            recurrence=state.recurrence,
        )

    def _relative_day(self, state: _State, payload: dict[str, Any]) -> _State:
        offset = {"tomorrow": 1, "yesterday": -1}.get(payload.get("day"), 0)
        return replace(state, instant=state.instant + timedelta(days=offset), has_date=True)

    def _relative_week_day(self, state: _State, payload: dict[str, Any]) -> _State:
        instant = state.instant
        relative = payload.get("relative", "next")
        target = _weekday_index(payload.get("day"))
        current = instant.weekday()
        week_step = {"next": 7, "coming": 7, "last": -7}.get(relative, 0)

        if target is None:
            # "next week" / "last week" without a day
            if payload.get("week"):
                instant += timedelta(days=week_step)
            return replace(state, instant=instant, has_date=True)

        if payload.get("week"):
            # Same-week occurrence (weeks start Monday), then step a week
            diff = target - current + week_step
        elif relative == "this":
            diff = (target - current) % 7
        elif relative == "last":
            diff = target - current
            if diff >= 0:
                diff -= 7
        else:
            diff = target - current
            if diff <= 0:
                diff += 7
        return replace(state, instant=instant + timedelta(days=diff), has_date=True)

    def _this_day(self, state: _State, payload: dict[str, Any]) -> _State:
        return self._relative_week_day(state, {**payload, "relative": "this", "week": False})

    def _end_of_week(self, instant: datetime, next_week: bool) -> datetime:
        diff = (self.week_end - instant.weekday()) % 7
        if next_week:
            diff += 7
        return instant + timedelta(days=diff)

    def _end_of_period(self, state: _State, payload: dict[str, Any]) -> _State:
        instant = state.instant
        next_period = bool(payload.get("next"))
        period = payload.get("period", "week")
        if period == "month":
            if next_period:
                instant += relativedelta(months=1)
            instant = instant.replace(day=calendar.monthrange(instant.year, instant.month)[1])
        elif period == "year":
            instant = instant.replace(year=instant.year + (1 if next_period else 0), month=12, day=31)
        else:
            instant = self._end_of_week(instant, next_period)
        # An explicit time or range start already on the state is kept
        if not state.has_time:
            instant = _set_clock(instant, self.week_end_hour)
        return replace(state, instant=instant, has_date=True, has_time=True)

    def _day_type(self, state: _State, payload: dict[str, Any]) -> _State:
        day_type = payload.get("day_type")
        instant = state.instant
        if day_type == "businessday":
            instant = self._end_of_week(instant, False)
            if not state.has_time:
                instant = _set_clock(instant, self.week_end_hour)
            return replace(state, instant=instant, has_date=True, has_time=True)
        current = instant.weekday()
        if day_type == "weekend":
            if current < SATURDAY:
                instant += timedelta(days=SATURDAY - current)
        elif day_type == "weekday":
            if current == SATURDAY:
                instant += timedelta(days=2)
            elif current == SUNDAY:
                instant += timedelta(days=1)
        return replace(state, instant=instant, has_date=True)

    def _specific_time(self, state: _State, payload: dict[str, Any]) -> _State:
        instant = _set_clock(state.instant, payload["hour"], payload.get("minute", 0))
        return replace(state, instant=instant, has_time=True)

    def _time_range(self, state: _State, payload: dict[str, Any]) -> _State:
        # Only the start bound positions the instant
        start = payload["start"]
        instant = _set_clock(state.instant, start["hour"], start.get("minute", 0))
        return replace(state, instant=instant, has_time=True)

    def _recurring(self, state: _State, payload: dict[str, Any]) -> _State:
        recurrence = Recurrence(**{k: v for k, v in payload.items() if v is not None})
        instant = state.instant
        has_date = state.has_date
        has_time = state.has_time

        if recurrence.frequency == "daily" and not has_date:
            instant += timedelta(days=1)
            has_date = True
        elif recurrence.frequency == "weekly":
            targets = [
                t for t in (_weekday_index(recurrence.day), _weekday_index(recurrence.additional_day))
                if t is not None
            ]
            if targets:
                instant += timedelta(days=min((t - instant.weekday()) % 7 for t in targets))
                has_date = True

        if recurrence.time_context and not has_time:
            instant = _set_clock(instant, TIME_CONTEXT_HOURS[recurrence.time_context])
            has_time = True

        return replace(state, instant=instant, has_date=has_date, has_time=has_time, recurrence=recurrence)

    def _relative_time(self, state: _State, payload: dict[str, Any]) -> _State:
        unit = payload.get("unit")
        instant = _shift(state.instant, int(payload.get("amount", 0)), unit)
        if unit in ("minute", "hour"):
            return replace(state, instant=instant, has_time=True)
        return replace(state, instant=instant, has_date=True)

    def _relative_date(self, state: _State, payload: dict[str, Any]) -> _State:
        instant = _shift(state.instant, int(payload.get("amount", 0)), payload.get("unit"))
        return replace(state, instant=instant, has_date=True)

    def _specific_date(self, state: _State, payload: dict[str, Any]) -> _State:
        instant = state.instant
        month = payload["month"]
        year = payload.get("year")
        roll_forward = year is None
        if year is None:
            year = instant.year

        def build(y: int) -> datetime:
            return instant.replace(year=y, month=month, day=min(payload["day"], calendar.monthrange(y, month)[1]))

        resolved = build(year)
        # A bare "march 3" that already passed this year means next year
        if roll_forward and resolved.date() < instant.date():
            resolved = build(year + 1)
        return replace(state, instant=resolved, has_date=True)

    def _specific_day(self, state: _State, payload: dict[str, Any]) -> _State:
        target = _weekday_index(payload.get("day"))
        if target is None:
            return state
        diff = (target - state.instant.weekday()) % 7
        return replace(state, instant=state.instant + timedelta(days=diff), has_date=True)


_default_resolver = DateTimeResolver()


def resolve(matches: Iterable[MatchRecord], reference: Optional[datetime] = None) -> Optional[ResolvedTemporal]:
    return _default_resolver.resolve(matches, reference)


def parse_temporal(text: Optional[str], reference: Optional[datetime] = None) -> Optional[ResolvedTemporal]:
    """Match and resolve text in one call."""
    return resolve(match_patterns(text), reference)
