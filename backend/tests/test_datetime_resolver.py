"""
Tests for datetime_resolver.py - folding match records into one instant.
All references are fixed so results do not depend on the wall clock.
"""
import pytest
import sys
import os
from datetime import datetime, timezone

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime_resolver import DateTimeResolver, parse_temporal
from models import MatchRecord

from conftest import REFERENCE

WEDNESDAY = datetime(2024, 1, 3, 0, 0, 0)


def resolve_text(matcher, resolver, text, reference=REFERENCE):
    return resolver.resolve(matcher.match_patterns(text), reference)


class TestScenarios:
    """End-to-end phrases resolved against a Monday reference."""

    def test_tomorrow_at_3pm(self, matcher, resolver):
        """'tomorrow at 3pm' lands on the next day at 15:00."""
        result = resolve_text(matcher, resolver, "meeting tomorrow at 3pm")
        assert result.instant == "2024-01-02T15:00:00.000"
        assert result.has_date is True
        assert result.has_time is True
        assert result.recurrence is None

    def test_timezone_preserved(self, matcher, resolver):
        """An aware reference yields an aware instant in the same zone."""
        reference = datetime(2024, 1, 1, tzinfo=timezone.utc)
        result = resolve_text(matcher, resolver, "meeting tomorrow at 3pm", reference)
        assert result.instant == "2024-01-02T15:00:00.000+00:00"

    def test_end_of_next_week(self, matcher, resolver):
        """'end of next week' from a Monday is the following Friday at 17:00."""
        result = resolve_text(matcher, resolver, "submit report by end of next week")
        assert result.instant == "2024-01-12T17:00:00.000"
        assert result.has_time is True

    def test_end_of_this_week(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "wrap up by end of the week")
        assert result.instant == "2024-01-05T17:00:00.000"

    def test_end_of_month(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "close books by end of month")
        assert result.instant == "2024-01-31T17:00:00.000"

    def test_weekly_friday_at_4pm(self, matcher, resolver):
        """Weekly recurrence moves to the nearest Friday, then the clock time applies."""
        result = resolve_text(matcher, resolver, "weekly review every friday at 4pm")
        assert result.instant == "2024-01-05T16:00:00.000"
        assert result.recurrence.frequency == "weekly"
        assert result.recurrence.day == "friday"
        assert result.recurrence.to_rule() == "weekly:FRI"

    def test_in_30_minutes(self, matcher, resolver):
        reference = datetime(2024, 1, 1, 10, 0, 0)
        result = resolve_text(matcher, resolver, "call with team in 30 minutes", reference)
        assert result.instant == "2024-01-01T10:30:00.000"
        assert result.has_time is True
        assert result.has_date is False

    def test_time_range_start_positions_instant(self, matcher, resolver):
        """Only the range start sets the clock; the week day moves the date."""
        result = resolve_text(matcher, resolver, "client meeting next week tuesday between 2pm and 4pm")
        assert result.instant == "2024-01-09T14:00:00.000"
        assert result.has_date is True
        assert result.has_time is True

    def test_range_ending_at_noon(self, matcher, resolver):
        """A range ending at 12pm starts before its end."""
        result = resolve_text(matcher, resolver, "lunch prep between 11 and 12pm")
        assert result.instant == "2024-01-01T11:00:00.000"

    def test_end_of_week_keeps_range_start(self, matcher, resolver):
        """The end-of-week date applies but the range start sets the clock."""
        result = resolve_text(matcher, resolver, "review by end of week between 2pm and 4pm")
        assert result.instant == "2024-01-05T14:00:00.000"
        assert result.has_time is True

    def test_end_of_business_day_keeps_range_start(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "review code by end of business day from 9 to 11am")
        assert result.instant == "2024-01-05T09:00:00.000"

    def test_end_of_month_keeps_range_start(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "close books by end of month from 10am to 12pm")
        assert result.instant == "2024-01-31T10:00:00.000"

    def test_business_day(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "review code by end of business day")
        assert result.instant == "2024-01-05T17:00:00.000"

    def test_weekend(self, matcher, resolver):
        """'weekend' moves to Saturday, end of day."""
        result = resolve_text(matcher, resolver, "weekend project planning")
        assert result.instant == "2024-01-06T23:59:59.999"
        assert result.has_time is False


class TestEndOfDay:
    """A date without a clock time resolves to 23:59:59.999."""

    def test_next_monday_from_wednesday(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "next monday", WEDNESDAY)
        assert result.instant == "2024-01-08T23:59:59.999"
        assert result.has_date is True
        assert result.has_time is False

    def test_today(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "finish it today")
        assert result.instant == "2024-01-01T23:59:59.999"

    def test_time_only_keeps_date_flag_off(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "stand up at 9am")
        assert result.instant == "2024-01-01T09:00:00.000"
        assert result.has_date is False


class TestWeekdays:
    """Tests for weekday arithmetic."""

    def test_next_same_weekday_is_a_week_out(self, matcher, resolver):
        """'next monday' on a Monday is seven days later."""
        result = resolve_text(matcher, resolver, "next monday")
        assert result.instant.startswith("2024-01-08")

    def test_last_friday(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "last friday")
        assert result.instant.startswith("2023-12-29")

    def test_this_day_alias(self, resolver):
        """this_day, relative_specific_day and specific_day agree on the target."""
        this_day = resolver.resolve([MatchRecord(kind="this_day", payload={"day": "friday"})], REFERENCE)
        relative = resolver.resolve(
            [MatchRecord(kind="relative_specific_day", payload={"relative": "next", "day": "friday"})],
            REFERENCE,
        )
        specific = resolver.resolve([MatchRecord(kind="specific_day", payload={"day": "friday"})], REFERENCE)
        assert this_day.instant == relative.instant == specific.instant == "2024-01-05T23:59:59.999"

    def test_on_weekday_today_allowed(self, matcher, resolver):
        """'on monday' said on a Monday means today."""
        result = resolve_text(matcher, resolver, "gym on monday")
        assert result.instant == "2024-01-01T23:59:59.999"


class TestRecurrence:
    """Tests for recurrence descriptors."""

    def test_every_morning(self, matcher, resolver):
        """Daily recurrence advances a day; the explicit time overrides the morning default."""
        result = resolve_text(matcher, resolver, "team standup every morning at 9:30am")
        assert result.instant == "2024-01-02T09:30:00.000"
        assert result.recurrence.time_context == "morning"
        assert result.recurrence.to_rule() == "daily"

    def test_every_evening_defaults_to_18(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "walk the dog every evening")
        assert result.instant == "2024-01-02T18:00:00.000"

    def test_daily_keeps_explicit_date(self, matcher, resolver):
        """A date set earlier is not advanced by a daily rule."""
        result = resolve_text(matcher, resolver, "starting today every day at 8am")
        assert result.instant == "2024-01-01T08:00:00.000"

    def test_two_weekdays(self, matcher, resolver):
        """The nearest of the two days wins."""
        result = resolve_text(matcher, resolver, "team lunch every tuesday and thursday at noon")
        assert result.instant == "2024-01-02T12:00:00.000"
        assert result.recurrence.to_rule() == "weekly:TUE,THU"

    def test_weekdays_rule(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "stretch every weekday")
        assert result.recurrence.to_rule() == "weekdays"

    def test_monthly_ordinal_stays_in_descriptor(self, matcher, resolver):
        """Monthly ordinal recurrence does not move the instant."""
        result = resolve_text(matcher, resolver, "monthly report on the last friday")
        assert result.has_date is False
        assert result.has_time is False
        assert result.instant == "2024-01-01T00:00:00.000"
        assert result.recurrence.position == "last"
        assert result.recurrence.to_rule() == "monthly:-1:FRI"


class TestDates:
    """Tests for explicit and relative calendar dates."""

    def test_past_date_rolls_to_next_year(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "dinner on march 3rd", datetime(2024, 6, 1))
        assert result.instant == "2025-03-03T23:59:59.999"

    def test_future_date_stays_this_year(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "dinner on march 3rd")
        assert result.instant == "2024-03-03T23:59:59.999"

    def test_explicit_year_never_rolls(self, resolver):
        result = resolver.resolve(
            [MatchRecord(kind="specific_date", payload={"year": 2023, "month": 5, "day": 1})],
            REFERENCE,
        )
        assert result.instant == "2023-05-01T23:59:59.999"

    def test_feb_29_clamped_in_common_year(self, resolver):
        result = resolver.resolve(
            [MatchRecord(kind="specific_date", payload={"year": None, "month": 2, "day": 29})],
            datetime(2025, 1, 10),
        )
        assert result.instant == "2025-02-28T23:59:59.999"

    def test_weeks_from_now(self, matcher, resolver):
        result = resolve_text(matcher, resolver, "renew passport 3 weeks from now")
        assert result.instant == "2024-01-22T23:59:59.999"

    def test_month_shift_clamps(self, resolver):
        """One month after January 31 is the last day of February."""
        result = resolver.resolve(
            [MatchRecord(kind="relative_date", payload={"amount": 1, "unit": "month"})],
            datetime(2024, 1, 31, 12, 0),
        )
        assert result.instant == "2024-02-29T23:59:59.999"


class TestResolverEdges:
    """Tests for empty input and configuration."""

    def test_empty_matches(self, resolver):
        assert resolver.resolve([], REFERENCE) is None

    def test_parse_temporal_no_information(self):
        assert parse_temporal("task with no date or time", REFERENCE) is None

    def test_parse_temporal(self):
        result = parse_temporal("meeting tomorrow at 3pm", REFERENCE)
        assert result.instant == "2024-01-02T15:00:00.000"

    def test_unknown_kind_ignored(self, resolver):
        """A kind without a transition leaves the state untouched."""
        record = MatchRecord.model_construct(kind="lunar_phase", payload={})
        result = resolver.resolve([record], REFERENCE)
        assert result.instant == "2024-01-01T00:00:00.000"
        assert result.has_date is False

    def test_later_match_overrides(self, resolver):
        """With two clock times the later record wins."""
        result = resolver.resolve([
            MatchRecord(kind="specific_time", payload={"hour": 9, "minute": 0}),
            MatchRecord(kind="specific_time", payload={"hour": 17, "minute": 15}),
        ], REFERENCE)
        assert result.instant == "2024-01-01T17:15:00.000"

    def test_configurable_week_end(self, matcher):
        """End of week can anchor on another day and hour."""
        resolver = DateTimeResolver(week_end_day="Thursday", week_end_hour=18)
        result = resolve_text(matcher, resolver, "wrap up by end of the week")
        assert result.instant == "2024-01-04T18:00:00.000"

    def test_unknown_week_end_day(self):
        with pytest.raises(ValueError):
            DateTimeResolver(week_end_day="funday")

    def test_pure(self, matcher, resolver):
        """The same matches and reference always give the same result."""
        matches = matcher.match_patterns("dentist next tuesday at 2:30pm")
        assert resolver.resolve(matches, REFERENCE) == resolver.resolve(matches, REFERENCE)
