"""Tests for the US trading calendar."""

from datetime import date

import pytest

from screener.market_calendar import (US_MARKET_HOLIDAYS, TradingCalendar, as_date,
                                      last_weekday, nth_weekday)


@pytest.fixture
def calendar() -> TradingCalendar:
    """Calendar observing the full holiday catalog."""
    return TradingCalendar()


class TestWeekdayRules:
    """Tests for the weekday arithmetic behind floating holidays."""

    def test_third_monday_of_january(self) -> None:
        """MLK day 2025 is January 20."""
        assert nth_weekday(2025, 1, 0, 3) == date(2025, 1, 20)

    def test_fourth_thursday_of_november(self) -> None:
        """Thanksgiving 2025 is November 27."""
        assert nth_weekday(2025, 11, 3, 4) == date(2025, 11, 27)

    def test_last_monday_of_may(self) -> None:
        """Memorial Day 2025 is May 26."""
        assert last_weekday(2025, 5, 0) == date(2025, 5, 26)

    def test_last_weekday_of_december(self) -> None:
        """Year-end month is handled without overflowing into January."""
        assert last_weekday(2025, 12, 2) == date(2025, 12, 31)


class TestAsDate:
    """Tests for date coercion."""

    def test_iso_string(self) -> None:
        """ISO strings are parsed."""
        assert as_date("2025-09-05") == date(2025, 9, 5)

    def test_date_passthrough(self) -> None:
        """Dates are returned unchanged."""
        assert as_date(date(2025, 9, 5)) == date(2025, 9, 5)

    def test_rejects_other_types(self) -> None:
        """Non-date values raise TypeError."""
        with pytest.raises(TypeError):
            as_date(20250905)  # type: ignore[arg-type]


class TestTradingCalendar:
    """Tests for trading day arithmetic."""

    def test_catalog_has_ten_holidays(self) -> None:
        """The catalog covers the ten rule-based market holidays."""
        assert len(US_MARKET_HOLIDAYS) == 10

    def test_previous_trading_day_skips_new_year(self, calendar: TradingCalendar) -> None:
        """Day before New Year's Day 2025 is 2024-12-31."""
        assert calendar.previous_trading_day(date(2025, 1, 1)) == date(2024, 12, 31)

    def test_previous_trading_day_skips_weekend(self, calendar: TradingCalendar) -> None:
        """Monday 2025-09-08 maps back to Friday 2025-09-05."""
        assert calendar.previous_trading_day("2025-09-08") == date(2025, 9, 5)

    def test_previous_trading_day_skips_weekend_and_holiday(
        self, calendar: TradingCalendar
    ) -> None:
        """Tuesday after Labor Day 2025 maps back to Friday 2025-08-29."""
        assert calendar.previous_trading_day(date(2025, 9, 2)) == date(2025, 8, 29)

    def test_previous_trading_day_from_weekend(self, calendar: TradingCalendar) -> None:
        """A Sunday reference date maps to the preceding Friday."""
        assert calendar.previous_trading_day(date(2025, 9, 7)) == date(2025, 9, 5)

    def test_holiday_names(self, calendar: TradingCalendar) -> None:
        """Holidays resolve to their catalog names."""
        assert calendar.holiday_name(date(2025, 11, 27)) == "Thanksgiving Day"
        assert calendar.holiday_name(date(2025, 12, 25)) == "Christmas Day"
        assert calendar.holiday_name(date(2025, 12, 24)) is None

    def test_weekend_holiday_is_not_shifted(self, calendar: TradingCalendar) -> None:
        """Independence Day 2026 falls on a Saturday; Friday stays open."""
        assert calendar.is_trading_day(date(2026, 7, 3))
        assert not calendar.is_trading_day(date(2026, 7, 4))

    def test_is_trading_day(self, calendar: TradingCalendar) -> None:
        """Weekdays are trading days unless they are holidays."""
        assert calendar.is_trading_day(date(2025, 9, 5))
        assert not calendar.is_trading_day(date(2025, 9, 6))
        assert not calendar.is_trading_day(date(2025, 9, 1))

    def test_holiday_subset(self) -> None:
        """Only the selected holidays are observed."""
        calendar = TradingCalendar(holidays=["Christmas Day"])
        assert calendar.is_trading_day(date(2025, 9, 1))
        assert not calendar.is_trading_day(date(2025, 12, 25))

    def test_unknown_holiday_raises(self) -> None:
        """Unknown holiday names are rejected."""
        with pytest.raises(ValueError, match="Unknown holidays"):
            TradingCalendar(holidays=["Festivus"])

    def test_extra_closures(self) -> None:
        """Ad-hoc closures are non-trading days."""
        calendar = TradingCalendar(extra_closures=["2025-01-09"])
        assert calendar.holiday_name(date(2025, 1, 9)) == "Market closure"
        assert calendar.previous_trading_day(date(2025, 1, 10)) == date(2025, 1, 8)

    def test_next_trading_day(self, calendar: TradingCalendar) -> None:
        """Friday before Labor Day advances to Tuesday."""
        assert calendar.next_trading_day(date(2025, 8, 29)) == date(2025, 9, 2)

    def test_nth_trading_day_after(self, calendar: TradingCalendar) -> None:
        """Advancing five trading days crosses the weekend."""
        assert calendar.nth_trading_day_after(date(2025, 9, 5), 5) == date(2025, 9, 12)

    def test_nth_trading_day_after_requires_positive_n(
        self, calendar: TradingCalendar
    ) -> None:
        """n must be at least one."""
        with pytest.raises(ValueError):
            calendar.nth_trading_day_after(date(2025, 9, 5), 0)

    def test_trading_days_between(self, calendar: TradingCalendar) -> None:
        """Inclusive range skips the weekend and Labor Day."""
        days = calendar.trading_days_between(date(2025, 8, 29), date(2025, 9, 3))
        assert days == [date(2025, 8, 29), date(2025, 9, 2), date(2025, 9, 3)]
