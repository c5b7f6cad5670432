"""US equity trading calendar.

Holidays are computed by rule for any year, so the calendar needs no data
files. Dates falling on a weekend are not shifted to an observed weekday.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Callable, Iterable


MONDAY, THURSDAY, SATURDAY = 0, 3, 5


def nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """Return the ``n``-th ``weekday`` (Monday=0) of a month.

    :param year: Calendar year.
    :param month: Calendar month (1-12).
    :param weekday: Day of week, Monday=0 through Sunday=6.
    :param n: 1-based occurrence.
    :returns: The matching date.
    """
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def last_weekday(year: int, month: int, weekday: int) -> date:
    """Return the last ``weekday`` (Monday=0) of a month."""
    if month == 12:
        last = date(year, 12, 31)
    else:
        last = date(year, month + 1, 1) - timedelta(days=1)
    return last - timedelta(days=(last.weekday() - weekday) % 7)


HolidayRule = Callable[[int], date]

US_MARKET_HOLIDAYS: dict[str, HolidayRule] = {
    "New Year's Day": lambda year: date(year, 1, 1),
    "Martin Luther King Jr. Day": lambda year: nth_weekday(year, 1, MONDAY, 3),
    "Presidents' Day": lambda year: nth_weekday(year, 2, MONDAY, 3),
    "Memorial Day": lambda year: last_weekday(year, 5, MONDAY),
    "Independence Day": lambda year: date(year, 7, 4),
    "Labor Day": lambda year: nth_weekday(year, 9, MONDAY, 1),
    "Columbus Day": lambda year: nth_weekday(year, 10, MONDAY, 2),
    "Veterans Day": lambda year: date(year, 11, 11),
    "Thanksgiving Day": lambda year: nth_weekday(year, 11, THURSDAY, 4),
    "Christmas Day": lambda year: date(year, 12, 25),
}


def as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise TypeError(f"Expected a date or ISO date string, got {type(value).__name__}")


class TradingCalendar:
    """Weekend and holiday aware calendar for daily bars.

    :param holidays: Names from :data:`US_MARKET_HOLIDAYS` to observe
        (default: all of them).
    :param extra_closures: Ad-hoc closure dates (e.g. national days of mourning).
    :raises ValueError: If an unknown holiday name is given.
    """

    def __init__(
        self,
        holidays: Iterable[str] | None = None,
        extra_closures: Iterable[date | str] | None = None,
    ) -> None:
        names = list(US_MARKET_HOLIDAYS) if holidays is None else list(holidays)
        unknown = [n for n in names if n not in US_MARKET_HOLIDAYS]
        if unknown:
            raise ValueError(
                f"Unknown holidays: {unknown}. "
                f"Supported: {list(US_MARKET_HOLIDAYS.keys())}"
            )
        self.rules = {name: US_MARKET_HOLIDAYS[name] for name in names}
        self.extra_closures = frozenset(as_date(d) for d in extra_closures or ())
        self._by_year: dict[int, dict[date, str]] = {}

    def _holidays_for(self, year: int) -> dict[date, str]:
        cached = self._by_year.get(year)
        if cached is None:
            cached = {rule(year): name for name, rule in self.rules.items()}
            self._by_year[year] = cached
        return cached

    def holiday_name(self, day: date | str) -> str | None:
        """Name of the holiday on ``day``, or None."""
        day = as_date(day)
        if day in self.extra_closures:
            return "Market closure"
        return self._holidays_for(day.year).get(day)

    def is_holiday(self, day: date | str) -> bool:
        return self.holiday_name(day) is not None

    def is_trading_day(self, day: date | str) -> bool:
        """Whether ``day`` is a weekday that is not a market holiday."""
        day = as_date(day)
        return day.weekday() < SATURDAY and not self.is_holiday(day)

    def previous_trading_day(self, day: date | str) -> date:
        """Most recent trading day strictly before ``day``.

        :param day: Reference date (need not be a trading day itself).
        :returns: Previous trading day.
        """
        current = as_date(day) - timedelta(days=1)
        while not self.is_trading_day(current):
            current -= timedelta(days=1)
        return current

    def next_trading_day(self, day: date | str) -> date:
        """Earliest trading day strictly after ``day``."""
        current = as_date(day) + timedelta(days=1)
        while not self.is_trading_day(current):
            current += timedelta(days=1)
        return current

    def nth_trading_day_after(self, day: date | str, n: int) -> date:
        """Return the ``n``-th trading day after ``day``.

        :param day: Reference date.
        :param n: Number of trading days to advance (>= 1).
        :raises ValueError: If ``n`` is less than 1.
        """
        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        current = as_date(day)
        for _ in range(n):
            current = self.next_trading_day(current)
        return current

    def trading_days_between(self, start: date | str, end: date | str) -> list[date]:
        """Trading days in the inclusive range ``[start, end]``."""
        current, end = as_date(start), as_date(end)
        days = []
        while current <= end:
            if self.is_trading_day(current):
                days.append(current)
            current += timedelta(days=1)
        return days
