"""Daily to weekly bar aggregation.

Daily bars are bucketed by ISO year and week number. Each bucket becomes one
:class:`~screener.types.WeeklyBar` dated on its last session, so a weekly
store can be scored by the same pipeline as a daily one.
"""

from __future__ import annotations

import logging
from datetime import date
from itertools import groupby
from typing import Iterable

from screener.data.store import BarStore
from screener.types import Bar, WeeklyBar

logger = logging.getLogger(__name__)


def week_key(day: date) -> str:
    """ISO week identifier, e.g. ``"2025-W38"``."""
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


class WeeklyAggregator:
    """Fold daily bars into ISO-week bars.

    Example usage::

        weekly = WeeklyAggregator().aggregate(daily_bars)
        weekly_store = BarStore(weekly)
    """

    def fold(self, week: list[Bar]) -> WeeklyBar:
        """Fold one week of date-ordered daily bars for a single symbol.

        :param week: Non-empty, date-ordered bars from the same ISO week.
        :returns: Weekly bar with first open, last close, extreme high/low and
            summed volume.
        :raises ValueError: If ``week`` is empty.
        """
        if not week:
            raise ValueError("cannot fold an empty week")
        first, last = week[0], week[-1]
        return WeeklyBar(
            symbol=first.symbol,
            date=last.date,
            open=first.open,
            high=max(b.high for b in week),
            low=min(b.low for b in week),
            close=last.close,
            volume=sum(b.volume for b in week),
            adjusted_close=last.adjusted_close,
            week_key=week_key(last.date),
            period_start=first.date,
            session_count=len(week),
        )

    def aggregate(self, bars: Iterable[Bar]) -> list[WeeklyBar]:
        """Aggregate daily bars (any symbols, any order) into weekly bars.

        :param bars: Daily bars.
        :returns: Weekly bars ordered by period end date, then symbol.
        """
        ordered = sorted(bars, key=lambda b: (b.symbol, b.date))
        weekly = [
            self.fold(list(group))
            for _, group in groupby(ordered, key=lambda b: (b.symbol, week_key(b.date)))
        ]
        weekly.sort(key=lambda w: (w.date, w.symbol))
        logger.debug("Aggregated %d daily bars into %d weekly bars", len(ordered), len(weekly))
        return weekly


def aggregate_store(store: BarStore, aggregator: WeeklyAggregator | None = None) -> BarStore:
    """Build a weekly store from every series in a daily store."""
    aggregator = aggregator or WeeklyAggregator()
    daily = [bar for symbol in store.symbols for bar in store.bars(symbol)]
    return BarStore(aggregator.aggregate(daily))
