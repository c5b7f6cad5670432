"""In-memory, date-indexed bar store.

The store keeps one date-ordered series per symbol together with a
``date -> position`` index, so point lookups are O(1) and window queries are
O(log n + length) via binary search on the sorted date list.
"""

from __future__ import annotations

import logging
import threading
from bisect import bisect_left, bisect_right
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Iterable

from screener.exceptions import DataSourceError
from screener.types import Bar, Symbol

if TYPE_CHECKING:
    from screener.data.sources import BarSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BarIndex:
    """Immutable per-symbol index built from one archive snapshot.

    :param series: Symbol to date-ordered bars.
    :param dates: Symbol to sorted session dates (parallel to ``series``).
    :param positions: Symbol to ``date -> position in series``.
    """

    series: dict[str, tuple[Bar, ...]] = field(default_factory=dict)
    dates: dict[str, list[date]] = field(default_factory=dict)
    positions: dict[str, dict[date, int]] = field(default_factory=dict)

    @classmethod
    def build(cls, bars: Iterable[Bar]) -> BarIndex:
        """Build the index in a single pass over ``bars``.

        A later bar for an already seen (symbol, date) supersedes the earlier one.
        """
        latest: dict[str, dict[date, Bar]] = {}
        for bar in bars:
            latest.setdefault(bar.symbol, {})[bar.date] = bar

        series: dict[str, tuple[Bar, ...]] = {}
        dates: dict[str, list[date]] = {}
        positions: dict[str, dict[date, int]] = {}
        for symbol, by_date in latest.items():
            ordered = sorted(by_date)
            series[symbol] = tuple(by_date[d] for d in ordered)
            dates[symbol] = ordered
            positions[symbol] = {d: i for i, d in enumerate(ordered)}

        return cls(series=series, dates=dates, positions=positions)


class BarStore:
    """Read-mostly store of OHLCV bars keyed by symbol and date.

    ``load`` swaps in a freshly built :class:`BarIndex`; readers holding a
    :meth:`snapshot` keep seeing the archive they started with.

    :param bars: Optional initial bars.
    """

    def __init__(self, bars: Iterable[Bar] | None = None) -> None:
        self._lock = threading.Lock()
        self._index = BarIndex()
        if bars is not None:
            self.load(bars)

    @classmethod
    def from_index(cls, index: BarIndex) -> BarStore:
        store = cls()
        store._index = index
        return store

    @classmethod
    def from_source(
        cls,
        source: BarSource,
        symbols: list[Symbol],
        start: date | None = None,
        end: date | None = None,
    ) -> BarStore:
        """Build a store by fetching each symbol from a bar source.

        A failed fetch for one symbol leaves that symbol empty instead of
        aborting the load.

        :param source: Bar source to read from.
        :param symbols: Symbols to fetch.
        :param start: Inclusive first date, or None for all history.
        :param end: Inclusive last date, or None for all history.
        :returns: Loaded store.
        """
        bars: list[Bar] = []
        for symbol in symbols:
            try:
                bars.extend(source.fetch_bars([symbol], start, end))
            except DataSourceError as e:
                logger.warning("No bars available for %s: %s", symbol, e)
        return cls(bars)

    def load(self, bars: Iterable[Bar]) -> None:
        """Replace the backing archive and rebuild the index.

        :param bars: Bars in any order; duplicates resolve to the last one seen.
        """
        index = BarIndex.build(bars)
        with self._lock:
            self._index = index
        logger.debug(
            "Loaded %d bars for %d symbols",
            sum(len(s) for s in index.series.values()),
            len(index.series),
        )

    def snapshot(self) -> BarStore:
        """Return a store pinned to the currently loaded archive."""
        with self._lock:
            return BarStore.from_index(self._index)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def symbols(self) -> list[Symbol]:
        return [Symbol(s) for s in sorted(self._index.series)]

    def __len__(self) -> int:
        return sum(len(s) for s in self._index.series.values())

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.upper() in self._index.series

    def bars(self, symbol: str) -> tuple[Bar, ...]:
        """Full date-ordered series for ``symbol`` (empty if unknown)."""
        return self._index.series.get(symbol.upper(), ())

    def get(self, symbol: str, on: date) -> Bar | None:
        """Bar for an exact (symbol, date), or None if there is none."""
        symbol = symbol.upper()
        position = self._index.positions.get(symbol, {}).get(on)
        if position is None:
            return None
        return self._index.series[symbol][position]

    def window(self, symbol: str, end: date, length: int) -> list[Bar]:
        """Up to ``length`` most recent bars dated on or before ``end``.

        A short (or empty) result means insufficient history; callers check
        the length themselves.

        :param symbol: Symbol to query.
        :param end: Inclusive end date of the window.
        :param length: Maximum number of bars.
        :returns: Date-ordered bars, oldest first.
        """
        if length <= 0:
            return []
        symbol = symbol.upper()
        dates = self._index.dates.get(symbol)
        if not dates:
            return []
        stop = bisect_right(dates, end)
        start = max(0, stop - length)
        return list(self._index.series[symbol][start:stop])

    def bars_after(self, symbol: str, after: date, count: int) -> list[Bar]:
        """Up to ``count`` bars dated strictly after ``after``, oldest first."""
        symbol = symbol.upper()
        dates = self._index.dates.get(symbol)
        if not dates or count <= 0:
            return []
        start = bisect_right(dates, after)
        return list(self._index.series[symbol][start : start + count])

    def between(self, symbol: str, start: date, end: date) -> list[Bar]:
        """Bars with ``start <= date <= end``."""
        symbol = symbol.upper()
        dates = self._index.dates.get(symbol)
        if not dates:
            return []
        lo = bisect_left(dates, start)
        hi = bisect_right(dates, end)
        return list(self._index.series[symbol][lo:hi])

    def available_dates(self, symbol: str) -> list[date]:
        """Sorted session dates for ``symbol`` (empty if unknown)."""
        return list(self._index.dates.get(symbol.upper(), []))

    def latest_date(self) -> date | None:
        """Most recent date across all symbols."""
        latest = [d[-1] for d in self._index.dates.values() if d]
        return max(latest) if latest else None
