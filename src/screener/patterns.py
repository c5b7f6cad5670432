"""Candlestick pattern detection.

Each scanned bar gets exactly one label. Rules are evaluated in a fixed
precedence order and the first match wins, because several patterns can be
satisfied by the same geometry (a hammer that also engulfs its predecessor,
for instance). The prevailing trend is ``up`` when EMA10 is above EMA30 at
that bar, ``down`` otherwise.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from screener.indicators import ema
from screener.types import Bar, Direction, Pattern, PatternConfig, PatternName, Trend

logger = logging.getLogger(__name__)

TREND_FAST = 10
TREND_SLOW = 30

Rule = Callable[[Sequence[Bar], int, PatternConfig], bool]


def _body(bar: Bar) -> float:
    return abs(bar.close - bar.open)


def _upper_shadow(bar: Bar) -> float:
    return bar.high - max(bar.open, bar.close)


def _lower_shadow(bar: Bar) -> float:
    return min(bar.open, bar.close) - bar.low


def _bullish(bar: Bar) -> bool:
    return bar.close > bar.open


def _bearish(bar: Bar) -> bool:
    return bar.close < bar.open


def _midpoint(bar: Bar) -> float:
    return (bar.open + bar.close) / 2


# ---------------------------------------------------------------------------
# Single-bar rules
# ---------------------------------------------------------------------------


def is_hammer(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    bar = bars[i]
    body = _body(bar)
    tolerance = 0.1 * body
    return (
        bar.high > bar.low
        and _lower_shadow(bar) >= 2 * body
        and _upper_shadow(bar) <= tolerance
        and (abs(bar.close - bar.high) <= tolerance or abs(bar.open - bar.high) <= tolerance)
    )


def is_shooting_star(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    bar = bars[i]
    body = _body(bar)
    tolerance = 0.1 * body
    return (
        bar.high > bar.low
        and _upper_shadow(bar) >= 2 * body
        and _lower_shadow(bar) <= tolerance
        and (abs(bar.close - bar.low) <= tolerance or abs(bar.open - bar.low) <= tolerance)
    )


# ---------------------------------------------------------------------------
# Two-bar rules
# ---------------------------------------------------------------------------


def is_bullish_engulfing(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    prev, cur = bars[i - 1], bars[i]
    return (
        _bearish(prev)
        and _bullish(cur)
        and cur.open < prev.close
        and cur.close > prev.open
    )


def is_bearish_engulfing(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    prev, cur = bars[i - 1], bars[i]
    return (
        _bullish(prev)
        and _bearish(cur)
        and cur.open > prev.close
        and cur.close < prev.open
    )


def is_piercing_pattern(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    prev, cur = bars[i - 1], bars[i]
    return (
        _bearish(prev)
        and cur.open < prev.low
        and cur.close > _midpoint(prev)
        and cur.close < prev.open
    )


def is_dark_cloud_cover(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    prev, cur = bars[i - 1], bars[i]
    return (
        _bullish(prev)
        and cur.open > prev.high
        and cur.close < _midpoint(prev)
        and cur.close > prev.open
    )


def is_falling_window(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    prev, cur = bars[i - 1], bars[i]
    return (
        cur.high < prev.low
        and cur.open < prev.low
        and prev.close > prev.low
        and (prev.low - cur.high) / prev.low >= config.falling_window_gap
    )


# ---------------------------------------------------------------------------
# Three-bar rules
# ---------------------------------------------------------------------------


def is_morning_star(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    first, second, third = bars[i - 2], bars[i - 1], bars[i]
    first_body = _body(first)
    return (
        _bearish(first)
        and first_body > 0.01
        and _body(second) < 0.5 * first_body
        and second.high < first.close
        and _bullish(third)
        and third.close >= _midpoint(first)
    )


def is_evening_star(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    first, second, third = bars[i - 2], bars[i - 1], bars[i]
    first_body = _body(first)
    return (
        _bullish(first)
        and first_body > 0.01
        and _body(second) < 0.5 * first_body
        and second.low > first.close
        and _bearish(third)
        and third.close <= _midpoint(first)
    )


# ---------------------------------------------------------------------------
# Multi-bar rules
# ---------------------------------------------------------------------------


def _rising_closes(bars: Sequence[Bar], end: int, length: int) -> bool:
    start = end - length + 1
    if start < 0:
        return False
    return all(bars[j].close > bars[j - 1].close for j in range(start + 1, end + 1))


def is_dumpling_top(bars: Sequence[Bar], i: int, config: PatternConfig) -> bool:
    """Rounded top: prior uptrend, a single interior peak, then a steady decline.

    The ``dumpling_trend_bars`` closes ending ``dumpling_window`` bars back
    must rise strictly. Within the window ending at ``i`` the highest close
    must sit in the second quarter from the end of the first half, i.e.
    ``i - window/2 < peak < i - window/4``, and every close from two bars
    after the peak onwards must be below the previous close, with at most
    ``dumpling_max_rebounds`` exceptions.
    """
    window = config.dumpling_window
    if i < window or not _rising_closes(bars, i - window, config.dumpling_trend_bars):
        return False

    start = i - window + 1
    peak = start
    for j in range(start + 1, i + 1):
        if bars[j].close > bars[peak].close:
            peak = j

    if not (i - window / 2 < peak < i - window / 4):
        return False

    rebounds = sum(
        1 for j in range(peak + 2, i + 1) if bars[j].close >= bars[j - 1].close
    )
    return rebounds <= config.dumpling_max_rebounds


# Precedence order: first match wins.
CATALOG: tuple[tuple[PatternName, Direction, Trend | None, int, Rule], ...] = (
    (PatternName.HAMMER, Direction.BULLISH, Trend.DOWN, 1, is_hammer),
    (PatternName.SHOOTING_STAR, Direction.BEARISH, Trend.UP, 1, is_shooting_star),
    (PatternName.BULLISH_ENGULFING, Direction.BULLISH, Trend.DOWN, 2, is_bullish_engulfing),
    (PatternName.BEARISH_ENGULFING, Direction.BEARISH, Trend.UP, 2, is_bearish_engulfing),
    (PatternName.PIERCING_PATTERN, Direction.BULLISH, Trend.DOWN, 2, is_piercing_pattern),
    (PatternName.DARK_CLOUD_COVER, Direction.BEARISH, Trend.UP, 2, is_dark_cloud_cover),
    (PatternName.MORNING_STAR, Direction.BULLISH, Trend.DOWN, 3, is_morning_star),
    (PatternName.EVENING_STAR, Direction.BEARISH, Trend.UP, 3, is_evening_star),
    (PatternName.FALLING_WINDOW, Direction.BEARISH, None, 2, is_falling_window),
    (PatternName.DUMPLING_TOP, Direction.BEARISH, None, 1, is_dumpling_top),
)


class PatternDetector:
    """Trend-aware candlestick pattern scanner.

    Example usage::

        detector = PatternDetector(PatternConfig(volume_threshold=100_000))
        for pattern in detector.detect(bars):
            if pattern.matched:
                print(pattern.date, pattern.name.value)

    :param config: Volume/price filters and pattern tunables.
    """

    def __init__(self, config: PatternConfig | None = None) -> None:
        self.config = config or PatternConfig()

    def trends(self, bars: Sequence[Bar]) -> list[Trend]:
        """Trend at every bar from the EMA10/EMA30 comparison."""
        closes = [b.close for b in bars]
        fast = ema(closes, TREND_FAST)
        slow = ema(closes, TREND_SLOW)
        return [Trend.UP if f > s else Trend.DOWN for f, s in zip(fast, slow)]

    def _passes_filters(self, bar: Bar) -> bool:
        if bar.volume < self.config.volume_threshold:
            return False
        if self.config.price_band_active:
            return self.config.min_price <= bar.close <= self.config.max_price
        return True

    def classify(self, bars: Sequence[Bar], index: int, trend: Trend) -> Pattern:
        """Label one bar, given the trend in force at that bar.

        :param bars: Full bar sequence, oldest first.
        :param index: Position of the bar to label.
        :param trend: Trend at ``index``.
        :returns: The first matching pattern, or a ``NORMAL`` label.
        """
        bar = bars[index]
        if self._passes_filters(bar):
            for name, direction, required_trend, span, rule in CATALOG:
                if required_trend is not None and trend is not required_trend:
                    continue
                if index < span - 1:
                    continue
                if rule(bars, index, self.config):
                    return Pattern(
                        index=index,
                        date=bar.date,
                        name=name,
                        direction=direction,
                        trend=trend,
                    )
        return Pattern(
            index=index,
            date=bar.date,
            name=PatternName.NORMAL,
            direction=Direction.NEUTRAL,
            trend=trend,
        )

    def detect(self, bars: Sequence[Bar]) -> list[Pattern]:
        """Label every scannable bar in ``bars``.

        Bars before ``min_bars - 1`` are not scanned and do not appear in the
        output; every scanned bar appears exactly once.

        :param bars: Date-ordered bars for one symbol.
        :returns: One pattern per scanned bar, oldest first.
        """
        first = self.config.min_bars - 1
        if len(bars) <= first:
            logger.debug(
                "Pattern scan skipped: %d bars, %d required", len(bars), self.config.min_bars
            )
            return []

        trends = self.trends(bars)
        return [self.classify(bars, i, trends[i]) for i in range(first, len(bars))]

    def detect_latest(self, bars: Sequence[Bar]) -> Pattern | None:
        """Label only the last bar, or None when there is too little history."""
        if len(bars) < self.config.min_bars:
            return None
        trends = self.trends(bars)
        return self.classify(bars, len(bars) - 1, trends[-1])
