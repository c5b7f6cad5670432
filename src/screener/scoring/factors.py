"""Factor scorers.

Each scorer reduces indicator output for one symbol to a 0-100 score around a
neutral base of 50. A scorer that lacks the history it needs raises
:class:`~screener.exceptions.InsufficientHistoryError` instead of returning
a midpoint score; the pipeline records that as a per-symbol skip.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Sequence

from screener import indicators
from screener.exceptions import InsufficientHistoryError, MissingBarError
from screener.types import (Bar, Cadence, FactorName, FactorScore, ScoringConfig,
                            Side, Symbol)

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 50.0


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class ScoringContext:
    """Inputs shared by all scorers for one symbol on one evaluation date.

    :param symbol: Symbol being scored.
    :param evaluation_date: Date being scored; ``bars[-1]`` is the evaluated bar.
    :param bars: Symbol window, oldest first.
    :param benchmark: Benchmark window whose last bar covers the same period.
    :param previous_date: Comparison date for returns, or None to use the
        preceding bar.
    :param cadence: Daily or weekly bars.
    """

    symbol: Symbol
    evaluation_date: date
    bars: Sequence[Bar]
    benchmark: Sequence[Bar] = ()
    previous_date: date | None = None
    cadence: Cadence = Cadence.DAILY

    @property
    def closes(self) -> list[float]:
        return [b.close for b in self.bars]


class FactorScorer(ABC):
    """Abstract base class for factor scorers.

    Subclasses set ``factor``, report ``min_bars`` and implement ``score``.

    :param config: Scoring thresholds; defaults apply when omitted.
    """

    factor: FactorName

    def __init__(self, config: ScoringConfig | None = None) -> None:
        self.config = config or ScoringConfig()

    @property
    @abstractmethod
    def min_bars(self) -> int:
        """Bars the scorer needs in ``context.bars``."""
        ...

    @abstractmethod
    def score(self, context: ScoringContext) -> FactorScore:
        """Score one symbol.

        :param context: Symbol window and comparison data.
        :returns: Factor score clamped to ``[0, 100]``.
        :raises InsufficientHistoryError: If the window is too short.
        :raises MissingBarError: If a required bar is absent.
        """
        ...

    def _require_history(self, context: ScoringContext) -> None:
        if len(context.bars) < self.min_bars:
            raise InsufficientHistoryError(
                context.symbol, self.min_bars, len(context.bars), self.factor
            )

    def _result(
        self,
        context: ScoringContext,
        value: float,
        details: dict[str, float | str | None],
    ) -> FactorScore:
        return FactorScore(
            factor=self.factor,
            symbol=context.symbol,
            evaluation_date=context.evaluation_date,
            score=round(clamp(value), 2),
            details=details,
        )


# ---------------------------------------------------------------------------
# Relative strength
# ---------------------------------------------------------------------------


def percent_return(current: float, previous: float) -> float:
    return (current - previous) / previous * 100


def relative_strength_score(
    stock_return: float, benchmark_return: float, multiplier: float = 2.0
) -> float:
    """``clamp(50 + multiplier * (stock_return - benchmark_return), 0, 100)``."""
    return clamp(NEUTRAL_SCORE + multiplier * (stock_return - benchmark_return))


def relative_strength_ratio(
    stock_return: float, benchmark_return: float, epsilon: float = 0.001
) -> float:
    """Growth ratio ``(1 + s/100) / (1 + b/100)``.

    A benchmark return within ``epsilon`` of zero yields a sentinel ratio
    instead: 1 when the stock is flat too, 2 when it rose, 0.5 when it fell.
    """
    if abs(benchmark_return) < epsilon:
        if stock_return > 0:
            return 2.0
        if stock_return < 0:
            return 0.5
        return 1.0
    return (1 + stock_return / 100) / (1 + benchmark_return / 100)


def same_period(first: date, second: date, cadence: Cadence) -> bool:
    if cadence is Cadence.WEEKLY:
        return first.isocalendar()[:2] == second.isocalendar()[:2]
    return first == second


def _comparison_bar(earlier: Sequence[Bar], previous_date: date | None) -> Bar | None:
    """Bar to compare the evaluated bar against.

    Prefers the bar on ``previous_date``; a data gap (or no ``previous_date``)
    falls back to the latest earlier bar.
    """
    if not earlier:
        return None
    if previous_date is not None:
        for bar in reversed(earlier):
            if bar.date == previous_date:
                return bar
            if bar.date < previous_date:
                break
        logger.debug(
            "%s: no bar on %s, comparing against %s",
            earlier[-1].symbol,
            previous_date,
            earlier[-1].date,
        )
    return earlier[-1]


class RelativeStrengthScorer(FactorScorer):
    """One-period return differential against the benchmark."""

    factor = FactorName.RELATIVE_STRENGTH

    @property
    def min_bars(self) -> int:
        return 2

    def _points(self, stock_return: float, benchmark_return: float) -> float:
        return relative_strength_score(
            stock_return, benchmark_return, self.config.rs_multiplier
        )

    def score(self, context: ScoringContext) -> FactorScore:
        self._require_history(context)

        current = context.bars[-1]
        previous = _comparison_bar(context.bars[:-1], context.previous_date)
        if previous is None:
            raise InsufficientHistoryError(context.symbol, 2, 1, self.factor)

        benchmark = context.benchmark
        if not benchmark or not same_period(
            benchmark[-1].date, current.date, context.cadence
        ):
            raise MissingBarError(context.symbol, context.evaluation_date, self.factor)
        bench_current = benchmark[-1]
        bench_previous = _comparison_bar(benchmark[:-1], context.previous_date)
        if bench_previous is None:
            raise MissingBarError(context.symbol, context.evaluation_date, self.factor)

        stock_return = percent_return(current.close, previous.close)
        benchmark_return = percent_return(bench_current.close, bench_previous.close)

        value = self._points(stock_return, benchmark_return)
        return self._result(
            context,
            value,
            {
                "stock_return": stock_return,
                "benchmark_return": benchmark_return,
                "ratio": relative_strength_ratio(
                    stock_return, benchmark_return, self.config.rs_epsilon
                ),
                "compared_to": previous.date.isoformat(),
            },
        )


# ---------------------------------------------------------------------------
# Volatility
# ---------------------------------------------------------------------------


def atr_component(ratio: float, band: tuple[float, float] = (2.0, 5.0)) -> float:
    """Score the ATR ratio: best inside ``band``, decaying on either side."""
    low, high = band
    if low <= ratio <= high:
        return 80.0
    if low - 1 <= ratio < low:
        return 50.0 + (ratio - (low - 1)) * 30
    if high < ratio <= 2 * high:
        return 80.0 - (ratio - high) * 10
    if ratio < low - 1:
        return 20.0
    return 10.0


def width_component(width: float) -> float:
    """Score the Bollinger band width (percent of the middle band)."""
    if 3 <= width <= 6:
        return 70.0
    if 2 <= width < 3:
        return 40.0 + (width - 2) * 30
    if 6 < width <= 12:
        return 70.0 - (width - 6) * 6.67
    if width > 12:
        return 35.0
    return 30.0


def percent_b_component(
    percent_b: float | None, band: tuple[float, float] = (0.2, 0.3)
) -> float:
    """Score %b: a pullback toward the lower band is the best long setup."""
    if percent_b is None:
        return NEUTRAL_SCORE
    low, high = band
    if low <= percent_b <= high:
        return 90.0
    if percent_b < low:
        return 85.0
    if percent_b <= 0.4:
        return 75.0
    if percent_b <= 0.6:
        return 50.0
    if percent_b <= 0.7:
        return 30.0
    return 20.0


class VolatilityScorer(FactorScorer):
    """ATR ratio and Bollinger positioning."""

    factor = FactorName.VOLATILITY

    @property
    def min_bars(self) -> int:
        return max(
            self.config.volatility_min_bars,
            self.config.atr_period + 1,
            self.config.bb_period,
        )

    def _points(self, components: tuple[float, float, float]) -> float:
        return sum(w * c for w, c in zip(self.config.volatility_weights, components))

    def score(self, context: ScoringContext) -> FactorScore:
        self._require_history(context)
        cfg = self.config

        ratio = indicators.atr_ratio(context.bars, cfg.atr_period)
        bands = indicators.bollinger(context.closes, cfg.bb_period, cfg.bb_k)
        if ratio is None or bands is None:
            raise InsufficientHistoryError(
                context.symbol, self.min_bars, len(context.bars), self.factor
            )

        components = (
            atr_component(ratio, cfg.atr_healthy_band),
            width_component(bands.width),
            percent_b_component(bands.percent_b, cfg.percent_b_band),
        )
        value = self._points(components)

        return self._result(
            context,
            value,
            {
                "atr_ratio": ratio,
                "bb_width": bands.width,
                "bb_position": bands.percent_b,
                "bb_upper": bands.upper,
                "bb_lower": bands.lower,
            },
        )


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------


def crossover_type(
    fast_previous: float, slow_previous: float, fast: float, slow: float
) -> str:
    """Classify the fast/slow moving-average transition as Bullish, Bearish or None."""
    if fast_previous <= slow_previous and fast > slow:
        return "Bullish"
    if fast_previous >= slow_previous and fast < slow:
        return "Bearish"
    return "None"


class MomentumScorer(FactorScorer):
    """SMA crossover state plus MACD histogram sign."""

    factor = FactorName.MOMENTUM

    @property
    def min_bars(self) -> int:
        return max(self.config.momentum_min_bars, self.config.slow_sma + 1)

    def _points(self, cross: str, histogram: float) -> float:
        value = NEUTRAL_SCORE
        if cross == "Bullish":
            value += self.config.crossover_points
        elif cross == "Bearish":
            value -= self.config.crossover_points
        if histogram > 0:
            value += self.config.histogram_points
        elif histogram < 0:
            value -= self.config.histogram_points
        return value

    def score(self, context: ScoringContext) -> FactorScore:
        self._require_history(context)
        cfg = self.config
        closes = context.closes

        fast = indicators.sma(closes, cfg.fast_sma)
        slow = indicators.sma(closes, cfg.slow_sma)
        result = indicators.macd(closes, cfg.macd_fast, cfg.macd_slow, cfg.macd_signal)
        if result is None:
            raise InsufficientHistoryError(
                context.symbol, self.min_bars, len(closes), self.factor
            )

        cross = crossover_type(
            float(fast[-2]), float(slow[-2]), float(fast[-1]), float(slow[-1])
        )
        histogram = result.last_histogram

        return self._result(
            context,
            self._points(cross, histogram),
            {
                "sma_fast": float(fast[-1]),
                "sma_fast_previous": float(fast[-2]),
                "sma_slow": float(slow[-1]),
                "sma_slow_previous": float(slow[-2]),
                "crossover": cross,
                "macd_histogram": histogram,
            },
        )


# ---------------------------------------------------------------------------
# Trend strength
# ---------------------------------------------------------------------------


def adx_bracket_score(adx: float) -> float:
    """Score a directional-index value by strength bracket."""
    if adx < 20:
        return 25.0
    if adx < 25:
        return 45.0
    if adx <= 50:
        return 85.0
    if adx <= 75:
        return 95.0
    return 75.0


RANGE_STRENGTH_POINTS = {"strong": 20.0, "moderate": 10.0, "weak": -10.0}


class TrendStrengthScorer(FactorScorer):
    """ADX-like trend strength.

    The ``range`` method measures close dispersion relative to price and
    moves the neutral base by +20 (strong), +10 (moderate) or -10 (weak).
    The ``directional`` method scores a simplified ADX by bracket.
    """

    factor = FactorName.TREND_STRENGTH

    @property
    def min_bars(self) -> int:
        return max(self.config.trend_min_bars, self.config.trend_period + 1)

    def _strength(self, value: float) -> str:
        if value >= self.config.trend_strong_threshold:
            return "strong"
        if value >= self.config.trend_weak_threshold:
            return "moderate"
        return "weak"

    def _points(self, value: float, strength: str) -> float:
        if self.config.trend_method == "directional":
            return adx_bracket_score(value)
        return NEUTRAL_SCORE + RANGE_STRENGTH_POINTS[strength]

    def score(self, context: ScoringContext) -> FactorScore:
        self._require_history(context)
        cfg = self.config

        if cfg.trend_method == "directional":
            value = indicators.simplified_adx(context.bars, cfg.trend_period)
        else:
            value = indicators.range_strength(context.closes, cfg.trend_period)
        if value is None:
            raise InsufficientHistoryError(
                context.symbol, self.min_bars, len(context.bars), self.factor
            )

        strength = self._strength(value)
        return self._result(
            context,
            self._points(value, strength),
            {"method": cfg.trend_method, "adx": value, "strength": strength},
        )


# ---------------------------------------------------------------------------
# Short side
# ---------------------------------------------------------------------------

# MACD histogram magnitudes treated as flat, and as drift without a crossover
HISTOGRAM_FLAT = 0.01
HISTOGRAM_DRIFT = 0.02


def short_adx_bracket_score(adx: float) -> float:
    """Score a directional-index value for short entries.

    Ranging markets score best; strong trends score worst and extreme
    readings sit in between.
    """
    if adx < 20:
        return 85.0
    if adx < 25:
        return 75.0
    if adx <= 50:
        return 25.0
    if adx <= 75:
        return 15.0
    return 35.0


def short_momentum_score(cross: str, histogram: float) -> float:
    """Score the crossover and MACD histogram for short entries."""
    if cross == "Bearish":
        if histogram < 0:
            return 95.0
        if abs(histogram) < HISTOGRAM_FLAT:
            return 75.0
        return 55.0
    if cross == "Bullish":
        if histogram > 0:
            return 15.0
        if abs(histogram) < HISTOGRAM_FLAT:
            return 25.0
        return 40.0
    if histogram < -HISTOGRAM_DRIFT:
        return 70.0
    if histogram > HISTOGRAM_DRIFT:
        return 30.0
    return NEUTRAL_SCORE


class ShortRelativeStrengthScorer(RelativeStrengthScorer):
    """Rewards underperforming the benchmark."""

    def _points(self, stock_return: float, benchmark_return: float) -> float:
        return clamp(
            NEUTRAL_SCORE - self.config.rs_multiplier * (stock_return - benchmark_return)
        )


class ShortVolatilityScorer(VolatilityScorer):
    """Complement of the long volatility score."""

    def _points(self, components: tuple[float, float, float]) -> float:
        return 100.0 - super()._points(components)


class ShortMomentumScorer(MomentumScorer):
    """Bearish crossovers and a negative MACD histogram score high."""

    def _points(self, cross: str, histogram: float) -> float:
        return short_momentum_score(cross, histogram)


class ShortTrendStrengthScorer(TrendStrengthScorer):
    """Trend strength scored for short entries: weak trends score high."""

    def _points(self, value: float, strength: str) -> float:
        if self.config.trend_method == "directional":
            return short_adx_bracket_score(value)
        return NEUTRAL_SCORE - RANGE_STRENGTH_POINTS[strength]


def default_scorers(config: ScoringConfig | None = None) -> list[FactorScorer]:
    """The four factor scorers for the configured side, sharing one configuration."""
    config = config or ScoringConfig()
    if config.side is Side.SHORT:
        return [
            ShortRelativeStrengthScorer(config),
            ShortVolatilityScorer(config),
            ShortMomentumScorer(config),
            ShortTrendStrengthScorer(config),
        ]
    return [
        RelativeStrengthScorer(config),
        VolatilityScorer(config),
        MomentumScorer(config),
        TrendStrengthScorer(config),
    ]
