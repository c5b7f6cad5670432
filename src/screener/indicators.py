"""Technical indicator library.

All functions are pure and deterministic. Series functions return a numpy
array aligned with the input, with ``NaN`` where the indicator is undefined.
Scalar functions return ``None`` when the input window is shorter than the
indicator needs; callers branch on that before using the value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from numpy.typing import ArrayLike, NDArray

from screener.types import Bar

FloatArray = NDArray[np.float64]


def _as_array(values: ArrayLike) -> FloatArray:
    return np.asarray(values, dtype=np.float64)


def _check_period(period: int) -> None:
    if period < 1:
        raise ValueError(f"period must be >= 1, got {period}")


def _ohlc(bars: Sequence[Bar]) -> tuple[FloatArray, FloatArray, FloatArray]:
    highs = _as_array([b.high for b in bars])
    lows = _as_array([b.low for b in bars])
    closes = _as_array([b.close for b in bars])
    return highs, lows, closes


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------


def sma(values: ArrayLike, period: int) -> FloatArray:
    """Simple moving average.

    :param values: Price series, oldest first.
    :param period: Averaging period.
    :returns: Array aligned with ``values``; ``NaN`` for indices below ``period - 1``.
    """
    _check_period(period)
    prices = _as_array(values)
    out = np.full(prices.shape, np.nan)
    if len(prices) >= period:
        out[period - 1 :] = sliding_window_view(prices, period).mean(axis=1)
    return out


def ema(values: ArrayLike, period: int) -> FloatArray:
    """Exponential moving average seeded with the first value.

    ``ema[i] = ema[i-1] + k * (price[i] - ema[i-1])`` with ``k = 2 / (period + 1)``.

    :param values: Price series, oldest first.
    :param period: Smoothing period.
    :returns: Array aligned with ``values`` (empty for empty input).
    """
    _check_period(period)
    prices = _as_array(values)
    out = np.empty(prices.shape)
    if len(prices) == 0:
        return out
    k = 2.0 / (period + 1)
    out[0] = prices[0]
    for i in range(1, len(prices)):
        out[i] = out[i - 1] + k * (prices[i] - out[i - 1])
    return out


@dataclass(frozen=True)
class MACD:
    """MACD line, signal line and histogram, aligned with the input series."""

    macd_line: FloatArray
    signal_line: FloatArray
    histogram: FloatArray

    @property
    def last_histogram(self) -> float:
        return float(self.histogram[-1])


def macd(
    values: ArrayLike,
    fast: int = 12,
    slow: int = 26,
    signal: int = 9,
) -> MACD | None:
    """Moving Average Convergence Divergence.

    :param values: Close series, oldest first.
    :param fast: Fast EMA period.
    :param slow: Slow EMA period.
    :param signal: Signal line EMA period.
    :returns: MACD arrays, or None for fewer than two values.
    """
    prices = _as_array(values)
    if len(prices) < 2:
        return None
    macd_line = ema(prices, fast) - ema(prices, slow)
    signal_line = ema(macd_line, signal)
    return MACD(
        macd_line=macd_line,
        signal_line=signal_line,
        histogram=macd_line - signal_line,
    )


# ---------------------------------------------------------------------------
# Oscillators
# ---------------------------------------------------------------------------


def rsi(closes: ArrayLike, period: int = 14) -> float | None:
    """Relative Strength Index with Wilder smoothing.

    The first average gain/loss is the mean over the first ``period``
    changes; later changes are folded in as ``(avg * (period - 1) + x) / period``.
    Zero average loss saturates at 100.

    :param closes: Close series, oldest first.
    :param period: RSI period.
    :returns: RSI of the last close, or None for fewer than ``period + 1`` closes.
    """
    _check_period(period)
    prices = _as_array(closes)
    if len(prices) < period + 1:
        return None

    changes = np.diff(prices)
    gains = np.clip(changes, 0, None)
    losses = np.clip(-changes, 0, None)

    avg_gain = float(gains[:period].mean())
    avg_loss = float(losses[:period].mean())
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period

    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


# ---------------------------------------------------------------------------
# Volatility
# ---------------------------------------------------------------------------


def true_range(bars: Sequence[Bar]) -> FloatArray:
    """True range of each bar after the first.

    :returns: Array of length ``len(bars) - 1`` (empty for fewer than two bars).
    """
    if len(bars) < 2:
        return np.empty(0)
    highs, lows, closes = _ohlc(bars)
    prev_close = closes[:-1]
    return np.maximum.reduce(
        [
            highs[1:] - lows[1:],
            np.abs(highs[1:] - prev_close),
            np.abs(lows[1:] - prev_close),
        ]
    )


def atr(bars: Sequence[Bar], period: int = 14) -> float | None:
    """Average True Range: mean of the last ``period`` true ranges.

    :param bars: OHLC window, oldest first.
    :param period: Number of true ranges to average.
    :returns: ATR, or None for fewer than ``period + 1`` bars.
    """
    _check_period(period)
    if len(bars) < period + 1:
        return None
    return float(true_range(bars)[-period:].mean())


def atr_ratio(bars: Sequence[Bar], period: int = 14) -> float | None:
    """ATR as a percentage of the last close."""
    value = atr(bars, period)
    if value is None:
        return None
    return value / bars[-1].close * 100


@dataclass(frozen=True)
class BollingerBands:
    """Bollinger Band metrics for the last bar of a window.

    ``percent_b`` is None when the band is flat (upper == lower).
    """

    middle: float
    upper: float
    lower: float
    std_dev: float
    width: float
    percent_b: float | None


def bollinger(
    closes: ArrayLike,
    period: int = 20,
    k: float = 2.0,
    price: float | None = None,
) -> BollingerBands | None:
    """Bollinger Bands over the last ``period`` closes.

    Uses the population standard deviation. ``width`` is
    ``(upper - lower) / middle * 100`` and ``percent_b`` is
    ``(price - lower) / (upper - lower)`` clamped to ``[0, 1]``.

    :param closes: Close series, oldest first.
    :param period: Band period.
    :param k: Standard deviation multiplier.
    :param price: Price to position within the bands (default: last close).
    :returns: Band metrics, or None for fewer than ``period`` closes.
    """
    _check_period(period)
    prices = _as_array(closes)
    if len(prices) < period:
        return None

    window = prices[-period:]
    middle = float(window.mean())
    std_dev = float(window.std())
    upper = middle + k * std_dev
    lower = middle - k * std_dev
    width = (upper - lower) / middle * 100 if middle else 0.0

    current = float(prices[-1]) if price is None else price
    band = upper - lower
    percent_b = None
    if band > 0:
        percent_b = min(1.0, max(0.0, (current - lower) / band))

    return BollingerBands(
        middle=middle,
        upper=upper,
        lower=lower,
        std_dev=std_dev,
        width=width,
        percent_b=percent_b,
    )


# ---------------------------------------------------------------------------
# Trend strength
# ---------------------------------------------------------------------------


def range_strength(closes: ArrayLike, period: int = 14) -> float | None:
    """ADX-like proxy: close range over the last ``period`` closes, as percent of price.

    :param closes: Close series, oldest first.
    :param period: Closes included in the range.
    :returns: ``(max - min) / last * 100``, or None for fewer than ``period + 1`` closes.
    """
    _check_period(period)
    prices = _as_array(closes)
    if len(prices) < period + 1:
        return None
    window = prices[-period:]
    return float((window.max() - window.min()) / prices[-1] * 100)


def simplified_adx(bars: Sequence[Bar], period: int = 14) -> float | None:
    """Single-pass directional index over the last ``period`` bar transitions.

    +DM/-DM and the true range are averaged over the window, +DI/-DI derived
    from them, and DX clamped to ``[15, 85]``.

    :param bars: OHLC window, oldest first.
    :param period: Number of bar transitions.
    :returns: Clamped DX, or None for fewer than ``period + 1`` bars.
    """
    _check_period(period)
    if len(bars) < period + 1:
        return None

    window = bars[-(period + 1) :]
    highs, lows, _ = _ohlc(window)
    average_tr = float(true_range(window).mean())
    if average_tr == 0:
        return 15.0

    up_move = highs[1:] - highs[:-1]
    down_move = lows[:-1] - lows[1:]
    plus_dm = np.where((up_move > down_move) & (up_move > 0), up_move, 0.0).mean()
    minus_dm = np.where((down_move > up_move) & (down_move > 0), down_move, 0.0).mean()

    plus_di = plus_dm / average_tr * 100
    minus_di = minus_dm / average_tr * 100
    di_sum = plus_di + minus_di
    dx = abs(plus_di - minus_di) / di_sum * 100 if di_sum > 0 else 0.0
    return float(min(85.0, max(15.0, dx)))
