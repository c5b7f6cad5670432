"""Core type definitions for the screener.

All data models use Pydantic BaseModel for automatic validation, JSON
serialization, and better error messages.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Any, NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Type aliases for domain-specific identifiers
Symbol = NewType("Symbol", str)


# ---------------------------------------------------------------------------
# Base Configuration
# ---------------------------------------------------------------------------


class FrozenModel(BaseModel):
    """Base model with frozen (immutable) configuration."""

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class Cadence(str, Enum):
    """Bar granularity a pipeline run operates on."""

    DAILY = "daily"
    WEEKLY = "weekly"


class Signal(str, Enum):
    """Final trade signal derived from the composite score."""

    LONG = "Long"
    NEUTRAL = "Neutral"
    SHORT = "Short"


class Direction(str, Enum):
    """Directional bias implied by a candlestick pattern."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Trend(str, Enum):
    """Prevailing trend from the EMA10/EMA30 comparison."""

    UP = "up"
    DOWN = "down"


class PatternName(str, Enum):
    """Candlestick pattern catalog, plus ``NORMAL`` for scanned bars with no match."""

    HAMMER = "Hammer"
    SHOOTING_STAR = "Shooting Star"
    BULLISH_ENGULFING = "Bullish Engulfing"
    BEARISH_ENGULFING = "Bearish Engulfing"
    PIERCING_PATTERN = "Piercing Pattern"
    DARK_CLOUD_COVER = "Dark Cloud Cover"
    MORNING_STAR = "Morning Star"
    EVENING_STAR = "Evening Star"
    FALLING_WINDOW = "Falling Window"
    DUMPLING_TOP = "Dumpling Top"
    NORMAL = "Normal"


class FactorName(str, Enum):
    """Names of the four factor scores."""

    RELATIVE_STRENGTH = "relativeStrength"
    VOLATILITY = "volatility"
    MOMENTUM = "momentum"
    TREND_STRENGTH = "trendStrength"


class SkipReason(str, Enum):
    """Why a symbol was excluded from a run's results."""

    INSUFFICIENT_HISTORY = "insufficient_history"
    MISSING_BAR = "missing_bar"
    NO_DATA = "no_data"
    CANCELLED = "cancelled"


class Side(str, Enum):
    """Trade direction the factor scores are oriented for."""

    LONG = "long"
    SHORT = "short"


class RunState(str, Enum):
    """Lifecycle state of a pipeline run."""

    IDLE = "idle"
    LOADING = "loading"
    PER_SYMBOL_SCORING = "per_symbol_scoring"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Market Data Types
# ---------------------------------------------------------------------------


class Bar(FrozenModel):
    """One OHLCV observation for a symbol on a trading day.

    Construction enforces the price envelope
    ``low <= min(open, close) <= max(open, close) <= high``.

    :param symbol: Upper-case ticker.
    :param date: Session date (period end date for aggregated bars).
    :param open: Opening price.
    :param high: Highest price during the bar period.
    :param low: Lowest price during the bar period.
    :param close: Closing price.
    :param volume: Shares traded during the bar period.
    :param adjusted_close: Split/dividend adjusted close, if the provider has one.
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    symbol: Symbol
    date: dt.date
    open: float = Field(gt=0)
    high: float = Field(gt=0)
    low: float = Field(gt=0)
    close: float = Field(gt=0)
    volume: int = Field(ge=0)
    adjusted_close: float | None = Field(default=None, gt=0)

    @field_validator("symbol", mode="before")
    @classmethod
    def _normalize_symbol(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().upper()
            if not value:
                raise ValueError("symbol must not be empty")
            if "\ufffd" in value:
                raise ValueError(f"symbol contains undecodable characters: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_price_envelope(self) -> Bar:
        body_low = min(self.open, self.close)
        body_high = max(self.open, self.close)
        if not (self.low <= body_low and body_high <= self.high):
            raise ValueError(
                f"price envelope violated: low={self.low} open={self.open} "
                f"close={self.close} high={self.high}"
            )
        return self


class WeeklyBar(Bar):
    """Bar folded from the daily sessions of one ISO week.

    ``date`` holds the date of the last session in the week.

    :param week_key: ISO week identifier, e.g. ``"2025-W38"``.
    :param period_start: Date of the first session in the week.
    :param session_count: Number of daily bars folded into this one.
    """

    week_key: str
    period_start: dt.date
    session_count: int = Field(ge=1)

    @property
    def period_end_date(self) -> dt.date:
        return self.date


# ---------------------------------------------------------------------------
# Analysis Types
# ---------------------------------------------------------------------------


class Pattern(FrozenModel):
    """Pattern detector output for one scanned bar.

    :param index: Position of the bar in the scanned sequence.
    :param date: Date of the bar.
    :param name: Matched catalog pattern, or ``PatternName.NORMAL``.
    :param direction: Directional bias of the match.
    :param trend: Trend in force when the bar was scanned.
    """

    index: int
    date: dt.date
    name: PatternName
    direction: Direction
    trend: Trend

    @property
    def matched(self) -> bool:
        return self.name is not PatternName.NORMAL


class FactorScore(FrozenModel):
    """One named 0-100 factor score.

    :param factor: Which factor produced the score.
    :param symbol: Scored symbol.
    :param evaluation_date: Date the score applies to.
    :param score: Score clamped to ``[0, 100]``.
    :param details: Indicator values behind the score.
    """

    factor: FactorName
    symbol: Symbol
    evaluation_date: dt.date
    score: float = Field(ge=0, le=100)
    details: dict[str, float | str | None] = Field(default_factory=dict)


class AnalysisResult(FrozenModel):
    """Composite analysis for one symbol on one evaluation date.

    :param symbol: Scored symbol.
    :param evaluation_date: Date the scores apply to.
    :param cadence: Daily or weekly bars.
    :param close: Close of the evaluated bar.
    :param side: Orientation of the scores.
    :param scores: The four factor scores keyed by factor.
    :param final_score: Weighted mean of the factor scores.
    :param final_signal: Signal classified from ``final_score``.
    :param forward_prices: Close N periods after the evaluation date, None when absent.
    :param pattern: Candlestick pattern on the evaluated bar, if scanned.
    :param computed_at: UTC timestamp of the computation.
    """

    symbol: Symbol
    evaluation_date: dt.date
    cadence: Cadence = Cadence.DAILY
    close: float
    side: Side = Side.LONG
    scores: dict[FactorName, FactorScore]
    final_score: float
    final_signal: Signal
    forward_prices: dict[int, float | None] = Field(default_factory=dict)
    pattern: Pattern | None = None
    computed_at: dt.datetime

    @property
    def relative_strength(self) -> float:
        return self.scores[FactorName.RELATIVE_STRENGTH].score

    @property
    def volatility(self) -> float:
        return self.scores[FactorName.VOLATILITY].score

    @property
    def momentum(self) -> float:
        return self.scores[FactorName.MOMENTUM].score

    @property
    def trend_strength(self) -> float:
        return self.scores[FactorName.TREND_STRENGTH].score

    def to_record(self) -> dict[str, Any]:
        """Flatten into a JSON-ready record keyed by ``(symbol, evaluationDate)``.

        :returns: Mapping with factor scores, final score/signal and forward prices.
        """
        record: dict[str, Any] = {
            "symbol": str(self.symbol),
            "evaluationDate": self.evaluation_date.isoformat(),
            "cadence": self.cadence.value,
            "side": self.side.value,
            "close": self.close,
        }
        for factor, factor_score in self.scores.items():
            record[f"{factor.value}Score"] = factor_score.score
        record["finalScore"] = self.final_score
        record["finalSignal"] = self.final_signal.value
        for horizon, price in sorted(self.forward_prices.items()):
            record[f"price{horizon}"] = price
        record["pattern"] = self.pattern.name.value if self.pattern else None
        record["computedAt"] = self.computed_at.isoformat()
        return record


class SymbolDiagnostic(FrozenModel):
    """Structured reason a symbol is absent from a run's results.

    :param symbol: Excluded symbol.
    :param reason: Category of the failure.
    :param factor: Factor that could not be computed, when applicable.
    :param detail: Human readable explanation.
    """

    symbol: Symbol
    reason: SkipReason
    factor: FactorName | None = None
    detail: str = ""


class PipelineResult(FrozenModel):
    """Outcome of one pipeline run.

    :param state: Terminal state of the run.
    :param evaluation_date: Date scored.
    :param previous_date: Comparison date used for return-based factors.
    :param cadence: Daily or weekly bars.
    :param results: Scored symbols in universe order.
    :param diagnostics: Excluded symbols with reasons.
    :param cancelled: Whether the run stopped early on request.
    :param started_at: UTC start time.
    :param finished_at: UTC end time.
    """

    state: RunState
    evaluation_date: dt.date
    previous_date: dt.date | None = None
    cadence: Cadence = Cadence.DAILY
    results: list[AnalysisResult] = Field(default_factory=list)
    diagnostics: list[SymbolDiagnostic] = Field(default_factory=list)
    cancelled: bool = False
    started_at: dt.datetime
    finished_at: dt.datetime

    def excluded_symbols(self) -> list[Symbol]:
        """Symbols with at least one diagnostic, in first-seen order."""
        seen: dict[Symbol, None] = {}
        for diagnostic in self.diagnostics:
            seen.setdefault(diagnostic.symbol, None)
        return list(seen)

    def result_for(self, symbol: str) -> AnalysisResult | None:
        wanted = symbol.upper()
        for result in self.results:
            if result.symbol == wanted:
                return result
        return None

    def summary_table(self) -> str:
        """Generate a formatted summary table of results.

        :returns: Formatted string table, best final score first.
        """
        lines = [
            "=" * 78,
            f"{'Symbol':<10} {'RS':>7} {'Vol':>7} {'Mom':>7} {'Trend':>7} "
            f"{'Final':>8} {'Signal':>9} {'Pattern':>16}",
            "-" * 78,
        ]

        for r in sorted(self.results, key=lambda x: x.final_score, reverse=True):
            pattern = r.pattern.name.value if r.pattern else "-"
            lines.append(
                f"{r.symbol:<10} {r.relative_strength:>7.1f} {r.volatility:>7.1f} "
                f"{r.momentum:>7.1f} {r.trend_strength:>7.1f} {r.final_score:>8.2f} "
                f"{r.final_signal.value:>9} {pattern:>16}"
            )

        lines.append("=" * 78)

        if self.diagnostics:
            lines.append(f"Excluded: {len(self.excluded_symbols())} symbols")
            for d in self.diagnostics:
                factor = f" [{d.factor.value}]" if d.factor else ""
                lines.append(f"  {d.symbol:<10} {d.reason.value}{factor} {d.detail}")

        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Configuration Types
# ---------------------------------------------------------------------------


class ScoringConfig(FrozenModel):
    """Thresholds and windows for the four factor scorers.

    :param rs_multiplier: Points per percentage point of return differential.
    :param rs_epsilon: Benchmark returns below this magnitude use sentinel ratios.
    :param atr_period: ATR averaging period.
    :param bb_period: Bollinger Band period.
    :param bb_k: Bollinger Band standard deviation multiplier.
    :param atr_healthy_band: ATR ratio (percent) band rewarded for long setups.
    :param percent_b_band: %b band rewarded for long setups.
    :param volatility_weights: Weights of the ATR, band width and %b components.
    :param volatility_min_bars: Bars required by the volatility scorer.
    :param fast_sma: Fast SMA period for the momentum crossover.
    :param slow_sma: Slow SMA period for the momentum crossover.
    :param crossover_points: Points added or removed for a crossover.
    :param histogram_points: Points added or removed for the MACD histogram sign.
    :param momentum_min_bars: Bars required by the momentum scorer.
    :param trend_method: ``"range"`` (close dispersion) or ``"directional"`` (simplified ADX).
    :param trend_period: Lookback for the trend strength proxy.
    :param trend_weak_threshold: Proxy value at which a trend counts as moderate.
    :param trend_strong_threshold: Proxy value at which a trend counts as strong.
    :param trend_min_bars: Bars required by the trend strength scorer.
    :param long_threshold: Final score at or above which the signal is Long.
    :param short_threshold: Final score at or below which the signal is Short.
    :param weights: Per-factor weights for the final score (unweighted mean by default).
    :param side: Orientation of the scores; on the short side a high score
        favours a short entry and the signal thresholds are mirrored.
    """

    rs_multiplier: float = 2.0
    rs_epsilon: float = 0.001

    atr_period: int = Field(default=14, ge=1)
    bb_period: int = Field(default=20, ge=2)
    bb_k: float = 2.0
    atr_healthy_band: tuple[float, float] = (2.0, 5.0)
    percent_b_band: tuple[float, float] = (0.2, 0.3)
    volatility_weights: tuple[float, float, float] = (0.4, 0.3, 0.3)
    volatility_min_bars: int = Field(default=21, ge=2)

    fast_sma: int = Field(default=3, ge=1)
    slow_sma: int = Field(default=12, ge=2)
    macd_fast: int = 12
    macd_slow: int = 26
    macd_signal: int = 9
    crossover_points: float = 25.0
    histogram_points: float = 15.0
    momentum_min_bars: int = Field(default=15, ge=2)

    trend_method: str = "range"
    trend_period: int = Field(default=14, ge=2)
    trend_weak_threshold: float = 15.0
    trend_strong_threshold: float = 25.0
    trend_min_bars: int = Field(default=15, ge=2)

    long_threshold: float = 70.0
    short_threshold: float = 30.0
    weights: dict[FactorName, float] = Field(
        default_factory=lambda: {factor: 1.0 for factor in FactorName}
    )
    side: Side = Side.LONG

    @model_validator(mode="after")
    def _check_thresholds(self) -> ScoringConfig:
        if self.short_threshold >= self.long_threshold:
            raise ValueError("short_threshold must be below long_threshold")
        if self.fast_sma >= self.slow_sma:
            raise ValueError("fast_sma must be shorter than slow_sma")
        if self.trend_method not in ("range", "directional"):
            raise ValueError(f"unknown trend_method '{self.trend_method}'")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("factor weights must be non-negative")
        if sum(self.weights.get(factor, 1.0) for factor in FactorName) <= 0:
            raise ValueError("at least one factor weight must be positive")
        return self


class PatternConfig(FrozenModel):
    """Filters and tunables for candlestick pattern detection.

    :param volume_threshold: Minimum volume of the anchor bar.
    :param min_price: Lower bound of the price band (active when both bounds > 0).
    :param max_price: Upper bound of the price band.
    :param min_bars: Bars required before the first bar is scanned.
    :param falling_window_gap: Minimum gap below the prior low, as a fraction.
    :param dumpling_window: Bars in the Dumpling Top window.
    :param dumpling_trend_bars: Bars of prior uptrend required by Dumpling Top.
    :param dumpling_max_rebounds: Non-declining closes tolerated after the peak.
    """

    volume_threshold: float = Field(default=0.0, ge=0)
    min_price: float = 0.0
    max_price: float = 0.0
    min_bars: int = Field(default=30, ge=3)
    falling_window_gap: float = 0.005
    dumpling_window: int = Field(default=20, ge=8)
    dumpling_trend_bars: int = Field(default=10, ge=2)
    dumpling_max_rebounds: int = Field(default=0, ge=0)

    @property
    def price_band_active(self) -> bool:
        return self.min_price > 0 and self.max_price > 0


class PipelineConfig(FrozenModel):
    """Settings for one scoring run.

    :param benchmark: Benchmark symbol for relative strength.
    :param cadence: Daily or weekly bars.
    :param lookback: Bars pulled per symbol from the store.
    :param forward_periods: Number of forward price horizons to attach.
    :param max_workers: Worker threads for per-symbol scoring (1 = sequential).
    :param detect_patterns: Attach the evaluated bar's candlestick pattern.
    :param scoring: Factor scorer settings.
    :param patterns: Pattern detector settings.
    """

    benchmark: Symbol = Symbol("SPY")
    cadence: Cadence = Cadence.DAILY
    lookback: int = Field(default=60, ge=2)
    forward_periods: int = Field(default=5, ge=0)
    max_workers: int = Field(default=1, ge=1)
    detect_patterns: bool = True
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    patterns: PatternConfig = Field(default_factory=PatternConfig)

    @field_validator("benchmark", mode="before")
    @classmethod
    def _normalize_benchmark(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class ScanConfig(FrozenModel):
    """Configuration for the scan command.

    :param archive: Path to the bar archive (CSV or JSON).
    :param archive_format: ``"csv"`` or ``"json"``; inferred from the suffix if None.
    :param universe: Symbols to score.
    :param evaluation_date: Date to score.
    :param output: Optional JSON file for the results.
    :param log_level: Logging level name.
    :param pipeline: Pipeline settings.
    """

    archive: str
    archive_format: str | None = None
    universe: list[Symbol]
    evaluation_date: dt.date
    output: str | None = None
    log_level: str = "INFO"
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
