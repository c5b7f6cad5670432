"""Multi-factor scoring pipeline.

A run moves through ``IDLE -> LOADING -> PER_SYMBOL_SCORING -> AGGREGATING
-> DONE``. Symbol failures are contained and reported as diagnostics; only a
missing universe or missing benchmark data moves the run to ``FAILED``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Sequence

from screener.data.store import BarStore
from screener.exceptions import (EmptyUniverseError, InsufficientHistoryError,
                                 MissingBarError, NoBenchmarkDataError)
from screener.market_calendar import TradingCalendar, as_date
from screener.patterns import PatternDetector
from screener.scoring import (FactorScorer, ScoringContext, classify_signal,
                              composite_score, default_scorers)
from screener.scoring.factors import same_period
from screener.types import (AnalysisResult, Bar, Cadence, FactorName, FactorScore,
                            PipelineConfig, PipelineResult, RunState, SkipReason,
                            Symbol, SymbolDiagnostic)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RunContext:
    store: BarStore
    evaluation_date: date
    window_end: date
    previous_date: date | None
    benchmark: list[Bar]
    computed_at: datetime


class ScorePipeline:
    """Score a symbol universe on one evaluation date.

    Example usage::

        store = BarStore(read_archive("bars.csv").bars)
        pipeline = ScorePipeline(PipelineConfig(max_workers=4))
        result = pipeline.run(store, ["AAPL", "MSFT"], "2025-09-05")
        print(result.summary_table())

    For weekly scoring pass a store built with
    :func:`screener.weekly.aggregate_store` and ``cadence="weekly"``.

    :param config: Pipeline settings.
    :param calendar: Trading calendar (default: full US holiday catalog).
    :param scorers: Factor scorers (default: the four standard scorers).
    :param detector: Pattern detector (default: built from ``config.patterns``).
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        calendar: TradingCalendar | None = None,
        scorers: list[FactorScorer] | None = None,
        detector: PatternDetector | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.calendar = calendar or TradingCalendar()
        self.scorers = scorers or default_scorers(self.config.scoring)
        self.detector = detector or PatternDetector(self.config.patterns)
        self.state = RunState.IDLE
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Ask an in-flight run to stop before starting its next symbol."""
        self._cancel.set()

    def _transition(self, state: RunState) -> None:
        logger.info("Pipeline state %s -> %s", self.state.value, state.value)
        self.state = state

    def _fail(self, error: Exception) -> Exception:
        self._transition(RunState.FAILED)
        logger.error("Pipeline run failed: %s", error)
        return error

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        store: BarStore,
        universe: Sequence[str],
        evaluation_date: date | str,
    ) -> PipelineResult:
        """Score every symbol in ``universe`` on ``evaluation_date``.

        :param store: Bar store; the run works on a snapshot of it.
        :param universe: Symbols to score, in output order.
        :param evaluation_date: Date to score.
        :returns: Results in universe order plus diagnostics for excluded symbols.
        :raises EmptyUniverseError: If ``universe`` has no symbols.
        :raises NoBenchmarkDataError: If the benchmark has no bar for the period.
        """
        started_at = datetime.now(timezone.utc)
        self._cancel.clear()
        self.state = RunState.IDLE
        self._transition(RunState.LOADING)

        on = as_date(evaluation_date)
        symbols = list(dict.fromkeys(s.strip().upper() for s in universe if s.strip()))
        if not symbols:
            raise self._fail(EmptyUniverseError("Symbol universe is empty"))

        snapshot = store.snapshot()
        cadence = self.config.cadence
        # Weekly bars are dated on their last session, which may fall after `on`
        window_end = on + timedelta(days=6 - on.weekday()) if cadence is Cadence.WEEKLY else on
        benchmark = snapshot.window(self.config.benchmark, window_end, self.config.lookback)
        if not benchmark or not same_period(benchmark[-1].date, on, cadence):
            raise self._fail(
                NoBenchmarkDataError(
                    f"No {cadence.value} bar for benchmark {self.config.benchmark} "
                    f"on {on.isoformat()}"
                )
            )

        previous = self.calendar.previous_trading_day(on) if cadence is Cadence.DAILY else None
        run = _RunContext(
            store=snapshot,
            evaluation_date=on,
            window_end=window_end,
            previous_date=previous,
            benchmark=benchmark,
            computed_at=started_at,
        )

        self._transition(RunState.PER_SYMBOL_SCORING)
        if self.config.max_workers > 1 and len(symbols) > 1:
            outcomes = self._run_parallel(run, symbols)
        else:
            outcomes = self._run_sequential(run, symbols)

        self._transition(RunState.AGGREGATING)
        results: list[AnalysisResult] = []
        diagnostics: list[SymbolDiagnostic] = []
        cancelled = False
        for symbol in symbols:
            outcome = outcomes.get(symbol)
            if outcome is None:
                cancelled = True
                diagnostics.append(
                    SymbolDiagnostic(
                        symbol=Symbol(symbol),
                        reason=SkipReason.CANCELLED,
                        detail="run cancelled before symbol started",
                    )
                )
            elif isinstance(outcome, AnalysisResult):
                results.append(outcome)
            else:
                diagnostics.extend(outcome)

        self._transition(RunState.DONE)
        logger.info(
            "Scored %d of %d symbols on %s (%d diagnostics%s)",
            len(results),
            len(symbols),
            on.isoformat(),
            len(diagnostics),
            ", cancelled" if cancelled else "",
        )
        return PipelineResult(
            state=RunState.DONE,
            evaluation_date=on,
            previous_date=previous,
            cadence=cadence,
            results=results,
            diagnostics=diagnostics,
            cancelled=cancelled,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )

    def _run_sequential(
        self, run: _RunContext, symbols: list[str]
    ) -> dict[str, AnalysisResult | list[SymbolDiagnostic]]:
        """Score symbols one after another."""
        outcomes: dict[str, AnalysisResult | list[SymbolDiagnostic]] = {}
        for symbol in symbols:
            if self._cancel.is_set():
                break
            outcomes[symbol] = self._score_symbol(run, symbol)
        return outcomes

    def _run_parallel(
        self, run: _RunContext, symbols: list[str]
    ) -> dict[str, AnalysisResult | list[SymbolDiagnostic]]:
        """Score symbols on a bounded thread pool; completion order is irrelevant."""

        def task(symbol: str) -> AnalysisResult | list[SymbolDiagnostic] | None:
            if self._cancel.is_set():
                return None
            return self._score_symbol(run, symbol)

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {symbol: executor.submit(task, symbol) for symbol in symbols}

        outcomes: dict[str, AnalysisResult | list[SymbolDiagnostic]] = {}
        for symbol, future in futures.items():
            outcome = future.result()
            if outcome is not None:
                outcomes[symbol] = outcome
        return outcomes

    # ------------------------------------------------------------------
    # Per-symbol scoring
    # ------------------------------------------------------------------

    def _score_symbol(
        self, run: _RunContext, symbol: str
    ) -> AnalysisResult | list[SymbolDiagnostic]:
        """Score one symbol, or explain why it cannot be scored.

        :returns: The analysis result, or one diagnostic per failed factor.
        """
        cadence = self.config.cadence
        window = run.store.window(symbol, run.window_end, self.config.lookback)
        if not window:
            logger.info("Skipping %s: no bars on or before %s", symbol, run.window_end)
            return [
                SymbolDiagnostic(
                    symbol=Symbol(symbol),
                    reason=SkipReason.NO_DATA,
                    detail=f"no bars on or before {run.window_end.isoformat()}",
                )
            ]

        current = window[-1]
        if not same_period(current.date, run.evaluation_date, cadence):
            error = MissingBarError(symbol, run.evaluation_date)
            logger.info("Skipping %s: %s", symbol, error)
            return [
                SymbolDiagnostic(
                    symbol=Symbol(symbol), reason=SkipReason.MISSING_BAR, detail=str(error)
                )
            ]

        context = ScoringContext(
            symbol=Symbol(symbol),
            evaluation_date=current.date,
            bars=window,
            benchmark=run.benchmark,
            previous_date=run.previous_date,
            cadence=cadence,
        )

        scores: dict[FactorName, FactorScore] = {}
        diagnostics: list[SymbolDiagnostic] = []
        for scorer in self.scorers:
            try:
                scores[scorer.factor] = scorer.score(context)
            except InsufficientHistoryError as e:
                diagnostics.append(
                    SymbolDiagnostic(
                        symbol=Symbol(symbol),
                        reason=SkipReason.INSUFFICIENT_HISTORY,
                        factor=scorer.factor,
                        detail=str(e),
                    )
                )
            except MissingBarError as e:
                diagnostics.append(
                    SymbolDiagnostic(
                        symbol=Symbol(symbol),
                        reason=SkipReason.MISSING_BAR,
                        factor=scorer.factor,
                        detail=str(e),
                    )
                )

        if diagnostics:
            logger.info(
                "Skipping %s: %s",
                symbol,
                ", ".join(f"{d.factor.value}={d.reason.value}" for d in diagnostics if d.factor),
            )
            return diagnostics

        final_score = composite_score(scores, self.config.scoring.weights)
        following = run.store.bars_after(symbol, current.date, self.config.forward_periods)
        forward_prices = {
            n: following[n - 1].close if n <= len(following) else None
            for n in range(1, self.config.forward_periods + 1)
        }
        pattern = self.detector.detect_latest(window) if self.config.detect_patterns else None

        return AnalysisResult(
            symbol=Symbol(symbol),
            evaluation_date=current.date,
            cadence=cadence,
            side=self.config.scoring.side,
            close=current.close,
            scores=scores,
            final_score=final_score,
            final_signal=classify_signal(final_score, self.config.scoring),
            forward_prices=forward_prices,
            pattern=pattern,
            computed_at=run.computed_at,
        )
