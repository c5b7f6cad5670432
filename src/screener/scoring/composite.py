"""Composite score and signal classification."""

from __future__ import annotations

from typing import Mapping

from screener.types import FactorName, FactorScore, ScoringConfig, Side, Signal


def composite_score(
    scores: Mapping[FactorName, FactorScore],
    weights: Mapping[FactorName, float] | None = None,
) -> float:
    """Weighted mean of factor scores, rounded to two decimals.

    Factors missing from ``weights`` count with weight 1.0, so the default is
    the plain mean of the four scores.

    :param scores: Factor scores keyed by factor.
    :param weights: Optional per-factor weights.
    :returns: Composite score in ``[0, 100]``.
    :raises ValueError: If there are no scores or all weights are zero.
    """
    weights = weights or {}
    total_weight = sum(weights.get(factor, 1.0) for factor in scores)
    if not scores or total_weight <= 0:
        raise ValueError("composite score needs at least one positively weighted factor")
    weighted = sum(weights.get(f, 1.0) * s.score for f, s in scores.items())
    return round(weighted / total_weight, 2)


def classify_signal(score: float, config: ScoringConfig | None = None) -> Signal:
    """Classify a final score against the configured thresholds.

    On the long side a score at or above ``long_threshold`` is Long and one at
    or below ``short_threshold`` is Short. Short-side scores run the other way,
    so the same thresholds map to Short and Long respectively.
    """
    config = config or ScoringConfig()
    strong, weak = Signal.LONG, Signal.SHORT
    if config.side is Side.SHORT:
        strong, weak = weak, strong
    if score >= config.long_threshold:
        return strong
    if score <= config.short_threshold:
        return weak
    return Signal.NEUTRAL
