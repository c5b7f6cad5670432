"""Factor scoring module."""

from screener.scoring.composite import classify_signal, composite_score
from screener.scoring.factors import (FactorScorer, MomentumScorer,
                                      RelativeStrengthScorer, ScoringContext,
                                      ShortMomentumScorer,
                                      ShortRelativeStrengthScorer,
                                      ShortTrendStrengthScorer,
                                      ShortVolatilityScorer,
                                      TrendStrengthScorer, VolatilityScorer,
                                      default_scorers)

__all__ = [
    "FactorScorer",
    "ScoringContext",
    "RelativeStrengthScorer",
    "VolatilityScorer",
    "MomentumScorer",
    "TrendStrengthScorer",
    "ShortRelativeStrengthScorer",
    "ShortVolatilityScorer",
    "ShortMomentumScorer",
    "ShortTrendStrengthScorer",
    "default_scorers",
    "composite_score",
    "classify_signal",
]
