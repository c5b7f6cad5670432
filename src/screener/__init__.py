"""Screener package root."""

from screener.data.store import BarStore
from screener.exceptions import ConfigError, PipelineError, ScreenerError
from screener.market_calendar import TradingCalendar
from screener.pipeline import ScorePipeline
from screener.types import AnalysisResult, Bar, PipelineConfig, PipelineResult

__all__ = [
    "AnalysisResult",
    "Bar",
    "BarStore",
    "ConfigError",
    "PipelineConfig",
    "PipelineError",
    "PipelineResult",
    "ScorePipeline",
    "ScreenerError",
    "TradingCalendar",
]
