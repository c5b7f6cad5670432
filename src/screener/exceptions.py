"""Screener exception hierarchy.

All screener-specific exceptions derive from :class:`ScreenerError` so callers
can catch all screening-related errors uniformly.
"""

from __future__ import annotations

from datetime import date
from typing import Any


class ScreenerError(Exception):
    """Base class for screener-related exceptions.

    Derived exceptions should extend this class so that callers can catch all
    screener-specific errors uniformly.
    """


class ConfigError(ScreenerError):
    """Raised when configuration files or parameters are invalid."""


class DataSourceError(ScreenerError):
    """Raised when accessing or processing a bar source fails."""


class DataValidationError(ScreenerError):
    """Raised when data fails validation checks.

    Named DataValidationError to avoid conflict with pydantic's ValidationError.
    """


class InvalidArchiveRecordError(DataValidationError):
    """Raised when a single archive record cannot be parsed into a bar.

    :param line: 1-based record number within the archive.
    :param reason: Human readable parse failure.
    """

    def __init__(self, line: int, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Invalid archive record {line}: {reason}")


# ---------------------------------------------------------------------------
# Per-symbol errors (contained by the pipeline, never fatal to a run)
# ---------------------------------------------------------------------------


class SymbolError(ScreenerError):
    """Base class for errors scoped to one symbol within a run.

    :param symbol: Symbol the failure applies to.
    :param factor: Factor being computed when the failure happened, if any.
    """

    def __init__(self, symbol: str, message: str, factor: Any = None) -> None:
        self.symbol = symbol
        self.factor = factor
        super().__init__(message)


class InsufficientHistoryError(SymbolError):
    """Raised when a symbol lacks enough bars for an indicator window."""

    def __init__(
        self,
        symbol: str,
        required: int,
        available: int,
        factor: Any = None,
    ) -> None:
        self.required = required
        self.available = available
        label = f" for {factor}" if factor is not None else ""
        super().__init__(
            symbol,
            f"{symbol}: {available} bars available, {required} required{label}",
            factor,
        )


class MissingBarError(SymbolError):
    """Raised when no bar exists for an exact (symbol, date) lookup."""

    def __init__(self, symbol: str, on: date, factor: Any = None) -> None:
        self.date = on
        super().__init__(symbol, f"{symbol}: no bar on {on.isoformat()}", factor)


# ---------------------------------------------------------------------------
# Run-level errors
# ---------------------------------------------------------------------------


class PipelineError(ScreenerError):
    """Raised when a whole pipeline run cannot produce meaningful output."""


class EmptyUniverseError(PipelineError):
    """Raised when a run is started without any symbols to score."""


class NoBenchmarkDataError(PipelineError):
    """Raised when the benchmark symbol has no usable bars for the run."""


__all__ = [
    "ScreenerError",
    "ConfigError",
    "DataSourceError",
    "DataValidationError",
    "InvalidArchiveRecordError",
    "SymbolError",
    "InsufficientHistoryError",
    "MissingBarError",
    "PipelineError",
    "EmptyUniverseError",
    "NoBenchmarkDataError",
]
