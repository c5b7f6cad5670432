"""Tests for screener exception hierarchy."""

from datetime import date

import pytest

from screener.exceptions import (ConfigError, DataSourceError, DataValidationError,
                                 EmptyUniverseError, InsufficientHistoryError,
                                 InvalidArchiveRecordError, MissingBarError,
                                 NoBenchmarkDataError, PipelineError, ScreenerError,
                                 SymbolError)


def test_screener_error_is_base_exception() -> None:
    """ScreenerError should be catchable as Exception."""
    with pytest.raises(Exception):
        raise ScreenerError("test error")


def test_config_error_inherits_from_screener_error() -> None:
    """ConfigError should be catchable as ScreenerError."""
    with pytest.raises(ScreenerError):
        raise ConfigError("invalid config")


def test_data_source_error_inherits_from_screener_error() -> None:
    """DataSourceError should be catchable as ScreenerError."""
    with pytest.raises(ScreenerError):
        raise DataSourceError("data source failed")


def test_invalid_record_is_validation_error() -> None:
    """InvalidArchiveRecordError should be catchable as DataValidationError."""
    with pytest.raises(DataValidationError):
        raise InvalidArchiveRecordError(3, "missing close")


def test_invalid_record_keeps_line_and_reason() -> None:
    """Line number and reason are exposed and included in the message."""
    err = InvalidArchiveRecordError(7, "bad volume")
    assert err.line == 7
    assert err.reason == "bad volume"
    assert str(err) == "Invalid archive record 7: bad volume"


def test_insufficient_history_is_symbol_error() -> None:
    """InsufficientHistoryError carries symbol, required and available counts."""
    err = InsufficientHistoryError("AAPL", required=21, available=20, factor="volatility")
    assert isinstance(err, SymbolError)
    assert err.symbol == "AAPL"
    assert err.required == 21
    assert err.available == 20
    assert err.factor == "volatility"
    assert "20 bars available, 21 required for volatility" in str(err)


def test_missing_bar_error_keeps_date() -> None:
    """MissingBarError exposes the missing date."""
    err = MissingBarError("MSFT", date(2025, 9, 5))
    assert err.date == date(2025, 9, 5)
    assert err.factor is None
    assert str(err) == "MSFT: no bar on 2025-09-05"


def test_run_level_errors_inherit_from_pipeline_error() -> None:
    """Run-level failures share the PipelineError base."""
    with pytest.raises(PipelineError):
        raise EmptyUniverseError("empty")
    with pytest.raises(PipelineError):
        raise NoBenchmarkDataError("no SPY")


def test_exception_messages_preserved() -> None:
    """Exception messages should be accessible via str()."""
    msg = "detailed error message"
    err = ConfigError(msg)
    assert str(err) == msg
