"""Tests for bar source implementations."""

from datetime import date
from pathlib import Path
from typing import Iterator

import pytest

from screener.data.sources import (BarSource, CSVArchiveSource, JSONArchiveSource,
                                   resolve_bar_source)
from screener.data.store import BarStore
from screener.exceptions import DataSourceError
from screener.types import Bar, Symbol


@pytest.fixture
def csv_archive(tmp_path: Path) -> Path:
    """CSV archive with two symbols over three sessions."""
    path = tmp_path / "bars.csv"
    path.write_text(
        "symbol,date,open,high,low,close,volume\n"
        "AAPL,2025-09-03,10,11,9,10,100\n"
        "AAPL,2025-09-04,10,11,9,10,100\n"
        "AAPL,2025-09-05,10,11,9,10,100\n"
        "MSFT,2025-09-04,20,21,19,20,200\n"
        "MSFT,2025-09-05,20,21,19,20,200\n"
    )
    return path


class TestBarSourceProtocol:
    """Tests for the BarSource abstract base class."""

    def test_barsource_is_abstract(self) -> None:
        """BarSource cannot be instantiated directly."""
        with pytest.raises(TypeError, match="abstract"):
            BarSource()  # type: ignore[abstract]

    def test_subclass_must_implement_fetch_bars(self) -> None:
        """Subclasses must implement fetch_bars."""

        class IncompleteSource(BarSource):
            pass

        with pytest.raises(TypeError, match="abstract"):
            IncompleteSource()  # type: ignore[abstract]


class TestCSVArchiveSource:
    """Tests for CSVArchiveSource."""

    def test_requires_file_path(self) -> None:
        """Missing file_path raises DataSourceError."""
        with pytest.raises(DataSourceError, match="file_path"):
            CSVArchiveSource({})

    def test_fetch_filters_symbols(self, csv_archive: Path) -> None:
        """Only requested symbols are returned."""
        source = CSVArchiveSource({"file_path": str(csv_archive)})
        bars = list(source.fetch_bars([Symbol("msft")]))
        assert {b.symbol for b in bars} == {"MSFT"}
        assert len(bars) == 2

    def test_fetch_filters_dates(self, csv_archive: Path) -> None:
        """Dates outside the inclusive range are dropped."""
        source = CSVArchiveSource({"file_path": str(csv_archive)})
        bars = list(source.fetch_bars([], start=date(2025, 9, 4), end=date(2025, 9, 4)))
        assert [b.symbol for b in bars] == ["AAPL", "MSFT"]

    def test_custom_columns(self, tmp_path: Path) -> None:
        """Column overrides map provider headers onto bar fields."""
        path = tmp_path / "custom.csv"
        path.write_text("Ticker,Day,O,H,L,C,V\nSPY,2025-09-05,1,2,1,2,5\n")
        source = CSVArchiveSource(
            {
                "file_path": str(path),
                "symbol_col": "Ticker",
                "date_col": "Day",
                "open_col": "O",
                "high_col": "H",
                "low_col": "L",
                "close_col": "C",
                "volume_col": "V",
            }
        )

        bars = list(source.fetch_bars([]))

        assert bars[0].symbol == "SPY"
        assert bars[0].volume == 5
        assert source.last_result is not None
        assert source.last_result.skipped == 0


class TestJSONArchiveSource:
    """Tests for JSONArchiveSource."""

    def test_fetch_bars(self, tmp_path: Path) -> None:
        """JSON records become bars."""
        path = tmp_path / "bars.json"
        path.write_text(
            '{"data": [{"symbol": "SPY", "date": "2025-09-05", "open": 1, '
            '"high": 2, "low": 1, "close": 2, "volume": 5}]}'
        )
        source = JSONArchiveSource({"file_path": str(path)})
        assert len(list(source.fetch_bars([Symbol("SPY")]))) == 1


class TestResolveBarSource:
    """Tests for resolve_bar_source."""

    def test_resolves_known_types(self, csv_archive: Path) -> None:
        """csv and json map to their source classes."""
        params = {"file_path": str(csv_archive)}
        assert isinstance(resolve_bar_source("CSV", params), CSVArchiveSource)
        assert isinstance(resolve_bar_source("json", params), JSONArchiveSource)

    def test_unknown_type_raises(self) -> None:
        """Unknown types raise DataSourceError."""
        with pytest.raises(DataSourceError, match="Unrecognized bar source type"):
            resolve_bar_source("yahoo", {})


class TestStoreFromSource:
    """Tests for BarStore.from_source."""

    def test_loads_requested_symbols(self, csv_archive: Path) -> None:
        """Store contains exactly the fetched symbols."""
        source = CSVArchiveSource({"file_path": str(csv_archive)})
        store = BarStore.from_source(source, [Symbol("AAPL")], end=date(2025, 9, 4))
        assert store.symbols == ["AAPL"]
        assert len(store) == 2

    def test_failed_symbol_is_left_empty(self) -> None:
        """A fetch failure for one symbol does not abort the load."""

        class FlakySource(BarSource):
            def fetch_bars(
                self,
                symbols: list[Symbol],
                start: date | None = None,
                end: date | None = None,
            ) -> Iterator[Bar]:
                if symbols[0] == "BAD":
                    raise DataSourceError("provider unavailable")
                yield Bar(
                    symbol=symbols[0],
                    date=date(2025, 9, 5),
                    open=1.0,
                    high=2.0,
                    low=1.0,
                    close=2.0,
                    volume=5,
                )

        store = BarStore.from_source(FlakySource(), [Symbol("GOOD"), Symbol("BAD")])

        assert store.symbols == ["GOOD"]
        assert store.bars("BAD") == ()
