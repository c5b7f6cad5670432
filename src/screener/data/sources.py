"""Bar source implementations.

This module provides an abstract interface for bar sources and concrete
implementations backed by CSV and JSON bar archives. Live market-data
providers plug in by subclassing :class:`BarSource`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Iterator

from screener.data.archive import ArchiveReadResult, read_csv_archive, read_json_archive
from screener.exceptions import DataSourceError
from screener.types import Bar, Symbol


class BarSource(ABC):
    """Abstract base class for bar sources.

    All bar source implementations must inherit from this class and implement
    the `fetch_bars` method.
    """

    @abstractmethod
    def fetch_bars(
        self,
        symbols: list[Symbol],
        start: date | None = None,
        end: date | None = None,
    ) -> Iterator[Bar]:
        """Fetch daily bars for the given symbols and date range.

        :param symbols: List of symbols to fetch (empty = all symbols).
        :param start: Inclusive first date, or None for no lower bound.
        :param end: Inclusive last date, or None for no upper bound.
        :returns: Iterator of Bar objects.
        :raises DataSourceError: If fetching fails.
        """
        ...


class _ArchiveSource(BarSource):
    """Shared filtering for file-backed sources."""

    def __init__(self, source_params: dict[str, Any] | None = None) -> None:
        self.params = source_params or {}
        self.file_path = self.params.get("file_path")
        if not self.file_path:
            raise DataSourceError(
                f"{type(self).__name__} requires 'file_path' in source_params"
            )
        self.last_result: ArchiveReadResult | None = None

    @abstractmethod
    def _read(self) -> ArchiveReadResult: ...

    def fetch_bars(
        self,
        symbols: list[Symbol],
        start: date | None = None,
        end: date | None = None,
    ) -> Iterator[Bar]:
        """Read the archive and yield bars matching the filters.

        Malformed records are skipped; the count is available on
        ``last_result.skipped`` after iteration starts.
        """
        self.last_result = self._read()

        symbol_set = {str(s).upper() for s in symbols} if symbols else None

        for bar in self.last_result.bars:
            if symbol_set and bar.symbol not in symbol_set:
                continue
            if start is not None and bar.date < start:
                continue
            if end is not None and bar.date > end:
                continue
            yield bar


class CSVArchiveSource(_ArchiveSource):
    """Bar source that reads a CSV archive.

    :param source_params: Required parameters:
        - file_path: Path to the CSV file.
        Optional parameters:
        - symbol_col, date_col, open_col, high_col, low_col, close_col,
          volume_col, adjusted_close_col: Column names (default: canonical names)
        - delimiter: CSV delimiter (default: ",")
        - date_format: strptime format for dates (default: ISO format)
    """

    def __init__(self, source_params: dict[str, Any] | None = None) -> None:
        super().__init__(source_params)
        self.columns = {
            name: self.params.get(f"{name}_col", name)
            for name in (
                "symbol", "date", "open", "high", "low", "close", "volume", "adjusted_close"
            )
        }
        self.delimiter = self.params.get("delimiter", ",")
        self.date_format = self.params.get("date_format")

    def _read(self) -> ArchiveReadResult:
        return read_csv_archive(
            self.file_path,
            columns=self.columns,
            delimiter=self.delimiter,
            date_format=self.date_format,
        )


class JSONArchiveSource(_ArchiveSource):
    """Bar source that reads a JSON archive document.

    :param source_params: Required parameters:
        - file_path: Path to the JSON file.
    """

    def _read(self) -> ArchiveReadResult:
        return read_json_archive(self.file_path)


def resolve_bar_source(
    source_type: str, source_params: dict[str, Any] | None = None
) -> BarSource:
    """Construct a bar source by type name.

    :param source_type: ``"csv"`` or ``"json"``.
    :param source_params: Source-specific parameters.
    :returns: BarSource instance for the specified type.
    :raises DataSourceError: If the source type is unrecognized.
    """
    kind = source_type.lower()

    if kind == "csv":
        return CSVArchiveSource(source_params)
    elif kind == "json":
        return JSONArchiveSource(source_params)
    else:
        raise DataSourceError(
            f"Unrecognized bar source type: '{source_type}'. "
            f"Supported types: csv, json"
        )
