"""Bar archive import and export.

Archives are flat, one record per symbol-date, either as CSV::

    symbol,date,open,high,low,close,volume,adjusted_close
    AAPL,2025-09-05,238.1,241.3,236.9,239.7,54870400,239.7

or as a JSON document::

    {
      "metadata": {"created": "...", "startDate": "2025-01-02",
                   "endDate": "2025-09-05", "totalRecords": 2, "symbols": ["AAPL"]},
      "data": [{"date": "2025-09-05", "symbol": "AAPL", "open": 238.1, ...}]
    }

Malformed records are skipped with a warning and counted; they never abort
an import.
"""

from __future__ import annotations

import csv
import json
import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from pydantic import Field, ValidationError

from screener.exceptions import DataSourceError, InvalidArchiveRecordError
from screener.types import Bar, FrozenModel

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["symbol", "date", "open", "high", "low", "close", "volume", "adjusted_close"]

VALID_FORMATS = frozenset(["csv", "json"])


class ArchiveReadResult(FrozenModel):
    """Bars parsed from an archive plus the records that were skipped.

    :param bars: Successfully parsed bars in file order.
    :param skipped: Number of malformed records.
    :param errors: One message per skipped record.
    """

    bars: list[Bar] = Field(default_factory=list)
    skipped: int = 0
    errors: list[str] = Field(default_factory=list)


def parse_date(value: Any, date_format: str | None = None) -> date:
    """Parse an archive date field.

    Accepts ``date`` objects, ``YYYY-MM-DD`` strings and ISO datetimes
    (the date part is kept).

    :param value: Raw field value.
    :param date_format: Optional strptime format.
    :raises ValueError: If the value cannot be parsed.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"missing date: {value!r}")

    text = value.strip()
    if date_format:
        return datetime.strptime(text, date_format).date()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def _parse_volume(value: Any) -> int:
    volume = float(value)
    if not volume.is_integer():
        raise ValueError(f"volume must be a whole number, got {value!r}")
    return int(volume)


def parse_record(
    record: Mapping[str, Any],
    line: int,
    columns: Mapping[str, str] | None = None,
    date_format: str | None = None,
) -> Bar:
    """Convert one archive record into a :class:`Bar`.

    :param record: Raw record (CSV row or JSON object).
    :param line: 1-based record number, used in error messages.
    :param columns: Optional mapping from canonical field to record key.
    :param date_format: Optional strptime format for the date field.
    :returns: Validated bar.
    :raises InvalidArchiveRecordError: If any field is missing or invalid.
    """
    columns = columns or {}

    def field_value(name: str, *aliases: str) -> Any:
        for key in (columns.get(name, name), *aliases):
            value = record.get(key)
            if value not in (None, ""):
                return value
        return None

    try:
        adjusted = field_value("adjusted_close", "adjustedClose")
        return Bar(
            symbol=field_value("symbol"),
            date=parse_date(field_value("date"), date_format),
            open=float(field_value("open")),
            high=float(field_value("high")),
            low=float(field_value("low")),
            close=float(field_value("close")),
            volume=_parse_volume(field_value("volume")),
            adjusted_close=float(adjusted) if adjusted is not None else None,
        )
    except ValidationError as e:
        reason = "; ".join(err["msg"] for err in e.errors())
        raise InvalidArchiveRecordError(line, reason) from e
    except (TypeError, ValueError) as e:
        raise InvalidArchiveRecordError(line, str(e)) from e


def _collect(records: Iterable[tuple[int, Mapping[str, Any]]], **options: Any) -> ArchiveReadResult:
    bars: list[Bar] = []
    errors: list[str] = []
    for line, record in records:
        try:
            bars.append(parse_record(record, line, **options))
        except InvalidArchiveRecordError as e:
            logger.warning("Skipping malformed archive record: %s", e)
            errors.append(str(e))
    if errors:
        logger.warning("Skipped %d malformed archive records", len(errors))
    return ArchiveReadResult(bars=bars, skipped=len(errors), errors=errors)


def read_csv_archive(
    path: str | Path,
    columns: Mapping[str, str] | None = None,
    delimiter: str = ",",
    date_format: str | None = None,
) -> ArchiveReadResult:
    """Read a CSV bar archive.

    :param path: CSV file path.
    :param columns: Optional mapping from canonical field to CSV header.
    :param delimiter: CSV delimiter.
    :param date_format: Optional strptime format for the date column.
    :returns: Parsed bars and skip count.
    :raises DataSourceError: If the file cannot be read.
    """
    path = Path(path)
    if not path.exists():
        raise DataSourceError(f"Archive file not found: {path}")

    try:
        # Undecodable bytes become U+FFFD and fail field parsing for that row only
        with open(path, newline="", encoding="utf-8", errors="replace") as f:
            reader = csv.DictReader(f, delimiter=delimiter)
            # Header is line 1, first record is line 2
            return _collect(
                enumerate(reader, start=2), columns=columns, date_format=date_format
            )
    except csv.Error as e:
        raise DataSourceError(f"CSV parsing error: {e}") from e
    except OSError as e:
        raise DataSourceError(f"Failed to read archive file: {e}") from e


def read_json_archive(path: str | Path) -> ArchiveReadResult:
    """Read a JSON bar archive (document with ``data`` list, or a bare list).

    :param path: JSON file path.
    :returns: Parsed bars and skip count.
    :raises DataSourceError: If the file cannot be read or is not an archive.
    """
    path = Path(path)
    if not path.exists():
        raise DataSourceError(f"Archive file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            document = json.load(f)
    except json.JSONDecodeError as e:
        raise DataSourceError(f"Invalid JSON in archive file: {e}") from e
    except UnicodeDecodeError as e:
        raise DataSourceError(f"Archive file is not valid UTF-8: {e}") from e
    except OSError as e:
        raise DataSourceError(f"Failed to read archive file: {e}") from e

    records = document.get("data") if isinstance(document, dict) else document
    if not isinstance(records, list):
        raise DataSourceError("JSON archive must contain a 'data' list of records")

    numbered = [
        (i, r if isinstance(r, dict) else {}) for i, r in enumerate(records, start=1)
    ]
    return _collect(numbered)


def infer_format(path: str | Path, archive_format: str | None = None) -> str:
    """Resolve the archive format from an explicit value or the file suffix.

    :raises DataSourceError: If the format is not supported.
    """
    fmt = (archive_format or Path(path).suffix.lstrip(".")).lower()
    if fmt not in VALID_FORMATS:
        raise DataSourceError(
            f"Unsupported archive format '{fmt}'. Supported: {sorted(VALID_FORMATS)}"
        )
    return fmt


def read_archive(path: str | Path, archive_format: str | None = None) -> ArchiveReadResult:
    """Read a CSV or JSON archive, choosing the reader by format or suffix."""
    if infer_format(path, archive_format) == "json":
        return read_json_archive(path)
    return read_csv_archive(path)


def _to_record(bar: Bar) -> dict[str, Any]:
    return {
        "symbol": str(bar.symbol),
        "date": bar.date.isoformat(),
        "open": bar.open,
        "high": bar.high,
        "low": bar.low,
        "close": bar.close,
        "volume": bar.volume,
        "adjusted_close": bar.adjusted_close,
    }


def write_archive(
    bars: Iterable[Bar],
    path: str | Path,
    archive_format: str | None = None,
) -> int:
    """Write bars to a CSV or JSON archive, ordered by symbol then date.

    :param bars: Bars to write.
    :param path: Destination file.
    :param archive_format: ``"csv"`` or ``"json"``; inferred from the suffix if None.
    :returns: Number of records written.
    :raises DataSourceError: If the file cannot be written.
    """
    fmt = infer_format(path, archive_format)
    ordered = sorted(bars, key=lambda b: (b.symbol, b.date))
    records = [_to_record(bar) for bar in ordered]
    path = Path(path)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            if fmt == "csv":
                writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
                writer.writeheader()
                for record in records:
                    if record["adjusted_close"] is None:
                        record["adjusted_close"] = ""
                    writer.writerow(record)
            else:
                dates = [bar.date for bar in ordered]
                document = {
                    "metadata": {
                        "created": datetime.now(timezone.utc).isoformat(),
                        "startDate": min(dates).isoformat() if dates else None,
                        "endDate": max(dates).isoformat() if dates else None,
                        "totalRecords": len(records),
                        "symbols": sorted({str(b.symbol) for b in ordered}),
                    },
                    "data": records,
                }
                json.dump(document, f, indent=2)
    except OSError as e:
        raise DataSourceError(f"Failed to write archive file: {e}") from e

    logger.info("Wrote %d records to %s", len(records), path)
    return len(records)
