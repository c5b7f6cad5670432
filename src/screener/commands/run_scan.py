"""Configuration and execution for the scan command.

Example config file (scan.yaml):

    archive: "data/bars.csv"
    universe:
      - "AAPL"
      - "MSFT"
    # or: universe_file: "favorites.txt"   (one ticker per line)
    evaluation_date: "2025-09-05"
    output: "results/2025-09-05.json"       # Optional
    log_level: "INFO"                       # Optional
    pipeline:                               # Optional
      benchmark: "SPY"
      cadence: "daily"
      max_workers: 4
      scoring:
        side: "long"                        # or "short"
        long_threshold: 70
        short_threshold: 30
      patterns:
        volume_threshold: 100000
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from screener.data.archive import read_archive
from screener.data.store import BarStore
from screener.exceptions import ConfigError
from screener.pipeline import ScorePipeline
from screener.types import Cadence, PipelineResult, ScanConfig, Symbol
from screener.weekly import aggregate_store

logger = logging.getLogger(__name__)

VALID_ARCHIVE_FORMATS = frozenset(["csv", "json"])


def _parse_date(value: str | date) -> date:
    """Parse a date string or pass through date objects.

    :param value: ``YYYY-MM-DD`` / ISO datetime string, or a date.
    :returns: Calendar date.
    :raises ConfigError: If parsing fails.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    try:
        return date.fromisoformat(str(value))
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()
    except ValueError as e:
        raise ConfigError(f"Invalid date format: {value}") from e


def _resolve_path(value: str, base: Path) -> str:
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else base / path)


def _read_universe_file(path: Path) -> list[Symbol]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as e:
        raise ConfigError(f"Universe file not readable: {path}") from e
    return [Symbol(line.strip()) for line in lines if line.strip() and not line.startswith("#")]


def load_scan_config(config_path: str | Path) -> ScanConfig:
    """Parse and validate a scan configuration file.

    Relative ``archive``, ``universe_file`` and ``output`` paths resolve
    against the configuration file's directory.

    :param config_path: Path to YAML configuration file.
    :returns: Validated ScanConfig object.
    :raises ConfigError: If file cannot be read or config is invalid.
    """
    config_path = Path(config_path)
    base = config_path.parent

    # Read and parse YAML
    try:
        with open(config_path) as f:
            raw_config = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration must be a YAML mapping")

    # Validate required fields
    required_fields = ["archive", "evaluation_date"]
    for field in required_fields:
        if field not in raw_config:
            raise ConfigError(f"Missing required field: {field}")

    # Parse universe
    if "universe" in raw_config:
        raw_universe = raw_config["universe"]
        if not isinstance(raw_universe, list) or len(raw_universe) == 0:
            raise ConfigError("'universe' must be a non-empty list")
        universe = [Symbol(str(s)) for s in raw_universe]
    elif "universe_file" in raw_config:
        universe = _read_universe_file(Path(_resolve_path(raw_config["universe_file"], base)))
        if not universe:
            raise ConfigError("'universe_file' lists no symbols")
    else:
        raise ConfigError("Missing required field: universe (or universe_file)")

    # Parse archive format
    archive_format = raw_config.get("archive_format")
    if archive_format is not None and archive_format not in VALID_ARCHIVE_FORMATS:
        raise ConfigError(
            f"Invalid archive_format '{archive_format}'. "
            f"Valid options: {sorted(VALID_ARCHIVE_FORMATS)}"
        )

    # Parse pipeline section (optional)
    pipeline: dict[str, Any] = raw_config.get("pipeline") or {}
    if not isinstance(pipeline, dict):
        raise ConfigError("'pipeline' must be a mapping")

    output = raw_config.get("output")

    try:
        return ScanConfig(
            archive=_resolve_path(raw_config["archive"], base),
            archive_format=archive_format,
            universe=universe,
            evaluation_date=_parse_date(raw_config["evaluation_date"]),
            output=_resolve_path(output, base) if output else None,
            log_level=raw_config.get("log_level", "INFO"),
            pipeline=pipeline,
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid scan configuration: {e}") from e


def run_scan(config: ScanConfig) -> PipelineResult:
    """Load the archive, score the universe and write the optional output file.

    :param config: Validated scan configuration.
    :returns: Pipeline result.
    :raises DataSourceError: If the archive cannot be read.
    :raises PipelineError: If the run fails globally.
    """
    archive = read_archive(config.archive, config.archive_format)
    logger.info(
        "Loaded %d bars from %s (%d malformed records skipped)",
        len(archive.bars),
        config.archive,
        archive.skipped,
    )

    store = BarStore(archive.bars)
    if config.pipeline.cadence is Cadence.WEEKLY:
        store = aggregate_store(store)

    result = ScorePipeline(config.pipeline).run(
        store, config.universe, config.evaluation_date
    )

    if config.output:
        write_results(result, config.output)
    return result


def write_results(result: PipelineResult, path: str | Path) -> None:
    """Write result records and diagnostics as a JSON document.

    :param result: Pipeline result.
    :param path: Destination file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {
        "evaluationDate": result.evaluation_date.isoformat(),
        "cadence": result.cadence.value,
        "state": result.state.value,
        "cancelled": result.cancelled,
        "results": [r.to_record() for r in result.results],
        "diagnostics": [d.model_dump(mode="json") for d in result.diagnostics],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)
    logger.info("Wrote %d results to %s", len(result.results), path)
