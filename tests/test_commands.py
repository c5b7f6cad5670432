"""Tests for command configuration loaders and the scan command."""

import json
import math
from datetime import date, datetime
from pathlib import Path

import pytest
import yaml

from screener.commands.run_scan import _parse_date, load_scan_config, run_scan, write_results
from screener.data.archive import write_archive
from screener.exceptions import ConfigError
from screener.market_calendar import TradingCalendar
from screener.types import Bar, Cadence, Symbol

EVALUATION_DATE = date(2025, 9, 5)


def generate_bars(symbol: str, base: float) -> list[Bar]:
    """Daily bars on every trading session from January to early September 2025."""
    sessions = TradingCalendar().trading_days_between(date(2025, 1, 2), date(2025, 9, 10))
    bars = []
    for i, day in enumerate(sessions):
        close = base + 3.0 * math.sin(i / 4.0) + i * 0.05
        bars.append(
            Bar(
                symbol=Symbol(symbol),
                date=day,
                open=close,
                high=close + 0.8,
                low=close - 0.8,
                close=close,
                volume=500_000,
            )
        )
    return bars


def write_config(tmp_path: Path, config: dict) -> Path:
    config_file = tmp_path / "scan.yaml"
    config_file.write_text(yaml.dump(config))
    return config_file


class TestParseDate:
    """Tests for date parsing utility."""

    def test_parse_simple_date(self) -> None:
        """Parse simple YYYY-MM-DD format."""
        assert _parse_date("2025-09-05") == EVALUATION_DATE

    def test_parse_iso_datetime(self) -> None:
        """ISO datetimes keep their date part."""
        assert _parse_date("2025-09-05T16:00:00Z") == EVALUATION_DATE

    def test_parse_date_objects(self) -> None:
        """Pass through date and datetime objects."""
        assert _parse_date(EVALUATION_DATE) == EVALUATION_DATE
        assert _parse_date(datetime(2025, 9, 5, 16, 0)) == EVALUATION_DATE

    def test_parse_invalid_format_raises(self) -> None:
        """Invalid format raises ConfigError."""
        with pytest.raises(ConfigError, match="Invalid date format"):
            _parse_date("not-a-date")


class TestLoadScanConfig:
    """Tests for scan config loading."""

    def test_load_valid_config(self, tmp_path: Path) -> None:
        """Load a valid configuration file."""
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.csv",
                "universe": ["aapl", "MSFT"],
                "evaluation_date": "2025-09-05",
                "output": "out/results.json",
            },
        )

        result = load_scan_config(config_file)

        assert result.universe == [Symbol("aapl"), Symbol("MSFT")]
        assert result.evaluation_date == EVALUATION_DATE
        assert result.archive == str(tmp_path / "bars.csv")
        assert result.output == str(tmp_path / "out" / "results.json")
        assert result.pipeline.benchmark == "SPY"
        assert result.log_level == "INFO"

    def test_unquoted_yaml_date(self, tmp_path: Path) -> None:
        """YAML dates arrive as date objects and are accepted."""
        config_file = tmp_path / "scan.yaml"
        config_file.write_text(
            "archive: /data/bars.csv\nuniverse: [AAPL]\nevaluation_date: 2025-09-05\n"
        )
        result = load_scan_config(config_file)
        assert result.evaluation_date == EVALUATION_DATE
        assert result.archive == "/data/bars.csv"

    def test_load_with_pipeline_section(self, tmp_path: Path) -> None:
        """Pipeline settings are validated into nested models."""
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.json",
                "universe": ["AAPL"],
                "evaluation_date": "2025-09-05",
                "archive_format": "json",
                "pipeline": {
                    "benchmark": "qqq",
                    "cadence": "weekly",
                    "max_workers": 4,
                    "scoring": {"long_threshold": 65, "trend_method": "directional"},
                },
            },
        )

        result = load_scan_config(config_file)

        assert result.archive_format == "json"
        assert result.pipeline.benchmark == "QQQ"
        assert result.pipeline.cadence is Cadence.WEEKLY
        assert result.pipeline.max_workers == 4
        assert result.pipeline.scoring.long_threshold == 65.0
        assert result.pipeline.scoring.trend_method == "directional"

    def test_load_universe_file(self, tmp_path: Path) -> None:
        """Universe files list one ticker per line; blanks and comments are ignored."""
        (tmp_path / "favorites.txt").write_text("# tech\nAAPL\n\nMSFT\n")
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.csv",
                "universe_file": "favorites.txt",
                "evaluation_date": "2025-09-05",
            },
        )

        result = load_scan_config(config_file)
        assert result.universe == [Symbol("AAPL"), Symbol("MSFT")]

    def test_missing_universe_file_raises(self, tmp_path: Path) -> None:
        """Unreadable universe files raise ConfigError."""
        config_file = write_config(
            tmp_path,
            {"archive": "bars.csv", "universe_file": "nope.txt", "evaluation_date": "2025-09-05"},
        )
        with pytest.raises(ConfigError, match="Universe file not readable"):
            load_scan_config(config_file)

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        """Missing config file raises ConfigError."""
        with pytest.raises(ConfigError, match="Configuration file not found"):
            load_scan_config(tmp_path / "nonexistent.yaml")

    def test_invalid_yaml_raises(self, tmp_path: Path) -> None:
        """Invalid YAML raises ConfigError."""
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("archive: [unclosed")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_scan_config(config_file)

    def test_non_mapping_raises(self, tmp_path: Path) -> None:
        """Top-level lists are rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- AAPL\n- MSFT\n")
        with pytest.raises(ConfigError, match="must be a YAML mapping"):
            load_scan_config(config_file)

    def test_missing_required_field_raises(self, tmp_path: Path) -> None:
        """Missing archive raises ConfigError."""
        config_file = write_config(
            tmp_path, {"universe": ["AAPL"], "evaluation_date": "2025-09-05"}
        )
        with pytest.raises(ConfigError, match="Missing required field: archive"):
            load_scan_config(config_file)

    def test_missing_universe_raises(self, tmp_path: Path) -> None:
        """Either universe or universe_file is required."""
        config_file = write_config(
            tmp_path, {"archive": "bars.csv", "evaluation_date": "2025-09-05"}
        )
        with pytest.raises(ConfigError, match="universe"):
            load_scan_config(config_file)

    def test_empty_universe_raises(self, tmp_path: Path) -> None:
        """Empty universe list raises ConfigError."""
        config_file = write_config(
            tmp_path, {"archive": "bars.csv", "universe": [], "evaluation_date": "2025-09-05"}
        )
        with pytest.raises(ConfigError, match="non-empty list"):
            load_scan_config(config_file)

    def test_invalid_archive_format_raises(self, tmp_path: Path) -> None:
        """Unknown archive formats raise ConfigError."""
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.csv",
                "universe": ["AAPL"],
                "evaluation_date": "2025-09-05",
                "archive_format": "parquet",
            },
        )
        with pytest.raises(ConfigError, match="Invalid archive_format"):
            load_scan_config(config_file)

    def test_invalid_pipeline_settings_raise(self, tmp_path: Path) -> None:
        """Model validation failures are wrapped in ConfigError."""
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.csv",
                "universe": ["AAPL"],
                "evaluation_date": "2025-09-05",
                "pipeline": {"scoring": {"long_threshold": 20, "short_threshold": 30}},
            },
        )
        with pytest.raises(ConfigError, match="Invalid scan configuration"):
            load_scan_config(config_file)

    def test_all_zero_weights_raise(self, tmp_path: Path) -> None:
        """Weights that leave no factor counted fail at load time."""
        weights = {
            "relativeStrength": 0,
            "volatility": 0,
            "momentum": 0,
            "trendStrength": 0,
        }
        config_file = write_config(
            tmp_path,
            {
                "archive": "bars.csv",
                "universe": ["AAPL"],
                "evaluation_date": "2025-09-05",
                "pipeline": {"scoring": {"weights": weights}},
            },
        )
        with pytest.raises(ConfigError, match="at least one factor weight"):
            load_scan_config(config_file)


class TestRunScan:
    """Tests for executing a scan."""

    @pytest.fixture
    def archive(self, tmp_path: Path) -> Path:
        """CSV archive with a benchmark and two symbols."""
        path = tmp_path / "bars.csv"
        write_archive(
            generate_bars("SPY", 500.0) + generate_bars("AAPL", 200.0) + generate_bars("MSFT", 300.0),
            path,
        )
        return path

    def test_run_scan_writes_output(self, tmp_path: Path, archive: Path) -> None:
        """Scan scores the universe and writes records and diagnostics."""
        config_file = write_config(
            tmp_path,
            {
                "archive": archive.name,
                "universe": ["AAPL", "MSFT", "TSLA"],
                "evaluation_date": "2025-09-05",
                "output": "results/scan.json",
            },
        )
        config = load_scan_config(config_file)

        result = run_scan(config)

        assert [r.symbol for r in result.results] == ["AAPL", "MSFT"]
        document = json.loads((tmp_path / "results" / "scan.json").read_text())
        assert document["evaluationDate"] == "2025-09-05"
        assert document["state"] == "done"
        assert [r["symbol"] for r in document["results"]] == ["AAPL", "MSFT"]
        assert document["results"][0]["price1"] == pytest.approx(
            result.results[0].forward_prices[1]
        )
        assert document["diagnostics"][0]["symbol"] == "TSLA"
        assert document["diagnostics"][0]["reason"] == "no_data"

    def test_run_scan_weekly(self, tmp_path: Path, archive: Path) -> None:
        """Weekly cadence aggregates the daily archive before scoring."""
        config_file = write_config(
            tmp_path,
            {
                "archive": archive.name,
                "universe": ["AAPL"],
                "evaluation_date": "2025-09-03",
                "pipeline": {"cadence": "weekly"},
            },
        )

        result = run_scan(load_scan_config(config_file))

        assert result.cadence is Cadence.WEEKLY
        assert result.results[0].evaluation_date == EVALUATION_DATE

    def test_write_results_creates_parents(self, tmp_path: Path, archive: Path) -> None:
        """write_results creates missing directories."""
        config_file = write_config(
            tmp_path,
            {"archive": archive.name, "universe": ["AAPL"], "evaluation_date": "2025-09-05"},
        )
        result = run_scan(load_scan_config(config_file))
        target = tmp_path / "a" / "b" / "out.json"

        write_results(result, target)

        assert json.loads(target.read_text())["results"][0]["symbol"] == "AAPL"
