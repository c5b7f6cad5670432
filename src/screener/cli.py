#!/usr/bin/env python3
"""Command-line interface for the stock screener."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path


def cmd_scan(args: argparse.Namespace) -> int:
    """Score a symbol universe from a scan configuration."""
    from screener.commands.run_scan import load_scan_config, run_scan
    from screener.exceptions import ConfigError, DataSourceError, PipelineError
    from screener.logging_utils import setup_logger

    try:
        config = load_scan_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return 1

    if args.output:
        config = config.model_copy(update={"output": args.output})

    try:
        setup_logger(level=args.log_level or config.log_level, log_dir=args.log_dir)
    except ValueError as e:
        print(f"Configuration error: {e}")
        return 1

    print("=" * 60)
    print("SCAN")
    print("=" * 60)
    print(f"Archive:     {config.archive}")
    print(f"Universe:    {len(config.universe)} symbols")
    print(f"Date:        {config.evaluation_date.isoformat()}")
    print(f"Cadence:     {config.pipeline.cadence.value}")
    print(f"Benchmark:   {config.pipeline.benchmark}")
    print(f"Side:        {config.pipeline.scoring.side.value}")

    print("\n📊 Scoring...")
    try:
        result = run_scan(config)
    except DataSourceError as e:
        print(f"Data source error: {e}")
        return 1
    except PipelineError as e:
        print(f"Pipeline error: {e}")
        return 1

    print("\n" + result.summary_table())
    print(
        f"\nScored {len(result.results)} of {len(config.universe)} symbols"
        + (" (cancelled)" if result.cancelled else "")
    )
    if config.output:
        print(f"   Saved to {config.output}")

    print("\n✅ Done!")
    return 0


def cmd_aggregate_weekly(args: argparse.Namespace) -> int:
    """Fold a daily archive into a weekly archive."""
    from screener.data.archive import read_archive, write_archive
    from screener.exceptions import DataSourceError
    from screener.weekly import WeeklyAggregator

    print("=" * 60)
    print("AGGREGATE WEEKLY")
    print("=" * 60)
    print(f"Input:   {args.archive}")
    print(f"Output:  {args.output}")

    try:
        daily = read_archive(args.archive)
    except DataSourceError as e:
        print(f"Data source error: {e}")
        return 1

    if not daily.bars:
        print("No bars loaded from archive.")
        return 1

    print(f"\n📊 Loaded {len(daily.bars)} daily bars ({daily.skipped} skipped)")
    weekly = WeeklyAggregator().aggregate(daily.bars)

    try:
        written = write_archive(weekly, args.output)
    except DataSourceError as e:
        print(f"Failed to write archive: {e}")
        return 1

    print(f"   Wrote {written} weekly bars")
    print("\n✅ Done!")
    return 0


def cmd_patterns(args: argparse.Namespace) -> int:
    """List candlestick patterns found in one symbol's history."""
    from pydantic import ValidationError

    from screener.data.archive import read_archive
    from screener.data.store import BarStore
    from screener.exceptions import DataSourceError
    from screener.patterns import PatternDetector
    from screener.types import PatternConfig

    if args.limit < 1:
        print(f"Configuration error: --limit must be at least 1, got {args.limit}")
        return 1
    try:
        pattern_config = PatternConfig(
            volume_threshold=args.min_volume, min_bars=args.min_bars
        )
    except ValidationError as e:
        reason = "; ".join(f"{err['loc'][0]}: {err['msg']}" for err in e.errors())
        print(f"Configuration error: {reason}")
        return 1

    try:
        archive = read_archive(args.archive)
    except DataSourceError as e:
        print(f"Data source error: {e}")
        return 1

    store = BarStore(archive.bars)
    bars = store.bars(args.symbol)
    if not bars:
        print(f"No bars for {args.symbol.upper()} in {args.archive}")
        return 1

    detector = PatternDetector(pattern_config)
    found = [p for p in detector.detect(bars) if p.matched or args.all]

    print("=" * 60)
    print(f"PATTERNS: {args.symbol.upper()}")
    print("=" * 60)
    print(f"{'Date':<12} {'Pattern':<20} {'Direction':<10} {'Trend':<6}")
    print("-" * 60)
    for pattern in found[-args.limit:]:
        print(
            f"{pattern.date.isoformat():<12} {pattern.name.value:<20} "
            f"{pattern.direction.value:<10} {pattern.trend.value:<6}"
        )

    if args.json:
        records = [p.model_dump(mode="json") for p in found]
        Path(args.json).write_text(json.dumps(records, indent=2), encoding="utf-8")
        print(f"\n   Saved {len(records)} patterns to {args.json}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Multi-factor stock screener CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Scan command
    scan_parser = subparsers.add_parser(
        "scan", help="Score a symbol universe on one evaluation date"
    )
    scan_parser.add_argument("config", help="Path to YAML configuration file")
    scan_parser.add_argument("-o", "--output", help="JSON results file (overrides config)")
    scan_parser.add_argument("--log-level", help="Logging level (overrides config)")
    scan_parser.add_argument("--log-dir", help="Directory for daily log files")

    # Aggregate weekly command
    weekly_parser = subparsers.add_parser(
        "aggregate-weekly", help="Fold a daily archive into weekly bars"
    )
    weekly_parser.add_argument("archive", help="Daily archive (CSV or JSON)")
    weekly_parser.add_argument(
        "-o", "--output", required=True, help="Weekly archive to write (CSV or JSON)"
    )

    # Patterns command
    patterns_parser = subparsers.add_parser(
        "patterns", help="List candlestick patterns for one symbol"
    )
    patterns_parser.add_argument("archive", help="Bar archive (CSV or JSON)")
    patterns_parser.add_argument("symbol", help="Stock symbol (e.g., AAPL)")
    patterns_parser.add_argument(
        "--min-volume", type=float, default=0.0, help="Minimum bar volume"
    )
    patterns_parser.add_argument(
        "--min-bars", type=int, default=30, help="Bars required before scanning"
    )
    patterns_parser.add_argument(
        "--limit", type=int, default=20, help="Show the latest N patterns"
    )
    patterns_parser.add_argument(
        "--all", action="store_true", help="Include bars labelled Normal"
    )
    patterns_parser.add_argument("--json", help="Also write patterns to this JSON file")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "scan":
        return cmd_scan(args)
    elif args.command == "aggregate-weekly":
        return cmd_aggregate_weekly(args)
    elif args.command == "patterns":
        return cmd_patterns(args)

    return 0


if __name__ == "__main__":
    sys.exit(main())
