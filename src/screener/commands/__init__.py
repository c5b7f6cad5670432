"""CLI command implementations for the screener.

Each command module provides:
- Configuration loading and validation
- Command execution logic
- Integration with core library functions
"""

from screener.commands.run_scan import load_scan_config, run_scan, write_results

__all__ = [
    "load_scan_config",
    "run_scan",
    "write_results",
]
