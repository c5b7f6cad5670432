"""Bar storage, archive I/O and source management module."""

from screener.data.archive import ArchiveReadResult, read_archive, write_archive
from screener.data.sources import (BarSource, CSVArchiveSource, JSONArchiveSource,
                                   resolve_bar_source)
from screener.data.store import BarIndex, BarStore

__all__ = [
    "ArchiveReadResult",
    "read_archive",
    "write_archive",
    "BarSource",
    "CSVArchiveSource",
    "JSONArchiveSource",
    "resolve_bar_source",
    "BarIndex",
    "BarStore",
]
