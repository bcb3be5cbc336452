"""Data models for unified-history."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class HistoryRecord:
    """A command line from the store with its resolved marker timestamp."""

    text: str = ""
    timestamp: int | None = None
    position: int = 0


@dataclass
class SearchMatch:
    """A matching record.

    ``index`` is the 1-based ordinal of the match among all matches of the
    pattern, so truncated results keep their original numbering. ``spans``
    holds ``(start, end)`` offsets of each pattern occurrence in the text.
    """

    record: HistoryRecord
    index: int
    spans: tuple[tuple[int, int], ...] = ()


@dataclass
class SearchResult:
    """Outcome of a pattern search."""

    pattern: str
    matches: list[SearchMatch] = field(default_factory=list)
    total: int = 0
    truncated: bool = False
    engine: str = ""


@dataclass
class ContextBlock:
    """A match and the records surrounding it."""

    match: HistoryRecord
    before: list[HistoryRecord] = field(default_factory=list)
    after: list[HistoryRecord] = field(default_factory=list)
    spans: tuple[tuple[int, int], ...] = ()

    @property
    def records(self) -> list[HistoryRecord]:
        return [*self.before, self.match, *self.after]


@dataclass
class DedupReport:
    before: int = 0
    after: int = 0

    @property
    def removed(self) -> int:
        return self.before - self.after


@dataclass
class HistoryStats:
    total: int = 0
    unique: int = 0
    markers: int = 0
    top_commands: list[tuple[str, int]] = field(default_factory=list)
    first_timestamp: int | None = None
    last_timestamp: int | None = None


@dataclass
class ImportReport:
    """Result of merging an external history file into the store."""

    source: Path
    adopted: bool = False
    backup_path: Path | None = None
    store_lines: int = 0
    source_lines: int = 0
    merged_lines: int = 0
