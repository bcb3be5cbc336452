"""Pattern search over the history store."""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections import deque

from unified_history.config import DEFAULT_CONTEXT_LINES, DEFAULT_MAX_RESULTS
from unified_history.errors import UsageError
from unified_history.storage.models import ContextBlock, HistoryRecord, SearchMatch, SearchResult
from unified_history.storage.store import HistoryStore

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a case-insensitive search pattern.

    Invalid regular expressions are matched as literal substrings instead.
    """
    if not pattern or not pattern.strip():
        raise UsageError("Search pattern must not be empty")
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        logger.debug("Pattern %r is not a valid regex, matching literally", pattern)
        return re.compile(re.escape(pattern), re.IGNORECASE)


def match_spans(regex: re.Pattern[str], text: str) -> tuple[tuple[int, int], ...]:
    """Offsets of every non-empty occurrence of ``regex`` in ``text``."""
    return tuple(m.span() for m in regex.finditer(text) if m.end() > m.start())


def _check_limits(max_results: int) -> None:
    if max_results < 1:
        raise UsageError(f"max_results must be at least 1, got {max_results}")


class SearchEngine(ABC):
    """Finds the records whose command text matches a pattern."""

    name: str = ""

    def search(
        self,
        store: HistoryStore,
        pattern: str,
        max_results: int = DEFAULT_MAX_RESULTS,
        show_all: bool = False,
    ) -> SearchResult:
        regex = compile_pattern(pattern)
        _check_limits(max_results)
        limit = None if show_all else max_results
        matches, total = self._collect(store, regex, limit)
        logger.debug("%s search for %r: %d match(es)", self.name, pattern, total)
        return SearchResult(
            pattern=pattern,
            matches=matches,
            total=total,
            truncated=limit is not None and total > limit,
            engine=self.name,
        )

    @abstractmethod
    def _collect(
        self, store: HistoryStore, regex: re.Pattern[str], limit: int | None
    ) -> tuple[list[SearchMatch], int]:
        """Return the last ``limit`` matches (all when None) and the total count."""


class StreamingSearchEngine(SearchEngine):
    """Single pass over the store holding only the matches that will be shown."""

    name = "streaming"

    def _collect(
        self, store: HistoryStore, regex: re.Pattern[str], limit: int | None
    ) -> tuple[list[SearchMatch], int]:
        kept: deque[SearchMatch] = deque(maxlen=limit)
        total = 0
        for record in store.iter_records():
            if regex.search(record.text) is None:
                continue
            total += 1
            kept.append(SearchMatch(record=record, index=total, spans=match_spans(regex, record.text)))
        return list(kept), total


class BufferedSearchEngine(SearchEngine):
    """Reads the whole store, filters it, then slices off the tail."""

    name = "buffered"

    def _collect(
        self, store: HistoryStore, regex: re.Pattern[str], limit: int | None
    ) -> tuple[list[SearchMatch], int]:
        records = store.records()
        hits = [record for record in records if regex.search(record.text)]
        total = len(hits)
        start = 0 if limit is None else max(0, total - limit)
        matches = [
            SearchMatch(record=record, index=number, spans=match_spans(regex, record.text))
            for number, record in enumerate(hits[start:], start=start + 1)
        ]
        return matches, total


ENGINES: dict[str, type[SearchEngine]] = {
    "streaming": StreamingSearchEngine,
    "buffered": BufferedSearchEngine,
}


def get_engine(name: str = "auto") -> SearchEngine:
    """Select a search engine by name; ``auto`` prefers streaming."""
    if name == "auto":
        name = "streaming"
    try:
        return ENGINES[name]()
    except KeyError:
        choices = ", ".join(["auto", *ENGINES])
        raise UsageError(f"Unknown search engine '{name}' (choose from: {choices})") from None


def search(
    store: HistoryStore,
    pattern: str,
    max_results: int = DEFAULT_MAX_RESULTS,
    show_all: bool = False,
    engine: str = "auto",
) -> SearchResult:
    return get_engine(engine).search(store, pattern, max_results=max_results, show_all=show_all)


def search_with_context(
    store: HistoryStore,
    pattern: str,
    context_lines: int = DEFAULT_CONTEXT_LINES,
) -> list[ContextBlock]:
    """One block per match with up to ``context_lines`` records on each side.

    Windows of nearby matches are not merged, so a record may appear in
    several blocks.
    """
    regex = compile_pattern(pattern)
    if context_lines < 0:
        raise UsageError(f"context_lines must not be negative, got {context_lines}")

    records = store.records()
    blocks: list[ContextBlock] = []
    for pos, record in enumerate(records):
        if regex.search(record.text) is None:
            continue
        blocks.append(
            ContextBlock(
                match=record,
                before=records[max(0, pos - context_lines):pos],
                after=records[pos + 1:pos + 1 + context_lines],
                spans=match_spans(regex, record.text),
            )
        )
    return blocks


def recent(store: HistoryStore, count: int = DEFAULT_MAX_RESULTS) -> list[HistoryRecord]:
    """The last ``count`` records in chronological order."""
    if count < 0:
        raise UsageError(f"count must not be negative, got {count}")
    return store.tail(count)
