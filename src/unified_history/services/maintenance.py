"""Deduplication and statistics over the history store."""

from __future__ import annotations

import logging

from unified_history.errors import MissingStoreError, UnwritableStoreError
from unified_history.storage.models import DedupReport, HistoryRecord, HistoryStats
from unified_history.storage.store import HistoryStore, parse_marker, render_records

logger = logging.getLogger(__name__)

TOP_COMMANDS = 10


def deduplicate(store: HistoryStore) -> DedupReport:
    """Drop repeated (timestamp, command) pairs, keeping each first occurrence.

    The same command under two different markers is kept twice. The store
    is replaced atomically; an append from another session that lands while
    the rewrite is in progress is lost.
    """
    if not store.exists:
        raise MissingStoreError(f"No history store at {store.path}")

    seen: set[tuple[int | None, str]] = set()
    kept: list[HistoryRecord] = []
    before = 0
    for record in store.iter_records():
        before += 1
        key = (record.timestamp, record.text)
        if key in seen:
            continue
        seen.add(key)
        kept.append(record)

    try:
        store.replace_lines(render_records(kept))
    except OSError as e:
        raise UnwritableStoreError(f"Cannot rewrite {store.path}: {e}") from e

    report = DedupReport(before=before, after=len(kept))
    logger.info("Deduplicated %s: %d -> %d", store.path, report.before, report.after)
    return report


def first_token(command: str) -> str:
    parts = command.split(maxsplit=1)
    return parts[0] if parts else ""


def statistics(store: HistoryStore, top: int = TOP_COMMANDS) -> HistoryStats:
    """Count commands and rank the most used base commands.

    Ties in the ranking keep the order in which the commands first appeared.
    """
    stats = HistoryStats()
    unique: set[str] = set()
    frequency: dict[str, int] = {}

    for line in store.iter_lines():
        epoch = parse_marker(line)
        if epoch is not None:
            stats.markers += 1
            if stats.first_timestamp is None:
                stats.first_timestamp = epoch
            stats.last_timestamp = epoch
            continue
        if not line.strip():
            continue
        stats.total += 1
        unique.add(line)
        token = first_token(line)
        frequency[token] = frequency.get(token, 0) + 1

    stats.unique = len(unique)
    stats.top_commands = sorted(frequency.items(), key=lambda item: -item[1])[:top]
    return stats
