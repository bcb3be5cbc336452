"""Shared history file: timestamp markers followed by command lines.

On-disk format, one entry per line::

    #1718000000
    git status
    make test
    #1718000042
    ls -la

A line matching ``^#[0-9]+$`` is a timestamp marker; every other non-blank
line is a command belonging to the most recent marker. Commands before the
first marker have no timestamp. A malformed marker such as ``#12a`` is kept
as an ordinary command.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path

from unified_history.storage.models import HistoryRecord
from unified_history.utils.fileio import atomic_write_text

logger = logging.getLogger(__name__)

MARKER_RE = re.compile(r"^#([0-9]+)$")


def parse_marker(line: str) -> int | None:
    """Return the epoch of a marker line, or None for a command line."""
    match = MARKER_RE.match(line)
    if match is None:
        return None
    return int(match.group(1))


def format_marker(epoch: int) -> str:
    return f"#{epoch}"


def parse_lines(lines: Iterable[str]) -> Iterator[HistoryRecord]:
    """Turn raw store lines into records with resolved timestamps."""
    timestamp: int | None = None
    position = 0
    for line in lines:
        epoch = parse_marker(line)
        if epoch is not None:
            timestamp = epoch
            continue
        if not line.strip():
            continue
        yield HistoryRecord(text=line, timestamp=timestamp, position=position)
        position += 1


def render_records(records: Iterable[HistoryRecord]) -> list[str]:
    """Render records as store lines, writing a marker whenever the timestamp changes."""
    lines: list[str] = []
    current: int | None = None
    for record in records:
        if record.timestamp is not None and record.timestamp != current:
            lines.append(format_marker(record.timestamp))
            current = record.timestamp
        lines.append(record.text)
    return lines


class HistoryStore:
    """The append-only history file shared by every session.

    Bytes that are not valid in ``encoding`` are carried through as lone
    surrogates, so a read followed by a rewrite leaves them unchanged.
    """

    def __init__(
        self, path: Path | str, encoding: str = "utf-8", errors: str = "surrogateescape"
    ) -> None:
        self.path = Path(path).expanduser()
        self.encoding = encoding
        self.errors = errors

    def __repr__(self) -> str:
        return f"HistoryStore({str(self.path)!r})"

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    def ensure(self) -> None:
        """Create the store (and its directory) if it does not exist yet."""
        if self.exists:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()
        logger.info("Created history store: %s", self.path)

    def iter_lines(self) -> Iterator[str]:
        """Yield raw lines without their line endings. Empty if the store is missing."""
        if not self.exists:
            return
        with open(self.path, encoding=self.encoding, errors=self.errors) as f:
            for line in f:
                yield line.rstrip("\n")

    def iter_records(self) -> Iterator[HistoryRecord]:
        return parse_lines(self.iter_lines())

    def records(self) -> list[HistoryRecord]:
        return list(self.iter_records())

    def tail(self, count: int) -> list[HistoryRecord]:
        """Return the last ``count`` records in chronological order."""
        if count <= 0:
            return []
        return list(deque(self.iter_records(), maxlen=count))

    def count(self) -> int:
        return sum(1 for _ in self.iter_records())

    def count_markers(self) -> int:
        return sum(1 for line in self.iter_lines() if parse_marker(line) is not None)

    def size_bytes(self) -> int:
        if not self.exists:
            return 0
        return self.path.stat().st_size

    def append(self, records: Sequence[HistoryRecord]) -> int:
        """Append records in a single write and return how many were written.

        A marker precedes each record whose timestamp differs from the one
        before it in the batch, so the batch is self-describing regardless of
        what other sessions appended in between.
        """
        if not records:
            return 0
        lines = render_records(records)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding=self.encoding, errors=self.errors, newline="\n") as f:
            f.write("\n".join(lines) + "\n")
        logger.debug("Appended %d record(s) to %s", len(records), self.path)
        return len(records)

    def replace_lines(self, lines: Iterable[str]) -> None:
        """Atomically replace the whole store with ``lines``."""
        body = "".join(f"{line}\n" for line in lines)
        atomic_write_text(self.path, body, encoding=self.encoding, errors=self.errors)
        logger.info("Rewrote history store: %s", self.path)
