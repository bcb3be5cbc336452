"""Store snapshots and merging of external history files."""

from __future__ import annotations

import logging
import shutil
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from unified_history.errors import UnwritableStoreError, UsageError
from unified_history.storage.models import ImportReport
from unified_history.storage.store import HistoryStore
from unified_history.utils.fileio import atomic_write_text

if TYPE_CHECKING:
    from unified_history.services.session import Session

logger = logging.getLogger(__name__)

BACKUP_STAMP = "%Y%m%d_%H%M%S"


def backup_name(store: HistoryStore, when: float) -> str:
    return f"{store.path.name}.backup.{datetime.fromtimestamp(when).strftime(BACKUP_STAMP)}"


def backup(
    store: HistoryStore,
    backup_dir: Path | None = None,
    clock: Callable[[], float] = time.time,
) -> Path | None:
    """Copy the store to a timestamped file. Returns None if there is no store."""
    if not store.exists:
        logger.info("Nothing to back up: %s does not exist", store.path)
        return None

    target_dir = backup_dir or store.path.parent
    name = backup_name(store, clock())
    target = target_dir / name
    suffix = 1
    while target.exists():
        target = target_dir / f"{name}_{suffix}"
        suffix += 1

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copy2(store.path, target)
    except OSError as e:
        raise UnwritableStoreError(f"Cannot write backup {target}: {e}") from e

    logger.info("Backed up %s to %s", store.path, target)
    return target


def _read_source_lines(source: Path) -> list[str]:
    try:
        with open(source, encoding="utf-8", errors="surrogateescape") as f:
            return [line.rstrip("\n") for line in f]
    except OSError as e:
        raise UsageError(f"Cannot read import source {source}: {e}") from e


def import_history(
    store: HistoryStore,
    source: Path,
    backup_dir: Path | None = None,
    session: Session | None = None,
) -> ImportReport:
    """Merge another history file into the store.

    Without an existing store the source is adopted as-is. Otherwise the
    store is backed up, and the lines of both files are combined with exact
    duplicate lines removed. The merge works line by line, so a command can
    end up under a different marker than it had in its original file.
    """
    source = Path(source).expanduser()
    if not source.is_file():
        raise UsageError(f"Import source not found: {source}")

    source_lines = _read_source_lines(source)
    report = ImportReport(source=source, source_lines=len(source_lines))

    if not store.exists:
        try:
            atomic_write_text(
                store.path,
                "".join(f"{line}\n" for line in source_lines),
                encoding=store.encoding,
                errors=store.errors,
            )
        except OSError as e:
            raise UnwritableStoreError(f"Cannot create {store.path}: {e}") from e
        report.adopted = True
        report.merged_lines = len(source_lines)
        logger.info("Adopted %s as history store %s", source, store.path)
    else:
        store_lines = list(store.iter_lines())
        report.store_lines = len(store_lines)
        report.backup_path = backup(store, backup_dir=backup_dir)

        merged = [line for line in dict.fromkeys([*store_lines, *source_lines]) if line.strip()]
        try:
            store.replace_lines(merged)
        except OSError as e:
            raise UnwritableStoreError(f"Cannot rewrite {store.path}: {e}") from e
        report.merged_lines = len(merged)
        logger.info(
            "Merged %s into %s: %d + %d -> %d lines",
            source, store.path, report.store_lines, report.source_lines, report.merged_lines,
        )

    if session is not None:
        session.sync()
    return report
