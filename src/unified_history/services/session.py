"""Interactive session buffer and its synchronisation with the shared store."""

from __future__ import annotations

import atexit
import logging
import os
import signal
import threading
import time
from typing import Callable

from unified_history.config import DEFAULT_RETENTION, StoreConfig
from unified_history.storage.models import HistoryRecord
from unified_history.storage.store import HistoryStore

logger = logging.getLogger(__name__)

PostCommandHook = Callable[["Session"], object]

EXIT_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def normalize_command(command: str) -> str:
    """Collapse a multi-line command onto one line, the way bash's cmdhist does."""
    parts = [part.strip() for part in command.splitlines()]
    return "; ".join(part for part in parts if part)


class Session:
    """One interactive session's command buffer.

    ``buffer`` mirrors the tail of the store after every successful sync.
    Entries recorded since the last sync are kept at the end of the buffer
    until they have been appended to the store.
    """

    def __init__(
        self,
        store: HistoryStore,
        retention: int = DEFAULT_RETENTION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.retention = retention
        self.buffer: list[HistoryRecord] = []
        self.local_only = False
        self._synced = 0
        self._hooks: list[PostCommandHook] = []
        self._clock = clock
        self._closed = False

    @classmethod
    def start(cls, config: StoreConfig, install_handlers: bool = True) -> Session:
        """Open a session on the configured store with sync-after-every-command."""
        session = cls(HistoryStore(config.resolved_path()), retention=config.retention)
        session.sync()
        session.add_hook(Session.sync)
        if install_handlers:
            session.install_exit_handlers()
        return session

    def add_hook(self, hook: PostCommandHook) -> None:
        """Register a callback run after every recorded command."""
        self._hooks.append(hook)

    def record(self, command: str) -> HistoryRecord | None:
        """Add a completed command to the buffer and run the post-command hooks."""
        text = normalize_command(command)
        if not text:
            return None
        entry = HistoryRecord(text=text, timestamp=int(self._clock()), position=len(self.buffer))
        self.buffer.append(entry)
        for hook in self._hooks:
            hook(self)
        return entry

    def pending(self) -> list[HistoryRecord]:
        """Buffer entries not yet written to the store."""
        return self.buffer[self._synced:]

    def sync(self) -> bool:
        """Flush pending entries, then reload the buffer from the store.

        The store is created on the first sync. Returns False when the store could not be written or read; the session
        then keeps working from its own buffer and retries on the next sync.
        """
        pending = self.pending()
        try:
            self.store.ensure()
            self.store.append(pending)
        except OSError as e:
            self._degrade(e)
            return False
        self._synced = len(self.buffer)

        try:
            records = self.store.tail(self.retention)
        except OSError as e:
            self._degrade(e)
            return False

        self.buffer.clear()
        self.buffer.extend(records)
        self._synced = len(self.buffer)
        if self.local_only:
            logger.info("History store reachable again: %s", self.store.path)
        self.local_only = False
        return True

    def close(self) -> None:
        """Final flush at session end. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.sync()
        logger.debug("Session closed (%d pending)", len(self.pending()))

    def install_exit_handlers(self) -> None:
        """Flush on interpreter exit and on SIGTERM/SIGHUP."""
        atexit.register(self.close)
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in EXIT_SIGNALS:
            signal.signal(sig, self._handle_exit_signal)

    def _handle_exit_signal(self, signum: int, frame: object) -> None:
        logger.info("Signal %d received, flushing history", signum)
        self.close()
        signal.signal(signum, signal.SIG_DFL)
        os.kill(os.getpid(), signum)

    def _degrade(self, error: OSError) -> None:
        if not self.local_only:
            logger.warning("History store unavailable, keeping session-local history: %s", error)
        self.local_only = True
