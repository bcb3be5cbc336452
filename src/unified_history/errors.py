"""Expected error types raised by history operations."""

from __future__ import annotations


class HistoryError(Exception):
    """Base exception for all expected unified-history errors."""

    message: str
    exit_code: int

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


class UsageError(HistoryError):
    """Missing or invalid arguments."""


class MissingStoreError(HistoryError):
    """The history store file does not exist."""


class UnwritableStoreError(HistoryError):
    """The filesystem refused a write to the store or its backups."""
