"""Timestamp and match formatting for terminal output."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from rich.text import Text

logger = logging.getLogger(__name__)

TIME_FORMATS: dict[str, str | None] = {
    "compact": "%m-%d %H:%M",
    "full": "%Y-%m-%d %H:%M:%S",
    "epoch": None,
}

UNKNOWN_TIME = "unknown"

# surrogateescape maps byte 0xNN to U+DCNN
_ESCAPED_BYTES = {code: 0xFFFD for code in range(0xDC80, 0xDD00)}


def format_timestamp(epoch: int | str | None, mode: str = "compact") -> str:
    """Render epoch seconds in local time.

    Returns ``"unknown"`` for anything that cannot be parsed or rendered.
    """
    if mode not in TIME_FORMATS:
        raise ValueError(f"Unknown time format: {mode}")
    if epoch is None:
        return UNKNOWN_TIME
    try:
        value = int(epoch)
        if value < 0:
            return UNKNOWN_TIME
        pattern = TIME_FORMATS[mode]
        if pattern is None:
            return str(value)
        return datetime.fromtimestamp(value).strftime(pattern)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Cannot render timestamp %r", epoch)
        return UNKNOWN_TIME


def printable(text: str) -> str:
    """Replace escaped undecodable bytes with U+FFFD, one character each."""
    return text.translate(_ESCAPED_BYTES)


def highlight(text: str, spans: Sequence[tuple[int, int]], style: str = "bold red") -> Text:
    """Return ``text`` as rich Text with each span emphasised."""
    rendered = Text(printable(text))
    for start, end in spans:
        rendered.stylize(style, start, end)
    return rendered


def format_size(num_bytes: int) -> str:
    """Format a byte count to a human-readable size."""
    if num_bytes < 1024:
        return f"{num_bytes} B"
    elif num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    else:
        return f"{num_bytes / (1024 * 1024):.1f} MB"
