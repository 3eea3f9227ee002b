"""In-memory debug log for diagnostic replay.

Completion sources record what they dispatch and what comes back here.
The ``/debug`` command shows the tail of the log.
"""

from __future__ import annotations

import itertools
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

logger = logging.getLogger("scribe.debug")

DebugSource = Literal["client", "server", "error"]

DEFAULT_MAX_ENTRIES = 200

_counter = itertools.count(1)


@dataclass(frozen=True)
class DebugEntry:
    """One structured diagnostic record."""

    source: DebugSource
    label: str
    payload: Any = None
    timestamp: float = field(default_factory=time.time)
    id: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            object.__setattr__(self, "id", f"{int(self.timestamp * 1000)}-{self.source}-{next(_counter)}")


DebugSink = Callable[[DebugEntry], None]


class DebugLog:
    """Bounded list of DebugEntry records, newest last.

    Entries are mirrored to the ``scribe.debug`` logger (errors at ERROR,
    everything else at DEBUG).
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.entries: deque[DebugEntry] = deque(maxlen=max_entries)

    def __call__(self, entry: DebugEntry) -> None:
        self.add(entry)

    def add(self, entry: DebugEntry) -> None:
        self.entries.append(entry)
        level = logging.ERROR if entry.source == "error" else logging.DEBUG
        logger.log(level, "[%s] %s: %r", entry.source, entry.label, entry.payload)

    def clear(self) -> None:
        self.entries.clear()

    @property
    def has_errors(self) -> bool:
        return any(e.source == "error" for e in self.entries)

    def tail(self, n: int = 10) -> list[DebugEntry]:
        """Return the last *n* entries, oldest first."""
        if n <= 0:
            return []
        return list(self.entries)[-n:]

    def format_entries(self, n: int = 10) -> str:
        """Render the last *n* entries as plain text, one per line."""
        lines = []
        for entry in self.tail(n):
            stamp = time.strftime("%H:%M:%S", time.localtime(entry.timestamp))
            lines.append(f"{stamp}  {entry.source:<6}  {entry.label}  {entry.payload!r}")
        return "\n".join(lines)
