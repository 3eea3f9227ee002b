"""Completion sources for the composer.

Two sources share one ``resolve`` contract so the controller never branches
on where candidates come from:

StaticSource — synchronous filter over a fixed catalog (slash commands,
    prompts, skills).
AsyncSearchSource — debounced, cancellable lookup against a SearchService
    (file mentions).

Both report through an ``on_update(items, pending)`` callback.  ``pending``
is True while a search is waiting on its debounce timer or in flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from scribe.debuglog import DebugEntry, DebugSink, DebugSource

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 200
DEFAULT_SEARCH_LIMIT = 200
MIN_SEARCH_QUERY_LENGTH = 1


@dataclass(frozen=True)
class CompletionItem:
    """One completion candidate.

    ``insert_text`` is spliced into the buffer verbatim when the item is chosen.
    """

    id: str
    title: str
    insert_text: str
    hint: str | None = None
    description: str | None = None


UpdateCallback = Callable[[list[CompletionItem], bool], None]


class CompletionSource(Protocol):
    """Anything that can turn a query into candidates."""

    @property
    def is_loading(self) -> bool: ...

    def resolve(self, query: str, on_update: UpdateCallback) -> None: ...

    def cancel(self) -> None: ...


class SearchService(Protocol):
    """Backend lookup used by AsyncSearchSource.

    Returns path-like strings, best effort, at most *limit* of them.
    """

    async def search(self, workspace_id: str, query: str, limit: int) -> list[str]: ...


# ---------------------------------------------------------------------------
# Static catalog filtering
# ---------------------------------------------------------------------------


def match_names(item: CompletionItem) -> tuple[str, ...]:
    """Lowercased names an item can be matched by (id and bare title)."""
    return (item.id.lower(), item.title.lstrip("/$").lower())


def filter_items(items: Iterable[CompletionItem], query: str) -> list[CompletionItem]:
    """Filter a catalog by *query*, case-insensitively.

    Prefix matches come first, then substring matches; each group keeps the
    catalog's order.  An empty query returns everything.
    """
    items = list(items)
    needle = query.strip().lower()
    if not needle:
        return items
    prefix: list[CompletionItem] = []
    contains: list[CompletionItem] = []
    for item in items:
        names = match_names(item)
        if any(name.startswith(needle) for name in names):
            prefix.append(item)
        elif any(needle in name for name in names):
            contains.append(item)
    return prefix + contains


class StaticSource:
    """Synchronous source over an in-memory catalog."""

    def __init__(
        self,
        items: Iterable[CompletionItem],
        matcher: Callable[[Iterable[CompletionItem], str], list[CompletionItem]] = filter_items,
    ) -> None:
        self.items: list[CompletionItem] = list(items)
        self.matcher = matcher

    @property
    def is_loading(self) -> bool:
        return False

    def filter(self, query: str) -> list[CompletionItem]:
        return self.matcher(self.items, query)

    def resolve(self, query: str, on_update: UpdateCallback) -> None:
        on_update(self.filter(query), False)

    def cancel(self) -> None:
        pass


# ---------------------------------------------------------------------------
# Async search
# ---------------------------------------------------------------------------


def file_items(paths: Iterable[object]) -> list[CompletionItem]:
    """Convert raw search results into CompletionItems.

    Values are stringified, blanks dropped and duplicates removed (first one
    wins) so ids stay unique within the result set.
    """
    seen: set[str] = set()
    items: list[CompletionItem] = []
    for value in paths:
        path = str(value)
        if not path or path in seen:
            continue
        seen.add(path)
        items.append(CompletionItem(id=path, title=path, insert_text=path))
    return items


class AsyncSearchSource:
    """Debounced search against a SearchService with stale-response rejection.

    Every ``resolve`` and ``cancel`` advances ``sequence``.  A timer or
    response tagged with an older sequence number is discarded: it never
    touches ``items``, never clears ``is_loading`` and never calls back.

    Attributes:
        service: Backend that performs the lookup.
        workspace_id: Workspace to search; searching is disabled while None.
        limit: Maximum results requested per query.
        debounce_ms: Quiet period before a query is dispatched.
        min_length: Queries shorter than this (after trimming) short-circuit.
        enabled: Master switch; when False every query resolves to empty.
        on_debug: Observability sink for dispatches, results and errors.
    """

    def __init__(
        self,
        service: SearchService,
        workspace_id: str | None = None,
        *,
        limit: int = DEFAULT_SEARCH_LIMIT,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        min_length: int = MIN_SEARCH_QUERY_LENGTH,
        enabled: bool = True,
        on_debug: DebugSink | None = None,
    ) -> None:
        self.service = service
        self.workspace_id = workspace_id
        self.limit = limit
        self.debounce_ms = debounce_ms
        self.min_length = min_length
        self.enabled = enabled
        self.on_debug = on_debug
        self.sequence = 0
        self.items: list[CompletionItem] = []
        self.is_loading = False
        self.timer: asyncio.TimerHandle | None = None
        self.tasks: set[asyncio.Task[None]] = set()

    def resolve(self, query: str, on_update: UpdateCallback) -> None:
        """Schedule a search for *query*, superseding anything pending."""
        self.cancel_timer()
        self.sequence += 1
        current = self.sequence
        trimmed = query.strip()

        if not self.enabled or not self.workspace_id or len(trimmed) < self.min_length:
            self.items = []
            self.is_loading = False
            on_update([], False)
            return

        self.items = []
        loop = asyncio.get_running_loop()
        self.timer = loop.call_later(self.debounce_ms / 1000, self.dispatch, current, trimmed, on_update)
        on_update([], True)

    def cancel(self) -> None:
        """Invalidate pending and in-flight work (trigger closed or composer unmounted)."""
        self.cancel_timer()
        self.sequence += 1
        self.is_loading = False
        self.items = []
        for task in list(self.tasks):
            task.cancel()

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def dispatch(self, sequence: int, query: str, on_update: UpdateCallback) -> None:
        """Timer callback: issue the request if it is still current."""
        if sequence != self.sequence:
            return
        self.timer = None
        self.is_loading = True
        self.record(
            "client",
            "file/search",
            {"workspace_id": self.workspace_id, "query": query, "limit": self.limit},
        )
        task = asyncio.get_running_loop().create_task(self.run_search(sequence, query, on_update))
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def run_search(self, sequence: int, query: str, on_update: UpdateCallback) -> None:
        workspace_id = self.workspace_id or ""
        try:
            response = await self.service.search(workspace_id, query, self.limit)
        except Exception as exc:
            if sequence != self.sequence:
                logger.debug("Discarding stale search error for %r (seq %d != %d)", query, sequence, self.sequence)
                return
            self.items = []
            self.is_loading = False
            self.record("error", "file/search error", str(exc) or type(exc).__name__)
            on_update([], False)
            return

        if sequence != self.sequence:
            logger.debug("Discarding stale search response for %r (seq %d != %d)", query, sequence, self.sequence)
            return
        items = file_items(response) if isinstance(response, list | tuple) else []
        self.items = items
        self.is_loading = False
        self.record("server", "file/search response", {"query": query, "count": len(items)})
        on_update(items, False)

    def record(self, source: DebugSource, label: str, payload: object) -> None:
        if self.on_debug is None:
            return
        try:
            self.on_debug(DebugEntry(source=source, label=label, payload=payload))
        except Exception:
            logger.warning("Debug sink rejected %s entry", label, exc_info=True)
