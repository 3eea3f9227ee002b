"""CompletionController — owns the completion session of the composer.

The controller is fed every text/cursor change via ``update``.  It re-runs
trigger detection, picks the matching source (slash -> static catalog,
mention -> async file search), tracks the highlighted candidate and writes
chosen completions back through a TextBufferHost.

States:
    Closed                      — no trigger under the cursor.
    Open(kind, candidates, ...) — a slash or mention trigger is active.

Only navigation keys are consumed, and only while Open; everything else is
left to normal text editing.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from scribe.catalog import SKILL_ID_PREFIX, insert_skill
from scribe.completion import CompletionItem, CompletionSource
from scribe.trigger import MIN_MENTION_QUERY_LENGTH, MentionTrigger, SlashTrigger, Trigger, detect

logger = logging.getLogger(__name__)

NEXT_KEYS = {"down", "ctrl+n"}
PREVIOUS_KEYS = {"up", "ctrl+p"}
CONFIRM_KEYS = {"enter", "tab"}
DISMISS_KEYS = {"escape"}


@dataclass(frozen=True)
class TextEdit:
    """A full-buffer replacement plus the cursor offset to restore."""

    text: str
    cursor: int


class TextBufferHost(Protocol):
    """The input surface the controller edits.

    ``apply_edit`` must set text and cursor together and refocus the input.
    """

    def apply_edit(self, text: str, cursor: int) -> None: ...


@dataclass(frozen=True)
class CompletionState:
    """Read-only snapshot for rendering."""

    is_open: bool = False
    kind: str | None = None
    candidates: tuple[CompletionItem, ...] = field(default_factory=tuple)
    highlighted_index: int = 0
    loading: bool = False
    empty_label: str = ""


def apply_completion(text: str, trigger: Trigger | None, insert_text: str) -> TextEdit:
    """Splice *insert_text* over the trigger's span.

    The cursor lands right after the inserted text.  Without a trigger the
    whole buffer is replaced.
    """
    if trigger is None:
        return TextEdit(text=insert_text, cursor=len(insert_text))
    before = text[: trigger.start]
    after = text[trigger.end :]
    return TextEdit(text=f"{before}{insert_text}{after}", cursor=len(before) + len(insert_text))


def remove_trigger(text: str, trigger: Trigger) -> TextEdit:
    """Dismiss edit: slash clears the buffer, mention drops exactly its span."""
    if isinstance(trigger, SlashTrigger):
        return TextEdit(text="", cursor=0)
    return TextEdit(text=text[: trigger.start] + text[trigger.end :], cursor=trigger.start)


def apply_skill(text: str, trigger: Trigger | None, name: str) -> TextEdit:
    """Drop the trigger text, then add a ``$name`` reference to what is left."""
    if trigger is not None:
        text = text[: trigger.start] + text[trigger.end :]
    text = insert_skill(text, name)
    return TextEdit(text=text, cursor=len(text))


class CompletionController:
    """Completion state machine for one composer.

    Attributes:
        trigger: The active trigger, or None when closed.
        candidates: Candidates for the active trigger (empty while loading).
        highlighted_index: Index of the highlighted candidate.
        loading: True while the active source has work pending.
    """

    def __init__(
        self,
        slash_source: CompletionSource,
        mention_source: CompletionSource,
        host: TextBufferHost | None = None,
        *,
        min_mention_length: int = MIN_MENTION_QUERY_LENGTH,
        slash_empty_label: str = "No prompts found.",
        mention_empty_label: str = "No files found.",
        on_change: Callable[[], None] | None = None,
        on_mention_query_change: Callable[[str | None], None] | None = None,
    ) -> None:
        self.sources: dict[str, CompletionSource] = {"slash": slash_source, "mention": mention_source}
        self.host = host
        self.min_mention_length = min_mention_length
        self.empty_labels = {"slash": slash_empty_label, "mention": mention_empty_label}
        self.on_change = on_change
        self.on_mention_query_change = on_mention_query_change
        self.text = ""
        self.cursor = 0
        self.trigger: Trigger | None = None
        self.candidates: list[CompletionItem] = []
        self.highlighted_index = 0
        self.loading = False
        # Bumped on every resolve so late callbacks for an old query are ignored.
        self.generation = 0

    # -- Derived state ----------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.trigger is not None

    @property
    def active_kind(self) -> str | None:
        return self.trigger.kind if self.trigger is not None else None

    @property
    def current_mention_query(self) -> str | None:
        """The live ``@`` query, or None when no mention is active."""
        if isinstance(self.trigger, MentionTrigger):
            return self.trigger.query
        return None

    @property
    def highlighted(self) -> CompletionItem | None:
        if not self.candidates:
            return None
        return self.candidates[self.highlighted_index]

    def state(self) -> CompletionState:
        kind = self.active_kind
        return CompletionState(
            is_open=self.is_open,
            kind=kind,
            candidates=tuple(self.candidates),
            highlighted_index=self.highlighted_index,
            loading=self.loading,
            empty_label=self.empty_labels.get(kind, "") if kind else "",
        )

    # -- Input ------------------------------------------------------------

    def update(self, text: str, cursor: int) -> None:
        """Re-evaluate the trigger after a text or cursor change."""
        self.text = text
        self.cursor = cursor
        previous = self.trigger
        trigger = detect(text, cursor, self.min_mention_length)
        self.trigger = trigger

        if trigger is None:
            if previous is not None:
                self.sources[previous.kind].cancel()
                self.reset_session()
                self.notify_mention_query(previous)
                self.notify()
            return

        if previous is not None and previous.kind == trigger.kind and previous.query == trigger.query:
            # Cursor moved or text outside the span changed; candidates still apply.
            return

        if previous is not None and previous.kind != trigger.kind:
            self.sources[previous.kind].cancel()

        self.reset_session()
        self.resolve(trigger)
        self.notify_mention_query(previous)
        self.notify()

    def resolve(self, trigger: Trigger) -> None:
        self.generation += 1
        generation = self.generation
        source = self.sources[trigger.kind]

        def receive(items: list[CompletionItem], pending: bool) -> None:
            if generation != self.generation or self.trigger is None or self.trigger.kind != trigger.kind:
                logger.debug("Ignoring late %s candidates for %r", trigger.kind, trigger.query)
                return
            self.candidates = list(items)
            self.loading = pending
            self.clamp_highlight()
            self.notify()

        source.resolve(trigger.query, receive)

    def reset_session(self) -> None:
        self.candidates = []
        self.highlighted_index = 0
        self.loading = False

    def clamp_highlight(self) -> None:
        if not self.candidates:
            self.highlighted_index = 0
        else:
            self.highlighted_index = min(max(self.highlighted_index, 0), len(self.candidates) - 1)

    # -- Navigation -------------------------------------------------------

    def move_next(self) -> None:
        if not self.is_open or not self.candidates:
            return
        self.highlighted_index = (self.highlighted_index + 1) % len(self.candidates)
        self.notify()

    def move_previous(self) -> None:
        if not self.is_open or not self.candidates:
            return
        self.highlighted_index = (self.highlighted_index - 1) % len(self.candidates)
        self.notify()

    def hover(self, index: int) -> None:
        """Pointer moved over a menu row: highlight without confirming."""
        if not self.is_open or not 0 <= index < len(self.candidates):
            return
        if index != self.highlighted_index:
            self.highlighted_index = index
            self.notify()

    def confirm(self) -> bool:
        """Apply the highlighted candidate. Returns False (no-op) when there is none."""
        item = self.highlighted if self.is_open else None
        if item is None:
            return False
        self.select(item)
        return True

    def select(self, item: CompletionItem) -> None:
        """Apply *item* (menu click or keyboard confirm)."""
        if item.id.startswith(SKILL_ID_PREFIX):
            edit = apply_skill(self.text, self.trigger, item.id[len(SKILL_ID_PREFIX) :])
        else:
            edit = apply_completion(self.text, self.trigger, item.insert_text)
        self.commit(edit)

    def dismiss(self) -> bool:
        """Escape while open: drop the trigger text. Returns False when closed."""
        if self.trigger is None:
            return False
        self.commit(remove_trigger(self.text, self.trigger))
        return True

    def handle_key(self, key: str) -> bool:
        """Route a key while open. Returns True if the key was consumed."""
        if not self.is_open:
            return False
        if key in NEXT_KEYS:
            self.move_next()
            return True
        if key in PREVIOUS_KEYS:
            self.move_previous()
            return True
        if key in CONFIRM_KEYS:
            return self.confirm()
        if key in DISMISS_KEYS:
            return self.dismiss()
        return False

    # -- Output -----------------------------------------------------------

    def commit(self, edit: TextEdit) -> None:
        if self.host is not None:
            self.host.apply_edit(edit.text, edit.cursor)
        self.update(edit.text, edit.cursor)

    def close(self) -> None:
        """Cancel all sources and close the session (composer unmounting)."""
        self.generation += 1
        for source in self.sources.values():
            source.cancel()
        previous = self.trigger
        self.trigger = None
        self.reset_session()
        if previous is not None:
            self.notify_mention_query(previous)

    def notify_mention_query(self, previous: Trigger | None) -> None:
        if self.on_mention_query_change is None:
            return
        before = previous.query if isinstance(previous, MentionTrigger) else None
        after = self.current_mention_query
        if before != after:
            self.on_mention_query_change(after)

    def notify(self) -> None:
        if self.on_change is not None:
            self.on_change()
