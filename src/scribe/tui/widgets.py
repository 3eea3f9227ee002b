"""Widgets for the composer TUI.

CompletionMenu — candidate list shown above the input while a trigger is open.
MessagePanel — a sent message, rendered as Markdown.
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.markdown import Markdown as RichMarkdown
from rich.text import Text
from textual import events
from textual.message import Message
from textual.widgets import Static

from scribe.completion import CompletionItem
from scribe.controller import CompletionState

MAX_VISIBLE_ITEMS = 8
LOADING_LABEL = "Searching..."

# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def format_item(item: CompletionItem, selected: bool) -> Text:
    """Render one candidate: title, optional hint, optional description line."""
    marker = "› " if selected else "  "
    text = Text(marker, style="bold" if selected else "")
    text.append(item.title, style="bold reverse" if selected else "bold")
    if item.hint:
        text.append(f"  {item.hint}", style="italic dim")
    if item.description:
        text.append("\n    ")
        text.append(item.description, style="dim")
    return text


def visible_window(count: int, highlighted: int, max_visible: int = MAX_VISIBLE_ITEMS) -> range:
    """Indices to show so the highlighted item stays in view."""
    if count <= max_visible:
        return range(count)
    start = min(max(highlighted - max_visible + 1, 0), count - max_visible)
    return range(start, start + max_visible)


def render_menu(
    candidates: Sequence[CompletionItem],
    highlighted: int,
    empty_label: str,
    loading: bool = False,
    max_visible: int = MAX_VISIBLE_ITEMS,
) -> tuple[Text, list[int]]:
    """Build the menu text and a row -> candidate index map.

    An empty list renders a single placeholder row (the loading label while a
    search is pending) that maps to no candidate.
    """
    if not candidates:
        label = LOADING_LABEL if loading else empty_label
        return Text(f"  {label}", style="dim italic"), []

    rows: list[int] = []
    parts: list[Text] = []
    for index in visible_window(len(candidates), highlighted, max_visible):
        rendered = format_item(candidates[index], index == highlighted)
        rows.extend([index] * len(rendered.plain.split("\n")))
        parts.append(rendered)
    return Text("\n").join(parts), rows


# ---------------------------------------------------------------------------
# Completion menu
# ---------------------------------------------------------------------------


class CompletionMenu(Static):
    """Shows the controller's candidates; never owns the selection itself.

    Hidden by default.  Call show_state() with a CompletionState after every
    controller change.  Pointer events are forwarded as Hover / Select
    messages for the app to hand back to the controller.
    """

    class Hover(Message):
        """Posted when the pointer moves over a candidate row."""

        def __init__(self, index: int) -> None:
            super().__init__()
            self.index = index

    class Select(Message):
        """Posted when a candidate row is clicked."""

        def __init__(self, item: CompletionItem) -> None:
            super().__init__()
            self.item = item

    DEFAULT_CSS = """
    CompletionMenu {
        dock: bottom;
        height: auto;
        max-height: 16;
        background: $surface;
        padding: 0 1;
        display: none;
    }
    CompletionMenu.visible {
        display: block;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.candidates: tuple[CompletionItem, ...] = ()
        self.highlighted_index = 0
        self.rows: list[int] = []
        self.rendered_text = ""

    def show_state(self, state: CompletionState) -> None:
        """Render *state*, or hide when the session is closed."""
        if not state.is_open:
            self.hide_menu()
            return
        self.candidates = state.candidates
        self.highlighted_index = state.highlighted_index
        text, self.rows = render_menu(state.candidates, state.highlighted_index, state.empty_label, state.loading)
        self.rendered_text = text.plain
        self.update(text)
        self.add_class("visible")

    def hide_menu(self) -> None:
        self.candidates = ()
        self.highlighted_index = 0
        self.rows = []
        self.rendered_text = ""
        self.remove_class("visible")
        self.update("")

    def index_at_row(self, row: int) -> int | None:
        if 0 <= row < len(self.rows):
            return self.rows[row]
        return None

    def index_for_event(self, event: events.MouseEvent) -> int | None:
        offset = event.get_content_offset(self)
        if offset is None:
            return None
        return self.index_at_row(offset.y)

    def on_mouse_move(self, event: events.MouseMove) -> None:
        index = self.index_for_event(event)
        if index is not None and index != self.highlighted_index:
            self.post_message(self.Hover(index))

    def on_click(self, event: events.Click) -> None:
        index = self.index_for_event(event)
        if index is not None:
            event.stop()
            self.post_message(self.Select(self.candidates[index]))


# ---------------------------------------------------------------------------
# Message log entries
# ---------------------------------------------------------------------------


class MessagePanel(Static):
    """A sent message rendered as Markdown inside a bordered panel."""

    DEFAULT_CSS = """
    MessagePanel {
        margin: 0 1;
        padding: 0 1;
        border: round $secondary;
    }
    """

    def __init__(self, body: str, sender: str = "you", **kwargs) -> None:
        super().__init__(**kwargs)
        self.sender = sender
        self.body = body

    def on_mount(self) -> None:
        self.border_title = self.sender
        self.update(RichMarkdown(self.body))
