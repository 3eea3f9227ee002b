"""ComposerApp — main Textual application for scribe chat."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

from textual.app import App, ComposeResult, ScreenStackError
from textual.binding import BindingType
from textual.containers import VerticalScroll
from textual.css.query import QueryError
from textual.message import Message
from textual.widgets import Static, TextArea

from scribe.catalog import build_catalog, discover_skills, suggest_command
from scribe.completion import AsyncSearchSource, SearchService, StaticSource
from scribe.config import ScribeConfig, default_config
from scribe.controller import CompletionController
from scribe.debuglog import DebugLog

from .widgets import CompletionMenu, MessagePanel

logger = logging.getLogger(__name__)

REVIEW_PROMPT = "Review the uncommitted changes in this workspace and point out bugs or risky edits."


def offset_from_location(text: str, location: tuple[int, int]) -> int:
    """Convert a TextArea ``(row, column)`` location into a flat offset."""
    row, column = location
    lines = text.split("\n")
    row = min(row, len(lines) - 1)
    return sum(len(line) + 1 for line in lines[:row]) + min(column, len(lines[row]))


def location_from_offset(text: str, offset: int) -> tuple[int, int]:
    """Convert a flat offset into a TextArea ``(row, column)`` location."""
    offset = min(max(offset, 0), len(text))
    before = text[:offset]
    row = before.count("\n")
    return row, offset - (before.rfind("\n") + 1)


class MessageLog(VerticalScroll):
    """Scrollable container for sent messages and system notes."""

    DEFAULT_CSS = """
    MessageLog {
        height: 1fr;
    }
    """


class StatusBar(Static):
    """Keybinding hints at the bottom."""

    DEFAULT_CSS = """
    StatusBar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """


class InputArea(TextArea):
    """User input area at the bottom of the screen.

    Enter sends the message (posts Submit to the app).
    Shift+Enter inserts a newline.
    While the completion menu is open, Up/Down/Enter/Tab/Escape go to the
    controller instead.  Enter only confirms once there is a candidate: while
    an @ search is still debouncing the draft is sent as typed.
    """

    DEFAULT_CSS = """
    InputArea {
        dock: bottom;
        height: auto;
        min-height: 3;
        max-height: 10;
        scrollbar-size-vertical: 0;
    }
    """

    class Submit(Message):
        """Posted when the user presses Enter to send."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.controller: CompletionController | None = None

    @property
    def cursor_offset(self) -> int:
        return offset_from_location(self.text, self.cursor_location)

    def apply_edit(self, text: str, cursor: int) -> None:
        """Replace the buffer and place the cursor in one step, keeping focus."""
        self.replace(text, (0, 0), self.document.end, maintain_selection_offset=False)
        self.move_cursor(location_from_offset(text, cursor))
        self.focus()

    def sync_controller(self) -> None:
        if self.controller is not None:
            self.controller.update(self.text, self.cursor_offset)

    async def handle_key(self, event) -> None:
        if self.controller is not None:
            # Route against the current buffer, not the last Changed event.
            self.sync_controller()
            if self.controller.handle_key(event.key):
                event.stop()
                event.prevent_default()
                return
        if event.key == "enter":
            event.stop()
            event.prevent_default()
            self.post_message(self.Submit())
            return
        await super()._on_key(event)

    _on_key = handle_key


class ComposerApp(App):
    """Message composer with slash-command and @file completion."""

    TITLE = "scribe"

    CSS = """
    Screen {
        layout: vertical;
    }
    .system-message {
        margin: 0 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    BINDINGS: ClassVar[list[BindingType]] = [
        ("escape", "interrupt", "Clear/Quit"),
    ]

    STATUS_IDLE = "Esc: clear/quit · Enter: send · Shift+Enter: newline · /: commands · @: files"
    STATUS_OPEN = "↑/↓: move · Enter/Tab: insert · Esc: dismiss"

    class Sent(Message):
        """Posted after a plain (non-command) message is sent."""

        def __init__(self, text: str) -> None:
            super().__init__()
            self.text = text

    def __init__(
        self,
        base: Path,
        search_service: SearchService,
        workspace_id: str | None = None,
        config: ScribeConfig | None = None,
        debug_log: DebugLog | None = None,
    ) -> None:
        super().__init__()
        self.base = base
        self.workspace_id = workspace_id
        self.config = config or default_config()
        self.debug_log = debug_log or DebugLog()
        self.search_service = search_service
        self.sent_messages: list[str] = []
        self.system_messages: list[str] = []
        self.mention_query: str | None = None
        self.controller: CompletionController | None = None

    def compose(self) -> ComposeResult:
        workspace = self.workspace_id or "no workspace"
        yield Static(f"scribe · {workspace}", id="header-bar")
        yield MessageLog(id="message-log")
        yield StatusBar(self.STATUS_IDLE, id="status-bar")
        yield CompletionMenu(id="completion-menu")
        yield InputArea(id="input-area")

    def on_mount(self) -> None:
        """Build the catalog and completion sources, then focus the input."""
        composer = self.config.composer
        skills = discover_skills(self.config.resolve_skills_dir(self.base))
        prompts = {name: p.description for name, p in self.config.prompts.items()}
        slash_source = StaticSource(build_catalog(prompts, skills))
        mention_source = AsyncSearchSource(
            self.search_service,
            self.workspace_id,
            limit=composer.search_limit,
            debounce_ms=composer.debounce_ms,
            on_debug=self.debug_log.add,
        )

        input_area = self.query_one("#input-area", InputArea)
        self.controller = CompletionController(
            slash_source,
            mention_source,
            input_area,
            min_mention_length=composer.min_mention_length,
            slash_empty_label=composer.slash_empty_label,
            mention_empty_label=composer.mention_empty_label,
            on_change=self.refresh_completion,
            on_mention_query_change=self.handle_mention_query,
        )
        input_area.controller = self.controller
        input_area.focus()

    def on_unmount(self) -> None:
        if self.controller is not None:
            self.controller.close()

    # -- Completion wiring ------------------------------------------------

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        if isinstance(event.text_area, InputArea):
            event.text_area.sync_controller()

    def on_text_area_selection_changed(self, event: TextArea.SelectionChanged) -> None:
        if isinstance(event.text_area, InputArea):
            event.text_area.sync_controller()

    def refresh_completion(self) -> None:
        """Re-render the menu and status bar from controller state."""
        if self.controller is None:
            return
        try:
            menu = self.query_one("#completion-menu", CompletionMenu)
            bar = self.query_one("#status-bar", StatusBar)
        except (QueryError, ScreenStackError):
            logger.debug("Completion widgets unavailable", exc_info=True)
            return
        state = self.controller.state()
        menu.show_state(state)
        bar.update(self.STATUS_OPEN if state.is_open else self.STATUS_IDLE)

    def handle_mention_query(self, query: str | None) -> None:
        self.mention_query = query
        logger.debug("Mention query: %r", query)

    def on_completion_menu_hover(self, event: CompletionMenu.Hover) -> None:
        if self.controller is not None:
            self.controller.hover(event.index)

    def on_completion_menu_select(self, event: CompletionMenu.Select) -> None:
        if self.controller is not None:
            self.controller.select(event.item)

    # -- Sending ----------------------------------------------------------

    def on_input_area_submit(self, _: InputArea.Submit) -> None:
        self.send_message()

    def action_interrupt(self) -> None:
        """Handle Escape with no menu open: clear input, or quit when empty."""
        try:
            input_area = self.query_one("#input-area", InputArea)
            if input_area.text.strip():
                input_area.clear()
                return
        except (QueryError, ScreenStackError):
            logger.debug("Could not query input area during interrupt", exc_info=True)
        self.exit()

    def send_message(self) -> None:
        """Send the current input as a message or handle a slash command."""
        input_area = self.query_one("#input-area", InputArea)
        text = input_area.text.strip()
        if not text:
            return

        input_area.clear()

        if text.startswith("/"):
            self.handle_slash_command(text)
            return

        self.post_user_message(text)

    def post_user_message(self, text: str) -> None:
        self.sent_messages.append(text)
        log = self.query_one("#message-log", MessageLog)
        log.mount(MessagePanel(body=text))
        log.scroll_end(animate=False)
        self.post_message(self.Sent(text))

    # -- Slash commands ---------------------------------------------------

    def handle_slash_command(self, text: str) -> None:
        """Dispatch slash commands."""
        parts = text.split(None, 1)
        # Prompt names keep their case; built-ins match case-insensitively.
        name = parts[0]
        cmd = name.lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if cmd in ("/help", "/h"):
            self.cmd_help()
        elif cmd == "/clear":
            self.cmd_clear()
        elif cmd == "/new":
            self.cmd_clear()
            self.debug_log.clear()
            self.show_system_message("Started a new conversation.")
        elif cmd == "/review":
            self.post_user_message(f"{REVIEW_PROMPT}\n\n{arg}".strip())
        elif cmd == "/debug":
            self.cmd_debug()
        elif cmd in ("/quit", "/exit"):
            self.exit()
        elif cmd.startswith("/prompts:"):
            self.cmd_prompt(name[len("/prompts:") :], arg)
        else:
            suggestion = suggest_command(cmd)
            if suggestion:
                self.show_system_message(
                    f"Unknown command: {cmd}. Did you mean {suggestion}? Type /help for available commands."
                )
            else:
                self.show_system_message(f"Unknown command: {cmd}. Type /help for available commands.")

    def cmd_prompt(self, name: str, arg: str) -> None:
        """Expand a configured prompt and send it."""
        prompt = self.config.prompts.get(name)
        if prompt is None:
            self.show_system_message(f"Unknown prompt: {name}")
            return
        body = prompt.template or prompt.description or name
        if arg:
            body = f"{body}\n\n{arg}"
        self.post_user_message(body)

    def cmd_clear(self) -> None:
        log = self.query_one("#message-log", MessageLog)
        log.remove_children()

    def cmd_debug(self) -> None:
        text = self.debug_log.format_entries(20)
        self.show_system_message(text or "No debug entries yet.")

    def cmd_help(self) -> None:
        """Show available commands."""
        help_text = (
            "/help            — show this help\n"
            "/clear           — clear the message log\n"
            "/new             — start a fresh conversation\n"
            "/review [notes]  — ask for a review of uncommitted changes\n"
            "/debug           — show recent debug entries\n"
            "/prompts:<name>  — send a configured prompt\n"
            "/quit or /exit   — quit scribe\n"
            "\n"
            "@path: mention a file (type at least one character to search)\n"
            "$skill: reference a skill (pick it from the / menu)\n"
            "↑/↓: move through completions · Enter/Tab: insert · Esc: dismiss\n"
            "Enter: send message · Shift+Enter: newline"
        )
        self.show_system_message(help_text)

    def show_system_message(self, text: str) -> None:
        """Show a system message in the message log."""
        self.system_messages.append(text)
        log = self.query_one("#message-log", MessageLog)
        log.mount(Static(text, classes="system-message"))
        log.scroll_end(animate=False)
