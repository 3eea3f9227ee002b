"""Trigger detection for the composer input.

Turns ``(text, cursor)`` into the completion trigger currently under the
cursor, if any:

    /rev          -> SlashTrigger(query="rev")
    fix @src/ma|  -> MentionTrigger(query="src/ma", start=4, end=10)

Parsing is a pure function of its arguments and is re-run after every edit
or cursor move.
"""

from __future__ import annotations

from dataclasses import dataclass

MIN_MENTION_QUERY_LENGTH = 1


@dataclass(frozen=True)
class SlashTrigger:
    """The whole buffer is a ``/command`` being typed.

    The span always covers the entire buffer, so ``start`` is 0 and ``end``
    is the buffer length at detection time.
    """

    query: str
    end: int

    kind = "slash"

    @property
    def start(self) -> int:
        return 0


@dataclass(frozen=True)
class MentionTrigger:
    """An ``@query`` ending at the cursor; ``[start, end)`` spans ``@`` through the cursor."""

    query: str
    start: int
    end: int

    kind = "mention"


Trigger = SlashTrigger | MentionTrigger


def detect_slash(text: str) -> SlashTrigger | None:
    """Return a SlashTrigger if the whole buffer is ``/`` plus a single word.

    Any newline in the buffer, or a space after the slash, closes the trigger.
    """
    if not text.startswith("/"):
        return None
    if "\n" in text:
        return None
    query = text[1:]
    if " " in query:
        return None
    return SlashTrigger(query=query, end=len(text))


def detect_mention(text: str, cursor: int, min_length: int = MIN_MENTION_QUERY_LENGTH) -> MentionTrigger | None:
    """Return the ``@query`` ending at *cursor*, or None.

    Only the current line (up to the cursor) is scanned, and only the last
    ``@`` on it counts.  The ``@`` must open the line or follow whitespace,
    and the text between it and the cursor must hold no space and be at
    least *min_length* characters long.
    """
    if cursor < 0 or cursor > len(text):
        return None
    before_cursor = text[:cursor]
    line_start = before_cursor.rfind("\n") + 1
    line = before_cursor[line_start:]
    at_index = line.rfind("@")
    if at_index < 0:
        return None
    if at_index > 0 and not line[at_index - 1].isspace():
        return None
    after_at = line[at_index + 1 :]
    if " " in after_at:
        return None
    if len(after_at) < min_length:
        return None
    return MentionTrigger(query=after_at, start=line_start + at_index, end=cursor)


def detect(text: str, cursor: int, min_mention_length: int = MIN_MENTION_QUERY_LENGTH) -> Trigger | None:
    """Detect the active trigger. Slash wins; mentions are not checked while it is active."""
    slash = detect_slash(text)
    if slash is not None:
        return slash
    return detect_mention(text, cursor, min_mention_length)
