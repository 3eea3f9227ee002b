"""Slash-command catalog: built-in commands, configured prompts and skills.

Skills live in ``<skills_dir>/<name>/SKILL.md`` with YAML frontmatter::

    ---
    name: deploy
    description: Ship the current branch to staging.
    ---
    Body text...

Each source of entries becomes a list of CompletionItems that the
StaticSource filters while the user types ``/``.
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from scribe.completion import CompletionItem

logger = logging.getLogger(__name__)

SKILL_ID_PREFIX = "skill:"


@dataclass(frozen=True)
class Skill:
    """A skill discovered on disk."""

    name: str
    description: str = ""
    path: Path | None = None


BUILTIN_COMMANDS: list[tuple[str, str]] = [
    ("help", "show available commands and keys"),
    ("clear", "clear the message log"),
    ("new", "start a fresh conversation"),
    ("review", "ask the agent to review uncommitted changes"),
    ("debug", "show recent debug entries"),
    ("quit", "quit scribe"),
]


def command_items(commands: list[tuple[str, str]] | None = None) -> list[CompletionItem]:
    """Build items for built-in slash commands."""
    if commands is None:
        commands = BUILTIN_COMMANDS
    return [
        CompletionItem(id=name, title=f"/{name}", insert_text=f"/{name} ", description=desc)
        for name, desc in commands
    ]


def prompt_items(prompts: dict[str, str]) -> list[CompletionItem]:
    """Build ``/prompts:<name>`` items from a name -> description mapping."""
    return [
        CompletionItem(
            id=f"prompts:{name}",
            title=f"/prompts:{name}",
            insert_text=f"/prompts:{name} ",
            hint="prompt",
            description=desc or None,
        )
        for name, desc in prompts.items()
    ]


def skill_items(skills: list[Skill]) -> list[CompletionItem]:
    """Build ``$name`` items for skills."""
    return [
        CompletionItem(
            id=f"{SKILL_ID_PREFIX}{skill.name}",
            title=f"${skill.name}",
            insert_text=f"${skill.name} ",
            hint="skill",
            description=skill.description or None,
        )
        for skill in skills
    ]


# ---------------------------------------------------------------------------
# Skill discovery
# ---------------------------------------------------------------------------


def parse_skill_frontmatter(text: str) -> dict:
    """Extract the YAML frontmatter dict from a SKILL.md body.

    Raises:
        ValueError: If the frontmatter is missing or is not a mapping.
    """
    if not text.startswith("---"):
        raise ValueError("SKILL.md must start with YAML frontmatter (---)")
    parts = text.split("---", 2)
    if len(parts) < 3:
        raise ValueError("Invalid frontmatter: missing closing ---")
    try:
        data = yaml.safe_load(parts[1])
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML frontmatter: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Frontmatter must be a mapping")
    return data


def load_skill(path: Path) -> Skill:
    """Load one skill from its SKILL.md file.

    The skill name defaults to the parent directory name.
    """
    data = parse_skill_frontmatter(path.read_text(encoding="utf-8"))
    name = data.get("name") or path.parent.name
    if not isinstance(name, str):
        raise ValueError(f"{path}: name must be a string, got {type(name).__name__}")
    description = data.get("description", "")
    if not isinstance(description, str):
        raise ValueError(f"{path}: description must be a string, got {type(description).__name__}")
    return Skill(name=name.strip(), description=description.strip(), path=path)


def discover_skills(skills_dir: Path) -> list[Skill]:
    """Find all skills under *skills_dir*, sorted by name.

    Unreadable or malformed SKILL.md files are skipped with a warning.
    """
    if not skills_dir.is_dir():
        return []
    skills: dict[str, Skill] = {}
    for path in sorted(skills_dir.glob("*/SKILL.md")):
        try:
            skill = load_skill(path)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping skill %s: %s", path, exc)
            continue
        if skill.name in skills:
            logger.warning("Duplicate skill name %r in %s, keeping %s", skill.name, path, skills[skill.name].path)
            continue
        skills[skill.name] = skill
    return [skills[name] for name in sorted(skills)]


def build_catalog(prompts: dict[str, str] | None = None, skills: list[Skill] | None = None) -> list[CompletionItem]:
    """Assemble the full slash catalog: commands, then prompts, then skills."""
    return [*command_items(), *prompt_items(prompts or {}), *skill_items(skills or [])]


# ---------------------------------------------------------------------------
# Helpers used when a skill is picked
# ---------------------------------------------------------------------------


def insert_skill(text: str, name: str) -> str:
    """Add a ``$name`` reference to *text* the way the skill picker does.

    Empty text becomes ``"$name "``; text that already mentions the skill is
    returned unchanged; otherwise the snippet is appended after the trimmed
    text.
    """
    snippet = f"${name}"
    trimmed = text.strip()
    if not trimmed:
        return f"{snippet} "
    if snippet in trimmed:
        return text
    return f"{trimmed} {snippet} "


def suggest_command(cmd: str, names: list[str] | None = None) -> str | None:
    """Return the closest known ``/command`` for a mistyped one, or None."""
    if names is None:
        names = [name for name, _desc in BUILTIN_COMMANDS]
    word = cmd.lstrip("/").lower()
    if len(word) < 2:
        return None
    matches = difflib.get_close_matches(word, names, n=1, cutoff=0.6)
    return f"/{matches[0]}" if matches else None
