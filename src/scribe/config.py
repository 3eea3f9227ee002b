"""Configuration system for scribe.

Loads composer tuning, prompt definitions and the skills location from
``.scribe/config.json``. All fields are optional — sensible defaults are
provided for zero-config operation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from scribe.completion import DEFAULT_DEBOUNCE_MS, DEFAULT_SEARCH_LIMIT
from scribe.state import config_path, skills_root
from scribe.trigger import MIN_MENTION_QUERY_LENGTH

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass
class ComposerConfig:
    """Completion behaviour of the composer input."""

    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    search_limit: int = DEFAULT_SEARCH_LIMIT
    min_mention_length: int = MIN_MENTION_QUERY_LENGTH
    slash_empty_label: str = "No prompts found."
    mention_empty_label: str = "No files found."


@dataclass
class PromptDef:
    """A reusable prompt exposed as ``/prompts:<name>``."""

    description: str = ""
    template: str = ""


@dataclass
class ScribeConfig:
    """Top-level configuration, loaded from .scribe/config.json."""

    composer: ComposerConfig = field(default_factory=ComposerConfig)
    prompts: dict[str, PromptDef] = field(default_factory=dict)
    skills_dir: str = ""

    def resolve_skills_dir(self, base: Path) -> Path:
        """Absolute skills directory; defaults to ``.scribe/skills``."""
        if not self.skills_dir:
            return skills_root(base)
        path = Path(self.skills_dir).expanduser()
        return path if path.is_absolute() else base / path


def default_config() -> ScribeConfig:
    """Return the built-in default configuration."""
    return ScribeConfig()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

VALID_TOP_KEYS = {"composer", "prompts", "skills_dir"}
VALID_COMPOSER_KEYS = {"debounce_ms", "search_limit", "min_mention_length", "slash_empty_label", "mention_empty_label"}
VALID_PROMPT_KEYS = {"description", "template"}


def check_unknown_keys(data: dict, valid: set[str], context: str) -> None:
    """Raise ValueError if data contains keys not in valid set."""
    unknown = set(data) - valid
    if unknown:
        raise ValueError(f"Unknown keys in {context}: {', '.join(sorted(unknown))}")


def require_int(data: dict, key: str, default: int, context: str, minimum: int) -> int:
    value = data.get(key, default)
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{context}.{key} must be an integer, got {type(value).__name__}")
    if value < minimum:
        raise ValueError(f"{context}.{key} must be >= {minimum}, got {value}")
    return value


def require_str(data: dict, key: str, default: str, context: str) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ValueError(f"{context}.{key} must be a string, got {type(value).__name__}")
    return value


def validate_composer(data: dict) -> ComposerConfig:
    """Validate and construct a ComposerConfig from a raw dict."""
    check_unknown_keys(data, VALID_COMPOSER_KEYS, "composer")
    defaults = ComposerConfig()
    return ComposerConfig(
        debounce_ms=require_int(data, "debounce_ms", defaults.debounce_ms, "composer", 0),
        search_limit=require_int(data, "search_limit", defaults.search_limit, "composer", 1),
        min_mention_length=require_int(data, "min_mention_length", defaults.min_mention_length, "composer", 0),
        slash_empty_label=require_str(data, "slash_empty_label", defaults.slash_empty_label, "composer"),
        mention_empty_label=require_str(data, "mention_empty_label", defaults.mention_empty_label, "composer"),
    )


def validate_prompt(name: str, data: dict) -> PromptDef:
    """Validate and construct a PromptDef from a raw dict."""
    context = f"prompts.{name}"
    check_unknown_keys(data, VALID_PROMPT_KEYS, context)
    return PromptDef(
        description=require_str(data, "description", "", context),
        template=require_str(data, "template", "", context),
    )


def validate_config(data: dict) -> ScribeConfig:
    """Validate a raw dict and construct a ScribeConfig.

    Raises:
        ValueError: On unknown keys, type errors or out-of-range values.
    """
    check_unknown_keys(data, VALID_TOP_KEYS, "config")

    composer_data = data.get("composer", {})
    if not isinstance(composer_data, dict):
        raise ValueError(f"composer must be an object, got {type(composer_data).__name__}")
    composer = validate_composer(composer_data)

    prompts_data = data.get("prompts", {})
    if not isinstance(prompts_data, dict):
        raise ValueError(f"prompts must be an object, got {type(prompts_data).__name__}")
    prompts: dict[str, PromptDef] = {}
    for name, prompt_data in prompts_data.items():
        if not name or " " in name:
            raise ValueError(f"Invalid prompt name {name!r}: must be non-empty with no spaces")
        if not isinstance(prompt_data, dict):
            raise ValueError(f"prompts.{name} must be an object, got {type(prompt_data).__name__}")
        prompts[name] = validate_prompt(name, prompt_data)

    skills_dir = require_str(data, "skills_dir", "", "config")

    return ScribeConfig(composer=composer, prompts=prompts, skills_dir=skills_dir)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_config(base: Path) -> ScribeConfig:
    """Load configuration from .scribe/config.json, falling back to defaults.

    Returns default_config() if the file doesn't exist or is empty.

    Raises:
        ValueError: If the file exists but contains invalid JSON or fails
            validation.
    """
    path = config_path(base)
    if not path.exists():
        return default_config()

    text = path.read_text(encoding="utf-8").strip()
    if not text or text == "{}":
        return default_config()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Config must be a JSON object, got {type(data).__name__}")

    return validate_config(data)
