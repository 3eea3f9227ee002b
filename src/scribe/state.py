"""State layout helpers for the ``.scribe/`` directory.

Example:
    from pathlib import Path
    from scribe.state import ensure_base_layout, config_path

    root = Path(".")
    ensure_base_layout(root)
    config_path(root)
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


def state_root(base: Path) -> Path:
    return base / ".scribe"


def config_path(base: Path) -> Path:
    return state_root(base) / "config.json"


def skills_root(base: Path) -> Path:
    return state_root(base) / "skills"


def logs_root(base: Path) -> Path:
    return state_root(base) / "logs"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def read_json(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Missing JSON file: {path}")
    content = path.read_text(encoding="utf-8").strip()
    if not content:
        return {}
    return json.loads(content)


def write_json(path: Path, data: dict[str, Any]) -> None:
    """Atomically write *data* as JSON to *path* (temp file + rename)."""
    serialized = json.dumps(data, indent=2, sort_keys=True)
    tmp = path.with_suffix(f".{os.getpid()}.tmp")
    tmp.write_text(f"{serialized}\n", encoding="utf-8")
    os.rename(tmp, path)


def ensure_base_layout(base: Path, create_gitignore: bool = True) -> dict[str, Path | None]:
    """Create the ``.scribe/`` structure. Idempotent."""
    ensure_dir(state_root(base))
    ensure_dir(skills_root(base))
    ensure_dir(logs_root(base))

    gitignore_path = state_root(base) / ".gitignore"
    if create_gitignore and not gitignore_path.exists():
        gitignore_content = """# Operational state (not tracked)
*.log
logs/

# Config and skills are tracked
!config.json
"""
        gitignore_path.write_text(gitignore_content, encoding="utf-8")

    return {
        "state_root": state_root(base),
        "config": config_path(base),
        "skills_root": skills_root(base),
        "logs_root": logs_root(base),
        "gitignore": gitignore_path if create_gitignore else None,
    }
