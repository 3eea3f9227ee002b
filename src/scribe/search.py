"""Workspace file search backing ``@`` mentions.

WorkspaceFileSearch implements the SearchService protocol: it lists the
files of a registered workspace (``git ls-files`` when the workspace is a
git checkout, a directory walk otherwise) and returns the relative paths
that contain the query, case-insensitively.

The file listing is cached per workspace for ``cache_ttl`` seconds so a burst
of keystrokes does not spawn a git process each time.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

SKIP_DIRS = {"node_modules", "__pycache__", "target", "dist", "build"}


@dataclass
class WorkspaceRegistry:
    """Maps workspace ids to root directories."""

    roots: dict[str, Path] = field(default_factory=dict)

    def register(self, root: Path, workspace_id: str | None = None) -> str:
        """Register *root* and return its id (the directory name by default)."""
        root = root.resolve()
        wid = workspace_id or root.name or "root"
        self.roots[wid] = root
        return wid

    def root_for(self, workspace_id: str) -> Path:
        """Return the root for *workspace_id*.

        Raises:
            KeyError: If the workspace is not registered.
        """
        try:
            return self.roots[workspace_id]
        except KeyError:
            raise KeyError(f"Unknown workspace: {workspace_id}") from None


async def git_list_files(root: Path) -> list[str] | None:
    """List tracked and untracked-but-not-ignored files, or None outside a git repo."""
    try:
        proc = await asyncio.create_subprocess_exec(
            "git",
            "ls-files",
            "--cached",
            "--others",
            "--exclude-standard",
            cwd=root,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError:
        logger.debug("git unavailable for %s", root, exc_info=True)
        return None
    try:
        stdout, _ = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
        raise
    if proc.returncode != 0:
        return None
    return [line for line in stdout.decode("utf-8", errors="replace").splitlines() if line]


def walk_files(root: Path) -> list[str]:
    """List files under *root*, skipping hidden and build directories."""
    paths: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith(".") and d not in SKIP_DIRS)
        rel_dir = Path(dirpath).relative_to(root)
        for name in sorted(filenames):
            if name.startswith("."):
                continue
            paths.append((rel_dir / name).as_posix())
    return paths


def match_paths(paths: list[str], query: str, limit: int) -> list[str]:
    """Return up to *limit* paths containing *query*, case-insensitively, in listing order."""
    needle = query.lower()
    results: list[str] = []
    for path in paths:
        if needle in path.lower():
            results.append(path)
            if len(results) >= limit:
                break
    return results


class WorkspaceFileSearch:
    """SearchService over the files of registered workspaces."""

    def __init__(self, registry: WorkspaceRegistry, cache_ttl: float = 5.0) -> None:
        self.registry = registry
        self.cache_ttl = cache_ttl
        self.cache: dict[str, tuple[float, list[str]]] = {}

    async def list_files(self, workspace_id: str) -> list[str]:
        root = self.registry.root_for(workspace_id)
        cached = self.cache.get(workspace_id)
        now = time.monotonic()
        if cached and now - cached[0] < self.cache_ttl:
            return cached[1]
        paths = await git_list_files(root)
        if paths is None:
            paths = await asyncio.to_thread(walk_files, root)
        self.cache[workspace_id] = (now, paths)
        return paths

    async def search(self, workspace_id: str, query: str, limit: int) -> list[str]:
        paths = await self.list_files(workspace_id)
        return match_paths(paths, query, limit)
