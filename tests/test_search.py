"""Tests for workspace file search."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from scribe import search
from scribe.search import WorkspaceFileSearch, WorkspaceRegistry, git_list_files, match_paths, walk_files


def make_tree(root: Path, *paths: str) -> None:
    for rel in paths:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")


@pytest.fixture()
def no_git(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_git(root: Path) -> None:
        return None

    monkeypatch.setattr(search, "git_list_files", fake_git)


class TestWorkspaceRegistry:
    def test_default_id_is_directory_name(self, tmp_path: Path) -> None:
        root = tmp_path / "project"
        root.mkdir()
        registry = WorkspaceRegistry()
        assert registry.register(root) == "project"
        assert registry.root_for("project") == root.resolve()

    def test_explicit_id(self, tmp_path: Path) -> None:
        registry = WorkspaceRegistry()
        assert registry.register(tmp_path, "ws") == "ws"
        assert registry.root_for("ws") == tmp_path.resolve()

    def test_unknown_workspace(self) -> None:
        with pytest.raises(KeyError, match="Unknown workspace: nope"):
            WorkspaceRegistry().root_for("nope")


class TestWalkFiles:
    def test_relative_posix_paths(self, tmp_path: Path) -> None:
        make_tree(tmp_path, "src/main.py", "README.md")
        assert walk_files(tmp_path) == ["README.md", "src/main.py"]

    def test_skips_hidden_and_build_dirs(self, tmp_path: Path) -> None:
        make_tree(
            tmp_path,
            "keep.py",
            ".git/config",
            ".hidden",
            "node_modules/pkg/index.js",
            "__pycache__/x.pyc",
            "pkg/.env",
        )
        assert walk_files(tmp_path) == ["keep.py"]


class TestMatchPaths:
    PATHS = ["src/main.py", "docs/Manual.md", "tests/test_main.py", "setup.cfg"]

    def test_case_insensitive_substring(self) -> None:
        assert match_paths(self.PATHS, "MAN", 10) == ["docs/Manual.md"]

    def test_keeps_listing_order(self) -> None:
        assert match_paths(self.PATHS, "main", 10) == ["src/main.py", "tests/test_main.py"]

    def test_limit(self) -> None:
        assert match_paths(self.PATHS, "s", 2) == ["src/main.py", "docs/Manual.md"]

    def test_no_match(self) -> None:
        assert match_paths(self.PATHS, "zzz", 10) == []


class TestWorkspaceFileSearch:
    async def test_walk_fallback(self, tmp_path: Path, no_git: None) -> None:
        make_tree(tmp_path, "src/worker.py", "src/app.py", "tests/test_worker.py")
        registry = WorkspaceRegistry()
        wid = registry.register(tmp_path, "ws")
        service = WorkspaceFileSearch(registry)
        assert await service.search(wid, "work", 10) == ["src/worker.py", "tests/test_worker.py"]

    async def test_uses_git_listing(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_git(root: Path) -> list[str]:
            return ["tracked/only.py"]

        monkeypatch.setattr(search, "git_list_files", fake_git)
        make_tree(tmp_path, "untracked.py")
        registry = WorkspaceRegistry()
        service = WorkspaceFileSearch(registry)
        assert await service.search(registry.register(tmp_path, "ws"), "py", 10) == ["tracked/only.py"]

    async def test_listing_cached_within_ttl(self, tmp_path: Path, no_git: None) -> None:
        make_tree(tmp_path, "a.py")
        registry = WorkspaceRegistry()
        wid = registry.register(tmp_path, "ws")
        service = WorkspaceFileSearch(registry, cache_ttl=60)
        assert await service.search(wid, "py", 10) == ["a.py"]

        make_tree(tmp_path, "b.py")
        assert await service.search(wid, "py", 10) == ["a.py"]

    async def test_expired_listing_refreshed(self, tmp_path: Path, no_git: None) -> None:
        make_tree(tmp_path, "a.py")
        registry = WorkspaceRegistry()
        wid = registry.register(tmp_path, "ws")
        service = WorkspaceFileSearch(registry, cache_ttl=0)
        assert await service.search(wid, "py", 10) == ["a.py"]

        make_tree(tmp_path, "b.py")
        assert await service.search(wid, "py", 10) == ["a.py", "b.py"]

    async def test_unknown_workspace_raises(self) -> None:
        service = WorkspaceFileSearch(WorkspaceRegistry())
        with pytest.raises(KeyError):
            await service.search("missing", "x", 10)

    async def test_real_listing_of_plain_directory(self, tmp_path: Path) -> None:
        """Outside a git checkout the walk listing is used."""
        make_tree(tmp_path, "notes/todo.txt")
        registry = WorkspaceRegistry()
        service = WorkspaceFileSearch(registry)
        results = await service.search(registry.register(tmp_path, "ws"), "todo", 10)
        assert results == ["notes/todo.txt"]


class HangingProcess:
    """Stands in for a git process that never finishes."""

    def __init__(self) -> None:
        self.returncode: int | None = None
        self.killed = False
        self.done = asyncio.Event()

    async def communicate(self) -> tuple[bytes, bytes]:
        await self.done.wait()
        return b"", b""

    def kill(self) -> None:
        self.killed = True


class TestGitListFiles:
    async def test_cancel_kills_process(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        proc = HangingProcess()

        async def fake_exec(*args, **kwargs) -> HangingProcess:
            return proc

        monkeypatch.setattr(search.asyncio, "create_subprocess_exec", fake_exec)
        task = asyncio.create_task(git_list_files(tmp_path))
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert proc.killed

    async def test_missing_git_returns_none(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_exec(*args, **kwargs) -> None:
            raise FileNotFoundError("git")

        monkeypatch.setattr(search.asyncio, "create_subprocess_exec", fake_exec)
        assert await git_list_files(tmp_path) is None
