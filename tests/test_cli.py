import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from scribe import cli, search

runner = CliRunner()


@pytest.fixture()
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A plain workspace directory used as cwd, listed by directory walk."""

    async def fake_git(root: Path) -> None:
        return None

    monkeypatch.setattr(search, "git_list_files", fake_git)
    monkeypatch.chdir(tmp_path)
    for rel in ["src/main.py", "src/worker.py", "docs/manual.md"]:
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("", encoding="utf-8")
    return tmp_path


def write_config(base: Path, data: dict) -> None:
    path = base / ".scribe" / "config.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


class TestInit:
    def test_creates_layout_and_config(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["init"])
        assert result.exit_code == 0
        assert "Initialized" in result.output
        assert (project / ".scribe" / "skills").is_dir()
        data = json.loads((project / ".scribe" / "config.json").read_text(encoding="utf-8"))
        assert data["composer"]["debounce_ms"] == 200
        assert data["prompts"] == {}

    def test_keeps_existing_config(self, project: Path) -> None:
        write_config(project, {"composer": {"search_limit": 5}})
        result = runner.invoke(cli.app, ["init"])
        assert result.exit_code == 0
        data = json.loads((project / ".scribe" / "config.json").read_text(encoding="utf-8"))
        assert data == {"composer": {"search_limit": 5}}

    def test_no_gitignore(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["init", "--no-gitignore"])
        assert result.exit_code == 0
        assert not (project / ".scribe" / ".gitignore").exists()


class TestSearch:
    def test_prints_matches(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["search", "ma"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["docs/manual.md", "src/main.py"]

    def test_limit(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["search", "src", "-n", "1"])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["src/main.py"]

    def test_no_matches_prints_empty_label(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["search", "zzz"])
        assert result.exit_code == 0
        assert result.output.strip() == "No files found."

    def test_custom_empty_label(self, project: Path) -> None:
        write_config(project, {"composer": {"mention_empty_label": "Nothing."}})
        result = runner.invoke(cli.app, ["search", "zzz"])
        assert result.output.strip() == "Nothing."

    def test_blank_query_rejected(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["search", "   "])
        assert result.exit_code == 1

    def test_explicit_workspace(self, project: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
        other = tmp_path_factory.mktemp("other")
        (other / "notes.txt").write_text("", encoding="utf-8")
        result = runner.invoke(cli.app, ["search", "notes", "-C", str(other)])
        assert result.exit_code == 0
        assert result.output.splitlines() == ["notes.txt"]

    def test_missing_workspace(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["search", "ma", "-C", str(project / "nope")])
        assert result.exit_code == 1

    def test_invalid_config(self, project: Path) -> None:
        write_config(project, {"composer": {"debounce_ms": "slow"}})
        result = runner.invoke(cli.app, ["search", "ma"])
        assert result.exit_code == 1


class TestCommands:
    def test_lists_builtins(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["commands"])
        assert result.exit_code == 0
        for name in ["/help", "/review", "/quit"]:
            assert name in result.output

    def test_includes_prompts_and_skills(self, project: Path) -> None:
        write_config(project, {"prompts": {"fix": {"description": "Fix tests"}}})
        skill = project / ".scribe" / "skills" / "deploy" / "SKILL.md"
        skill.parent.mkdir(parents=True)
        skill.write_text("---\nname: deploy\ndescription: Ship it\n---\n", encoding="utf-8")
        result = runner.invoke(cli.app, ["commands"])
        assert result.exit_code == 0
        assert "/prompts:fix" in result.output
        assert "$deploy" in result.output

    def test_filter(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["commands", "-f", "rev"])
        assert result.exit_code == 0
        assert "/review" in result.output
        assert "/quit" not in result.output

    def test_filter_without_matches(self, project: Path) -> None:
        result = runner.invoke(cli.app, ["commands", "--filter", "zzz"])
        assert result.exit_code == 0
        assert result.output.strip() == "No prompts found."


class TestChat:
    def test_runs_app_for_workspace(self, project: Path) -> None:
        with patch("scribe.tui.app.ComposerApp.run") as run:
            result = runner.invoke(cli.app, ["chat"])
        assert result.exit_code == 0
        run.assert_called_once()

    def test_missing_workspace(self, project: Path) -> None:
        with patch("scribe.tui.app.ComposerApp.run") as run:
            result = runner.invoke(cli.app, ["chat", "-C", str(project / "nope")])
        assert result.exit_code == 1
        run.assert_not_called()
