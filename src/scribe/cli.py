"""Command-line interface for scribe.

Usage example:
    scribe --help
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from scribe.catalog import build_catalog, discover_skills
from scribe.completion import filter_items
from scribe.config import ScribeConfig, default_config, load_config
from scribe.search import WorkspaceFileSearch, WorkspaceRegistry
from scribe.state import config_path, ensure_base_layout, logs_root, write_json

console = Console()
error_console = Console(stderr=True)


def print_error(message: str) -> None:
    """Print a consistently styled error message to stderr."""
    error_console.print(f"[bold red]Error:[/bold red] {message}")


app = typer.Typer(
    name="scribe",
    help="Message composer with slash-command and @file completion.",
    add_completion=False,
)


def load_config_or_exit(base: Path) -> ScribeConfig:
    try:
        return load_config(base)
    except ValueError as exc:
        print_error(str(exc))
        raise typer.Exit(code=1) from None


def resolve_workspace(workspace: Path | None) -> Path:
    root = (workspace or Path.cwd()).expanduser().resolve()
    if not root.is_dir():
        print_error(f"Workspace not found: {root}")
        raise typer.Exit(code=1)
    return root


@app.command(help="Initialize .scribe/ directory structure.")
def init(
    no_gitignore: Annotated[bool, typer.Option("--no-gitignore", help="Skip .gitignore creation.")] = False,
) -> None:
    """Initialize the .scribe/ directory structure.

    Idempotent: creates missing pieces, skips existing.
    """
    base = Path.cwd()
    paths = ensure_base_layout(base, create_gitignore=not no_gitignore)

    cfg_path = config_path(base)
    if not cfg_path.exists():
        cfg = default_config()
        write_json(cfg_path, {"composer": asdict(cfg.composer), "prompts": {}})

    typer.echo(f"Initialized {paths['state_root']}")


@app.command(help="Open the composer TUI.")
def chat(
    workspace: Annotated[
        Path | None, typer.Option("--workspace", "-C", help="Workspace directory for @file search.")
    ] = None,
    debug: Annotated[bool, typer.Option("--debug", help="Write debug logs to .scribe/logs/scribe.log.")] = False,
) -> None:
    """Open the composer TUI against a workspace (default: current directory)."""
    from scribe.tui import require_textual

    require_textual()

    base = Path.cwd()
    cfg = load_config_or_exit(base)
    root = resolve_workspace(workspace)

    if debug:
        log_dir = logs_root(base)
        log_dir.mkdir(parents=True, exist_ok=True)
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            filename=log_dir / "scribe.log",
        )

    registry = WorkspaceRegistry()
    workspace_id = registry.register(root)

    from scribe.tui.app import ComposerApp

    app_instance = ComposerApp(
        base=base,
        search_service=WorkspaceFileSearch(registry),
        workspace_id=workspace_id,
        config=cfg,
    )
    app_instance.run()


@app.command(help="Search workspace files the way @mentions do.")
def search(
    query: Annotated[str, typer.Argument(help="Text to look for in file paths.")],
    workspace: Annotated[Path | None, typer.Option("--workspace", "-C", help="Workspace directory.")] = None,
    limit: Annotated[int | None, typer.Option("--limit", "-n", help="Maximum results.")] = None,
) -> None:
    """Run one file search and print the matching paths."""
    base = Path.cwd()
    cfg = load_config_or_exit(base)
    root = resolve_workspace(workspace)

    registry = WorkspaceRegistry()
    workspace_id = registry.register(root)
    service = WorkspaceFileSearch(registry)
    trimmed = query.strip()
    if not trimmed:
        print_error("Query must not be empty.")
        raise typer.Exit(code=1)

    results = asyncio.run(service.search(workspace_id, trimmed, limit or cfg.composer.search_limit))
    if not results:
        typer.echo(cfg.composer.mention_empty_label)
        return
    for path in results:
        typer.echo(path)


@app.command(help="List slash commands, prompts and skills.")
def commands(
    filter_query: Annotated[str, typer.Option("--filter", "-f", help="Only show entries matching this text.")] = "",
) -> None:
    """Print the slash-command catalog."""
    base = Path.cwd()
    cfg = load_config_or_exit(base)
    skills = discover_skills(cfg.resolve_skills_dir(base))
    prompts = {name: p.description for name, p in cfg.prompts.items()}
    items = filter_items(build_catalog(prompts, skills), filter_query)

    if not items:
        typer.echo(cfg.composer.slash_empty_label)
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Command")
    table.add_column("Kind")
    table.add_column("Description")
    for item in items:
        table.add_row(item.title, item.hint or "command", item.description or "")
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
