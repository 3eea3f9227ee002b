"""Shared fixtures; makes tests import scribe from this checkout."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

# Prepend this checkout's src/ so tests always use local code,
# even when pytest is invoked by a Python from a different venv.
_src = str(Path(__file__).resolve().parent.parent / "src")
if _src not in sys.path:
    sys.path.insert(0, _src)

from scribe.completion import CompletionItem  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-textual-integration",
        action="store_true",
        default=False,
        help="Run Textual integration tests (slow, uses app.run_test() + Pilot)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-textual-integration"):
        return
    skip = pytest.mark.skip(reason="needs --run-textual-integration flag to run")
    for item in items:
        if "textual_integration" in item.keywords:
            item.add_marker(skip)


class FakeSearchService:
    """SearchService double that records calls and answers from a dict.

    When ``gate`` is set, each call blocks on its own asyncio.Event until the
    test releases it with ``release(query)``, so completion order can be
    controlled precisely.
    """

    def __init__(self, results: dict[str, list[str]] | None = None, gate: bool = False) -> None:
        self.results = results or {}
        self.gate = gate
        self.calls: list[tuple[str, str, int]] = []
        self.events: dict[str, asyncio.Event] = {}
        self.errors: dict[str, Exception] = {}

    async def search(self, workspace_id: str, query: str, limit: int) -> list[str]:
        self.calls.append((workspace_id, query, limit))
        if self.gate:
            event = asyncio.Event()
            self.events[query] = event
            await event.wait()
        if query in self.errors:
            raise self.errors[query]
        return list(self.results.get(query, []))[:limit]

    def release(self, query: str) -> None:
        self.events[query].set()

    @property
    def queries(self) -> list[str]:
        return [q for _wid, q, _limit in self.calls]


@pytest.fixture()
def fake_search() -> FakeSearchService:
    return FakeSearchService(
        {
            "ma": ["src/main.py", "docs/manual.md"],
            "main": ["src/main.py"],
            "wor": ["src/worker.py", "tests/test_worker.py"],
            "bu": ["src/build.py", "src/bus.py"],
        }
    )


@pytest.fixture()
def gated_search(fake_search: FakeSearchService) -> FakeSearchService:
    fake_search.gate = True
    return fake_search


@pytest.fixture()
def catalog() -> list[CompletionItem]:
    return [
        CompletionItem(id="review", title="/review", insert_text="/review ", description="review changes"),
        CompletionItem(id="help", title="/help", insert_text="/help "),
        CompletionItem(id="skill:deploy", title="$deploy", insert_text="$deploy ", hint="skill"),
    ]
