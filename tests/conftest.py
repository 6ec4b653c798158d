"""Shared test fixtures and factories."""

from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from memloop.config.models import (
    ExtractionConfig,
    MemloopConfig,
    MemoryConfig,
    VaultConfig,
)
from memloop.config.paths import get_memloop_home
from memloop.extraction.agent import AgentOptions
from memloop.extraction.state import calculate_checksum
from memloop.extraction.types import DiscoveredTranscript

# =============================================================================
# Environment Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point MEMLOOP_HOME and the memory file at a temp dir for every test."""
    home = tmp_path / "memloop-home"
    monkeypatch.setenv("MEMLOOP_HOME", str(home))
    monkeypatch.setenv("MEMORY_FILE_PATH_OVERRIDE", str(tmp_path / "rules" / "memory.md"))
    monkeypatch.setenv("VAULTS_DIR", str(tmp_path / "vaults"))
    monkeypatch.delenv("EXTRACTION_SCHEDULE", raising=False)
    monkeypatch.delenv("EXTRACTION_CATCHUP_HOURS", raising=False)
    monkeypatch.delenv("SENTRY_DSN", raising=False)
    monkeypatch.chdir(tmp_path)
    get_memloop_home.cache_clear()
    yield home
    get_memloop_home.cache_clear()


# =============================================================================
# Paths and Configuration
# =============================================================================


@pytest.fixture
def vaults_dir(tmp_path: Path) -> Path:
    path = tmp_path / "vaults"
    path.mkdir()
    return path


@pytest.fixture
def memory_path(tmp_path: Path) -> Path:
    return tmp_path / "rules" / "memory.md"


@pytest.fixture
def config(vaults_dir: Path, memory_path: Path) -> MemloopConfig:
    """Config with one vault and no retry delay."""
    return MemloopConfig(
        vaults_dir=vaults_dir,
        vaults=[VaultConfig(id="personal", path=Path("personal"))],
        timezone="UTC",
        extraction=ExtractionConfig(retry_delay_ms=0),
        memory=MemoryConfig(path=memory_path),
    )


@pytest.fixture
def write_transcript(vaults_dir: Path) -> Callable[..., Path]:
    """Write a chat transcript into a vault inbox."""

    def _write(
        name: str,
        content: str,
        vault: str = "personal",
        inbox: str = "00_Inbox",
    ) -> Path:
        chats = vaults_dir / vault / inbox / "chats"
        chats.mkdir(parents=True, exist_ok=True)
        path = chats / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write


def make_transcript(
    name: str = "2026-01-18-1430-garden.md",
    content: str = "User: I prefer short answers.\n",
    vault_id: str = "personal",
    base: Path = Path("/vaults/personal"),
) -> DiscoveredTranscript:
    path = f"00_Inbox/chats/{name}"
    return DiscoveredTranscript(
        vault_id=vault_id,
        path=path,
        absolute_path=base / path,
        content=content,
        checksum=calculate_checksum(content),
        body=content,
    )


@pytest.fixture
def transcript_factory() -> Callable[..., DiscoveredTranscript]:
    return make_transcript


# =============================================================================
# Agent Fakes
# =============================================================================


class FakeAgent:
    """Scripted QueryFn.

    ``outcomes`` holds one entry per call: None succeeds, an exception is
    raised after the first event. ``edit`` is applied to the sandbox file on
    successful calls.
    """

    def __init__(
        self,
        outcomes: list[Exception | None] | None = None,
        edit: Callable[[str], str] | None = None,
        events: int = 3,
    ):
        self.outcomes = list(outcomes or [None])
        self.edit = edit
        self.events = events
        self.calls: list[tuple[str, AgentOptions]] = []
        self.events_consumed = 0

    async def __call__(
        self, prompt: str, options: AgentOptions
    ) -> AsyncIterator[dict[str, Any]]:
        self.calls.append((prompt, options))
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]

        yield {"type": "system", "subtype": "init"}
        self.events_consumed += 1
        if outcome is not None:
            raise outcome

        if self.edit is not None:
            sandbox = options.cwd / ".memory-extraction" / "memory.md"
            sandbox.write_text(self.edit(sandbox.read_text(encoding="utf-8")), encoding="utf-8")

        for _ in range(self.events - 1):
            yield {"type": "assistant", "message": {"content": []}}
            self.events_consumed += 1

    @property
    def call_count(self) -> int:
        return len(self.calls)


@pytest.fixture
def fake_agent() -> Callable[..., FakeAgent]:
    return FakeAgent


@pytest.fixture
def cli_runner():
    """Create a Typer CLI test runner with colors disabled."""
    from typer.testing import CliRunner

    return CliRunner(env={"NO_COLOR": "1"})
