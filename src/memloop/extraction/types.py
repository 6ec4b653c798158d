"""Extraction pipeline types.

Public types:
- DiscoveredTranscript: A transcript file ready for extraction
- DiscoveryResult: Output of transcript discovery
- ExtractionResult: Outcome of one extract_facts call
- RunResult: Outcome of one end-to-end extraction run
- PromptInfo: The loaded base extraction prompt
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class TranscriptFrontmatter:
    """Known frontmatter keys of a chat transcript."""

    date: str | None = None  # YYYY-MM-DD
    time: str | None = None  # HH:MM
    session_id: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class DiscoveredTranscript:
    vault_id: str
    # Relative to the vault root; part of the processed-transcript key
    path: str
    # What the agent is told to read
    absolute_path: Path
    content: str
    checksum: str
    body: str
    frontmatter: TranscriptFrontmatter | None = None


@dataclass
class DiscoveryResult:
    total: int = 0
    unprocessed: list[DiscoveredTranscript] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)  # (path, error)


@dataclass(frozen=True)
class ExtractionResult:
    success: bool
    transcripts_processed: int
    was_retry: bool
    error: str | None = None


@dataclass(frozen=True)
class RunResult:
    """Outcome of one extraction run; the coordinator keeps the latest."""

    success: bool
    transcripts_discovered: int = 0
    transcripts_unprocessed: int = 0
    transcripts_processed: int = 0
    duplicates_filtered: int = 0
    duration_ms: int = 0
    was_catch_up: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PromptInfo:
    content: str
    is_override: bool
    # None for the built-in prompt
    path: Path | None = None
