"""Persistent extraction state.

Tracks when the pipeline last ran (for catch-up decisions) and which
transcripts have already been processed, keyed by ``(vault_id, path)`` with a
SHA-256 checksum so modified transcripts are picked up again.

Stored as JSON at ~/.memloop/extraction-state.json. A missing, unreadable or
invalid file loads as an empty state so extraction can always proceed.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

import aiofiles
from pydantic import BaseModel, Field, ValidationError

from memloop.config.paths import get_state_path
from memloop.extraction.types import DiscoveredTranscript
from memloop.memory.sandbox import atomic_write

logger = logging.getLogger(__name__)


class ProcessedTranscript(BaseModel):
    vault_id: str = Field(min_length=1)
    path: str = Field(min_length=1)
    checksum: str = Field(pattern=r"^[a-f0-9]{64}$")
    processed_at: datetime


class ExtractionState(BaseModel):
    last_run_at: datetime | None = None
    processed_transcripts: list[ProcessedTranscript] = Field(default_factory=list)

    def find(self, vault_id: str, path: str) -> ProcessedTranscript | None:
        for record in self.processed_transcripts:
            if record.vault_id == vault_id and record.path == path:
                return record
        return None


def calculate_checksum(content: str) -> str:
    """SHA-256 hex digest of the UTF-8 content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_transcript_processed(
    state: ExtractionState, vault_id: str, path: str, checksum: str
) -> bool:
    """True if the transcript was processed before with identical content."""
    record = state.find(vault_id, path)
    return record is not None and record.checksum == checksum


def find_unprocessed_transcripts(
    state: ExtractionState, transcripts: Iterable[DiscoveredTranscript]
) -> list[DiscoveredTranscript]:
    return [
        t
        for t in transcripts
        if not is_transcript_processed(
            state, t.vault_id, t.path, calculate_checksum(t.content)
        )
    ]


def mark_transcript_processed(
    state: ExtractionState,
    vault_id: str,
    path: str,
    checksum: str,
    now: datetime | None = None,
) -> ExtractionState:
    """Record a processed transcript, replacing any earlier record for it."""
    record = ProcessedTranscript(
        vault_id=vault_id,
        path=path,
        checksum=checksum,
        processed_at=now or datetime.now(UTC),
    )
    for i, existing in enumerate(state.processed_transcripts):
        if existing.vault_id == vault_id and existing.path == path:
            state.processed_transcripts[i] = record
            break
    else:
        state.processed_transcripts.append(record)
    return state


def update_last_run_at(
    state: ExtractionState, now: datetime | None = None
) -> ExtractionState:
    state.last_run_at = now or datetime.now(UTC)
    return state


class ExtractionStateStore:
    """Loads and atomically saves ExtractionState."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or get_state_path()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> ExtractionState:
        try:
            async with aiofiles.open(self._path, encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            logger.debug("extraction_state_missing", extra={"file.path": str(self._path)})
            return ExtractionState()
        except OSError as e:
            logger.warning(
                "extraction_state_unreadable", extra={"error.message": str(e)}
            )
            return ExtractionState()

        try:
            state = ExtractionState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "extraction_state_invalid",
                extra={"file.path": str(self._path), "error.message": str(e)},
            )
            return ExtractionState()

        logger.debug(
            "extraction_state_loaded",
            extra={"state.processed_count": len(state.processed_transcripts)},
        )
        return state

    async def save(self, state: ExtractionState) -> None:
        await atomic_write(self._path, state.model_dump_json(indent=2) + "\n")
        logger.debug(
            "extraction_state_saved",
            extra={"state.processed_count": len(state.processed_transcripts)},
        )
