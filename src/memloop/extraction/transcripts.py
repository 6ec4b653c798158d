"""Transcript discovery across configured vaults.

Chat transcripts are markdown files in ``{vault}/{inbox}/chats/*.md``, each
optionally starting with a YAML frontmatter block::

    ---
    date: 2026-01-18
    time: "14:30"
    session_id: 6f1c...
    title: Planning the garden
    ---
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import aiofiles
import yaml

from memloop.config.models import MemloopConfig, VaultConfig
from memloop.extraction.state import (
    ExtractionState,
    calculate_checksum,
    is_transcript_processed,
)
from memloop.extraction.types import (
    DiscoveredTranscript,
    DiscoveryResult,
    TranscriptFrontmatter,
)

logger = logging.getLogger(__name__)

CHATS_DIRNAME = "chats"

FRONTMATTER_PATTERN = re.compile(r"^---\r?\n(.*?)\r?\n---\r?\n?", re.DOTALL)
_FRONTMATTER_KEYS = {"date", "time", "session_id", "title"}


def parse_transcript_content(
    content: str,
) -> tuple[TranscriptFrontmatter | None, str]:
    """Split a transcript into (frontmatter, body).

    Unknown keys are ignored. A block that is not a YAML mapping is treated
    as plain text, so the whole content comes back as the body.
    """
    match = FRONTMATTER_PATTERN.match(content)
    if not match:
        return None, content

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning("transcript_frontmatter_invalid", extra={"error.message": str(e)})
        return None, content
    if not isinstance(data, dict):
        logger.warning("transcript_frontmatter_not_mapping")
        return None, content

    values: dict[str, str] = {}
    for key in _FRONTMATTER_KEYS:
        value = data.get(key)
        if value is None:
            continue
        if key == "time" and isinstance(value, int) and not isinstance(value, bool):
            # YAML 1.1 reads unquoted 14:30 as base-60
            value = f"{value // 60:02d}:{value % 60:02d}"
        values[key] = str(value)

    return TranscriptFrontmatter(**values), content[match.end() :]


def get_chats_dir(config: MemloopConfig, vault: VaultConfig) -> Path:
    return config.resolve_vault_path(vault) / vault.inbox / CHATS_DIRNAME


def list_transcript_files(chats_dir: Path) -> list[str]:
    """Markdown filenames in a chats directory, sorted (names start with the date)."""
    if not chats_dir.is_dir():
        return []
    try:
        return sorted(
            entry.name
            for entry in chats_dir.iterdir()
            if entry.is_file() and entry.name.endswith(".md")
        )
    except OSError as e:
        logger.warning(
            "chats_dir_unreadable",
            extra={"file.path": str(chats_dir), "error.message": str(e)},
        )
        return []


async def read_transcript(
    config: MemloopConfig, vault: VaultConfig, filename: str
) -> DiscoveredTranscript:
    absolute_path = get_chats_dir(config, vault) / filename
    async with aiofiles.open(absolute_path, encoding="utf-8") as f:
        content = await f.read()

    frontmatter, body = parse_transcript_content(content)
    return DiscoveredTranscript(
        vault_id=vault.id,
        path=f"{vault.inbox}/{CHATS_DIRNAME}/{filename}",
        absolute_path=absolute_path,
        content=content,
        checksum=calculate_checksum(content),
        body=body,
        frontmatter=frontmatter,
    )


async def discover_transcripts(
    config: MemloopConfig, state: ExtractionState
) -> DiscoveryResult:
    """Find transcripts in every configured vault and keep the unprocessed ones.

    Unreadable files are reported in ``errors`` and skipped.
    """
    result = DiscoveryResult()
    logger.info("transcript_discovery_started", extra={"vault.count": len(config.vaults)})

    for vault in config.vaults:
        chats_dir = get_chats_dir(config, vault)
        filenames = list_transcript_files(chats_dir)
        logger.debug(
            "vault_transcripts_listed",
            extra={"vault.id": vault.id, "transcript.count": len(filenames)},
        )

        for filename in filenames:
            result.total += 1
            try:
                transcript = await read_transcript(config, vault, filename)
            except (OSError, UnicodeDecodeError) as e:
                result.errors.append((str(chats_dir / filename), str(e)))
                continue

            if is_transcript_processed(
                state, transcript.vault_id, transcript.path, transcript.checksum
            ):
                logger.debug(
                    "transcript_already_processed",
                    extra={"transcript.path": transcript.path},
                )
                continue

            result.unprocessed.append(transcript)

    logger.info(
        "transcript_discovery_complete",
        extra={
            "transcript.total": result.total,
            "transcript.unprocessed": len(result.unprocessed),
            "transcript.errors": len(result.errors),
        },
    )
    return result
