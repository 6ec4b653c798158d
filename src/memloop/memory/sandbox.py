"""Sandboxed staging for the canonical memory document.

The extraction agent never touches the canonical memory file. Each run gets a
staging copy under ``{vaults_dir}/.memory-extraction/memory.md``; the agent
edits that copy, and the result is folded back into the canonical file with
an atomic temp-file + rename, after size enforcement.

Run sequence::

    check_and_recover -> setup_sandbox -> (agent edits) -> commit_sandbox
                                                        -> cleanup_sandbox

``cleanup_sandbox`` runs on every exit path, so only a crash leaves a staging
file behind; the next run's ``check_and_recover`` discards it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import aiofiles

from memloop.config.models import DUPLICATE_THRESHOLD, MAX_MEMORY_SIZE_BYTES
from memloop.config.paths import get_memory_file_path
from memloop.config.paths import get_sandbox_dir as _get_sandbox_dir
from memloop.config.paths import get_sandbox_path as _get_sandbox_path
from memloop.memory.dedup import filter_added_duplicates
from memloop.memory.limits import enforce_memory_limit

logger = logging.getLogger(__name__)

RecoveryAction = Literal["none", "delete-stale", "delete-redundant"]


@dataclass(frozen=True)
class SandboxResult:
    success: bool
    sandbox_path: Path
    error: str | None = None


@dataclass(frozen=True)
class WriteResult:
    success: bool
    size_bytes: int | None = None
    was_pruned: bool = False
    error: str | None = None


@dataclass(frozen=True)
class RecoveryResult:
    recovery_needed: bool
    action: RecoveryAction
    error: str | None = None


def get_sandbox_path(vaults_dir: Path | str) -> Path:
    return _get_sandbox_path(Path(vaults_dir))


def get_sandbox_dir(vaults_dir: Path | str) -> Path:
    return _get_sandbox_dir(Path(vaults_dir))


def _memory_path(memory_path: Path | str | None) -> Path:
    return Path(memory_path) if memory_path is not None else get_memory_file_path()


async def _read_text(path: Path) -> str:
    async with aiofiles.open(path, encoding="utf-8") as f:
        return await f.read()


async def _read_text_if_exists(path: Path) -> str | None:
    try:
        return await _read_text(path)
    except FileNotFoundError:
        return None


async def _read_bytes_if_exists(path: Path) -> bytes | None:
    try:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()
    except FileNotFoundError:
        return None


async def atomic_write(path: Path | str, content: str) -> None:
    """Write content by writing a sibling temp file and renaming it over ``path``.

    Readers see either the old file or the complete new one. Parent
    directories are created as needed; the temp file is removed on failure.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    temp_fd, temp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.stem}_",
        suffix=".tmp",
    )

    try:
        async with aiofiles.open(temp_fd, "w", encoding="utf-8") as f:
            await f.write(content)
            await f.flush()
            os.fsync(f.fileno())

        Path(temp_path).replace(path)
    except BaseException:
        try:
            Path(temp_path).unlink()
        except OSError:
            pass
        raise


async def setup_sandbox(
    vaults_dir: Path | str, memory_path: Path | str | None = None
) -> SandboxResult:
    """Seed the sandbox with the canonical memory content (or an empty file)."""
    sandbox_path = get_sandbox_path(vaults_dir)
    canonical = _memory_path(memory_path)

    try:
        get_sandbox_dir(vaults_dir).mkdir(parents=True, exist_ok=True)

        content = await _read_text_if_exists(canonical)
        if content is None:
            await atomic_write(sandbox_path, "")
            logger.info(
                "sandbox_created_empty", extra={"file.path": str(sandbox_path)}
            )
        else:
            await atomic_write(sandbox_path, content)
            logger.info(
                "sandbox_seeded",
                extra={"file.path": str(sandbox_path), "memory.chars": len(content)},
            )
    except (OSError, UnicodeDecodeError) as e:
        logger.error("sandbox_setup_failed", extra={"error.message": str(e)})
        return SandboxResult(success=False, sandbox_path=sandbox_path, error=str(e))

    return SandboxResult(success=True, sandbox_path=sandbox_path)


async def _write_canonical(content: str, canonical: Path, max_bytes: int) -> WriteResult:
    limited = enforce_memory_limit(content, max_bytes=max_bytes)
    await atomic_write(canonical, limited.content)
    return WriteResult(
        success=True,
        size_bytes=canonical.stat().st_size,
        was_pruned=limited.was_pruned,
    )


async def commit_sandbox(
    vaults_dir: Path | str,
    memory_path: Path | str | None = None,
    max_bytes: int = MAX_MEMORY_SIZE_BYTES,
) -> WriteResult:
    """Replace the canonical memory file with the size-limited sandbox content."""
    sandbox_path = get_sandbox_path(vaults_dir)
    canonical = _memory_path(memory_path)

    try:
        content = await _read_text_if_exists(sandbox_path)
        if content is None:
            return WriteResult(success=False, error="Sandbox file does not exist")

        result = await _write_canonical(content, canonical, max_bytes)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("sandbox_commit_failed", extra={"error.message": str(e)})
        return WriteResult(success=False, error=str(e))

    logger.info(
        "sandbox_committed",
        extra={
            "file.path": str(canonical),
            "memory.size_bytes": result.size_bytes,
            "memory.was_pruned": result.was_pruned,
        },
    )
    return result


async def cleanup_sandbox(vaults_dir: Path | str) -> None:
    """Remove the sandbox file. Missing files are not an error."""
    sandbox_path = get_sandbox_path(vaults_dir)
    try:
        sandbox_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("sandbox_cleanup_failed", extra={"error.message": str(e)})
        return
    logger.debug("sandbox_cleaned", extra={"file.path": str(sandbox_path)})


async def check_and_recover(
    vaults_dir: Path | str, memory_path: Path | str | None = None
) -> RecoveryResult:
    """Discard a sandbox left behind by a crashed run.

    A leftover sandbox that differs from the canonical file may hold partial
    agent work; it is deleted rather than committed because it cannot be
    trusted to be complete.
    """
    sandbox_path = get_sandbox_path(vaults_dir)
    canonical = _memory_path(memory_path)

    try:
        sandbox_content = await _read_bytes_if_exists(sandbox_path)
        if sandbox_content is None:
            return RecoveryResult(recovery_needed=False, action="none")

        canonical_content = await _read_bytes_if_exists(canonical)
        sandbox_path.unlink(missing_ok=True)
    except OSError as e:
        logger.error("sandbox_recovery_failed", extra={"error.message": str(e)})
        return RecoveryResult(recovery_needed=True, action="none", error=str(e))

    if sandbox_content == canonical_content:
        logger.info("sandbox_redundant_removed", extra={"file.path": str(sandbox_path)})
        return RecoveryResult(recovery_needed=True, action="delete-redundant")

    logger.warning("sandbox_stale_discarded", extra={"file.path": str(sandbox_path)})
    return RecoveryResult(recovery_needed=True, action="delete-stale")


async def filter_sandbox_duplicates(
    vaults_dir: Path | str,
    memory_path: Path | str | None = None,
    threshold: float = DUPLICATE_THRESHOLD,
) -> int:
    """Drop near-duplicate lines the agent added to the sandbox.

    Compares the sandbox with the canonical file and rewrites the sandbox only
    when something was dropped.

    Returns:
        Number of fact lines removed.
    """
    sandbox_path = get_sandbox_path(vaults_dir)
    try:
        after = await _read_text_if_exists(sandbox_path)
        before = await _read_text_if_exists(_memory_path(memory_path)) or ""
    except UnicodeDecodeError as e:
        # Left for commit_sandbox to reject
        logger.warning("sandbox_dedup_skipped", extra={"error.message": str(e)})
        return 0
    if after is None:
        return 0

    result = filter_added_duplicates(before, after, threshold)
    if result.duplicate_count:
        await atomic_write(sandbox_path, result.content)
    return result.duplicate_count


async def read_memory_file(memory_path: Path | str | None = None) -> str:
    """Read the canonical memory document ("" when it does not exist yet)."""
    return await _read_text_if_exists(_memory_path(memory_path)) or ""


async def write_memory_file(
    content: str,
    memory_path: Path | str | None = None,
    max_bytes: int = MAX_MEMORY_SIZE_BYTES,
) -> WriteResult:
    """Write the canonical memory document directly, with size enforcement."""
    canonical = _memory_path(memory_path)
    try:
        result = await _write_canonical(content, canonical, max_bytes)
    except OSError as e:
        logger.error("memory_write_failed", extra={"error.message": str(e)})
        return WriteResult(success=False, error=str(e))

    logger.info(
        "memory_written",
        extra={
            "file.path": str(canonical),
            "memory.size_bytes": result.size_bytes,
            "memory.was_pruned": result.was_pruned,
        },
    )
    return result
