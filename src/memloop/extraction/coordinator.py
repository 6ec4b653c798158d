"""Extraction run coordinator.

Runs one extraction end to end and guarantees at most one run at a time::

    discover -> check_and_recover -> setup_sandbox -> extract_facts
             -> filter_sandbox_duplicates -> commit_sandbox -> cleanup_sandbox

The run guard is taken before the first ``await`` so concurrent callers on the
same event loop are resolved in call order; losers get an "already in
progress" result instead of waiting.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import replace
from enum import Enum
from pathlib import Path

from memloop.config.models import MemloopConfig
from memloop.extraction.agent import QueryFn
from memloop.extraction.extractor import RetryConfig, extract_facts
from memloop.extraction.state import (
    ExtractionState,
    ExtractionStateStore,
    find_unprocessed_transcripts,
    mark_transcript_processed,
    update_last_run_at,
)
from memloop.extraction.transcripts import discover_transcripts
from memloop.extraction.types import DiscoveredTranscript, DiscoveryResult, RunResult
from memloop.memory.sandbox import (
    check_and_recover,
    cleanup_sandbox,
    commit_sandbox,
    filter_sandbox_duplicates,
    setup_sandbox,
)

logger = logging.getLogger(__name__)

ALREADY_RUNNING_ERROR = "Extraction already in progress"

DiscoverFn = Callable[[MemloopConfig, ExtractionState], Awaitable[DiscoveryResult]]


class RunState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class ExtractionCoordinator:
    """Single-flight owner of extraction runs.

    ``run_extraction`` never raises; every failure ends up in
    ``RunResult.error``. ``last_run_at`` is advanced after every attempt,
    failed ones included, so catch-up does not re-trigger on a broken setup.
    """

    def __init__(
        self,
        config: MemloopConfig,
        state_store: ExtractionStateStore | None = None,
        discover: DiscoverFn = discover_transcripts,
        query_fn: QueryFn | None = None,
        prompt_path: Path | None = None,
    ):
        self._config = config
        self._state_store = state_store or ExtractionStateStore()
        self._discover = discover
        self._query_fn = query_fn
        self._prompt_path = prompt_path
        self._run_state = RunState.IDLE
        self._last_result: RunResult | None = None

    @property
    def state_store(self) -> ExtractionStateStore:
        return self._state_store

    def is_extraction_running(self) -> bool:
        return self._run_state is RunState.RUNNING

    def get_last_run_result(self) -> RunResult | None:
        return self._last_result

    def reset_state(self) -> None:
        """Clear the run guard and last result unconditionally."""
        self._run_state = RunState.IDLE
        self._last_result = None
        logger.warning("extraction_coordinator_reset")

    async def run_extraction(self, is_catch_up: bool = False) -> RunResult:
        if self._run_state is RunState.RUNNING:
            logger.info("extraction_already_running")
            return RunResult(
                success=False, error=ALREADY_RUNNING_ERROR, was_catch_up=is_catch_up
            )

        self._run_state = RunState.RUNNING
        started = time.monotonic()
        logger.info("extraction_run_started", extra={"run.catch_up": is_catch_up})
        try:
            result = await self._execute(is_catch_up)
        except Exception as e:
            logger.exception("extraction_run_error")
            result = RunResult(
                success=False,
                error=f"Extraction failed: {e}",
                was_catch_up=is_catch_up,
            )
        finally:
            self._run_state = RunState.IDLE

        result = replace(result, duration_ms=int((time.monotonic() - started) * 1000))
        self._last_result = result

        if result.success:
            logger.info("extraction_run_complete", extra=_result_extra(result))
        else:
            logger.error("extraction_run_failed", extra=_result_extra(result))
        return result

    async def _execute(self, is_catch_up: bool) -> RunResult:
        state = await self._state_store.load()
        try:
            return await self._process(state, is_catch_up)
        finally:
            update_last_run_at(state)
            try:
                await self._state_store.save(state)
            except OSError as e:
                logger.error(
                    "extraction_state_save_failed", extra={"error.message": str(e)}
                )

    async def _process(self, state: ExtractionState, is_catch_up: bool) -> RunResult:
        try:
            discovery = await self._discover(self._config, state)
        except Exception as e:
            logger.error("transcript_discovery_failed", extra={"error.message": str(e)})
            return RunResult(
                success=False,
                error=f"Transcript discovery failed: {e}",
                was_catch_up=is_catch_up,
            )

        for path, error in discovery.errors:
            logger.warning(
                "transcript_read_failed",
                extra={"file.path": path, "error.message": error},
            )

        unprocessed = find_unprocessed_transcripts(state, discovery.unprocessed)
        counts = {
            "transcripts_discovered": discovery.total,
            "transcripts_unprocessed": len(unprocessed),
            "was_catch_up": is_catch_up,
        }
        if not unprocessed:
            logger.info("extraction_nothing_to_do", extra={"transcript.total": discovery.total})
            return RunResult(success=True, **counts)

        error, duplicates = await self._extract_into_memory(unprocessed)
        if error is not None:
            return RunResult(
                success=False, error=error, duplicates_filtered=duplicates, **counts
            )

        for transcript in unprocessed:
            mark_transcript_processed(
                state, transcript.vault_id, transcript.path, transcript.checksum
            )
        return RunResult(
            success=True,
            transcripts_processed=len(unprocessed),
            duplicates_filtered=duplicates,
            **counts,
        )

    async def _extract_into_memory(
        self, transcripts: list[DiscoveredTranscript]
    ) -> tuple[str | None, int]:
        """Run the sandboxed agent edit and commit. Returns (error, duplicates_filtered)."""
        vaults_dir = self._config.vaults_dir.expanduser()
        memory = self._config.memory

        recovery = await check_and_recover(vaults_dir, memory.path)
        if recovery.error:
            logger.warning("sandbox_recovery_incomplete", extra={"error.message": recovery.error})

        sandbox = await setup_sandbox(vaults_dir, memory.path)
        if not sandbox.success:
            return f"Sandbox setup failed: {sandbox.error}", 0

        try:
            extraction = await extract_facts(
                transcripts,
                vaults_dir,
                self._query_fn,
                agent=self._config.agent,
                prompt_path=self._prompt_path,
                retry=RetryConfig(base_delay_ms=self._config.extraction.retry_delay_ms),
            )
            if not extraction.success:
                return extraction.error or "Fact extraction failed", 0

            duplicates = await filter_sandbox_duplicates(
                vaults_dir, memory.path, memory.duplicate_threshold
            )
            commit = await commit_sandbox(vaults_dir, memory.path, memory.max_bytes)
            if not commit.success:
                return f"Commit failed: {commit.error}", duplicates
        finally:
            await cleanup_sandbox(vaults_dir)

        return None, duplicates


def _result_extra(result: RunResult) -> dict[str, object]:
    return {
        "run.catch_up": result.was_catch_up,
        "run.duration_ms": result.duration_ms,
        "transcript.discovered": result.transcripts_discovered,
        "transcript.unprocessed": result.transcripts_unprocessed,
        "transcript.processed": result.transcripts_processed,
        "memory.duplicates_filtered": result.duplicates_filtered,
        "error.message": result.error,
    }
