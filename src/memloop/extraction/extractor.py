"""Fact extraction: one agent invocation per batch, retried once on failure."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from memloop.config.models import AgentConfig
from memloop.extraction.agent import AgentOptions, QueryFn, claude_cli_query
from memloop.extraction.prompts import build_extraction_prompt, load_extraction_prompt
from memloop.extraction.types import DiscoveredTranscript, ExtractionResult

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Delay before the single retry of a failed agent invocation."""

    base_delay_ms: int = 2000


async def _run_agent(query_fn: QueryFn, prompt: str, options: AgentOptions) -> int:
    """Drain the agent's event stream. Returns the number of events seen."""
    count = 0
    async for _event in query_fn(prompt, options):
        count += 1
    return count


async def extract_facts(
    transcripts: Sequence[DiscoveredTranscript],
    vaults_dir: Path | str,
    query_fn: QueryFn | None = None,
    *,
    agent: AgentConfig | None = None,
    prompt_path: Path | None = None,
    retry: RetryConfig | None = None,
) -> ExtractionResult:
    """Have the agent fold facts from ``transcripts`` into the sandbox memory file.

    The agent works with ``vaults_dir`` as its working directory. A failed
    first attempt is retried exactly once after ``retry.base_delay_ms``; the
    result's error is the second attempt's message.

    Args:
        transcripts: Batch to process.
        vaults_dir: Root containing the sandbox directory.
        query_fn: Agent entry point, defaults to the Claude CLI.
        agent: Agent options from configuration.
        prompt_path: Prompt override location, defaults to ~/.memloop/durable-facts.md.
        retry: Retry delay.

    Returns:
        ExtractionResult; this function does not raise for agent failures.
    """
    if not transcripts:
        logger.info("extraction_skipped_no_transcripts")
        return ExtractionResult(success=True, transcripts_processed=0, was_retry=False)

    query_fn = query_fn or claude_cli_query
    retry = retry or RetryConfig()
    options = AgentOptions.from_config(agent or AgentConfig(), vaults_dir)

    try:
        prompt_info = await load_extraction_prompt(prompt_path)
    except OSError as e:
        return ExtractionResult(
            success=False,
            transcripts_processed=0,
            was_retry=False,
            error=f"Failed to load extraction prompt: {e}",
        )

    prompt = build_extraction_prompt(prompt_info.content, transcripts, vaults_dir)
    logger.info(
        "extraction_started",
        extra={
            "transcript.count": len(transcripts),
            "prompt.is_override": prompt_info.is_override,
            "gen_ai.request.model": options.model,
        },
    )

    delay_s = retry.base_delay_ms / 1000
    try:
        events = await _run_agent(query_fn, prompt, options)
    except Exception as e:
        logger.warning(
            "retry_attempt",
            extra={
                "operation": "fact_extraction",
                "attempt": 1,
                "retry_delay_s": round(delay_s, 1),
                "error.message": str(e),
                "error.type": type(e).__name__,
            },
        )
    else:
        logger.info("extraction_complete", extra={"agent.events": events})
        return ExtractionResult(
            success=True, transcripts_processed=len(transcripts), was_retry=False
        )

    await asyncio.sleep(delay_s)

    try:
        events = await _run_agent(query_fn, prompt, options)
    except Exception as e:
        logger.error(
            "retry_exhausted",
            extra={
                "operation": "fact_extraction",
                "attempts": 2,
                "error.message": str(e),
                "error.type": type(e).__name__,
            },
        )
        return ExtractionResult(
            success=False,
            transcripts_processed=0,
            was_retry=True,
            error=str(e) or type(e).__name__,
        )

    logger.info("extraction_complete", extra={"agent.events": events, "was_retry": True})
    return ExtractionResult(
        success=True, transcripts_processed=len(transcripts), was_retry=True
    )
