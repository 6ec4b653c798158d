"""Transcript-to-memory extraction pipeline.

Public API:
- ExtractionScheduler: cron loop with startup catch-up
- ExtractionCoordinator: single-flight run owner
- extract_facts: agent invocation with one retry
- discover_transcripts: transcript discovery across vaults
"""

from memloop.extraction.agent import AgentError, AgentOptions, QueryFn, claude_cli_query
from memloop.extraction.coordinator import (
    ALREADY_RUNNING_ERROR,
    ExtractionCoordinator,
    RunState,
)
from memloop.extraction.extractor import RetryConfig, extract_facts
from memloop.extraction.prompts import (
    DEFAULT_EXTRACTION_PROMPT,
    build_extraction_prompt,
    has_prompt_override,
    load_extraction_prompt,
    reset_prompt_override,
    save_prompt_override,
)
from memloop.extraction.scheduler import (
    DEFAULT_CATCHUP_THRESHOLD_MS,
    DEFAULT_CRON_SCHEDULE,
    ExtractionScheduler,
    get_catchup_threshold_ms,
    get_cron_schedule,
    get_next_fire_time,
    needs_catch_up,
)
from memloop.extraction.state import (
    ExtractionState,
    ExtractionStateStore,
    ProcessedTranscript,
    calculate_checksum,
    find_unprocessed_transcripts,
    is_transcript_processed,
    mark_transcript_processed,
    update_last_run_at,
)
from memloop.extraction.transcripts import discover_transcripts, parse_transcript_content
from memloop.extraction.types import (
    DiscoveredTranscript,
    DiscoveryResult,
    ExtractionResult,
    PromptInfo,
    RunResult,
    TranscriptFrontmatter,
)

__all__ = [
    "ALREADY_RUNNING_ERROR",
    "DEFAULT_CATCHUP_THRESHOLD_MS",
    "DEFAULT_CRON_SCHEDULE",
    "DEFAULT_EXTRACTION_PROMPT",
    "AgentError",
    "AgentOptions",
    "DiscoveredTranscript",
    "DiscoveryResult",
    "ExtractionCoordinator",
    "ExtractionResult",
    "ExtractionScheduler",
    "ExtractionState",
    "ExtractionStateStore",
    "ProcessedTranscript",
    "PromptInfo",
    "QueryFn",
    "RetryConfig",
    "RunResult",
    "RunState",
    "TranscriptFrontmatter",
    "build_extraction_prompt",
    "calculate_checksum",
    "claude_cli_query",
    "discover_transcripts",
    "extract_facts",
    "find_unprocessed_transcripts",
    "get_catchup_threshold_ms",
    "get_cron_schedule",
    "get_next_fire_time",
    "has_prompt_override",
    "is_transcript_processed",
    "load_extraction_prompt",
    "mark_transcript_processed",
    "needs_catch_up",
    "parse_transcript_content",
    "reset_prompt_override",
    "save_prompt_override",
    "update_last_run_at",
]
