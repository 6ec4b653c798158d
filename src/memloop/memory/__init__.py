"""Memory document storage.

Public API:
- Duplicate filter: normalize_text, levenshtein_distance, calculate_similarity,
  is_duplicate, filter_duplicates, merge_facts_with_deduplication
- Size enforcer: enforce_memory_limit, check_memory_size
- Sandbox manager: setup_sandbox, commit_sandbox, cleanup_sandbox,
  check_and_recover, atomic_write
- Direct access: read_memory_file, write_memory_file
"""

from memloop.memory.dedup import (
    DuplicateFilterResult,
    MergeResult,
    calculate_similarity,
    filter_added_duplicates,
    filter_duplicates,
    is_duplicate,
    levenshtein_distance,
    merge_facts_with_deduplication,
    normalize_text,
)
from memloop.memory.limits import (
    PruneResult,
    SizeInfo,
    check_memory_size,
    enforce_memory_limit,
)
from memloop.memory.sandbox import (
    RecoveryResult,
    SandboxResult,
    WriteResult,
    atomic_write,
    check_and_recover,
    cleanup_sandbox,
    commit_sandbox,
    filter_sandbox_duplicates,
    get_sandbox_dir,
    get_sandbox_path,
    read_memory_file,
    setup_sandbox,
    write_memory_file,
)
from memloop.memory.sections import extract_facts_from_content

__all__ = [
    "DuplicateFilterResult",
    "MergeResult",
    "PruneResult",
    "RecoveryResult",
    "SandboxResult",
    "SizeInfo",
    "WriteResult",
    "atomic_write",
    "calculate_similarity",
    "check_and_recover",
    "check_memory_size",
    "cleanup_sandbox",
    "commit_sandbox",
    "enforce_memory_limit",
    "extract_facts_from_content",
    "filter_added_duplicates",
    "filter_duplicates",
    "filter_sandbox_duplicates",
    "get_sandbox_dir",
    "get_sandbox_path",
    "is_duplicate",
    "levenshtein_distance",
    "merge_facts_with_deduplication",
    "normalize_text",
    "read_memory_file",
    "setup_sandbox",
    "write_memory_file",
]
