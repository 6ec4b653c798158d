"""Size enforcement for the memory document.

The document is capped at 50 KiB. When a write would exceed the cap, fact
lines are pruned from whichever section currently holds the most bytes,
oldest (first-appearing) line first, until the document fits. Section
headers always survive, even with an empty body.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

from memloop.config.models import MAX_MEMORY_SIZE_BYTES, MEMORY_SIZE_WARNING_BYTES
from memloop.memory.sections import MemoryDocument, utf8_len

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PruneResult:
    content: str
    was_pruned: bool


@dataclass(frozen=True)
class SizeInfo:
    size_bytes: int
    is_warning: bool
    is_over_limit: bool


class _PruneQueue:
    """Fact lines of one section in document order, with their byte total."""

    def __init__(self, indexes: list[int], lines: list[str]) -> None:
        self.indexes = deque(indexes)
        # Each line costs its bytes plus the newline joining it to the next
        self.bytes = sum(utf8_len(lines[i]) + 1 for i in indexes)

    def pop_oldest(self, lines: list[str]) -> tuple[int, int]:
        index = self.indexes.popleft()
        cost = utf8_len(lines[index]) + 1
        self.bytes -= cost
        return index, cost


def enforce_memory_limit(
    content: str, max_bytes: int = MAX_MEMORY_SIZE_BYTES
) -> PruneResult:
    """Prune the document until its UTF-8 size is at most ``max_bytes``.

    Content already within the cap is returned unchanged. Pruning is
    idempotent: pruned output is within the cap, so a second pass is a no-op.
    """
    size = utf8_len(content)
    if size <= max_bytes:
        return PruneResult(content=content, was_pruned=False)

    logger.warning(
        "memory_over_limit_pruning",
        extra={"memory.size_bytes": size, "memory.max_bytes": max_bytes},
    )

    doc = MemoryDocument.parse(content)
    lines = doc.lines
    removed: set[int] = set()

    section_queues = [
        _PruneQueue(section.fact_indexes(lines), lines) for section in doc.sections[1:]
    ]
    preamble_queue = _PruneQueue(doc.preamble.fact_indexes(lines), lines)

    # Sections first; the preamble only once every section body is empty
    for queues in (section_queues, [preamble_queue]):
        while size > max_bytes:
            candidates = [q for q in queues if q.indexes]
            if not candidates:
                break
            largest = max(candidates, key=lambda q: q.bytes)
            index, cost = largest.pop_oldest(lines)
            removed.add(index)
            size -= cost

    pruned = doc.render(removed)
    final_size = utf8_len(pruned)
    if final_size > max_bytes:
        logger.warning(
            "memory_limit_unreachable",
            extra={"memory.size_bytes": final_size, "memory.max_bytes": max_bytes},
        )

    logger.info(
        "memory_pruned",
        extra={
            "memory.original_bytes": utf8_len(content),
            "memory.size_bytes": final_size,
            "memory.lines_removed": len(removed),
        },
    )
    return PruneResult(content=pruned, was_pruned=True)


def check_memory_size(
    content: str,
    warning_bytes: int = MEMORY_SIZE_WARNING_BYTES,
    max_bytes: int = MAX_MEMORY_SIZE_BYTES,
) -> SizeInfo:
    size_bytes = utf8_len(content)
    return SizeInfo(
        size_bytes=size_bytes,
        is_warning=size_bytes >= warning_bytes,
        is_over_limit=size_bytes >= max_bytes,
    )
