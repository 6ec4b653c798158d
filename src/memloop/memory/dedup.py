"""Near-duplicate detection for memory facts.

Two facts are the same fact when the Levenshtein similarity of their
normalized text reaches the threshold (default 0.85), not only when they are
byte-identical.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from memloop.config.models import DUPLICATE_THRESHOLD
from memloop.memory.sections import MemoryDocument, is_fact_line

logger = logging.getLogger(__name__)

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


@dataclass
class DuplicateFilterResult:
    """Result of filtering new facts against existing ones."""

    unique_facts: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)


@dataclass
class MergeResult:
    content: str
    duplicate_count: int


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation, collapse whitespace, trim."""
    text = _PUNCTUATION_RE.sub("", text.lower())
    return _WHITESPACE_RE.sub(" ", text).strip()


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with unit-cost insert, delete and substitute."""
    if len(a) > len(b):
        a, b = b, a
    if not a:
        return len(b)

    # Two rows over the shorter string
    previous = list(range(len(a) + 1))
    for j, char_b in enumerate(b, start=1):
        current = [j]
        for i, char_a in enumerate(a, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[i] + 1,
                    current[i - 1] + 1,
                    previous[i - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def _similarity_normalized(a: str, b: str) -> float:
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein_distance(a, b) / max(len(a), len(b))


def calculate_similarity(a: str, b: str) -> float:
    """Similarity ratio in [0, 1] between the normalized forms of a and b.

    Two empty strings are identical (1.0); one empty string against a
    non-empty one scores 0.0.
    """
    return _similarity_normalized(normalize_text(a), normalize_text(b))


def is_duplicate(
    new_fact: str, existing_fact: str, threshold: float = DUPLICATE_THRESHOLD
) -> bool:
    return calculate_similarity(new_fact, existing_fact) >= threshold


def filter_duplicates(
    new_facts: list[str],
    existing_facts: list[str],
    threshold: float = DUPLICATE_THRESHOLD,
) -> DuplicateFilterResult:
    """Drop new facts that near-duplicate an existing fact or an earlier new fact.

    Blank entries are skipped without being counted. Among near-duplicate new
    facts the first occurrence wins.
    """
    result = DuplicateFilterResult()
    existing_normalized = [normalize_text(f) for f in existing_facts]
    accepted_normalized: list[str] = []

    for fact in new_facts:
        if not fact.strip():
            continue

        normalized = normalize_text(fact)
        if any(
            _similarity_normalized(normalized, other) >= threshold
            for other in existing_normalized
        ) or any(
            _similarity_normalized(normalized, other) >= threshold
            for other in accepted_normalized
        ):
            result.duplicates.append(fact)
            logger.debug("duplicate_fact_skipped", extra={"fact.preview": fact[:50]})
            continue

        result.unique_facts.append(fact)
        accepted_normalized.append(normalized)

    if result.duplicates:
        logger.info(
            "duplicate_facts_filtered",
            extra={"duplicate.count": result.duplicate_count},
        )

    return result


def merge_facts_with_deduplication(
    document: str,
    new_facts: list[str],
    section_header: str,
    threshold: float = DUPLICATE_THRESHOLD,
) -> MergeResult:
    """Append the non-duplicate new facts to ``section_header``.

    Facts are compared only against the facts already under that section. The
    section is created at the end of the document when missing. The document
    is returned untouched when no fact survives.
    """
    doc = MemoryDocument.parse(document)
    section = doc.find_section(section_header)
    existing = section.facts(doc.lines) if section is not None else []

    filtered = filter_duplicates(new_facts, existing, threshold)
    if not filtered.unique_facts:
        return MergeResult(content=document, duplicate_count=filtered.duplicate_count)

    if section is None:
        base = document.rstrip("\n")
        parts = [base, ""] if base else []
        parts.extend([section_header.strip(), *filtered.unique_facts])
        content = "\n".join(parts) + "\n"
    else:
        fact_indexes = section.fact_indexes(doc.lines)
        assert section.header_index is not None
        insert_at = (fact_indexes[-1] if fact_indexes else section.header_index) + 1
        lines = list(doc.lines)
        lines[insert_at:insert_at] = filtered.unique_facts
        content = "\n".join(lines)

    return MergeResult(content=content, duplicate_count=filtered.duplicate_count)


def filter_added_duplicates(
    before: str,
    after: str,
    threshold: float = DUPLICATE_THRESHOLD,
) -> MergeResult:
    """Remove fact lines added between ``before`` and ``after`` that are near-duplicates.

    A line counts as added when its text does not appear as a fact line in
    ``before``. Each added line is checked against the kept lines of its own
    section and against added lines accepted before it. Edits and removals
    made by the agent are left alone.
    """
    previous = {line.strip() for line in before.split("\n") if is_fact_line(line)}
    doc = MemoryDocument.parse(after)
    removed: set[int] = set()

    for section in doc.sections:
        kept: list[str] = []
        added: list[int] = []
        for index in section.fact_indexes(doc.lines):
            if doc.lines[index].strip() in previous:
                kept.append(normalize_text(doc.lines[index]))
            else:
                added.append(index)

        for index in added:
            normalized = normalize_text(doc.lines[index])
            if any(_similarity_normalized(normalized, o) >= threshold for o in kept):
                removed.add(index)
                continue
            kept.append(normalized)

    if not removed:
        return MergeResult(content=after, duplicate_count=0)

    logger.info("added_duplicates_removed", extra={"duplicate.count": len(removed)})
    return MergeResult(content=doc.render(removed), duplicate_count=len(removed))
