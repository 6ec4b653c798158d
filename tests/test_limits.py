"""Tests for memory size enforcement."""

from memloop.config.models import MAX_MEMORY_SIZE_BYTES, MEMORY_SIZE_WARNING_BYTES
from memloop.memory.limits import check_memory_size, enforce_memory_limit
from memloop.memory.sections import MemoryDocument, extract_facts_from_content


def _size(text: str) -> int:
    return len(text.encode("utf-8"))


def _section(header: str, prefix: str, count: int, width: int = 40) -> str:
    lines = [header] + [f"{prefix} {i:04d} ".ljust(width, "x") for i in range(count)]
    return "\n".join(lines)


class TestEnforceMemoryLimit:
    def test_unchanged_when_within_limit(self):
        content = "# Memory\n\n## Preferences\nLikes tea\n"
        result = enforce_memory_limit(content, max_bytes=1000)
        assert result.content == content
        assert result.was_pruned is False

    def test_exactly_at_limit_is_unchanged(self):
        content = "## A\n" + "x" * 95
        assert _size(content) == 100
        result = enforce_memory_limit(content, max_bytes=100)
        assert result.was_pruned is False
        assert result.content == content

    def test_prunes_to_within_limit(self):
        content = _section("## Big", "fact", 200) + "\n"
        result = enforce_memory_limit(content, max_bytes=2000)
        assert result.was_pruned is True
        assert _size(result.content) <= 2000

    def test_prunes_largest_section_oldest_first(self):
        small = _section("## Small", "small", 3)
        big = _section("## Big", "big", 30)
        content = f"# Memory\n\n{small}\n\n{big}\n"
        max_bytes = _size(content) - 100

        result = enforce_memory_limit(content, max_bytes=max_bytes)

        facts = extract_facts_from_content(result.content)
        # Small section untouched
        assert sum(1 for f in facts if f.startswith("small")) == 3
        big_facts = [f for f in facts if f.startswith("big")]
        # Three 41-byte lines cover the 100 byte overshoot
        assert len(big_facts) == 27
        assert big_facts[0].startswith("big 0003")
        assert big_facts[-1].startswith("big 0029")

    def test_headers_always_survive(self):
        content = "\n".join(
            [
                "# Memory",
                _section("## One", "one", 20),
                _section("## Two", "two", 20),
                _section("## Three", "three", 20),
            ]
        )
        result = enforce_memory_limit(content, max_bytes=120)
        for header in ("# Memory", "## One", "## Two", "## Three"):
            assert header in result.content.split("\n")
        assert _size(result.content) <= 120

    def test_prunes_preamble_after_sections_are_empty(self):
        content = "# Memory\npreamble fact one\npreamble fact two\n## Empty\n"
        result = enforce_memory_limit(content, max_bytes=_size(content) - 5)
        assert result.was_pruned is True
        assert "preamble fact one" not in result.content
        assert "preamble fact two" in result.content
        assert "## Empty" in result.content

    def test_idempotent(self):
        content = _section("## A", "a", 50) + "\n" + _section("## B", "b", 80)
        first = enforce_memory_limit(content, max_bytes=1500)
        second = enforce_memory_limit(first.content, max_bytes=1500)
        assert second.content == first.content
        assert second.was_pruned is False

    def test_only_removes_lines(self):
        content = "# Memory\n\n## A\nkeep me\n\n## B\n" + "\n".join(
            f"line {i}" for i in range(100)
        )
        result = enforce_memory_limit(content, max_bytes=300)
        original = content.split("\n")
        remaining = iter(result.content.split("\n"))
        # Remaining lines are an in-order subsequence of the original
        current = next(remaining, None)
        for line in original:
            if current is not None and line == current:
                current = next(remaining, None)
        assert current is None

    def test_default_cap(self):
        content = _section("## Huge", "fact", 2000, width=60)
        assert _size(content) > MAX_MEMORY_SIZE_BYTES
        result = enforce_memory_limit(content)
        assert _size(result.content) <= MAX_MEMORY_SIZE_BYTES
        doc = MemoryDocument.parse(result.content)
        assert doc.find_section("## Huge") is not None


class TestCheckMemorySize:
    def test_small(self):
        info = check_memory_size("hello")
        assert info.size_bytes == 5
        assert info.is_warning is False
        assert info.is_over_limit is False

    def test_warning_threshold_inclusive(self):
        info = check_memory_size("x" * MEMORY_SIZE_WARNING_BYTES)
        assert info.is_warning is True
        assert info.is_over_limit is False

    def test_over_limit_threshold_inclusive(self):
        info = check_memory_size("x" * MAX_MEMORY_SIZE_BYTES)
        assert info.is_warning is True
        assert info.is_over_limit is True

    def test_counts_utf8_bytes(self):
        info = check_memory_size("é" * 10)
        assert info.size_bytes == 20
