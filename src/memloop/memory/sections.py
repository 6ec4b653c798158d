"""Section structure of the markdown memory document.

A document is a preamble (title, notes) followed by sections that start at
``## Heading`` lines. A section body runs until the next ``## `` line. Fact
lines are non-empty body lines that do not start with ``#``.

Sections index into the original line list instead of copying text, so
callers can drop or insert lines and rebuild a document that is otherwise
byte-identical to the input.
"""

from __future__ import annotations

from dataclasses import dataclass, field

SECTION_PREFIX = "## "


def is_section_header(line: str) -> bool:
    return line.startswith(SECTION_PREFIX)


def is_fact_line(line: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and not stripped.startswith("#")


def utf8_len(text: str) -> int:
    return len(text.encode("utf-8"))


@dataclass
class MemorySection:
    """A span of the document: the preamble (``header is None``) or a section."""

    header: str | None
    header_index: int | None
    body_indexes: list[int] = field(default_factory=list)

    def fact_indexes(self, lines: list[str]) -> list[int]:
        return [i for i in self.body_indexes if is_fact_line(lines[i])]

    def facts(self, lines: list[str]) -> list[str]:
        return [lines[i] for i in self.body_indexes if is_fact_line(lines[i])]


@dataclass
class MemoryDocument:
    """A memory document split into lines and sections."""

    lines: list[str]
    sections: list[MemorySection]

    @classmethod
    def parse(cls, content: str) -> MemoryDocument:
        lines = content.split("\n")
        preamble = MemorySection(header=None, header_index=None)
        sections: list[MemorySection] = [preamble]
        current = preamble

        for index, line in enumerate(lines):
            if is_section_header(line):
                current = MemorySection(header=line, header_index=index)
                sections.append(current)
            else:
                current.body_indexes.append(index)

        return cls(lines=lines, sections=sections)

    @property
    def preamble(self) -> MemorySection:
        return self.sections[0]

    def find_section(self, header: str) -> MemorySection | None:
        wanted = header.strip()
        for section in self.sections[1:]:
            if section.header is not None and section.header.strip() == wanted:
                return section
        return None

    def render(self, removed: set[int] | None = None) -> str:
        if not removed:
            return "\n".join(self.lines)
        return "\n".join(
            line for index, line in enumerate(self.lines) if index not in removed
        )


def extract_facts_from_content(content: str) -> list[str]:
    """Return every fact line in the document, in order."""
    return [line for line in content.split("\n") if is_fact_line(line)]
