"""Vault-scoped insights kept in a dedicated section of a vault's CLAUDE.md.

Only the ``## Memory Loop Insights`` section is ever rewritten; everything
else in the file is preserved byte for byte.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import aiofiles

from memloop.memory.sandbox import WriteResult, atomic_write

logger = logging.getLogger(__name__)

VAULT_INSIGHTS_SECTION = "## Memory Loop Insights"

# Section body runs until the next H2 header or end of file
_SECTION_RE = re.compile(
    rf"^{re.escape(VAULT_INSIGHTS_SECTION)}[ \t]*\n(?P<body>.*?)(?=^## |\Z)",
    re.MULTILINE | re.DOTALL,
)


def replace_or_append_section(content: str, insights: str) -> str:
    """Replace the insights section body, or append the section at the end."""
    section = f"{VAULT_INSIGHTS_SECTION}\n\n{insights.strip()}\n"
    match = _SECTION_RE.search(content)
    if match is None:
        base = content.rstrip()
        return f"{base}\n\n{section}" if base else section

    following = content[match.end() :]
    replacement = f"{section}\n" if following else section
    return content[: match.start()] + replacement + following


async def read_vault_insights(claude_md_path: Path | str) -> str | None:
    """Return the insights section body, or None when the file or section is missing."""
    try:
        async with aiofiles.open(claude_md_path, encoding="utf-8") as f:
            content = await f.read()
    except FileNotFoundError:
        return None

    match = _SECTION_RE.search(content)
    return match.group("body").strip() if match else None


async def update_vault_insights(claude_md_path: Path | str, insights: str) -> WriteResult:
    path = Path(claude_md_path)
    try:
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            content = ""

        await atomic_write(path, replace_or_append_section(content, insights))
        size = path.stat().st_size
    except OSError as e:
        logger.error("vault_insights_write_failed", extra={"error.message": str(e)})
        return WriteResult(success=False, error=str(e))

    logger.info(
        "vault_insights_updated",
        extra={"file.path": str(path), "file.size_bytes": size},
    )
    return WriteResult(success=True, size_bytes=size)
