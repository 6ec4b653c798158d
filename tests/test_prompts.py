"""Tests for extraction prompt loading and assembly."""

from pathlib import Path

import pytest

from memloop.config.paths import get_prompt_override_path
from memloop.extraction.prompts import (
    DEFAULT_EXTRACTION_PROMPT,
    build_extraction_prompt,
    has_prompt_override,
    load_extraction_prompt,
    reset_prompt_override,
    save_prompt_override,
)


class TestBuildExtractionPrompt:
    def test_includes_base_prompt_manifest_and_memory_path(self, transcript_factory):
        transcripts = [
            transcript_factory("a.md", base=Path("/v/personal")),
            transcript_factory("b.md", base=Path("/v/personal")),
        ]

        prompt = build_extraction_prompt("CUSTOM CATEGORIES", transcripts, "/v")

        assert "CUSTOM CATEGORIES" in prompt
        assert "### Transcripts to Process (2)" in prompt
        assert "1. `/v/personal/00_Inbox/chats/a.md`" in prompt
        assert "2. `/v/personal/00_Inbox/chats/b.md`" in prompt
        assert "`/v/.memory-extraction/memory.md`" in prompt

    def test_manifest_follows_base_prompt(self, transcript_factory):
        prompt = build_extraction_prompt("BASE", [transcript_factory()], Path("/v"))
        assert prompt.index("BASE") < prompt.index("### Transcripts to Process (1)")

    def test_is_deterministic(self, transcript_factory):
        transcripts = [transcript_factory()]
        assert build_extraction_prompt("x", transcripts, "/v") == build_extraction_prompt(
            "x", transcripts, "/v"
        )

    def test_operational_rules_present(self, transcript_factory):
        prompt = build_extraction_prompt("x", [transcript_factory()], "/v")
        for heading in ("### Process", "### Output Format", "### Merge Rules", "### Security"):
            assert heading in prompt


class TestLoadExtractionPrompt:
    @pytest.mark.asyncio
    async def test_built_in_default(self):
        info = await load_extraction_prompt()
        assert info.content == DEFAULT_EXTRACTION_PROMPT
        assert info.is_override is False
        assert info.path is None

    @pytest.mark.asyncio
    async def test_override(self, tmp_path: Path):
        path = tmp_path / "durable-facts.md"
        path.write_text("Only extract cooking preferences.")

        info = await load_extraction_prompt(path)

        assert info.content == "Only extract cooking preferences."
        assert info.is_override is True
        assert info.path == path

    @pytest.mark.asyncio
    async def test_unreadable_override_falls_back(self, tmp_path: Path):
        path = tmp_path / "durable-facts.md"
        path.write_bytes(b"\xff\xfe not utf-8")

        info = await load_extraction_prompt(path)

        assert info.is_override is False
        assert info.content == DEFAULT_EXTRACTION_PROMPT


class TestPromptOverrideManagement:
    @pytest.mark.asyncio
    async def test_save_has_reset(self):
        assert has_prompt_override() is False

        saved = await save_prompt_override("mine")

        assert saved == get_prompt_override_path()
        assert has_prompt_override() is True
        info = await load_extraction_prompt()
        assert info.is_override is True
        assert info.content == "mine"

        assert reset_prompt_override() is True
        assert has_prompt_override() is False
        assert reset_prompt_override() is False
