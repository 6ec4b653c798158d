"""Extraction prompt loading and assembly.

The base prompt says WHAT counts as a durable fact. Users can replace it with
``~/.memloop/durable-facts.md``. ``build_extraction_prompt`` wraps it with the
operational part (which files to read, where the memory file lives, how to
merge), which is not user-editable.
"""

import logging
from collections.abc import Sequence
from pathlib import Path

import aiofiles

from memloop.config.paths import get_prompt_override_path, get_sandbox_path
from memloop.extraction.types import DiscoveredTranscript, PromptInfo
from memloop.memory.sandbox import atomic_write

logger = logging.getLogger(__name__)

DEFAULT_EXTRACTION_PROMPT = """\
## Categories

Extract facts that stay true across conversations:

- **Identity**: role, profession, level of experience, location and time zone.
- **Preferences**: communication style, tooling choices, formats the user likes or dislikes.
- **Projects**: ongoing work and goals that give context to future questions.
- **Working style**: how the user plans, reviews and makes decisions.
- **Environment**: languages, frameworks, platforms and team conventions in regular use.

## What does not belong

- One-off requests and today's tasks.
- Troubleshooting steps that only applied to a single problem.
- Pleasantries and conversational filler.

Keep a fact only if knowing it would change how an assistant answers the user.
"""

_PROMPT_HEADER = """\
# Memory Extraction

The memory file gives assistants standing context about the user. Write it as
operational context, not a biography: short statements, current information,
and only facts that change how an assistant would respond.
"""

_OPERATIONS_TEMPLATE = """\
## Task

Read the transcripts below, extract durable facts, and update the memory file.

### Memory File

`{memory_path}`

### Transcripts to Process ({count})

{manifest}

### Process

1. Read the memory file.
2. Read each transcript listed above.
3. Extract durable facts that fit the categories above.
4. Edit the memory file in place, merging new facts into the existing `## ` sections.

### Output Format

One fact per line, one or two sentences at most, grouped under `## ` section
headers. Prefer prose lines over nested lists.

### Merge Rules

- Add facts that are new.
- Update a fact when a transcript refines it; newer information wins.
- Merge related facts instead of repeating them.
- Remove facts that are outdated or no longer useful.
- Never remove or rename a section header.

The file has a size budget. When unsure, keep it shorter.

### Security

Never record passwords, API keys, tokens, private keys, account numbers or
anything else that looks secret. Record what the user was working on, not the
secret value.
"""


def _override_path(override_path: Path | None) -> Path:
    return override_path if override_path is not None else get_prompt_override_path()


def has_prompt_override(override_path: Path | None = None) -> bool:
    return _override_path(override_path).is_file()


async def load_extraction_prompt(override_path: Path | None = None) -> PromptInfo:
    """Load the user's prompt override, falling back to the built-in prompt.

    An override that exists but cannot be read is logged and ignored.
    """
    path = _override_path(override_path)
    if path.is_file():
        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                "prompt_override_unreadable",
                extra={"file.path": str(path), "error.message": str(e)},
            )
        else:
            logger.info("prompt_override_loaded", extra={"file.path": str(path)})
            return PromptInfo(content=content, is_override=True, path=path)

    return PromptInfo(content=DEFAULT_EXTRACTION_PROMPT, is_override=False)


async def save_prompt_override(
    content: str, override_path: Path | None = None
) -> Path:
    path = _override_path(override_path)
    await atomic_write(path, content)
    logger.info("prompt_override_saved", extra={"file.path": str(path)})
    return path


def reset_prompt_override(override_path: Path | None = None) -> bool:
    """Delete the override file. Returns False if there was none."""
    path = _override_path(override_path)
    if not path.exists():
        return False
    path.unlink()
    logger.info("prompt_override_reset", extra={"file.path": str(path)})
    return True


def build_extraction_prompt(
    base_prompt: str,
    transcripts: Sequence[DiscoveredTranscript],
    vaults_dir: Path | str,
) -> str:
    """Assemble the full agent prompt. Pure; touches no files."""
    manifest = "\n".join(
        f"{i}. `{t.absolute_path}`" for i, t in enumerate(transcripts, start=1)
    )
    operations = _OPERATIONS_TEMPLATE.format(
        memory_path=get_sandbox_path(Path(vaults_dir)),
        count=len(transcripts),
        manifest=manifest,
    )
    return f"{_PROMPT_HEADER}\n---\n\n{base_prompt.strip()}\n\n---\n\n{operations}"
