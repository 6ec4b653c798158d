"""Fact-extraction agent interface.

The extractor talks to the agent through a ``QueryFn``: a callable taking the
prompt and options and returning an async iterator of lifecycle events. The
default implementation runs the ``claude`` CLI in stream-json mode; tests pass
fakes.
"""

import asyncio
import json
import logging
import shutil
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from memloop.config.models import DEFAULT_ALLOWED_TOOLS, AgentConfig

logger = logging.getLogger(__name__)


class AgentError(Exception):
    """The agent process failed or reported an error result."""


@dataclass
class AgentOptions:
    cwd: Path
    allowed_tools: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_TOOLS))
    permission_mode: str = "acceptEdits"
    model: str = "haiku"
    max_budget_usd: float | None = 0.50
    cli_path: str = "claude"

    @classmethod
    def from_config(cls, config: AgentConfig, cwd: Path | str) -> "AgentOptions":
        return cls(
            cwd=Path(cwd),
            allowed_tools=list(config.allowed_tools),
            permission_mode=config.permission_mode,
            model=config.model,
            max_budget_usd=config.max_budget_usd,
            cli_path=config.cli_path,
        )


QueryFn = Callable[[str, AgentOptions], AsyncIterator[dict[str, Any]]]


def build_cli_command(cli_path: str, prompt: str, options: AgentOptions) -> list[str]:
    cmd = [
        cli_path,
        "-p",
        prompt,
        "--output-format",
        "stream-json",
        "--verbose",
        "--model",
        options.model,
        "--permission-mode",
        options.permission_mode,
    ]
    if options.allowed_tools:
        cmd.extend(["--allowedTools", ",".join(options.allowed_tools)])
    if options.max_budget_usd is not None:
        cmd.extend(["--max-budget-usd", f"{options.max_budget_usd:.2f}"])
    return cmd


async def claude_cli_query(
    prompt: str, options: AgentOptions
) -> AsyncIterator[dict[str, Any]]:
    """Run the Claude CLI in ``options.cwd`` and yield its stream-json events.

    Raises:
        AgentError: If the CLI is missing, exits non-zero, or emits an error
            result event.
    """
    cli = shutil.which(options.cli_path)
    if not cli:
        raise AgentError(f"Claude CLI not found: {options.cli_path}")

    logger.info(
        "claude_cli_executing",
        extra={"gen_ai.request.model": options.model, "process.cwd": str(options.cwd)},
    )

    process = await asyncio.create_subprocess_exec(
        *build_cli_command(cli, prompt, options),
        cwd=options.cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    assert process.stdout is not None
    assert process.stderr is not None
    stderr_task = asyncio.create_task(process.stderr.read())

    try:
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                logger.debug(f"Skipping non-JSON line: {line[:100]}")
                continue

            if event.get("type") == "result" and event.get("is_error"):
                raise AgentError(f"Claude CLI error: {event.get('result') or 'unknown'}")
            yield event

        returncode = await process.wait()
        stderr = (await stderr_task).decode("utf-8", errors="replace").strip()
        if returncode != 0:
            logger.error(
                "claude_cli_failed",
                extra={"process.exit_code": returncode, "error.message": stderr},
            )
            raise AgentError(f"Claude CLI exited with {returncode}: {stderr}")
    finally:
        if process.returncode is None:
            process.kill()
            await process.wait()
        if not stderr_task.done():
            stderr_task.cancel()
