"""Memory file and vault insight commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from memloop.cli.console import console, dim, error, format_bytes, success, warning


def register(app: typer.Typer) -> None:
    """Register the memory and insights commands."""

    @app.command()
    def memory(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, size, path, edit"),
        ] = None,
        file: Annotated[
            Path | None,
            typer.Option(
                "--file",
                "-f",
                help="Replacement content for edit",
            ),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Inspect or replace the canonical memory file.

        Examples:
            memloop memory show                 # Print the memory file
            memloop memory size                 # Size against the limit
            memloop memory path                 # Where the file lives
            memloop memory edit --file new.md   # Replace it (size enforced)
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from memloop.cli.runtime import load_config_or_exit

        memloop_config = load_config_or_exit(config)
        memory_config = memloop_config.memory

        if action == "show":
            asyncio.run(_memory_show(memory_config.path))
        elif action == "size":
            asyncio.run(_memory_size(memory_config))
        elif action == "path":
            console.print(str(memory_config.path))
        elif action == "edit":
            if file is None:
                error("--file is required for edit")
                raise typer.Exit(1)
            asyncio.run(_memory_edit(memory_config, file))
        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, size, path, edit")
            raise typer.Exit(1)

    @app.command()
    def insights(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, set"),
        ] = None,
        vault: Annotated[
            str | None,
            typer.Option(
                "--vault",
                "-v",
                help="Vault id",
            ),
        ] = None,
        text: Annotated[
            str | None,
            typer.Option(
                "--text",
                "-t",
                help="Insights text for set",
            ),
        ] = None,
        config: Annotated[
            Path | None,
            typer.Option(
                "--config",
                "-c",
                help="Path to configuration file",
            ),
        ] = None,
    ) -> None:
        """Manage the memloop insights section of a vault's CLAUDE.md."""
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from memloop.cli.runtime import load_config_or_exit
        from memloop.config import ConfigError

        if vault is None:
            error("--vault is required")
            raise typer.Exit(1)

        memloop_config = load_config_or_exit(config)
        try:
            vault_config = memloop_config.get_vault(vault)
        except ConfigError as e:
            error(str(e))
            raise typer.Exit(1) from None
        claude_md = memloop_config.resolve_vault_path(vault_config) / "CLAUDE.md"

        if action == "show":
            asyncio.run(_insights_show(claude_md))
        elif action == "set":
            if not text:
                error("--text is required for set")
                raise typer.Exit(1)
            asyncio.run(_insights_set(claude_md, text))
        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, set")
            raise typer.Exit(1)


async def _memory_show(path: Path) -> None:
    from memloop.memory import read_memory_file

    content = await read_memory_file(path)
    if not content:
        warning(f"Memory file is empty or missing: {path}")
        return
    console.print(content, markup=False, highlight=False)


async def _memory_size(memory_config) -> None:
    from memloop.memory import check_memory_size, extract_facts_from_content, read_memory_file

    content = await read_memory_file(memory_config.path)
    size = check_memory_size(
        content,
        warning_bytes=memory_config.warning_bytes,
        max_bytes=memory_config.max_bytes,
    )
    console.print(
        f"{format_bytes(size.size_bytes)} of {format_bytes(memory_config.max_bytes)}"
        f" ({len(extract_facts_from_content(content))} facts)"
    )
    if size.is_over_limit:
        error("At or over the size limit")
    elif size.is_warning:
        warning("Approaching the size limit")


async def _memory_edit(memory_config, source: Path) -> None:
    from memloop.memory import write_memory_file

    try:
        content = source.read_text(encoding="utf-8")
    except OSError as e:
        error(f"Cannot read {source}: {e}")
        raise typer.Exit(1) from None

    result = await write_memory_file(content, memory_config.path, memory_config.max_bytes)
    if not result.success:
        error(f"Write failed: {result.error}")
        raise typer.Exit(1)
    success(f"Wrote {format_bytes(result.size_bytes or 0)} to {memory_config.path}")
    if result.was_pruned:
        warning("Content exceeded the size limit and was pruned")


async def _insights_show(claude_md: Path) -> None:
    from memloop.memory.insights import read_vault_insights

    body = await read_vault_insights(claude_md)
    if body is None:
        dim(f"No insights section in {claude_md}")
        return
    console.print(body, markup=False, highlight=False)


async def _insights_set(claude_md: Path, text: str) -> None:
    from memloop.memory.insights import update_vault_insights

    result = await update_vault_insights(claude_md, text)
    if not result.success:
        error(f"Write failed: {result.error}")
        raise typer.Exit(1)
    success(f"Updated insights in {claude_md}")
