"""Extraction prompt commands."""

import asyncio
from pathlib import Path
from typing import Annotated

import click
import typer

from memloop.cli.console import console, dim, error, success


def register(app: typer.Typer) -> None:
    """Register the prompt command."""

    @app.command()
    def prompt(
        action: Annotated[
            str | None,
            typer.Argument(help="Action: show, path, set, reset"),
        ] = None,
        file: Annotated[
            Path | None,
            typer.Option(
                "--file",
                "-f",
                help="Prompt file for set",
            ),
        ] = None,
    ) -> None:
        """Manage the extraction prompt override.

        The override lives in ~/.memloop/durable-facts.md and replaces the
        built-in description of which facts to extract.

        Examples:
            memloop prompt show                 # Print the active prompt
            memloop prompt set --file mine.md   # Install an override
            memloop prompt reset                # Back to the built-in prompt
        """
        if action is None:
            ctx = click.get_current_context()
            click.echo(ctx.get_help())
            raise typer.Exit(0)

        from memloop.config.paths import get_prompt_override_path
        from memloop.extraction.prompts import (
            has_prompt_override,
            load_extraction_prompt,
            reset_prompt_override,
            save_prompt_override,
        )

        if action == "show":
            info = asyncio.run(load_extraction_prompt())
            source = str(info.path) if info.is_override else "built-in"
            dim(f"Source: {source}")
            console.print(info.content, markup=False, highlight=False)

        elif action == "path":
            override_path = get_prompt_override_path()
            console.print(str(override_path))
            if not has_prompt_override():
                dim("(no override installed; the built-in prompt is used)")

        elif action == "set":
            if file is None:
                error("--file is required for set")
                raise typer.Exit(1)
            try:
                content = file.read_text(encoding="utf-8")
            except OSError as e:
                error(f"Cannot read {file}: {e}")
                raise typer.Exit(1) from None
            saved = asyncio.run(save_prompt_override(content))
            success(f"Prompt override saved to {saved}")

        elif action == "reset":
            if reset_prompt_override():
                success("Prompt override removed")
            else:
                dim("No prompt override to remove")

        else:
            error(f"Unknown action: {action}")
            console.print("Valid actions: show, path, set, reset")
            raise typer.Exit(1)
