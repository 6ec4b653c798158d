"""Main CLI application."""

import typer

from memloop.cli.commands import extraction, memory, prompt, serve

app = typer.Typer(
    name="memloop",
    help="memloop - distill chat transcripts into a durable memory file",
    no_args_is_help=True,
)

extraction.register(app)
serve.register(app)
memory.register(app)
prompt.register(app)


if __name__ == "__main__":
    app()
