"""CLI command modules."""

from memloop.cli.commands import extraction, memory, prompt, serve

__all__ = [
    "extraction",
    "memory",
    "prompt",
    "serve",
]
