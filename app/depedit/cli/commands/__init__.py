"""CLI commands for depedit.

This package contains all subcommand implementations.
"""

from depedit.cli.commands import add, config, rm

__all__ = ["add", "config", "rm"]
