"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from depedit import __version__
from depedit.cli.commands import add, config, rm
from depedit.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="depedit",
    help="Add and remove dependencies in Cargo-style manifests, keeping their formatting.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"depedit version {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
) -> None:
    """depedit - Format-preserving dependency editing.

    Add or remove dependencies in a manifest while leaving comments,
    key order and formatting of untouched entries as they were.
    """
    _configure_logging(verbose)
    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet


# Register commands
app.command("add")(add.add)
app.command("rm")(rm.rm)
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
