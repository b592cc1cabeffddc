"""Config command for inspecting and creating the settings file."""

from typing import Annotated

import typer

from depedit.core.config import ConfigError, DepeditConfig, load_config, save_config
from depedit.core.paths import get_config_path
from depedit.utils.formatting import (
    console,
    create_settings_table,
    print_error,
    print_info,
    print_success,
)

app = typer.Typer(
    help="Show or initialize depedit settings.",
    no_args_is_help=True,
)


@app.command()
def show() -> None:
    """Show the effective settings and where they are read from."""
    config_path = get_config_path()
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    table = create_settings_table(title=f"Settings ({config_path})")
    for key, value in config.model_dump().items():
        table.add_row(key, "-" if value is None else str(value))
    console.print(table)

    if not config_path.exists():
        print_info("No settings file found; showing defaults.")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
) -> None:
    """Write a settings file with the default values."""
    config_path = get_config_path()
    if config_path.exists() and not force:
        print_error(f"Settings file already exists: {config_path}")
        print_info("Use --force to overwrite it.")
        raise typer.Exit(code=1)

    try:
        saved = save_config(DepeditConfig(), config_path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    print_success(f"Settings written to {saved}")
