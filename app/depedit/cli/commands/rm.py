"""Remove command for dropping dependencies.

This module provides the `depedit rm` command. After each removal, feature
lists that still refer to the dependency are pruned.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer

from depedit.core.config import ConfigError, load_config
from depedit.core.errors import DependencySpecError, ManifestError
from depedit.core.manifest import LocalManifest, dependency_table_path
from depedit.core.paths import find_manifest
from depedit.utils.formatting import console, print_error

logger = logging.getLogger(__name__)


def rm(
    ctx: typer.Context,
    dep_keys: Annotated[
        list[str],
        typer.Argument(
            metavar="DEP_ID...",
            help="Dependencies to remove, by their key in the manifest.",
            show_default=False,
        ),
    ],
    dev: Annotated[
        bool,
        typer.Option("--dev", "-D", help="Remove as development dependency."),
    ] = False,
    build: Annotated[
        bool,
        typer.Option("--build", "-B", help="Remove as build dependency."),
    ] = False,
    target: Annotated[
        str | None,
        typer.Option("--target", help="Remove as dependency from the given target platform."),
    ] = None,
    manifest_path: Annotated[
        Path | None,
        typer.Option("--manifest-path", metavar="PATH", help="Path to the manifest to edit."),
    ] = None,
) -> None:
    """Remove dependencies from a manifest.

    The manifest is written only if every dependency could be removed.

    Examples:
        depedit rm regex
        depedit rm semver --build
        depedit rm winapi --target 'cfg(windows)'
    """
    quiet = bool(ctx.obj and ctx.obj.get("quiet"))

    try:
        if dev and build:
            raise DependencySpecError("`--dev` and `--build` cannot be used together")
        if target is not None and not target.strip():
            raise DependencySpecError("Target specification may not be empty")

        config = load_config()
        manifest = LocalManifest.try_new(
            manifest_path or find_manifest(name=config.manifest_name)
        )

        table_path = dependency_table_path(dev, build, target)
        section = table_path[-1]
        for dep_key in dep_keys:
            if not quiet:
                message = f"Removing {dep_key} from {section}"
                if target is not None:
                    message += f" for target `{target}`"
                console.print(f"[header]{message}[/]")
            manifest.remove_from_table(table_path, dep_key)
            manifest.gc_dep(dep_key)
            logger.debug("Removed %s from %s", dep_key, ".".join(table_path))

        manifest.write()
    except (ManifestError, ConfigError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

