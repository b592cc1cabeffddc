"""Add command for declaring dependencies.

This module provides the `depedit add` command, which inserts dependencies
into a manifest or merges them into entries that already exist.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer

from depedit.core.config import ConfigError, DepeditConfig, load_config
from depedit.core.crate_spec import PathSpec, resolve_crate_spec
from depedit.core.errors import DependencySpecError, ManifestError
from depedit.core.manifest import LocalManifest, dependency_table_path
from depedit.core.paths import find_manifest
from depedit.core.registry import PackageNotFoundError, RegistryIndex, StaticRegistryIndex
from depedit.core.version_req import InvalidVersionReqError
from depedit.core.workspace import Workspace
from depedit.models.dependency import Dependency, GitSource, PathSource
from depedit.utils.formatting import console, print_error, print_warning

logger = logging.getLogger(__name__)

_FEATURE_SEPARATOR = re.compile(r"[\s,]+")


@dataclass(frozen=True)
class AddOptions:
    """Flags of one `depedit add` invocation that apply to every dependency."""

    dev: bool = False
    build: bool = False
    target: str | None = None
    features: list[str] | None = None
    optional: bool | None = None
    default_features: bool | None = None
    rename: str | None = None
    registry: str | None = None
    git: str | None = None
    branch: str | None = None
    tag: str | None = None
    rev: str | None = None

    def table_path(self) -> list[str]:
        """Get the dependency table the flags select."""
        return dependency_table_path(self.dev, self.build, self.target)


def add(
    ctx: typer.Context,
    dep_ids: Annotated[
        list[str],
        typer.Argument(
            metavar="DEP_ID...",
            help="Package to add: NAME, NAME@VERSION or a path to a local package.",
            show_default=False,
        ),
    ],
    dev: Annotated[
        bool,
        typer.Option("--dev", "-D", help="Add as development dependency."),
    ] = False,
    build: Annotated[
        bool,
        typer.Option("--build", "-B", help="Add as build dependency."),
    ] = False,
    target: Annotated[
        str | None,
        typer.Option("--target", help="Add as dependency to the given target platform."),
    ] = None,
    features: Annotated[
        list[str] | None,
        typer.Option(
            "--features",
            "-F",
            help="Space or comma separated list of features to activate.",
        ),
    ] = None,
    optional: Annotated[
        bool | None,
        typer.Option(
            "--optional/--no-optional",
            help="Mark the dependency as optional or required.",
            show_default=False,
        ),
    ] = None,
    default_features: Annotated[
        bool | None,
        typer.Option(
            "--default-features/--no-default-features",
            help="Re-enable or disable the default features.",
            show_default=False,
        ),
    ] = None,
    rename: Annotated[
        str | None,
        typer.Option("--rename", "-r", help="Rename the dependency."),
    ] = None,
    registry: Annotated[
        str | None,
        typer.Option("--registry", help="Package registry for this dependency."),
    ] = None,
    git: Annotated[
        str | None,
        typer.Option("--git", metavar="URI", help="Git repository location."),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", help="Git branch to download the package from."),
    ] = None,
    tag: Annotated[
        str | None,
        typer.Option("--tag", help="Git tag to download the package from."),
    ] = None,
    rev: Annotated[
        str | None,
        typer.Option("--rev", help="Git revision to download the package from."),
    ] = None,
    manifest_path: Annotated[
        Path | None,
        typer.Option("--manifest-path", metavar="PATH", help="Path to the manifest to edit."),
    ] = None,
) -> None:
    """Add dependencies to a manifest.

    Existing entries are updated in place, keeping their formatting and any
    keys the command does not manage.

    Examples:
        depedit add serde@1.0 --features derive
        depedit add regex --dev
        depedit add ../shared-utils
        depedit add tokio --git https://github.com/tokio-rs/tokio --branch master
    """
    quiet = bool(ctx.obj and ctx.obj.get("quiet"))
    options = AddOptions(
        dev=dev,
        build=build,
        target=target,
        features=_split_features(features),
        optional=optional,
        default_features=default_features,
        rename=rename,
        registry=registry,
        git=git,
        branch=branch,
        tag=tag,
        rev=rev,
    )

    try:
        config = load_config()
        check_conflicts(dep_ids, options)

        manifest = LocalManifest.try_new(
            manifest_path or find_manifest(name=config.manifest_name)
        )
        index = _load_index(config)
        workspace = Workspace.discover(manifest, config.manifest_name)

        deps = [
            build_dependency(dep_id, options, config, index, workspace) for dep_id in dep_ids
        ]

        table_path = options.table_path()
        for dep in deps:
            if not quiet:
                _print_adding(dep, options)
            for feature in dep.unknown_features():
                print_warning(f"Unrecognized feature `{feature}` for package `{dep.name}`")
            manifest.insert_into_table(table_path, dep)

        manifest.write()
    except (ManifestError, ConfigError) as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e


def check_conflicts(dep_ids: list[str], options: AddOptions) -> None:
    """Reject flag combinations that cannot describe a dependency.

    Raises:
        DependencySpecError: On the first conflict found.
    """
    if not dep_ids:
        raise DependencySpecError("At least one dependency must be given")
    if options.dev and options.build:
        raise DependencySpecError("`--dev` and `--build` cannot be used together")
    if options.target is not None and not options.target.strip():
        raise DependencySpecError("Target specification may not be empty")
    if options.optional is not None and options.dev:
        raise DependencySpecError("Dev-dependencies cannot be optional")

    if len(dep_ids) > 1:
        if options.git is not None:
            raise DependencySpecError(
                "Cannot specify multiple packages with path or git or version"
            )
        if options.rename is not None:
            raise DependencySpecError("Cannot specify multiple packages with rename")
        if options.features is not None:
            raise DependencySpecError("Cannot specify multiple packages with features")

    git_refs = [r for r in (options.branch, options.tag, options.rev) if r is not None]
    if git_refs and options.git is None:
        raise DependencySpecError("`--branch`, `--tag` and `--rev` require `--git`")
    if len(git_refs) > 1:
        raise DependencySpecError("Only one of `--branch`, `--tag` and `--rev` may be given")
    if options.git is not None and options.registry is not None:
        raise DependencySpecError("`--git` and `--registry` cannot be used together")


def build_dependency(
    dep_id: str,
    options: AddOptions,
    config: DepeditConfig,
    index: RegistryIndex | None,
    workspace: Workspace,
) -> Dependency:
    """Turn one dependency id and the command flags into a Dependency.

    Args:
        dep_id: Dependency id as typed by the user.
        options: Flags applying to every id.
        config: Loaded settings.
        index: Registry index used for versions and features, if configured.
        workspace: Members that may be depended on by path.

    Raises:
        DependencySpecError: If the id conflicts with the flags or no
            version can be determined.
    """
    spec = resolve_crate_spec(dep_id)

    if isinstance(spec, PathSpec):
        if options.git is not None:
            raise DependencySpecError(
                f"Cannot use a path ({dep_id}) together with git URL ({options.git})"
            )
        if options.registry is not None:
            raise DependencySpecError(
                f"Cannot use a path ({dep_id}) together with registry ({options.registry})"
            )
        dep = spec.to_dependency(config.manifest_name)
        workspace.populate_version(dep, dev=options.dev)
        logger.debug("Path dependency %s resolved to %s", dep_id, dep)
    elif spec.version_req is not None:
        if options.git is not None:
            raise DependencySpecError(
                f"Cannot specify a git URL (`{options.git}`) with a version (`{spec.version_req}`)."
            )
        dep = spec.to_dependency(config.manifest_name)
        if index is not None:
            try:
                release = index.resolve(dep.name, spec.version_req)
            except (PackageNotFoundError, InvalidVersionReqError) as e:
                logger.debug("No features known for %s: %s", dep, e)
            else:
                dep.set_available_features(release.features)
    elif options.git is not None:
        dep = spec.to_dependency(config.manifest_name).set_git(
            options.git, options.branch, options.tag, options.rev
        )
        if index is not None:
            git_features = index.git_features(options.git) or []
            dep.set_available_features({feature: [] for feature in git_features})
    else:
        member = workspace.find_by_name(spec.name)
        if member is not None:
            dep = Dependency(spec.name).set_path(member.manifest_dir)
            workspace.populate_version(dep, dev=options.dev)
            logger.debug("Using workspace member %s at %s", member.name, member.manifest_dir)
        else:
            if index is None:
                raise DependencySpecError(
                    f"No version given for `{spec.name}` and no registry index is "
                    f"configured; use `{spec.name}@<version>`"
                )
            release = index.resolve(spec.name)
            dep = release.to_dependency()
            logger.debug("Selected latest version %s of %s", release.version, release.name)

    dep.set_optional(options.optional).set_default_features(options.default_features)
    if options.rename is not None:
        dep.set_rename(options.rename)
    if options.features is not None:
        dep.set_features(options.features)

    registry = options.registry or config.default_registry
    if registry is not None and not isinstance(dep.source, (GitSource, PathSource)):
        dep.set_registry(registry)
    return dep


def _split_features(values: list[str] | None) -> list[str] | None:
    if not values:
        return None
    features = [f for value in values for f in _FEATURE_SEPARATOR.split(value) if f]
    return features or None


def _load_index(config: DepeditConfig) -> RegistryIndex | None:
    if config.index_file is None:
        return None
    logger.debug("Loading registry index from %s", config.index_file)
    return StaticRegistryIndex.from_file(config.index_file.expanduser())


def _print_adding(dep: Dependency, options: AddOptions) -> None:
    version = dep.version()
    if version is not None:
        what = f"{dep.name} v{version}"
    elif isinstance(dep.source, GitSource):
        what = f"{dep.name} ({dep.source})"
    else:
        what = dep.name

    section = options.table_path()[-1]
    if dep.optional:
        section = f"optional {section}"
    message = f"Adding {what} to {section}"
    if options.target is not None:
        message += f" for target `{options.target}`"
    console.print(f"[header]{message}[/]")
