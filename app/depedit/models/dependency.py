"""Dependency model and its mapping to and from TOML nodes.

A Dependency describes the desired state of one entry in a dependency
table, independent of how that entry is currently formatted. Fields left
as None mean "leave whatever the manifest has" when merging into an
existing entry, and "omit" when writing a new one.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

import tomlkit
from tomlkit.items import InlineTable

from depedit.core.errors import (
    InvalidDependencyEntryError,
    InvalidDependencyTypeError,
    UnrecognizedSourceError,
)
from depedit.core.toml_nodes import (
    as_bool,
    inline_table,
    is_array,
    is_table_like,
    reformat_inline_table,
    remove_key,
    str_or_1_len_table,
    string_list,
    type_name,
)

GitReferenceKind = Literal["branch", "tag", "rev", "default-branch"]
SourceKind = Literal["registry", "path", "git"]

DEFAULT_REGISTRY = "crates-io"


def _strip_build_metadata(version: str) -> str:
    # Build metadata is ignored by requirement matching and warned about on build.
    return version.split("+", 1)[0]


@dataclass(frozen=True, slots=True)
class GitReference:
    """Which commit of a git repository a dependency tracks."""

    kind: GitReferenceKind
    value: str | None = None

    def pretty_ref(self) -> str | None:
        """Return ``kind=value`` for display, or None for the default branch."""
        if self.kind == "default-branch":
            return None
        return f"{self.kind}={self.value}"


@dataclass(frozen=True, slots=True)
class RegistrySource:
    """Dependency from a package registry.

    Attributes:
        version: Version requirement, without build metadata.
    """

    version: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "version", _strip_build_metadata(self.version))

    def __str__(self) -> str:
        return self.version


@dataclass(frozen=True, slots=True)
class PathSource:
    """Dependency from a local directory.

    Attributes:
        path: Absolute path of the dependency's package directory.
        version: Version requirement used when the package is published.
    """

    path: Path
    version: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", Path(self.path))
        if self.version is not None:
            object.__setattr__(self, "version", _strip_build_metadata(self.version))

    def set_version(self, version: str) -> PathSource:
        """Return a copy with the given version requirement."""
        return replace(self, version=version)

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True, slots=True)
class GitSource:
    """Dependency from a git repository.

    At most one of branch, tag and rev is set; the setters enforce it.
    """

    git: str
    branch: str | None = None
    tag: str | None = None
    rev: str | None = None

    def set_branch(self, branch: str) -> GitSource:
        return replace(self, branch=branch, tag=None, rev=None)

    def set_tag(self, tag: str) -> GitSource:
        return replace(self, branch=None, tag=tag, rev=None)

    def set_rev(self, rev: str) -> GitSource:
        return replace(self, branch=None, tag=None, rev=rev)

    def git_ref(self) -> GitReference:
        """Build the reference descriptor for this source.

        Returns:
            Branch, then tag, then rev, whichever is set first; otherwise
            the default branch.
        """
        if self.branch is not None:
            return GitReference("branch", self.branch)
        if self.tag is not None:
            return GitReference("tag", self.tag)
        if self.rev is not None:
            return GitReference("rev", self.rev)
        return GitReference("default-branch")

    def __str__(self) -> str:
        pretty_ref = self.git_ref().pretty_ref()
        if pretty_ref is not None:
            return f"{self.git}?{pretty_ref}"
        return self.git


Source = RegistrySource | PathSource | GitSource


@dataclass(frozen=True, slots=True)
class SourceId:
    """Where a dependency will be fetched from.

    Attributes:
        kind: Source kind ("registry", "path" or "git").
        location: Registry name, directory or repository URL.
        reference: Git reference for git sources, None otherwise.
    """

    kind: SourceKind
    location: str
    reference: GitReference | None = None


def relative_path(crate_root: Path, path: Path) -> str:
    """Express ``path`` relative to ``crate_root`` with forward slashes.

    Args:
        crate_root: Absolute directory of the manifest being edited.
        path: Absolute path of the dependency.

    Returns:
        Relative path string suitable for a ``path`` field.
    """
    relpath = os.path.relpath(path, crate_root)
    return relpath.replace("\\", "/")


@dataclass
class Dependency:
    """A dependency as it should appear in a manifest.

    Attributes:
        name: Package name as published (not the alias).
        optional: Whether the dependency is behind a feature flag.
        features: Features to enable, or None to keep the existing ones.
        default_features: Whether default features are enabled.
        source: Where the dependency comes from.
        registry: Non-default registry name.
        rename: Alias used as the table key, if the dependency is renamed.
        available_features: Features the resolved package exposes. Never
            written to the manifest.
    """

    name: str
    optional: bool | None = None
    features: list[str] | None = None
    default_features: bool | None = None
    source: Source | None = None
    registry: str | None = None
    rename: str | None = None
    available_features: dict[str, list[str]] = field(default_factory=dict, compare=False)

    def set_source(self, source: Source) -> Dependency:
        self.source = source
        return self

    def set_version(self, version: str) -> Dependency:
        """Set the version requirement, keeping a path source if there is one."""
        if isinstance(self.source, PathSource):
            self.source = self.source.set_version(version)
        else:
            self.source = RegistrySource(version)
        return self

    def set_path(self, path: Path) -> Dependency:
        self.source = PathSource(path)
        return self

    def set_git(
        self,
        repo: str,
        branch: str | None = None,
        tag: str | None = None,
        rev: str | None = None,
    ) -> Dependency:
        source = GitSource(repo)
        if branch is not None:
            source = source.set_branch(branch)
        elif tag is not None:
            source = source.set_tag(tag)
        elif rev is not None:
            source = source.set_rev(rev)
        self.source = source
        return self

    def clear_version(self) -> Dependency:
        """Remove the version requirement, keeping any path or git location."""
        if isinstance(self.source, RegistrySource):
            self.source = None
        elif isinstance(self.source, PathSource):
            self.source = replace(self.source, version=None)
        return self

    def set_optional(self, optional: bool | None) -> Dependency:
        self.optional = optional
        return self

    def set_features(self, features: list[str] | None) -> Dependency:
        self.features = None if features is None else list(dict.fromkeys(features))
        return self

    def extend_features(self, features: list[str]) -> Dependency:
        self.features = list(dict.fromkeys([*(self.features or []), *features]))
        return self

    def set_default_features(self, default_features: bool | None) -> Dependency:
        self.default_features = default_features
        return self

    def set_rename(self, rename: str) -> Dependency:
        self.rename = rename
        return self

    def set_registry(self, registry: str) -> Dependency:
        self.registry = registry
        return self

    def set_available_features(self, available_features: dict[str, list[str]]) -> Dependency:
        self.available_features = dict(available_features)
        return self

    def version(self) -> str | None:
        """Get the version requirement, if the source carries one."""
        if isinstance(self.source, RegistrySource):
            return self.source.version
        if isinstance(self.source, PathSource):
            return self.source.version
        return None

    def path(self) -> Path | None:
        """Get the local path, if this is a path dependency."""
        if isinstance(self.source, PathSource):
            return self.source.path
        return None

    def toml_key(self) -> str:
        """Key of this dependency in its table: the alias if renamed, else the name."""
        return self.rename if self.rename is not None else self.name

    def source_id(self) -> SourceId:
        """Describe where this dependency would be fetched from."""
        source = self.source
        if source is None or isinstance(source, RegistrySource):
            return SourceId("registry", self.registry or DEFAULT_REGISTRY)
        if isinstance(source, PathSource):
            return SourceId("path", str(source.path))
        if isinstance(source, GitSource):
            return SourceId("git", source.git, source.git_ref())
        raise TypeError(f"Unknown dependency source: {source!r}")

    def unknown_features(self) -> list[str]:
        """List requested features the resolved package does not expose.

        Returns an empty list when no available features are known.
        """
        if not self.features or not self.available_features:
            return []
        return [f for f in self.features if f not in self.available_features]

    def __str__(self) -> str:
        if self.source is not None:
            return f"{self.name}@{self.source}"
        return self.toml_key()

    @classmethod
    def from_node(cls, crate_root: Path, key: str, node: Any) -> Dependency:
        """Create a dependency from a TOML table entry.

        Args:
            crate_root: Directory that relative ``path`` fields are resolved against.
            key: Table key of the entry.
            node: The entry's value, a version string or a table.

        Returns:
            The parsed Dependency.

        Raises:
            InvalidDependencyTypeError: If a field has the wrong type.
            UnrecognizedSourceError: If a table has no git, path or version.
            InvalidDependencyEntryError: If the entry is neither string nor table.
        """
        if isinstance(node, str):
            return cls(key).set_source(RegistrySource(str(node)))
        if not is_table_like(node):
            raise InvalidDependencyEntryError(key, type_name(node))

        if "package" in node:
            name = _get_str(key, node, "package")
            rename: str | None = key
        else:
            name, rename = key, None

        source: Source
        if "git" in node:
            git_source = GitSource(_get_str(key, node, "git"))
            if "branch" in node:
                git_source = git_source.set_branch(_get_str(key, node, "branch"))
            if "tag" in node:
                git_source = git_source.set_tag(_get_str(key, node, "tag"))
            if "rev" in node:
                git_source = git_source.set_rev(_get_str(key, node, "rev"))
            source = git_source
        elif "path" in node:
            path = Path(os.path.normpath(Path(crate_root) / _get_str(key, node, "path")))
            path_source = PathSource(path)
            if "version" in node:
                path_source = path_source.set_version(_get_str(key, node, "version"))
            source = path_source
        elif "version" in node:
            source = RegistrySource(_get_str(key, node, "version"))
        else:
            raise UnrecognizedSourceError(key)

        registry = _get_str(key, node, "registry") if "registry" in node else None
        default_features = _get_bool(key, node, "default-features")
        optional = _get_bool(key, node, "optional")

        features: list[str] | None = None
        if "features" in node:
            value = node["features"]
            if not is_array(value):
                raise InvalidDependencyTypeError(key, "features", type_name(value), "array")
            for entry in value:
                if not isinstance(entry, str):
                    raise InvalidDependencyTypeError(key, "features", type_name(entry), "string")
            features = list(dict.fromkeys(str(entry) for entry in value))

        return cls(
            name=name,
            optional=optional,
            features=features,
            default_features=default_features,
            source=source,
            registry=registry,
            rename=rename,
        )

    def to_node(self, crate_root: Path) -> Any:
        """Convert this dependency to a TOML value.

        A bare registry requirement becomes a plain version string; anything
        else becomes an inline table.

        Args:
            crate_root: Absolute directory of the manifest, used to write
                relative ``path`` fields.

        Returns:
            A tomlkit String or InlineTable.

        Raises:
            ValueError: If ``crate_root`` is not absolute.
        """
        crate_root = _require_absolute(crate_root)

        if (
            not self.optional
            and self.features is None
            and self.default_features is not False
            and isinstance(self.source, RegistrySource)
            and self.registry is None
            and self.rename is None
        ):
            return tomlkit.item(self.source.version)

        fields: dict[str, Any] = {}
        source = self.source
        if isinstance(source, RegistrySource):
            fields["version"] = source.version
        elif isinstance(source, PathSource):
            if source.version is not None:
                fields["version"] = source.version
            fields["path"] = relative_path(crate_root, source.path)
        elif isinstance(source, GitSource):
            fields["git"] = source.git
            if source.branch is not None:
                fields["branch"] = source.branch
            if source.tag is not None:
                fields["tag"] = source.tag
            if source.rev is not None:
                fields["rev"] = source.rev

        if "version" in fields and self.registry is not None:
            fields["registry"] = self.registry
        if self.rename is not None:
            fields["package"] = self.name
        if self.default_features is not None:
            fields["default-features"] = self.default_features
        if self.features is not None:
            fields["features"] = list(self.features)
        if self.optional is not None:
            fields["optional"] = self.optional
        return inline_table(fields)

    def update_node(self, crate_root: Path, parent: Any, key: str) -> None:
        """Merge this dependency into the existing entry ``parent[key]``.

        Fields are set or removed one at a time so unrelated keys, their
        order and surrounding comments survive. The entry is replaced
        outright when it holds nothing worth keeping or when it refers to a
        different package.

        Args:
            crate_root: Absolute directory of the manifest.
            parent: Dependency table holding the entry.
            key: Key of the existing entry.

        Raises:
            ValueError: If ``crate_root`` is not absolute.
        """
        crate_root = _require_absolute(crate_root)
        node = parent[key]
        if str_or_1_len_table(node) or not _is_package_eq(node, self.name, self.rename):
            parent[key] = self.to_node(crate_root)
            return

        source = self.source
        if isinstance(source, RegistrySource):
            node["version"] = source.version
            for field_key in ("path", "git", "branch", "tag", "rev"):
                remove_key(node, field_key)
        elif isinstance(source, PathSource):
            if source.version is not None:
                node["version"] = source.version
            else:
                remove_key(node, "version")
            node["path"] = relative_path(crate_root, source.path)
            for field_key in ("git", "branch", "tag", "rev"):
                remove_key(node, field_key)
        elif isinstance(source, GitSource):
            node["git"] = source.git
            for field_key in ("branch", "tag", "rev"):
                value = getattr(source, field_key)
                if value is not None:
                    node[field_key] = value
                else:
                    remove_key(node, field_key)
            for field_key in ("version", "path"):
                remove_key(node, field_key)

        if "version" in node and self.registry is not None:
            node["registry"] = self.registry
        else:
            remove_key(node, "registry")

        if self.rename is not None:
            node["package"] = self.name
        if self.default_features is not None:
            node["default-features"] = self.default_features
        else:
            remove_key(node, "default-features")
        if self.features is not None:
            _merge_features(node, self.features)
        else:
            remove_key(node, "features")
        if self.optional is not None:
            node["optional"] = self.optional
        else:
            remove_key(node, "optional")

        if isinstance(node, InlineTable):
            parent[key] = reformat_inline_table(node)


def _require_absolute(crate_root: Path) -> Path:
    crate_root = Path(crate_root)
    if not crate_root.is_absolute():
        msg = f"Absolute path needed, got: {crate_root}"
        raise ValueError(msg)
    return crate_root


def _get_str(dependency: str, table: Any, key: str) -> str:
    value = table[key]
    if not isinstance(value, str):
        raise InvalidDependencyTypeError(dependency, key, type_name(value), "string")
    return str(value)


def _get_bool(dependency: str, table: Any, key: str) -> bool | None:
    if key not in table:
        return None
    value = table[key]
    flag = as_bool(value)
    if flag is None:
        raise InvalidDependencyTypeError(dependency, key, type_name(value), "bool")
    return flag


def _is_package_eq(node: Any, name: str, rename: str | None) -> bool:
    """Check that an existing entry names the same package as the new one."""
    if not is_table_like(node):
        return False
    existing = node.get("package")
    existing_package = str(existing) if isinstance(existing, str) else None
    new_package = name if rename is not None else None
    return existing_package == new_package


def _merge_features(table: Any, new_features: list[str]) -> None:
    """Union ``new_features`` into the table's ``features`` array.

    A clean existing array is extended in place to keep its layout; any
    other shape is rebuilt from the deduplicated union.
    """
    existing = table.get("features")
    current = string_list(existing)
    if current is not None and len(set(current)) == len(current):
        for feature in new_features:
            if feature not in current:
                existing.append(feature)
                current.append(feature)
        return
    table["features"] = list(dict.fromkeys([*(current or []), *new_features]))
