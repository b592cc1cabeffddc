"""Format-preserving manifest editing.

This module wraps a tomlkit document and provides the dependency-aware
operations used by the CLI: discovering dependency sections (including
``target.<cfg>`` sections), inserting or merging dependencies, removing
them, and pruning feature references to removed dependencies.
"""

import logging
import os
from collections.abc import Iterator, Sequence
from enum import IntEnum
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Final

import tomlkit
from tomlkit.exceptions import ParseError
from tomlkit.items import InlineTable
from tomlkit.toml_document import TOMLDocument

from depedit.core.errors import (
    DependencyNotFoundError,
    InvalidFeaturesConfigError,
    ManifestError,
    ManifestNotFoundError,
    ManifestParseError,
    MissingPackageError,
    TableNotFoundError,
    VirtualManifestError,
)
from depedit.core.toml_nodes import (
    as_bool,
    is_array,
    is_table_like,
    reformat_inline_table,
    string_list,
)
from depedit.models.dependency import Dependency
from depedit.models.feature import Dep, DepFeature, Feature, parse_feature_value

logger = logging.getLogger(__name__)

DEP_TABLES: Final = ("dependencies", "dev-dependencies", "build-dependencies")

# Tables that identify a manifest as describing a package
PACKAGE_TABLES: Final = ("package", "project")


def dependency_table_path(
    dev: bool = False, build: bool = False, target: str | None = None
) -> list[str]:
    """Build the table path for a dependency kind, optionally under a target.

    For example ``dev=True, target="cfg(unix)"`` gives
    ``["target", "cfg(unix)", "dev-dependencies"]``.
    """
    if dev:
        kind = "dev-dependencies"
    elif build:
        kind = "build-dependencies"
    else:
        kind = "dependencies"
    return ["target", target, kind] if target is not None else [kind]


class DependencyStatus(IntEnum):
    """How a dependency is still declared after one of its entries was removed."""

    NONE = 0
    OPTIONAL = 1
    REQUIRED = 2


class Manifest:
    """A parsed manifest whose formatting survives editing.

    Attributes:
        data: The underlying tomlkit document.
    """

    def __init__(self, data: TOMLDocument) -> None:
        self.data = data

    @classmethod
    def parse(cls, text: str) -> "Manifest":
        """Parse manifest text.

        Raises:
            ManifestParseError: If the text is not valid TOML.
        """
        try:
            data = tomlkit.parse(text)
        except ParseError as e:
            raise ManifestParseError(f"Manifest not valid TOML: {e}", e.line, e.col) from e
        return cls(data)

    def __str__(self) -> str:
        return self.data.as_string()

    def _package_table(self) -> Any:
        for key in PACKAGE_TABLES:
            table = self.data.get(key)
            if is_table_like(table):
                return table
        return None

    def has_package_identity(self) -> bool:
        """Check whether the manifest has a `package` or `project` table."""
        return any(key in self.data for key in PACKAGE_TABLES)

    def is_virtual(self) -> bool:
        """Check whether this is a workspace-only manifest."""
        return not self.has_package_identity() and "workspace" in self.data

    def package_name(self) -> str:
        """Get the manifest's package name.

        Raises:
            MissingPackageError: If there is no package table.
            ManifestError: If the name is not a string.
        """
        return self._package_field("name")

    def package_version(self) -> str:
        """Get the manifest's package version.

        Raises:
            MissingPackageError: If there is no package table.
            ManifestError: If the version is not a string.
        """
        return self._package_field("version")

    def _package_field(self, key: str) -> str:
        package = self._package_table()
        if package is None:
            raise MissingPackageError("Missing expected `package` or `project` fields")
        value = package.get(key)
        if not isinstance(value, str):
            raise ManifestError(f"Unable to read `package.{key}` from manifest")
        return str(value)

    def get_table(self, table_path: Sequence[str]) -> Any:
        """Get the table at ``table_path``.

        Args:
            table_path: Key segments, e.g. ``["target", "cfg(unix)", "dependencies"]``.

        Returns:
            The table node (the document itself for an empty path).

        Raises:
            TableNotFoundError: If a segment is missing or not a table.
        """
        node: Any = self.data
        for segment in table_path:
            value = node.get(segment)
            if not is_table_like(value):
                raise TableNotFoundError(segment)
            node = value
        return node

    def get_table_mut(self, table_path: Sequence[str]) -> Any:
        """Get the table at ``table_path``, creating missing tables on the way.

        Raises:
            TableNotFoundError: If a segment exists but is not a table.
        """
        _parent, _segment, node = self._descend_mut(table_path)
        return node

    def _descend_mut(self, table_path: Sequence[str]) -> tuple[Any, str | None, Any]:
        parent: Any = None
        last: str | None = None
        node: Any = self.data
        for segment in table_path:
            if segment not in node:
                node[segment] = (
                    tomlkit.inline_table() if isinstance(node, InlineTable) else tomlkit.table()
                )
            value = node[segment]
            if not is_table_like(value):
                raise TableNotFoundError(segment)
            parent, last, node = node, segment, value
        return parent, last, node

    def get_sections(self) -> list[tuple[list[str], Any]]:
        """Get every existing table that may hold dependencies.

        Returns:
            ``(table_path, table)`` pairs: the top-level dependency tables
            first, then each ``target.<name>`` table in document order.
        """
        sections: list[tuple[list[str], Any]] = []
        for kind in DEP_TABLES:
            table = self.data.get(kind)
            if is_table_like(table):
                sections.append(([kind], table))

        targets = self.data.get("target")
        if is_table_like(targets):
            for target_name, target_table in targets.items():
                if not is_table_like(target_table):
                    continue
                for kind in DEP_TABLES:
                    table = target_table.get(kind)
                    if is_table_like(table):
                        sections.append((["target", str(target_name), kind], table))
        return sections

    def features(self) -> dict[str, list[str]]:
        """Get the features this manifest exposes.

        Declared ``[features]`` entries come first; every optional
        dependency adds an implicit feature of the same name unless one is
        declared.

        Raises:
            InvalidFeaturesConfigError: If ``[features]`` is not a table of
                string arrays.
        """
        features: dict[str, list[str]] = {}
        declared = self.data.get("features")
        if declared is not None:
            if not is_table_like(declared):
                raise InvalidFeaturesConfigError()
            for name, values in declared.items():
                entries = string_list(values)
                if entries is None:
                    raise InvalidFeaturesConfigError(str(name))
                features[str(name)] = entries

        for _path, table in self.get_sections():
            for key, dep_node in table.items():
                if is_table_like(dep_node) and as_bool(dep_node.get("optional")):
                    features.setdefault(str(key), [])
        return dict(sorted(features.items()))


class LocalManifest(Manifest):
    """A manifest read from, and written back to, a file on disk.

    Attributes:
        path: Absolute path of the manifest file.
    """

    def __init__(self, path: Path, data: TOMLDocument) -> None:
        super().__init__(data)
        self.path = Path(path)

    @classmethod
    def try_new(cls, path: Path) -> "LocalManifest":
        """Read and parse the manifest at ``path``.

        Args:
            path: Manifest file path; it is resolved to an absolute path.

        Returns:
            The loaded LocalManifest.

        Raises:
            ManifestNotFoundError: If the file does not exist.
            ManifestParseError: If the file is not valid TOML.
            ManifestError: If the file cannot be read.
        """
        try:
            resolved = Path(path).resolve(strict=True)
            text = resolved.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestNotFoundError(f"Manifest not found: {path}") from e
        except OSError as e:
            raise ManifestError(f"Failed to read manifest contents: {e}") from e

        try:
            manifest = Manifest.parse(text)
        except ManifestParseError as e:
            raise ManifestParseError(f"Unable to parse {resolved}: {e}", e.line, e.col) from e

        logger.debug("Loaded manifest %s", resolved)
        return cls(resolved, manifest.data)

    @property
    def crate_root(self) -> Path:
        """Directory containing the manifest."""
        return self.path.parent

    def write(self) -> Path:
        """Write the document back to its file.

        The file is written atomically through a temporary file in the
        same directory.

        Returns:
            Path of the written manifest.

        Raises:
            VirtualManifestError: If this is a workspace-only manifest.
            MissingPackageError: If the manifest has no package table.
            ManifestError: If the file cannot be written.
        """
        if not self.has_package_identity():
            if "workspace" in self.data:
                raise VirtualManifestError(
                    f"Found virtual manifest at {self.path}, but this command requires "
                    "running against an actual package in this workspace.",
                    self.path,
                )
            raise MissingPackageError(
                f"Missing expected `package` or `project` fields in {self.path}", self.path
            )

        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                delete=False,
                suffix=".tmp",
            ) as f:
                tmp_path = Path(f.name)
                f.write(str(self))
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise ManifestError(f"Failed to write updated manifest: {e}") from e

        logger.debug("Wrote manifest %s", self.path)
        return self.path

    def get_dependency_versions(
        self, dep_key: str
    ) -> Iterator[tuple[list[str], Dependency | ManifestError]]:
        """Look up a dependency key in every section.

        Entries that cannot be parsed are yielded as their error rather
        than aborting the lookup.

        Yields:
            ``(table_path, dependency_or_error)`` for each section holding ``dep_key``.
        """
        for table_path, table in self.get_sections():
            for key, node in table.items():
                if key != dep_key:
                    continue
                try:
                    yield table_path, Dependency.from_node(self.crate_root, str(key), node)
                except ManifestError as e:
                    yield table_path, e

    def insert_into_table(self, table_path: Sequence[str], dep: Dependency) -> None:
        """Add a dependency to a table, merging with any existing entry.

        Args:
            table_path: Path of the dependency table; created if missing.
            dep: Desired state of the dependency.

        Raises:
            TableNotFoundError: If a path segment exists but is not a table.
        """
        dep_key = dep.toml_key()
        parent, segment, table = self._descend_mut(table_path)
        if dep_key in table:
            dep.update_node(self.crate_root, table, dep_key)
        else:
            table[dep_key] = dep.to_node(self.crate_root)
        if isinstance(table, InlineTable) and parent is not None:
            parent[segment] = reformat_inline_table(table)

    def remove_from_table(self, table_path: Sequence[str], dep_key: str) -> None:
        """Remove a dependency entry, dropping the table if it becomes empty.

        Raises:
            TableNotFoundError: If the table does not exist.
            DependencyNotFoundError: If the table has no such entry.
        """
        table = self.get_table(table_path)
        if dep_key not in table:
            raise DependencyNotFoundError(dep_key, ".".join(table_path))
        del table[dep_key]

        if len(table) == 0 and table_path:
            parent = self.get_table(table_path[:-1])
            del parent[table_path[-1]]

    def gc_dep(self, dep_key: str) -> None:
        """Remove feature references to ``dep_key`` that no longer apply.

        Call after removing an entry; what is pruned depends on whether the
        dependency is still declared somewhere, and how.
        """
        explicit_dep_activation = self._is_explicit_dep_activation(dep_key)
        status = self._dep_status(dep_key)

        feature_table = self.data.get("features")
        if not is_table_like(feature_table):
            return
        for _feature, values in feature_table.items():
            if is_array(values):
                _remove_feature_activation(values, dep_key, status, explicit_dep_activation)

    def _is_explicit_dep_activation(self, dep_key: str) -> bool:
        feature_table = self.data.get("features")
        if not is_table_like(feature_table):
            return False
        for values in feature_table.values():
            if not is_array(values):
                continue
            for value in values:
                if not isinstance(value, str):
                    continue
                parsed = parse_feature_value(str(value))
                if isinstance(parsed, Dep) and parsed.dep_name == dep_key:
                    return True
        return False

    def _dep_status(self, dep_key: str) -> DependencyStatus:
        status = DependencyStatus.NONE
        for _path, table in self.get_sections():
            if dep_key not in table:
                continue
            dep_node = table[dep_key]
            if is_table_like(dep_node) and as_bool(dep_node.get("optional")):
                return DependencyStatus.OPTIONAL
            status = DependencyStatus.REQUIRED
        return status


def _remove_feature_activation(
    feature_values: Any,
    dep_key: str,
    status: DependencyStatus,
    explicit_dep_activation: bool,
) -> None:
    remove_list: list[int] = []
    for idx, value in enumerate(feature_values):
        if not isinstance(value, str):
            continue
        parsed = parse_feature_value(str(value))
        implicit = (
            isinstance(parsed, Feature) and not explicit_dep_activation and parsed.name == dep_key
        )
        if status is DependencyStatus.NONE:
            matched = implicit or (
                isinstance(parsed, (Dep, DepFeature)) and parsed.dep_name == dep_key
            )
        elif status is DependencyStatus.OPTIONAL:
            matched = False
        else:
            matched = implicit or (isinstance(parsed, Dep) and parsed.dep_name == dep_key)
        if matched:
            remove_list.append(idx)

    # Remove from the back so earlier indices stay valid
    for idx in reversed(remove_list):
        del feature_values[idx]
