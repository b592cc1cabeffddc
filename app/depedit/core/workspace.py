"""Sibling packages a dependency can point at by path.

A Workspace answers questions about a known member list, most importantly
which version a path dependency on a sibling should carry.
``Workspace.discover`` builds that list from the ``[workspace]`` table of
the nearest enclosing workspace manifest.
"""

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from depedit.core.errors import ManifestError
from depedit.core.manifest import LocalManifest
from depedit.core.paths import DEFAULT_MANIFEST_NAME
from depedit.core.toml_nodes import is_table_like, string_list
from depedit.models.dependency import Dependency, PathSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkspaceMember:
    """A package that other packages can depend on by path.

    Attributes:
        name: Package name.
        version: Package version.
        manifest_dir: Absolute directory holding the package's manifest.
    """

    name: str
    version: str
    manifest_dir: Path

    @classmethod
    def from_manifest(cls, manifest: LocalManifest) -> "WorkspaceMember":
        """Describe the package defined by a loaded manifest.

        Raises:
            MissingPackageError: If the manifest has no package table.
            ManifestError: If the name or version is not a string.
        """
        return cls(
            name=manifest.package_name(),
            version=manifest.package_version(),
            manifest_dir=manifest.crate_root,
        )


class Workspace:
    """A fixed set of workspace members."""

    def __init__(self, members: Iterable[WorkspaceMember] = ()) -> None:
        self.members = list(members)

    @classmethod
    def discover(
        cls, manifest: LocalManifest, manifest_name: str = DEFAULT_MANIFEST_NAME
    ) -> "Workspace":
        """Collect the members of the workspace ``manifest`` belongs to.

        Without an enclosing workspace the package itself is the only
        member. Members whose manifest cannot be read or lacks a name and
        version are skipped.

        Args:
            manifest: The manifest being edited.
            manifest_name: Manifest file name used inside member directories.

        Raises:
            ManifestError: If an enclosing manifest cannot be read.
        """
        root = _find_workspace_root(manifest, manifest_name)
        if root is None:
            members = [_try_member(manifest)] if manifest.has_package_identity() else []
            return cls(m for m in members if m is not None)

        workspace_table = root.data["workspace"]
        patterns = string_list(workspace_table.get("members")) or []
        excluded = {
            os.path.normpath(root.crate_root / entry)
            for entry in string_list(workspace_table.get("exclude")) or []
        }

        manifests: dict[str, LocalManifest] = {}
        if root.has_package_identity():
            manifests[os.path.normpath(root.crate_root)] = root
        for pattern in patterns:
            for directory in sorted(root.crate_root.glob(pattern)):
                key = os.path.normpath(directory)
                candidate = directory / manifest_name
                if key in excluded or key in manifests or not candidate.is_file():
                    continue
                try:
                    manifests[key] = LocalManifest.try_new(candidate)
                except ManifestError as e:
                    logger.warning("Skipping workspace member %s: %s", candidate, e)

        members = (_try_member(m) for m in manifests.values())
        workspace = cls(m for m in members if m is not None)
        logger.debug(
            "Workspace at %s has %d member(s)", root.crate_root, len(workspace.members)
        )
        return workspace

    def find_by_name(self, name: str) -> WorkspaceMember | None:
        return next((m for m in self.members if m.name == name), None)

    def find_by_dir(self, directory: Path) -> WorkspaceMember | None:
        wanted = os.path.normpath(directory)
        return next(
            (m for m in self.members if os.path.normpath(m.manifest_dir) == wanted),
            None,
        )

    def populate_version(self, dep: Dependency, dev: bool = False) -> Dependency:
        """Give a path dependency on a member that member's version.

        Dev-dependencies are never published, so they are left unversioned,
        as are dependencies that already carry a version.

        Args:
            dep: Dependency to update in place.
            dev: Whether the dependency goes into a dev-dependencies table.

        Returns:
            The same dependency, for chaining.
        """
        if dev or not isinstance(dep.source, PathSource) or dep.source.version is not None:
            return dep
        member = self.find_by_dir(dep.source.path)
        if member is not None:
            dep.set_version(member.version)
        return dep


def _find_workspace_root(manifest: LocalManifest, manifest_name: str) -> LocalManifest | None:
    if is_table_like(manifest.data.get("workspace")):
        return manifest
    for directory in manifest.crate_root.parents:
        candidate = directory / manifest_name
        if not candidate.is_file():
            continue
        parent_manifest = LocalManifest.try_new(candidate)
        if is_table_like(parent_manifest.data.get("workspace")):
            return parent_manifest
    return None


def _try_member(manifest: LocalManifest) -> WorkspaceMember | None:
    try:
        return WorkspaceMember.from_manifest(manifest)
    except ManifestError as e:
        logger.warning("Skipping workspace member %s: %s", manifest.path, e)
        return None
