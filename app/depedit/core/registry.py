"""Registry lookups used to fill in versions and available features.

depedit never talks to a registry over the network. Commands consume a
RegistryIndex, and the bundled implementation answers from an in-memory
snapshot that can be loaded from a TOML file:

    [[release]]
    name = "serde"
    version = "1.0.200"
    features = { derive = ["serde_derive"], std = [] }

    [[git]]
    url = "https://github.com/serde-rs/serde.git"
    features = ["derive", "std"]
"""

import logging
import tomllib
from collections.abc import Iterable
from pathlib import Path
from typing import Annotated, Protocol

from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from depedit.core.errors import DependencySpecError, ManifestError
from depedit.core.version_req import parse_version, to_specifier_set
from depedit.models.dependency import Dependency, RegistrySource

logger = logging.getLogger(__name__)


class PackageNotFoundError(DependencySpecError):
    """Raised when the index has no matching release of a package."""


class RegistryRelease(BaseModel):
    """One published version of a package.

    Attributes:
        name: Package name.
        version: Published version.
        features: Feature name to the features/dependencies it enables.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1)]
    version: Annotated[str, Field(min_length=1)]
    features: dict[str, list[str]] = Field(default_factory=dict)

    def to_dependency(self) -> Dependency:
        """Build a registry dependency on exactly this release."""
        return (
            Dependency(self.name)
            .set_source(RegistrySource(self.version))
            .set_available_features(self.features)
        )


class GitManifestInfo(BaseModel):
    """Features declared by the manifest at a git repository's default branch."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    url: str
    features: list[str] = Field(default_factory=list)


class _IndexFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    release: list[RegistryRelease] = Field(default_factory=list)
    git: list[GitManifestInfo] = Field(default_factory=list)


class RegistryIndex(Protocol):
    """Source of release metadata for ``add``."""

    def resolve(self, name: str, version_req: str | None = None) -> RegistryRelease:
        """Return the release matching ``version_req``, or the latest one."""
        ...

    def git_features(self, url: str) -> list[str] | None:
        """Return the features of the manifest at ``url``, if known."""
        ...


class StaticRegistryIndex:
    """RegistryIndex answered from a fixed list of releases.

    Releases may be listed in any order; versions are compared with
    ``packaging``.
    """

    def __init__(
        self,
        releases: Iterable[RegistryRelease] = (),
        git: Iterable[GitManifestInfo] = (),
    ) -> None:
        self._releases: dict[str, list[RegistryRelease]] = {}
        for release in releases:
            self._releases.setdefault(release.name, []).append(release)
        self._git = {info.url: list(info.features) for info in git}

    @classmethod
    def from_file(cls, path: Path) -> "StaticRegistryIndex":
        """Load an index snapshot from a TOML file.

        Raises:
            ManifestError: If the file cannot be read, parsed or validated.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ManifestError(f"Invalid registry index {path}: {e}") from e
        except OSError as e:
            raise ManifestError(f"Failed to read registry index {path}: {e}") from e

        try:
            index = _IndexFile.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Invalid registry index {path}: {e}") from e
        return cls(index.release, index.git)

    def resolve(self, name: str, version_req: str | None = None) -> RegistryRelease:
        """Return the highest release matching ``version_req``.

        Pre-releases only match a requirement that names one. Without a
        requirement the highest stable release is returned, or the highest
        pre-release when nothing stable exists.

        Raises:
            PackageNotFoundError: If the package is unknown or no release matches.
            InvalidVersionReqError: If ``version_req`` is malformed.
        """
        releases = self._releases.get(name)
        if not releases:
            raise PackageNotFoundError(f"The crate `{name}` could not be found in registry index.")

        by_version: dict[Version, RegistryRelease] = {}
        for release in releases:
            try:
                by_version[parse_version(release.version)] = release
            except InvalidVersion:
                logger.debug("Ignoring %s %s: not a valid version", name, release.version)

        if version_req is None:
            # Falls back to pre-releases when nothing stable is published
            matching = list(SpecifierSet().filter(by_version))
        else:
            specifier = to_specifier_set(version_req)
            matching = [version for version in by_version if version in specifier]
        if not matching:
            raise PackageNotFoundError(
                f"The crate `{name}` has no release matching `{version_req}` in registry index."
            )
        return by_version[max(matching)]

    def git_features(self, url: str) -> list[str] | None:
        features = self._git.get(url)
        return None if features is None else list(features)
