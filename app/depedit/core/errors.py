"""Exception hierarchy for manifest editing.

Every failure raised by the dependency model and the manifest engine is a
subclass of ManifestError. The exceptions carry the structured context
(keys, path segments, shapes) so callers can report them without parsing
the message.
"""

from pathlib import Path


class ManifestError(Exception):
    """Base exception for manifest-related errors."""


class ManifestNotFoundError(ManifestError):
    """Raised when manifest file is not found."""


class ManifestParseError(ManifestError):
    """Raised when manifest text is not valid TOML.

    Attributes:
        line: 1-based line of the syntax error, if known.
        col: 1-based column of the syntax error, if known.
    """

    def __init__(self, message: str, line: int | None = None, col: int | None = None) -> None:
        super().__init__(message)
        self.line = line
        self.col = col


class InvalidDependencyTypeError(ManifestError):
    """Raised when a dependency field has the wrong TOML type."""

    def __init__(self, dependency: str, key: str, actual: str, expected: str) -> None:
        super().__init__(f"Found {actual} for {key} when {expected} was expected for {dependency}")
        self.dependency = dependency
        self.key = key
        self.actual = actual
        self.expected = expected


class UnrecognizedSourceError(ManifestError):
    """Raised when a dependency table has none of `git`, `path` or `version`."""

    def __init__(self, dependency: str) -> None:
        super().__init__(f"Unrecognized dependency source for `{dependency}`")
        self.dependency = dependency


class InvalidDependencyEntryError(ManifestError):
    """Raised when a dependency entry is neither a string nor a table."""

    def __init__(self, dependency: str, actual: str) -> None:
        super().__init__(f"Unrecognized dependency entry format for `{dependency}`: found {actual}")
        self.dependency = dependency
        self.actual = actual


class TableNotFoundError(ManifestError):
    """Raised when a table path segment is missing or not a table."""

    def __init__(self, segment: str) -> None:
        super().__init__(f"The table `{segment}` could not be found.")
        self.segment = segment


class DependencyNotFoundError(ManifestError):
    """Raised when removing a dependency that is not in the requested table."""

    def __init__(self, name: str, table: str) -> None:
        super().__init__(f"The dependency `{name}` could not be found in `{table}`.")
        self.name = name
        self.table = table


class ManifestIdentityError(ManifestError):
    """Raised when a manifest lacks a `package` or `project` table."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class VirtualManifestError(ManifestIdentityError):
    """Raised when a package-scoped operation targets a workspace-only manifest."""


class MissingPackageError(ManifestIdentityError):
    """Raised when the manifest has neither a package table nor a workspace."""


class InvalidFeaturesConfigError(ManifestError):
    """Raised when the `[features]` table holds something other than string arrays."""

    def __init__(self, feature: str | None = None) -> None:
        detail = f" (feature `{feature}`)" if feature else ""
        super().__init__(f"Invalid features config{detail}: values must be arrays of strings")
        self.feature = feature


class DependencySpecError(ManifestError):
    """Raised when command input cannot be turned into a dependency."""
