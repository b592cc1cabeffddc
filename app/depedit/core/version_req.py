"""Cargo version requirements evaluated with ``packaging``.

A requirement is a comma separated list of comparators. Each comparator
is an optional operator followed by a possibly partial version:

- no operator or ``^``: caret, compatible updates (``1.2`` is ``>=1.2.0, <2.0.0``);
- ``~``: tilde, patch updates (``~1.2`` is ``>=1.2.0, <1.3.0``);
- ``=``: exact, or any version with the given prefix when partial;
- ``>``, ``>=``, ``<``, ``<=``: plain comparisons;
- ``*`` wildcards (``1.*``, ``1.2.*``) match any value of that component.

Each comparator is turned into the equivalent PEP 440 specifiers so
versions can be matched with ``packaging.specifiers.SpecifierSet``.
"""

import re
from dataclasses import dataclass

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from depedit.core.errors import DependencySpecError

_COMPARATOR = re.compile(r"^(>=|<=|=|\^|~|>|<)?\s*(.+)$")
_PARTIAL_VERSION = re.compile(
    r"^v?(?P<major>\d+|\*|x|X)"
    r"(?:\.(?P<minor>\d+|\*|x|X))?"
    r"(?:\.(?P<patch>\d+|\*|x|X))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)
_WILDCARDS = {"*", "x", "X"}


class InvalidVersionReqError(DependencySpecError):
    """Raised when a version requirement cannot be understood."""

    def __init__(self, version_req: str) -> None:
        super().__init__(f"Invalid version requirement `{version_req}`")
        self.version_req = version_req


@dataclass(frozen=True, slots=True)
class _Partial:
    major: int | None
    minor: int | None
    patch: int | None
    pre: str
    wildcard: bool

    def floor(self) -> str:
        return f"{self.major or 0}.{self.minor or 0}.{self.patch or 0}{self.pre}"


def parse_version(text: str) -> Version:
    """Parse a release version, ignoring build metadata.

    Raises:
        InvalidVersion: If the version has no PEP 440 equivalent.
    """
    return Version(text.strip().split("+", 1)[0])


def to_specifier_set(version_req: str) -> SpecifierSet:
    """Translate a Cargo version requirement into PEP 440 specifiers.

    Raises:
        InvalidVersionReqError: If the requirement is malformed.
    """
    specifiers: list[str] = []
    for comparator in version_req.split(","):
        comparator = comparator.strip()
        match = _COMPARATOR.match(comparator)
        if match is None:
            raise InvalidVersionReqError(version_req)
        op, rest = match.groups()
        specifiers.extend(_comparator_specifiers(op, rest.strip(), version_req))

    try:
        return SpecifierSet(",".join(specifiers))
    except InvalidSpecifier as e:
        raise InvalidVersionReqError(version_req) from e


def _parse_partial(text: str, version_req: str) -> _Partial:
    match = _PARTIAL_VERSION.match(text)
    if match is None:
        raise InvalidVersionReqError(version_req)

    parts: list[int | None] = []
    seen_wildcard = False
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        if value is None or value in _WILDCARDS:
            seen_wildcard = seen_wildcard or value is not None
            parts.append(None)
        elif seen_wildcard or (parts and parts[-1] is None):
            # Nothing may follow a wildcard or an omitted component
            raise InvalidVersionReqError(version_req)
        else:
            parts.append(int(value))

    pre = match.group("pre")
    if pre is not None and parts[2] is None:
        raise InvalidVersionReqError(version_req)
    return _Partial(parts[0], parts[1], parts[2], f"-{pre}" if pre else "", seen_wildcard)


def _comparator_specifiers(op: str | None, text: str, version_req: str) -> list[str]:
    partial = _parse_partial(text, version_req)
    major, minor, patch = partial.major, partial.minor, partial.patch
    if major is None:
        if op not in (None, "="):
            raise InvalidVersionReqError(version_req)
        return []

    if op is None:
        # Wildcards pin the leading components like a partial exact match
        op = "=" if partial.wildcard else "^"

    lower = f">={partial.floor()}"
    if op == "=":
        if patch is not None:
            return [f"=={partial.floor()}"]
        if minor is not None:
            return [lower, f"<{major}.{minor + 1}.0"]
        return [lower, f"<{major + 1}.0.0"]
    if op == "^":
        if major > 0 or minor is None:
            return [lower, f"<{major + 1}.0.0"]
        if minor > 0 or patch is None:
            return [lower, f"<0.{minor + 1}.0"]
        return [lower, f"<0.0.{patch + 1}"]
    if op == "~":
        if minor is None:
            return [lower, f"<{major + 1}.0.0"]
        return [lower, f"<{major}.{minor + 1}.0"]
    if op == ">":
        if patch is not None:
            return [f">{partial.floor()}"]
        if minor is not None:
            return [f">={major}.{minor + 1}.0"]
        return [f">={major + 1}.0.0"]
    if op == ">=":
        return [lower]
    if op == "<":
        return [f"<{partial.floor()}"]
    # "<="
    if patch is not None:
        return [f"<={partial.floor()}"]
    if minor is not None:
        return [f"<{major}.{minor + 1}.0"]
    return [f"<{major + 1}.0.0"]
