"""Parsing of entries in a manifest's ``[features]`` lists.

Each entry of a feature's requirement list is one of:

- ``name``: enables another feature, or implicitly the optional dependency
  of the same name.
- ``dep:name``: enables an optional dependency without exposing an
  implicit feature for it.
- ``name/feature`` (or weak ``name?/feature``): enables a feature of a
  dependency.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Feature:
    """Activation of a feature (or implicit dependency feature) by name."""

    name: str


@dataclass(frozen=True, slots=True)
class Dep:
    """Explicit ``dep:name`` activation of an optional dependency."""

    dep_name: str


@dataclass(frozen=True, slots=True)
class DepFeature:
    """Activation of a feature of a dependency (``name/feature``)."""

    dep_name: str
    dep_feature: str
    weak: bool = False


FeatureValue = Feature | Dep | DepFeature


def parse_feature_value(value: str) -> FeatureValue:
    """Classify one entry of a feature's requirement list.

    Args:
        value: Raw entry, e.g. ``"serde"``, ``"dep:serde"`` or ``"serde/std"``.

    Returns:
        The parsed FeatureValue variant.
    """
    if "/" in value:
        dep_name, dep_feature = value.split("/", 1)
        weak = dep_name.endswith("?")
        if weak:
            dep_name = dep_name[:-1]
        dep_name = dep_name.removeprefix("dep:")
        return DepFeature(dep_name, dep_feature, weak)
    if value.startswith("dep:"):
        return Dep(value[len("dep:") :])
    return Feature(value)
