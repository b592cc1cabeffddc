"""Data models for depedit.

This module exports the core data structures used throughout the application.
"""

from depedit.models.dependency import (
    Dependency,
    GitReference,
    GitSource,
    PathSource,
    RegistrySource,
    Source,
    SourceId,
)
from depedit.models.feature import Dep, DepFeature, Feature, FeatureValue, parse_feature_value

__all__ = [
    "Dep",
    "DepFeature",
    "Dependency",
    "Feature",
    "FeatureValue",
    "GitReference",
    "GitSource",
    "PathSource",
    "RegistrySource",
    "Source",
    "SourceId",
    "parse_feature_value",
]
