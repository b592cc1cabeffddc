"""Unit tests for feature value parsing."""

import pytest
from depedit.models.feature import Dep, DepFeature, Feature, parse_feature_value


class TestParseFeatureValue:
    """Tests for parse_feature_value."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("std", Feature("std")),
            ("dep:serde", Dep("serde")),
            ("serde/derive", DepFeature("serde", "derive")),
            ("serde?/derive", DepFeature("serde", "derive", weak=True)),
            ("dep:serde/derive", DepFeature("serde", "derive")),
        ],
    )
    def test_classification(self, value: str, expected: object) -> None:
        """Each entry form maps to its variant."""
        assert parse_feature_value(value) == expected

    def test_only_first_slash_splits(self) -> None:
        """Everything after the first slash is the dependency's feature."""
        assert parse_feature_value("a/b/c") == DepFeature("a", "b/c")

    def test_bare_name_matching_dependency_is_feature(self) -> None:
        """A bare name is a Feature even when it names a dependency."""
        assert isinstance(parse_feature_value("serde"), Feature)
