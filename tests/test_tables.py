"""
Tests for CategoryTable and build_category_table.

Tables come from three sources:
1. Raw observations (tallied counts)
2. Target proportions scaled to a total
3. Explicit counts
"""

import numpy as np
import pytest

from scalerake.errors import ConfigError
from scalerake.tables import CategoryTable, build_category_table


class TestFromObservations:
    """Tallying raw per-case labels."""

    def test_counts_each_category(self):
        table = build_category_table(["F", "M", "F", "F"])

        assert table.count("F") == 3
        assert table.count("M") == 1
        assert table.total == 4

    def test_skips_missing_values(self):
        table = build_category_table(["F", None, "M", np.nan])

        assert table.categories == ["F", "M"]
        assert table.total == 2

    def test_preserves_first_seen_order(self):
        table = build_category_table(["south", "north", "south", "east"])

        assert table.categories == ["south", "north", "east"]

    def test_empty_observations_rejected(self):
        with pytest.raises(ConfigError, match="at least one category"):
            build_category_table([])

    def test_observations_with_total_rejected(self):
        with pytest.raises(ConfigError, match="total"):
            build_category_table(["F", "M"], total=10)


class TestFromProportions:
    """Scaling census proportions to target counts."""

    def test_scales_to_total(self):
        table = build_category_table({"F": 0.5, "M": 0.5}, total=400)

        np.testing.assert_allclose(table.count("F"), 200)
        np.testing.assert_allclose(table.total, 400)

    def test_proportion_lookup(self):
        table = build_category_table({"a": 0.2, "b": 0.3, "c": 0.5}, total=10)

        np.testing.assert_allclose(table.proportion("b"), 0.3)
        np.testing.assert_allclose(list(table.proportions().values()), [0.2, 0.3, 0.5])

    def test_sum_within_tolerance_accepted(self):
        table = build_category_table({"a": 0.5, "b": 0.5 + 5e-7}, total=2)

        assert len(table) == 2

    def test_sum_off_by_more_than_tolerance_rejected(self):
        with pytest.raises(ConfigError, match="sum to 1"):
            build_category_table({"a": 0.5, "b": 0.49}, total=100)

    def test_string_proportion_rejected(self):
        with pytest.raises(ConfigError, match="non-numeric proportion"):
            build_category_table({"A": "0.5", "B": 0.5}, total=10)

    def test_string_total_rejected(self):
        with pytest.raises(ConfigError, match="Total must be a non-negative number"):
            build_category_table({"A": 0.5, "B": 0.5}, total="10")

    def test_negative_proportion_rejected(self):
        with pytest.raises(ConfigError, match="negative"):
            build_category_table({"a": 1.2, "b": -0.2}, total=100)

    def test_zero_proportion_allowed(self):
        table = build_category_table({"a": 1.0, "b": 0.0}, total=5)

        assert table.count("b") == 0


class TestFromCounts:
    """Explicit count mappings."""

    def test_counts_kept(self):
        table = build_category_table({"A": 3, "B": 1})

        assert table["A"] == 3
        assert table.total == 4
        assert "B" in table
        assert "C" not in table

    def test_negative_count_rejected(self):
        with pytest.raises(ConfigError, match="negative"):
            CategoryTable.from_counts({"A": -1})

    def test_nan_count_rejected(self):
        with pytest.raises(ConfigError, match="non-finite"):
            CategoryTable.from_counts({"A": float("nan")})

    def test_string_count_rejected(self):
        with pytest.raises(ConfigError, match="non-numeric count: '3'"):
            build_category_table({"A": "3", "B": 1})

    def test_bool_count_rejected(self):
        with pytest.raises(ConfigError, match="'A' has non-numeric"):
            CategoryTable.from_counts({"A": True})

    def test_table_is_immutable(self):
        source = {"A": 3, "B": 1}
        table = build_category_table(source)
        source["A"] = 100

        assert table["A"] == 3
        with pytest.raises(TypeError):
            table.counts["A"] = 5

    def test_unknown_category_raises_key_error(self):
        table = build_category_table({"A": 3})

        with pytest.raises(KeyError):
            table.count("Z")
