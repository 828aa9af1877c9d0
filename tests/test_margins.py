"""Tests for MarginSpec construction, total checks and explicit rescaling."""

import logging

import numpy as np
import pytest

from scalerake.errors import ConfigError
from scalerake.margins import (
    MarginSpec,
    build_margin_spec,
    check_margin_totals,
    rescale_margins,
)
from scalerake.tables import build_category_table


@pytest.fixture
def gender_table():
    return build_category_table({"F": 0.6, "M": 0.4}, total=100)


class TestBuildMarginSpec:
    """build_margin_spec validates totals."""

    def test_exposes_targets(self, gender_table):
        margin = build_margin_spec("gender", gender_table, 100)

        assert margin.variable == "gender"
        np.testing.assert_allclose(margin.target("F"), 60)
        assert list(margin) == ["F", "M"]
        assert margin.categories == ["F", "M"]
        np.testing.assert_allclose(margin.total, 100)

    def test_target_mapping(self, gender_table):
        margin = build_margin_spec("gender", gender_table, 100)

        assert set(margin.targets) == {"F", "M"}

    def test_total_mismatch_rejected(self, gender_table):
        with pytest.raises(ConfigError, match="expected 120"):
            build_margin_spec("gender", gender_table, 120)

    def test_unknown_category_target(self, gender_table):
        margin = build_margin_spec("gender", gender_table, 100)

        with pytest.raises(ConfigError, match="not in margin 'gender'"):
            margin.target("X")

    def test_empty_variable_name_rejected(self, gender_table):
        with pytest.raises(ConfigError, match="non-empty"):
            MarginSpec("", gender_table)


class TestMarginTotals:
    """Margins used together must describe the same universe."""

    def test_matching_totals_pass(self, gender_table):
        region = build_category_table({"N": 30, "S": 70})
        margins = [MarginSpec("gender", gender_table), MarginSpec("region", region)]

        check_margin_totals(margins, 100)

    def test_mismatch_names_variable(self, gender_table):
        region = build_category_table({"N": 30, "S": 80})
        margins = [MarginSpec("gender", gender_table), MarginSpec("region", region)]

        with pytest.raises(ConfigError, match="'region'"):
            check_margin_totals(margins, 100)

    def test_rescale_keeps_proportions_and_logs(self, gender_table, caplog):
        with caplog.at_level(logging.WARNING, logger="scalerake.margins"):
            rescaled = rescale_margins([MarginSpec("gender", gender_table)], 50)

        np.testing.assert_allclose(rescaled[0].target("F"), 30)
        np.testing.assert_allclose(rescaled[0].total, 50)
        assert "Rescaling margin 'gender'" in caplog.text

    def test_rescale_leaves_matching_margin_untouched(self, gender_table):
        margin = MarginSpec("gender", gender_table)

        assert rescale_margins([margin], 100)[0] is margin
