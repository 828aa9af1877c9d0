"""
scalerake: census raking weights for survey scale data.

Adjusts survey item data so that weighted demographics match census
proportions:
- Category tables for observed counts and census targets
- Margin specifications binding a variable to its target counts
- Raking (iterative proportional fitting) to per-case multipliers
- Applying weights to raw item scores

Example:
    >>> from scalerake import RakingConfig, cases_from_frame, apply_weights
    >>> config = RakingConfig.from_yaml("raking.yaml")
    >>> cases = cases_from_frame(df, "id", config.variables, ["q1", "q2"])
    >>> result = config.engine().run(cases, config.margin_specs(len(cases)))
    >>> weighted = apply_weights(cases, result.weights)
"""

from scalerake.errors import (
    RakingError,
    ConfigError,
    ZeroCellError,
    ConvergenceError,
    RakingCancelled,
)
from scalerake.tables import CategoryTable, build_category_table
from scalerake.margins import (
    MarginSpec,
    build_margin_spec,
    check_margin_totals,
    rescale_margins,
)
from scalerake.data import Case, WeightVector, cases_from_frame
from scalerake.raking import RakingEngine, RakingResult, rake
from scalerake.weights import (
    WeightedCase,
    WeightApplier,
    apply_weights,
    weighted_frame,
    summarize_items,
)
from scalerake.diagnostics import weight_stats, margin_report
from scalerake.config import RakingConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Errors
    "RakingError",
    "ConfigError",
    "ZeroCellError",
    "ConvergenceError",
    "RakingCancelled",
    # Tables and margins
    "CategoryTable",
    "build_category_table",
    "MarginSpec",
    "build_margin_spec",
    "check_margin_totals",
    "rescale_margins",
    # Cases
    "Case",
    "WeightVector",
    "cases_from_frame",
    # Raking
    "RakingEngine",
    "RakingResult",
    "rake",
    # Weight application
    "WeightedCase",
    "WeightApplier",
    "apply_weights",
    "weighted_frame",
    "summarize_items",
    # Diagnostics
    "weight_stats",
    "margin_report",
    # Configuration
    "RakingConfig",
    "load_config",
]
