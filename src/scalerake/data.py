"""
Case records and weight vectors.

A Case is one sampled respondent: an identifier, one category label per
raking variable, and a fixed-length vector of integer item scores. A
WeightVector maps case identifiers to raking multipliers.
"""

import logging
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ConfigError
from .tables import is_missing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Case:
    """One sampled unit."""

    case_id: Hashable
    categories: Mapping[str, Any]
    items: Tuple[int, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "categories", MappingProxyType(dict(self.categories)))
        object.__setattr__(self, "items", tuple(self.items))

    def category(self, variable: str) -> Any:
        """Label for ``variable`` (None when missing)."""
        try:
            value = self.categories[variable]
        except KeyError:
            raise ConfigError(f"Case {self.case_id!r} has no value for raking variable '{variable}'") from None
        return None if is_missing(value) else value

    def is_complete(self, variables: Sequence[str]) -> bool:
        return all(self.category(var) is not None for var in variables)

    def check_items(self, item_range: Optional[Tuple[int, int]] = None, n_items: Optional[int] = None) -> None:
        """Validate item scores as integers inside ``item_range`` (inclusive).

        Raises:
            ConfigError: On wrong length, non-integer or out-of-range scores
        """
        if n_items is not None and len(self.items) != n_items:
            raise ConfigError(
                f"Case {self.case_id!r} has {len(self.items)} items, expected {n_items}"
            )
        for i, score in enumerate(self.items):
            if isinstance(score, bool) or not isinstance(score, (int, np.integer)):
                raise ConfigError(f"Case {self.case_id!r} item {i} is not an integer: {score!r}")
            if item_range is not None and not item_range[0] <= score <= item_range[1]:
                raise ConfigError(
                    f"Case {self.case_id!r} item {i} = {score} outside "
                    f"range [{item_range[0]}, {item_range[1]}]"
                )


class WeightVector(MappingABC):
    """Immutable mapping from case identifier to raking multiplier.

    The values are multiplicative weights: greater than 1 for cases in
    under-represented cells, less than 1 for over-represented cells. They are
    not sampling or inclusion probabilities.

    ``total`` sums every weight held. It equals the raking universe size N
    unless unraked cases were given weight 1.0 (``missing="unit"``), in which
    case it is N plus the number of those cases.
    """

    def __init__(self, case_ids: Sequence[Hashable], weights: Sequence[float]):
        values = np.array(weights, dtype=float)
        if len(case_ids) != len(values):
            raise ConfigError(
                f"WeightVector needs one weight per case: {len(case_ids)} ids, {len(values)} weights"
            )
        if len(values) and (not np.all(np.isfinite(values)) or (values < 0).any()):
            raise ConfigError("Weights must be finite and non-negative")
        self._weights: Dict[Hashable, float] = dict(zip(case_ids, values.tolist()))
        if len(self._weights) != len(values):
            raise ConfigError("WeightVector case ids must be unique")

    def __getitem__(self, case_id: Hashable) -> float:
        return self._weights[case_id]

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._weights)

    def __len__(self) -> int:
        return len(self._weights)

    def __repr__(self) -> str:
        return f"WeightVector(n={len(self)}, total={self.total:.6g})"

    @property
    def ids(self) -> List[Hashable]:
        return list(self._weights)

    @property
    def array(self) -> np.ndarray:
        return np.fromiter(self._weights.values(), dtype=float, count=len(self._weights))

    @property
    def total(self) -> float:
        return float(self.array.sum())

    def to_series(self, name: str = "weight") -> pd.Series:
        return pd.Series(self.array, index=pd.Index(self.ids, name="case_id"), name=name)


def cases_from_frame(
    data: pd.DataFrame,
    id_column: str,
    variables: Sequence[str],
    item_columns: Sequence[str] = (),
    item_range: Optional[Tuple[int, int]] = None,
) -> List[Case]:
    """Build Cases from a DataFrame with one row per respondent.

    Args:
        data: Survey data
        id_column: Column holding unique case identifiers
        variables: Raking variable columns
        item_columns: Item score columns, in item order
        item_range: Inclusive (low, high) bounds for item scores

    Returns:
        List of Case, in row order

    Raises:
        ConfigError: If a column is absent, ids repeat, or items are invalid
    """
    missing_cols = [c for c in [id_column, *variables, *item_columns] if c not in data.columns]
    if missing_cols:
        raise ConfigError(f"Columns not in data: {missing_cols}")
    if data[id_column].duplicated().any():
        dupes = data.loc[data[id_column].duplicated(), id_column].unique().tolist()
        raise ConfigError(f"Duplicate case ids: {dupes[:10]}")

    if len(item_columns) and data[list(item_columns)].isna().any().any():
        raise ConfigError("Item columns contain missing scores")

    cases = []
    for row in data[[id_column, *variables, *item_columns]].itertuples(index=False, name=None):
        case_id = row[0]
        cats = {var: (None if is_missing(val) else val) for var, val in zip(variables, row[1:1 + len(variables)])}
        items = []
        for score in row[1 + len(variables):]:
            if isinstance(score, (float, np.floating)) and float(score).is_integer():
                score = int(score)
            items.append(score)
        case = Case(case_id, cats, tuple(items))
        case.check_items(item_range, n_items=len(item_columns))
        cases.append(case)

    n_incomplete = sum(not c.is_complete(variables) for c in cases)
    logger.info(f"Loaded {len(cases):,} cases ({n_incomplete:,} with missing raking variables)")
    return cases
