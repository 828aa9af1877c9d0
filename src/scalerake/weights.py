"""
Apply raking weights to raw item scores.

Each case's item vector is multiplied by its weight. The raw record is left
untouched and a new WeightedCase carries the derived values:

    weighted_items[i] = items[i] * weight
    weighted_total    = sum(weighted_items)   (= weight * unweighted_total)
    unweighted_total  = sum(items)

Example:
    >>> weighted = apply_weights(cases, weights)
    >>> summarize_items(weighted, item_names=["q1", "q2"])
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .data import Case
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeightedCase:
    """A case with its weight and weighted item scores."""
    case: Case
    weight: float
    weighted_items: Tuple[float, ...]
    weighted_total: float
    unweighted_total: int

    @property
    def case_id(self) -> Hashable:
        return self.case.case_id

    @classmethod
    def from_case(cls, case: Case, weight: float) -> "WeightedCase":
        weighted_items = tuple(score * weight for score in case.items)
        return cls(
            case=case,
            weight=float(weight),
            weighted_items=weighted_items,
            weighted_total=math.fsum(weighted_items),
            unweighted_total=sum(case.items),
        )


class WeightApplier:
    """
    Combine cases with a weight vector.

    Args:
        skip_unweighted: Leave out cases that have no weight (e.g. excluded
            for missing raking variables) instead of raising ConfigError
    """

    def __init__(self, skip_unweighted: bool = False):
        self.skip_unweighted = skip_unweighted

    def apply(self, cases: Sequence[Case], weights: Mapping[Hashable, float]) -> List[WeightedCase]:
        """
        Build a WeightedCase for every case.

        Raises:
            ConfigError: If item vectors differ in length or hold non-integer
                scores, or a case has no weight and skip_unweighted is False
        """
        result = []
        skipped = 0
        n_items = len(cases[0].items) if cases else 0
        for case in cases:
            case.check_items(n_items=n_items)
            if case.case_id not in weights:
                if self.skip_unweighted:
                    skipped += 1
                    continue
                raise ConfigError(f"No weight for case {case.case_id!r}")
            result.append(WeightedCase.from_case(case, weights[case.case_id]))
        if skipped:
            logger.warning(f"Skipped {skipped:,} cases without a weight")
        return result


def apply_weights(
    cases: Sequence[Case],
    weights: Mapping[Hashable, float],
    skip_unweighted: bool = False,
) -> List[WeightedCase]:
    """Apply ``weights`` to ``cases``. See WeightApplier.apply."""
    return WeightApplier(skip_unweighted=skip_unweighted).apply(cases, weights)


def _item_names(weighted: Sequence[WeightedCase], item_names: Optional[Sequence[str]]) -> List[str]:
    n_items = len(weighted[0].case.items) if weighted else len(item_names or [])
    if item_names is None:
        return [f"item_{i + 1}" for i in range(n_items)]
    if len(item_names) != n_items:
        raise ConfigError(f"Got {len(item_names)} item names for {n_items} items")
    return list(item_names)


def weighted_frame(
    weighted: Sequence[WeightedCase],
    item_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Flatten weighted cases into a DataFrame.

    Columns: case_id, one per raking variable, weight, raw items, weighted
    items (suffixed ``_weighted``), unweighted_total, weighted_total.
    """
    names = _item_names(weighted, item_names)
    records = []
    for wc in weighted:
        record: Dict = {"case_id": wc.case_id}
        record.update(wc.case.categories)
        record["weight"] = wc.weight
        record.update(zip(names, wc.case.items))
        record.update(zip([f"{name}_weighted" for name in names], wc.weighted_items))
        record["unweighted_total"] = wc.unweighted_total
        record["weighted_total"] = wc.weighted_total
        records.append(record)
    return pd.DataFrame.from_records(records)


def summarize_items(
    weighted: Sequence[WeightedCase],
    item_names: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """
    Per-item unweighted and weighted means.

    The weighted mean is sum(w * x) / sum(w), so it is comparable with the
    raw mean regardless of the weight scale.

    Returns:
        DataFrame indexed by item name with columns unweighted_mean,
        weighted_mean, shift
    """
    names = _item_names(weighted, item_names)
    if not weighted:
        return pd.DataFrame(
            {"unweighted_mean": [], "weighted_mean": [], "shift": []},
            index=pd.Index([], name="item"),
        )
    raw = np.array([wc.case.items for wc in weighted], dtype=float).reshape(len(weighted), len(names))
    w = np.array([wc.weight for wc in weighted], dtype=float)
    unweighted_mean = raw.mean(axis=0)
    total_w = w.sum()
    if total_w > 0:
        weighted_mean = (raw * w[:, None]).sum(axis=0) / total_w
    else:
        weighted_mean = np.full(len(names), np.nan)
    return pd.DataFrame(
        {
            "unweighted_mean": unweighted_mean,
            "weighted_mean": weighted_mean,
            "shift": weighted_mean - unweighted_mean,
        },
        index=pd.Index(names, name="item"),
    )
