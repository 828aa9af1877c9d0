"""Weight diagnostics: spread, Kish design effect, and margin comparisons."""

from typing import Dict, Mapping, Sequence

import numpy as np
import pandas as pd

from .margins import MarginSpec


def weight_stats(weights: np.ndarray) -> Dict[str, float]:
    """
    Summary statistics for a weight array.

    Kish (1965): DEFF = 1 + CV^2 where CV = std / mean; the effective sample
    size is n / DEFF.

    Returns:
        Dict with min_weight, max_weight, mean_weight, cv, deff, effective_n
    """
    w = np.asarray(weights, dtype=float)
    if w.size == 0:
        return {
            "min_weight": 0.0,
            "max_weight": 0.0,
            "mean_weight": 0.0,
            "cv": 0.0,
            "deff": 1.0,
            "effective_n": 0.0,
        }
    mean_w = w.mean()
    cv = float(w.std() / mean_w) if mean_w > 0 else 0.0
    deff = 1 + cv ** 2
    return {
        "min_weight": float(w.min()),
        "max_weight": float(w.max()),
        "mean_weight": float(mean_w),
        "cv": cv,
        "deff": deff,
        "effective_n": float(w.size / deff),
    }


def margin_report(
    cases: Sequence,
    weights: Mapping,
    margins: Sequence[MarginSpec],
) -> pd.DataFrame:
    """
    Compare sample and weighted category counts against margin targets.

    Only cases present in ``weights`` with a non-missing label count.

    Returns:
        DataFrame with one row per variable x category and columns
        variable, category, sample_count, sample_share, weighted_count,
        target, relative_error
    """
    rows = []
    for margin in margins:
        sample: Dict = {cat: 0 for cat in margin}
        weighted: Dict = {cat: 0.0 for cat in margin}
        for case in cases:
            if case.case_id not in weights:
                continue
            label = case.category(margin.variable)
            if label is None:
                continue
            sample[label] = sample.get(label, 0) + 1
            weighted[label] = weighted.get(label, 0.0) + weights[case.case_id]
        n = sum(sample.values())
        for cat in sample:
            target = margin.targets.get(cat, 0.0)
            actual = weighted[cat]
            rows.append({
                "variable": margin.variable,
                "category": cat,
                "sample_count": sample[cat],
                "sample_share": sample[cat] / n if n else 0.0,
                "weighted_count": actual,
                "target": target,
                "relative_error": abs(actual - target) / target if target > 0 else abs(actual),
            })
    return pd.DataFrame(
        rows,
        columns=[
            "variable", "category", "sample_count", "sample_share",
            "weighted_count", "target", "relative_error",
        ],
    )
