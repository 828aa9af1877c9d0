"""
Category tables: counts or target proportions for one categorical variable.

A table is built from one of three sources:
- raw observations, tallied into integer counts
- target proportions plus the total they should be scaled to
- explicit counts

Example:
    >>> from scalerake.tables import build_category_table
    >>> observed = build_category_table(["F", "M", "F", "F"])
    >>> observed.count("F")
    3
    >>> census = build_category_table({"F": 0.51, "M": 0.49}, total=400)
    >>> census.count("M")
    196.0
"""

import math
import numbers
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Hashable, Iterable, Iterator, List, Mapping, Optional

import pandas as pd

from .errors import ConfigError

PROPORTION_TOLERANCE = 1e-6


def is_missing(value: Any) -> bool:
    """True for None, NaN and pandas NA."""
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def _check_counts(counts: Mapping[Hashable, float], kind: str) -> None:
    if not counts:
        raise ConfigError(f"Category table needs at least one category ({kind})")
    for category, value in counts.items():
        if is_missing(category):
            raise ConfigError(f"Missing value cannot be a category ({kind})")
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ConfigError(f"Category {category!r} has non-numeric {kind}: {value!r}")
        if not math.isfinite(value):
            raise ConfigError(f"Category {category!r} has non-finite {kind}: {value}")
        if value < 0:
            raise ConfigError(f"Category {category!r} has negative {kind}: {value}")


@dataclass(frozen=True)
class CategoryTable:
    """Immutable mapping from category label to count.

    Counts are floats for target tables and ints for tallied observations.
    Category order is the insertion order of the source.
    """

    counts: Mapping[Hashable, float]

    def __post_init__(self):
        _check_counts(self.counts, "count")
        object.__setattr__(self, "counts", MappingProxyType(dict(self.counts)))

    @classmethod
    def from_observations(cls, observations: Iterable[Hashable]) -> "CategoryTable":
        """Tally raw per-case observations. Missing values are skipped."""
        tally = Counter(obs for obs in observations if not is_missing(obs))
        return cls(dict(tally))

    @classmethod
    def from_proportions(
        cls,
        proportions: Mapping[Hashable, float],
        total: float,
    ) -> "CategoryTable":
        """Scale target proportions to counts summing to ``total``.

        Raises:
            ConfigError: If a proportion is negative or they do not sum to 1
        """
        _check_counts(proportions, "proportion")
        share_sum = math.fsum(proportions.values())
        if abs(share_sum - 1.0) > PROPORTION_TOLERANCE:
            raise ConfigError(
                f"Proportions must sum to 1 (tolerance {PROPORTION_TOLERANCE}), "
                f"got {share_sum:.8f}"
            )
        if isinstance(total, bool) or not isinstance(total, numbers.Real) \
                or not math.isfinite(total) or total < 0:
            raise ConfigError(f"Total must be a non-negative number, got {total}")
        return cls({cat: share * total for cat, share in proportions.items()})

    @classmethod
    def from_counts(cls, counts: Mapping[Hashable, float]) -> "CategoryTable":
        return cls(dict(counts))

    @property
    def categories(self) -> List[Hashable]:
        return list(self.counts)

    @property
    def total(self) -> float:
        return math.fsum(self.counts.values())

    def count(self, category: Hashable) -> float:
        """Count for ``category``; KeyError if it is not in the table."""
        return self.counts[category]

    def proportion(self, category: Hashable) -> float:
        total = self.total
        return self.counts[category] / total if total > 0 else 0.0

    def proportions(self) -> Dict[Hashable, float]:
        total = self.total
        return {
            cat: (value / total if total > 0 else 0.0)
            for cat, value in self.counts.items()
        }

    def as_dict(self) -> Dict[Hashable, float]:
        return dict(self.counts)

    def __getitem__(self, category: Hashable) -> float:
        return self.counts[category]

    def __contains__(self, category: object) -> bool:
        return category in self.counts

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.counts)

    def __len__(self) -> int:
        return len(self.counts)


def build_category_table(source: Any, total: Optional[float] = None) -> CategoryTable:
    """Build a CategoryTable from observations, proportions, or counts.

    Args:
        source: Either an iterable of per-case labels (tallied), or a mapping
            of label to proportion (when ``total`` is given) or to count.
        total: Total the proportions are scaled to.

    Returns:
        CategoryTable

    Raises:
        ConfigError: If the source holds negative values, proportions that do
            not sum to 1, or no categories at all
    """
    if isinstance(source, CategoryTable):
        return source if total is None else CategoryTable.from_proportions(
            source.proportions(), total
        )
    if isinstance(source, Mapping):
        if total is not None:
            return CategoryTable.from_proportions(source, total)
        return CategoryTable.from_counts(source)
    if total is not None:
        raise ConfigError("total only applies to proportion mappings, not observations")
    return CategoryTable.from_observations(source)
