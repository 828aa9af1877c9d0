"""
Margin specifications: one raking variable bound to its census target counts.

All margins used together in one raking run must describe the same universe
size. A mismatch is a configuration error unless the caller asks for
explicit rescaling, which is logged.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Hashable, Iterator, List, Sequence

from .errors import ConfigError
from .tables import CategoryTable

logger = logging.getLogger(__name__)

TOTAL_RTOL = 1e-9
TOTAL_ATOL = 1e-9


def totals_match(actual: float, expected: float) -> bool:
    return math.isclose(actual, expected, rel_tol=TOTAL_RTOL, abs_tol=TOTAL_ATOL)


@dataclass(frozen=True)
class MarginSpec:
    """Target marginal distribution (in counts) for one raking variable."""

    variable: str
    table: CategoryTable

    def __post_init__(self):
        if not isinstance(self.variable, str) or not self.variable:
            raise ConfigError(f"Margin variable name must be a non-empty string, got {self.variable!r}")
        if not isinstance(self.table, CategoryTable):
            raise ConfigError(f"Margin '{self.variable}' needs a CategoryTable, got {type(self.table).__name__}")

    @property
    def categories(self) -> List[Hashable]:
        return self.table.categories

    @property
    def targets(self) -> Dict[Hashable, float]:
        return self.table.as_dict()

    @property
    def total(self) -> float:
        return self.table.total

    def target(self, category: Hashable) -> float:
        try:
            return self.table.count(category)
        except KeyError:
            raise ConfigError(
                f"Category {category!r} is not in margin '{self.variable}' "
                f"(known: {self.categories})"
            ) from None

    def rescaled(self, total: float) -> "MarginSpec":
        """New margin with the same proportions, scaled to ``total``."""
        return MarginSpec(self.variable, CategoryTable.from_proportions(self.table.proportions(), total))

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self.table)

    def __len__(self) -> int:
        return len(self.table)


def build_margin_spec(variable: str, table: CategoryTable, expected_total: float) -> MarginSpec:
    """Bind ``variable`` to ``table`` after checking its total.

    Raises:
        ConfigError: If the table total differs from ``expected_total``
    """
    actual = table.total
    if not totals_match(actual, expected_total):
        raise ConfigError(
            f"Margin '{variable}' targets sum to {actual:g}, expected {expected_total:g}"
        )
    return MarginSpec(variable, table)


def check_margin_totals(margins: Sequence[MarginSpec], n: float) -> None:
    """Raise ConfigError unless every margin total equals ``n``."""
    for margin in margins:
        if not totals_match(margin.total, n):
            raise ConfigError(
                f"Margin '{margin.variable}' targets sum to {margin.total:g} but the "
                f"raking universe has {n:g} cases; pass rescale_targets=True to "
                f"rescale explicitly"
            )


def rescale_margins(margins: Sequence[MarginSpec], n: float) -> List[MarginSpec]:
    """Rescale each margin whose total differs from ``n``, logging each one."""
    result = []
    for margin in margins:
        if totals_match(margin.total, n):
            result.append(margin)
            continue
        if margin.total <= 0:
            raise ConfigError(f"Margin '{margin.variable}' has zero total and cannot be rescaled")
        logger.warning(
            f"Rescaling margin '{margin.variable}' targets from {margin.total:g} to {n:g} cases"
        )
        result.append(margin.rescaled(n))
    return result
