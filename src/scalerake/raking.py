"""
Raking (Iterative Proportional Fitting) of case weights to census margins.

Given cases that each carry one category label per raking variable and a
list of target margins, raking finds per-case multipliers such that the
weighted count of every category matches its target:

    1. Start every case at weight 1.0
    2. For each margin, in the order given:
       - current = weighted count per category
       - factor = target / current
       - multiply each case's weight by the factor for its category
    3. Repeat full passes until the largest relative deviation across all
       variable x category targets falls below the tolerance

The returned weight is the cumulative product of all factors applied to a
case's cell. Cases in under-represented categories end up above 1 and
over-represented ones below 1. It is a raking multiplier, never an
inclusion probability, and the weighted case count equals the raking
universe size N.

Example:
    >>> from scalerake import Case, build_category_table, build_margin_spec, rake
    >>> cases = [Case(i, {"gender": g}) for i, g in enumerate("AABB")]
    >>> margin = build_margin_spec("gender", build_category_table({"A": 3, "B": 1}), 4)
    >>> weights = rake(cases, [margin])
    >>> weights[0], weights[2]
    (1.5, 0.5)
"""

import logging
import numbers
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Hashable, List, Literal, Optional, Sequence, Tuple

import numpy as np

from .data import Case, WeightVector
from .diagnostics import weight_stats
from .errors import ConfigError, ConvergenceError, RakingCancelled, ZeroCellError
from .margins import MarginSpec, check_margin_totals, rescale_margins

logger = logging.getLogger(__name__)

MissingPolicy = Literal["exclude", "unit"]


@dataclass(frozen=True)
class _EncodedMargin:
    """A margin with its categories mapped to integer codes."""
    variable: str
    categories: List[Hashable]
    targets: np.ndarray
    codes: np.ndarray


@dataclass
class RakingResult:
    """Outcome of a converged raking run.

    Under ``missing="unit"`` the cases missing a raking variable are carried
    in ``weights`` at 1.0 and ``excluded`` is empty, so ``weights.total`` is
    N plus their count. Only the raked cases sum to N.
    """
    weights: WeightVector
    iterations: int
    converged: bool
    max_deviation: float
    variables: List[str]
    history: List[Dict[str, Any]] = field(default_factory=list)
    excluded: List[Hashable] = field(default_factory=list)
    rescaled: List[str] = field(default_factory=list)

    def weight_stats(self) -> Dict[str, float]:
        return weight_stats(self.weights.array)

    def summary(self) -> str:
        """Generate summary string."""
        stats = self.weight_stats()
        lines = [
            f"Raking Result:",
            f"  Variables: {', '.join(self.variables)}",
            f"  Cases: {len(self.weights)} ({len(self.excluded)} excluded)",
            f"  Converged: {self.converged} ({self.iterations} iterations)",
            f"  Max deviation: {self.max_deviation:.2e}",
            f"  Weight range: [{stats['min_weight']:.3f}, {stats['max_weight']:.3f}]",
            f"  Design effect: {stats['deff']:.3f} (effective n {stats['effective_n']:.1f})",
        ]
        if self.rescaled:
            lines.append(f"  Rescaled margins: {', '.join(self.rescaled)}")
        return "\n".join(lines)


class RakingEngine:
    """
    Iterative Proportional Fitting over an ordered list of categorical margins.

    The engine holds configuration only. Each call to ``run`` is independent:
    weights, convergence history and encoded margins live for that call and
    are returned in a RakingResult or discarded on error.

    Example:
        >>> engine = RakingEngine(tolerance=1e-7, max_iterations=50)
        >>> result = engine.run(cases, margins)
        >>> result.weights[case_id]
    """

    def __init__(
        self,
        tolerance: float = 1e-7,
        max_iterations: int = 50,
        rescale_targets: bool = False,
        missing: MissingPolicy = "exclude",
    ):
        """
        Initialize raking engine.

        Args:
            tolerance: Largest allowed relative deviation between weighted
                category counts and targets
            max_iterations: Maximum number of full passes over all margins
            rescale_targets: Rescale margins whose totals differ from the
                raking universe size instead of failing
            missing: Policy for cases with a missing raking variable.
                "exclude" leaves them out of the result, "unit" gives them
                weight 1.0. Either way they are not raked.

        Raises:
            ValueError: If tolerance, max_iterations or missing is invalid
        """
        if not tolerance > 0:
            raise ValueError(f"Invalid tolerance: {tolerance}. Must be positive")
        if isinstance(max_iterations, bool) or not isinstance(max_iterations, numbers.Real) \
                or not float(max_iterations).is_integer():
            raise ValueError(f"Invalid max_iterations: {max_iterations}. Must be an integer")
        if int(max_iterations) < 1:
            raise ValueError(f"Invalid max_iterations: {max_iterations}. Must be at least 1")
        if missing not in ["exclude", "unit"]:
            raise ValueError(f"Invalid missing: {missing}. Must be 'exclude' or 'unit'")

        self.tolerance = tolerance
        self.max_iterations = int(max_iterations)
        self.rescale_targets = rescale_targets
        self.missing = missing

    def run(
        self,
        cases: Sequence[Case],
        margins: Sequence[MarginSpec],
        cancel: Optional[Callable[[], bool]] = None,
    ) -> RakingResult:
        """
        Rake case weights to the given margins.

        Args:
            cases: Cases carrying one label per margin variable
            margins: Target margins, adjusted in this order on every pass
            cancel: Polled between passes; returning True aborts the run

        Returns:
            RakingResult with the final weights and convergence history

        Raises:
            ConfigError: Invalid margins, unknown categories, mismatched totals
            ZeroCellError: A category with a positive target has no sample mass
            ConvergenceError: Tolerance not met within max_iterations passes
            RakingCancelled: ``cancel`` returned True
        """
        margins = list(margins)
        variables = self._validate_margins(margins)
        cases = list(cases)
        self._validate_case_ids(cases)

        raked, excluded = self._split_missing(cases, variables)
        n = len(raked)

        rescaled = []
        if self.rescale_targets:
            adjusted = rescale_margins(margins, n)
            rescaled = [m.variable for m, a in zip(margins, adjusted) if a is not m]
            margins = adjusted
        else:
            check_margin_totals(margins, n)

        encoded = [self._encode(margin, raked) for margin in margins]

        logger.info(
            f"Raking {n:,} cases to {len(encoded)} margins "
            f"({', '.join(variables)}), tolerance {self.tolerance:g}"
        )
        weights, iterations, max_dev, history = self._iterate(encoded, n, cancel)
        logger.info(f"Raking converged in {iterations} iterations (max deviation {max_dev:.2e})")

        ids = [case.case_id for case in raked]
        values = list(weights)
        if self.missing == "unit" and excluded:
            ids.extend(excluded)
            values.extend([1.0] * len(excluded))

        return RakingResult(
            weights=WeightVector(ids, values),
            iterations=iterations,
            converged=True,
            max_deviation=max_dev,
            variables=variables,
            history=history,
            excluded=[] if self.missing == "unit" else excluded,
            rescaled=rescaled,
        )

    def _validate_margins(self, margins: List[MarginSpec]) -> List[str]:
        """Check margin list and return its variable names in order."""
        if not margins:
            raise ConfigError("Raking needs at least one margin")
        for margin in margins:
            if not isinstance(margin, MarginSpec):
                raise ConfigError(f"Expected MarginSpec, got {type(margin).__name__}")
        variables = [m.variable for m in margins]
        dupes = sorted({v for v in variables if variables.count(v) > 1})
        if dupes:
            raise ConfigError(f"Each variable may appear in only one margin: {dupes}")
        return variables

    def _validate_case_ids(self, cases: List[Case]) -> None:
        seen = set()
        for case in cases:
            if case.case_id in seen:
                raise ConfigError(f"Duplicate case id: {case.case_id!r}")
            seen.add(case.case_id)

    def _split_missing(
        self,
        cases: List[Case],
        variables: List[str],
    ) -> Tuple[List[Case], List[Hashable]]:
        """Separate complete cases from those missing a raking variable."""
        raked, excluded = [], []
        for case in cases:
            if case.is_complete(variables):
                raked.append(case)
            else:
                excluded.append(case.case_id)
        if excluded:
            action = "excluded from the result" if self.missing == "exclude" else "assigned weight 1.0"
            logger.warning(
                f"{len(excluded):,} cases missing a raking variable are not raked and are {action}"
            )
        return raked, excluded

    def _encode(self, margin: MarginSpec, cases: List[Case]) -> _EncodedMargin:
        """Map each case's label for ``margin.variable`` to a category index."""
        categories = margin.categories
        index = {cat: i for i, cat in enumerate(categories)}
        codes = np.empty(len(cases), dtype=np.intp)
        unknown = set()
        for i, case in enumerate(cases):
            label = case.category(margin.variable)
            code = index.get(label)
            if code is None:
                unknown.add(label)
            else:
                codes[i] = code
        if unknown:
            raise ConfigError(
                f"Data contains categories not in targets for '{margin.variable}': "
                f"{sorted(unknown, key=repr)}"
            )
        targets = np.array([margin.target(cat) for cat in categories], dtype=float)
        return _EncodedMargin(margin.variable, categories, targets, codes)

    def _iterate(
        self,
        encoded: List[_EncodedMargin],
        n: int,
        cancel: Optional[Callable[[], bool]],
    ) -> Tuple[np.ndarray, int, float, List[Dict[str, Any]]]:
        weights = np.ones(n, dtype=float)
        history: List[Dict[str, Any]] = []

        for iteration in range(1, self.max_iterations + 1):
            if cancel is not None and cancel():
                raise RakingCancelled(iteration - 1)

            for margin in encoded:
                current = np.bincount(margin.codes, weights=weights, minlength=len(margin.categories))
                empty = (current <= 0) & (margin.targets > 0)
                if empty.any():
                    k = int(np.flatnonzero(empty)[0])
                    raise ZeroCellError(margin.variable, margin.categories[k], float(margin.targets[k]))
                factors = np.divide(
                    margin.targets, current,
                    out=np.zeros_like(current), where=current > 0,
                )
                weights = weights * factors[margin.codes]

            variable, category, max_dev = self._worst_deviation(encoded, weights)
            history.append({
                "iteration": iteration,
                "max_error": max_dev,
                "variable": variable,
                "category": category,
            })
            logger.debug(f"Pass {iteration}: max deviation {max_dev:.3e} at {variable}={category!r}")

            if max_dev < self.tolerance:
                return weights, iteration, max_dev, history

        variable, category, max_dev = self._worst_deviation(encoded, weights)
        raise ConvergenceError(variable, category, max_dev, self.max_iterations)

    @staticmethod
    def _worst_deviation(
        encoded: List[_EncodedMargin],
        weights: np.ndarray,
    ) -> Tuple[str, Hashable, float]:
        """Largest relative deviation of weighted counts from targets."""
        worst = (encoded[0].variable, encoded[0].categories[0], -1.0)
        for margin in encoded:
            current = np.bincount(margin.codes, weights=weights, minlength=len(margin.categories))
            diff = np.abs(current - margin.targets)
            rel = np.divide(diff, margin.targets, out=diff.copy(), where=margin.targets > 0)
            k = int(np.argmax(rel))
            if rel[k] > worst[2]:
                worst = (margin.variable, margin.categories[k], float(rel[k]))
        return worst


def rake(
    cases: Sequence[Case],
    margin_specs: Sequence[MarginSpec],
    tolerance: float = 1e-7,
    max_iterations: int = 50,
    **kwargs,
) -> WeightVector:
    """Rake ``cases`` to ``margin_specs`` and return the weight vector.

    Keyword arguments other than ``cancel`` are passed to RakingEngine.
    """
    cancel = kwargs.pop("cancel", None)
    engine = RakingEngine(tolerance=tolerance, max_iterations=max_iterations, **kwargs)
    return engine.run(cases, margin_specs, cancel=cancel).weights
