"""Bisection over the dual parameter y3 for one case.

For a case k the weights of all items are affine in y3:
    weight(y3) = (1 - y3) * w + y3 * v
so the weight of a fixed pattern decreases in y3 exactly when its
v-component is below its w-component. The loop evaluates the heaviest
pattern at the current center and moves the interval towards the side
where that pattern gets lighter.

Two strategies drive the loop:
- SearchMode: bisect for y3 and derive y1, y2 from w1
- VerifyMode: evaluate once at given y1, y2, y3 after range checks
"""

from dataclasses import dataclass
from fractions import Fraction
from typing import Dict, Optional

from models import ContractViolation, ContractViolationError, Infeasible, Resolved
from bnb import find_heaviest_pattern
from logger import NoOpLogger


@dataclass
class BisectionConfig:
    """Interval and stopping rules of the bisection.

    Attributes:
        lo: Lower end of the initial interval
        hi: Upper end of the initial interval
        center: First value to evaluate (defaults to the midpoint)
        max_iterations: Maximum number of evaluations per case
        tolerance: Stop once the half-width of the interval drops below this
    """
    lo: Fraction = Fraction(0)
    # [0, 1/2] would be the full range, but y3 never ends up above 3/8
    hi: Fraction = Fraction(3, 8)
    center: Optional[Fraction] = None
    max_iterations: int = 20
    tolerance: Fraction = Fraction(1, 10_000_000)

    def __post_init__(self):
        self.lo = Fraction(self.lo)
        self.hi = Fraction(self.hi)
        if self.center is None:
            self.center = self.lo + (self.hi - self.lo) / 2
        self.center = Fraction(self.center)
        if not self.lo <= self.center <= self.hi:
            raise ContractViolationError(
                f"Bisection center {self.center} outside [{self.lo}, {self.hi}]")


class SearchMode:
    """Search for y3 by bisection; y1 and y2 are derived from w1."""

    bisects = True

    def __init__(self, config: Optional[BisectionConfig] = None):
        self.config = config if config is not None else BisectionConfig()

    @property
    def max_iterations(self):
        return self.config.max_iterations

    @property
    def tolerance(self):
        return self.config.tolerance

    def start(self, k):
        return self.config.lo, self.config.hi, self.config.center

    def y1(self, k, w1, target_ratio):
        return w1 - target_ratio

    def y2(self, k, w1, target_ratio):
        return (w1 - target_ratio) * 2

    def __repr__(self):
        return f"SearchMode({self.config})"


class VerifyMode:
    """Check given values y1, y2, y3 per case; no bisection."""

    bisects = False
    max_iterations = 1
    tolerance = Fraction(0)

    Y1_MAX = Fraction(5, 100)
    Y3_MAX = Fraction(6, 10)

    def __init__(self, y1_values: Dict[int, Fraction], y2_values: Dict[int, Fraction],
                 y3_values: Dict[int, Fraction], y3_max: Optional[Fraction] = None):
        self.y3_max = Fraction(y3_max) if y3_max is not None else self.Y3_MAX
        self.y1_values = {int(k): Fraction(v) for k, v in (y1_values or {}).items()}
        self.y2_values = {int(k): Fraction(v) for k, v in (y2_values or {}).items()}
        self.y3_values = {int(k): Fraction(v) for k, v in (y3_values or {}).items()}

    @staticmethod
    def _lookup(values, name, k):
        if k not in values:
            raise ContractViolationError(f"No value of {name} given for case k = {k}")
        return values[k]

    def start(self, k):
        y3 = self._lookup(self.y3_values, "y3", k)
        if y3 < 0:
            raise ContractViolationError(f"Value of y3 must be non-negative but is {y3} in case k = {k}")
        if y3 > self.y3_max:
            raise ContractViolationError(f"Value of y3 must be at most {self.y3_max} but is {y3} in case k = {k}")
        return y3, y3, y3

    def y1(self, k, w1, target_ratio):
        y1 = self._lookup(self.y1_values, "y1", k)
        if y1 < 0:
            raise ContractViolationError(f"Value of y1 must be non-negative but is {y1} in case k = {k}")
        if y1 > self.Y1_MAX:
            raise ContractViolationError(f"Value of y1 must be at most {self.Y1_MAX} but is {y1} in case k = {k}")
        return y1

    def y2(self, k, w1, target_ratio):
        y2 = self._lookup(self.y2_values, "y2", k)
        if y2 < 0:
            raise ContractViolationError(f"Value of y2 must be non-negative but is {y2} in case k = {k}")
        return y2

    def __repr__(self):
        return f"VerifyMode({len(self.y3_values)} cases)"


class FeasibilityLoop:
    """Resolve cases by repeatedly searching for the heaviest pattern.

    Args:
        strategy: SearchMode or VerifyMode (default: SearchMode())
        logger: Optional BnBLogger
        verbose: Whether the searches log every node they visit
    """

    def __init__(self, strategy=None, logger=None, verbose=False):
        self.strategy = strategy if strategy is not None else SearchMode()
        self.logger = logger if logger is not None else NoOpLogger()
        self.verbose = verbose

    def evaluate(self, case, p):
        """Heaviest pattern of `case` above its threshold for parameter p, or None."""
        pattern, _ = self._evaluate(case, p)
        return pattern

    def _evaluate(self, case, p):
        """Heaviest pattern and its (w, v) split, or None for the split.

        A post-check may replace the search result by a pattern whose
        weights are not those of the case items; it then returns the split
        of that pattern as well.
        """
        pattern = find_heaviest_pattern(case.sizes, case.weights_at(p), case.predicate,
                                        case.sand_expansion, case.weight_threshold,
                                        logger=self.logger, case_k=case.k, verbose=self.verbose)
        components = None
        if case.post_check is not None:
            pattern, components = case.post_check(pattern, p)
        return pattern, components

    def resolve(self, case):
        """Resolve one case.

        Returns:
            Resolved(y3) if some evaluated y3 makes the case feasible,
            Infeasible if the search gave up, ContractViolation if the
            input of the case is invalid.
        """
        try:
            result = self._bisect(case)
        except ContractViolationError as e:
            result = ContractViolation(str(e))
        self.logger.log_case_result(case.k, result)
        return result

    def _bisect(self, case):
        lo, hi, center = self.strategy.start(case.k)
        pattern = None
        iteration = 0
        while iteration < self.strategy.max_iterations:
            iteration += 1
            pattern, components = self._evaluate(case, center)

            if pattern is None or pattern.weight_incl_filler(case.sand_expansion) <= case.target_ratio:
                weight = None if pattern is None else pattern.weight_incl_filler(case.sand_expansion)
                self.logger.log_bisection_step(case.k, iteration, center, lo, hi, weight)
                return Resolved(center, pattern, dict(case.extras), iteration)

            # the pattern violates the constraint; decide where its weight decreases
            w_total, v_total = components if components is not None else case.components(pattern)
            self.logger.log_bisection_step(case.k, iteration, center, lo, hi,
                                           pattern.weight_incl_filler(case.sand_expansion),
                                           w_total, v_total)
            self.logger.debug(f"\tHeaviest pattern: {pattern.describe(case.sand_expansion)}")

            if not self.strategy.bisects:
                return Infeasible(f"heaviest pattern exceeds the target ratio at y3 = {center}",
                                  pattern, iteration)
            if w_total == v_total:
                return Infeasible("w- and v-weight of the heaviest pattern are equal, "
                                  "so it is too heavy for every y3", pattern, iteration)
            if w_total > v_total:
                lo = center
            else:
                hi = center
            center = lo + (hi - lo) / 2
            if (hi - lo) / 2 < self.strategy.tolerance:
                break

        return Infeasible(f"no feasible y3 found after {iteration} iterations "
                          f"(interval [{lo}, {hi}])", pattern, iteration)
