"""Construction and checking of the dual LPs for all cases k.

Given the non-large item types of a Harmonic-type algorithm, its red space
values and a target ratio, this module builds for every case k the item
set and the y3-parameterized weights of the corresponding dual LP and
hands them to the FeasibilityLoop:

- r small (red space at most 1/3): simple dual LP with two large types
- r medium, w1 small enough: simple dual LP with three large types
- r medium, w1 above the target: extended dual LP using omega weights,
  excluding q1/q2 from the search and comparing against q3 afterwards
- k = K+1 (no item r at all): fixed blue weights, no parameter

For the Super Harmonic family the types already cover all sizes: every case
uses the simple weights of the types only, y3 is searched in [0, 1] and no
y1, y2 values arise.
"""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Optional

from models import (Case, CaseItem, ContractViolation, ContractViolationError, Infeasible,
                    Resolved, SearchInvariantError, TypeInfo)
from pattern import Pattern
from feasibility import AllowAll, MutualExclusion
from bisection import BisectionConfig, FeasibilityLoop, SearchMode, VerifyMode
from logger import NoOpLogger

# patterns of weight at most target - THRESHOLD_SLACK are ignored by the searches
THRESHOLD_SLACK = Fraction(1, 1000)

HARMONIC = "harmonic"
SUPER_HARMONIC = "super_harmonic"
FAMILIES = (HARMONIC, SUPER_HARMONIC)

# verify mode bound on y3 for Super Harmonic
SUPER_HARMONIC_Y3_MAX = Fraction(1, 2)

ONE = Fraction(1)
ONE_HALF = Fraction(1, 2)
ONE_THIRD = Fraction(1, 3)
TWO_THIRDS = Fraction(2, 3)


def _constant(value):
    return lambda p, k: value


def _affine(w, v):
    return lambda p, k: (1 - p) * w + p * v


@dataclass
class CertificateReport:
    """Outcome of a complete run over all cases.

    Attributes:
        results: Case label (int k or "K+1") -> Resolved / Infeasible / ContractViolation
        y1, y2, y3: Dual values of the resolved cases
    """
    results: Dict[object, object] = field(default_factory=dict)
    y1: Dict[int, Fraction] = field(default_factory=dict)
    y2: Dict[int, Fraction] = field(default_factory=dict)
    y3: Dict[int, Fraction] = field(default_factory=dict)

    @property
    def success(self):
        return bool(self.results) and all(r.ok for r in self.results.values())

    @property
    def contract_violation(self):
        return any(isinstance(r, ContractViolation) for r in self.results.values())

    def failed_case(self):
        for k, r in self.results.items():
            if not r.ok:
                return k, r
        return None


class DualLPChecker:
    """Builds and checks the dual LP of every case k.

    Args:
        types: Item types, sorted by strictly decreasing size_lb (non-large
               types only for the Harmonic family)
        red_spaces: Red space value of every class k (increasing)
        target_ratio: Competitive ratio to certify
        strategy: SearchMode (find y3) or VerifyMode (check given y1, y2, y3);
                  defaults to a search on [0, 3/8], or [0, 1] for Super Harmonic
        logger: Optional BnBLogger
        family: HARMONIC or SUPER_HARMONIC
        verbose: Whether the searches log every node they visit
    """

    def __init__(self, types: List[TypeInfo], red_spaces: List[Fraction], target_ratio,
                 strategy=None, logger=None, family=HARMONIC, verbose=False):
        if not types:
            raise ContractViolationError("At least one item type is required")
        if family not in FAMILIES:
            raise ContractViolationError(f"Unknown algorithm family {family!r}, expected one of {FAMILIES}")
        self.family = family
        if strategy is None:
            strategy = SearchMode(self.default_bisection_config())
        self.types = list(types)
        self.red_spaces = [Fraction(r) for r in red_spaces]
        self.target_ratio = Fraction(target_ratio)
        self.strategy = strategy
        self.logger = logger if logger is not None else NoOpLogger()
        self.loop = FeasibilityLoop(self.strategy, self.logger, verbose=verbose)

        smallest = self.types[-1].size_lb
        if smallest >= 1:
            raise ContractViolationError(f"Smallest type size {smallest} leaves no room for sand")
        self.sand_expansion = ONE / (ONE - smallest)
        self.weight_threshold = self.target_ratio - THRESHOLD_SLACK

    def default_bisection_config(self):
        if self.family == SUPER_HARMONIC:
            return BisectionConfig(lo=Fraction(0), hi=ONE, center=Fraction(3, 16))
        return BisectionConfig()

    # ------------------------------------------------------------------
    # helpers on types
    # ------------------------------------------------------------------

    def types_for_red_class(self, k):
        """Indices of all types t with needs(t) == k."""
        return [i for i, t in enumerate(self.types) if t.needs == k]

    def is_necessary_case(self, k):
        """Case k has to be checked unless its red space is zero or no type needs it."""
        if self.red_spaces[k] == 0:
            return False
        indices = self.types_for_red_class(k)
        sizes = ", ".join(str(self.types[i].size_lb) for i in indices)
        self.logger.info(f"Checking case where k = needs(t(r)) = {k}: "
                         f"redspace_k = {self.red_spaces[k]}, item sizes with this red class: {sizes}")
        if not indices:
            self.logger.info("No need to check this case; types with this red class do not exist.")
            return False
        return True

    def type_of_r(self, k):
        """Index of the type of r given its class k (r is assumed to be medium)."""
        for i, t in enumerate(self.types):
            if t.needs == k:
                return i
        raise ContractViolationError(f"Couldn't compute type of r from class k={k}")

    def weight_of_q1(self, t):
        """Weight of the pattern q1 (equal to the weight of q2)."""
        if t == 0:
            raise ContractViolationError("Type of a medium r must not be the largest type")
        r_type = self.types[t]
        total = ONE + r_type.blue_weight + r_type.red_weight
        remaining = self.types[t - 1].size_lb - r_type.size_lb
        return total + remaining * self.sand_expansion

    def _type_items(self, k, weight_of):
        items = []
        for t in self.types:
            items.append(CaseItem(t.size_lb, weight_of(t), t.weight_w(k), t.weight_v(k)))
        return items

    def _simple_items(self, k):
        return self._type_items(k, lambda t: _affine(t.weight_w(k), t.weight_v(k)))

    # ------------------------------------------------------------------
    # case construction
    # ------------------------------------------------------------------

    def build_case(self, k) -> Optional[Case]:
        """Build the item set and weights of case k.

        Returns:
            The Case, or None if the case needs no check (no red item of class k)
        """
        if self.family == SUPER_HARMONIC:
            return Case(k, self._simple_items(k), self.target_ratio, self.sand_expansion,
                        self.weight_threshold, AllowAll(), description="Super Harmonic, simple dual LP")

        r_is_medium = self.red_spaces[k] > ONE_THIRD
        if not r_is_medium:
            # large types (2/3, 1] with w=v=1 and (1/2, 2/3] with w=1, v=0
            items = [CaseItem(TWO_THIRDS, _constant(ONE), ONE, ONE),
                     CaseItem(ONE_HALF, _affine(ONE, Fraction(0)), ONE, Fraction(0))]
            items += self._simple_items(k)
            return Case(k, items, self.target_ratio, self.sand_expansion, self.weight_threshold,
                        AllowAll(), description="r is small, simple dual LP")

        t = self.type_of_r(k)
        r_type = self.types[t]
        if r_type.red_fraction == 0:
            self.logger.info(f"No need to check this case, as no red item of class {k} can exist (red fraction = 0).")
            return None

        w1 = self.weight_of_q1(t)
        large_mid = ONE - self.types[t - 1].size_lb
        range_small_enough = (self.types[t - 1].size_lb - r_type.size_lb) <= self.types[-1].size_lb

        items = [CaseItem(TWO_THIRDS, _constant(ONE), ONE, ONE),
                 CaseItem(large_mid, _constant(ONE), ONE, ONE),
                 CaseItem(ONE_HALF, _affine(ONE, Fraction(0)), ONE, Fraction(0))]

        if not range_small_enough or w1 <= self.target_ratio:
            items += self._simple_items(k)
            return Case(k, items, self.target_ratio, self.sand_expansion, self.weight_threshold,
                        AllowAll(), description=f"r is medium, w1 = {float(w1):.5f}, simple dual LP")

        y1 = self.strategy.y1(k, w1, self.target_ratio)
        y2 = self.strategy.y2(k, w1, self.target_ratio)
        if y1 + self.target_ratio < w1:
            raise ContractViolationError(f"First constraint (y1+y4 >= w1) is violated in case k={k}")
        if y2 / 2 + self.target_ratio < w1:
            raise ContractViolationError(f"Second constraint (y2/2+y4 >= w1) is violated in case k={k}")

        items += self._type_items(
            k, lambda typ: (lambda p, kk, typ=typ: typ.omega(r_type, y1, y2, p)))

        def post_check(pattern, p):
            return self.compare_with_q3(pattern, t, k, y1, p)

        return Case(k, items, self.target_ratio, self.sand_expansion, self.weight_threshold,
                    MutualExclusion(large_mid, r_type.size_lb), post_check=post_check,
                    extras={"y1": y1, "y2": y2},
                    description=f"r is medium, w1 = {float(w1):.5f} > target, extended dual LP")

    def q3_components(self, t, k):
        """(w, v) split of q3; its weight is (1-y3)*w + y3*v + y1*(1-red)/(1+red)."""
        r_type = self.types[t]
        sand_volume = self.types[t - 1].size_lb - r_type.size_lb if t > 0 else Fraction(0)
        sand_weight = self.sand_expansion * sand_volume
        w3k = ONE + r_type.blue_weight + sand_weight
        v3k = ONE + r_type.weight_v(k) + sand_weight
        return w3k, v3k

    def weight_of_q3(self, t, k, y1, y3):
        w3k, v3k = self.q3_components(t, k)
        red = self.types[t].red_fraction
        return (1 - y3) * w3k + y3 * v3k + y1 * (1 - red) / (1 + red)

    def compare_with_q3(self, pattern, t, k, y1, y3):
        """Replace the search result by q3 if q3 is heavier.

        q3 consists of one large item of size 1 - s(t-1) and one blue item
        of the type of r; it is not covered by the search because the
        exclusion predicate removes it together with q1/q2.

        Returns:
            (pattern, None) if the search result stands, or (q3, (w, v)).
            The r item of q3 is blue, so its split differs from the case items.
        """
        weight_q3 = self.weight_of_q3(t, k, y1, y3)
        self.logger.debug(f"Weight of q3 is {float(weight_q3):.5f}")
        beats_search = pattern is None or weight_q3 > pattern.weight_incl_filler(self.sand_expansion)
        if weight_q3 > self.weight_threshold and beats_search:
            r_type = self.types[t]
            red = r_type.red_fraction
            r_weight = ((1 - y3) * r_type.blue_weight + y3 * r_type.weight_v(k)
                        + y1 * (1 - red) / (1 + red))
            q3 = Pattern()
            q3.add_copies(ONE - self.types[t - 1].size_lb, ONE, 1)
            q3.add_copies(r_type.size_lb, r_weight, 1)
            if q3.weight_incl_filler(self.sand_expansion) != weight_q3:
                raise SearchInvariantError(
                    f"Closed-form weight of q3 ({weight_q3}) does not match its pattern "
                    f"({q3.weight_incl_filler(self.sand_expansion)}) in case k={k}")
            return q3, self.q3_components(t, k)
        return pattern, None

    # ------------------------------------------------------------------
    # checks
    # ------------------------------------------------------------------

    def check_without_r(self):
        """Check the case k = K+1 where no item r exists."""
        items = []
        if self.family == HARMONIC:
            items += [CaseItem(TWO_THIRDS, _constant(ONE), ONE, ONE),
                      CaseItem(ONE_HALF, _constant(ONE), ONE, Fraction(0))]
        for t in self.types:
            items.append(CaseItem(t.size_lb, _constant(t.blue_weight), t.blue_weight, t.blue_weight))
        case = Case(len(self.red_spaces), items, self.target_ratio, self.sand_expansion,
                    self.weight_threshold, AllowAll(), description="no item r")

        self.logger.info("Checking case where no r-item exists (k=K+1).")
        try:
            pattern = self.loop.evaluate(case, None)
        except ContractViolationError as e:
            result = ContractViolation(str(e))
        else:
            if pattern is not None and pattern.weight_incl_filler(self.sand_expansion) > self.target_ratio:
                result = Infeasible("heaviest pattern without r exceeds the target ratio", pattern, 1)
            else:
                result = Resolved(None, pattern, iterations=1)
            if pattern is not None:
                self.logger.info(f"\tHeaviest pattern: {pattern.describe(self.sand_expansion)}")
        self.logger.log_case_result("K+1", result)
        return result

    def check_case(self, k):
        """Build case k and resolve it with the FeasibilityLoop."""
        try:
            case = self.build_case(k)
        except ContractViolationError as e:
            result = ContractViolation(str(e))
            self.logger.log_case_result(k, result)
            return result
        if case is None:
            result = Resolved(None)
            self.logger.log_case_result(k, result)
            return result
        self.logger.info(f"Case k={k}: {case.description}")
        return self.loop.resolve(case)

    def validate_parameters(self):
        """Sanity checks on the supplied parameters (used in verify mode).

        Raises:
            ContractViolationError: on the first violated condition
        """
        for i in range(1, len(self.types)):
            if self.types[i].size_lb >= self.types[i - 1].size_lb:
                raise ContractViolationError("Item types are not sorted according to size!")
        for a, b in zip(self.red_spaces, self.red_spaces[1:]):
            if a == b:
                raise ContractViolationError(f"Duplicate redSpace value {a}")
            if a > b:
                raise ContractViolationError(f"redSpaces not sorted increasingly: {a} > {b}")
        smallest = self.types[-1].size_lb
        if smallest >= Fraction(1, 10):
            raise ContractViolationError(f"Smallest item type must be below 0.1 but has size lower bound {smallest}")
        for t in self.types:
            if not 0 <= t.red_fraction < ONE_THIRD:
                raise ContractViolationError(
                    f"Red fraction of type with size at least {t.size_lb} is {t.red_fraction}")
        if self.family == HARMONIC:
            self._check_medium_gaps(smallest)
        self.logger.info("Parameters are valid.")

    def _check_medium_gaps(self, smallest):
        medium = [t.size_lb for t in self.types if ONE_THIRD <= t.size_lb < ONE_HALF]
        for upper, lower in zip(medium, medium[1:]):
            if upper - lower >= smallest:
                raise ContractViolationError(
                    f"Sizes between 1/3 and 1/2 are not always less than {smallest} apart: "
                    f"{upper} and {lower}")

    def run(self) -> CertificateReport:
        """Check all cases; stops at the first case that is not resolved."""
        report = CertificateReport()
        self.logger.start_run({
            "n_types": len(self.types),
            "n_classes": len(self.red_spaces),
            "target_ratio": str(self.target_ratio),
            "sand_expansion": str(self.sand_expansion),
            "mode": type(self.strategy).__name__,
            "family": self.family,
        })

        if isinstance(self.strategy, VerifyMode):
            try:
                self.validate_parameters()
            except ContractViolationError as e:
                report.results["parameters"] = ContractViolation(str(e))
                self._finish(report)
                return report

        report.results["K+1"] = self.check_without_r()
        if not report.results["K+1"].ok:
            self._finish(report)
            return report

        for k in range(len(self.red_spaces)):
            if not self.is_necessary_case(k):
                continue
            result = self.check_case(k)
            report.results[k] = result
            if not result.ok:
                self.logger.warning(f"Couldn't make the dual LP of case k={k} feasible. Stopping.")
                break
            if result.value is not None:
                report.y3[k] = result.value
            if "y1" in result.extras:
                report.y1[k] = result.extras["y1"]
                report.y2[k] = result.extras["y2"]

        self._finish(report)
        return report

    def _finish(self, report):
        failed = report.failed_case()
        self.logger.end_run({
            "success": report.success,
            "failed_case": None if failed is None else str(failed[0]),
            "y1": {str(k): str(v) for k, v in report.y1.items()},
            "y2": {str(k): str(v) for k, v in report.y2.items()},
            "y3": {str(k): str(v) for k, v in report.y3.items()},
        })
