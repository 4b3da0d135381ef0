"""Data structures for the dual LP certificate checker.

This module contains the core data classes used throughout the checker:
- ItemType: A (size, weight) pair handed to a single pattern search
- TypeInfo: An item type of the packing algorithm with its precomputed parameters
- CaseItem / Case: One feasibility question with weights parameterized by y3
- Resolved / Infeasible / ContractViolation: Outcome of resolving one case
- ContractViolationError / SearchInvariantError: The two fatal error kinds
"""

from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Callable, Dict, List, Optional


class ContractViolationError(ValueError):
    """Raised when the input of a case or search violates its contract."""


class SearchInvariantError(RuntimeError):
    """Raised when the branch-and-bound search detects an internal inconsistency."""


@dataclass(frozen=True)
class ItemType:
    """A single item type as seen by the pattern search.

    Attributes:
        size: Size of one copy, in (0, 1]
        weight: Weight of one copy
    """
    size: Fraction
    weight: Fraction

    @property
    def expansion(self):
        """Weight per unit of size."""
        return self.weight / self.size


@dataclass
class TypeInfo:
    """An item type of the Harmonic-type algorithm.

    The integer parameters (bluefit, redfit, needs, leaves) are computed
    elsewhere and supplied as inputs. Only the weights derived from them
    are computed here.

    Attributes:
        size_lb: Lower bound of the size interval of this type
        red_fraction: Fraction of items of this type that are colored red
        bluefit: Number of blue items of this type that fit into a bin
        redfit: Number of red items of this type that fit into a bin
        needs: Red class of an item of this type (0 if it never needs space)
        leaves: Red class of the space this type leaves in its bins
    """
    size_lb: Fraction
    red_fraction: Fraction
    bluefit: int
    redfit: int = 1
    needs: int = 0
    leaves: int = 0

    def __post_init__(self):
        self.size_lb = Fraction(self.size_lb)
        self.red_fraction = Fraction(self.red_fraction)
        if not 0 < self.size_lb <= 1:
            raise ContractViolationError(f"TypeInfo size_lb must be in (0, 1], got {self.size_lb}")
        if self.bluefit < 1:
            raise ContractViolationError(f"TypeInfo[{self.size_lb}] bluefit must be >= 1")
        if self.red_fraction != 0 and self.redfit < 1:
            raise ContractViolationError(f"TypeInfo[{self.size_lb}] redfit must be >= 1 for red items")

    @property
    def red_weight(self):
        if self.red_fraction == 0:
            return Fraction(0)
        return self.red_fraction / self.redfit

    @property
    def blue_weight(self):
        return (1 - self.red_fraction) / self.bluefit

    def weight_w(self, k):
        """w-weight of this type in case k."""
        if self.needs >= k or self.needs == 0:
            return self.blue_weight + self.red_weight
        return self.blue_weight

    def weight_v(self, k):
        """v-weight of this type in case k."""
        if self.leaves < k:
            return self.blue_weight + self.red_weight
        return self.red_weight

    def omega(self, type_of_r, y1, y2, y3):
        """Weight of this type in the extended dual LP.

        Args:
            type_of_r: TypeInfo of the item r that defines the case
            y1, y2, y3: Dual variables of the extended LP

        Returns:
            Fraction: the weight omega(t) for the given dual values
        """
        kr = type_of_r.needs
        w = self.weight_w(kr)
        v = self.weight_v(kr)
        if self is type_of_r:
            term_a = (1 - self.red_fraction) / self.bluefit + self.red_fraction / self.redfit
            term_c = (1 - self.red_fraction) / (1 + self.red_fraction)
            return (1 - y3) * term_a + y3 * v + y1 * term_c
        if 0 < self.needs <= type_of_r.leaves:
            return (1 - y3) * w + y3 * v + y2 * (self.red_fraction / self.redfit)
        return (1 - y3) * w + y3 * v

    def __str__(self):
        return f"{float(self.size_lb):.5f} (red = {float(self.red_fraction):.5f})"


@dataclass(frozen=True)
class CaseItem:
    """One item of a case, its weight being a function of (p, k).

    Attributes:
        size: Size of the item
        weight_fn: Callable (p, k) -> Fraction giving the weight used in the search
        w_weight: w-component of the item, used to pick the bisection direction
        v_weight: v-component of the item
    """
    size: Fraction
    weight_fn: Callable[[Fraction, int], Fraction]
    w_weight: Fraction
    v_weight: Fraction


@dataclass
class Case:
    """One instance of the feasibility question.

    Attributes:
        k: Case index (red class of r)
        items: Ordered items with parameterized weights
        target_ratio: Threshold that the heaviest pattern must not exceed
        sand_expansion: Weight density of filler material
        weight_threshold: Patterns at or below this weight are ignored by the search
        predicate: Feasibility predicate passed to the search
        post_check: Optional callable (pattern, p) -> (pattern, (w, v) or None)
            applied after each search; a (w, v) pair overrides components()
        extras: Additional dual values belonging to this case (y1, y2)
        description: Short label used in logs
    """
    k: int
    items: List[CaseItem]
    target_ratio: Fraction
    sand_expansion: Fraction
    weight_threshold: Fraction
    predicate: Any
    post_check: Optional[Callable] = None
    extras: Dict[str, Fraction] = field(default_factory=dict)
    description: str = ""

    @property
    def sizes(self):
        return [it.size for it in self.items]

    def weights_at(self, p):
        """Weights of all items for parameter value p."""
        return [it.weight_fn(p, self.k) for it in self.items]

    def components(self, pattern):
        """Split the weight of a pattern into its (w, v) components.

        Both sums run over all copies in the pattern. Sizes unknown to this
        case are a contract violation.
        """
        by_size = {it.size: it for it in self.items}
        total_w = Fraction(0)
        total_v = Fraction(0)
        for size, _, count in pattern.entries():
            if size not in by_size:
                raise ContractViolationError(f"Pattern contains size {size} unknown to case k={self.k}")
            total_w += by_size[size].w_weight * count
            total_v += by_size[size].v_weight * count
        return total_w, total_v


@dataclass
class Resolved:
    """The case is feasible for the parameter value `value`."""
    value: Optional[Fraction]
    pattern: Any = None
    extras: Dict[str, Fraction] = field(default_factory=dict)
    iterations: int = 0

    ok = True


@dataclass
class Infeasible:
    """No parameter value was found that makes the case feasible."""
    reason: str
    pattern: Any = None
    iterations: int = 0

    ok = False


@dataclass
class ContractViolation:
    """The case could not be checked because its input is invalid."""
    reason: str

    ok = False
