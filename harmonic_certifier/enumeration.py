"""Exhaustive pattern enumeration for cross-checking the branch-and-bound search.

This module enumerates every count vector of the item types whose total
size stays strictly below one (the sand residual must stay positive) and
returns the heaviest one. Only practical for small instances; it is used
to validate PatternSearch.
"""

import itertools
import time
from fractions import Fraction
from typing import List, Optional, Tuple

from bnb import validate_items
from feasibility import AllowAll
from pattern import Pattern


def enumerate_best_pattern(
    sizes: List[Fraction],
    weights: List[Fraction],
    predicate=None,
    sand_expansion: Fraction = Fraction(0),
    verbose: bool = False,
) -> Tuple[Optional[Fraction], Optional[Pattern], int]:
    """Enumerate all patterns and return the heaviest one.

    The predicate is consulted in the given item order, each time before
    the copies of a size are added.

    Args:
        sizes: Item sizes in (0, 1], pairwise distinct
        weights: Item weights
        predicate: Object with can_add(size, pattern), defaults to AllowAll
        sand_expansion: Weight density of sand
        verbose: Whether to print a short summary

    Returns:
        Tuple of (best weight incl. sand, best pattern, number of patterns evaluated)
    """
    items = validate_items(sizes, weights)
    predicate = predicate if predicate is not None else AllowAll()
    empty = Pattern()
    max_per_item = [empty.max_copies_that_fit(it.size) for it in items]

    best_weight = None
    best_pattern = None
    evaluated = 0
    start_time = time.time()

    for counts in itertools.product(*[range(m + 1) for m in max_per_item]):
        total = sum((it.size * c for it, c in zip(items, counts)), Fraction(0))
        if total >= 1:
            continue
        pattern = Pattern()
        allowed = True
        for it, c in zip(items, counts):
            if c == 0:
                continue
            if not predicate.can_add(it.size, pattern):
                allowed = False
                break
            pattern.add_copies(it.size, it.weight, c)
        if not allowed:
            continue
        evaluated += 1
        weight = pattern.weight_incl_filler(sand_expansion)
        if best_weight is None or weight > best_weight:
            best_weight = weight
            best_pattern = pattern

    if verbose:
        print(f"Enumeration: {evaluated} patterns in {time.time() - start_time:.3f}s, "
              f"best weight {best_weight}")

    return best_weight, best_pattern, evaluated
