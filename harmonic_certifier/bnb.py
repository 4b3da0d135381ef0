"""Branch-and-bound search for the heaviest pattern in a unit bin.

This module implements the exact knapsack-type search used to check one
dual LP: given item sizes and weights (exact fractions), a feasibility
predicate and the weight density of sand, it finds the heaviest pattern
whose weight including sand exceeds a threshold. Bounds come from the
fractional relaxation: the best density still reachable times the
remaining space.
"""

from fractions import Fraction
from typing import Optional

from models import ContractViolationError, ItemType, SearchInvariantError
from pattern import Pattern
from feasibility import AllowAll
from logger import NoOpLogger


def fractional_upper_bound(pattern, order, index, sand_expansion):
    """Upper bound on the weight reachable from a search node.

    Takes the expansion of the first item at or after `index` that still
    fits into the remaining space (strictly, matching the sand residual
    rule of Pattern.max_copies_that_fit) and assumes the whole remaining
    space is filled at that density. Never below the density of sand.

    Args:
        pattern: Current pattern
        order: Items sorted by decreasing expansion
        index: Position in `order` of the next item to decide
        sand_expansion: Weight density of sand

    Returns:
        Fraction: total_weight + remaining_space * best reachable expansion
    """
    remaining = pattern.remaining_space()
    expansion = sand_expansion
    for it in order[index:]:
        if remaining > it.size:
            expansion = max(it.expansion, sand_expansion)
            break
    return pattern.total_weight + remaining * expansion


def expansion_order(items, sand_expansion):
    """Sort items by decreasing expansion, dropping those below sand.

    An item whose expansion is strictly below the sand expansion is always
    dominated by leaving its space to sand. The sort is stable, so ties keep
    their input order.
    """
    kept = [it for it in items if it.expansion >= sand_expansion]
    return sorted(kept, key=lambda it: it.expansion, reverse=True)


def validate_items(sizes, weights):
    """Check the input contract of a search and build the item list.

    Raises:
        ContractViolationError: mismatched lengths, sizes outside (0, 1] or
            duplicate sizes
    """
    if len(sizes) != len(weights):
        raise ContractViolationError(
            f"Got {len(sizes)} sizes but {len(weights)} weights")
    items = []
    seen = {}
    for size, weight in zip(sizes, weights):
        size = Fraction(size)
        weight = Fraction(weight)
        if not 0 < size <= 1:
            raise ContractViolationError(f"Item size must be in (0, 1], got {size}")
        if size in seen:
            raise ContractViolationError(
                f"Duplicate item size {size} (weights {seen[size]} and {weight})")
        seen[size] = weight
        items.append(ItemType(size=size, weight=weight))
    return items


class PatternSearch:
    """Exact branch-and-bound search for the heaviest pattern.

    Usage:
        search = PatternSearch(sizes, weights, AllowAll(), sand_expansion)
        pattern = search.solve(threshold)

    After `solve`, the node statistics of the last run are available as
    `nodes_explored`, `nodes_pruned` and `leaves_evaluated`. Per-node details
    are only handed to the logger when `verbose` is set.
    """

    def __init__(self, sizes, weights, predicate=None, sand_expansion=Fraction(0),
                 logger=None, case_k=None, verbose=False):
        self.items = validate_items(sizes, weights)
        self.predicate = predicate if predicate is not None else AllowAll()
        self.sand_expansion = Fraction(sand_expansion)
        self.logger = logger if logger is not None else NoOpLogger()
        self.case_k = case_k
        self.verbose = verbose

        self.order = []
        self.best_weight = None
        self.heaviest = None
        self.nodes_explored = 0
        self.nodes_pruned = 0
        self.leaves_evaluated = 0

    def solve(self, weight_threshold) -> Optional[Pattern]:
        """Find the heaviest pattern with weight (incl. sand) above the threshold.

        Args:
            weight_threshold: Patterns of weight at most this value are ignored

        Returns:
            The heaviest Pattern, or None if no pattern beats the threshold.
            None does not mean that no pattern exists.
        """
        self.order = expansion_order(self.items, self.sand_expansion)
        self.best_weight = Fraction(weight_threshold)
        self.heaviest = None
        self.nodes_explored = 0
        self.nodes_pruned = 0
        self.leaves_evaluated = 0

        self.logger.log_search_start(len(self.order), self.best_weight, case_k=self.case_k)

        pattern = Pattern()
        self._pack_recursively(0, pattern, None)

        if pattern.total_size != 0 or pattern.total_weight != 0 or not pattern.is_empty():
            raise SearchInvariantError(f"Pattern not restored after search: {pattern!r}")
        return self.heaviest

    def _pack_recursively(self, index, pattern, parent_bound):
        """Explore all multiplicities of order[index], then the following items.

        The pattern is left exactly as it was found when this call returns.
        """
        self.nodes_explored += 1
        bound = fractional_upper_bound(pattern, self.order, index, self.sand_expansion)
        node_info = None
        if self.verbose:
            node_info = {"depth": index, "bound": bound, "size": pattern.total_size}
        self.logger.log_node_visit(node_info)

        if parent_bound is not None and bound > parent_bound:
            raise SearchInvariantError(
                f"Bound {bound} at depth {index} exceeds parent bound {parent_bound}")

        if bound <= self.best_weight:
            self.nodes_pruned += 1
            self.logger.log_node_pruned("bound_dominated", node_info)
            return

        if index == len(self.order):
            self.leaves_evaluated += 1
            weight = pattern.weight_incl_filler(self.sand_expansion)
            self.logger.log_node_evaluated(weight, node_info)
            if weight > bound:
                raise SearchInvariantError(
                    f"Leaf weight {weight} exceeds its upper bound {bound}")
            if weight > self.best_weight:
                self.best_weight = weight
                self.heaviest = pattern.copy()
                self.logger.log_incumbent_update(weight, str(self.heaviest), self.nodes_explored)
            return

        item = self.order[index]
        n = pattern.max_copies_that_fit(item.size)
        if not self.predicate.can_add(item.size, pattern):
            n = 0

        pattern.add_copies(item.size, item.weight, n)
        while n >= 0:
            self._pack_recursively(index + 1, pattern, bound)
            n -= 1
            if n >= 0:
                pattern.remove_one_copy(item.size)
        pattern.remove_all_copies(item.size)


def find_heaviest_pattern(sizes, weights, predicate, sand_expansion, weight_threshold,
                          logger=None, case_k=None, verbose=False):
    """Convenience wrapper: build a PatternSearch and solve it once.

    Args:
        sizes: Item sizes (Fractions in (0, 1], pairwise distinct)
        weights: Item weights, same order as sizes
        predicate: Object with can_add(size, pattern), or None for AllowAll
        sand_expansion: Weight density of sand
        weight_threshold: Only patterns heavier than this are reported
        logger: Optional BnBLogger
        case_k: Case index used in log messages
        verbose: Whether to log every node visited

    Returns:
        The heaviest Pattern above the threshold, or None
    """
    search = PatternSearch(sizes, weights, predicate, sand_expansion, logger=logger,
                           case_k=case_k, verbose=verbose)
    return search.solve(weight_threshold)
