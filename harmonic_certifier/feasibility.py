"""Feasibility predicates that can forbid extending a pattern with a size.

A predicate is any object with a `can_add(size, pattern) -> bool` method.
The search calls it once per node, before copies of `size` are added.
"""

from fractions import Fraction


class AllowAll:
    """Accepts every pattern."""

    def can_add(self, size, pattern):
        return True

    def __repr__(self):
        return "AllowAll()"


class MutualExclusion:
    """Forbids patterns that contain both `size_a` and `size_b`.

    Used to keep the special patterns q1/q2 (a large item of size
    1 - s(t-1) together with an item of the type of r) out of the search;
    those two patterns are handled by a separate closed-form argument.
    """

    def __init__(self, size_a, size_b):
        self.size_a = Fraction(size_a)
        self.size_b = Fraction(size_b)

    def can_add(self, size, pattern):
        if size == self.size_a:
            return not pattern.contains_size(self.size_b)
        if size == self.size_b:
            return not pattern.contains_size(self.size_a)
        return True

    def __repr__(self):
        return f"MutualExclusion({self.size_a}, {self.size_b})"
