"""Pattern: a multiset of item copies packed into one unit-capacity bin.

The search mutates a single Pattern while it descends and backtracks, so
every operation here updates the cached totals in place. Filler ("sand")
is never stored; its weight is derived from the remaining space on demand.
"""

import math
from fractions import Fraction

from models import ContractViolationError


class Pattern:
    """Mapping size -> (weight per copy, copy count) with cumulative totals.

    Attributes:
        total_size: Sum of size * count over all entries
        total_weight: Sum of weight * count over all entries (excludes sand)
    """

    def __init__(self):
        self._entries = {}
        self.total_size = Fraction(0)
        self.total_weight = Fraction(0)

    def add_copies(self, size, weight, n):
        """Add n copies of an item; no capacity check is done here."""
        if n == 0:
            return
        if n < 0:
            raise ContractViolationError(f"Cannot add a negative number of copies ({n}) of size {size}")
        entry = self._entries.get(size)
        if entry is None:
            self._entries[size] = [weight, n]
        else:
            if entry[0] != weight:
                raise ContractViolationError(
                    f"Size {size} already present with weight {entry[0]}, cannot add it with weight {weight}")
            entry[1] += n
        self.total_size += size * n
        self.total_weight += weight * n

    def remove_one_copy(self, size):
        entry = self._entries.get(size)
        if entry is None:
            return
        if entry[1] == 1:
            del self._entries[size]
        else:
            entry[1] -= 1
        self.total_size -= size
        self.total_weight -= entry[0]

    def remove_all_copies(self, size):
        entry = self._entries.pop(size, None)
        if entry is None:
            return
        weight, count = entry
        self.total_size -= size * count
        self.total_weight -= weight * count

    def remaining_space(self):
        return 1 - self.total_size

    def max_copies_that_fit(self, size):
        """Largest number of copies of `size` that can still be added.

        When the remaining space is an exact multiple of `size`, one copy
        less is returned so that the sand residual stays strictly positive.
        """
        quotient = self.remaining_space() / size
        n = math.floor(quotient)
        if quotient == n:
            n -= 1
        return max(n, 0)

    def weight_incl_filler(self, sand_expansion):
        return self.total_weight + self.remaining_space() * sand_expansion

    def copy(self):
        p = Pattern()
        p._entries = {size: list(entry) for size, entry in self._entries.items()}
        p.total_size = self.total_size
        p.total_weight = self.total_weight
        return p

    def contains_size(self, size):
        return size in self._entries

    def count(self, size):
        entry = self._entries.get(size)
        return entry[1] if entry else 0

    def sizes(self):
        return list(self._entries)

    def entries(self):
        """List of (size, weight, count) in insertion order."""
        return [(size, w, c) for size, (w, c) in self._entries.items()]

    def is_empty(self):
        return not self._entries

    def weight_string(self):
        return " , ".join(f"{float(w):.5f} [{c} times]" for _, w, c in self.entries())

    def describe(self, sand_expansion=None):
        """Readable one-line summary used in log messages."""
        s = str(self)
        if sand_expansion is not None:
            sand = self.remaining_space() * sand_expansion
            s += (f" | weights {self.weight_string()}, {float(sand):.5f} (sand)"
                  f" | total {float(self.weight_incl_filler(sand_expansion)):.5f}")
        return s

    def __eq__(self, other):
        if not isinstance(other, Pattern):
            return NotImplemented
        return (self._entries == other._entries
                and self.total_size == other.total_size
                and self.total_weight == other.total_weight)

    def __len__(self):
        return len(self._entries)

    def __str__(self):
        if not self._entries:
            return "(empty)"
        return " , ".join(f"{size} [{c} times]" for size, _, c in self.entries())

    def __repr__(self):
        return f"Pattern({self}, size={self.total_size}, weight={self.total_weight})"
