# src/cartocover/forms/intervals.py

"""
Real intervals with independent inclusive/exclusive bounds.

- :class:`Interval` is a single connected range ``[low, high)`` (any mix of
  open/closed ends), possibly empty after subtraction or intersection.
- :class:`IntervalSet` is a normalized union of disjoint intervals, used as
  the value domain of numeric attributes during predicate simplification.

Bounds are ordered with a canonical total order over ``(value, inclusive)``
pairs rather than raw float equality, so ties at a boundary always resolve the
same way.

Examples
--------
>>> from cartocover.forms.intervals import Interval
>>> a = Interval(0, 1000)
>>> b = Interval(500, 1500)
>>> [str(p) for p in b.subtract(a)]
['[1000, 1500)']
>>> str(a.intersect(b))
'[500, 1000)'
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
import math


__all__ = [
    "Interval",
    "IntervalSet",
    "REAL_LINE",
]


def _fmt(x: float) -> str:
    if math.isinf(x):
        return "inf" if x > 0 else "-inf"
    if float(x).is_integer():
        return str(int(x))
    return repr(float(x))


# =========================
# Interval
# =========================

@dataclass(frozen=True)
class Interval:
    """
    A connected real interval with independent bound flags.

    Parameters
    ----------
    low, high : float
        Bounds, ``low <= high``. Infinite bounds are allowed.
    low_inclusive : bool, default True
    high_inclusive : bool, default False

    Notes
    -----
    ``low == high`` with at least one open end is the empty interval. It is a
    legal value (subtraction can produce it) but :meth:`subtract` and
    :meth:`intersect` never return one.

    Examples
    --------
    >>> from cartocover.forms.intervals import Interval
    >>> Interval(1, 1).is_empty
    True
    >>> Interval(1, 1, True, True).is_empty
    False
    >>> Interval(0, 10).contains(10)
    False
    """
    low: float
    high: float
    low_inclusive: bool = True
    high_inclusive: bool = False

    def __post_init__(self):
        low, high = float(self.low), float(self.high)
        if math.isnan(low) or math.isnan(high):
            raise ValueError("Interval bounds must not be NaN")
        if low > high:
            raise ValueError(f"Interval low bound {low} exceeds high bound {high}")
        object.__setattr__(self, "low", low)
        object.__setattr__(self, "high", high)
        object.__setattr__(self, "low_inclusive", bool(self.low_inclusive))
        object.__setattr__(self, "high_inclusive", bool(self.high_inclusive))

    # ---- ordering keys ----

    @property
    def low_key(self) -> Tuple[float, int]:
        """Inclusive lows start earlier than exclusive lows at the same value."""
        return (self.low, 0 if self.low_inclusive else 1)

    @property
    def high_key(self) -> Tuple[float, int]:
        """Inclusive highs end later than exclusive highs at the same value."""
        return (self.high, 1 if self.high_inclusive else 0)

    @property
    def sort_key(self) -> Tuple[float, int, float, int]:
        return self.low_key + self.high_key

    # ---- predicates ----

    @property
    def is_empty(self) -> bool:
        return self.low == self.high and not (self.low_inclusive and self.high_inclusive)

    @property
    def is_point(self) -> bool:
        return self.low == self.high and self.low_inclusive and self.high_inclusive

    def contains(self, x: float) -> bool:
        x = float(x)
        if math.isnan(x):
            return False
        above = x > self.low or (self.low_inclusive and x == self.low)
        below = x < self.high or (self.high_inclusive and x == self.high)
        return above and below

    def intersects(self, other: "Interval") -> bool:
        return self.intersect(other) is not None

    # ---- set algebra ----

    def intersect(self, other: "Interval") -> Optional["Interval"]:
        """Return the overlap with `other`, or ``None`` if it is empty."""
        lo = self if self.low_key >= other.low_key else other
        hi = self if self.high_key <= other.high_key else other
        if lo.low > hi.high:
            return None
        out = Interval(lo.low, hi.high, lo.low_inclusive, hi.high_inclusive)
        return None if out.is_empty else out

    def subtract(self, other: "Interval") -> List["Interval"]:
        """
        Pieces of `self` not covered by `other` (zero, one or two intervals).

        >>> from cartocover.forms.intervals import Interval
        >>> [str(p) for p in Interval(0, 10).subtract(Interval(2, 5, False, True))]
        ['[0, 2]', '(5, 10)']
        >>> Interval(2, 5).subtract(Interval(0, 10))
        []
        """
        if self.is_empty:
            return []
        if self.intersect(other) is None:
            return [self]
        pieces: List[Interval] = []
        if self.low_key < other.low_key:
            pieces.append(Interval(self.low, other.low, self.low_inclusive, not other.low_inclusive))
        if other.high_key < self.high_key:
            pieces.append(Interval(other.high, self.high, not other.high_inclusive, self.high_inclusive))
        return [p for p in pieces if not p.is_empty]

    def touches(self, other: "Interval") -> bool:
        """True when `other` starts exactly where `self` ends with no gap."""
        return self.high == other.low and (self.high_inclusive or other.low_inclusive)

    def __str__(self) -> str:
        lo = "[" if self.low_inclusive else "("
        hi = "]" if self.high_inclusive else ")"
        return f"{lo}{_fmt(self.low)}, {_fmt(self.high)}{hi}"


REAL_LINE = Interval(-math.inf, math.inf, True, True)


# =========================
# IntervalSet
# =========================

def _normalize(intervals: Iterable[Interval]) -> Tuple[Interval, ...]:
    items = sorted((iv for iv in intervals if not iv.is_empty), key=lambda iv: iv.sort_key)
    merged: List[Interval] = []
    for iv in items:
        if merged:
            last = merged[-1]
            if last.intersect(iv) is not None or last.touches(iv):
                hi = last if last.high_key >= iv.high_key else iv
                merged[-1] = Interval(last.low, hi.high, last.low_inclusive, hi.high_inclusive)
                continue
        merged.append(iv)
    return tuple(merged)


@dataclass(frozen=True)
class IntervalSet:
    """
    Union of disjoint, non-touching intervals kept in canonical order.

    Two sets describing the same points compare equal.

    Examples
    --------
    >>> from cartocover.forms.intervals import Interval, IntervalSet
    >>> s = IntervalSet.of(Interval(0, 1), Interval(1, 2))
    >>> str(s)
    '{[0, 2)}'
    >>> str(s.complement())
    '{[-inf, 0), [2, inf]}'
    """
    intervals: Tuple[Interval, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "intervals", _normalize(self.intervals))

    @classmethod
    def of(cls, *intervals: Interval) -> "IntervalSet":
        return cls(tuple(intervals))

    @classmethod
    def point(cls, value: float) -> "IntervalSet":
        return cls((Interval(value, value, True, True),))

    @classmethod
    def universe(cls) -> "IntervalSet":
        return cls((REAL_LINE,))

    @property
    def is_empty(self) -> bool:
        return not self.intervals

    @property
    def is_universe(self) -> bool:
        return self.intervals == (REAL_LINE,)

    def union(self, other: "IntervalSet") -> "IntervalSet":
        return IntervalSet(self.intervals + other.intervals)

    def intersect(self, other: "IntervalSet") -> "IntervalSet":
        out = []
        for a in self.intervals:
            for b in other.intervals:
                c = a.intersect(b)
                if c is not None:
                    out.append(c)
        return IntervalSet(tuple(out))

    def complement(self) -> "IntervalSet":
        """Complement relative to the closed extended real line ``[-inf, inf]``."""
        rest = [REAL_LINE]
        for iv in self.intervals:
            rest = [piece for r in rest for piece in r.subtract(iv)]
        return IntervalSet(tuple(rest))

    def issubset(self, other: "IntervalSet") -> bool:
        return self.intersect(other.complement()).is_empty

    def points(self) -> Optional[List[float]]:
        """Values of the set if it consists only of isolated points, else ``None``."""
        if not all(iv.is_point for iv in self.intervals):
            return None
        return [iv.low for iv in self.intervals]

    def contains(self, x: float) -> bool:
        return any(iv.contains(x) for iv in self.intervals)

    def __iter__(self):
        return iter(self.intervals)

    def __len__(self) -> int:
        return len(self.intervals)

    def __str__(self) -> str:
        return "{" + ", ".join(str(iv) for iv in self.intervals) + "}"
