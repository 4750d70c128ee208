# src/cartocover/processing/domains.py

"""
Value sets: the set of values a single attribute may take inside one
conjunctive term of a simplified predicate.

Two shapes are supported, each with an explicit ``null`` flag (two-valued
logic makes "the attribute is missing" just another value):

- :class:`NumericValues`: an :class:`~cartocover.forms.intervals.IntervalSet`
  over the closed extended real line.
- :class:`DiscreteValues`: a finite set of values, or a cofinite one ("every
  value except these").

All operations are exact; emptiness of a value set is how contradictions are
detected.

Examples
--------
>>> from cartocover.processing.domains import DiscreteValues
>>> a = DiscreteValues.only("A")
>>> b = DiscreteValues.only("B")
>>> a.intersect(b.complement()) == a
True
>>> a.intersect(b).is_empty
True
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, Union

from cartocover.forms.intervals import Interval, IntervalSet

__all__ = [
    "NumericValues",
    "DiscreteValues",
    "ValueSet",
]


@dataclass(frozen=True)
class NumericValues:
    intervals: IntervalSet
    null: bool = False

    @classmethod
    def universe(cls) -> "NumericValues":
        return cls(IntervalSet.universe(), True)

    @classmethod
    def nothing(cls) -> "NumericValues":
        return cls(IntervalSet(), False)

    @classmethod
    def interval(cls, iv: Interval) -> "NumericValues":
        return cls(IntervalSet.of(iv), False)

    @classmethod
    def points(cls, values: Iterable[float]) -> "NumericValues":
        return cls(IntervalSet(tuple(Interval(v, v, True, True) for v in values)), False)

    @classmethod
    def only_null(cls) -> "NumericValues":
        return cls(IntervalSet(), True)

    @property
    def is_empty(self) -> bool:
        return self.intervals.is_empty and not self.null

    def complement(self) -> "NumericValues":
        return NumericValues(self.intervals.complement(), not self.null)

    def intersect(self, other: "NumericValues") -> "NumericValues":
        return NumericValues(self.intervals.intersect(other.intervals), self.null and other.null)

    def union(self, other: "NumericValues") -> "NumericValues":
        return NumericValues(self.intervals.union(other.intervals), self.null or other.null)

    def issubset(self, other: "NumericValues") -> bool:
        return self.intersect(other.complement()).is_empty

    def __str__(self) -> str:
        return f"{self.intervals}{' ∪ null' if self.null else ''}"


@dataclass(frozen=True)
class DiscreteValues:
    """
    Finite (``cofinite=False``) or cofinite (``cofinite=True``) set of values.

    A cofinite set stands for "every value except `values`"; it is never
    empty because the underlying domain (strings) is unbounded.
    """
    values: FrozenSet[Any] = frozenset()
    cofinite: bool = False
    null: bool = False

    def __post_init__(self):
        object.__setattr__(self, "values", frozenset(self.values))

    @classmethod
    def universe(cls, domain: FrozenSet[Any] = None) -> "DiscreteValues":
        if domain is None:
            return cls(frozenset(), True, True)
        return cls(frozenset(domain), False, True)

    @classmethod
    def only(cls, *values: Any) -> "DiscreteValues":
        return cls(frozenset(values), False, False)

    @classmethod
    def only_null(cls) -> "DiscreteValues":
        return cls(frozenset(), False, True)

    @property
    def is_empty(self) -> bool:
        return not self.cofinite and not self.values and not self.null

    def complement(self) -> "DiscreteValues":
        return DiscreteValues(self.values, not self.cofinite, not self.null)

    def intersect(self, other: "DiscreteValues") -> "DiscreteValues":
        null = self.null and other.null
        if not self.cofinite and not other.cofinite:
            return DiscreteValues(self.values & other.values, False, null)
        if not self.cofinite:
            return DiscreteValues(self.values - other.values, False, null)
        if not other.cofinite:
            return DiscreteValues(other.values - self.values, False, null)
        return DiscreteValues(self.values | other.values, True, null)

    def union(self, other: "DiscreteValues") -> "DiscreteValues":
        null = self.null or other.null
        if not self.cofinite and not other.cofinite:
            return DiscreteValues(self.values | other.values, False, null)
        if self.cofinite and other.cofinite:
            return DiscreteValues(self.values & other.values, True, null)
        fin, cof = (self, other) if not self.cofinite else (other, self)
        return DiscreteValues(cof.values - fin.values, True, null)

    def issubset(self, other: "DiscreteValues") -> bool:
        return self.intersect(other.complement()).is_empty

    def __str__(self) -> str:
        vals = ", ".join(repr(v) for v in sorted(self.values, key=repr))
        body = f"not {{{vals}}}" if self.cofinite else f"{{{vals}}}"
        return f"{body}{' ∪ null' if self.null else ''}"


ValueSet = Union[NumericValues, DiscreteValues]
