# src/cartocover/forms/predicates.py

"""
Feature predicates P(df) -> boolean masks over a table of features.

- Composable boolean logic: AND (&), OR (|), NOT (~)
- Canonical constants: INCLUDE (always true) and EXCLUDE (always false)
- Attribute/value comparisons evaluated vectorially (pandas/numpy)
- Helpers for common forms: comparisons, between, in-set, is-null
- Opaque functional predicates ``df -> Series[bool]`` for anything else

Every node is a frozen dataclass, so predicates compare structurally and can be
used as dictionary keys. Semantics are two-valued: a comparison against a null
attribute is false, except ``!=`` which is defined as ``NOT ==``. A column
missing from the frame evaluates as all-null.

Examples
--------
>>> import pandas as pd
>>> from cartocover.forms.predicates import EQ, GE, IN
>>> df = pd.DataFrame({"kind": ["road", "rail", "road"], "lanes": [2, None, 4]})
>>> (EQ("kind", "road") & GE("lanes", 3)).mask(df).tolist()
[False, False, True]
>>> (~IN("kind", {"rail"})).mask(df).tolist()
[True, False, True]
"""

from __future__ import annotations
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Callable, FrozenSet, Iterable, Set
import numpy as np
import pandas as pd

__all__ = [
    "Predicate",
    "INCLUDE",
    "EXCLUDE",
    "AndPred",
    "OrPred",
    "NotPred",
    "Compare",
    "InSet",
    "Between",
    "IsNull",
    "Where",
    "EQ",
    "NE",
    "LT",
    "LE",
    "GT",
    "GE",
    "IN",
    "BETWEEN",
    "IS_NULL",
    "OP_SYMBOLS",
    "conjunction",
    "disjunction",
    "attributes",
]


# =========================
# Internal helpers
# =========================

def _as_bool_series(arr: Any, index: pd.Index) -> pd.Series:
    """Normalize any array-like to a boolean Series aligned to `index`."""
    if isinstance(arr, pd.Series):
        if arr.dtype != bool:
            arr = arr.fillna(False).astype(bool)
        return arr.reindex(index, fill_value=False)
    return pd.Series(np.asarray(arr, dtype=bool), index=index)


def _column(df: pd.DataFrame, attribute: str) -> pd.Series:
    """Attribute values, or an all-null Series when the column is absent."""
    if attribute in df.columns:
        return df[attribute]
    return pd.Series(np.nan, index=df.index, dtype=object)


OP_SYMBOLS = {
    np.equal: "==",
    np.not_equal: "!=",
    np.less: "<",
    np.less_equal: "<=",
    np.greater: ">",
    np.greater_equal: ">=",
}


# =========================
# Base predicate + combinators
# =========================

class Predicate:
    """
    Base class for feature predicates producing boolean masks.

    Predicates are composable with bitwise operators:
    - `&` (AND) yields :class:`AndPred`
    - `|` (OR) yields :class:`OrPred`
    - `~` (NOT) yields :class:`NotPred`

    Methods
    -------
    mask(df) : pd.Series
        Return a boolean Series aligned to `df.index`.
    """
    name: str = "Predicate"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        """Return a boolean Series aligned to `df.index`. Subclasses must implement."""
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return AndPred(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return OrPred(self, other)

    def __invert__(self) -> "Predicate":
        return NotPred(self)

    def __repr__(self) -> str:
        return getattr(self, "name", self.__class__.__name__)

    @staticmethod
    def from_column(col: str) -> "Predicate":
        """
        Truth of a boolean attribute, i.e. ``col == True``.

        >>> import pandas as pd
        >>> from cartocover.forms.predicates import Predicate
        >>> df = pd.DataFrame({"capital": [True, False, None]})
        >>> Predicate.from_column("capital").mask(df).tolist()
        [True, False, False]
        """
        return Compare(col, np.equal, True, name="EQ")


@dataclass(frozen=True, repr=False)
class _Include(Predicate):
    name: str = "INCLUDE"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(True, index=df.index, dtype=bool)


@dataclass(frozen=True, repr=False)
class _Exclude(Predicate):
    name: str = "EXCLUDE"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return pd.Series(False, index=df.index, dtype=bool)


INCLUDE = _Include()
EXCLUDE = _Exclude()


@dataclass(frozen=True, repr=False)
class AndPred(Predicate):
    """Logical conjunction (AND) of two predicates."""
    a: Predicate
    b: Predicate
    name: str = field(default="P_and", compare=False)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(self.a.mask(df) & self.b.mask(df), df.index)

    def __repr__(self) -> str:
        return f"({self.a!r} ∧ {self.b!r})"


@dataclass(frozen=True, repr=False)
class OrPred(Predicate):
    """Logical disjunction (OR) of two predicates."""
    a: Predicate
    b: Predicate
    name: str = field(default="P_or", compare=False)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(self.a.mask(df) | self.b.mask(df), df.index)

    def __repr__(self) -> str:
        return f"({self.a!r} ∨ {self.b!r})"


@dataclass(frozen=True, repr=False)
class NotPred(Predicate):
    """Logical negation (NOT) of a predicate."""
    a: Predicate
    name: str = field(default="P_not", compare=False)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(~self.a.mask(df), df.index)

    def __repr__(self) -> str:
        return f"(~{self.a!r})"


# =========================
# Attribute comparisons
# =========================

@dataclass(frozen=True, repr=False)
class Compare(Predicate):
    """
    Vectorized comparison ``attribute OP value`` evaluated per feature.

    Parameters
    ----------
    attribute : str
        Attribute (column) name.
    op : Callable[[Any, Any], Any]
        One of the numpy comparison ufuncs listed in ``OP_SYMBOLS``.
    value : Any
        Literal compared against.

    Notes
    -----
    Ordering comparisons are false on null attributes; ``!=`` is true on them.

    Examples
    --------
    >>> import numpy as np, pandas as pd
    >>> from cartocover.forms.predicates import Compare
    >>> df = pd.DataFrame({"a": [1, None, 3]})
    >>> Compare("a", np.less_equal, 2).mask(df).tolist()
    [True, False, False]
    >>> Compare("a", np.not_equal, 3).mask(df).tolist()
    [True, True, False]
    """
    attribute: str
    op: Callable[[Any, Any], Any]
    value: Any
    name: str = field(default="Compare", compare=False)

    def __post_init__(self):
        if self.op not in OP_SYMBOLS:
            raise ValueError(f"Unsupported comparison operator: {self.op!r}")

    @property
    def symbol(self) -> str:
        return OP_SYMBOLS[self.op]

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = _column(df, self.attribute)
        if self.op is np.equal:
            return _as_bool_series(s.notna() & (s == self.value), df.index)
        if self.op is np.not_equal:
            return _as_bool_series(~(s.notna() & (s == self.value)), df.index)
        out = pd.Series(False, index=df.index, dtype=bool)
        present = s.notna()
        if present.any():
            out[present] = np.asarray(self.op(s[present], self.value), dtype=bool)
        return out

    def __repr__(self) -> str:
        return f"({self.attribute} {self.symbol} {self.value!r})"


def EQ(attribute: str, value: Any) -> Predicate:
    """``attribute == value``"""
    return Compare(attribute, np.equal, value, name="EQ")


def NE(attribute: str, value: Any) -> Predicate:
    """``attribute != value`` (true when the attribute is null)."""
    return Compare(attribute, np.not_equal, value, name="NE")


def LT(attribute: str, value: Any) -> Predicate:
    """``attribute < value``"""
    return Compare(attribute, np.less, value, name="LT")


def LE(attribute: str, value: Any) -> Predicate:
    """``attribute <= value``"""
    return Compare(attribute, np.less_equal, value, name="LE")


def GT(attribute: str, value: Any) -> Predicate:
    """``attribute > value``"""
    return Compare(attribute, np.greater, value, name="GT")


def GE(attribute: str, value: Any) -> Predicate:
    """``attribute >= value``"""
    return Compare(attribute, np.greater_equal, value, name="GE")


# =========================
# Set membership / ranges / nulls
# =========================

@dataclass(frozen=True, repr=False)
class InSet(Predicate):
    """
    Membership predicate: value of `attribute` is in `values`.

    >>> import pandas as pd
    >>> from cartocover.forms.predicates import InSet
    >>> df = pd.DataFrame({"k": [1, 2, None, 4]})
    >>> InSet("k", {2, 4}).mask(df).tolist()
    [False, True, False, True]
    """
    attribute: str
    values: FrozenSet[Any]
    name: str = field(default="InSet", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "values", frozenset(self.values))

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = _column(df, self.attribute)
        return _as_bool_series(s.notna() & s.isin(list(self.values)), df.index)

    def __repr__(self) -> str:
        vals = sorted(self.values, key=repr)
        return f"({self.attribute} in {{{', '.join(repr(v) for v in vals)}}})"


@dataclass(frozen=True, repr=False)
class Between(Predicate):
    """
    Range predicate: ``low <= x <= high`` (bounds optionally strict).

    >>> import pandas as pd
    >>> from cartocover.forms.predicates import Between
    >>> df = pd.DataFrame({"x": [0, 1, 2, 3]})
    >>> Between("x", 1, 2).mask(df).tolist()
    [False, True, True, False]
    >>> Between("x", 1, 2, inclusive_low=False).mask(df).tolist()
    [False, False, True, False]
    """
    attribute: str
    low: Any
    high: Any
    inclusive_low: bool = True
    inclusive_high: bool = True
    name: str = field(default="Between", compare=False)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        s = _column(df, self.attribute)
        out = pd.Series(False, index=df.index, dtype=bool)
        present = s.notna()
        if present.any():
            xv = s[present]
            left_ok = (xv >= self.low) if self.inclusive_low else (xv > self.low)
            right_ok = (xv <= self.high) if self.inclusive_high else (xv < self.high)
            out[present] = np.asarray(left_ok & right_ok, dtype=bool)
        return out

    def __repr__(self) -> str:
        lo = "[" if self.inclusive_low else "("
        hi = "]" if self.inclusive_high else ")"
        return f"({self.attribute} in {lo}{self.low!r}, {self.high!r}{hi})"


@dataclass(frozen=True, repr=False)
class IsNull(Predicate):
    """Null (missing/NaN) check for an attribute."""
    attribute: str
    name: str = field(default="IsNull", compare=False)

    def mask(self, df: pd.DataFrame) -> pd.Series:
        return _as_bool_series(_column(df, self.attribute).isna(), df.index)

    def __repr__(self) -> str:
        return f"({self.attribute} is null)"


# =========================
# Functional predicates
# =========================

@dataclass(frozen=True, repr=False)
class Where(Predicate):
    """
    Opaque vectorized predicate from a function ``fn(df) -> Series[bool]``.

    Simplification treats it as an independent propositional variable.

    Raises
    ------
    ValueError
        If `fn` does not return a boolean Series.

    Examples
    --------
    >>> import pandas as pd
    >>> from cartocover.forms.predicates import Where
    >>> df = pd.DataFrame({"x": [1, 2, 3]})
    >>> Where(lambda d: (d["x"] % 2 == 1), name="odd").mask(df).tolist()
    [True, False, True]
    """
    fn: Callable[[pd.DataFrame], pd.Series]
    name: str = "Where"

    def mask(self, df: pd.DataFrame) -> pd.Series:
        m = self.fn(df)
        if not isinstance(m, pd.Series) or m.dtype != bool:
            raise ValueError("Where(fn) must return a boolean pandas Series.")
        return m.reindex(df.index, fill_value=False)

    def __repr__(self) -> str:
        if self.name and self.name != "Where":
            return self.name
        fn = getattr(self.fn, "__name__", "fn")
        return f"Where({fn})"


# =========================
# Handy shorthands
# =========================

def IN(attribute: str, values: Iterable[Any]) -> Predicate:
    """Shorthand for :class:`InSet`."""
    return InSet(attribute, frozenset(values))


def BETWEEN(attribute: str, lo, hi, inc_lo=True, inc_hi=True) -> Predicate:
    """Shorthand for :class:`Between`."""
    return Between(attribute, lo, hi, inc_lo, inc_hi)


def IS_NULL(attribute: str) -> Predicate:
    """Shorthand for :class:`IsNull`."""
    return IsNull(attribute)


def conjunction(preds: Iterable[Predicate]) -> Predicate:
    """AND of `preds`; INCLUDE when empty."""
    preds = list(preds)
    if not preds:
        return INCLUDE
    return reduce(lambda a, b: AndPred(a, b), preds)


def disjunction(preds: Iterable[Predicate]) -> Predicate:
    """OR of `preds`; EXCLUDE when empty."""
    preds = list(preds)
    if not preds:
        return EXCLUDE
    return reduce(lambda a, b: OrPred(a, b), preds)


def attributes(pred: Predicate) -> Set[str]:
    """
    Attribute names referenced anywhere in `pred`.

    >>> from cartocover.forms.predicates import EQ, GT, attributes
    >>> sorted(attributes(EQ("kind", "road") | ~GT("lanes", 2)))
    ['kind', 'lanes']
    """
    if isinstance(pred, (AndPred, OrPred)):
        return attributes(pred.a) | attributes(pred.b)
    if isinstance(pred, NotPred):
        return attributes(pred.a)
    attr = getattr(pred, "attribute", None)
    return {attr} if isinstance(attr, str) else set()
