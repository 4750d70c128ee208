# src/cartocover/forms/selectors.py

"""
Rule selectors and rules.

A :class:`Selector` is a conjunction of at most one scale-range constraint and
one attribute predicate. An :class:`OrSelector` is a top-level disjunction of
selectors. A :class:`Rule` pairs a selector with an opaque payload (typically
the style properties) and its position in the source.

The two collaborator functions used by the coverage compiler live here too:

- :func:`scale_range` extracts the scale constraint of a conjunctive selector;
- :func:`build_predicate` binds its attribute condition to a target schema.

Examples
--------
>>> from cartocover.forms.selectors import ScaleRange, Data, scale_range
>>> from cartocover.forms.predicates import EQ
>>> sel = ScaleRange(0, 1000) & Data(EQ("kind", "road"))
>>> str(scale_range(sel))
'[0, 1000)'
>>> sel.predicate
(kind == 'road')
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Tuple, Union
import math

from .intervals import Interval
from .predicates import Predicate, INCLUDE, AndPred, OrPred, NotPred, attributes
from .schema import FeatureSchema, SchemaError

__all__ = [
    "Selector",
    "OrSelector",
    "AnySelector",
    "ScaleRange",
    "Data",
    "Rule",
    "SelectorError",
    "scale_range",
    "build_predicate",
]


class SelectorError(ValueError):
    """A selector violates the shape expected by the coverage compiler."""


# =========================
# Selectors
# =========================

@dataclass(frozen=True)
class Selector:
    """
    Conjunctive selector: optional scale range AND attribute predicate.

    Parameters
    ----------
    scale : Interval, optional
        Scale-denominator range; ``None`` means no scale constraint.
    predicate : Predicate, default INCLUDE
    """
    scale: Optional[Interval] = None
    predicate: Predicate = INCLUDE

    def __and__(self, other: "Selector") -> "Selector":
        if isinstance(other, OrSelector):
            return OrSelector(tuple(self & c for c in other.children))
        if self.scale is None:
            scale = other.scale
        elif other.scale is None:
            scale = self.scale
        else:
            # an empty overlap still has to constrain, keep it as an empty range
            scale = self.scale.intersect(other.scale) or Interval(self.scale.low, self.scale.low, True, False)
        if self.predicate == INCLUDE:
            pred = other.predicate
        elif other.predicate == INCLUDE:
            pred = self.predicate
        else:
            pred = AndPred(self.predicate, other.predicate)
        return Selector(scale, pred)

    def __or__(self, other: "AnySelector") -> "OrSelector":
        return OrSelector((self, other))

    def __str__(self) -> str:
        parts = []
        if self.scale is not None:
            parts.append(f"scale in {self.scale}")
        if self.predicate != INCLUDE or not parts:
            parts.append(repr(self.predicate))
        return " ∧ ".join(parts)


@dataclass(frozen=True)
class OrSelector:
    """
    Disjunction of selectors.

    The compiler only accepts a single level of OR; nested disjunctions are a
    caller error. Use :meth:`flattened` to expand them beforehand.
    """
    children: Tuple["AnySelector", ...]

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(self.children))

    def __or__(self, other: "AnySelector") -> "OrSelector":
        return OrSelector(self.children + (other,))

    def __and__(self, other: Selector) -> "OrSelector":
        return OrSelector(tuple(c & other for c in self.children))

    def flattened(self) -> "OrSelector":
        """
        Equivalent OR whose children are all conjunctive selectors.

        >>> from cartocover.forms.selectors import OrSelector, ScaleRange
        >>> nested = OrSelector((ScaleRange(0, 1), OrSelector((ScaleRange(1, 2), ScaleRange(2, 3)))))
        >>> len(nested.flattened().children)
        3
        """
        out: List[Selector] = []
        for c in self.children:
            if isinstance(c, OrSelector):
                out.extend(c.flattened().children)
            else:
                out.append(c)
        return OrSelector(tuple(out))

    def __str__(self) -> str:
        return " ∨ ".join(f"({c})" for c in self.children)


AnySelector = Union[Selector, OrSelector]


def ScaleRange(
    low: float = 0.0,
    high: float = math.inf,
    low_inclusive: bool = True,
    high_inclusive: bool = False,
) -> Selector:
    """Selector constraining only the scale denominator."""
    return Selector(scale=Interval(low, high, low_inclusive, high_inclusive))


def Data(predicate: Predicate) -> Selector:
    """Selector constraining only feature attributes."""
    return Selector(predicate=predicate)


# =========================
# Collaborators
# =========================

def scale_range(selector: Selector) -> Optional[Interval]:
    """Scale range of a conjunctive selector, ``None`` when unconstrained."""
    if isinstance(selector, OrSelector):
        raise SelectorError("scale_range expects a conjunctive selector, got an OR")
    return selector.scale


def _check_literals(pred: Predicate, schema: FeatureSchema) -> None:
    if isinstance(pred, (AndPred, OrPred)):
        _check_literals(pred.a, schema)
        _check_literals(pred.b, schema)
        return
    if isinstance(pred, NotPred):
        _check_literals(pred.a, schema)
        return
    attr = getattr(pred, "attribute", None)
    if not isinstance(attr, str):
        return
    for name in ("value", "low", "high"):
        if hasattr(pred, name) and not schema.accepts(attr, getattr(pred, name)):
            raise SchemaError(
                f"{pred!r}: literal {getattr(pred, name)!r} does not fit "
                f"{schema.kind(attr).value} attribute {attr!r}"
            )
    for v in getattr(pred, "values", ()):
        if not schema.accepts(attr, v):
            raise SchemaError(f"{pred!r}: literal {v!r} does not fit attribute {attr!r}")


def build_predicate(
    selector: Selector,
    schema: Optional[FeatureSchema] = None,
    *,
    strict: bool = False,
) -> Predicate:
    """
    Attribute predicate of a conjunctive selector, bound to `schema`.

    In strict mode every referenced attribute must exist in the schema and
    every literal must fit the attribute kind; otherwise :class:`SchemaError`
    is raised. In lenient mode unknown attributes are left to simplification,
    which treats them as always null.
    """
    if isinstance(selector, OrSelector):
        raise SelectorError("build_predicate expects a conjunctive selector, got an OR")
    pred = selector.predicate
    if strict and schema is not None:
        schema.check(sorted(attributes(pred)))
        _check_literals(pred, schema)
    return pred


# =========================
# Rules
# =========================

@dataclass(frozen=True)
class Rule:
    """
    A selector with its payload.

    Parameters
    ----------
    selector : Selector or OrSelector
    payload : Any
        Opaque output (e.g. a mapping of style properties); never inspected.
    position : int, default 0
        Position in the source, used for ordering and diagnostics.
    comment : str, optional
    origin : Rule, optional
        For derived rules, the source rule they were cut from.

    Examples
    --------
    >>> from cartocover.forms.selectors import Rule, ScaleRange
    >>> r = Rule(ScaleRange(0, 100), {"stroke": "red"}, position=3)
    >>> d = r.derive(ScaleRange(50, 100))
    >>> d.payload is r.payload, d.source is r, d.position
    (True, True, 3)
    """
    selector: AnySelector
    payload: Any = None
    position: int = 0
    comment: Optional[str] = None
    origin: Optional["Rule"] = field(default=None, compare=False, repr=False)

    @property
    def source(self) -> "Rule":
        """The caller-supplied rule this one descends from (itself if original)."""
        return self.origin if self.origin is not None else self

    @property
    def is_derived(self) -> bool:
        return self.origin is not None

    def derive(self, selector: AnySelector) -> "Rule":
        return replace(self, selector=selector, origin=self.source)

    def __str__(self) -> str:
        label = f"#{self.position} " if self.comment is None else f"#{self.position} /* {self.comment} */ "
        return f"{label}{self.selector} {{{self.payload}}}"
