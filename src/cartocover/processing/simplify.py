# src/cartocover/processing/simplify.py

"""
Schema-aware predicate simplification.

:func:`simplify_predicate` returns a canonical predicate that is logically
equivalent to its input (under the ``mask`` semantics of
:mod:`cartocover.forms.predicates`) and is **exactly** ``EXCLUDE`` whenever the
input can never be satisfied.

Method
------
1. Negations are pushed down to the atoms and the predicate is expanded into
   disjunctive normal form. Each term keeps one value set per attribute
   (:mod:`cartocover.processing.domains`) plus a set of opaque literals, so a
   conjunction of atoms on the same attribute collapses into a single set and
   contradictions show up as an empty set. Unsatisfiable terms are dropped as
   soon as they appear, which keeps the expansion small.
2. Terms implied by other terms are dropped, and terms differing in a single
   attribute (or a single opaque literal) are merged.
3. If no term is left the result is ``EXCLUDE``. If a term is unconstrained,
   or the negation of the remaining terms is unsatisfiable, the result is
   ``INCLUDE``. The negation check is bounded by `max_terms`.
4. The terms are rendered back into comparison atoms, sorted by their text.

Schema knowledge
----------------
- attributes absent from a supplied schema are always null;
- boolean attributes range over ``{True, False}`` and categorical attributes
  over their categories;
- without a schema the kind of an attribute is inferred from its literals;
  atoms that do not fit the kind (e.g. ``name < "m"``) stay opaque.

Examples
--------
>>> from cartocover.forms.predicates import EQ, NE, GT, LE, INCLUDE, EXCLUDE
>>> from cartocover.processing.simplify import simplify_predicate
>>> simplify_predicate(EQ("kind", "B") & ~EQ("kind", "A"))
(kind == 'B')
>>> simplify_predicate(GT("pop", 10) & LE("pop", 5)) is EXCLUDE
True
>>> simplify_predicate(EQ("kind", "A") | NE("kind", "A")) is INCLUDE
True
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple
import logging
import math

import numpy as np

from cartocover.forms.intervals import Interval
from cartocover.forms.predicates import (
    Predicate,
    INCLUDE,
    EXCLUDE,
    AndPred,
    OrPred,
    NotPred,
    Compare,
    InSet,
    Between,
    IsNull,
    EQ,
    NE,
    LT,
    LE,
    GT,
    GE,
    conjunction,
    disjunction,
)
from cartocover.forms.schema import AttributeKind, FeatureSchema, literal_kind
from .domains import DiscreteValues, NumericValues, ValueSet

logger = logging.getLogger(__name__)

__all__ = [
    "simplify_predicate",
    "is_satisfiable",
    "TooManyTerms",
]


class TooManyTerms(RuntimeError):
    """Raised internally when a bounded DNF expansion exceeds its budget."""


# =========================
# DNF terms
# =========================

Literal = Tuple[Predicate, bool]


@dataclass(frozen=True)
class _Term:
    constraints: Tuple[Tuple[str, ValueSet], ...] = ()
    literals: FrozenSet[Literal] = frozenset()

    @property
    def is_true(self) -> bool:
        return not self.constraints and not self.literals

    def as_dict(self) -> Dict[str, ValueSet]:
        return dict(self.constraints)


def _make_term(constraints: Dict[str, ValueSet], literals: FrozenSet[Literal]) -> _Term:
    return _Term(tuple(sorted(constraints.items(), key=lambda kv: kv[0])), frozenset(literals))


_TRUE_TERM = _Term()


# =========================
# Attribute context
# =========================

def _literals_of(pred: Predicate) -> List[object]:
    if isinstance(pred, Compare):
        return [pred.value]
    if isinstance(pred, InSet):
        return list(pred.values)
    if isinstance(pred, Between):
        return [pred.low, pred.high]
    return []


class _Context:
    """Per-call view of attribute kinds and universes."""

    def __init__(self, pred: Predicate, schema: Optional[FeatureSchema]):
        self.schema = schema
        self._inferred: Dict[str, Optional[AttributeKind]] = {}
        if schema is None:
            self._infer(pred)

    def _infer(self, pred: Predicate) -> None:
        seen: Dict[str, set] = {}
        null_checked: set = set()
        stack = [pred]
        while stack:
            p = stack.pop()
            if isinstance(p, (AndPred, OrPred)):
                stack.extend((p.a, p.b))
            elif isinstance(p, NotPred):
                stack.append(p.a)
            elif isinstance(p, IsNull):
                null_checked.add(p.attribute)
            elif isinstance(p, (Compare, InSet, Between)):
                kinds = seen.setdefault(p.attribute, set())
                kinds.update(literal_kind(v) for v in _literals_of(p))
        for attr, kinds in seen.items():
            self._inferred[attr] = kinds.pop() if len(kinds) == 1 else None
        # only tested for null: any unbounded discrete universe fits
        for attr in null_checked - set(seen):
            self._inferred[attr] = AttributeKind.STRING

    def is_missing(self, attr: str) -> bool:
        return self.schema is not None and attr not in self.schema

    def kind(self, attr: str) -> Optional[AttributeKind]:
        if self.schema is not None:
            return self.schema.kind(attr)
        return self._inferred.get(attr)

    def universe(self, attr: str) -> Optional[ValueSet]:
        kind = self.kind(attr)
        if kind is AttributeKind.NUMERIC:
            return NumericValues.universe()
        if kind is None:
            return None
        domain = self.schema.domain(attr) if self.schema is not None else None
        return DiscreteValues.universe(domain)

    def values(self, atom: Predicate) -> Optional[ValueSet]:
        """Value set of a comparison atom, or ``None`` when it stays opaque."""
        attr = getattr(atom, "attribute", None)
        if not isinstance(attr, str):
            return None
        kind = self.kind(attr)
        if kind is None:
            return None
        if isinstance(atom, IsNull):
            vs = NumericValues.only_null() if kind is AttributeKind.NUMERIC else DiscreteValues.only_null()
            return vs
        if kind is AttributeKind.NUMERIC:
            return _numeric_values(atom)
        return _discrete_values(atom, kind)


def _is_number(v) -> bool:
    return literal_kind(v) is AttributeKind.NUMERIC and not math.isnan(float(v))


def _numeric_values(atom: Predicate) -> Optional[NumericValues]:
    inf = math.inf
    if isinstance(atom, Compare):
        if not _is_number(atom.value):
            return None
        v = float(atom.value)
        if atom.op is np.equal:
            return NumericValues.points([v])
        if atom.op is np.not_equal:
            return NumericValues.points([v]).complement()
        if atom.op is np.less:
            return NumericValues.interval(Interval(-inf, v, True, False))
        if atom.op is np.less_equal:
            return NumericValues.interval(Interval(-inf, v, True, True))
        if atom.op is np.greater:
            return NumericValues.interval(Interval(v, inf, False, True))
        return NumericValues.interval(Interval(v, inf, True, True))
    if isinstance(atom, InSet):
        if not all(_is_number(v) for v in atom.values):
            return None
        return NumericValues.points(float(v) for v in atom.values)
    if isinstance(atom, Between):
        if not (_is_number(atom.low) and _is_number(atom.high)):
            return None
        lo, hi = float(atom.low), float(atom.high)
        if lo > hi:
            return NumericValues.nothing()
        return NumericValues.interval(Interval(lo, hi, atom.inclusive_low, atom.inclusive_high))
    return None


def _normalize_literal(v):
    return bool(v) if isinstance(v, np.bool_) else v


def _discrete_values(atom: Predicate, kind: AttributeKind) -> Optional[DiscreteValues]:
    def fits(v) -> bool:
        lk = literal_kind(v)
        if kind is AttributeKind.CATEGORICAL:
            return lk is not None and lk is not AttributeKind.BOOLEAN
        return lk is kind

    if isinstance(atom, Compare):
        if not fits(atom.value):
            return None
        v = _normalize_literal(atom.value)
        if atom.op is np.equal:
            return DiscreteValues.only(v)
        if atom.op is np.not_equal:
            return DiscreteValues.only(v).complement()
        return None
    if isinstance(atom, InSet):
        if not all(fits(v) for v in atom.values):
            return None
        return DiscreteValues.only(*(_normalize_literal(v) for v in atom.values))
    return None


def _null_truth(atom: Predicate) -> bool:
    """Truth value of `atom` on a feature where its attribute is null."""
    if isinstance(atom, IsNull):
        return True
    return isinstance(atom, Compare) and atom.op is np.not_equal


# =========================
# Expansion
# =========================

def _conjoin(a: _Term, b: _Term, ctx: _Context) -> Optional[_Term]:
    cons = a.as_dict()
    for attr, vs in b.constraints:
        if attr in cons:
            vs = cons[attr].intersect(vs)
            if vs.is_empty:
                return None
        cons[attr] = vs
    lits = a.literals | b.literals
    for p, pol in lits:
        if (p, not pol) in lits:
            return None
    return _make_term(cons, lits)


def _product(left: List[_Term], right: List[_Term], ctx: _Context, limit: Optional[int]) -> List[_Term]:
    out: List[_Term] = []
    for a in left:
        for b in right:
            t = _conjoin(a, b, ctx)
            if t is not None:
                out.append(t)
                if limit is not None and len(out) > limit:
                    raise TooManyTerms(f"DNF expansion exceeded {limit} terms")
    return _reduce(out, ctx)


def _atom_terms(atom: Predicate, negate: bool, ctx: _Context) -> List[_Term]:
    attr = getattr(atom, "attribute", None)
    if isinstance(attr, str) and ctx.is_missing(attr):
        return [_TRUE_TERM] if _null_truth(atom) != negate else []
    vs = ctx.values(atom)
    if vs is None:
        return [_Term(literals=frozenset({(atom, not negate)}))]
    if negate:
        vs = vs.complement()
    universe = ctx.universe(attr)
    vs = vs.intersect(universe)
    if vs.is_empty:
        return []
    if vs == universe:
        return [_TRUE_TERM]
    return [_make_term({attr: vs}, frozenset())]


def _dnf(pred: Predicate, negate: bool, ctx: _Context, limit: Optional[int] = None) -> List[_Term]:
    if pred == INCLUDE:
        return [] if negate else [_TRUE_TERM]
    if pred == EXCLUDE:
        return [_TRUE_TERM] if negate else []
    if isinstance(pred, NotPred):
        return _dnf(pred.a, not negate, ctx, limit)
    if isinstance(pred, (AndPred, OrPred)):
        conjunctive = isinstance(pred, AndPred) != negate
        left = _dnf(pred.a, negate, ctx, limit)
        if conjunctive:
            if not left:
                return []
            return _product(left, _dnf(pred.b, negate, ctx, limit), ctx, limit)
        return _reduce(left + _dnf(pred.b, negate, ctx, limit), ctx)
    return _atom_terms(pred, negate, ctx)


# =========================
# Reduction
# =========================

def _implies(a: _Term, b: _Term) -> bool:
    """True when every feature matching `a` also matches `b`."""
    if not b.literals <= a.literals:
        return False
    ca = a.as_dict()
    for attr, vs in b.constraints:
        if attr not in ca or not ca[attr].issubset(vs):
            return False
    return True


def _merge(a: _Term, b: _Term, ctx: _Context) -> Optional[_Term]:
    """Single term equivalent to ``a ∨ b`` when they differ in one place."""
    if a.literals == b.literals:
        ca, cb = a.as_dict(), b.as_dict()
        if ca.keys() != cb.keys():
            return None
        diff = [k for k in ca if ca[k] != cb[k]]
        if len(diff) != 1:
            return None
        attr = diff[0]
        merged = ca[attr].union(cb[attr])
        if merged == ctx.universe(attr):
            del ca[attr]
        else:
            ca[attr] = merged
        return _make_term(ca, a.literals)
    if a.constraints == b.constraints:
        sym = a.literals ^ b.literals
        if len(sym) == 2:
            (p1, s1), (p2, s2) = sorted(sym, key=lambda lit: lit[1])
            if p1 == p2 and s1 != s2:
                return _Term(a.constraints, a.literals & b.literals)
    return None


def _reduce(terms: List[_Term], ctx: _Context) -> List[_Term]:
    terms = list(dict.fromkeys(terms))
    changed = True
    while changed:
        changed = False
        if any(t.is_true for t in terms):
            return [_TRUE_TERM]
        kept: List[_Term] = []
        for i, t in enumerate(terms):
            if any(j != i and _implies(t, u) and (j < i or not _implies(u, t))
                   for j, u in enumerate(terms)):
                changed = True
                continue
            kept.append(t)
        terms = kept
        for i in range(len(terms)):
            for j in range(i + 1, len(terms)):
                m = _merge(terms[i], terms[j], ctx)
                if m is not None:
                    terms = [t for k, t in enumerate(terms) if k not in (i, j)] + [m]
                    terms = list(dict.fromkeys(terms))
                    changed = True
                    break
            if changed:
                break
    return terms


def _negate_terms(terms: List[_Term], ctx: _Context, limit: int) -> List[_Term]:
    """DNF of ``NOT (t1 ∨ t2 ∨ ...)``, bounded by `limit` terms."""
    acc: List[_Term] = [_TRUE_TERM]
    for t in terms:
        clause: List[_Term] = []
        for attr, vs in t.constraints:
            comp = vs.complement().intersect(ctx.universe(attr))
            if not comp.is_empty:
                clause.append(_make_term({attr: comp}, frozenset()))
        for p, pol in t.literals:
            clause.append(_Term(literals=frozenset({(p, not pol)})))
        acc = _product(acc, clause, ctx, limit)
        if not acc:
            return []
    return acc


# =========================
# Rendering
# =========================

def _in_or_eq(attr: str, values) -> Predicate:
    values = sorted(values, key=repr)
    if len(values) == 1:
        return EQ(attr, values[0])
    return InSet(attr, frozenset(values))


def _not_in_or_ne(attr: str, values) -> Predicate:
    values = sorted(values, key=repr)
    if len(values) == 1:
        return NE(attr, values[0])
    return NotPred(InSet(attr, frozenset(values)))


def _render_interval(attr: str, iv: Interval) -> Predicate:
    if iv.is_point:
        return EQ(attr, iv.low)
    open_below = iv.low == -math.inf and iv.low_inclusive
    open_above = iv.high == math.inf and iv.high_inclusive
    if open_below and open_above:
        return NotPred(IsNull(attr))
    if open_below:
        return LE(attr, iv.high) if iv.high_inclusive else LT(attr, iv.high)
    if open_above:
        return GE(attr, iv.low) if iv.low_inclusive else GT(attr, iv.low)
    return Between(attr, iv.low, iv.high, iv.low_inclusive, iv.high_inclusive)


def _render_numeric(attr: str, vs: NumericValues) -> Predicate:
    comp = vs.complement()
    holes = comp.intervals.points()
    if not comp.null and holes:
        return _not_in_or_ne(attr, holes)
    parts: List[Predicate] = [IsNull(attr)] if vs.null else []
    points = vs.intervals.points()
    if points is not None and len(points) > 1:
        parts.append(InSet(attr, frozenset(points)))
    else:
        parts.extend(_render_interval(attr, iv) for iv in vs.intervals)
    return disjunction(parts)


def _render_discrete(attr: str, vs: DiscreteValues, ctx: _Context) -> Predicate:
    if vs.cofinite:
        base = _not_in_or_ne(attr, vs.values) if vs.values else None
        if vs.null:
            return base
        not_null = NotPred(IsNull(attr))
        return conjunction([not_null, base]) if base is not None else not_null
    comp = vs.complement().intersect(ctx.universe(attr))
    if (not comp.null and not comp.cofinite and comp.values
            and (vs.null or len(comp.values) < len(vs.values))):
        return _not_in_or_ne(attr, comp.values)
    parts: List[Predicate] = [IsNull(attr)] if vs.null else []
    if vs.values:
        parts.append(_in_or_eq(attr, vs.values))
    return disjunction(parts)


def _render_term(term: _Term, ctx: _Context) -> Predicate:
    parts: List[Predicate] = []
    for attr, vs in term.constraints:
        if isinstance(vs, NumericValues):
            parts.append(_render_numeric(attr, vs))
        else:
            parts.append(_render_discrete(attr, vs, ctx))
    lits = sorted(term.literals, key=lambda lit: (repr(lit[0]), lit[1]))
    parts.extend(p if pol else NotPred(p) for p, pol in lits)
    return conjunction(parts)


# =========================
# Public API
# =========================

_MAX_PASSES = 16


def _simplify_once(
    pred: Predicate,
    schema: Optional[FeatureSchema],
    max_terms: int,
    detect_tautologies: bool,
) -> Predicate:
    ctx = _Context(pred, schema)
    terms = _dnf(pred, False, ctx)
    if not terms:
        return EXCLUDE
    if any(t.is_true for t in terms):
        return INCLUDE
    if detect_tautologies:
        try:
            if not _negate_terms(terms, ctx, max_terms):
                return INCLUDE
        except TooManyTerms:
            logger.debug("Tautology check skipped for %r: more than %d terms", pred, max_terms)
    rendered = sorted((_render_term(t, ctx) for t in terms), key=repr)
    return disjunction(rendered)


def simplify_predicate(
    pred: Predicate,
    schema: Optional[FeatureSchema] = None,
    *,
    max_terms: int = 256,
    detect_tautologies: bool = True,
) -> Predicate:
    """
    Canonical, logically equivalent form of `pred`.

    Parameters
    ----------
    pred : Predicate
    schema : FeatureSchema, optional
        Target schema; enables finite boolean/categorical domains and folds
        attributes missing from it to null.
    max_terms : int, default 256
        Budget for the negation expansion used to recognise tautologies.
    detect_tautologies : bool, default True

    Returns
    -------
    Predicate
        ``EXCLUDE`` for any unsatisfiable input, ``INCLUDE`` for recognised
        tautologies, otherwise an OR of ANDs of comparison atoms.
    """
    # one pass can expose structure the next pass folds further; iterate to a
    # fixed point, or to the smallest member of a cycle
    seen: List[Predicate] = [pred]
    current = pred
    for _ in range(_MAX_PASSES):
        current = _simplify_once(current, schema, max_terms, detect_tautologies)
        if current in seen:
            return min(seen[seen.index(current):], key=repr)
        seen.append(current)
    logger.debug("No fixed point for %r after %d passes", pred, _MAX_PASSES)
    return current


def is_satisfiable(pred: Predicate, schema: Optional[FeatureSchema] = None) -> bool:
    """
    True unless `pred` can never hold.

    >>> from cartocover.forms.predicates import EQ
    >>> from cartocover.processing.simplify import is_satisfiable
    >>> is_satisfiable(EQ("a", 1) & EQ("a", 2))
    False
    """
    return bool(_dnf(pred, False, _Context(pred, schema)))
