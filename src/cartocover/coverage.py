# src/cartocover/coverage.py

"""
Domain coverage: turn an ordered stream of overlapping rules into
non-overlapping ones.

The domain is the plane *scale denominator × feature*. Every rule selects a
region of it; a rule added after others only keeps the part of its region
nobody claimed before. :class:`DomainCoverage` keeps the union of the regions
claimed so far as a list of pairwise-disjoint :class:`Fragment` rectangles
(scale range × predicate) and, for every new rule, returns derived rules
covering exactly the newly claimed part.

Examples
--------
>>> from cartocover.coverage import DomainCoverage
>>> from cartocover.forms.selectors import Rule, ScaleRange
>>> cov = DomainCoverage()
>>> first = Rule(ScaleRange(0, 1000), {"stroke": "red"})
>>> cov.add_rule(first) == [first]
True
>>> [str(r.selector) for r in cov.add_rule(Rule(ScaleRange(500, 1500), {"stroke": "blue"}))]
['scale in [1000, 1500)']
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, List, Optional, Tuple
import logging
import math

import pandas as pd

from .config import CoverageConfig
from .forms.intervals import Interval
from .forms.predicates import Predicate, EXCLUDE, OrPred
from .forms.schema import FeatureSchema
from .forms.selectors import (
    AnySelector,
    OrSelector,
    Rule,
    Selector,
    SelectorError,
    build_predicate,
    scale_range,
)
from .processing.simplify import simplify_predicate

logger = logging.getLogger(__name__)

__all__ = [
    "FULL_SCALE_RANGE",
    "Fragment",
    "DomainCoverage",
    "compile_rules",
]

FULL_SCALE_RANGE = Interval(0.0, math.inf, True, False)


# =========================
# Fragment
# =========================

@dataclass(frozen=True)
class Fragment:
    """
    One rectangle of the domain: a scale range times a predicate.

    Parameters
    ----------
    scale_range : Interval
    predicate : Predicate
    """
    scale_range: Interval
    predicate: Predicate

    def difference(
        self,
        other: "Fragment",
        simplify: Callable[[Predicate], Predicate] = simplify_predicate,
    ) -> List["Fragment"]:
        """
        Part of this fragment not covered by `other`, as 0 to 3 fragments.

        Outside `other`'s scale range the original predicate survives whole;
        on the shared scale range only ``self ∧ ¬other`` survives.

        Examples
        --------
        >>> from cartocover.coverage import Fragment
        >>> from cartocover.forms.intervals import Interval
        >>> from cartocover.forms.predicates import INCLUDE
        >>> a = Fragment(Interval(0, 100), INCLUDE)
        >>> b = Fragment(Interval(20, 50), INCLUDE)
        >>> [str(f.scale_range) for f in a.difference(b)]
        ['[0, 20)', '[50, 100)']
        """
        overlap = self.scale_range.intersect(other.scale_range)
        if overlap is None:
            return [self]
        result = [Fragment(piece, self.predicate) for piece in self.scale_range.subtract(other.scale_range)]
        remainder = simplify(self.predicate & ~other.predicate)
        if remainder != EXCLUDE:
            result.append(Fragment(overlap, remainder))
        return result

    def to_selector(self) -> Selector:
        return Selector(self.scale_range, self.predicate)

    def mask(self, scale: float, df: pd.DataFrame) -> pd.Series:
        """Features of `df` inside this fragment at scale denominator `scale`."""
        if not self.scale_range.contains(scale):
            return pd.Series(False, index=df.index, dtype=bool)
        return self.predicate.mask(df)

    def __str__(self) -> str:
        return f"Fragment[scale_range={self.scale_range}, predicate={self.predicate!r}]"


# =========================
# Coverage
# =========================

class DomainCoverage:
    """
    Accumulated coverage of the scale × feature domain.

    Feed rules in priority order through :meth:`add_rule`; each call returns
    the derived rules that cover what the rule adds to the coverage. One
    instance serves one rule set and is not meant to be shared between
    threads.

    Parameters
    ----------
    schema : FeatureSchema, optional
        Target feature schema used to bind and simplify predicates. It is read,
        never modified.
    config : CoverageConfig, optional
    """

    def __init__(
        self,
        schema: Optional[FeatureSchema] = None,
        config: Optional[CoverageConfig] = None,
    ) -> None:
        self.schema = schema
        self.config = config if config is not None else CoverageConfig()
        self._fragments: List[Fragment] = []

    # ------------------------------------------------------------------

    def simplify(self, pred: Predicate) -> Predicate:
        return simplify_predicate(
            pred,
            self.schema,
            max_terms=self.config.max_terms,
            detect_tautologies=self.config.detect_tautologies,
        )

    def to_fragments(self, selector: AnySelector) -> List[Fragment]:
        """
        Flatten a selector into pairwise-disjoint fragments.

        Disjuncts with identical scale ranges are merged; a disjunct overlapping
        earlier ones only keeps the part they do not cover.

        Raises
        ------
        SelectorError
            If an OR is nested inside the top-level OR.
        """
        if isinstance(selector, OrSelector):
            for child in selector.children:
                if isinstance(child, OrSelector):
                    raise SelectorError(
                        "Unexpected OR selector nested inside another one; "
                        "selectors must be flattened before computing coverage"
                    )
            children: Tuple[Selector, ...] = selector.children
        else:
            children = (selector,)

        result: List[Fragment] = []
        for child in children:
            rng = scale_range(child)
            if rng is None:
                rng = FULL_SCALE_RANGE
            if rng.is_empty:
                continue
            pred = build_predicate(child, self.schema, strict=self.config.strict_schema)
            for i, existing in enumerate(result):
                if existing.scale_range == rng:
                    result[i] = Fragment(rng, self.simplify(OrPred(existing.predicate, pred)))
                    break
            else:
                result.append(Fragment(rng, pred))

        # disjuncts with overlapping ranges: later ones keep only what earlier ones miss
        disjoint: List[Fragment] = []
        for frag in result:
            pieces = [frag]
            for kept in disjoint:
                pieces = [p for piece in pieces for p in piece.difference(kept, self.simplify)]
            disjoint.extend(pieces)
        logger.debug("Flattened %d disjunct(s) into %d fragment(s)", len(children), len(disjoint))
        return disjoint

    def add_rule(self, rule: Rule) -> List[Rule]:
        """
        Add `rule` to the coverage and return the derived rules for the part of
        its domain that was not covered yet.

        Returns
        -------
        list of Rule
            ``[rule]`` itself when the coverage was empty, ``[]`` when the rule
            is fully shadowed, otherwise one derived rule per new fragment.
        """
        incoming = self.to_fragments(rule.selector)

        if not self._fragments:
            self._fragments = list(incoming)
            logger.debug("Rule #%s seeds the coverage with %d fragment(s)", rule.position, len(incoming))
            return [rule]

        remaining = list(incoming)
        for existing in self._fragments:
            remaining = [piece for frag in remaining for piece in frag.difference(existing, self.simplify)]
            if not remaining:
                break

        if not remaining:
            logger.debug("Rule #%s is fully shadowed by earlier rules", rule.position)
            return []

        derived = [rule.derive(frag.to_selector()) for frag in remaining]
        compacted = self._compact(self._fragments + remaining)
        self._fragments = compacted
        logger.debug(
            "Rule #%s produced %d derived rule(s); coverage now holds %d fragment(s)",
            rule.position, len(derived), len(compacted),
        )
        return derived

    def _compact(self, fragments: List[Fragment]) -> List[Fragment]:
        """Sort by scale range and merge neighbours with exactly equal ranges."""
        ordered = sorted(fragments, key=lambda f: f.scale_range.sort_key)
        combined: List[Fragment] = []
        for frag in ordered:
            if combined and combined[-1].scale_range == frag.scale_range:
                prev = combined[-1]
                combined[-1] = Fragment(prev.scale_range, self.simplify(OrPred(frag.predicate, prev.predicate)))
            else:
                combined.append(frag)
        return combined

    # ------------------------------------------------------------------

    @property
    def fragments(self) -> Tuple[Fragment, ...]:
        return tuple(self._fragments)

    @property
    def is_empty(self) -> bool:
        return not self._fragments

    def reset(self) -> None:
        self._fragments = []

    def covers(self, scale: float, df: pd.DataFrame) -> pd.Series:
        """Features of `df` already covered at scale denominator `scale`."""
        out = pd.Series(False, index=df.index, dtype=bool)
        for frag in self._fragments:
            out |= frag.mask(scale, df)
        return out

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(tuple(self._fragments))

    def __str__(self) -> str:
        lines = [f"DomainCoverage[items={len(self._fragments)},"]
        lines.extend(str(f) for f in self._fragments)
        lines.append("] // DomainCoverage end")
        return "\n".join(lines)


def compile_rules(
    rules: Iterable[Rule],
    schema: Optional[FeatureSchema] = None,
    config: Optional[CoverageConfig] = None,
    *,
    key: Optional[Callable[[Rule], object]] = None,
) -> List[Rule]:
    """
    Compile `rules` into a non-overlapping rule list.

    Parameters
    ----------
    rules : iterable of Rule
        Rules in priority order (earlier wins), unless `key` is given.
    schema : FeatureSchema, optional
    config : CoverageConfig, optional
    key : callable, optional
        Sort key applied (stably) before compiling, e.g.
        ``lambda r: r.position``.

    Returns
    -------
    list of Rule
        Concatenation of the derived rules of every input rule, in call order.
    """
    rules = list(rules)
    if key is not None:
        rules = sorted(rules, key=key)
    coverage = DomainCoverage(schema, config)
    compiled: List[Rule] = []
    for rule in rules:
        compiled.extend(coverage.add_rule(rule))
    logger.debug("Compiled %d rule(s) into %d", len(rules), len(compiled))
    return compiled
