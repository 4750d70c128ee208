import math

import pandas as pd
import pytest

from cartocover.config import CoverageConfig
from cartocover.coverage import FULL_SCALE_RANGE, DomainCoverage, Fragment, compile_rules
from cartocover.forms.intervals import Interval
from cartocover.forms.predicates import INCLUDE, EXCLUDE, EQ, NE, GT, LE, IN, IS_NULL
from cartocover.forms.schema import SchemaError
from cartocover.forms.selectors import (
    Selector, OrSelector, ScaleRange, Data, Rule, SelectorError,
)


# -----------------------
# Helpers
# -----------------------

def region(selector, scale, df):
    """Features of `df` selected by `selector` at `scale`, straight from its definition."""
    children = selector.children if isinstance(selector, OrSelector) else (selector,)
    out = pd.Series(False, index=df.index, dtype=bool)
    for c in children:
        rng = c.scale if c.scale is not None else FULL_SCALE_RANGE
        if rng.contains(scale):
            out |= c.predicate.mask(df)
    return out


def stacked(fragments, scale, df):
    """Number of fragments containing each feature at `scale`."""
    total = pd.Series(0, index=df.index, dtype=int)
    for f in fragments:
        total += f.mask(scale, df).astype(int)
    return total


@pytest.fixture
def source_rules():
    return [
        Rule(ScaleRange(0, 1000) & Data(EQ("kind", "road")), "road-small", position=0),
        Rule((ScaleRange(0, 10) & Data(EQ("kind", "rail"))) | Data(GT("lanes", 2)), "rail-or-wide", position=1),
        Rule(ScaleRange(500, 1500), "everything-mid", position=2),
        Rule(Data(GT("lanes", 3)), "wide", position=3),
        Rule(ScaleRange(100, 200) & Data(NE("kind", "rail")), "not-rail", position=4),
        Rule(ScaleRange(100, 200) & Data(EQ("kind", "rail")), "rail", position=5),
        Rule((ScaleRange(0, 100) & Data(IS_NULL("lanes")))
             | (ScaleRange(1500, 5000) & Data(IN("kind", ["river", "rail"]))), "mixed", position=6),
        Rule(ScaleRange(0, 50), "tiny", position=7),
        Rule(ScaleRange(0, 1000, False, True) & Data(LE("lanes", 2)), "narrow", position=8),
        Rule(Selector(), "fallback", position=9),
    ]


# -----------------------
# Fragment
# -----------------------

def test_difference_disjoint_scales():
    a = Fragment(Interval(0, 10), EQ("kind", "road"))
    b = Fragment(Interval(10, 20), INCLUDE)
    assert a.difference(b) == [a]

def test_difference_inner_range_splits_in_three():
    a = Fragment(Interval(0, 100), INCLUDE)
    b = Fragment(Interval(20, 50), EQ("kind", "road"))
    out = a.difference(b)
    assert out == [
        Fragment(Interval(0, 20), INCLUDE),
        Fragment(Interval(50, 100), INCLUDE),
        Fragment(Interval(20, 50), NE("kind", "road")),
    ]

def test_difference_fully_covered():
    a = Fragment(Interval(20, 50), EQ("kind", "road"))
    b = Fragment(Interval(0, 100), IN("kind", ["road", "rail"]))
    assert a.difference(b) == []

def test_difference_partition_law(features, scales):
    pairs = [
        (Fragment(Interval(0, 1000), EQ("kind", "road")), Fragment(Interval(500, 1500), GT("lanes", 2))),
        (Fragment(Interval(100, 200), INCLUDE), Fragment(Interval(0, 1e9), NE("kind", "rail"))),
        (Fragment(Interval(0, 500, True, True), IS_NULL("lanes")), Fragment(Interval(100, 150), INCLUDE)),
        (Fragment(Interval(50, 150), LE("lanes", 3)), Fragment(Interval(150, 1000, True, True), EXCLUDE)),
    ]
    for a, b in pairs:
        parts = a.difference(b)
        assert len(parts) <= 3
        for s in scales:
            expected = a.mask(s, features) & ~b.mask(s, features)
            count = stacked(parts, s, features)
            assert (count <= 1).all()
            assert (count > 0).equals(expected)

def test_difference_never_emits_exclude():
    a = Fragment(Interval(0, 100), EQ("kind", "road"))
    b = Fragment(Interval(0, 100), NE("kind", "rail"))
    # road implies not rail, so the overlap is entirely covered
    assert a.difference(b) == []

def test_fragment_mask_and_str(features):
    f = Fragment(Interval(0, 1000), EQ("kind", "road"))
    assert f.mask(10, features).equals(EQ("kind", "road").mask(features))
    assert not f.mask(1000, features).any()
    assert str(f) == "Fragment[scale_range=[0, 1000), predicate=(kind == 'road')]"
    assert f.to_selector() == Selector(Interval(0, 1000), EQ("kind", "road"))


# -----------------------
# Flattening
# -----------------------

def test_to_fragments_defaults_to_full_scale():
    cov = DomainCoverage()
    assert cov.to_fragments(Data(EQ("kind", "road"))) == [Fragment(FULL_SCALE_RANGE, EQ("kind", "road"))]
    assert FULL_SCALE_RANGE == Interval(0, math.inf, True, False)

def test_to_fragments_merges_equal_ranges():
    cov = DomainCoverage()
    sel = ((ScaleRange(0, 10) & Data(EQ("kind", "road")))
           | (ScaleRange(20, 30) & Data(GT("lanes", 2)))
           | (ScaleRange(0, 10) & Data(EQ("kind", "rail"))))
    frags = cov.to_fragments(sel.flattened())
    assert frags == [
        Fragment(Interval(0, 10), IN("kind", ["rail", "road"])),
        Fragment(Interval(20, 30), GT("lanes", 2)),
    ]

def test_to_fragments_skips_empty_scale_ranges():
    cov = DomainCoverage()
    sel = (ScaleRange(0, 10) & ScaleRange(20, 30)) | ScaleRange(5, 6)
    assert cov.to_fragments(sel) == [Fragment(Interval(5, 6), INCLUDE)]

def test_nested_or_is_rejected():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 10)))
    before = cov.fragments
    nested = ScaleRange(0, 1) | (ScaleRange(1, 2) | ScaleRange(2, 3))
    with pytest.raises(SelectorError, match="nested"):
        cov.add_rule(Rule(nested))
    assert cov.fragments == before
    # pre-flattened input is accepted
    assert cov.add_rule(Rule(nested.flattened())) == []


# -----------------------
# Scenarios
# -----------------------

def test_first_rule_identity():
    cov = DomainCoverage()
    rule = Rule(ScaleRange(0, 1000), {"stroke": "red"}, position=7)
    out = cov.add_rule(rule)
    assert len(out) == 1
    assert out[0] is rule
    assert cov.fragments == (Fragment(Interval(0, 1000), INCLUDE),)

def test_overlapping_scale_ranges():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 1000), "red"))
    second = Rule(ScaleRange(500, 1500), "blue", position=1)
    out = cov.add_rule(second)
    assert [r.selector for r in out] == [Selector(Interval(1000, 1500), INCLUDE)]
    assert out[0].payload == "blue"
    assert out[0].source is second
    # touching ranges are not coalesced
    assert [f.scale_range for f in cov.fragments] == [Interval(0, 1000), Interval(1000, 1500)]

def test_mutually_exclusive_predicates_are_kept():
    cov = DomainCoverage()
    cov.add_rule(Rule(Data(EQ("kind", "A"))))
    out = cov.add_rule(Rule(ScaleRange(0, math.inf) & Data(EQ("kind", "B"))))
    assert [r.selector for r in out] == [Selector(FULL_SCALE_RANGE, EQ("kind", "B"))]
    assert cov.fragments == (
        Fragment(FULL_SCALE_RANGE, IN("kind", ["A", "B"])),
    )

def test_complementary_predicates_compact_to_include():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(100, 200) & Data(EQ("kind", "A"))))
    out = cov.add_rule(Rule(ScaleRange(100, 200) & Data(NE("kind", "A"))))
    assert [r.selector for r in out] == [Selector(Interval(100, 200), NE("kind", "A"))]
    assert cov.fragments == (Fragment(Interval(100, 200), INCLUDE),)

def test_full_shadowing():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 1000)))
    before = cov.fragments
    assert cov.add_rule(Rule(ScaleRange(200, 300) & Data(EQ("kind", "road")))) == []
    assert cov.add_rule(Rule(ScaleRange(0, 1000) & Data(GT("lanes", 1) | IS_NULL("lanes")))) == []
    assert cov.fragments == before


# -----------------------
# Compaction
# -----------------------

def test_compaction_orders_by_canonical_interval_key():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(500, 1000)))
    cov.add_rule(Rule(ScaleRange(10, 20, False, True)))
    cov.add_rule(Rule(ScaleRange(10, 10, True, True)))
    cov.add_rule(Rule(ScaleRange(0, 10)))
    assert [f.scale_range for f in cov.fragments] == [
        Interval(0, 10),
        Interval(10, 10, True, True),
        Interval(10, 20, False, True),
        Interval(500, 1000),
    ]

def test_compaction_merges_only_exactly_equal_ranges():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 100) & Data(EQ("kind", "road"))))
    cov.add_rule(Rule(ScaleRange(0, 100) & Data(EQ("kind", "rail"))))
    assert cov.fragments == (Fragment(Interval(0, 100), IN("kind", ["rail", "road"])),)
    cov.add_rule(Rule(ScaleRange(100, 200) & Data(EQ("kind", "road"))))
    cov.add_rule(Rule(ScaleRange(0, 50)))
    assert [f.scale_range for f in cov.fragments] == [Interval(0, 50), Interval(0, 100), Interval(100, 200)]
    assert len(cov) == 3


# -----------------------
# Properties over a rule stream
# -----------------------

def test_disjointness_and_earlier_rules_win(features, scales, source_rules):
    cov = DomainCoverage()
    compiled = []
    for rule in source_rules:
        compiled.extend(cov.add_rule(rule))

    for s in scales:
        # coverage fragments are pairwise disjoint
        assert (stacked(cov.fragments, s, features) <= 1).all()
        # each feature is styled by exactly the first source rule selecting it
        first = pd.Series(None, index=features.index, dtype=object)
        for rule in source_rules:
            m = region(rule.selector, s, features) & first.isna()
            first[m] = rule.payload
        hits = pd.Series(0, index=features.index, dtype=int)
        got = pd.Series(None, index=features.index, dtype=object)
        for d in compiled:
            m = region(d.selector, s, features)
            hits += m.astype(int)
            got[m] = d.payload
        assert (hits <= 1).all()
        assert got.fillna("-").tolist() == first.fillna("-").tolist()

def test_coverage_is_monotonic(features, scales, source_rules):
    cov = DomainCoverage()
    union = {s: pd.Series(False, index=features.index, dtype=bool) for s in scales}
    previous = {s: cov.covers(s, features) for s in scales}
    for rule in source_rules:
        cov.add_rule(rule)
        for s in scales:
            union[s] |= region(rule.selector, s, features)
            now = cov.covers(s, features)
            assert (now | ~previous[s]).all()
            assert now.equals(union[s])
            previous[s] = now

def test_derived_rules_never_empty(schema, source_rules):
    cov = DomainCoverage(schema)
    for rule in source_rules:
        for d in cov.add_rule(rule):
            for child in (d.selector.children if isinstance(d.selector, OrSelector) else (d.selector,)):
                assert child.predicate != EXCLUDE
                assert not child.scale.is_empty

@pytest.mark.parametrize("seeded", [False, True])
def test_overlapping_disjuncts_stay_disjoint(features, scales, seeded):
    cov = DomainCoverage()
    rules = [Rule((ScaleRange(0, 10) & Data(EQ("kind", "road"))) | Data(EQ("capital", True)), "road-or-capital")]
    if seeded:
        rules.insert(0, Rule(ScaleRange(100, 200), "seed"))
    derived = [d for rule in rules for d in cov.add_rule(rule)]

    for s in scales:
        assert (stacked(cov.fragments, s, features) <= 1).all()
        if seeded:
            hits = sum(region(d.selector, s, features).astype(int) for d in derived)
            assert (hits <= 1).all()
        union = pd.Series(False, index=features.index, dtype=bool)
        for rule in rules:
            union |= region(rule.selector, s, features)
        assert cov.covers(s, features).equals(union)

def test_to_fragments_reduces_overlapping_disjuncts(features, scales):
    cov = DomainCoverage()
    frags = cov.to_fragments((ScaleRange(0, 10) & Data(EQ("kind", "road"))) | Data(EQ("capital", True)))
    assert [f.scale_range for f in frags] == [Interval(0, 10), Interval(10, math.inf), Interval(0, 10)]
    for s in scales:
        assert (stacked(frags, s, features) <= 1).all()

def test_schema_missing_attributes_are_null(schema):
    cov = DomainCoverage(schema)
    cov.add_rule(Rule(ScaleRange(0, 100) & Data(NE("missing", 1))))
    # everything at this scale already matched NE(missing)
    assert cov.add_rule(Rule(ScaleRange(0, 100))) == []
    assert cov.fragments == (Fragment(Interval(0, 100), NE("missing", 1)),)


# -----------------------
# Failure semantics and state
# -----------------------

def test_strict_schema_errors_leave_state_unchanged(schema):
    cov = DomainCoverage(schema, CoverageConfig(strict_schema=True))
    cov.add_rule(Rule(ScaleRange(0, 100) & Data(EQ("kind", "road"))))
    before = cov.fragments
    with pytest.raises(SchemaError):
        cov.add_rule(Rule(ScaleRange(0, 100) & Data(EQ("missing", 1))))
    with pytest.raises(SchemaError):
        cov.add_rule(Rule(Data(EQ("lanes", "two"))))
    assert cov.fragments == before

def test_collaborator_errors_propagate():
    def boom(pred):
        raise RuntimeError("simplifier failed")

    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 100)))
    before = cov.fragments
    cov.simplify = boom
    with pytest.raises(RuntimeError, match="simplifier failed"):
        cov.add_rule(Rule(ScaleRange(50, 150)))
    assert cov.fragments == before

def test_reset_and_container_protocol():
    cov = DomainCoverage()
    assert cov.is_empty and len(cov) == 0
    cov.add_rule(Rule(ScaleRange(0, 100)))
    assert not cov.is_empty
    assert list(cov) == list(cov.fragments)
    cov.reset()
    assert cov.is_empty
    rule = Rule(ScaleRange(50, 150))
    assert cov.add_rule(rule) == [rule]

def test_str_dump():
    cov = DomainCoverage()
    cov.add_rule(Rule(ScaleRange(0, 1000)))
    assert str(cov) == (
        "DomainCoverage[items=1,\n"
        "Fragment[scale_range=[0, 1000), predicate=INCLUDE]\n"
        "] // DomainCoverage end"
    )


# -----------------------
# compile_rules
# -----------------------

def test_compile_rules_concatenates_in_call_order(source_rules):
    cov = DomainCoverage()
    expected = [d for r in source_rules for d in cov.add_rule(r)]
    assert compile_rules(source_rules) == expected

def test_compile_rules_sorts_by_key():
    a = Rule(ScaleRange(0, 100), "a", position=0)
    b = Rule(ScaleRange(50, 150), "b", position=1)
    out = compile_rules([b, a], key=lambda r: r.position)
    assert out[0] is a
    assert [r.selector for r in out[1:]] == [Selector(Interval(100, 150), INCLUDE)]
    # without a key the input order decides
    assert compile_rules([b, a])[0] is b
