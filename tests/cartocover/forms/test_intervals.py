import math

import pytest

from cartocover.forms.intervals import Interval, IntervalSet, REAL_LINE


# -----------------------
# Interval
# -----------------------

def test_bounds_are_validated():
    with pytest.raises(ValueError):
        Interval(2, 1)
    with pytest.raises(ValueError):
        Interval(float("nan"), 1)

def test_empty_and_point():
    assert Interval(3, 3).is_empty
    assert Interval(3, 3, False, True).is_empty
    assert not Interval(3, 3, True, True).is_empty
    assert Interval(3, 3, True, True).is_point
    assert not Interval(0, 1).is_empty

def test_contains_honours_bound_flags():
    iv = Interval(0, 10)
    assert iv.contains(0)
    assert iv.contains(9.999)
    assert not iv.contains(10)
    assert not iv.contains(-1)
    assert not iv.contains(float("nan"))
    assert Interval(0, 10, False, True).contains(10)
    assert not Interval(0, 10, False, True).contains(0)
    assert Interval(0, math.inf).contains(1e300)

def test_intersect():
    a, b = Interval(0, 1000), Interval(500, 1500)
    assert a.intersect(b) == Interval(500, 1000)
    assert b.intersect(a) == Interval(500, 1000)
    # touching at an excluded bound: no overlap
    assert Interval(0, 10).intersect(Interval(10, 20)) is None
    assert not Interval(0, 10).intersects(Interval(10, 20))
    # touching at two included bounds: a single point
    assert Interval(0, 10, True, True).intersect(Interval(10, 20)) == Interval(10, 10, True, True)
    assert Interval(0, 1).intersect(Interval(5, 6)) is None

def test_subtract_yields_zero_one_or_two_pieces():
    outer = Interval(0, 100)
    assert outer.subtract(Interval(0, 100)) == []
    assert outer.subtract(Interval(-5, 200)) == []
    assert outer.subtract(Interval(50, 200)) == [Interval(0, 50)]
    assert outer.subtract(Interval(-5, 50)) == [Interval(50, 100)]
    assert outer.subtract(Interval(20, 50)) == [Interval(0, 20), Interval(50, 100)]
    assert outer.subtract(Interval(200, 300)) == [outer]

def test_subtract_flips_bound_flags():
    pieces = Interval(0, 10).subtract(Interval(2, 5, False, True))
    assert pieces == [Interval(0, 2, True, True), Interval(5, 10, False, False)]
    assert [str(p) for p in pieces] == ["[0, 2]", "(5, 10)"]

def test_subtract_point_from_closed_interval():
    pieces = Interval(0, 10, True, True).subtract(Interval(10, 10, True, True))
    assert pieces == [Interval(0, 10, True, False)]

def test_canonical_order_inclusive_low_first():
    incl = Interval(10, 20, True, False)
    excl = Interval(10, 20, False, False)
    assert incl.low_key < excl.low_key
    assert sorted([excl, incl], key=lambda iv: iv.sort_key) == [incl, excl]
    # same low, shorter high first
    assert Interval(10, 15).sort_key < Interval(10, 20).sort_key
    assert Interval(0, 5, True, False).high_key < Interval(0, 5, True, True).high_key

def test_str():
    assert str(Interval(0, 1000)) == "[0, 1000)"
    assert str(Interval(0.5, math.inf, False, False)) == "(0.5, inf)"
    assert str(REAL_LINE) == "[-inf, inf]"


# -----------------------
# IntervalSet
# -----------------------

def test_set_is_normalized():
    s = IntervalSet.of(Interval(5, 6), Interval(0, 1), Interval(1, 2), Interval(1.5, 3))
    assert s.intervals == (Interval(0, 3), Interval(5, 6))
    # open at both sides of 1: stays split
    t = IntervalSet.of(Interval(0, 1, True, False), Interval(1, 2, False, False))
    assert len(t) == 2

def test_set_equality_is_semantic():
    a = IntervalSet.of(Interval(0, 1), Interval(1, 2))
    b = IntervalSet.of(Interval(0, 2))
    assert a == b

def test_complement_and_universe():
    s = IntervalSet.of(Interval(0, 1))
    assert str(s.complement()) == "{[-inf, 0), [1, inf]}"
    assert s.complement().complement() == s
    assert IntervalSet().complement().is_universe
    assert IntervalSet.universe().complement().is_empty

def test_set_algebra():
    a = IntervalSet.of(Interval(0, 10))
    b = IntervalSet.of(Interval(5, 15))
    assert a.intersect(b) == IntervalSet.of(Interval(5, 10))
    assert a.union(b) == IntervalSet.of(Interval(0, 15))
    assert IntervalSet.of(Interval(6, 7)).issubset(a)
    assert not b.issubset(a)

def test_points():
    s = IntervalSet.of(Interval(1, 1, True, True), Interval(3, 3, True, True))
    assert s.points() == [1.0, 3.0]
    assert IntervalSet.of(Interval(0, 1)).points() is None
    assert s.contains(3)
    assert not s.contains(2)
