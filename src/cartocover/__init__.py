"""
cartocover: compile ordered, overlapping scale-dependent style rules into
non-overlapping ones.

Public API:
  DomainCoverage(schema, config)      accumulated scale × feature coverage
  compile_rules(rules, schema, ...)   one-shot compilation of a rule list
  Fragment                            (scale range, predicate) rectangle
  Rule, Selector, OrSelector          rule model
  ScaleRange(lo, hi), Data(pred)      selector helpers
  FeatureSchema                       target schema (from a DataFrame or mapping)
  simplify_predicate(pred, schema)    canonical predicate form
  CoverageConfig                      tunable knobs
"""

from .config import CoverageConfig
from .coverage import FULL_SCALE_RANGE, Fragment, DomainCoverage, compile_rules
from .forms.intervals import Interval, IntervalSet
from .forms.predicates import (
    Predicate,
    INCLUDE,
    EXCLUDE,
    EQ,
    NE,
    LT,
    LE,
    GT,
    GE,
    IN,
    BETWEEN,
    IS_NULL,
    Where,
)
from .forms.schema import AttributeKind, FeatureSchema, SchemaError
from .forms.selectors import (
    Selector,
    OrSelector,
    ScaleRange,
    Data,
    Rule,
    SelectorError,
)
from .processing.simplify import simplify_predicate, is_satisfiable

__version__ = "0.1.0"

__all__ = [
    "CoverageConfig",
    "FULL_SCALE_RANGE",
    "Fragment",
    "DomainCoverage",
    "compile_rules",
    "Interval",
    "IntervalSet",
    "Predicate",
    "INCLUDE",
    "EXCLUDE",
    "EQ",
    "NE",
    "LT",
    "LE",
    "GT",
    "GE",
    "IN",
    "BETWEEN",
    "IS_NULL",
    "Where",
    "AttributeKind",
    "FeatureSchema",
    "SchemaError",
    "Selector",
    "OrSelector",
    "ScaleRange",
    "Data",
    "Rule",
    "SelectorError",
    "simplify_predicate",
    "is_satisfiable",
]
