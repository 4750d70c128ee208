"""
Predicate processing: value-set algebra and schema-aware simplification.
"""

from .domains import NumericValues, DiscreteValues, ValueSet
from .simplify import simplify_predicate, is_satisfiable, TooManyTerms

__all__ = [
    "NumericValues",
    "DiscreteValues",
    "ValueSet",
    "simplify_predicate",
    "is_satisfiable",
    "TooManyTerms",
]
