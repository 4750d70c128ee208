# src/cartocover/config.py

from __future__ import annotations
from dataclasses import dataclass

"""
Configuration for the coverage compiler.

The primary entry point is :class:`CoverageConfig`, a small dataclass with
sane defaults. Treat it as an immutable snapshot passed to
:class:`~cartocover.coverage.DomainCoverage`; avoid mutating it mid-run.

Examples
--------
>>> from cartocover.config import CoverageConfig
>>> cfg = CoverageConfig(max_terms=64)
>>> cfg.max_terms
64
>>> cfg.strict_schema
False
"""

__all__ = [
    'CoverageConfig',
]


@dataclass
class CoverageConfig:
    """
    Knobs used by predicate simplification and predicate binding.

    Parameters
    ----------
    max_terms : int, default=256
        Budget (number of DNF terms) for the negation expansion used to
        recognise tautologies during simplification. Past the budget the
        predicate is still simplified, just not folded to ``INCLUDE``.
    detect_tautologies : bool, default=True
        If ``False``, skip the tautology check altogether. Contradictions
        (``EXCLUDE``) are always detected.
    strict_schema : bool, default=False
        If ``True``, binding a selector whose predicate references attributes
        missing from the target schema (or literals of the wrong kind) raises
        :class:`~cartocover.forms.schema.SchemaError`. If ``False``, missing
        attributes are treated as always null.

    Examples
    --------
    >>> CoverageConfig(max_terms=32, strict_schema=True)
    CoverageConfig(max_terms=32, detect_tautologies=True, strict_schema=True)
    """

    max_terms: int = 256
    detect_tautologies: bool = True
    strict_schema: bool = False

    def __post_init__(self):
        if self.max_terms < 1:
            raise ValueError("max_terms must be ≥ 1")
