# src/cartocover/reporting.py

from __future__ import annotations
from typing import Iterable, List, Optional
import pandas as pd

from .coverage import DomainCoverage, Fragment
from .forms.selectors import Rule


# ────────────────────────────── Internals ────────────────────────────── #

def _fmt_support(mask: pd.Series, total: int) -> str:
    """
    'support/total = pct%'
    """
    sup = int(mask.sum())
    pct = 100.0 * sup / total if total else 0.0
    return f"[{sup}/{total} = {pct:4.1f}%]"


# ───────────────────────────── Frames ───────────────────────────── #

def coverage_frame(coverage: DomainCoverage, df: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """
    One row per coverage fragment.

    Columns: ``scale_min``, ``scale_max``, ``min_inclusive``, ``max_inclusive``,
    ``predicate`` and, when a feature table `df` is given, ``support`` (number
    of features matching the fragment predicate).

    Examples
    --------
    >>> from cartocover.coverage import DomainCoverage
    >>> from cartocover.forms.selectors import Rule, ScaleRange
    >>> cov = DomainCoverage()
    >>> _ = cov.add_rule(Rule(ScaleRange(0, 1000)))
    >>> coverage_frame(cov)[["scale_min", "scale_max", "predicate"]].values.tolist()
    [[0.0, 1000.0, 'INCLUDE']]
    """
    rows = []
    for frag in coverage.fragments:
        row = {
            "scale_min": frag.scale_range.low,
            "scale_max": frag.scale_range.high,
            "min_inclusive": frag.scale_range.low_inclusive,
            "max_inclusive": frag.scale_range.high_inclusive,
            "predicate": repr(frag.predicate),
        }
        if df is not None:
            row["support"] = int(frag.predicate.mask(df).sum())
        rows.append(row)
    columns = ["scale_min", "scale_max", "min_inclusive", "max_inclusive", "predicate"]
    if df is not None:
        columns.append("support")
    return pd.DataFrame(rows, columns=columns)


def rules_frame(rules: Iterable[Rule]) -> pd.DataFrame:
    """One row per (derived) rule: source position, comment, selector text, payload."""
    rows = [
        {
            "position": r.position,
            "derived": r.is_derived,
            "comment": r.comment,
            "selector": str(r.selector),
            "payload": r.payload,
        }
        for r in rules
    ]
    return pd.DataFrame(rows, columns=["position", "derived", "comment", "selector", "payload"])


# ───────────────────────────── Printers ───────────────────────────── #

def format_coverage(
    coverage: DomainCoverage,
    df: Optional[pd.DataFrame] = None,
    *,
    title: str = "Domain coverage",
    max_items: int = 60,
) -> str:
    """
    Human-readable listing of the coverage fragments, optionally with the
    support of each predicate on a feature table.
    """
    lines: List[str] = [f"=== {title} ({len(coverage)} fragments) ==="]
    total = len(df) if df is not None else 0
    frags: List[Fragment] = list(coverage.fragments)
    for i, frag in enumerate(frags[:max_items], 1):
        line = f"{i:3d}. scale {frag.scale_range}  {frag.predicate!r}"
        if df is not None:
            line += f"    {_fmt_support(frag.predicate.mask(df), total)}"
        lines.append(line)
    if len(frags) > max_items:
        lines.append(f"     ... {len(frags) - max_items} more")
    return "\n".join(lines)


def pretty_coverage(coverage: DomainCoverage, df: Optional[pd.DataFrame] = None, **kwargs) -> None:
    """Print :func:`format_coverage`."""
    print("\n" + format_coverage(coverage, df, **kwargs))
