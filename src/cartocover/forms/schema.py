# src/cartocover/forms/schema.py

"""
Target feature schema: attribute names and the kind of values they hold.

The schema is the knowledge base used when predicates are bound to a target
feature type and when they are simplified:

- attributes absent from the schema are treated as always null,
- boolean attributes have the finite domain ``{True, False}``,
- categorical attributes have their categories as a finite domain.

A schema is immutable and may be shared read-only between compilations.

Examples
--------
>>> import pandas as pd
>>> from cartocover.forms.schema import FeatureSchema, AttributeKind
>>> df = pd.DataFrame({"pop": [10, 20], "name": ["a", "b"], "capital": [True, False]})
>>> schema = FeatureSchema.from_frame(df)
>>> schema.kind("pop") is AttributeKind.NUMERIC
True
>>> "missing" in schema
False
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple
import numbers

import numpy as np
import pandas as pd
from pandas.api.types import (
    is_bool_dtype,
    is_numeric_dtype,
    is_object_dtype,
    is_string_dtype,
)

__all__ = [
    "AttributeKind",
    "FeatureSchema",
    "SchemaError",
    "literal_kind",
]


class SchemaError(ValueError):
    """A predicate does not fit the target schema."""


class AttributeKind(str, Enum):
    NUMERIC = "numeric"
    BOOLEAN = "boolean"
    STRING = "string"
    CATEGORICAL = "categorical"


def literal_kind(value: Any) -> Optional[AttributeKind]:
    """
    Kind implied by a literal value, or ``None`` when it has no natural kind.

    >>> from cartocover.forms.schema import literal_kind
    >>> literal_kind(True).value, literal_kind(3.5).value, literal_kind("x").value
    ('boolean', 'numeric', 'string')
    """
    # bool before numbers: bool is an int subclass
    if isinstance(value, (bool, np.bool_)):
        return AttributeKind.BOOLEAN
    if isinstance(value, numbers.Real):
        return AttributeKind.NUMERIC
    if isinstance(value, str):
        return AttributeKind.STRING
    return None


def _kind_of(s: pd.Series) -> Tuple[AttributeKind, FrozenSet[Any]]:
    if isinstance(s.dtype, pd.CategoricalDtype):
        return AttributeKind.CATEGORICAL, frozenset(s.cat.categories.tolist())
    if is_bool_dtype(s):
        return AttributeKind.BOOLEAN, frozenset()
    if is_numeric_dtype(s):
        return AttributeKind.NUMERIC, frozenset()
    if is_object_dtype(s):
        kinds = {literal_kind(v) for v in s.dropna().tolist()}
        if kinds == {AttributeKind.BOOLEAN}:
            return AttributeKind.BOOLEAN, frozenset()
        if kinds == {AttributeKind.NUMERIC}:
            return AttributeKind.NUMERIC, frozenset()
        return AttributeKind.STRING, frozenset()
    if is_string_dtype(s):
        return AttributeKind.STRING, frozenset()
    raise SchemaError(f"Unsupported dtype for attribute {s.name!r}: {s.dtype}")


@dataclass(frozen=True)
class FeatureSchema:
    """
    Mapping ``attribute -> AttributeKind`` with optional categorical domains.

    Parameters
    ----------
    kinds : Mapping[str, AttributeKind]
    categories : Mapping[str, FrozenSet[Any]]
        Finite value domain of each categorical attribute.
    name : str, default "features"
    """
    kinds: Mapping[str, AttributeKind] = field(default_factory=dict)
    categories: Mapping[str, FrozenSet[Any]] = field(default_factory=dict)
    name: str = "features"

    def __post_init__(self):
        kinds = {str(k): AttributeKind(v) for k, v in dict(self.kinds).items()}
        cats = {str(k): frozenset(v) for k, v in dict(self.categories).items()}
        for attr in cats:
            if kinds.get(attr) is not AttributeKind.CATEGORICAL:
                raise SchemaError(f"Categories given for non-categorical attribute {attr!r}")
        object.__setattr__(self, "kinds", kinds)
        object.__setattr__(self, "categories", cats)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, *, name: str = "features") -> "FeatureSchema":
        kinds: Dict[str, AttributeKind] = {}
        cats: Dict[str, FrozenSet[Any]] = {}
        for col in df.columns:
            kind, values = _kind_of(df[col])
            kinds[str(col)] = kind
            if kind is AttributeKind.CATEGORICAL:
                cats[str(col)] = values
        return cls(kinds, cats, name=name)

    @classmethod
    def from_mapping(
        cls,
        mapping: Mapping[str, Any],
        *,
        name: str = "features",
    ) -> "FeatureSchema":
        """
        Build from ``{attr: kind}``; a categorical attribute may be given as an
        iterable of its categories instead of a kind.

        >>> from cartocover.forms.schema import FeatureSchema
        >>> s = FeatureSchema.from_mapping({"kind": ["road", "rail"], "lanes": "numeric"})
        >>> sorted(s.domain("kind"))
        ['rail', 'road']
        """
        kinds: Dict[str, AttributeKind] = {}
        cats: Dict[str, FrozenSet[Any]] = {}
        for attr, kind in mapping.items():
            if isinstance(kind, (str, AttributeKind)):
                kinds[attr] = AttributeKind(kind)
            else:
                kinds[attr] = AttributeKind.CATEGORICAL
                cats[attr] = frozenset(kind)
        return cls(kinds, cats, name=name)

    def __contains__(self, attr: object) -> bool:
        return attr in self.kinds

    def __iter__(self):
        return iter(self.kinds)

    def __len__(self) -> int:
        return len(self.kinds)

    def kind(self, attr: str) -> AttributeKind:
        try:
            return self.kinds[attr]
        except KeyError:
            raise SchemaError(f"Attribute {attr!r} is not part of schema {self.name!r}") from None

    def domain(self, attr: str) -> Optional[FrozenSet[Any]]:
        """Finite non-null value domain of `attr`, or ``None`` when unbounded."""
        kind = self.kind(attr)
        if kind is AttributeKind.BOOLEAN:
            return frozenset({True, False})
        if kind is AttributeKind.CATEGORICAL:
            return self.categories.get(attr, frozenset())
        return None

    def accepts(self, attr: str, value: Any) -> bool:
        """True when `value` is a literal that may be compared with `attr`."""
        kind = self.kind(attr)
        lit = literal_kind(value)
        if kind is AttributeKind.CATEGORICAL:
            return value in self.categories.get(attr, frozenset()) or lit is AttributeKind.STRING
        return lit is kind

    def check(self, attributes: Iterable[str]) -> None:
        """Raise :class:`SchemaError` for the first attribute not in the schema."""
        for attr in attributes:
            if attr not in self:
                raise SchemaError(f"Attribute {attr!r} is not part of schema {self.name!r}")
