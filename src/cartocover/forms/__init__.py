"""
Unified import layer for the building blocks of coverage computation.

This makes cartocover.forms a single access point for:
    - Scale and value ranges         (intervals)
    - Feature predicates             (predicates)
    - Target feature schemas         (schema)
    - Selectors and rules            (selectors)
"""

from . import intervals
from . import predicates
from . import schema
from . import selectors

# Re-export everything explicitly
from .intervals import *
from .predicates import *
from .schema import *
from .selectors import *
