"""
Logical catalog queries and the cache keys derived from them.

Each query shape maps to exactly one key. Parameters are normalized before
they reach the key so that queries with the same meaning share an entry:

- ListAll            -> ``foods``
- ByCategory(name)   -> ``foods_category_<name>``, or ``foods_category_all``
                        for an absent, empty or ``All`` name. A literal
                        ``all`` (or a name starting with ``_``) gains a
                        leading ``_``.
- SearchByName(text) -> ``foods_search_<text>``
- ByPriceRange(lo,hi)-> ``foods_price_<lo>_<hi>`` with ``0`` / ``inf`` for
                        absent bounds

Search keys keep the caller's casing while the store matches names
case-insensitively, so "pizza" and "PIZZA" are cached separately even though
they return the same foods.
"""

import math
from dataclasses import dataclass
from typing import ClassVar, Optional, Union

LIST_ALL_KEY = "foods"
DERIVED_KEY_PATTERN = "foods_*"
WILDCARD_CATEGORY = "All"
WILDCARD_TOKEN = "all"


@dataclass(frozen=True)
class ListAll:
    kind: ClassVar[str] = "list_all"


@dataclass(frozen=True)
class ByCategory:
    name: Optional[str] = None
    kind: ClassVar[str] = "by_category"

    @property
    def category_name(self) -> Optional[str]:
        """The name to filter on, or None for the whole catalog."""
        if not self.name or self.name == WILDCARD_CATEGORY:
            return None
        return self.name


@dataclass(frozen=True)
class SearchByName:
    substring: str = ""
    kind: ClassVar[str] = "search_by_name"


@dataclass(frozen=True)
class ByPriceRange:
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    kind: ClassVar[str] = "by_price_range"

    @classmethod
    def from_params(cls, min_price: Optional[str], max_price: Optional[str]) -> "ByPriceRange":
        """Build from raw query-string bounds."""
        return cls(parse_price_bound(min_price), parse_price_bound(max_price))


LogicalQuery = Union[ListAll, ByCategory, SearchByName, ByPriceRange]


def parse_price_bound(raw: Optional[str]) -> Optional[int]:
    """Parse a price bound the way the price filter applies it.

    Blank and non-numeric values do not constrain the range and come back as
    None. Numeric values are truncated toward zero.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return int(value)


def _escape_category(name: str) -> str:
    # Named categories never produce the bare wildcard token.
    if name == WILDCARD_TOKEN or name.startswith("_"):
        return "_" + name
    return name


def build_key(query: LogicalQuery) -> str:
    """Derive the cache key for a logical query."""
    if isinstance(query, ListAll):
        return LIST_ALL_KEY

    if isinstance(query, ByCategory):
        name = query.category_name
        if name is None:
            return f"foods_category_{WILDCARD_TOKEN}"
        return f"foods_category_{_escape_category(name)}"

    if isinstance(query, SearchByName):
        return f"foods_search_{query.substring}"

    if isinstance(query, ByPriceRange):
        low = "0" if query.min_price is None else str(query.min_price)
        high = "inf" if query.max_price is None else str(query.max_price)
        return f"foods_price_{low}_{high}"

    raise TypeError(f"Unsupported query type: {type(query).__name__}")
