"""
Faceted product filtering driven by the URL query string.

The query string is the single source of truth: FilterState is parsed from it
on every read and written back through serialize_filter_state, so filter
combinations are shareable links and back/forward restores them.

Query parameters:
    priceMin, priceMax        whole-number bounds, defaults 0 and 10000
    rating                    minimum rating threshold, 0 = no constraint
    categories, brands, colors, memory, screenSize, condition
                              comma-joined token lists, absent = no constraint

parse_filter_query(serialize_filter_state(s)) == s for every state the
FilterState helpers can produce.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import parse_qsl, quote, urlencode

from storefront.models import Product

DEFAULT_PRICE_MIN = 0
DEFAULT_PRICE_MAX = 10000
MAX_RATING = 5

# FilterState field -> query parameter
PARAM_NAMES: Dict[str, str] = {
    "price_min": "priceMin",
    "price_max": "priceMax",
    "categories": "categories",
    "brands": "brands",
    "rating": "rating",
    "colors": "colors",
    "memory": "memory",
    "screen_size": "screenSize",
    "condition": "condition",
}

# Multi-select facet -> Product attribute it constrains
FACETS: Dict[str, str] = {
    "categories": "category",
    "brands": "brand",
    "colors": "color",
    "memory": "memory",
    "screen_size": "screen_size",
    "condition": "condition",
}

_FIELDS_BY_PARAM = {param: name for name, param in PARAM_NAMES.items()}

FilterValue = Union[int, float, str, Sequence[str]]


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def _parse_int(raw: Optional[str], default: int) -> int:
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        return default


def _whole_number(value: float, name: str) -> int:
    """Truncate a bound to a whole number; NaN and infinities have no place on the slider."""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {value!r}")
    return int(value)


def _tokens(values: Iterable[str]) -> Tuple[str, ...]:
    """Drop blanks and duplicates, keep selection order."""
    seen: List[str] = []
    for value in values:
        token = value.strip()
        if not token:
            continue
        if "," in token:
            raise ValueError(f"Filter value {value!r} cannot contain a comma")
        if token not in seen:
            seen.append(token)
    return tuple(seen)


@dataclass(frozen=True)
class FilterState:
    price_min: int = DEFAULT_PRICE_MIN
    price_max: int = DEFAULT_PRICE_MAX
    categories: Tuple[str, ...] = ()
    brands: Tuple[str, ...] = ()
    rating: int = 0
    colors: Tuple[str, ...] = ()
    memory: Tuple[str, ...] = ()
    screen_size: Tuple[str, ...] = ()
    condition: Tuple[str, ...] = ()

    # Every helper returns a new state that still satisfies
    # floor <= price_min <= price_max <= ceiling.

    def with_price_min(self, value: float, floor: int = DEFAULT_PRICE_MIN, ceiling: int = DEFAULT_PRICE_MAX) -> "FilterState":
        price_min = _clamp(_whole_number(value, "price_min"), floor, ceiling)
        return replace(self, price_min=price_min, price_max=max(self.price_max, price_min))

    def with_price_max(self, value: float, floor: int = DEFAULT_PRICE_MIN, ceiling: int = DEFAULT_PRICE_MAX) -> "FilterState":
        price_max = _clamp(_whole_number(value, "price_max"), floor, ceiling)
        return replace(self, price_max=price_max, price_min=min(self.price_min, price_max))

    def with_rating(self, value: float) -> "FilterState":
        return replace(self, rating=_clamp(_whole_number(value, "rating"), 0, MAX_RATING))

    def with_facet(self, facet: str, values: Iterable[str]) -> "FilterState":
        if facet not in FACETS:
            raise KeyError(f"Unknown facet: {facet!r}")
        return replace(self, **{facet: _tokens(values)})

    def toggled(self, facet: str, value: str) -> "FilterState":
        if facet not in FACETS:
            raise KeyError(f"Unknown facet: {facet!r}")
        value = value.strip()
        current = getattr(self, facet)
        if value in current:
            return replace(self, **{facet: tuple(v for v in current if v != value)})
        return self.with_facet(facet, current + (value,))


# ─── Pure functions ──────────────────────────────────────────────────────────

def parse_filter_query(
    query: str,
    floor: int = DEFAULT_PRICE_MIN,
    ceiling: int = DEFAULT_PRICE_MAX,
) -> FilterState:
    """Build a FilterState from a query string. Unknown params are ignored, bad numbers fall back to defaults."""
    params = dict(parse_qsl(query.lstrip("?"), keep_blank_values=False))

    price_min = _clamp(_parse_int(params.get("priceMin"), floor), floor, ceiling)
    price_max = _clamp(_parse_int(params.get("priceMax"), ceiling), floor, ceiling)
    # A hand-edited inverted range collapses onto the lower bound
    price_max = max(price_max, price_min)

    facets = {}
    for facet in FACETS:
        raw = params.get(PARAM_NAMES[facet])
        facets[facet] = _tokens(raw.split(",")) if raw else ()

    return FilterState(
        price_min=price_min,
        price_max=price_max,
        rating=_clamp(_parse_int(params.get("rating"), 0), 0, MAX_RATING),
        **facets,
    )


def serialize_filter_state(
    state: FilterState,
    floor: int = DEFAULT_PRICE_MIN,
    ceiling: int = DEFAULT_PRICE_MAX,
) -> str:
    """Query string for a FilterState (no leading '?'); defaults are omitted."""
    params: List[Tuple[str, str]] = []
    if state.price_min != floor:
        params.append((PARAM_NAMES["price_min"], str(state.price_min)))
    if state.price_max != ceiling:
        params.append((PARAM_NAMES["price_max"], str(state.price_max)))
    for name in PARAM_NAMES:
        if name in FACETS and getattr(state, name):
            params.append((PARAM_NAMES[name], ",".join(getattr(state, name))))
        elif name == "rating" and state.rating > 0:
            params.append((PARAM_NAMES[name], str(state.rating)))
    return urlencode(params, safe=",", quote_via=quote)


def matches(product: Product, state: FilterState) -> bool:
    """All active constraints AND-ed; an empty facet constrains nothing."""
    if product.price < state.price_min or product.price > state.price_max:
        return False
    if state.rating > 0 and product.rating < state.rating:
        return False
    for facet, attribute in FACETS.items():
        selected = getattr(state, facet)
        if selected and getattr(product, attribute) not in selected:
            return False
    return True


def filter_products(products: Sequence[Product], state: FilterState) -> List[Product]:
    return [product for product in products if matches(product, state)]


def count_active_filters(
    state: FilterState,
    floor: int = DEFAULT_PRICE_MIN,
    ceiling: int = DEFAULT_PRICE_MAX,
) -> int:
    """Badge count: one per moved price bound, one for rating, one per selected token."""
    count = 0
    if state.price_min > floor:
        count += 1
    if state.price_max < ceiling:
        count += 1
    if state.rating > 0:
        count += 1
    for facet in FACETS:
        count += len(getattr(state, facet))
    return count


# ─── URL-backed engine ───────────────────────────────────────────────────────

class FilterEngine:
    """
    Owns the current query string and a browser-style history of it.

    Every write serializes a new FilterState and pushes it as a new history
    entry (dropping any forward entries), the way a router push would.
    """

    def __init__(
        self,
        query: str = "",
        price_floor: int = DEFAULT_PRICE_MIN,
        price_ceiling: int = DEFAULT_PRICE_MAX,
    ) -> None:
        self.price_floor = price_floor
        self.price_ceiling = price_ceiling
        self._history: List[str] = [query.lstrip("?")]
        self._index = 0

    @property
    def query(self) -> str:
        return self._history[self._index]

    @property
    def filters(self) -> FilterState:
        return parse_filter_query(self.query, self.price_floor, self.price_ceiling)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate(self, query: str) -> None:
        """Load a query string as-is (followed link, typed URL)."""
        self._push(query.lstrip("?"))

    def back(self) -> bool:
        if self._index == 0:
            return False
        self._index -= 1
        return True

    def forward(self) -> bool:
        if self._index >= len(self._history) - 1:
            return False
        self._index += 1
        return True

    def _push(self, query: str) -> None:
        if query == self.query:
            return
        del self._history[self._index + 1:]
        self._history.append(query)
        self._index += 1

    def _write(self, state: FilterState) -> None:
        self._push(serialize_filter_state(state, self.price_floor, self.price_ceiling))

    # ------------------------------------------------------------------
    # Filter actions
    # ------------------------------------------------------------------

    def toggle_filter(self, facet: str, value: str) -> FilterState:
        facet = _FIELDS_BY_PARAM.get(facet, facet)
        state = self.filters.toggled(facet, value)
        self._write(state)
        return state

    def update_filter(self, key: str, value: FilterValue) -> FilterState:
        """Set a price bound, the rating threshold, or a whole facet list."""
        key = _FIELDS_BY_PARAM.get(key, key)
        state = self.filters
        if key == "price_min":
            state = state.with_price_min(value, self.price_floor, self.price_ceiling)
        elif key == "price_max":
            state = state.with_price_max(value, self.price_floor, self.price_ceiling)
        elif key == "rating":
            state = state.with_rating(value)
        elif key in FACETS:
            if isinstance(value, str):
                raise TypeError(f"Facet {key!r} takes a list of values, got {value!r}")
            state = state.with_facet(key, value)
        else:
            raise KeyError(f"Unknown filter: {key!r}")
        self._write(state)
        return state

    def reset_filters(self) -> None:
        self._push("")

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    def apply(self, products: Sequence[Product]) -> List[Product]:
        return filter_products(products, self.filters)

    def active_filter_count(self) -> int:
        return count_active_filters(self.filters, self.price_floor, self.price_ceiling)
