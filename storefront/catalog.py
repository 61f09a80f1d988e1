"""
In-memory catalog helpers: text search, suggestions, sorting and pagination.

These run over the product list already loaded from the gateway and never
touch the network.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from storefront.models import Product

SORT_OPTIONS = ("default", "price-low", "price-high", "name", "newest")


def _searchable_text(product: Product) -> str:
    return " ".join([
        product.name.lower(),
        product.description.lower(),
        product.category.lower(),
        (product.brand or "").lower(),
    ])


def search_products(products: Sequence[Product], query: str) -> List[Product]:
    """Case-insensitive substring match over name, description, category and brand."""
    term = query.strip().lower()
    if not term:
        return list(products)
    return [p for p in products if term in _searchable_text(p)]


def get_search_suggestions(products: Sequence[Product], query: str, limit: int = 5) -> List[Product]:
    if not query.strip():
        return []
    return search_products(products, query)[:limit]


def highlight_search_term(text: str, query: str) -> List[Tuple[str, bool]]:
    """
    Split text into (segment, is_match) pairs for every case-insensitive
    occurrence of query. The original casing of text is preserved.
    """
    if not query.strip():
        return [(text, False)]

    parts: List[Tuple[str, bool]] = []
    last = 0
    for match in re.finditer(re.escape(query), text, re.IGNORECASE):
        if match.start() > last:
            parts.append((text[last:match.start()], False))
        parts.append((match.group(), True))
        last = match.end()

    if last < len(text):
        parts.append((text[last:], False))
    return parts or [(text, False)]


def sort_products(products: Sequence[Product], sort_by: str = "default") -> List[Product]:
    if sort_by not in SORT_OPTIONS:
        raise ValueError(f"Unknown sort option: {sort_by!r}")
    if sort_by == "price-low":
        return sorted(products, key=lambda p: p.price)
    if sort_by == "price-high":
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort_by == "name":
        return sorted(products, key=lambda p: p.name.lower())
    if sort_by == "newest":
        # Products without a timestamp go last
        dated = [p for p in products if p.created_at]
        undated = [p for p in products if not p.created_at]
        return sorted(dated, key=lambda p: p.created_at, reverse=True) + undated
    return list(products)


@dataclass
class Page:
    items: List[Product]
    page: int
    per_page: int
    total_items: int
    total_pages: int

    @property
    def start(self) -> int:
        """1-based index of the first item shown (0 when empty)."""
        return (self.page - 1) * self.per_page + 1 if self.items else 0

    @property
    def end(self) -> int:
        return self.start + len(self.items) - 1 if self.items else 0


def paginate(products: Sequence[Product], page: int = 1, per_page: int = 24) -> Page:
    """Slice one page; out-of-range page numbers are clamped to the valid range."""
    if per_page < 1:
        raise ValueError(f"per_page must be positive, got {per_page}")
    total_pages = math.ceil(len(products) / per_page)
    page = max(1, min(page, total_pages or 1))
    start = (page - 1) * per_page
    return Page(
        items=list(products[start:start + per_page]),
        page=page,
        per_page=per_page,
        total_items=len(products),
        total_pages=total_pages,
    )


def page_numbers(current: int, total: int) -> List[Union[int, str]]:
    """Pager labels: every page up to 7, else first, last, neighbours of current and '...' gaps."""
    if total <= 7:
        return list(range(1, total + 1))
    pages: List[Union[int, str]] = [1]
    if current > 3:
        pages.append("...")
    for i in range(max(2, current - 1), min(current + 1, total - 1) + 1):
        pages.append(i)
    if current < total - 2:
        pages.append("...")
    pages.append(total)
    return pages
