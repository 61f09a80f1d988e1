"""
Row <-> domain translation, one function per entity.

Persisted columns are snake_case and loosely typed (numeric columns arrive as
strings or null, jsonb snapshots may arrive as text). Nothing outside the
gateway should see these shapes.
"""
from __future__ import annotations

import json
from typing import Any, Dict, Optional

from storefront.models import (
    CONDITIONS,
    CartItem,
    CustomerInfo,
    NewOrder,
    Order,
    OrderItem,
    Product,
    WishlistItem,
)


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _jsonb(value: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return None
    return value


# ─── Products ────────────────────────────────────────────────────────────────

def product_from_row(row: Dict[str, Any]) -> Product:
    compare_at = _to_float(row.get("compare_at_price"), None)
    condition = row.get("condition")
    return Product(
        id=str(row["id"]),
        slug=row.get("slug") or str(row["id"]),
        name=row.get("name") or "",
        description=row.get("description") or "",
        images=list(row.get("images") or []),
        price=_to_float(row.get("price")),
        # 0 / null both mean "no compare-at price"
        compare_at_price=compare_at or None,
        category=row.get("category") or "",
        brand=row.get("brand"),
        color=row.get("color"),
        condition=condition if condition in CONDITIONS else None,
        memory=row.get("memory"),
        screen_size=row.get("screen_size"),
        inventory=max(0, _to_int(row.get("inventory"))),
        rating=_to_float(row.get("rating")),
        is_active=row.get("is_active", True) is not False,
        created_at=row.get("created_at"),
    )


def product_to_snapshot(product: Product) -> Dict[str, Any]:
    """Persisted snapshot of a product, in row shape so product_from_row reads it back."""
    return product.model_dump(by_alias=False)


# ─── Cart / wishlist ─────────────────────────────────────────────────────────

def cart_item_from_row(row: Dict[str, Any]) -> CartItem:
    snapshot = _jsonb(row.get("product_snapshot")) or {"id": row["product_id"], "price": 0}
    return CartItem(
        id=str(row["id"]),
        product_id=str(row["product_id"]),
        quantity=max(1, _to_int(row.get("quantity"), 1)),
        product=product_from_row(snapshot),
    )


def wishlist_item_from_row(row: Dict[str, Any]) -> WishlistItem:
    snapshot = _jsonb(row.get("product_snapshot")) or {"id": row["product_id"], "price": 0}
    return WishlistItem(
        id=str(row["id"]),
        product_id=str(row["product_id"]),
        product=product_from_row(snapshot),
    )


# ─── Orders ──────────────────────────────────────────────────────────────────

def order_item_from_row(row: Dict[str, Any]) -> OrderItem:
    return OrderItem(
        product_id=str(row.get("product_id", "")),
        product_name=row.get("product_name") or "",
        quantity=max(1, _to_int(row.get("quantity"), 1)),
        price=_to_float(row.get("price")),
        image=row.get("image") or OrderItem.model_fields["image"].default,
    )


def order_from_row(row: Dict[str, Any]) -> Order:
    customer = _jsonb(row.get("customer_info"))
    return Order(
        id=str(row["id"]),
        order_number=row.get("order_number") or "",
        items=[order_item_from_row(item) for item in (_jsonb(row.get("items")) or [])],
        total=_to_float(row.get("total")),
        status=row.get("status") or "pending",
        created_at=row.get("created_at") or "",
        customer_info=CustomerInfo.model_validate(customer) if customer else None,
        shipping_method=row.get("shipping_method"),
        payment_method=row.get("payment_method"),
    )


def order_to_row(order: NewOrder, user_id: str) -> Dict[str, Any]:
    row = order.model_dump(mode="json", by_alias=False)
    row["user_id"] = user_id
    return row
