"""
Cart store: the signed-in user's cart line items.

Mutations are optimistic: local state changes before the gateway call, the
gateway persists, and a re-fetch reconciles temporary ids and server-side
adjustments (quantity clamped to inventory). A failed call restores the
pre-call snapshot.
"""
from __future__ import annotations

import uuid
from typing import List, Optional

from storefront.models import CartItem, Product
from storefront.store.base import ReactiveStore, optimistic_update
from storefront.utils.logger import get_logger

logger = get_logger("store.cart")


def _temp_id() -> str:
    return f"temp-{uuid.uuid4().hex[:12]}"


class CartStore(ReactiveStore[CartItem]):
    name = "cart"

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def fetch_cart(self) -> bool:
        """Replace items with the server snapshot. Anonymous visitors get an empty cart."""
        return await self._refresh(self._gateway.list_cart)

    async def add_item(self, product: Product, quantity: int = 1) -> bool:
        if quantity < 1:
            raise ValueError(f"quantity must be positive, got {quantity}")
        logger.info("cart: add_item product_id=%s quantity=%s", product.id, quantity)

        def apply(items: List[CartItem]) -> List[CartItem]:
            for i, item in enumerate(items):
                if item.product_id == product.id:
                    bumped = item.model_copy(update={"quantity": item.quantity + quantity})
                    return items[:i] + [bumped] + items[i + 1:]
            return items + [CartItem(id=_temp_id(), product_id=product.id, quantity=quantity, product=product)]

        ok = await optimistic_update(
            self,
            apply,
            lambda: self._gateway.add_to_cart(product, quantity),
            reconcile=self.fetch_cart,
        )
        if ok:
            self._notifier.success(f"{product.name} added to cart")
        return ok

    async def update_quantity(self, item_id: str, quantity: int) -> bool:
        if quantity <= 0:
            return await self.remove_item(item_id)

        def apply(items: List[CartItem]) -> List[CartItem]:
            return [
                item.model_copy(update={"quantity": quantity}) if item.id == item_id else item
                for item in items
            ]

        return await optimistic_update(
            self,
            apply,
            lambda: self._gateway.update_cart_quantity(item_id, quantity),
            reconcile=self.fetch_cart,
        )

    async def remove_item(self, item_id: str) -> bool:
        return await optimistic_update(
            self,
            lambda items: [item for item in items if item.id != item_id],
            lambda: self._gateway.remove_from_cart(item_id),
            reconcile=self.fetch_cart,
            on_rollback=lambda: self._refresh(self._gateway.list_cart, clear_error=False),
        )

    async def clear_cart(self) -> bool:
        return await optimistic_update(
            self,
            lambda items: [],
            self._gateway.clear_cart,
        )

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def get_total(self) -> float:
        """Sum of snapshot price x quantity; catalog price changes after add-time don't move it."""
        return round(sum(item.line_total for item in self.items), 2)

    def get_item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_in_cart(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self.items)

    def get_item(self, product_id: str) -> Optional[CartItem]:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None
