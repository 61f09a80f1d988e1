"""Wishlist store: same optimistic discipline as the cart, without quantities."""
from __future__ import annotations

import uuid
from typing import List

from storefront.models import Product, WishlistItem
from storefront.store.base import ReactiveStore, optimistic_update


class WishlistStore(ReactiveStore[WishlistItem]):
    name = "wishlist"

    async def fetch_wishlist(self) -> bool:
        return await self._refresh(self._gateway.list_wishlist)

    async def add_to_wishlist(self, product: Product) -> bool:
        """Adding a product that is already saved is a no-op, not an error."""
        if self.is_in_wishlist(product.id):
            self._notifier.info(f"{product.name} is already in your wishlist")
            return True

        def apply(items: List[WishlistItem]) -> List[WishlistItem]:
            temp = WishlistItem(id=f"temp-{uuid.uuid4().hex[:12]}", product_id=product.id, product=product)
            return items + [temp]

        ok = await optimistic_update(
            self,
            apply,
            lambda: self._gateway.add_to_wishlist(product),
            reconcile=self.fetch_wishlist,
        )
        if ok:
            self._notifier.success(f"{product.name} added to wishlist")
        return ok

    async def remove_from_wishlist(self, product_id: str) -> bool:
        return await optimistic_update(
            self,
            lambda items: [item for item in items if item.product_id != product_id],
            lambda: self._gateway.remove_from_wishlist(product_id),
            reconcile=self.fetch_wishlist,
            on_rollback=lambda: self._refresh(self._gateway.list_wishlist, clear_error=False),
        )

    async def toggle(self, product: Product) -> bool:
        if self.is_in_wishlist(product.id):
            return await self.remove_from_wishlist(product.id)
        return await self.add_to_wishlist(product)

    def is_in_wishlist(self, product_id: str) -> bool:
        return any(item.product_id == product_id for item in self.items)

    def get_item_count(self) -> int:
        return len(self.items)
