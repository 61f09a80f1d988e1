"""
Remote data gateway: products, cart, wishlist and orders on Supabase.

Table schemas (all user-scoped tables are protected by RLS on user_id):
  products(id, slug, name, description, price, compare_at_price, images, category,
           brand, color, condition, memory, screen_size, inventory, rating, is_active)
  cart(id uuid PK, user_id uuid, product_id text, product_snapshot jsonb,
       quantity integer, created_at timestamptz, UNIQUE (user_id, product_id))
  wishlist(id uuid PK, user_id uuid, product_id text, product_snapshot jsonb,
           created_at timestamptz, UNIQUE (user_id, product_id))
  orders(id uuid PK, user_id uuid, order_number text, items jsonb, total numeric,
         status text, created_at timestamptz, customer_info jsonb,
         shipping_method text, payment_method text)

Every failure is logged, shown to the user as an error toast with a
resource-specific message, and re-raised as GatewayError so the calling store
can roll back. Single-row lookups return None when the row does not exist.
Reads of user-scoped tables without a signed-in user return []; writes raise
LoginRequiredError.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import httpx

from storefront.auth import SupabaseAuth
from storefront.errors import GatewayError, LoginRequiredError, OutOfStockError
from storefront.mappers import (
    cart_item_from_row,
    order_from_row,
    order_to_row,
    product_from_row,
    product_to_snapshot,
    wishlist_item_from_row,
)
from storefront.models import CartItem, NewOrder, Order, Product, WishlistItem
from storefront.notifications import Notifier
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient

logger = get_logger("gateway")

T = TypeVar("T")

# PostgREST answers .single()-style lookups on a missing row with 406 / PGRST116
_NOT_FOUND_STATUSES = (404, 406)


def _is_not_found(error: httpx.HTTPError) -> bool:
    if not isinstance(error, httpx.HTTPStatusError):
        return False
    if error.response.status_code in _NOT_FOUND_STATUSES:
        return True
    return "PGRST116" in (error.response.text or "")


def _is_conflict(error: httpx.HTTPStatusError) -> bool:
    return error.response.status_code == 409 or "duplicate" in (error.response.text or "").lower()


def _each(mapper: Callable[[dict], T]) -> Callable[[list], List[T]]:
    return lambda rows: [mapper(row) for row in rows]


def _first(mapper: Callable[[dict], T]) -> Callable[[list], Optional[T]]:
    return lambda rows: mapper(rows[0]) if rows else None


def _active_products(rows: list) -> List[Product]:
    return [p for p in (product_from_row(r) for r in rows) if p.is_active]


class StorefrontGateway:
    """One coroutine per resource operation; holds no state of its own."""

    def __init__(self, client: SupabaseClient, auth: SupabaseAuth, notifier: Notifier) -> None:
        self._client = client
        self._auth = auth
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _run(
        self,
        resource: str,
        method: str,
        call: Awaitable[Any],
        message: str,
        not_found_ok: bool = False,
        parse: Optional[Callable[[Any], T]] = None,
    ) -> Optional[T]:
        """
        Await call and map its payload with parse.

        Transport errors, error statuses and malformed payloads (a non-JSON
        body, rows that fail model validation) all end up as GatewayError.
        """
        try:
            result = await call
            if parse is not None:
                result = parse(result)
        except httpx.HTTPError as e:
            if not_found_ok and _is_not_found(e):
                logger.info("gateway: resource=%s method=%s result=not_found", resource, method)
                return None
            status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
            logger.error(
                "gateway: resource=%s method=%s result=error status=%s error=%s",
                resource, method, status, e,
            )
            self._notifier.error(message)
            raise GatewayError(message, resource=resource, status_code=status) from e
        except (ValueError, KeyError, TypeError) as e:
            # Non-JSON body, or rows that do not map onto the models
            logger.error(
                "gateway: resource=%s method=%s result=malformed error=%s",
                resource, method, e,
            )
            self._notifier.error(message)
            raise GatewayError(message, resource=resource) from e
        logger.debug("gateway: resource=%s method=%s result=success", resource, method)
        return result

    def _require_user(self, resource: str, message: str) -> str:
        user_id = self._auth.user_id
        if not user_id:
            logger.info("gateway: resource=%s result=login_required", resource)
            self._notifier.error(message)
            raise LoginRequiredError(resource, message)
        return user_id

    @property
    def _token(self) -> Optional[str]:
        return self._auth.access_token

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    async def list_products(
        self,
        category: Optional[str] = None,
        price_min: Optional[float] = None,
        price_max: Optional[float] = None,
    ) -> List[Product]:
        filters = {}
        if category:
            filters["category"] = category
        bounds = []
        if price_min is not None:
            bounds.append(f"price.gte.{price_min}")
        if price_max is not None:
            bounds.append(f"price.lte.{price_max}")
        return await self._run(
            "products", "list_products",
            self._client.select(
                "products",
                filters=filters,
                order="name.asc",
                and_filter=f"({','.join(bounds)})" if bounds else None,
            ),
            "Failed to load products",
            parse=_active_products,
        )

    async def get_product(self, product_id: str) -> Optional[Product]:
        return await self._run(
            "products", "get_product",
            self._client.select("products", filters={"id": product_id}, limit=1),
            "Failed to load product",
            not_found_ok=True,
            parse=_first(product_from_row),
        )

    async def get_product_by_slug(self, slug: str) -> Optional[Product]:
        return await self._run(
            "products", "get_product_by_slug",
            self._client.select("products", filters={"slug": slug}, limit=1),
            "Failed to load product",
            not_found_ok=True,
            parse=_first(product_from_row),
        )

    async def search_products(self, query: str) -> List[Product]:
        # Commas and parentheses are PostgREST syntax inside or=(...)
        term = "".join(ch for ch in query.strip() if ch not in ",()")
        if not term:
            return await self.list_products()
        pattern = f"*{term}*"
        return await self._run(
            "products", "search_products",
            self._client.select(
                "products",
                or_filter=(
                    f"(name.ilike.{pattern},description.ilike.{pattern},"
                    f"category.ilike.{pattern})"
                ),
            ),
            "Failed to search products",
            parse=_active_products,
        )

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    async def list_cart(self) -> List[CartItem]:
        user_id = self._auth.user_id
        if not user_id:
            return []
        return await self._run(
            "cart", "list_cart",
            self._client.select(
                "cart",
                filters={"user_id": user_id},
                order="created_at.asc",
                access_token=self._token,
            ),
            "Failed to load cart",
            parse=_each(cart_item_from_row),
        )

    async def add_to_cart(self, product: Product, quantity: int = 1) -> CartItem:
        """
        Add or increment the (user, product) row.

        The stored quantity never exceeds the product's inventory at add time.
        An insert that loses a race against another insert for the same
        product (409 on the unique key) is retried as an increment.
        """
        user_id = self._require_user("cart", "Please login to add items to your cart")
        if quantity < 1:
            raise ValueError(f"quantity must be positive, got {quantity}")
        if product.inventory <= 0:
            self._notifier.error(f"{product.name} is out of stock")
            raise OutOfStockError(product.id)

        async def upsert() -> dict:
            for _ in range(2):
                existing = await self._client.select(
                    "cart",
                    filters={"user_id": user_id, "product_id": product.id},
                    limit=1,
                    access_token=self._token,
                )
                if existing:
                    row = existing[0]
                    new_qty = min(int(row.get("quantity") or 0) + quantity, product.inventory)
                    updated = await self._client.update(
                        "cart",
                        {"id": row["id"], "user_id": user_id},
                        {"quantity": new_qty},
                        access_token=self._token,
                    )
                    return updated[0] if updated else {**row, "quantity": new_qty}
                try:
                    inserted = await self._client.insert(
                        "cart",
                        {
                            "user_id": user_id,
                            "product_id": product.id,
                            "product_snapshot": product_to_snapshot(product),
                            "quantity": min(quantity, product.inventory),
                        },
                        access_token=self._token,
                    )
                    return inserted[0]
                except httpx.HTTPStatusError as e:
                    if not _is_conflict(e):
                        raise
                    logger.info("gateway: resource=cart method=add_to_cart product_id=%s conflict=retry", product.id)
            self._notifier.error("Failed to add item to cart")
            raise GatewayError("Failed to add item to cart", resource="cart", status_code=409)

        logger.info("gateway: resource=cart method=add_to_cart user_id=%s product_id=%s quantity=%s", user_id, product.id, quantity)
        return await self._run(
            "cart", "add_to_cart", upsert(), "Failed to add item to cart", parse=cart_item_from_row,
        )

    async def update_cart_quantity(self, item_id: str, quantity: int) -> Optional[CartItem]:
        """Set a row's quantity, clamped to the snapshot inventory. 0 or less removes the row."""
        user_id = self._require_user("cart", "Please login to update your cart")
        if quantity <= 0:
            await self.remove_from_cart(item_id)
            return None

        async def patch() -> Optional[dict]:
            existing = await self._client.select(
                "cart", filters={"id": item_id, "user_id": user_id}, limit=1, access_token=self._token,
            )
            if not existing:
                return None
            inventory = cart_item_from_row(existing[0]).product.inventory
            new_qty = min(quantity, inventory) if inventory > 0 else quantity
            updated = await self._client.update(
                "cart", {"id": item_id, "user_id": user_id}, {"quantity": new_qty}, access_token=self._token,
            )
            return updated[0] if updated else {**existing[0], "quantity": new_qty}

        return await self._run(
            "cart", "update_cart_quantity", patch(), "Failed to update quantity",
            parse=lambda row: cart_item_from_row(row) if row else None,
        )

    async def remove_from_cart(self, item_id: str) -> None:
        user_id = self._require_user("cart", "Please login to update your cart")
        await self._run(
            "cart", "remove_from_cart",
            self._client.delete("cart", {"id": item_id, "user_id": user_id}, access_token=self._token),
            "Failed to remove item",
        )

    async def clear_cart(self) -> None:
        user_id = self._require_user("cart", "Please login to update your cart")
        await self._run(
            "cart", "clear_cart",
            self._client.delete("cart", {"user_id": user_id}, access_token=self._token),
            "Failed to clear cart",
        )

    # ------------------------------------------------------------------
    # Wishlist
    # ------------------------------------------------------------------

    async def list_wishlist(self) -> List[WishlistItem]:
        user_id = self._auth.user_id
        if not user_id:
            return []
        return await self._run(
            "wishlist", "list_wishlist",
            self._client.select(
                "wishlist",
                filters={"user_id": user_id},
                order="created_at.asc",
                access_token=self._token,
            ),
            "Failed to load wishlist",
            parse=_each(wishlist_item_from_row),
        )

    async def add_to_wishlist(self, product: Product) -> WishlistItem:
        """Insert the (user, product) row, or return it if it already exists."""
        user_id = self._require_user("wishlist", "Please login to save items to your wishlist")
        scope = {"user_id": user_id, "product_id": product.id}

        async def insert_once() -> dict:
            existing = await self._client.select("wishlist", filters=scope, limit=1, access_token=self._token)
            if existing:
                return existing[0]
            try:
                inserted = await self._client.insert(
                    "wishlist",
                    {**scope, "product_snapshot": product_to_snapshot(product)},
                    access_token=self._token,
                )
                return inserted[0]
            except httpx.HTTPStatusError as e:
                if not _is_conflict(e):
                    raise
                existing = await self._client.select("wishlist", filters=scope, limit=1, access_token=self._token)
                if not existing:
                    raise
                return existing[0]

        return await self._run(
            "wishlist", "add_to_wishlist", insert_once(), "Failed to add to wishlist",
            parse=wishlist_item_from_row,
        )

    async def remove_from_wishlist(self, product_id: str) -> None:
        user_id = self._require_user("wishlist", "Please login to update your wishlist")
        await self._run(
            "wishlist", "remove_from_wishlist",
            self._client.delete(
                "wishlist", {"user_id": user_id, "product_id": product_id}, access_token=self._token,
            ),
            "Failed to remove from wishlist",
        )

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    async def create_order(self, order: NewOrder) -> Order:
        user_id = self._require_user("orders", "Please login to checkout")
        logger.info("gateway: resource=orders method=create_order user_id=%s order_number=%s", user_id, order.order_number)
        created = await self._run(
            "orders", "create_order",
            self._client.insert("orders", order_to_row(order, user_id), access_token=self._token),
            "Failed to place order",
            parse=_first(order_from_row),
        )
        if created is None:
            self._notifier.error("Failed to place order")
            raise GatewayError("Failed to place order", resource="orders")
        return created

    async def list_orders(self) -> List[Order]:
        user_id = self._auth.user_id
        if not user_id:
            return []
        return await self._run(
            "orders", "list_orders",
            self._client.select(
                "orders",
                filters={"user_id": user_id},
                order="created_at.desc",
                access_token=self._token,
            ),
            "Failed to load orders",
            parse=_each(order_from_row),
        )

    async def get_order(self, order_id: str) -> Optional[Order]:
        user_id = self._auth.user_id
        if not user_id:
            return None
        return await self._run(
            "orders", "get_order",
            self._client.select(
                "orders", filters={"id": order_id, "user_id": user_id}, limit=1, access_token=self._token,
            ),
            "Failed to load order",
            not_found_ok=True,
            parse=_first(order_from_row),
        )
