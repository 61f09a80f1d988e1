"""
Application container.

Builds one notifier, one Supabase client, the auth session, the gateway and
one cart/wishlist store per application, and hands them to whoever needs
them. UI code receives this object instead of importing module-level stores.
"""
from __future__ import annotations

import asyncio
from typing import Optional

import httpx

from storefront.auth import SupabaseAuth
from storefront.checkout import CheckoutFlow
from storefront.core.config import StorefrontConfig, get_config
from storefront.filters import FilterEngine
from storefront.gateway import StorefrontGateway
from storefront.models import AuthSession
from storefront.notifications import Notifier
from storefront.store import CartStore, WishlistStore
from storefront.utils.logger import get_logger
from storefront.utils.supabase_client import SupabaseClient

logger = get_logger("app")


class Storefront:
    def __init__(
        self,
        config: Optional[StorefrontConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or get_config()
        self.notifier = Notifier(self.config.notification_history)
        self.client = SupabaseClient(
            self.config.supabase_url,
            self.config.supabase_key,
            timeout=self.config.request_timeout,
            transport=transport,
        )
        self.auth = SupabaseAuth(self.client, self.notifier)
        self.gateway = StorefrontGateway(self.client, self.auth, self.notifier)
        self.cart = CartStore(self.gateway, self.notifier)
        self.wishlist = WishlistStore(self.gateway, self.notifier)

    def filters(self, query: str = "") -> FilterEngine:
        return FilterEngine(query, self.config.price_floor, self.config.price_ceiling)

    def checkout(self) -> CheckoutFlow:
        flow = CheckoutFlow(self.cart, self.gateway, self.notifier, self.config)
        if self.auth.current_user is not None:
            flow.prefill(self.auth.current_user)
        return flow

    async def sign_in(self, email: str, password: str) -> AuthSession:
        """Sign in, then load the user's cart and wishlist."""
        session = await self.auth.sign_in(email, password)
        await asyncio.gather(self.cart.fetch_cart(), self.wishlist.fetch_wishlist())
        return session

    async def sign_out(self) -> None:
        await self.auth.sign_out()
        self.cart.reset()
        self.wishlist.reset()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "Storefront":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
