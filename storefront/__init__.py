"""
storefront - application core for a Supabase-backed shop

- Remote data gateway for products, cart, wishlist and orders
- Optimistic cart and wishlist stores with rollback
- URL query-string driven product filters
- Linear checkout flow
"""

from storefront.app import Storefront
from storefront.checkout import CheckoutFlow, CheckoutStep
from storefront.core.config import StorefrontConfig, get_config, set_config
from storefront.filters import FilterEngine, FilterState
from storefront.gateway import StorefrontGateway
from storefront.store import CartStore, WishlistStore

__all__ = [
    'Storefront',
    'StorefrontGateway',
    'CartStore',
    'WishlistStore',
    'FilterEngine',
    'FilterState',
    'CheckoutFlow',
    'CheckoutStep',
    'StorefrontConfig',
    'get_config',
    'set_config',
]

__version__ = '0.1.0'
