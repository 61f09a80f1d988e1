from storefront.store.base import ReactiveStore, optimistic_update
from storefront.store.cart_store import CartStore
from storefront.store.wishlist_store import WishlistStore

__all__ = [
    'ReactiveStore',
    'optimistic_update',
    'CartStore',
    'WishlistStore',
]
