from storefront.services.cache_controller import CacheController, CacheEnvelope, CachePolicy
from storefront.services.entity_store import EntityStore, StoreState
from storefront.services.product_store import ProductStore
from storefront.services.order_store import OrderStore
from storefront.services.wishlist_store import WishlistStore
from storefront.services.review_store import ReviewStore
from storefront.services.guest_merge import GuestWishlistMerger, MergeResult

__all__ = [
    'CacheController', 'CacheEnvelope', 'CachePolicy',
    'EntityStore', 'StoreState',
    'ProductStore', 'OrderStore', 'WishlistStore', 'ReviewStore',
    'GuestWishlistMerger', 'MergeResult',
]
