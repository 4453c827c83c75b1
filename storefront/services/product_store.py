"""
Product Store - catalog list with cache-first loading

The catalog is painted from the persisted cache at construction time so a
reload shows products before the network answers. The cache is trusted
for ``PRODUCT_CACHE_TTL_SECONDS`` once the session has completed one
successful fetch.
"""
import logging
from typing import Any, Dict, List, Optional

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.domain.product import Product, ProductReview, map_product_from_wire
from storefront.services.cache_controller import CacheController, CachePolicy
from storefront.services.entity_store import EntityStore, StoreState
from storefront.sync.cross_tab import CrossTabSynchronizer

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"
PRODUCTS_CACHE_KEY = "cache_products"
PRODUCTS_CACHE_TIME_KEY = "cache_time"


def product_cache_policy(ttl_seconds: float = 300.0, throttle_seconds: float = 30.0) -> CachePolicy:
    return CachePolicy(
        data_key=PRODUCTS_CACHE_KEY,
        time_key=PRODUCTS_CACHE_TIME_KEY,
        ttl_seconds=ttl_seconds,
        throttle_seconds=throttle_seconds,
        requires_session_check=True,
    )


class ProductStore(EntityStore[Product]):
    """Products: fetch, create, update, delete, details, reviews"""

    entity_key = PRODUCTS_KEY
    model = Product
    preserved_fields = ('reviews',)

    def __init__(self, connector: StorefrontAPIConnector, cache: CacheController,
                 synchronizer: Optional[CrossTabSynchronizer] = None,
                 policy: Optional[CachePolicy] = None):
        super().__init__(cache)
        cache.register(self.entity_key, policy or product_cache_policy())
        self.connector = connector
        self.synchronizer = synchronizer
        self._paint_from_cache()

    def _paint_from_cache(self) -> None:
        """Load cached products for the first paint; loading only without cache"""
        cached = self._items_from_cache()
        if cached:
            self._items = cached
            self.state = StoreState.READY

    @property
    def loading(self) -> bool:
        # Cached products stay on screen during a refetch
        return self.state != StoreState.READY and not self._items

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def init(self) -> List[Product]:
        if self.synchronizer is not None:
            self.synchronizer.register(PRODUCTS_CACHE_KEY, self.replace_all)
        return await self.fetch_all()

    def teardown(self) -> None:
        if self.synchronizer is not None:
            self.synchronizer.unregister(PRODUCTS_CACHE_KEY)

    # =========================================================================
    # Remote hooks
    # =========================================================================

    def _map(self, payload: Dict[str, Any]) -> Product:
        return map_product_from_wire(payload)

    async def _fetch_remote(self) -> List[Dict[str, Any]]:
        return await self.connector.get_products()

    async def _remote_create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.connector.create_product(payload)

    async def _remote_update(self, entity_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.connector.update_product(entity_id, payload)

    async def _remote_delete(self, entity_id: str) -> None:
        await self.connector.delete_product(entity_id)

    # =========================================================================
    # Product-specific operations
    # =========================================================================

    def find_by_slug(self, slug: str) -> Optional[Product]:
        for product in self._items:
            if product.slug == slug:
                return product
        return None

    async def get_product_details(self, slug: str) -> Product:
        """
        Fetch full product details and refresh the matching list entry

        The list view may hold a trimmed product; replacing it avoids a
        second detail fetch.
        """
        try:
            payload = await self.connector.get_product(slug)
            product = self._map(payload)
        except Exception as e:
            logger.error("Failed to fetch product details for %s: %s", slug, e)
            raise

        index = self._index_of(product.id)
        if index is not None:
            self._items[index] = product
            self._persist()
            self._notify()
        return product

    async def add_review(self, product_id: str, review: Dict[str, Any]) -> ProductReview:
        """Post a review and append the stored review to the product"""
        try:
            response = await self.connector.create_review(product_id, review)
        except Exception as e:
            logger.error("Failed to add review to product %s: %s", product_id, e)
            raise

        stored = ProductReview.model_validate(response)
        index = self._index_of(product_id)
        if index is not None:
            product = self._items[index]
            self._items[index] = product.model_copy(
                update={'reviews': [*product.reviews, stored]}
            )
            self._persist()
            self._notify()
        return stored

    def update_stock(self, product_id: str, new_stock: int) -> None:
        """Local stock adjustment for display; the API has no stock endpoint"""
        index = self._index_of(product_id)
        if index is None:
            return
        self._items[index] = self._items[index].model_copy(update={'stock': new_stock})
        self._persist()
        self._notify()
