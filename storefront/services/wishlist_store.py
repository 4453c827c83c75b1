"""
Wishlist Store - optimistic wishlist for guests and signed-in users

Guests: the list lives only in local storage (``wishlist`` key) and is
never sent to the server until sign-in triggers the guest merge.

Signed-in users: the server owns the list. Toggles update the local list
first, then call the API. With ``optimistic_no_rollback`` (default) a
failed call is logged and the local state is kept; strict mode rolls the
change back and re-raises. The list is mirrored to ``wishlist_cache`` so
other tabs pick up changes.
"""
import logging
from typing import Any, Dict, List, Optional, Union

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.core.exceptions import StorefrontError
from storefront.domain.product import Product, map_product_from_wire
from storefront.domain.session import AuthSession
from storefront.services.cache_controller import CacheController, CachePolicy
from storefront.services.entity_store import EntityStore, StoreState
from storefront.services.guest_merge import GUEST_WISHLIST_KEY, GuestWishlistMerger, MergeResult
from storefront.storage.local_storage import PersistenceAdapter
from storefront.sync.cross_tab import CrossTabSynchronizer

logger = logging.getLogger(__name__)

WISHLIST_KEY = "wishlist"
WISHLIST_CACHE_KEY = "wishlist_cache"


class WishlistStore(EntityStore[Product]):

    entity_key = WISHLIST_KEY
    model = Product

    def __init__(self, connector: StorefrontAPIConnector, cache: CacheController,
                 storage: PersistenceAdapter,
                 synchronizer: Optional[CrossTabSynchronizer] = None,
                 merger: Optional[GuestWishlistMerger] = None,
                 optimistic_no_rollback: bool = True,
                 throttle_seconds: float = 30.0):
        super().__init__(cache)
        self.connector = connector
        self.storage = storage
        self.synchronizer = synchronizer
        self.merger = merger or GuestWishlistMerger(connector, storage)
        self.optimistic_no_rollback = optimistic_no_rollback
        self.session: Optional[AuthSession] = None
        self.last_merge: Optional[MergeResult] = None
        cache.register(self.entity_key, CachePolicy(ttl_seconds=None, throttle_seconds=throttle_seconds))
        self._load_guest()

    @property
    def authenticated(self) -> bool:
        return self.session is not None

    @property
    def token(self) -> Optional[str]:
        return self.session.access_token if self.session else None

    @property
    def count(self) -> int:
        return len(self._items)

    def contains(self, product_id: str) -> bool:
        return self._index_of(product_id) is not None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def init(self) -> None:
        if self.synchronizer is not None:
            self.synchronizer.register(WISHLIST_CACHE_KEY, self.replace_all)

    def teardown(self) -> None:
        if self.synchronizer is not None:
            self.synchronizer.unregister(WISHLIST_CACHE_KEY)

    def _load_guest(self) -> None:
        raw = self.storage.get_json(GUEST_WISHLIST_KEY, default=[])
        if not isinstance(raw, list):
            logger.error("Guest wishlist is not a list, ignoring it")
            raw = []
        items = self._map_all(raw)
        self.state = StoreState.READY
        self._set_items(items)

    async def on_auth_change(self, session: Optional[AuthSession]) -> None:
        """
        Follow sign-in/sign-out

        A false->true transition runs the guest merge exactly once. A
        sign-out drops the user list and returns to the guest list.
        """
        was_authenticated = self.authenticated

        if session is None:
            self.session = None
            if was_authenticated:
                self.cache.invalidate(self.entity_key)
                self._load_guest()
            return

        same_user = was_authenticated and self.session.user_id == session.user_id
        self.session = session
        if same_user:
            return

        self.cache.invalidate(self.entity_key)
        self._items = []

        if not was_authenticated:
            self.last_merge = MergeResult()
            await self.merger.run(self, self.last_merge)
            if self.last_merge.processed:
                return

        await self.fetch_all()

    # =========================================================================
    # Fetch / persist
    # =========================================================================

    def _map(self, payload: Dict[str, Any]) -> Product:
        return map_product_from_wire(payload)

    async def _fetch_remote(self) -> List[Dict[str, Any]]:
        return await self.connector.get_wishlist(self.token)

    async def fetch_all(self, force: bool = False) -> List[Product]:
        """Load the server wishlist; guests have nothing to fetch"""
        if not self.authenticated:
            return self.items
        items = await super().fetch_all(force=force)
        if self.last_error is None:
            self.storage.set_json(WISHLIST_CACHE_KEY, self._dump_all())
        return items

    async def refresh(self) -> List[Product]:
        """Forced fetch that bypasses the throttle window"""
        self.cache.reset_throttle(self.entity_key)
        return await self.fetch_all(force=True)

    def _persist(self) -> None:
        payload = self._dump_all()
        if self.authenticated:
            self.cache.write_through(self.entity_key, payload)
            self.storage.set_json(WISHLIST_CACHE_KEY, payload)
        else:
            self.storage.set_json(GUEST_WISHLIST_KEY, payload)

    # =========================================================================
    # Toggle protocol
    # =========================================================================

    def insert_optimistic(self, product: Product) -> bool:
        """Append locally unless the id is already present. Returns True if added."""
        if self.contains(product.id):
            return False
        self._items.append(product)
        self._persist()
        self._notify()
        return True

    async def toggle(self, product: Union[Product, Dict[str, Any]]) -> bool:
        """
        Flip membership of ``product``. Returns True when it is now in the list.

        The local list changes before the server call.
        """
        if not isinstance(product, Product):
            product = map_product_from_wire(product)

        previous = list(self._items)
        index = self._index_of(product.id)
        if index is not None:
            del self._items[index]
            now_in_list = False
        else:
            self._items.append(product)
            now_in_list = True
        self._persist()
        self._notify()

        if not self.authenticated:
            return now_in_list

        try:
            await self.connector.toggle_wishlist(product.id, self.token)
        except StorefrontError as e:
            if self.optimistic_no_rollback:
                logger.error("Failed to toggle server wishlist for %s: %s", product.id, e)
                return now_in_list
            logger.error("Rolling back wishlist toggle for %s: %s", product.id, e)
            self._items = previous
            self._persist()
            self._notify()
            raise

        return now_in_list

    async def add(self, product: Union[Product, Dict[str, Any]]) -> None:
        if not isinstance(product, Product):
            product = map_product_from_wire(product)
        if not self.contains(product.id):
            await self.toggle(product)

    async def remove(self, product_id: str) -> None:
        product = self.get(product_id)
        if product is not None:
            await self.toggle(product)
