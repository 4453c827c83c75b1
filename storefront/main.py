"""
Storefront client - composition root

Builds the connector, cache, persistence and stores for one tab and
drives their lifecycle. Tabs that share a storage backend and event
channel stay in sync through storage events.

Usage:
    storefront = build_storefront()
    await storefront.init()
    await storefront.sign_in(session)
    ...
    await storefront.teardown()
"""
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Optional

import httpx
from dotenv import load_dotenv

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.core.config import Settings, get_settings
from storefront.core.logging_config import setup_logging
from storefront.domain.session import AuthSession
from storefront.services.cache_controller import CacheController
from storefront.services.guest_merge import GuestWishlistMerger
from storefront.services.order_store import OrderStore
from storefront.services.product_store import ProductStore, product_cache_policy
from storefront.services.review_store import ReviewStore
from storefront.services.wishlist_store import WishlistStore
from storefront.storage.local_storage import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    PersistenceAdapter,
)
from storefront.sync.channel import StorageEventChannel
from storefront.sync.cross_tab import CrossTabSynchronizer

logger = logging.getLogger(__name__)


class Storefront:
    """One tab's worth of wired services"""

    def __init__(self, settings: Settings, connector: StorefrontAPIConnector,
                 storage: PersistenceAdapter, session_storage: PersistenceAdapter,
                 synchronizer: CrossTabSynchronizer, cache: CacheController,
                 products: ProductStore, orders: OrderStore,
                 wishlist: WishlistStore, reviews: ReviewStore):
        self.settings = settings
        self.connector = connector
        self.storage = storage
        self.session_storage = session_storage
        self.synchronizer = synchronizer
        self.cache = cache
        self.products = products
        self.orders = orders
        self.wishlist = wishlist
        self.reviews = reviews
        self.session: Optional[AuthSession] = None

    @property
    def tab_id(self) -> str:
        return self.synchronizer.source

    @property
    def authenticated(self) -> bool:
        return self.session is not None

    async def init(self) -> None:
        """Start cross-tab sync and load the catalog"""
        self.synchronizer.start()
        self.wishlist.init()
        await self.products.init()
        if self.settings.uses_default_admin_secret:
            logger.warning("ADMIN_SECRET is the built-in default; admin calls are effectively unprotected")
        logger.info("Storefront tab %s ready with %d products", self.tab_id, len(self.products))

    async def sign_in(self, session: AuthSession) -> None:
        """
        Propagate a sign-in to the stores

        Orders load and start polling even when the wishlist step raises;
        the wishlist error is re-raised afterwards.
        """
        self.session = session
        try:
            await self.wishlist.on_auth_change(session)
        finally:
            await self.orders.on_auth_change(session)

    async def sign_out(self) -> None:
        self.session = None
        await self.orders.on_auth_change(None)
        await self.wishlist.on_auth_change(None)

    async def teardown(self) -> None:
        """Stop polling and cross-tab listeners"""
        await self.orders.teardown()
        self.products.teardown()
        self.wishlist.teardown()
        self.synchronizer.stop()


def _default_storage(settings: Settings) -> KeyValueStorage:
    if settings.STORAGE_PATH:
        return FileStorage(settings.STORAGE_PATH)
    return MemoryStorage()


def build_storefront(settings: Optional[Settings] = None,
                     storage: Optional[KeyValueStorage] = None,
                     channel: Optional[StorageEventChannel] = None,
                     transport: Optional[httpx.AsyncBaseTransport] = None,
                     clock: Callable[[], float] = time.time,
                     tab_id: Optional[str] = None) -> Storefront:
    """
    Wire a Storefront

    Args:
        settings: Configuration (read from the environment / .env when omitted)
        storage: Shared local storage backend; pass the same instance to
            several calls to simulate tabs
        channel: Shared storage event channel (same sharing rule)
        transport: httpx transport override (tests)
        clock: Time source for cache decisions
        tab_id: Identifier of this tab (random when omitted)
    """
    if settings is None:
        load_dotenv(Path.cwd() / '.env')
        settings = get_settings()

    setup_logging(settings.LOG_LEVEL)

    storage = storage if storage is not None else _default_storage(settings)
    channel = channel if channel is not None else StorageEventChannel()
    tab_id = tab_id or uuid.uuid4().hex[:8]
    prefix = settings.STORAGE_KEY_PREFIX

    local = PersistenceAdapter(storage, prefix=prefix, channel=channel, source=tab_id)
    # Session storage is per tab and does not broadcast
    session_local = PersistenceAdapter(MemoryStorage(), prefix=prefix)

    connector = StorefrontAPIConnector(
        base_url=settings.STOREFRONT_API_URL,
        admin_secret=settings.ADMIN_SECRET,
        timeout=settings.REQUEST_TIMEOUT,
        transport=transport,
    )
    cache = CacheController(local, session_local, clock=clock)
    synchronizer = CrossTabSynchronizer(channel, source=tab_id, prefix=prefix)

    products = ProductStore(
        connector, cache, synchronizer=synchronizer,
        policy=product_cache_policy(
            ttl_seconds=settings.PRODUCT_CACHE_TTL_SECONDS,
            throttle_seconds=settings.FETCH_THROTTLE_SECONDS,
        ),
    )
    orders = OrderStore(
        connector, cache,
        poll_interval=settings.ORDER_POLL_INTERVAL_SECONDS,
        throttle_seconds=settings.FETCH_THROTTLE_SECONDS,
    )
    wishlist = WishlistStore(
        connector, cache, local,
        synchronizer=synchronizer,
        merger=GuestWishlistMerger(connector, local),
        optimistic_no_rollback=settings.WISHLIST_OPTIMISTIC_NO_ROLLBACK,
        throttle_seconds=settings.FETCH_THROTTLE_SECONDS,
    )
    reviews = ReviewStore(local, clock=clock)

    return Storefront(
        settings=settings,
        connector=connector,
        storage=local,
        session_storage=session_local,
        synchronizer=synchronizer,
        cache=cache,
        products=products,
        orders=orders,
        wishlist=wishlist,
        reviews=reviews,
    )
