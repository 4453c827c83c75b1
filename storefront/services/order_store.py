"""
Order Store - the signed-in user's orders and the admin order view

User orders are fetched with the session bearer token and re-fetched on
a polling interval while signed in. The admin view is fetched with the
admin secret and throttled like every other list.
"""
import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Union

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.core.exceptions import StorefrontError
from storefront.domain.order import Order, OrderCreate, OrderStatus, map_order_from_wire
from storefront.domain.session import AuthSession
from storefront.services.cache_controller import CacheController, CachePolicy
from storefront.services.entity_store import EntityStore, StoreListener, StoreState

logger = logging.getLogger(__name__)

USER_ORDERS_KEY = "orders"
ADMIN_ORDERS_KEY = "admin_orders"


class OrderListStore(EntityStore[Order]):
    """One order list (user or admin), cached in memory for the session"""

    model = Order
    prepend_on_create = True

    def __init__(self, connector: StorefrontAPIConnector, cache: CacheController,
                 entity_key: str, admin: bool = False, throttle_seconds: float = 30.0):
        super().__init__(cache)
        self.entity_key = entity_key
        self.connector = connector
        self.admin = admin
        self.token: Optional[str] = None
        cache.register(entity_key, CachePolicy(ttl_seconds=None, throttle_seconds=throttle_seconds))

    def _map(self, payload: Dict[str, Any]) -> Order:
        return map_order_from_wire(payload)

    async def _fetch_remote(self) -> List[Dict[str, Any]]:
        if self.admin:
            return await self.connector.get_orders(admin=True)
        return await self.connector.get_orders(token=self.token)

    async def _remote_create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self.connector.create_order(payload, token=self.token)

    async def _remote_delete(self, entity_id: str) -> None:
        await self.connector.delete_order(entity_id)

    def apply_status(self, order_id: str, status: OrderStatus) -> bool:
        """Set the status of a local order, leaving every other field as is"""
        index = self._index_of(order_id)
        if index is None:
            return False
        self._items[index] = self._items[index].model_copy(update={'status': status})
        self._persist()
        self._notify()
        return True

    def discard(self, order_id: str) -> bool:
        """Drop a local order after the server confirmed its deletion"""
        index = self._index_of(order_id)
        if index is None:
            return False
        del self._items[index]
        self._persist()
        self._notify()
        return True

    def reset(self) -> None:
        self._items = []
        self.state = StoreState.UNINITIALIZED
        self.last_error = None
        self.cache.invalidate(self.entity_key)
        self._notify()


class OrderStore:
    """
    Facade over the user and admin order lists

    Args:
        connector: Storefront API connector
        cache: Shared cache controller
        poll_interval: Seconds between user order refreshes while signed in
        throttle_seconds: Minimum gap between two fetches of the same list
    """

    def __init__(self, connector: StorefrontAPIConnector, cache: CacheController,
                 poll_interval: float = 60.0, throttle_seconds: float = 30.0):
        self.connector = connector
        self.poll_interval = poll_interval
        self.user = OrderListStore(connector, cache, USER_ORDERS_KEY,
                                   admin=False, throttle_seconds=throttle_seconds)
        self.admin = OrderListStore(connector, cache, ADMIN_ORDERS_KEY,
                                    admin=True, throttle_seconds=throttle_seconds)
        self.session: Optional[AuthSession] = None
        self._poll_task: Optional[asyncio.Task] = None

    @property
    def orders(self) -> List[Order]:
        return self.user.items

    @property
    def admin_orders(self) -> List[Order]:
        return self.admin.items

    @property
    def loading(self) -> bool:
        return self.user.loading or self.admin.loading

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        unsubscribe_user = self.user.subscribe(listener)
        unsubscribe_admin = self.admin.subscribe(listener)

        def unsubscribe():
            unsubscribe_user()
            unsubscribe_admin()

        return unsubscribe

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    async def on_auth_change(self, session: Optional[AuthSession]) -> None:
        """Load and start polling on sign-in; stop and clear on sign-out"""
        if session is None:
            await self.stop_polling()
            self.session = None
            self.user.token = None
            self.user.reset()
            self.admin.reset()
            return

        same_user = self.session is not None and self.session.user_id == session.user_id
        self.session = session
        self.user.token = session.access_token
        if same_user:
            return

        self.user.reset()
        try:
            await self.fetch_orders()
        except StorefrontError as e:
            logger.error("Failed to fetch user orders: %s", e)
        self.start_polling()

    def start_polling(self) -> None:
        if not self.polling:
            self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop_polling(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            try:
                await self.fetch_orders(force=True)
            except StorefrontError as e:
                logger.warning("Order polling fetch failed: %s", e)

    async def teardown(self) -> None:
        await self.stop_polling()

    # =========================================================================
    # Fetch
    # =========================================================================

    async def fetch_orders(self, force: bool = False) -> List[Order]:
        """Fetch the signed-in user's orders (no-op when signed out)"""
        if self.session is None:
            return []
        return await self.user.fetch_all(force=force)

    async def fetch_all_orders(self, force: bool = False) -> List[Order]:
        """Fetch every order for the admin view"""
        return await self.admin.fetch_all(force=force)

    # =========================================================================
    # Mutations
    # =========================================================================

    async def add_order(self, order: Union[OrderCreate, Dict[str, Any]]) -> Order:
        """Place an order, show it first in the user list, then sync the admin view"""
        if isinstance(order, dict):
            order = OrderCreate.model_validate(order)
        payload = order.to_dict()

        created = await self.user.create(payload)

        try:
            await self.fetch_all_orders(force=True)
        except StorefrontError as e:
            logger.warning("Admin order sync after checkout failed: %s", e)
        return created

    async def update_order_status(self, order_id: str, status: Union[OrderStatus, str]) -> None:
        """Admin status update; both lists change only after the server confirms"""
        status = OrderStatus(status)
        try:
            await self.connector.update_order(order_id, {'status': status.value})
        except StorefrontError as e:
            logger.error("Failed to update order status for %s: %s", order_id, e)
            raise

        self.user.apply_status(order_id, status)
        self.admin.apply_status(order_id, status)

    async def delete_order(self, order_id: str) -> None:
        """Admin delete; removes the order from both lists"""
        try:
            await self.connector.delete_order(order_id)
        except StorefrontError as e:
            logger.error("Failed to delete order %s: %s", order_id, e)
            raise

        self.user.discard(order_id)
        self.admin.discard(order_id)
