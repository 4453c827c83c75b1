"""
Entity Store - in-memory canonical list for one entity type

State machine:
    UNINITIALIZED -> LOADING -> READY
    READY -> LOADING  (refetch)
    READY -> READY    (local mutation)

Fetches go through the CacheController. Mutations (create/update/delete)
are confirmed by the server before the in-memory list changes, then the
list is written through to the cache so a reload paints instantly.
"""
import logging
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from storefront.core.exceptions import AuthorizationError, NetworkError, RemoteAPIError
from storefront.services.cache_controller import CacheController

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)
StoreListener = Callable[['EntityStore'], None]


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class EntityStore(Generic[T]):
    """
    Base class for Product, Order and Wishlist stores

    Subclasses set ``entity_key`` and ``model`` and implement
    ``_fetch_remote``; the ``_remote_*`` hooks back create/update/delete.
    """

    entity_key: str = ""
    model: Type[T]
    # Where confirmed creates land in the list
    prepend_on_create: bool = False
    # Fields kept from the local copy when an update response omits them
    preserved_fields: tuple = ()

    def __init__(self, cache: CacheController):
        self.cache = cache
        self.state = StoreState.UNINITIALIZED
        self.last_error: Optional[Exception] = None
        self._items: List[T] = []
        self._listeners: List[StoreListener] = []

    # =========================================================================
    # Read access
    # =========================================================================

    @property
    def items(self) -> List[T]:
        return list(self._items)

    @property
    def loading(self) -> bool:
        return self.state == StoreState.LOADING

    def __len__(self) -> int:
        return len(self._items)

    def get(self, entity_id: str) -> Optional[T]:
        index = self._index_of(entity_id)
        return self._items[index] if index is not None else None

    def _index_of(self, entity_id: str) -> Optional[int]:
        for index, item in enumerate(self._items):
            if item.id == entity_id:
                return index
        return None

    # =========================================================================
    # Listeners
    # =========================================================================

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("%s listener failed", type(self).__name__)

    # =========================================================================
    # Mapping
    # =========================================================================

    def _map(self, payload: Dict[str, Any]) -> T:
        return self.model.model_validate(payload)

    def _map_all(self, payloads: Iterable[Dict[str, Any]]) -> List[T]:
        """
        Map wire payloads, keeping the first occurrence of each id

        Records that fail validation are logged and skipped so one bad row
        does not hide the rest of the list. A payload that is not a list
        raises TypeError.
        """
        if payloads is None:
            return []
        if not isinstance(payloads, list):
            raise TypeError(f"Expected a list of {self.entity_key}, got {type(payloads).__name__}")

        seen = set()
        mapped = []
        for payload in payloads:
            try:
                item = self._map(payload)
            except ValidationError as e:
                record_id = payload.get('id') if isinstance(payload, dict) else None
                logger.warning("Skipping malformed %s record %r: %s", self.entity_key, record_id, e)
                continue
            if item.id in seen:
                continue
            seen.add(item.id)
            mapped.append(item)
        return mapped

    @staticmethod
    def _dump(item: T) -> Dict[str, Any]:
        if hasattr(item, 'to_dict'):
            return item.to_dict()
        return item.model_dump(mode='json')

    def _dump_all(self) -> List[Dict[str, Any]]:
        return [self._dump(item) for item in self._items]

    # =========================================================================
    # State changes
    # =========================================================================

    def _set_items(self, items: List[T]) -> None:
        self._items = list(items)
        if self.state == StoreState.UNINITIALIZED:
            self.state = StoreState.READY
        self._notify()

    def replace_all(self, payloads: Iterable[Dict[str, Any]]) -> None:
        """Replace the list wholesale from wire/cache payloads (cross-tab sync)"""
        try:
            items = self._map_all(payloads)
        except TypeError as e:
            logger.error("Ignoring malformed %s payload: %s", self.entity_key, e)
            return
        self._set_items(items)
        if self.cache.policy(self.entity_key).data_key is None:
            # Other tabs only write storage; keep the in-memory envelope current
            self.cache.write_through(self.entity_key, self._dump_all())

    def _persist(self) -> None:
        self.cache.write_through(self.entity_key, self._dump_all())

    def clear(self) -> None:
        self._items = []
        self._notify()

    # =========================================================================
    # Fetch
    # =========================================================================

    async def _fetch_remote(self) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def fetch_all(self, force: bool = False) -> List[T]:
        """
        Load the list, from cache when the controller allows it

        Transport and server errors fall back to the cached list (or an
        empty list) and are recorded in ``last_error``. Authorization
        errors propagate.
        """
        if self.cache.should_use_cache(self.entity_key, force):
            envelope = self.cache.cached(self.entity_key)
            if envelope is None:
                # Throttled with nothing cached: keep the in-memory list
                self._set_items(self._items)
                return self.items
            try:
                self._set_items(self._map_all(envelope.payload))
                return self.items
            except TypeError as e:
                logger.warning("Discarding malformed %s cache: %s", self.entity_key, e)
                self.cache.invalidate(self.entity_key)
                self.cache.record_attempt(self.entity_key)

        self.state = StoreState.LOADING
        self._notify()

        try:
            payload = await self._fetch_remote()
            items = self._map_all(payload)
        except AuthorizationError as e:
            self.last_error = e
            self.state = StoreState.READY
            self._notify()
            raise
        except (NetworkError, RemoteAPIError, TypeError) as e:
            logger.error("Failed to fetch %s from API: %s", self.entity_key, e)
            self.last_error = e
            self.state = StoreState.READY
            self._set_items(self._items_from_cache() or [])
            return self.items

        self.last_error = None
        self.state = StoreState.READY
        self._set_items(items)
        self.cache.record_success(self.entity_key, self._dump_all())
        return self.items

    def _items_from_cache(self) -> Optional[List[T]]:
        """Map the cached envelope; a malformed envelope is discarded"""
        envelope = self.cache.cached(self.entity_key)
        if envelope is None:
            return None
        try:
            return self._map_all(envelope.payload)
        except TypeError as e:
            logger.warning("Discarding malformed %s cache: %s", self.entity_key, e)
            self.cache.invalidate(self.entity_key)
            return None

    # =========================================================================
    # Confirmed mutations
    # =========================================================================

    async def _remote_create(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def _remote_update(self, entity_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def _remote_delete(self, entity_id: str) -> None:
        raise NotImplementedError

    async def create(self, entity: Any) -> T:
        """Create on the server, then add the confirmed entity locally"""
        payload = self._payload(entity)
        try:
            response = await self._remote_create(payload)
        except Exception as e:
            logger.error("Failed to create %s: %s", self.entity_key, e)
            raise

        created = self._map(response)
        if self._index_of(created.id) is None:
            if self.prepend_on_create:
                self._items.insert(0, created)
            else:
                self._items.append(created)
        self._persist()
        self._notify()
        return created

    async def update(self, entity: T) -> T:
        """Update on the server, then replace the local entry by id"""
        payload = self._payload(entity)
        try:
            response = await self._remote_update(entity.id, payload)
        except Exception as e:
            logger.error("Failed to update %s %s: %s", self.entity_key, entity.id, e)
            raise

        updated = self._merge_update(entity, response or payload)
        index = self._index_of(updated.id)
        if index is not None:
            self._items[index] = updated
        self._persist()
        self._notify()
        return updated

    def _merge_update(self, local: T, response: Dict[str, Any]) -> T:
        """Map the server response, keeping local values for omitted fields"""
        merged = dict(response)
        for field in self.preserved_fields:
            if merged.get(field) is None:
                merged[field] = self._dump(local).get(field)
        return self._map(merged)

    async def delete(self, entity_id: str) -> None:
        """Delete on the server; the local entry goes only after confirmation"""
        try:
            await self._remote_delete(entity_id)
        except Exception as e:
            logger.error("Failed to delete %s %s: %s", self.entity_key, entity_id, e)
            raise

        self._items = [item for item in self._items if item.id != entity_id]
        self._persist()
        self._notify()

    def _payload(self, entity: Any) -> Dict[str, Any]:
        if isinstance(entity, BaseModel):
            return self._dump(entity)
        return dict(entity)
