"""
Cache Controller - decides per entity type whether to serve cached data
or go to the network

Policy (``should_use_cache``):
1. Not forced, a fresh envelope exists and (if required) this session has
   already confirmed connectivity -> serve cache.
2. The last network attempt for the key is inside the throttle window ->
   serve cache (possibly stale). Protects the API from double clicks and
   re-render storms.
3. Otherwise go to the network. The attempt is recorded *before* the
   request resolves so concurrent callers see the throttle.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from storefront.storage.local_storage import PersistenceAdapter

logger = logging.getLogger(__name__)

SESSION_CHECKED_KEY = "session_checked"


@dataclass(frozen=True)
class CachePolicy:
    """
    Cache settings for one entity key

    Attributes:
        data_key: Storage key for the payload; None keeps the envelope in memory
        time_key: Storage key for the fetch timestamp (defaults to ``<data_key>_time``)
        ttl_seconds: Envelope lifetime; None means fresh for the whole session
        throttle_seconds: Minimum gap between two network attempts
        requires_session_check: Serve from cache only after one successful
            fetch in this session
    """
    data_key: Optional[str] = None
    time_key: Optional[str] = None
    ttl_seconds: Optional[float] = None
    throttle_seconds: float = 30.0
    requires_session_check: bool = False

    @property
    def timestamp_key(self) -> Optional[str]:
        if self.data_key is None:
            return None
        return self.time_key or f"{self.data_key}_time"


@dataclass
class CacheEnvelope:
    payload: Any
    fetched_at: float

    def is_fresh(self, now: float, ttl_seconds: Optional[float]) -> bool:
        if ttl_seconds is None:
            return True
        return now - self.fetched_at < ttl_seconds


class CacheController:
    """
    Args:
        storage: Local persistence for persisted envelopes
        session_storage: Session-scoped persistence for the connectivity flag
        clock: Returns the current time in seconds (injectable for tests)
    """

    def __init__(self, storage: PersistenceAdapter, session_storage: PersistenceAdapter,
                 clock: Callable[[], float] = time.time):
        self.storage = storage
        self.session_storage = session_storage
        self.clock = clock
        self._policies: Dict[str, CachePolicy] = {}
        self._memory: Dict[str, CacheEnvelope] = {}
        self._last_attempt: Dict[str, float] = {}

    def register(self, entity_key: str, policy: CachePolicy) -> None:
        self._policies[entity_key] = policy

    def policy(self, entity_key: str) -> CachePolicy:
        try:
            return self._policies[entity_key]
        except KeyError:
            raise KeyError(f"No cache policy registered for '{entity_key}'") from None

    # =========================================================================
    # Session flag
    # =========================================================================

    @property
    def session_verified(self) -> bool:
        return self.session_storage.get(SESSION_CHECKED_KEY) == 'true'

    def mark_session_verified(self) -> None:
        if not self.session_verified:
            self.session_storage.set(SESSION_CHECKED_KEY, 'true')

    # =========================================================================
    # Decision
    # =========================================================================

    def should_use_cache(self, entity_key: str, force: bool = False) -> bool:
        """Return True to serve cached data, False to fetch from the network"""
        policy = self.policy(entity_key)
        now = self.clock()

        if not force:
            envelope = self.cached(entity_key)
            if envelope is not None and envelope.is_fresh(now, policy.ttl_seconds):
                if not policy.requires_session_check or self.session_verified:
                    logger.debug("Cache hit for %s", entity_key)
                    return True

        last_attempt = self._last_attempt.get(entity_key)
        if last_attempt is not None and now - last_attempt < policy.throttle_seconds:
            logger.info("Throttling %s fetch - using recent data", entity_key)
            return True

        self.record_attempt(entity_key)
        return False

    def record_attempt(self, entity_key: str) -> None:
        self._last_attempt[entity_key] = self.clock()

    def reset_throttle(self, entity_key: str) -> None:
        """Forget the last attempt so the next call goes to the network"""
        self._last_attempt.pop(entity_key, None)

    def last_attempt(self, entity_key: str) -> Optional[float]:
        return self._last_attempt.get(entity_key)

    # =========================================================================
    # Envelopes
    # =========================================================================

    def cached(self, entity_key: str) -> Optional[CacheEnvelope]:
        """Return the stored envelope, or None. Malformed entries are discarded."""
        policy = self.policy(entity_key)
        if policy.data_key is None:
            return self._memory.get(entity_key)

        payload = self.storage.get_json(policy.data_key)
        if payload is None:
            return None

        raw_time = self.storage.get(policy.timestamp_key)
        try:
            fetched_at = float(raw_time) if raw_time is not None else 0.0
        except ValueError:
            logger.warning("Discarding cache for %s: bad timestamp %r", entity_key, raw_time)
            self.storage.remove(policy.data_key)
            self.storage.remove(policy.timestamp_key)
            return None

        return CacheEnvelope(payload=payload, fetched_at=fetched_at)

    def record_success(self, entity_key: str, payload: Any) -> CacheEnvelope:
        """Persist a freshly fetched payload and confirm session connectivity"""
        policy = self.policy(entity_key)
        envelope = CacheEnvelope(payload=payload, fetched_at=self.clock())

        if policy.data_key is None:
            self._memory[entity_key] = envelope
        else:
            self.storage.set_json(policy.data_key, payload)
            self.storage.set(policy.timestamp_key, repr(envelope.fetched_at))

        self.mark_session_verified()
        return envelope

    def write_through(self, entity_key: str, payload: Any) -> None:
        """
        Persist a locally mutated payload without touching the fetch time

        Used after create/update/delete so a reload paints the latest list.
        """
        policy = self.policy(entity_key)
        if policy.data_key is None:
            existing = self._memory.get(entity_key)
            fetched_at = existing.fetched_at if existing else self.clock()
            self._memory[entity_key] = CacheEnvelope(payload=payload, fetched_at=fetched_at)
        else:
            self.storage.set_json(policy.data_key, payload)

    def invalidate(self, entity_key: str) -> None:
        """Drop the envelope and the throttle state for a key"""
        policy = self.policy(entity_key)
        self._memory.pop(entity_key, None)
        self._last_attempt.pop(entity_key, None)
        if policy.data_key is not None:
            self.storage.remove(policy.data_key)
            self.storage.remove(policy.timestamp_key)
