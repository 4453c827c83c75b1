"""
Storage event channel

Every write through a ``PersistenceAdapter`` is published here so that
other tabs sharing the same storage area can react to it. Tabs are
identified by ``source``; listeners decide whether to skip their own events.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageEvent:
    key: str
    old_value: Optional[str]
    new_value: Optional[str]
    source: Optional[str] = None


StorageListener = Callable[[StorageEvent], None]


class StorageEventChannel:
    """In-process pub/sub for storage mutations"""

    def __init__(self):
        self._listeners: List[StorageListener] = []

    def subscribe(self, listener: StorageListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: StorageEvent) -> None:
        # Snapshot so listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Storage listener failed for key %s", event.key)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
