"""
Cross-Tab Synchronizer

Applies storage writes made by other tabs to this tab's stores. Values are
replaced wholesale: last writer wins, there is no merge or conflict
detection. The server stays the source of truth on the next fetch.
"""
import json
import logging
from typing import Any, Callable, Dict, Optional

from storefront.sync.channel import StorageEvent, StorageEventChannel

logger = logging.getLogger(__name__)

SyncHandler = Callable[[Any], None]


class CrossTabSynchronizer:
    """
    Routes storage events from other tabs to registered handlers

    Args:
        channel: Channel shared by every tab on the same storage area
        source: This tab's identifier; events it published itself are ignored
        prefix: Storage key prefix; handlers are registered with logical keys
    """

    def __init__(self, channel: StorageEventChannel, source: str, prefix: str = ""):
        self.channel = channel
        self.source = source
        self.prefix = prefix
        self._handlers: Dict[str, SyncHandler] = {}
        self._unsubscribe: Optional[Callable[[], None]] = None

    def register(self, key: str, handler: SyncHandler) -> None:
        """Call ``handler(parsed_value)`` when another tab writes ``key``"""
        self._handlers[f"{self.prefix}{key}"] = handler

    def unregister(self, key: str) -> None:
        self._handlers.pop(f"{self.prefix}{key}", None)

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.channel.subscribe(self.handle_event)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle_event(self, event: StorageEvent) -> None:
        if event.source == self.source:
            return

        handler = self._handlers.get(event.key)
        if handler is None or event.new_value is None:
            return

        try:
            value = json.loads(event.new_value)
        except (json.JSONDecodeError, TypeError):
            logger.error("Failed to sync %s across tabs: malformed value", event.key)
            return

        logger.debug("Applying %s from tab %s", event.key, event.source)
        handler(value)
