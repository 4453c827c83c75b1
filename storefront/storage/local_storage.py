"""
Local Persistence Adapter

Key-value storage for cached catalog data, the guest wishlist and local
reviews. Two backends are provided:

- ``MemoryStorage``: process-local dict, optional byte quota. Also used
  as the session-scoped store (cleared when the process ends).
- ``FileStorage``: JSON file on disk, survives restarts.

``PersistenceAdapter`` wraps a backend with failure tolerance: quota
and availability errors are logged and reported as a falsy return value,
never raised. Malformed JSON values are discarded and read as missing.
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from storefront.core.exceptions import StorageError, StorageQuotaExceeded, StorageUnavailable
from storefront.sync.channel import StorageEvent, StorageEventChannel

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """Base class for string key-value storage backends"""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> Iterator[str]:
        raise NotImplementedError

    def clear(self) -> None:
        for key in list(self.keys()):
            self.remove_item(key)


class MemoryStorage(KeyValueStorage):
    """
    In-memory storage

    Args:
        quota_bytes: Maximum total size of keys plus values (None: unlimited)
        enabled: When False every operation raises StorageUnavailable
    """

    def __init__(self, quota_bytes: Optional[int] = None, enabled: bool = True):
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.enabled = enabled

    def _check_enabled(self):
        if not self.enabled:
            raise StorageUnavailable("Storage is disabled")

    def _used_bytes(self, excluding: Optional[str] = None) -> int:
        return sum(
            len(k.encode()) + len(v.encode())
            for k, v in self._data.items()
            if k != excluding
        )

    def get_item(self, key: str) -> Optional[str]:
        self._check_enabled()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_enabled()
        if self.quota_bytes is not None:
            needed = self._used_bytes(excluding=key) + len(key.encode()) + len(value.encode())
            if needed > self.quota_bytes:
                raise StorageQuotaExceeded(
                    f"Writing {key} needs {needed} bytes, quota is {self.quota_bytes}"
                )
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._check_enabled()
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        self._check_enabled()
        return iter(list(self._data.keys()))


class FileStorage(KeyValueStorage):
    """
    Storage persisted as a single JSON object on disk

    The file is re-read on every access so that several processes sharing
    the path see each other's writes. Writes are atomic (temp file + rename).
    """

    def __init__(self, path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError:
            logger.warning("Storage file %s is corrupt, starting empty", self.path)
            return {}
        except OSError as e:
            raise StorageUnavailable(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            return {}
        return data

    def _save(self, data: Dict[str, str]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if e.errno == 28:  # ENOSPC
                raise StorageQuotaExceeded(f"No space left writing {self.path}") from e
            raise StorageUnavailable(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)

    def keys(self) -> Iterator[str]:
        return iter(list(self._load().keys()))


class PersistenceAdapter:
    """
    Failure-tolerant view over a storage backend

    Keys passed to this adapter are logical (``cache_products``); the
    backend sees them with ``prefix`` prepended. Successful writes are
    published on ``channel`` with this adapter's ``source`` so other tabs
    can pick them up.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        prefix: str = "",
        channel: Optional[StorageEventChannel] = None,
        source: Optional[str] = None,
    ):
        self.storage = storage
        self.prefix = prefix
        self.channel = channel
        self.source = source

    def full_key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def logical_key(self, full_key: str) -> Optional[str]:
        """Strip the prefix; None when the key does not belong to this adapter"""
        if not full_key.startswith(self.prefix):
            return None
        return full_key[len(self.prefix):]

    def get(self, key: str) -> Optional[str]:
        try:
            return self.storage.get_item(self.full_key(key))
        except StorageError as e:
            logger.warning("Storage read failed for %s: %s", key, e)
            return None

    def set(self, key: str, value: str) -> bool:
        full_key = self.full_key(key)
        try:
            old_value = self.storage.get_item(full_key)
            self.storage.set_item(full_key, value)
        except StorageQuotaExceeded as e:
            logger.warning("Storage quota exceeded writing %s: %s", key, e)
            return False
        except StorageError as e:
            logger.warning("Storage write failed for %s: %s", key, e)
            return False
        self._publish(full_key, old_value, value)
        return True

    def remove(self, key: str) -> bool:
        full_key = self.full_key(key)
        try:
            old_value = self.storage.get_item(full_key)
            self.storage.remove_item(full_key)
        except StorageError as e:
            logger.warning("Storage remove failed for %s: %s", key, e)
            return False
        if old_value is not None:
            self._publish(full_key, old_value, None)
        return True

    def get_json(self, key: str, default: Any = None) -> Any:
        """Read and parse a JSON value. Malformed entries are discarded."""
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Discarding malformed cache entry %s", key)
            self.remove(key)
            return default

    def set_json(self, key: str, value: Any) -> bool:
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error("Cannot serialize value for %s: %s", key, e)
            return False
        return self.set(key, raw)

    def _publish(self, full_key: str, old_value: Optional[str], new_value: Optional[str]):
        if self.channel is None:
            return
        self.channel.publish(StorageEvent(
            key=full_key,
            old_value=old_value,
            new_value=new_value,
            source=self.source,
        ))
