from storefront.storage.local_storage import (
    KeyValueStorage,
    MemoryStorage,
    FileStorage,
    PersistenceAdapter,
)

__all__ = ['KeyValueStorage', 'MemoryStorage', 'FileStorage', 'PersistenceAdapter']
