from storefront.sync.channel import StorageEvent, StorageEventChannel
from storefront.sync.cross_tab import CrossTabSynchronizer

__all__ = ['StorageEvent', 'StorageEventChannel', 'CrossTabSynchronizer']
