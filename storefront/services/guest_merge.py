"""
Guest-to-authenticated wishlist merge

Runs once when a visitor signs in. Products saved to the anonymous
(per-browser) wishlist are pushed to the user's server-side wishlist one
at a time, so the backend never sees a burst of parallel toggles. A
failure on one product is logged and the loop moves on.
"""
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from pydantic import ValidationError

from storefront.connectors.storefront_api import StorefrontAPIConnector
from storefront.core.exceptions import StorefrontError
from storefront.domain.product import map_product_from_wire
from storefront.storage.local_storage import PersistenceAdapter

if TYPE_CHECKING:
    from storefront.services.wishlist_store import WishlistStore

logger = logging.getLogger(__name__)

GUEST_WISHLIST_KEY = "wishlist"


@dataclass
class MergeResult:
    merged: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.merged) + len(self.skipped) + len(self.failed)


class GuestWishlistMerger:
    """Pushes the anonymous wishlist to the signed-in user's wishlist"""

    def __init__(self, connector: StorefrontAPIConnector, storage: PersistenceAdapter):
        self.connector = connector
        self.storage = storage

    def guest_items(self) -> list:
        items = self.storage.get_json(GUEST_WISHLIST_KEY, default=[])
        if not isinstance(items, list):
            logger.warning("Guest wishlist is not a list, ignoring it")
            return []
        return items

    async def run(self, store: "WishlistStore",
                  result: Optional[MergeResult] = None) -> MergeResult:
        """
        Merge the guest wishlist into ``store`` (already authenticated)

        ``result`` is filled in as items are processed, so the caller keeps
        the per-item outcome even when the final refetch raises. When the
        guest list is empty the storage key is removed and no refetch is
        done; the caller loads the wishlist.
        """
        if result is None:
            result = MergeResult()
        guest_items = self.guest_items()

        if not guest_items:
            self.storage.remove(GUEST_WISHLIST_KEY)
            return result

        logger.info("Merging %d guest wishlist items", len(guest_items))

        for raw in guest_items:
            try:
                product = map_product_from_wire(raw)
            except ValidationError as e:
                logger.error("Skipping malformed guest wishlist item: %s", e)
                continue

            if not store.insert_optimistic(product):
                result.skipped.append(product.id)
                continue

            try:
                await self.connector.toggle_wishlist(product.id, store.token)
                result.merged.append(product.id)
            except StorefrontError as e:
                logger.error("Failed to sync guest item %s: %s", product.id, e)
                result.failed.append(product.id)

        self.storage.remove(GUEST_WISHLIST_KEY)

        # Reconcile order and duplicates with the server copy
        await store.refresh()

        logger.info(
            "Guest wishlist merge done: %d merged, %d skipped, %d failed",
            len(result.merged), len(result.skipped), len(result.failed),
        )
        return result
