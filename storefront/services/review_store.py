"""
Review Store - landing page testimonials kept in local storage

Testimonials are curated locally (admin screen) and not synced with the
API, so this store has no cache controller or remote hooks. The stored
list is seeded from ``initial_reviews`` the first time.
"""
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError

from storefront.domain.review import Review, ReviewCreate, ReviewPage
from storefront.storage.local_storage import PersistenceAdapter

logger = logging.getLogger(__name__)

REVIEWS_KEY = "reviews"

ReviewListener = Callable[['ReviewStore'], None]


class ReviewStore:

    def __init__(self, storage: PersistenceAdapter,
                 initial_reviews: Optional[Iterable[Review]] = None,
                 clock: Callable[[], float] = time.time):
        self.storage = storage
        self.clock = clock
        self.initial_reviews = list(initial_reviews or [])
        self._items: List[Review] = []
        self._listeners: List[ReviewListener] = []
        self._load()

    @property
    def items(self) -> List[Review]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def get(self, review_id: int) -> Optional[Review]:
        index = self._index_of(review_id)
        return self._items[index] if index is not None else None

    def _index_of(self, review_id: int) -> Optional[int]:
        for index, review in enumerate(self._items):
            if review.id == review_id:
                return index
        return None

    def subscribe(self, listener: ReviewListener) -> Callable[[], None]:
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
                logger.exception("ReviewStore listener failed")

    # =========================================================================
    # Persistence
    # =========================================================================

    def _load(self) -> None:
        saved = self.storage.get_json(REVIEWS_KEY)
        items = None
        if isinstance(saved, list):
            try:
                # All or nothing: a half-valid list falls back to the seed
                items = [Review.model_validate(review) for review in saved]
            except ValidationError as e:
                logger.warning("Discarding malformed stored reviews: %s", e)
                self.storage.remove(REVIEWS_KEY)
                items = None

        if items is None:
            items = list(self.initial_reviews)
        else:
            items = self._refresh_images(items)

        self._items = items
        self._persist()

    def _refresh_images(self, items: List[Review]) -> List[Review]:
        """Pick up image path changes from the seed for stored reviews"""
        seeded = {review.id: review for review in self.initial_reviews}
        refreshed = []
        for review in items:
            initial = seeded.get(review.id)
            if initial is not None and initial.image != review.image:
                review = review.model_copy(update={'image': initial.image})
            refreshed.append(review)
        return refreshed

    def _persist(self) -> None:
        self.storage.set_json(REVIEWS_KEY, [review.model_dump(mode='json') for review in self._items])

    # =========================================================================
    # Operations
    # =========================================================================

    async def fetch_all(self, force: bool = False) -> List[Review]:
        return self.items

    def _next_id(self) -> int:
        next_id = int(self.clock() * 1000)
        highest = max((review.id for review in self._items), default=0)
        return max(next_id, highest + 1)

    def add(self, review: Union[ReviewCreate, Dict[str, Any]]) -> Review:
        """Add a testimonial at the top of the list"""
        if isinstance(review, dict):
            review = ReviewCreate.model_validate(review)
        created = Review(id=self._next_id(), **review.model_dump())
        self._items.insert(0, created)
        self._persist()
        self._notify()
        return created

    def update(self, review: Review) -> Optional[Review]:
        index = self._index_of(review.id)
        if index is None:
            return None
        self._items[index] = review
        self._persist()
        self._notify()
        return review

    def delete(self, review_id: int) -> bool:
        index = self._index_of(review_id)
        if index is None:
            return False
        del self._items[index]
        self._persist()
        self._notify()
        return True

    def by_page(self, page: Union[ReviewPage, str]) -> List[Review]:
        page = ReviewPage(page)
        return [review for review in self._items if review.page == page]
