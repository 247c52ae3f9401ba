"""
bookingcart/core/cart_count.py - Cart item count hint for badges.

The count is display-only: it is never read back for pricing or grouping.
`memory` keeps it per process, `firestore` shares it across instances
(collection name honours FIREBASE_COLLECTION_PREFIX).
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from bookingcart.config import settings

logger = logging.getLogger("bookingcart.cart_count")

CountListener = Callable[[str, int], None]


class CartCountStore(ABC):
    """get / set / subscribe over a per-cart integer."""

    def __init__(self) -> None:
        self._listeners: List[CountListener] = []

    @abstractmethod
    def get(self, key: str) -> int:
        ...

    @abstractmethod
    def _write(self, key: str, count: int) -> None:
        ...

    def set(self, key: str, count: int) -> None:
        count = max(0, int(count))
        self._write(key, count)
        for listener in list(self._listeners):
            listener(key, count)

    def try_set(self, key: str, count: int) -> bool:
        """set() for callers that must not fail because the badge hint could not be stored."""
        try:
            self.set(key, count)
        except Exception:
            logger.warning("could not store cart count %s for %s", count, key, exc_info=True)
            return False
        return True

    def subscribe(self, listener: CountListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


class InMemoryCartCountStore(CartCountStore):
    def __init__(self) -> None:
        super().__init__()
        self._counts: Dict[str, int] = {}

    def get(self, key: str) -> int:
        return self._counts.get(key, 0)

    def _write(self, key: str, count: int) -> None:
        self._counts[key] = count


def _prefixed(name: str) -> str:
    prefix = (settings.firebase_collection_prefix or "").strip()
    return f"{prefix}{name}" if prefix else name


class FirestoreCartCountStore(CartCountStore):
    def __init__(self, db, collection: str = "cart_counts") -> None:
        super().__init__()
        self._db = db
        self._collection = _prefixed(collection)

    def get(self, key: str) -> int:
        snap = self._db.collection(self._collection).document(key).get()
        if not snap.exists:
            return 0
        data = snap.to_dict() or {}
        try:
            return max(0, int(data.get("count", 0) or 0))
        except (TypeError, ValueError):
            logger.debug("non-numeric cart count for %s: %r", key, data.get("count"))
            return 0

    def _write(self, key: str, count: int) -> None:
        from google.cloud.firestore_v1 import SERVER_TIMESTAMP

        self._db.collection(self._collection).document(key).set({
            "count": count,
            "updated_at": SERVER_TIMESTAMP,
        })


def build_count_store() -> CartCountStore:
    if settings.cart_count_backend == "firestore":
        from bookingcart.config import get_db

        return FirestoreCartCountStore(get_db())
    return InMemoryCartCountStore()
