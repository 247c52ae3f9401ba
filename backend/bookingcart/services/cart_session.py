"""
bookingcart/services/cart_session.py - Per-cart state held between requests.

A CartSession caches the last successfully computed CartView. It subscribes to the
cart's change bus and, on any `cart:updated`, only marks the cache stale: the next read
re-fetches the line items and regroups/reprices from scratch. A failed re-fetch leaves
the last good view in place with the error attached.
"""
import hashlib
import logging
import time
from collections import OrderedDict
from typing import Callable, List, Optional

from bookingcart.config import settings
from bookingcart.core.cart_count import CartCountStore
from bookingcart.core.events import CartEvent, CartEventBus
from bookingcart.integrations.booking_api import BookingApiClient, BookingApiError
from bookingcart.schemas.cart import AddItemBody, CartView, PricedBundle
from bookingcart.schemas.checkout import CheckoutOutcome
from bookingcart.services.bundling import group_line_items
from bookingcart.services.checkout import CheckoutOrchestrator
from bookingcart.services.pricing import cart_total, price_bundles

logger = logging.getLogger("bookingcart.cart_session")


def session_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()[:32]


class CartSession:
    def __init__(
        self,
        key: str,
        api: BookingApiClient,
        count_store: CartCountStore,
        bus: Optional[CartEventBus] = None,
        retrier=None,
    ):
        self.key = key
        self.api = api
        self.count_store = count_store
        self.bus = bus if bus is not None else CartEventBus()
        self.retrier = retrier
        self.orchestrator = CheckoutOrchestrator(
            api, self.bus, count_store, key, on_clear_failed=self._clear_failed
        )
        self.clear_pending = False
        self.last_used = time.monotonic()

        self._bundles: List[PricedBundle] = []
        self._item_count = 0
        self._stale = True
        self._load_error: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = self.bus.subscribe(self._on_cart_event)

    def _on_cart_event(self, event: CartEvent) -> None:
        self._stale = True

    @property
    def stale(self) -> bool:
        return self._stale

    @property
    def busy(self) -> bool:
        """A checkout on the wire or a clear still being retried; such sessions are never evicted."""
        return self.orchestrator.in_flight or self.clear_pending

    async def load(self, force: bool = False) -> CartView:
        if not (force or self._stale):
            return self.view()
        try:
            items = await self.api.fetch_cart()
        except BookingApiError as e:
            logger.warning("reloading cart %s failed, keeping last view: %s", self.key, e.message)
            self._load_error = e.message
            return self.view()

        self._bundles = price_bundles(group_line_items(items))
        self._item_count = len(items)
        self._stale = False
        self._load_error = None
        self.count_store.try_set(self.key, self._item_count)
        return self.view()

    def view(self) -> CartView:
        o = self.orchestrator
        return CartView(
            item_count=self._item_count,
            bundles=self._bundles,
            grand_total=cart_total(self._bundles),
            currency=settings.currency,
            checkout_state=o.state,
            conflicts=o.conflicts,
            failure=o.failure,
            error=self._load_error or o.error,
            clear_pending=self.clear_pending,
        )

    async def add_item(self, body: AddItemBody) -> Optional[int]:
        """Raises BookingApiError when the add itself is rejected."""
        await self.api.add_item(body)
        count: Optional[int] = None
        try:
            count = len(await self.api.fetch_cart())
        except BookingApiError as e:
            logger.warning("count refresh after add failed for %s: %s", self.key, e.message)
        else:
            self.count_store.try_set(self.key, count)
        self.bus.cart_updated(count=count)
        return count

    async def checkout(self) -> CheckoutOutcome:
        return await self.orchestrator.checkout()

    async def clear(self) -> bool:
        ok = await self.orchestrator.clear()
        if ok:
            self.clear_pending = False
        return ok

    def _clear_failed(self) -> None:
        self.clear_pending = True
        if self.retrier is not None:
            self.retrier.schedule(self)

    async def retry_clear(self) -> bool:
        try:
            await self.api.clear_cart()
        except BookingApiError as e:
            logger.warning("clear retry failed for %s: %s", self.key, e.message)
            return False
        self.clear_pending = False
        self.count_store.try_set(self.key, 0)
        self.bus.cart_updated(count=0)
        return True

    def leave(self) -> None:
        """The cart view was left: drop conflicts and ignore late checkout responses."""
        self.orchestrator.abandon()

    def close(self) -> None:
        self.leave()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class CartSessionRegistry:
    """
    In-process CartSession per bearer token, least recently used first.

    Tokens rotate, so the map is bounded: going over `max_entries` evicts the least recently
    used idle session, and `sweep()` (run periodically from main.py) evicts sessions unused for
    `idle_seconds`. Busy sessions are skipped by both.
    """

    def __init__(
        self,
        count_store: CartCountStore,
        retrier=None,
        api_factory=BookingApiClient,
        max_entries: Optional[int] = None,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.count_store = count_store
        self.retrier = retrier
        self.api_factory = api_factory
        self.max_entries = max_entries if max_entries is not None else settings.session_max_entries
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.session_idle_seconds
        self.clock = clock
        self._sessions: "OrderedDict[str, CartSession]" = OrderedDict()

    def get(self, token: str) -> CartSession:
        key = session_key(token)
        session = self._sessions.get(key)
        if session is None:
            session = CartSession(key, self.api_factory(token=token), self.count_store, retrier=self.retrier)
            self._sessions[key] = session
            self._evict_overflow()
        else:
            self._sessions.move_to_end(key)
        session.last_used = self.clock()
        return session

    def _evict(self, key: str) -> None:
        session = self._sessions.pop(key)
        session.close()
        logger.debug("evicted cart session %s", key)

    def _evict_overflow(self) -> None:
        overflow = len(self._sessions) - self.max_entries
        if overflow <= 0:
            return
        # The newest entry is the one just added; it is never a candidate
        candidates = [k for k, s in list(self._sessions.items())[:-1] if not s.busy]
        for key in candidates[:overflow]:
            self._evict(key)

    def sweep(self) -> int:
        """Evicts idle sessions; returns how many were removed."""
        cutoff = self.clock() - self.idle_seconds
        expired = [k for k, s in self._sessions.items() if s.last_used < cutoff and not s.busy]
        for key in expired:
            self._evict(key)
        if expired:
            logger.info("swept %d idle cart session(s), %d left", len(expired), len(self._sessions))
        return len(expired)

    def drop(self, token: str) -> None:
        key = session_key(token)
        if key in self._sessions:
            self._evict(key)

    def __contains__(self, token: str) -> bool:
        return session_key(token) in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
