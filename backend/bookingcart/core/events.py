"""
bookingcart/core/events.py - In-process cart change bus.

Every successful cart mutation (add, checkout commit, clear) publishes one `cart:updated`
event. Subscribers treat it as "invalidate and reload"; the optional count is only a hint
for the badge and never a patch of cart contents.
"""
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger("bookingcart.events")

CART_UPDATED = "cart:updated"


@dataclass(frozen=True)
class CartEvent:
    type: str = CART_UPDATED
    count: Optional[int] = None


Handler = Callable[[CartEvent], None]


class CartEventBus:
    """Synchronous publish/subscribe channel; handlers run in subscription order."""

    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: CartEvent) -> None:
        # Snapshot: handlers added while publishing only see later events
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("cart event handler %r failed for %s", handler, event.type)

    def cart_updated(self, count: Optional[int] = None) -> None:
        self.publish(CartEvent(type=CART_UPDATED, count=count))

    def __len__(self) -> int:
        return len(self._handlers)
