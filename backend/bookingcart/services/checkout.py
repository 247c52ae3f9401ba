"""
bookingcart/services/checkout.py - Validate -> commit -> reset, for one cart.

State machine per attempt:
    idle -> validating -> conflicted                  (validate returned conflicts)
                       -> committing -> committed     (count reset, cart:updated, redirect)
                                     -> conflicted    (409 at commit: slot taken after validate)
                                     -> failed        (anything else)

Only one attempt runs at a time; a checkout() issued while validating/committing returns
the current state with `ignored=True`. `abandon()` (user left the cart view) bumps the
attempt generation: any response belonging to an older generation is dropped instead of
being applied to the state. Conflicts are always handed back to the user, never retried.
"""
import logging
from typing import Callable, List, Optional

from bookingcart.config import settings
from bookingcart.core.cart_count import CartCountStore
from bookingcart.core.events import CartEventBus
from bookingcart.integrations.booking_api import (
    BookingApiClient,
    BookingApiError,
    CheckoutConflictError,
    parse_conflicts,
)
from bookingcart.schemas.checkout import (
    IN_FLIGHT_STATES,
    CheckoutOutcome,
    CheckoutState,
    ConflictRecord,
    FailureKind,
)

logger = logging.getLogger("bookingcart.checkout")

CHECKOUT_FAILED_MESSAGE = "Checkout failed. Please try again."


class CheckoutOrchestrator:
    def __init__(
        self,
        api: BookingApiClient,
        bus: CartEventBus,
        count_store: CartCountStore,
        count_key: str,
        on_clear_failed: Optional[Callable[[], None]] = None,
    ):
        self.api = api
        self.bus = bus
        self.count_store = count_store
        self.count_key = count_key
        self.on_clear_failed = on_clear_failed

        self.state = CheckoutState.IDLE
        self.conflicts: List[ConflictRecord] = []
        self.failure: Optional[FailureKind] = None
        self.error: Optional[str] = None
        self.booking_reference: Optional[str] = None
        self._generation = 0
        self._commit_pending = False

    @property
    def in_flight(self) -> bool:
        # A commit call already on the wire blocks new attempts even after abandon()
        return self.state in IN_FLIGHT_STATES or self._commit_pending

    def snapshot(self, ignored: bool = False) -> CheckoutOutcome:
        return CheckoutOutcome(
            state=self.state,
            conflicts=list(self.conflicts),
            failure=self.failure,
            error=self.error,
            booking_reference=self.booking_reference,
            redirect_to=settings.post_checkout_path if self.state == CheckoutState.COMMITTED else None,
            ignored=ignored,
        )

    def _reset(self, state: CheckoutState) -> None:
        self.state = state
        self.conflicts = []
        self.failure = None
        self.error = None
        self.booking_reference = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def abandon(self) -> None:
        """Forget the current attempt; late responses for it are discarded."""
        self._generation += 1
        self._reset(CheckoutState.IDLE)

    def _conflicted(self, conflicts: List[ConflictRecord], kind: FailureKind) -> CheckoutOutcome:
        self.state = CheckoutState.CONFLICTED
        self.conflicts = conflicts
        self.failure = kind
        return self.snapshot()

    def _failed(self, message: str) -> CheckoutOutcome:
        self.state = CheckoutState.FAILED
        self.failure = FailureKind.TRANSIENT
        self.error = message
        return self.snapshot()

    async def checkout(self) -> CheckoutOutcome:
        if self.in_flight:
            logger.info("checkout already in progress for %s (state=%s)", self.count_key, self.state.value)
            return self.snapshot(ignored=True)

        self._generation += 1
        generation = self._generation
        self._reset(CheckoutState.VALIDATING)
        logger.info("checkout %s#%d: validating", self.count_key, generation)

        try:
            conflicts = await self.api.validate_cart()
        except BookingApiError as e:
            if not self._is_current(generation):
                return self.snapshot()
            logger.warning("checkout %s#%d: validation failed: %s", self.count_key, generation, e.message)
            return self._failed(e.message or CHECKOUT_FAILED_MESSAGE)

        if not self._is_current(generation):
            logger.info("checkout %s#%d: discarding stale validation result", self.count_key, generation)
            return self.snapshot()

        if conflicts:
            logger.info("checkout %s#%d: %d conflict(s) found", self.count_key, generation, len(conflicts))
            return self._conflicted(conflicts, FailureKind.VALIDATION_CONFLICT)

        self.state = CheckoutState.COMMITTING
        self._commit_pending = True
        try:
            reference = await self.api.commit_checkout()
        except CheckoutConflictError as e:
            if not self._is_current(generation):
                return self.snapshot()
            conflicts = parse_conflicts(e.data)
            logger.warning(
                "checkout %s#%d: commit rejected with %d conflict(s)", self.count_key, generation, len(conflicts)
            )
            return self._conflicted(conflicts, FailureKind.COMMIT_CONFLICT)
        except BookingApiError as e:
            if not self._is_current(generation):
                return self.snapshot()
            logger.warning("checkout %s#%d: commit failed: %s", self.count_key, generation, e.message)
            return self._failed(e.message or CHECKOUT_FAILED_MESSAGE)
        finally:
            self._commit_pending = False

        # The server emptied the cart either way; views must reload even if this attempt is stale
        self.count_store.try_set(self.count_key, 0)
        self.bus.cart_updated(count=0)

        if not self._is_current(generation):
            logger.info("checkout %s#%d: committed after the view was left", self.count_key, generation)
            return self.snapshot()

        self.state = CheckoutState.COMMITTED
        self.booking_reference = reference
        logger.info("checkout %s#%d: committed (reference=%s)", self.count_key, generation, reference)
        return self.snapshot()

    async def clear(self) -> bool:
        """
        Best effort: a failure is logged and handed to `on_clear_failed`, never raised.
        Returns True when the server confirmed the clear.
        """
        try:
            await self.api.clear_cart()
        except BookingApiError as e:
            logger.warning("clear cart failed for %s: %s", self.count_key, e.message)
            if self.on_clear_failed is not None:
                self.on_clear_failed()
            return False
        self.count_store.try_set(self.count_key, 0)
        self.bus.cart_updated(count=0)
        return True
