import asyncio
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List

import pytest

from bookingcart.core.cart_count import InMemoryCartCountStore
from bookingcart.core.events import CartEventBus
from bookingcart.services.checkout import CheckoutOrchestrator
from bookingcart.services.normalizer import normalize_line_items


@dataclass
class Gate:
    """A scripted response that is held back until `event` is set."""
    result: Any
    event: asyncio.Event = field(default_factory=asyncio.Event)


class FakeBookingApi:
    """
    Stands in for BookingApiClient. Each *_script is a queue of results; an entry may be
    a value, an exception instance (raised) or a Gate (awaited, then resolved).
    """

    def __init__(self):
        self.raw_items: List[Dict[str, Any]] = []
        self.fetch_script: List[Any] = []
        self.validate_script: List[Any] = []
        self.commit_script: List[Any] = []
        self.clear_script: List[Any] = []
        self.add_script: List[Any] = []
        self.calls = Counter()

    async def _resolve(self, script: List[Any], default: Any) -> Any:
        entry = script.pop(0) if script else default
        if isinstance(entry, Gate):
            await entry.event.wait()
            entry = entry.result
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def fetch_cart(self):
        self.calls["fetch"] += 1
        await self._resolve(self.fetch_script, None)
        return normalize_line_items(self.raw_items)

    async def add_item(self, body):
        self.calls["add"] += 1
        await self._resolve(self.add_script, None)
        self.raw_items.append(body.model_dump(mode="json", by_alias=True))
        return {"_id": f"item-{len(self.raw_items)}"}

    async def validate_cart(self):
        self.calls["validate"] += 1
        return await self._resolve(self.validate_script, [])

    async def commit_checkout(self):
        self.calls["commit"] += 1
        reference = await self._resolve(self.commit_script, "BK-1")
        self.raw_items = []
        return reference

    async def clear_cart(self):
        self.calls["clear"] += 1
        await self._resolve(self.clear_script, None)
        self.raw_items = []


class RecordingScheduler:
    def __init__(self):
        self.jobs = []

    def add_job(self, func, trigger, **kwargs):
        self.jobs.append((func, trigger, kwargs))


def raw_line_item(**overrides) -> Dict[str, Any]:
    item = {
        "_id": "item-1",
        "artistId": {"_id": "A1", "stageName": "DJ Nova", "profileImage": "https://cdn/a1.png"},
        "bookingDate": "2025-03-05T00:00:00.000Z",
        "startTime": "18:00",
        "endTime": "22:00",
        "hours": 4,
        "totalPrice": 100,
        "selectedEquipmentPackages": [],
        "selectedCustomPackages": [],
        "isEquipmentMultiDay": False,
        "equipmentEventDates": [],
        "venueDetails": {"address": "Gulf Road 1", "city": "Kuwait City", "state": "Capital", "country": "Kuwait"},
    }
    item.update(overrides)
    return item


@pytest.fixture()
def raw_item():
    return raw_line_item


@pytest.fixture()
def fake_api():
    return FakeBookingApi()


@pytest.fixture()
def bus():
    return CartEventBus()


@pytest.fixture()
def events(bus):
    received = []
    bus.subscribe(received.append)
    return received


@pytest.fixture()
def count_store():
    return InMemoryCartCountStore()


@pytest.fixture()
def orchestrator(fake_api, bus, count_store):
    return CheckoutOrchestrator(fake_api, bus, count_store, "cart-1")


@pytest.fixture()
def scheduler():
    return RecordingScheduler()
