import asyncio
import json
from datetime import date
from decimal import Decimal

import httpx
import pytest

from bookingcart.integrations.booking_api import (
    BookingApiClient,
    BookingApiError,
    CheckoutConflictError,
    parse_conflicts,
)
from bookingcart.schemas.cart import AddItemBody


def _client(handler, token="tok-1"):
    return BookingApiClient(token=token, base_url="http://api.test/api/", transport=httpx.MockTransport(handler))


class TestFetchCart:
    def test_items_are_normalized_and_token_forwarded(self, raw_item):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"_id": "cart-1", "items": [raw_item()]})

        items = asyncio.run(_client(handler).fetch_cart())

        assert seen == {"url": "http://api.test/api/cart", "auth": "Bearer tok-1"}
        assert items[0].artist.id == "A1"
        assert items[0].booking_date == "2025-03-05"

    def test_unauthenticated_is_empty_cart(self):
        items = asyncio.run(_client(lambda r: httpx.Response(401, json={"message": "Unauthorized"})).fetch_cart())
        assert items == []

    def test_server_error_raises(self):
        with pytest.raises(BookingApiError) as exc:
            asyncio.run(_client(lambda r: httpx.Response(500, json={"message": "boom"})).fetch_cart())
        assert exc.value.status_code == 500
        assert exc.value.message == "boom"

    def test_transport_error_raises_api_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BookingApiError) as exc:
            asyncio.run(_client(handler).fetch_cart())
        assert exc.value.status_code is None


class TestValidateAndCheckout:
    def test_validate_parses_conflicts(self):
        def handler(request):
            assert request.method == "POST"
            assert request.url.path == "/api/cart/validate"
            return httpx.Response(200, json={"conflicts": [
                {"date": "2025-03-05T00:00:00.000Z", "startTime": "18:00", "endTime": "22:00",
                 "message": "Already booked", "artistId": "A1"},
            ]})

        conflicts = asyncio.run(_client(handler).validate_cart())

        assert len(conflicts) == 1
        assert conflicts[0].date == "2025-03-05"
        assert conflicts[0].rebook_path == "/book-artist/A1"

    def test_validate_without_conflicts(self):
        assert asyncio.run(_client(lambda r: httpx.Response(200, json={"conflicts": []})).validate_cart()) == []

    def test_checkout_returns_reference(self):
        ref = asyncio.run(_client(lambda r: httpx.Response(201, json={"bookingReference": "BK-7"})).commit_checkout())
        assert ref == "BK-7"

    def test_checkout_409_raises_conflict_with_payload(self):
        body = {"message": "Conflict", "conflicts": [{"date": "2025-03-05", "message": "Taken"}]}

        with pytest.raises(CheckoutConflictError) as exc:
            asyncio.run(_client(lambda r: httpx.Response(409, json=body)).commit_checkout())

        assert exc.value.status_code == 409
        assert exc.value.data == body

    def test_checkout_other_error_is_not_a_conflict(self):
        with pytest.raises(BookingApiError) as exc:
            asyncio.run(_client(lambda r: httpx.Response(502, text="bad gateway")).commit_checkout())
        assert not isinstance(exc.value, CheckoutConflictError)
        assert exc.value.message == "Booking API error 502"


class TestAddAndClear:
    def test_add_item_sends_camel_case(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(201, json={"_id": "item-9"})

        body = AddItemBody(
            artist_id=" A1\u200b",
            booking_date=date(2025, 3, 5),
            start_time="18:00",
            end_time="22:00",
            hours=4,
            total_price=100,
            selected_equipment_packages=["p1"],
        )
        asyncio.run(_client(handler).add_item(body))

        assert sent["artistId"] == "A1"
        assert sent["bookingDate"] == "2025-03-05"
        assert sent["selectedEquipmentPackages"] == ["p1"]
        assert "venueDetails" not in sent

    def test_add_item_keeps_exact_prices(self):
        sent = {}

        def handler(request):
            sent.update(json.loads(request.content))
            return httpx.Response(201, json={})

        body = AddItemBody.model_validate({
            "artistId": "A1", "bookingDate": "2025-03-05", "startTime": "18:00", "endTime": "20:30",
            "hours": "2.5", "totalPrice": "120.125",
        })
        asyncio.run(_client(handler).add_item(body))

        assert body.total_price == Decimal("120.125")
        assert body.hours == Decimal("2.5")
        assert sent["totalPrice"] == 120.125

    def test_clear_accepts_no_content(self):
        def handler(request):
            assert request.url.path == "/api/cart/clear"
            return httpx.Response(204)

        assert asyncio.run(_client(handler).clear_cart()) is None


class TestParseConflicts:
    def test_shapes(self):
        assert parse_conflicts(None) == []
        assert parse_conflicts({"conflicts": []}) == []
        assert [c.message for c in parse_conflicts({"message": "Nope"})] == ["Nope"]
        assert [c.message for c in parse_conflicts(["Taken", None])] == ["Taken"]
        embedded = parse_conflicts([{"artistId": {"_id": "A3", "stageName": "X"}, "message": ""}])
        assert embedded[0].artist_id == "A3"
        assert embedded[0].message == "Conflict"
