"""
bookingcart/integrations/booking_api.py - Marketplace cart API client.

Wraps the remote endpoints the cart engine depends on:
- GET  /cart           -> current line items (401 is read as an empty cart)
- POST /cart/add       -> add one slot
- POST /cart/validate  -> {"conflicts": [...]} dry-run availability check
- POST /cart/checkout  -> booking reference; 409 carries {"conflicts"?, "message"?}
- POST /cart/clear

Every non-2xx response or transport failure raises BookingApiError; a 409 from checkout
raises CheckoutConflictError. Callers never see raw httpx exceptions.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from bookingcart.config import settings
from bookingcart.schemas.cart import AddItemBody, LineItem
from bookingcart.schemas.checkout import ConflictRecord
from bookingcart.services.normalizer import normalize_line_items

logger = logging.getLogger("bookingcart.booking_api")


class BookingApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None, data: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.data = data if data is not None else {}


class CheckoutConflictError(BookingApiError):
    """Checkout rejected with 409: a slot was taken after validation."""


def _rebook_path(artist_id: Optional[str]) -> Optional[str]:
    if not artist_id:
        return None
    return settings.rebook_path_template.format(artist_id=artist_id)


def parse_conflicts(payload: Any) -> List[ConflictRecord]:
    """
    Accepts a list of conflict objects, or a 409 body {"conflicts": [...], "message": "..."}.
    A body with only a message becomes a single conflict row carrying that message.
    """
    if isinstance(payload, dict):
        raw = payload.get("conflicts")
        if isinstance(raw, list):
            return parse_conflicts(raw)
        message = payload.get("message")
        if isinstance(message, list):
            return parse_conflicts(message)
        return [ConflictRecord(message=str(message))] if message else []
    if not isinstance(payload, list):
        return []

    out: List[ConflictRecord] = []
    for c in payload:
        if isinstance(c, dict):
            record = ConflictRecord.model_validate(c)
        elif c:
            record = ConflictRecord(message=str(c))
        else:
            continue
        record.rebook_path = _rebook_path(record.artist_id)
        out.append(record)
    return out


def _json_or_empty(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}


class BookingApiClient:
    """One client per caller identity; the bearer token is forwarded as-is."""

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.base_url = (base_url or settings.booking_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.booking_api_timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, json=json, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise BookingApiError(f"Booking API unreachable: {e}") from e

        if response.status_code >= 400:
            data = _json_or_empty(response)
            message = None
            if isinstance(data, dict) and isinstance(data.get("message"), str):
                message = data["message"]
            message = message or f"Booking API error {response.status_code}"
            logger.warning("%s %s -> %s %s", method, path, response.status_code, message)
            raise BookingApiError(message, status_code=response.status_code, data=data)

        if response.status_code == 204:
            return {}
        return _json_or_empty(response)

    async def fetch_cart(self) -> List[LineItem]:
        try:
            data = await self._request("GET", "/cart")
        except BookingApiError as e:
            if e.status_code == 401:
                return []
            raise
        items = data.get("items") if isinstance(data, dict) else data
        return normalize_line_items(items)

    async def add_item(self, body: AddItemBody) -> Dict[str, Any]:
        payload = body.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", "/cart/add", json=payload)
        return data if isinstance(data, dict) else {}

    async def validate_cart(self) -> List[ConflictRecord]:
        data = await self._request("POST", "/cart/validate")
        return parse_conflicts(data.get("conflicts") if isinstance(data, dict) else data)

    async def commit_checkout(self) -> Optional[str]:
        """Returns the booking reference the backend assigned, if it sent one."""
        try:
            data = await self._request("POST", "/cart/checkout")
        except BookingApiError as e:
            if e.status_code == 409:
                raise CheckoutConflictError(e.message, status_code=409, data=e.data) from e
            raise
        if not isinstance(data, dict):
            return None
        ref = data.get("bookingReference") or data.get("bookingId") or data.get("_id")
        return str(ref) if ref else None

    async def clear_cart(self) -> None:
        await self._request("POST", "/cart/clear")
