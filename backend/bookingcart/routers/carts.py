"""
bookingcart/routers/carts.py
Cart endpoints for the booking front end. Every call forwards the caller's bearer token
to the marketplace API; cart contents are never stored here.

Behavior
- GET /cart returns bundles (line items merged by artist + equipment + venue) with
  per-bundle pricing and the cart total. After any cart:updated event the next GET
  re-fetches from the marketplace; if that fails the last good view is returned with `error`.
- POST /cart/checkout validates, then commits. Status codes:
  200 committed, 409 conflicts (from validation or a late commit-time 409),
  502 other failure, 202 when a checkout for this cart is already running
  (or the attempt was abandoned before it finished).
- POST /cart/checkout/abandon: the user left the cart page; late results are dropped.
- DELETE /cart is best effort and always answers 204; failures are retried in the background
  and the cart view reports `clearPending`.
- GET /cart/count is the badge hint only.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from bookingcart.core.auth import get_bearer_token
from bookingcart.integrations.booking_api import BookingApiError
from bookingcart.schemas.cart import AddItemBody, CartView
from bookingcart.schemas.checkout import CheckoutState
from bookingcart.services.cart_session import CartSession, CartSessionRegistry

router = APIRouter(prefix="/cart", tags=["Cart"])

_OUTCOME_STATUS = {
    CheckoutState.IDLE: status.HTTP_202_ACCEPTED,
    CheckoutState.COMMITTED: status.HTTP_200_OK,
    CheckoutState.CONFLICTED: status.HTTP_409_CONFLICT,
    CheckoutState.FAILED: status.HTTP_502_BAD_GATEWAY,
}


def get_registry(request: Request) -> CartSessionRegistry:
    return request.app.state.cart_sessions


def get_session(
    token: str = Depends(get_bearer_token),
    registry: CartSessionRegistry = Depends(get_registry),
) -> CartSession:
    return registry.get(token)


@router.get("", response_model=CartView)
async def get_cart(session: CartSession = Depends(get_session)):
    return await session.load()


@router.get("/count")
def get_cart_count(session: CartSession = Depends(get_session)):
    return {"count": session.count_store.get(session.key)}


@router.post("/items", status_code=201)
async def add_to_cart(payload: AddItemBody, session: CartSession = Depends(get_session)):
    try:
        count = await session.add_item(payload)
    except BookingApiError as e:
        code = e.status_code if e.status_code and 400 <= e.status_code < 500 else 502
        raise HTTPException(status_code=code, detail=e.message)
    return {"count": count}


@router.post("/checkout")
async def checkout(session: CartSession = Depends(get_session)):
    outcome = await session.checkout()
    if outcome.ignored:
        code = status.HTTP_202_ACCEPTED
    else:
        code = _OUTCOME_STATUS.get(outcome.state, status.HTTP_200_OK)
    return JSONResponse(status_code=code, content=outcome.model_dump(mode="json", by_alias=True))


@router.post("/checkout/abandon", status_code=204)
def abandon_checkout(session: CartSession = Depends(get_session)):
    session.leave()


@router.delete("", status_code=204)
async def clear_cart(session: CartSession = Depends(get_session)):
    await session.clear()
