"""
# `bookingcart/main.py` - Application entry point

## Overview
Creates the FastAPI app, configures CORS and logging, wires the cart session registry
and runs the background scheduler used for clear-cart retries.

## Routers
- `/cart` (see `bookingcart/routers/carts.py`)

## Background scheduler
- **Library:** APScheduler (`AsyncIOScheduler`)
- **Jobs:** `cart-session-sweep` every SESSION_SWEEP_MINUTES (evicts idle cart sessions),
  one-shot `clear-retry-<cart>` jobs added when clearing a cart fails
- `startup`: scheduler starts. `shutdown`: scheduler stops without waiting for pending retries.
"""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bookingcart.config import settings
from bookingcart.core.cart_count import build_count_store
from bookingcart.routers import carts
from bookingcart.services.cart_session import CartSessionRegistry
from bookingcart.services.clear_retry import ClearCartRetrier

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)

scheduler = AsyncIOScheduler()

# Initialize FastAPI app
app = FastAPI(
    title="Artist Booking Cart API",
    description="Cart bundling, pricing and checkout for the artist & equipment booking marketplace.",
    version="1.0.0",
    redirect_slashes=False,
    debug=settings.debug,
)

# Configure CORS (allow front-end domain or all origins as specified)
allow_origins = [origin.strip() for origin in settings.allowed_origins.split(',')] if settings.allowed_origins else ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.cart_sessions = CartSessionRegistry(
    count_store=build_count_store(),
    retrier=ClearCartRetrier(scheduler),
)
scheduler.add_job(
    app.state.cart_sessions.sweep,
    "interval",
    minutes=settings.session_sweep_minutes,
    id="cart-session-sweep",
    replace_existing=True,
)

app.include_router(carts.router)


@app.on_event("startup")
async def _startup_scheduler():
    if not scheduler.running:
        scheduler.start()


@app.on_event("shutdown")
async def _shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)


# Run the app directly with uvicorn (for development)
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("bookingcart.main:app", host="0.0.0.0", port=8000, reload=True)
