"""
bookingcart/services/clear_retry.py - Background retries for failed cart clears.

A failed clear is not shown to the user as an error, but a cart that silently stays
full would be re-shown on the next visit. Each failure schedules a one-shot retry on
the application's AsyncIOScheduler, backing off linearly, up to CLEAR_RETRY_ATTEMPTS.
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from bookingcart.config import settings

logger = logging.getLogger("bookingcart.clear_retry")


class ClearCartRetrier:
    def __init__(self, scheduler, attempts: Optional[int] = None, delay_seconds: Optional[int] = None):
        self.scheduler = scheduler
        self.attempts = attempts if attempts is not None else settings.clear_retry_attempts
        self.delay_seconds = delay_seconds if delay_seconds is not None else settings.clear_retry_delay_seconds

    def schedule(self, session, attempt: int = 1) -> bool:
        """Returns False once the retry budget is spent."""
        if attempt > self.attempts:
            logger.error("giving up clearing cart %s after %d retries", session.key, self.attempts)
            return False
        run_date = datetime.now() + timedelta(seconds=self.delay_seconds * attempt)
        self.scheduler.add_job(
            self.run,
            "date",
            run_date=run_date,
            args=[session, attempt],
            id=f"clear-retry-{session.key}",
            replace_existing=True,
        )
        logger.info("clear retry %d/%d for %s scheduled at %s", attempt, self.attempts, session.key, run_date)
        return True

    async def run(self, session, attempt: int) -> bool:
        if not session.clear_pending:
            return True
        if await session.retry_clear():
            logger.info("cart %s cleared on retry %d", session.key, attempt)
            return True
        self.schedule(session, attempt + 1)
        return False
