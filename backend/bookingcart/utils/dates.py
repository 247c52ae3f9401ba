"""
bookingcart/utils/dates.py - Lenient date coercion for backend payloads.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Optional

logger = logging.getLogger("bookingcart.dates")


def coerce_date(v: Any) -> Optional[date]:
    """
    str (YYYY-MM-DD / ISO / ISO+Z) | datetime (aware/naive) | date | None -> calendar date.
    Aware values are converted to UTC first, so '2025-03-05T23:30:00-02:00' is 2025-03-06.
    """
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.astimezone(timezone.utc).date() if v.tzinfo else v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return None
        try:
            # 'Z' (UTC) suffix
            if s.endswith("Z"):
                s = s[:-1] + "+00:00"
            dt = datetime.fromisoformat(s)
            return dt.astimezone(timezone.utc).date() if dt.tzinfo else dt.date()
        except ValueError as exc:
            logger.debug("ISO parse failed for %r: %s", v, exc)
            return None
    return None


def date_token(v: Any) -> str:
    """YYYY-MM-DD, or '' when the value cannot be read as a date."""
    d = coerce_date(v)
    return d.isoformat() if d else ""
