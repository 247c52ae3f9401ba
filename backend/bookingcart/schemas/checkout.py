"""
bookingcart/schemas/checkout.py - Checkout state, conflicts and outcomes.
"""
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from bookingcart.utils.dates import date_token


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    CONFLICTED = "conflicted"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


IN_FLIGHT_STATES = (CheckoutState.VALIDATING, CheckoutState.COMMITTING)


class FailureKind(str, Enum):
    VALIDATION_CONFLICT = "validation_conflict"
    COMMIT_CONFLICT = "commit_conflict"
    TRANSIENT = "transient"
    NON_CRITICAL = "non_critical"


class ConflictRecord(BaseModel):
    """A server-reported unavailability for one date/time, optionally tied to an artist."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    date: str = ""
    start_time: str = ""
    end_time: str = ""
    message: str = "Conflict"
    artist_id: Optional[str] = None
    rebook_path: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _normalize_date(cls, v: Any) -> str:
        return date_token(v)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _text_or_blank(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("message", mode="before")
    @classmethod
    def _message_or_default(cls, v: Any) -> str:
        return str(v) if v else "Conflict"

    @field_validator("artist_id", mode="before")
    @classmethod
    def _artist_ref(cls, v: Any) -> Optional[str]:
        # The backend may embed the artist summary instead of the id
        if isinstance(v, dict):
            v = v.get("_id") or v.get("id")
        return str(v) if v else None


class CheckoutOutcome(BaseModel):
    """Result of one checkout() call, as the cart page consumes it."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    state: CheckoutState
    conflicts: List[ConflictRecord] = Field(default_factory=list)
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    booking_reference: Optional[str] = None
    redirect_to: Optional[str] = None
    ignored: bool = Field(False, description="True when another checkout was already in flight")
