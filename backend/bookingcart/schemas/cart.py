"""
bookingcart/schemas/cart.py - Pydantic models for the artist-booking cart.

Field names are snake_case in Python and camelCase on the wire (the marketplace API
and the front end both speak camelCase). Money is kept as Decimal and emitted as float.
"""
from datetime import date
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from bookingcart.schemas.checkout import CheckoutState, ConflictRecord, FailureKind

Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class EquipmentItem(WireModel):
    name: str = Field("Item", description="Equipment name")
    quantity: Optional[int] = Field(None, description="Units of this equipment in the package")


class ArtistSummary(WireModel):
    id: str = Field("", description="Artist profile id")
    stage_name: Optional[str] = None
    profile_image: Optional[str] = None


class EquipmentPackage(WireModel):
    """Listed equipment package; `total_price` is charged per equipment day."""
    id: str = ""
    name: Optional[str] = None
    total_price: Money = Decimal("0")
    items: List[EquipmentItem] = Field(default_factory=list)


class CustomPackage(WireModel):
    id: str = ""
    name: Optional[str] = None
    total_price_per_day: Money = Decimal("0")
    items: List[EquipmentItem] = Field(default_factory=list)


class VenueDetails(WireModel):
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: Optional[str] = None
    venue_type: Optional[str] = None
    additional_info: Optional[str] = None


class UserDetails(WireModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class DateSlot(WireModel):
    date: str = Field("", description="YYYY-MM-DD, or '' when the source date was unreadable")
    start_time: str = ""
    end_time: str = ""


class LineItem(WireModel):
    """One raw cart entry: an artist booked for a single date/time slot."""
    id: Optional[str] = None
    artist: ArtistSummary = Field(default_factory=ArtistSummary)
    equipment_packages: List[EquipmentPackage] = Field(default_factory=list)
    custom_packages: List[CustomPackage] = Field(default_factory=list)
    venue_details: Optional[VenueDetails] = None
    user_details: Optional[UserDetails] = None
    booking_date: str = ""
    start_time: str = ""
    end_time: str = ""
    hours: Money = Decimal("0")
    total_price: Money = Field(Decimal("0"), description="Artist-only price for this slot")
    is_equipment_multi_day: bool = False
    equipment_event_dates: List[DateSlot] = Field(default_factory=list)


class Bundle(WireModel):
    """LineItems sharing artist + equipment selection + venue."""
    key: str
    artist: ArtistSummary
    equipment_packages: List[EquipmentPackage] = Field(default_factory=list)
    custom_packages: List[CustomPackage] = Field(default_factory=list)
    venue_details: Optional[VenueDetails] = None
    user_details: Optional[UserDetails] = None
    is_equipment_multi_day: bool = False
    equipment_event_dates: List[DateSlot] = Field(default_factory=list)
    dates: List[DateSlot] = Field(default_factory=list)
    artist_price_sum: Money = Decimal("0")

    @property
    def has_equipment(self) -> bool:
        return bool(self.equipment_packages or self.custom_packages)


class PricingBreakdown(WireModel):
    equipment_days: int
    listed_packages_total: Money
    custom_packages_total: Money
    equipment_total: Money
    artist_total: Money
    grand_total: Money


class PricedBundle(WireModel):
    bundle: Bundle
    pricing: PricingBreakdown
    has_equipment: bool


class CartView(WireModel):
    """What the cart page renders: priced bundles, the cart total and the checkout status."""
    item_count: int = 0
    bundles: List[PricedBundle] = Field(default_factory=list)
    grand_total: Money = Decimal("0")
    currency: str = "KWD"
    checkout_state: CheckoutState = CheckoutState.IDLE
    conflicts: List[ConflictRecord] = Field(default_factory=list)
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    clear_pending: bool = False


class AddItemBody(WireModel):
    """Add one artist slot (optionally with equipment) to the cart."""
    artist_id: str = Field(..., description="Artist profile id")
    booking_date: date
    start_time: str = Field(..., description="HH:mm")
    end_time: str = Field(..., description="HH:mm")
    hours: Money = Field(..., gt=0)
    total_price: Money = Field(..., ge=0)
    selected_equipment_packages: List[str] = Field(default_factory=list)
    selected_custom_packages: List[str] = Field(default_factory=list)
    is_equipment_multi_day: bool = False
    equipment_event_dates: List[DateSlot] = Field(default_factory=list)
    user_details: Optional[UserDetails] = None
    venue_details: Optional[VenueDetails] = None

    @field_validator("artist_id")
    @classmethod
    def _clean_artist_id(cls, v: str) -> str:
        v = (v or "").strip()
        for ch in ("\u200b", "\u200c", "\u200d", "\ufeff", "\xa0"):
            v = v.replace(ch, "")
        if not v:
            raise ValueError("artist_id cannot be empty")
        return v
