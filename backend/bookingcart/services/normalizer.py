"""
bookingcart/services/normalizer.py - Shape raw cart entries into LineItem records.

The marketplace API returns loosely-typed documents: references may be plain ids or
embedded summaries, prices may be missing or strings, dates may be ISO timestamps.
Everything here degrades to a default instead of raising.
"""
import logging
import math
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from bookingcart.schemas.cart import (
    ArtistSummary,
    CustomPackage,
    DateSlot,
    EquipmentItem,
    EquipmentPackage,
    LineItem,
    UserDetails,
    VenueDetails,
)
from bookingcart.utils.dates import date_token

logger = logging.getLogger("bookingcart.normalizer")

ZERO = Decimal("0")


def coerce_number(v: Any) -> Decimal:
    """Missing / non-numeric / NaN / infinite -> 0."""
    if v is None or isinstance(v, bool):
        return ZERO
    if isinstance(v, float) and not math.isfinite(v):
        return ZERO
    try:
        d = Decimal(str(v).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    return d if d.is_finite() else ZERO


def id_of(ref: Any) -> str:
    if isinstance(ref, dict):
        ref = ref.get("_id") or ref.get("id")
    if ref is None or isinstance(ref, (dict, list)):
        return ""
    return str(ref).strip()


def _text(v: Any) -> str:
    return "" if v is None else str(v)


def _opt_text(v: Any) -> Optional[str]:
    return None if v in (None, "") else str(v)


def _as_list(v: Any) -> List[Any]:
    return list(v) if isinstance(v, (list, tuple)) else []


def _equipment_items(raw: Any) -> List[EquipmentItem]:
    out = []
    for it in _as_list(raw):
        if not isinstance(it, dict):
            continue
        equipment = it.get("equipmentId")
        name = equipment.get("name") if isinstance(equipment, dict) else None
        qty = it.get("quantity")
        out.append(EquipmentItem(
            name=str(name or it.get("name") or "Item"),
            quantity=int(qty) if isinstance(qty, (int, float)) and not isinstance(qty, bool) and math.isfinite(qty) else None,
        ))
    return out


def _artist(ref: Any) -> ArtistSummary:
    if isinstance(ref, dict):
        return ArtistSummary(
            id=id_of(ref),
            stage_name=_opt_text(ref.get("stageName")),
            profile_image=_opt_text(ref.get("profileImage")),
        )
    return ArtistSummary(id=id_of(ref))


def _equipment_package(ref: Any) -> EquipmentPackage:
    if not isinstance(ref, dict):
        return EquipmentPackage(id=id_of(ref))
    return EquipmentPackage(
        id=id_of(ref),
        name=_opt_text(ref.get("name")),
        total_price=coerce_number(ref.get("totalPrice")),
        items=_equipment_items(ref.get("items")),
    )


def _custom_package(ref: Any) -> CustomPackage:
    if not isinstance(ref, dict):
        return CustomPackage(id=id_of(ref))
    return CustomPackage(
        id=id_of(ref),
        name=_opt_text(ref.get("name")),
        total_price_per_day=coerce_number(ref.get("totalPricePerDay")),
        items=_equipment_items(ref.get("items")),
    )


def _venue(raw: Any) -> Optional[VenueDetails]:
    if not isinstance(raw, dict) or not raw:
        return None
    return VenueDetails(
        address=_text(raw.get("address")),
        city=_text(raw.get("city")),
        state=_text(raw.get("state")),
        country=_text(raw.get("country")),
        postal_code=_opt_text(raw.get("postalCode")),
        venue_type=_opt_text(raw.get("venueType")),
        additional_info=_opt_text(raw.get("additionalInfo")),
    )


def _user(raw: Any) -> Optional[UserDetails]:
    if not isinstance(raw, dict) or not raw:
        return None
    return UserDetails(
        name=_opt_text(raw.get("name")),
        email=_opt_text(raw.get("email")),
        phone=_opt_text(raw.get("phone")),
    )


def _slot(raw: Any) -> DateSlot:
    """Equipment event dates come either as plain dates or as {date, startTime, endTime}."""
    if isinstance(raw, dict):
        return DateSlot(
            date=date_token(raw.get("date")),
            start_time=_text(raw.get("startTime")),
            end_time=_text(raw.get("endTime")),
        )
    return DateSlot(date=date_token(raw))


def normalize_line_item(raw: Any) -> LineItem:
    d: Dict[str, Any] = raw if isinstance(raw, dict) else {}
    if not d:
        logger.debug("cart entry is not an object, using empty line item: %r", raw)

    booking_date = date_token(d.get("bookingDate"))
    if d.get("bookingDate") and not booking_date:
        logger.debug("unreadable bookingDate %r on cart entry %s", d.get("bookingDate"), id_of(d))

    artist_ref = d.get("artistId", d.get("artistRef"))
    return LineItem(
        id=id_of(d) or None,
        artist=_artist(artist_ref),
        equipment_packages=[_equipment_package(p) for p in _as_list(d.get("selectedEquipmentPackages"))],
        custom_packages=[_custom_package(p) for p in _as_list(d.get("selectedCustomPackages"))],
        venue_details=_venue(d.get("venueDetails")),
        user_details=_user(d.get("userDetails")),
        booking_date=booking_date,
        start_time=_text(d.get("startTime")),
        end_time=_text(d.get("endTime")),
        hours=coerce_number(d.get("hours")),
        total_price=coerce_number(d.get("totalPrice")),
        is_equipment_multi_day=bool(d.get("isEquipmentMultiDay")),
        equipment_event_dates=[_slot(x) for x in _as_list(d.get("equipmentEventDates"))],
    )


def normalize_line_items(raw_items: Iterable[Any]) -> List[LineItem]:
    return [normalize_line_item(it) for it in _as_list(raw_items)]
