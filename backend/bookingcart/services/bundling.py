"""
bookingcart/services/bundling.py - Merge per-date line items into bundles.

Two line items land in the same bundle when they share the artist, the set of listed
equipment packages, the set of custom packages and the venue. Package id lists are
sorted before joining, so the order a multi-select produced them never changes the key.
"""
from collections import Counter
from typing import Dict, List, Optional

from bookingcart.schemas.cart import Bundle, DateSlot, LineItem, VenueDetails

NO_VENUE = "no-venue"


def venue_fingerprint(venue: Optional[VenueDetails]) -> str:
    if venue is None:
        return NO_VENUE
    return "|".join([venue.address, venue.city, venue.state, venue.country])


def bundle_key(item: LineItem) -> str:
    return "#".join([
        item.artist.id,
        ",".join(sorted(p.id for p in item.equipment_packages)),
        ",".join(sorted(p.id for p in item.custom_packages)),
        venue_fingerprint(item.venue_details),
    ])


def _slot_order(slot: DateSlot):
    return (slot.date, slot.start_time)


def _slot_id(slot: DateSlot):
    return (slot.date, slot.start_time, slot.end_time)


def _merge_event_dates(held: List[DateSlot], incoming: List[DateSlot]) -> None:
    """
    Multiset union: a slot appearing n times in one item is kept n times, and items
    repeating the same list do not add to it. Unreadable dates all read as '' and each
    one still counts as an equipment day.
    """
    have = Counter(_slot_id(s) for s in held)
    seen: Counter = Counter()
    for slot in incoming:
        k = _slot_id(slot)
        seen[k] += 1
        if seen[k] > have[k]:
            held.append(slot)


def group_line_items(items: List[LineItem]) -> List[Bundle]:
    """
    One pass over the items; a bundle is created on the first item carrying its key and
    takes its packages and venue from that item; the multi-day flag and equipment dates
    are merged across every item of the bundle. Dates within a bundle end up
    sorted by (date, start time); unreadable dates ('') sort first.
    """
    bundles: Dict[str, Bundle] = {}
    for item in items:
        key = bundle_key(item)
        bundle = bundles.get(key)
        if bundle is None:
            bundle = Bundle(
                key=key,
                artist=item.artist,
                equipment_packages=list(item.equipment_packages),
                custom_packages=list(item.custom_packages),
                venue_details=item.venue_details,
                user_details=item.user_details,
            )
            bundles[key] = bundle
        bundle.is_equipment_multi_day = bundle.is_equipment_multi_day or item.is_equipment_multi_day
        _merge_event_dates(bundle.equipment_event_dates, item.equipment_event_dates)
        bundle.dates.append(DateSlot(
            date=item.booking_date,
            start_time=item.start_time,
            end_time=item.end_time,
        ))
        bundle.artist_price_sum += item.total_price

    for bundle in bundles.values():
        bundle.dates.sort(key=_slot_order)
        bundle.equipment_event_dates.sort(key=_slot_id)
    return list(bundles.values())
