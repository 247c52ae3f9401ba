"""
bookingcart/services/pricing.py - Bundle and cart totals.

Equipment is charged per equipment day, once per bundle (never per line item):
- multi-day equipment with explicit event dates -> number of event dates
- otherwise -> number of artist dates in the bundle
- otherwise -> 1
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List

from bookingcart.config import settings
from bookingcart.schemas.cart import Bundle, LineItem, PricedBundle, PricingBreakdown
from bookingcart.services.bundling import bundle_key, group_line_items
from bookingcart.services.normalizer import ZERO, coerce_number


def _money(v: Decimal) -> Decimal:
    return v.quantize(Decimal(1).scaleb(-settings.money_places), rounding=ROUND_HALF_UP)


def equipment_days(bundle: Bundle) -> int:
    if bundle.is_equipment_multi_day and bundle.equipment_event_dates:
        return len(bundle.equipment_event_dates)
    return len(bundle.dates) or 1


def price_bundle(bundle: Bundle) -> PricingBreakdown:
    days = equipment_days(bundle)
    listed = sum((coerce_number(p.total_price) for p in bundle.equipment_packages), ZERO) * days
    custom = sum((coerce_number(p.total_price_per_day) for p in bundle.custom_packages), ZERO) * days
    equipment_total = listed + custom
    artist_total = coerce_number(bundle.artist_price_sum)
    return PricingBreakdown(
        equipment_days=days,
        listed_packages_total=_money(listed),
        custom_packages_total=_money(custom),
        equipment_total=_money(equipment_total),
        artist_total=_money(artist_total),
        grand_total=_money(artist_total + equipment_total),
    )


def price_bundles(bundles: Iterable[Bundle]) -> List[PricedBundle]:
    return [
        PricedBundle(bundle=b, pricing=price_bundle(b), has_equipment=b.has_equipment)
        for b in bundles
    ]


def cart_total(priced: Iterable[PricedBundle]) -> Decimal:
    return _money(sum((p.pricing.grand_total for p in priced), ZERO))


def cart_total_from_items(items: Iterable[LineItem]) -> Decimal:
    """
    Same total computed from the line items: artist prices summed item by item, equipment
    charged once per bundle with the bundle's equipment-day count.
    """
    items = list(items)
    artist_by_key: Dict[str, Decimal] = {}
    for it in items:
        key = bundle_key(it)
        artist_by_key[key] = artist_by_key.get(key, ZERO) + coerce_number(it.total_price)

    total = ZERO
    for bundle in group_line_items(items):
        days = equipment_days(bundle)
        per_day = sum((coerce_number(p.total_price) for p in bundle.equipment_packages), ZERO)
        per_day += sum((coerce_number(p.total_price_per_day) for p in bundle.custom_packages), ZERO)
        total += _money(artist_by_key.get(bundle.key, ZERO) + per_day * days)
    return _money(total)
