import random
from decimal import Decimal

from bookingcart.schemas.cart import ArtistSummary, Bundle, CustomPackage, DateSlot, EquipmentPackage
from bookingcart.services.bundling import group_line_items
from bookingcart.services.normalizer import normalize_line_items
from bookingcart.services.pricing import (
    cart_total,
    cart_total_from_items,
    equipment_days,
    price_bundle,
    price_bundles,
)


def _bundle(dates=(), multi_day=False, event_dates=(), packages=(), custom=(), artist_sum="0"):
    return Bundle(
        key="k",
        artist=ArtistSummary(id="A1"),
        dates=[DateSlot(date=d) for d in dates],
        is_equipment_multi_day=multi_day,
        equipment_event_dates=[DateSlot(date=d) for d in event_dates],
        equipment_packages=list(packages),
        custom_packages=list(custom),
        artist_price_sum=Decimal(artist_sum),
    )


class TestEquipmentDays:
    def test_multi_day_event_dates_take_precedence(self):
        b = _bundle(dates=["2025-03-01"], multi_day=True, event_dates=["2025-03-01", "2025-03-02", "2025-03-03"])
        assert equipment_days(b) == 3

    def test_artist_dates_by_default(self):
        assert equipment_days(_bundle(dates=["2025-03-01", "2025-03-02"])) == 2

    def test_event_dates_ignored_without_flag(self):
        b = _bundle(dates=["2025-03-01"], event_dates=["2025-03-01", "2025-03-02"])
        assert equipment_days(b) == 1

    def test_unreadable_event_dates_still_count(self, raw_item):
        items = normalize_line_items([
            raw_item(isEquipmentMultiDay=True, equipmentEventDates=["05/03/2025", "06/03/2025", "07/03/2025"]),
        ])
        assert equipment_days(group_line_items(items)[0]) == 3

    def test_flag_without_event_dates_falls_back(self):
        assert equipment_days(_bundle(dates=["2025-03-01", "2025-03-02"], multi_day=True)) == 2

    def test_at_least_one_day(self):
        assert equipment_days(_bundle()) == 1


class TestPriceBundle:
    def test_totals(self):
        b = _bundle(
            dates=["2025-03-01", "2025-03-02"],
            packages=[EquipmentPackage(id="p1", total_price=Decimal("30")), EquipmentPackage(id="p2", total_price=Decimal("20"))],
            custom=[CustomPackage(id="c1", total_price_per_day=Decimal("5"))],
            artist_sum="200",
        )
        p = price_bundle(b)

        assert p.equipment_days == 2
        assert p.listed_packages_total == Decimal("100")
        assert p.custom_packages_total == Decimal("10")
        assert p.equipment_total == Decimal("110")
        assert p.artist_total == Decimal("200")
        assert p.grand_total == Decimal("310")

    def test_multi_day_equipment_with_single_artist_date(self):
        b = _bundle(
            dates=["2025-03-02"],
            multi_day=True,
            event_dates=["2025-03-01", "2025-03-02", "2025-03-03"],
            packages=[EquipmentPackage(id="p1", total_price=Decimal("40"))],
            artist_sum="150",
        )
        assert price_bundle(b).grand_total == Decimal("270")

    def test_package_without_price_contributes_zero(self, raw_item):
        items = normalize_line_items([raw_item(selectedEquipmentPackages=[
            {"_id": "p1", "name": "No price"},
            {"_id": "p2", "totalPrice": 12},
        ])])
        p = price_bundle(group_line_items(items)[0])
        assert p.equipment_total == Decimal("12")
        assert p.grand_total.is_finite()

    def test_rounds_to_money_places(self):
        b = _bundle(dates=["2025-03-01"], packages=[EquipmentPackage(id="p1", total_price=Decimal("1.23456"))])
        assert price_bundle(b).equipment_total == Decimal("1.235")


class TestCartTotal:
    def test_bundle_sum_matches_item_walk(self, raw_item):
        rng = random.Random(7)
        raws = []
        for i in range(40):
            raws.append(raw_item(
                _id=f"i{i}",
                artistId=rng.choice(["A1", "A2", "A3"]),
                bookingDate=f"2025-04-{rng.randint(1, 28):02d}",
                totalPrice=rng.choice([0, 75, 120.5, "90", None, "bad"]),
                selectedEquipmentPackages=rng.choice([
                    [],
                    [{"_id": "p1", "totalPrice": 30}],
                    [{"_id": "p1", "totalPrice": 30}, {"_id": "p2", "totalPrice": "12.250"}],
                ]),
                selectedCustomPackages=rng.choice([[], [{"_id": "c1", "totalPricePerDay": 8}]]),
                isEquipmentMultiDay=rng.choice([True, False]),
                equipmentEventDates=rng.choice([[], ["2025-04-01", "2025-04-02"]]),
            ))
        items = normalize_line_items(raws)

        priced = price_bundles(group_line_items(items))
        assert cart_total(priced) == cart_total_from_items(items)

    def test_equipment_not_double_counted_across_dates(self, raw_item):
        items = normalize_line_items([
            raw_item(bookingDate="2025-03-01", totalPrice=100, selectedEquipmentPackages=[{"_id": "p1", "totalPrice": 30}]),
            raw_item(bookingDate="2025-03-02", totalPrice=100, selectedEquipmentPackages=[{"_id": "p1", "totalPrice": 30}]),
        ])
        # 2 artist dates + one 30/day package over 2 days
        assert cart_total_from_items(items) == Decimal("260")
        assert cart_total(price_bundles(group_line_items(items))) == Decimal("260")

    def test_empty(self):
        assert cart_total([]) == Decimal("0")
        assert cart_total_from_items([]) == Decimal("0")
