"""
Route keys, pricing store and fare calculation tests.
"""

import pytest
from datetime import datetime, timezone

from taxibook.app.core.exceptions import ValidationError, NotFoundError
from taxibook.app.domain.pricing import pricing_store
from taxibook.app.domain.pricing.pricing_store import create_route_key, lookup_route_price
from taxibook.app.domain.pricing.fare_calculator import calculate_fare
from taxibook.app.domain.pricing.location_hubs import get_nearby_hub
from taxibook.app.schemas.pricing import DriverPricing, RoutePrice

NOON = datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc)


def _pricing(routes, special_zones=None, modifiers=None):
    return DriverPricing(
        driver_id="driver-1",
        route_pricing={
            create_route_key(f, t): RoutePrice(price=price, from_location=f, to_location=t)
            for f, t, price in routes
        },
        special_zones=special_zones or {},
        modifiers=modifiers or {},
    )


# Route keys

def test_route_key_is_lowercased_and_trimmed():
    assert create_route_key("  Nairobi ", "MOMBASA") == "nairobi-mombasa"


def test_route_key_is_directional():
    assert create_route_key("Nairobi", "Mombasa") != create_route_key("Mombasa", "Nairobi")


def test_lookup_finds_reverse_route():
    pricing = _pricing([("Nairobi", "Mombasa", 9000)])

    assert lookup_route_price(pricing, "Mombasa", "Nairobi").price == 9000
    assert lookup_route_price(pricing, "nairobi", "mombasa").price == 9000


def test_lookup_ignores_zero_price_and_missing_pricing():
    pricing = _pricing([("Nairobi", "Mombasa", 0)])

    assert lookup_route_price(pricing, "Nairobi", "Mombasa") is None
    assert lookup_route_price(None, "Nairobi", "Mombasa") is None


def test_nearby_hub_lookup():
    assert get_nearby_hub("Masii") == "Machakos Town"
    assert get_nearby_hub("  Westlands ") == "Nairobi"
    assert get_nearby_hub("Nowhere") is None


# Fares

def test_fare_is_base_price_without_modifiers():
    pricing = _pricing([("Nairobi", "Thika", 1000)])

    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON) == 1000
    assert calculate_fare(pricing, "Thika", "Nairobi", at=NOON) == 1000


def test_fare_is_zero_for_unpriced_route():
    pricing = _pricing([("Nairobi", "Thika", 1000)])

    assert calculate_fare(pricing, "Nairobi", "Kisumu", at=NOON) == 0
    assert calculate_fare(None, "Nairobi", "Thika", at=NOON) == 0


def test_percent_zone_surcharge_applies_when_zone_is_an_endpoint():
    pricing = _pricing(
        [("Nairobi", "JKIA Airport", 1000), ("Nairobi", "Thika", 1000)],
        special_zones={"Airport": {"surcharge_percent": 20}},
    )

    assert calculate_fare(pricing, "Nairobi", "JKIA Airport", at=NOON) == 1200
    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON) == 1000


def test_flat_zone_surcharge():
    pricing = _pricing(
        [("Kileleshwa Estate", "Nairobi", 1000)],
        special_zones={"Estate": {"flat_surcharge": 200}},
    )

    assert calculate_fare(pricing, "Nairobi", "Kileleshwa Estate", at=NOON) == 1200


def test_night_shift_wraps_past_midnight():
    pricing = _pricing(
        [("Nairobi", "Thika", 1000)],
        modifiers={"night_shift": {"enabled": True, "start_time": "20:00", "end_time": "06:00", "multiplier": 1.5}},
    )

    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON.replace(hour=23)) == 1500
    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON.replace(hour=3)) == 1500
    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON) == 1000


def test_disabled_modifier_is_ignored():
    pricing = _pricing(
        [("Nairobi", "Thika", 1000)],
        modifiers={"holiday": {"enabled": False, "multiplier": 2.0}},
    )

    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON) == 1000


def test_peak_hours_and_holiday_multiply():
    pricing = _pricing(
        [("Nairobi", "Thika", 1000)],
        modifiers={
            "holiday": {"enabled": True, "multiplier": 2.0},
            "peak_hours": {
                "enabled": True,
                "time_slots": [{"start": "07:00", "end": "09:00", "multiplier": 1.2}],
            },
        },
    )

    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON.replace(hour=8)) == 2400
    assert calculate_fare(pricing, "Nairobi", "Thika", at=NOON) == 2000


def test_zone_then_night_shift():
    pricing = _pricing(
        [("Nairobi", "JKIA Airport", 1000)],
        special_zones={"Airport": {"surcharge_percent": 20}},
        modifiers={"night_shift": {"enabled": True, "start_time": "20:00", "end_time": "06:00", "multiplier": 1.5}},
    )

    assert calculate_fare(pricing, "Nairobi", "JKIA Airport", at=NOON.replace(hour=22)) == 1800


# Pricing store

@pytest.mark.asyncio
async def test_set_route_price_creates_and_updates(db_session, make_driver):
    driver = await make_driver("Peter")

    created = await pricing_store.set_route_price(db_session, driver.id, " Machakos ", "Nairobi", 800)
    assert created.price == 800
    assert created.from_location == "Machakos"

    await pricing_store.set_route_price(db_session, driver.id, "machakos", "NAIROBI", 750)

    pricing = await pricing_store.get_driver_pricing(db_session, driver.id)
    assert list(pricing.route_pricing) == ["machakos-nairobi"]
    assert pricing.route_pricing["machakos-nairobi"].price == 750
    assert pricing.last_updated is not None


@pytest.mark.asyncio
async def test_reverse_route_is_a_separate_entry(db_session, make_driver):
    driver = await make_driver("Peter")

    await pricing_store.set_route_price(db_session, driver.id, "Machakos", "Nairobi", 800)
    await pricing_store.set_route_price(db_session, driver.id, "Nairobi", "Machakos", 700)

    pricing = await pricing_store.get_driver_pricing(db_session, driver.id)
    assert pricing.route_pricing["machakos-nairobi"].price == 800
    assert pricing.route_pricing["nairobi-machakos"].price == 700


@pytest.mark.asyncio
@pytest.mark.parametrize("from_location,to_location,price,field", [
    ("", "Nairobi", 800, "from_location"),
    ("Machakos", "   ", 800, "to_location"),
    ("Machakos", "Nairobi", 0, "price"),
    ("Machakos", "Nairobi", -50, "price"),
    ("Machakos", "Nairobi", float("nan"), "price"),
    ("Machakos", "Nairobi", float("inf"), "price"),
])
async def test_set_route_price_rejects_bad_input(db_session, make_driver, from_location, to_location, price, field):
    driver = await make_driver("Peter")

    with pytest.raises(ValidationError) as exc_info:
        await pricing_store.set_route_price(db_session, driver.id, from_location, to_location, price)

    assert exc_info.value.details["field"] == field


@pytest.mark.asyncio
async def test_set_route_price_for_unknown_driver(db_session):
    with pytest.raises(NotFoundError):
        await pricing_store.set_route_price(db_session, "missing-driver", "Machakos", "Nairobi", 800)


@pytest.mark.asyncio
async def test_get_pricing_for_driver_without_configuration(db_session, make_driver):
    driver = await make_driver("Peter")

    assert await pricing_store.get_driver_pricing(db_session, driver.id) is None
    assert await pricing_store.get_pricing_for_drivers(db_session, []) == {}


@pytest.mark.asyncio
async def test_batched_pricing_omits_unconfigured_drivers(db_session, make_driver):
    priced = await make_driver("Priced")
    unpriced = await make_driver("Unpriced")
    await pricing_store.set_route_price(db_session, priced.id, "Machakos", "Nairobi", 800)

    pricing = await pricing_store.get_pricing_for_drivers(db_session, [priced.id, unpriced.id])

    assert set(pricing) == {priced.id}


@pytest.mark.asyncio
async def test_remove_route_price(db_session, make_driver):
    driver = await make_driver("Peter")
    await pricing_store.set_route_price(db_session, driver.id, "Machakos", "Nairobi", 800)
    await pricing_store.set_route_price(db_session, driver.id, "Nairobi", "Mombasa", 9000)

    await pricing_store.remove_route_price(db_session, driver.id, "Machakos", "Nairobi")

    pricing = await pricing_store.get_driver_pricing(db_session, driver.id)
    assert list(pricing.route_pricing) == ["nairobi-mombasa"]

    with pytest.raises(NotFoundError):
        await pricing_store.remove_route_price(db_session, driver.id, "Machakos", "Nairobi")


@pytest.mark.asyncio
async def test_update_pricing_profile_merges(db_session, make_driver):
    driver = await make_driver("Peter")

    await pricing_store.update_pricing_profile(
        db_session, driver.id, special_zones={"Airport": {"surcharge_percent": 20}}
    )
    pricing = await pricing_store.update_pricing_profile(
        db_session, driver.id,
        special_zones={"Estate": {"flat_surcharge": 200}},
        modifiers={"holiday": {"enabled": True, "multiplier": 2.0}},
    )

    assert set(pricing.special_zones) == {"Airport", "Estate"}
    assert pricing.modifiers["holiday"]["multiplier"] == 2.0
    assert pricing.route_pricing == {}
