"""
Driver matching and recommendation tests.
"""

import pytest

from taxibook.app.core.exceptions import ValidationError
from taxibook.app.models.enums import SubscriptionStatus, VehicleType
from taxibook.app.models.route_enums import MatchType
from taxibook.app.schemas.matching import DriverMatch
from taxibook.app.schemas.pricing import DriverPricing, RoutePrice
from taxibook.app.domain.pricing.pricing_store import create_route_key, set_route_price
from taxibook.app.domain.matching.matching_service import (
    MatchingService, rank_candidates, find_nearby_route, resolve_route_price,
    calculate_match_score, value_score,
)
from taxibook.app.services.cache import RecommendationCache


def _match(driver_id, price, rating, total_rides=10, match_type=MatchType.EXACT):
    return DriverMatch(
        driver_id=driver_id,
        driver_name=driver_id,
        rating=rating,
        total_rides=total_rides,
        price=price,
        match_type=match_type,
    )


def _pricing(*routes):
    return DriverPricing(
        driver_id="driver-1",
        route_pricing={
            create_route_key(f, t): RoutePrice(price=price, from_location=f, to_location=t)
            for f, t, price in routes
        },
    )


# Ranking

def test_empty_candidates_give_no_recommendations():
    result = rank_candidates([])

    assert result.best_value is None
    assert result.lowest_price is None
    assert result.best_rated is None


def test_single_candidate_fills_every_card():
    only = _match("a", 800, 4.2)

    result = rank_candidates([only])

    assert result.best_value == result.lowest_price == result.best_rated == only


def test_dominant_driver_wins_every_card():
    driver_a = _match("a", 800, 4.2)
    driver_b = _match("b", 650, 4.8)

    result = rank_candidates([driver_a, driver_b])

    assert result.lowest_price.driver_id == "b"
    assert result.best_rated.driver_id == "b"
    assert result.best_value.driver_id == "b"


def test_best_value_uses_rating_over_normalized_price():
    driver_a = _match("a", 800, 4.8)
    driver_b = _match("b", 650, 4.0)

    result = rank_candidates([driver_a, driver_b])

    assert result.lowest_price.driver_id == "b"
    assert result.best_rated.driver_id == "a"
    # a: 4.8 / (800/800) = 4.8, b: 4.0 / (650/800) = 4.92
    assert value_score(driver_a, 800) == pytest.approx(4.8)
    assert value_score(driver_b, 800) == pytest.approx(4.923, abs=1e-3)
    assert result.best_value.driver_id == "b"


def test_lowest_price_and_best_rated_bounds():
    candidates = [
        _match("a", 900, 4.1),
        _match("b", 700, 3.9),
        _match("c", 1200, 4.9),
        _match("d", 700, 4.4),
    ]

    result = rank_candidates(candidates)

    assert all(result.lowest_price.price <= c.price for c in candidates)
    assert all(result.best_rated.rating >= c.rating for c in candidates)
    # Equal lowest price goes to the better rated driver
    assert result.lowest_price.driver_id == "d"


def test_best_rated_tie_goes_to_lower_price():
    result = rank_candidates([_match("a", 900, 4.8), _match("b", 700, 4.8)])

    assert result.best_rated.driver_id == "b"


def test_best_value_with_equal_prices_falls_back_to_rating():
    result = rank_candidates([_match("a", 700, 4.1), _match("b", 700, 4.6)])

    assert result.best_value.driver_id == "b"


def test_match_score_weights_and_nearby_penalty():
    exact = _match("a", 500, 5.0, total_rides=200)
    nearby = _match("b", 500, 5.0, total_rides=200, match_type=MatchType.NEARBY)

    # price 50 * 0.4 + rating 100 * 0.4 + experience 100 * 0.2
    assert calculate_match_score(exact, 1000) == 80.0
    assert calculate_match_score(nearby, 1000) == 72.0


# Route resolution

def test_exact_match_in_either_direction():
    pricing = _pricing(("Machakos", "Nairobi", 800))

    forward = resolve_route_price(pricing, "Machakos", "Nairobi")
    backward = resolve_route_price(pricing, "Nairobi", "Machakos")

    assert forward[0].price == backward[0].price == 800
    assert forward[1] == backward[1] == MatchType.EXACT


def test_nearby_match_through_hub():
    pricing = _pricing(("Nairobi", "Machakos Town", 700))

    entry, via = find_nearby_route(pricing, "Nairobi", "Masii")

    assert entry.price == 700
    assert via == "Machakos Town"


def test_nearby_match_by_containment_prefers_cheapest():
    pricing = _pricing(
        ("Nairobi CBD", "Thika", 600),
        ("Upper Nairobi", "Thika", 550),
        ("Kisumu", "Thika", 100),
    )

    entry, via = find_nearby_route(pricing, "Nairobi", "Thika")

    assert entry.price == 550
    assert via == "Upper Nairobi"


def test_short_names_do_not_contain_match():
    pricing = _pricing(("Ka", "Thika", 600))

    assert find_nearby_route(pricing, "Kakamega", "Thika") is None


def test_unrelated_route_does_not_match():
    pricing = _pricing(("Kisumu", "Eldoret", 600))

    assert resolve_route_price(pricing, "Nairobi", "Thika") is None
    assert resolve_route_price(None, "Nairobi", "Thika") is None


# Service

@pytest.mark.asyncio
async def test_recommendations_for_route(db_session, make_driver):
    driver_a = await make_driver("Driver A", average_rating=4.2)
    driver_b = await make_driver("Driver B", average_rating=4.8)
    await set_route_price(db_session, driver_a.id, "Machakos", "Nairobi", 800)
    await set_route_price(db_session, driver_b.id, "Machakos", "Nairobi", 650)

    result = await MatchingService.get_recommendations(db_session, "Machakos", "Nairobi")

    assert result.lowest_price.driver_id == driver_b.id
    assert result.best_rated.driver_id == driver_b.id
    assert result.best_value.driver_id == driver_b.id


@pytest.mark.asyncio
async def test_reverse_request_finds_same_drivers(db_session, make_driver):
    driver = await make_driver("Driver A")
    await set_route_price(db_session, driver.id, "Machakos", "Nairobi", 800)

    forward = await MatchingService.find_drivers_for_route(db_session, "Machakos", "Nairobi")
    backward = await MatchingService.find_drivers_for_route(db_session, "nairobi", "MACHAKOS")

    assert [m.driver_id for m in forward] == [m.driver_id for m in backward] == [driver.id]


@pytest.mark.asyncio
async def test_ineligible_drivers_are_not_matched(db_session, make_driver):
    eligible = await make_driver("Eligible")
    inactive = await make_driver("Inactive", active=False)
    trial = await make_driver("Trial", subscription_status=SubscriptionStatus.TRIAL)
    hidden = await make_driver("Hidden", is_visible_to_public=False)
    for driver in (eligible, inactive, trial, hidden):
        await set_route_price(db_session, driver.id, "Machakos", "Nairobi", 800)

    matches = await MatchingService.find_drivers_for_route(db_session, "Machakos", "Nairobi")

    assert [m.driver_id for m in matches] == [eligible.id]


@pytest.mark.asyncio
async def test_no_drivers_for_route(db_session, make_driver):
    driver = await make_driver("Driver A")
    await set_route_price(db_session, driver.id, "Kisumu", "Eldoret", 800)

    result = await MatchingService.get_recommendations(db_session, "Machakos", "Nairobi")

    assert result.best_value is None and result.lowest_price is None and result.best_rated is None


@pytest.mark.asyncio
async def test_match_carries_profile_and_defaults(db_session, make_driver):
    driver = await make_driver(
        "Driver A", average_rating=None, total_rides=0,
        vehicle_make="Toyota", vehicle_type=VehicleType.VAN,
    )
    await set_route_price(db_session, driver.id, "Nairobi", "Machakos Town", 700)

    matches = await MatchingService.find_drivers_for_route(db_session, "Nairobi", "Masii")

    assert len(matches) == 1
    match = matches[0]
    assert match.match_type == MatchType.NEARBY
    assert match.via_location == "Machakos Town"
    assert match.rating == 4.5
    assert match.vehicle.make == "Toyota"
    assert match.vehicle.type == VehicleType.VAN


@pytest.mark.asyncio
async def test_all_drivers_sorted_by_match_score(db_session, make_driver):
    cheap = await make_driver("Cheap", average_rating=4.0, total_rides=5)
    premium = await make_driver("Premium", average_rating=5.0, total_rides=300)
    await set_route_price(db_session, cheap.id, "Machakos", "Nairobi", 600)
    await set_route_price(db_session, premium.id, "Machakos", "Nairobi", 700)

    matches = await MatchingService.get_all_drivers_for_route(db_session, "Machakos", "Nairobi")

    assert [m.driver_id for m in matches] == [premium.id, cheap.id]
    assert matches[0].match_score >= matches[1].match_score


@pytest.mark.asyncio
async def test_empty_location_is_rejected(db_session):
    with pytest.raises(ValidationError):
        await MatchingService.get_recommendations(db_session, "  ", "Nairobi")


@pytest.mark.asyncio
async def test_cached_recommendations_until_pricing_changes(db_session, make_driver, redis_client_session):
    cache = RecommendationCache(redis_client_session, ttl_seconds=30)
    driver_a = await make_driver("Driver A", average_rating=4.2)
    await set_route_price(db_session, driver_a.id, "Machakos", "Nairobi", 800)

    first = await MatchingService.get_recommendations(db_session, "Machakos", "Nairobi", cache=cache)
    assert first.lowest_price.driver_id == driver_a.id
    assert 30 in redis_client_session.ttls.values()

    # New pricing is not visible until the cache is invalidated
    driver_b = await make_driver("Driver B", average_rating=4.8)
    await set_route_price(db_session, driver_b.id, "Machakos", "Nairobi", 650)
    cached = await MatchingService.get_recommendations(db_session, "Machakos", "Nairobi", cache=cache)
    assert cached.lowest_price.driver_id == driver_a.id

    await cache.invalidate()
    fresh = await MatchingService.get_recommendations(db_session, "Machakos", "Nairobi", cache=cache)
    assert fresh.lowest_price.driver_id == driver_b.id
