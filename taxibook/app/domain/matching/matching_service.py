"""
Driver Matching Service (Domain Logic).

Finds drivers whose pricing covers a requested route and picks the three
recommendation cards: best value, lowest price and best rated.

Candidates:
1. Exact - the driver prices the requested pair, in either direction.
2. Nearby - the driver prices a related route:
   a. the request origin to the hub town of the destination, or
   b. a route sharing one endpoint with the request whose other endpoint
      contains, or is contained in, the request's other endpoint
      ("Nairobi" vs "Nairobi CBD"). This is plain text containment,
      not geographic distance.
"""

import logging
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession

from taxibook.app.core.config import settings
from taxibook.app.core.exceptions import ValidationError
from taxibook.app.models.driver import Driver
from taxibook.app.models.route_enums import MatchType
from taxibook.app.schemas.matching import DriverMatch, VehicleInfo, RecommendationsResponse
from taxibook.app.schemas.pricing import DriverPricing, RoutePrice
from taxibook.app.domain.pricing.pricing_store import (
    get_pricing_for_drivers, lookup_route_price, normalize_location
)
from taxibook.app.domain.pricing.location_hubs import get_nearby_hub
from taxibook.app.domain.matching.driver_directory import list_eligible_drivers
from taxibook.app.services.cache import RecommendationCache

logger = logging.getLogger(__name__)

# Shorter names ("a", "ka") would contain-match almost anything
MIN_ASSOCIATION_LENGTH = 3

# Match score weights
PRICE_WEIGHT = 0.4
RATING_WEIGHT = 0.4
EXPERIENCE_WEIGHT = 0.2


def _associated(place: str, other: str) -> bool:
    if place == other:
        return False
    if len(place) < MIN_ASSOCIATION_LENGTH or len(other) < MIN_ASSOCIATION_LENGTH:
        return False
    return place in other or other in place


def find_nearby_route(
    pricing: DriverPricing,
    from_location: str,
    to_location: str,
) -> Optional[Tuple[RoutePrice, str]]:
    """
    Related route for a request that has no exact price.

    Returns:
        (route price, via location display name) or None
    """
    req_from = normalize_location(from_location)
    req_to = normalize_location(to_location)

    hub = get_nearby_hub(to_location)
    if hub and normalize_location(hub) != req_from:
        entry = lookup_route_price(pricing, from_location, hub)
        if entry is not None:
            return entry, hub

    found = []
    for route_key, entry in pricing.route_pricing.items():
        if not entry.price:
            continue
        endpoints = (
            (normalize_location(entry.from_location), entry.from_location),
            (normalize_location(entry.to_location), entry.to_location),
        )
        for (shared, _), (other, other_display) in (endpoints, endpoints[::-1]):
            if (shared == req_from and _associated(other, req_to)) or (
                shared == req_to and _associated(other, req_from)
            ):
                found.append((entry.price, route_key, entry, other_display))
                break

    if not found:
        return None

    _, _, entry, via = min(found, key=lambda item: (item[0], item[1]))
    return entry, via


def resolve_route_price(
    pricing: Optional[DriverPricing],
    from_location: str,
    to_location: str,
) -> Optional[Tuple[RoutePrice, MatchType, Optional[str]]]:
    """Exact price first, then a nearby route."""
    if pricing is None:
        return None

    entry = lookup_route_price(pricing, from_location, to_location)
    if entry is not None:
        return entry, MatchType.EXACT, None

    nearby = find_nearby_route(pricing, from_location, to_location)
    if nearby is not None:
        entry, via = nearby
        return entry, MatchType.NEARBY, via

    return None


def build_driver_match(driver: Driver, price: float, match_type: MatchType, via_location: Optional[str]) -> DriverMatch:
    vehicle = None
    if driver.vehicle_make or driver.vehicle_model or driver.vehicle_type:
        vehicle = VehicleInfo(
            make=driver.vehicle_make,
            model=driver.vehicle_model,
            type=driver.vehicle_type,
            color=driver.vehicle_color,
            car_photo_url=driver.car_photo_url,
        )

    return DriverMatch(
        driver_id=driver.id,
        driver_name=driver.name or "Unknown Driver",
        rating=driver.average_rating if driver.average_rating else settings.default_driver_rating,
        total_rides=driver.total_rides or 0,
        price=price,
        match_type=match_type,
        via_location=via_location,
        phone=driver.phone,
        whatsapp=driver.whatsapp,
        profile_photo_url=driver.profile_photo_url,
        bio=driver.bio,
        vehicle=vehicle,
    )


def calculate_match_score(match: DriverMatch, avg_price: float) -> float:
    """
    Display score on a 0-100 scale.

    price 40% (cheaper than the candidate average scores higher),
    rating 40%, experience 20% (capped at 100 rides). Nearby matches are
    scaled down so exact matches rank first when otherwise equal.
    """
    price_score = max(0.0, 100 - (match.price / avg_price) * 100) if avg_price > 0 else 50.0
    rating_score = (match.rating / 5) * 100
    experience_score = min(100, match.total_rides)

    score = price_score * PRICE_WEIGHT + rating_score * RATING_WEIGHT + experience_score * EXPERIENCE_WEIGHT
    if match.match_type == MatchType.NEARBY:
        score *= settings.nearby_match_penalty

    return round(score, 2)


def value_score(match: DriverMatch, max_price: float) -> float:
    """rating / normalized price, where normalized price = price / max candidate price."""
    return match.rating / (match.price / max_price)


def pick_lowest_price(candidates: List[DriverMatch]) -> DriverMatch:
    # Ties: higher rating, then more rides
    return min(candidates, key=lambda m: (m.price, -m.rating, -m.total_rides, m.driver_id))


def pick_best_rated(candidates: List[DriverMatch]) -> DriverMatch:
    # Ties: lower price
    return min(candidates, key=lambda m: (-m.rating, m.price, -m.total_rides, m.driver_id))


def pick_best_value(candidates: List[DriverMatch]) -> DriverMatch:
    prices = {m.price for m in candidates}
    if len(candidates) == 1 or len(prices) == 1:
        return pick_best_rated(candidates)

    max_price = max(prices)
    return min(
        candidates,
        key=lambda m: (-value_score(m, max_price), m.price, -m.rating, -m.total_rides, m.driver_id),
    )


def rank_candidates(candidates: List[DriverMatch]) -> RecommendationsResponse:
    """Pick the three recommendation cards; all None for an empty candidate list."""
    if not candidates:
        return RecommendationsResponse()

    return RecommendationsResponse(
        best_value=pick_best_value(candidates),
        lowest_price=pick_lowest_price(candidates),
        best_rated=pick_best_rated(candidates),
    )


def _require_location(value: str, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()


class MatchingService:

    @staticmethod
    async def find_drivers_for_route(
        db: AsyncSession,
        from_location: str,
        to_location: str,
    ) -> List[DriverMatch]:
        """
        Eligible drivers with a resolvable price for the route, scored.

        Raises:
            ValidationError: empty location
        """
        from_location = _require_location(from_location, "from_location")
        to_location = _require_location(to_location, "to_location")

        drivers = await list_eligible_drivers(db)
        pricing = await get_pricing_for_drivers(db, [d.id for d in drivers])

        matches = []
        for driver in drivers:
            resolved = resolve_route_price(pricing.get(driver.id), from_location, to_location)
            if resolved is None:
                continue
            entry, match_type, via_location = resolved
            matches.append(build_driver_match(driver, entry.price, match_type, via_location))

        if matches:
            avg_price = sum(m.price for m in matches) / len(matches)
            for match in matches:
                match.match_score = calculate_match_score(match, avg_price)

        logger.info(
            "Route %s -> %s: %d eligible drivers, %d candidates",
            from_location, to_location, len(drivers), len(matches)
        )
        return matches

    @staticmethod
    async def get_recommendations(
        db: AsyncSession,
        from_location: str,
        to_location: str,
        cache: Optional[RecommendationCache] = None,
    ) -> RecommendationsResponse:
        """
        Best value, lowest price and best rated drivers for a route.

        No candidates is a valid result with all three fields None.
        """
        from_location = _require_location(from_location, "from_location")
        to_location = _require_location(to_location, "to_location")

        if cache is not None:
            cached = await cache.get(from_location, to_location)
            if cached is not None:
                return cached

        candidates = await MatchingService.find_drivers_for_route(db, from_location, to_location)
        recommendations = rank_candidates(candidates)

        if cache is not None:
            await cache.set(from_location, to_location, recommendations)

        return recommendations

    @staticmethod
    async def get_all_drivers_for_route(
        db: AsyncSession,
        from_location: str,
        to_location: str,
    ) -> List[DriverMatch]:
        """Every candidate, best match score first."""
        candidates = await MatchingService.find_drivers_for_route(db, from_location, to_location)
        return sorted(candidates, key=lambda m: (-m.match_score, m.price, m.driver_id))
