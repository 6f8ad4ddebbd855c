"""
Route pricing store.

Keyed access to the prices drivers set per route. Read-only for the matcher;
writes come from the driver's own pricing settings.
"""

import logging
import math
from typing import Dict, Iterable, Optional, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete

from taxibook.app.models.driver import Driver
from taxibook.app.models.driver_pricing import DriverRoutePrice, DriverPricingProfile
from taxibook.app.schemas.pricing import DriverPricing, RoutePrice
from taxibook.app.core.exceptions import ValidationError, NotFoundError
from taxibook.app.core.reliability import store_circuit_breaker
from taxibook.app.core.timeutils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

ROUTE_KEY_DELIMITER = "-"


def normalize_location(location: str) -> str:
    return location.strip().lower()


def create_route_key(from_location: str, to_location: str) -> str:
    """
    Creates a standardized route key from origin and destination.

    Order matters: create_route_key("Nairobi", "Mombasa") is "nairobi-mombasa"
    and differs from the reverse key. Callers that treat routes as undirected
    look up both.
    """
    return f"{normalize_location(from_location)}{ROUTE_KEY_DELIMITER}{normalize_location(to_location)}"


def lookup_route_price(pricing: Optional[DriverPricing], from_location: str, to_location: str) -> Optional[RoutePrice]:
    """Direct or reverse route price, ignoring entries without a positive price."""
    if pricing is None:
        return None

    for key in (create_route_key(from_location, to_location), create_route_key(to_location, from_location)):
        entry = pricing.route_pricing.get(key)
        if entry is not None and entry.price:
            return entry
    return None


def _require_location(value: str, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field} must not be empty", field=field)
    return value.strip()


def _build_pricing(
    driver_id: str,
    rows: Iterable[DriverRoutePrice],
    profile: Optional[DriverPricingProfile],
) -> DriverPricing:
    route_pricing = {
        row.route_key: RoutePrice(
            price=row.price,
            from_location=row.from_location,
            to_location=row.to_location,
            updated_at=ensure_utc(row.updated_at),
        )
        for row in rows
    }
    timestamps = [entry.updated_at for entry in route_pricing.values() if entry.updated_at]
    if profile is not None and profile.last_updated is not None:
        timestamps.append(ensure_utc(profile.last_updated))

    return DriverPricing(
        driver_id=driver_id,
        route_pricing=route_pricing,
        special_zones=(profile.special_zones if profile else None) or {},
        modifiers=(profile.modifiers if profile else None) or {},
        last_updated=max(timestamps) if timestamps else None,
    )


async def get_pricing_for_drivers(db: AsyncSession, driver_ids: Iterable[str]) -> Dict[str, DriverPricing]:
    """
    Batched pricing lookup.

    Returns:
        Mapping of driver id to DriverPricing; drivers with no pricing at all are absent.
    """
    driver_ids = list(driver_ids)
    if not driver_ids:
        return {}

    async with store_circuit_breaker.guard("pricing.read"):
        route_result = await db.execute(
            select(DriverRoutePrice)
            .where(DriverRoutePrice.driver_id.in_(driver_ids))
            .order_by(DriverRoutePrice.route_key)
        )
        route_rows = route_result.scalars().all()

        profile_result = await db.execute(
            select(DriverPricingProfile).where(DriverPricingProfile.driver_id.in_(driver_ids))
        )
        profiles = {p.driver_id: p for p in profile_result.scalars().all()}

    rows_by_driver: Dict[str, list] = {}
    for row in route_rows:
        rows_by_driver.setdefault(row.driver_id, []).append(row)

    pricing = {}
    for driver_id in driver_ids:
        rows = rows_by_driver.get(driver_id, [])
        profile = profiles.get(driver_id)
        if not rows and profile is None:
            continue
        pricing[driver_id] = _build_pricing(driver_id, rows, profile)
    return pricing


async def get_driver_pricing(db: AsyncSession, driver_id: str) -> Optional[DriverPricing]:
    """
    Retrieves the pricing configuration for a driver.

    Returns:
        DriverPricing, or None if the driver has configured nothing
    """
    pricing = await get_pricing_for_drivers(db, [driver_id])
    return pricing.get(driver_id)


async def _ensure_driver(db: AsyncSession, driver_id: str) -> Driver:
    driver = await db.get(Driver, driver_id)
    if driver is None:
        raise NotFoundError("Driver", driver_id)
    return driver


async def set_route_price(
    db: AsyncSession,
    driver_id: str,
    from_location: str,
    to_location: str,
    price: float,
) -> RoutePrice:
    """
    Create or update the price a driver charges for a route.

    Raises:
        ValidationError: empty location or non-positive price
        NotFoundError: unknown driver
    """
    from_location = _require_location(from_location, "from_location")
    to_location = _require_location(to_location, "to_location")
    if price is None or not math.isfinite(price) or price <= 0:
        raise ValidationError("price must be greater than zero", field="price")

    route_key = create_route_key(from_location, to_location)

    async with store_circuit_breaker.guard("pricing.write"):
        await _ensure_driver(db, driver_id)

        result = await db.execute(
            select(DriverRoutePrice).where(
                DriverRoutePrice.driver_id == driver_id,
                DriverRoutePrice.route_key == route_key,
            )
        )
        row = result.scalar_one_or_none()

        if row is None:
            row = DriverRoutePrice(
                driver_id=driver_id,
                route_key=route_key,
                from_location=from_location,
                to_location=to_location,
                price=price,
            )
            db.add(row)
        else:
            row.from_location = from_location
            row.to_location = to_location
            row.price = price
            row.updated_at = utcnow()

        await db.commit()
        await db.refresh(row)

    logger.info("Driver %s priced route %s at %s", driver_id, route_key, price)

    return RoutePrice(
        price=row.price,
        from_location=row.from_location,
        to_location=row.to_location,
        updated_at=ensure_utc(row.updated_at),
    )


async def remove_route_price(db: AsyncSession, driver_id: str, from_location: str, to_location: str) -> None:
    """
    Remove a route from a driver's pricing.

    Raises:
        NotFoundError: the driver does not price this route
    """
    from_location = _require_location(from_location, "from_location")
    to_location = _require_location(to_location, "to_location")
    route_key = create_route_key(from_location, to_location)

    async with store_circuit_breaker.guard("pricing.write"):
        result = await db.execute(
            delete(DriverRoutePrice).where(
                DriverRoutePrice.driver_id == driver_id,
                DriverRoutePrice.route_key == route_key,
            )
        )
        if result.rowcount == 0:
            await db.rollback()
            raise NotFoundError("Route price", route_key)
        await db.commit()

    logger.info("Driver %s removed route %s", driver_id, route_key)


async def update_pricing_profile(
    db: AsyncSession,
    driver_id: str,
    special_zones: Optional[Dict[str, Any]] = None,
    modifiers: Optional[Dict[str, Any]] = None,
) -> DriverPricing:
    """Merge zone surcharges and modifiers into the driver's pricing profile."""
    async with store_circuit_breaker.guard("pricing.write"):
        await _ensure_driver(db, driver_id)

        profile = await db.get(DriverPricingProfile, driver_id)
        if profile is None:
            profile = DriverPricingProfile(driver_id=driver_id, special_zones={}, modifiers={})
            db.add(profile)

        # Reassign whole dicts so the JSON columns are flagged dirty
        if special_zones is not None:
            profile.special_zones = {**(profile.special_zones or {}), **special_zones}
        if modifiers is not None:
            profile.modifiers = {**(profile.modifiers or {}), **modifiers}
        profile.last_updated = utcnow()

        await db.commit()

    return await get_driver_pricing(db, driver_id)
