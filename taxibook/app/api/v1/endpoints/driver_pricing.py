"""
Driver Pricing API Endpoints.

Public reads of a driver's pricing and fares; drivers manage their own prices.
"""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from taxibook.app.db.session import get_db
from taxibook.app.core.redis_client import get_redis
from taxibook.app.core.guards import require_role
from taxibook.app.core.dependencies import SessionContext
from taxibook.app.core.exceptions import NotFoundError
from taxibook.app.models.enums import UserRole
from taxibook.app.domain.pricing import pricing_store
from taxibook.app.domain.pricing.fare_calculator import calculate_fare
from taxibook.app.schemas.pricing import (
    DriverPricing, RoutePrice, RoutePriceUpsert, PricingProfileUpdate, FareResponse
)
from taxibook.app.services.cache import RecommendationCache

router = APIRouter(prefix="/drivers", tags=["Driver Pricing"])
driver_router = APIRouter(prefix="/driver/pricing", tags=["Driver - Pricing"])


@router.get("/{driver_id}/pricing", response_model=DriverPricing)
async def get_driver_pricing(
    driver_id: str = Path(..., description="Driver ID"),
    db: AsyncSession = Depends(get_db),
):
    """Route prices, zone surcharges and modifiers for a driver."""
    pricing = await pricing_store.get_driver_pricing(db, driver_id)
    if pricing is None:
        raise NotFoundError("Driver pricing", driver_id)
    return pricing


@router.get("/{driver_id}/fare", response_model=FareResponse)
async def get_fare(
    driver_id: str = Path(..., description="Driver ID"),
    from_location: str = Query(..., alias="from", min_length=1, max_length=200),
    to_location: str = Query(..., alias="to", min_length=1, max_length=200),
    at: Optional[datetime] = Query(None, description="Ride time, defaults to now"),
    db: AsyncSession = Depends(get_db),
):
    """Fare for a route with this driver's surcharges and modifiers applied (0 if unpriced)."""
    pricing = await pricing_store.get_driver_pricing(db, driver_id)
    return FareResponse(
        driver_id=driver_id,
        from_location=from_location,
        to_location=to_location,
        fare=calculate_fare(pricing, from_location, to_location, at=at),
    )


@driver_router.put("/routes", response_model=RoutePrice)
async def upsert_route_price(
    body: RoutePriceUpsert,
    session: SessionContext = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Set the signed-in driver's price for a route."""
    route_price = await pricing_store.set_route_price(
        db, session.driver_id, body.from_location, body.to_location, body.price
    )
    await RecommendationCache(redis).invalidate()
    return route_price


@driver_router.delete("/routes", status_code=status.HTTP_204_NO_CONTENT)
async def delete_route_price(
    from_location: str = Query(..., alias="from", min_length=1, max_length=200),
    to_location: str = Query(..., alias="to", min_length=1, max_length=200),
    session: SessionContext = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Stop offering a route."""
    await pricing_store.remove_route_price(db, session.driver_id, from_location, to_location)
    await RecommendationCache(redis).invalidate()


@driver_router.patch("/profile", response_model=DriverPricing)
async def update_pricing_profile(
    body: PricingProfileUpdate,
    session: SessionContext = Depends(require_role([UserRole.DRIVER])),
    db: AsyncSession = Depends(get_db),
):
    """Merge zone surcharges and time modifiers into the driver's pricing."""
    return await pricing_store.update_pricing_profile(
        db, session.driver_id, special_zones=body.special_zones, modifiers=body.modifiers
    )
