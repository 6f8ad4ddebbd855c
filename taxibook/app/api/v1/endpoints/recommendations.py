"""
Recommendation API Endpoints.

Customers look up drivers for a route and get the three recommendation cards.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from taxibook.app.db.session import get_db
from taxibook.app.core.redis_client import get_redis
from taxibook.app.domain.matching.matching_service import MatchingService
from taxibook.app.schemas.matching import RecommendationsResponse, DriverMatchListResponse
from taxibook.app.services.cache import RecommendationCache

router = APIRouter(tags=["Matching"])


@router.get("/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    from_location: str = Query(..., alias="from", max_length=200),
    to_location: str = Query(..., alias="to", max_length=200),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Best value, lowest price and best rated driver for a route.

    All three are null when no driver serves the route; the client then
    falls back to posting a ride request.
    """
    return await MatchingService.get_recommendations(
        db, from_location, to_location, cache=RecommendationCache(redis)
    )


@router.get("/routes/drivers", response_model=DriverMatchListResponse)
async def list_drivers_for_route(
    from_location: str = Query(..., alias="from", max_length=200),
    to_location: str = Query(..., alias="to", max_length=200),
    db: AsyncSession = Depends(get_db),
):
    """Every driver serving the route, best match score first."""
    drivers = await MatchingService.get_all_drivers_for_route(db, from_location, to_location)
    return DriverMatchListResponse(
        from_location=from_location.strip(),
        to_location=to_location.strip(),
        drivers=drivers,
        total=len(drivers),
    )
