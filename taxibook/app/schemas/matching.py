"""
Matching schemas.

Driver matches and the three-card recommendation result.
"""

from pydantic import BaseModel
from typing import List, Optional
from taxibook.app.models.enums import VehicleType
from taxibook.app.models.route_enums import MatchType


class VehicleInfo(BaseModel):
    """Public vehicle details shown on a driver card."""
    make: Optional[str] = None
    model: Optional[str] = None
    type: Optional[VehicleType] = None
    color: Optional[str] = None
    car_photo_url: Optional[str] = None


class DriverMatch(BaseModel):
    """A driver with a resolved price for the requested route. Recomputed per search."""
    driver_id: str
    driver_name: str
    rating: float
    total_rides: int
    price: float
    match_type: MatchType
    via_location: Optional[str] = None
    match_score: float = 0.0

    # Contact and profile
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    profile_photo_url: Optional[str] = None
    bio: Optional[str] = None
    vehicle: Optional[VehicleInfo] = None


class RecommendationsResponse(BaseModel):
    """Best value, lowest price and best rated picks; all None when nobody serves the route."""
    best_value: Optional[DriverMatch] = None
    lowest_price: Optional[DriverMatch] = None
    best_rated: Optional[DriverMatch] = None


class DriverMatchListResponse(BaseModel):
    """All candidates for a route, best match score first."""
    from_location: str
    to_location: str
    drivers: List[DriverMatch]
    total: int
