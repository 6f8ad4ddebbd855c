"""
Driver pricing schemas.
"""

from pydantic import BaseModel, Field
from typing import Dict, Optional, Any
from datetime import datetime


class RoutePrice(BaseModel):
    """Price entry for a single route key."""
    price: float
    from_location: str
    to_location: str
    updated_at: Optional[datetime] = None


class DriverPricing(BaseModel):
    """Everything a driver has configured for pricing, keyed by route key."""
    driver_id: str
    route_pricing: Dict[str, RoutePrice] = {}
    special_zones: Dict[str, Any] = {}
    modifiers: Dict[str, Any] = {}
    last_updated: Optional[datetime] = None


class RoutePriceUpsert(BaseModel):
    """Schema for setting the price of a route."""
    from_location: str = Field(..., min_length=1, max_length=200)
    to_location: str = Field(..., min_length=1, max_length=200)
    price: float = Field(..., gt=0, allow_inf_nan=False)



class PricingProfileUpdate(BaseModel):
    """Partial update of zone surcharges and time modifiers."""
    special_zones: Optional[Dict[str, Any]] = None
    modifiers: Optional[Dict[str, Any]] = None


class FareResponse(BaseModel):
    driver_id: str
    from_location: str
    to_location: str
    fare: int
