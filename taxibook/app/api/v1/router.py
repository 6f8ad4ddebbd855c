"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from taxibook.app.api.v1.endpoints import recommendations, driver_pricing, negotiations

router = APIRouter()

# Matching
router.include_router(recommendations.router)

# Pricing
router.include_router(driver_pricing.router)
router.include_router(driver_pricing.driver_router)

# Negotiations
router.include_router(negotiations.router)
router.include_router(negotiations.driver_router)
router.include_router(negotiations.customer_router)
