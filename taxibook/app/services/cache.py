"""
Recommendation cache backed by Redis.

Recommendations are cached per directed route for a short TTL. Every pricing
write bumps a version counter that is part of the key, so stale entries are
simply never read again and age out on their own.

Driver profile changes (rating, eligibility) are made outside this service
and do not bump the version; they show up once cached entries expire, or
sooner if the writer calls invalidate().
"""

import logging
from typing import Optional
from pydantic import ValidationError as SchemaValidationError
from redis.exceptions import RedisError

from taxibook.app.core.config import settings
from taxibook.app.schemas.matching import RecommendationsResponse
from taxibook.app.domain.pricing.pricing_store import create_route_key

logger = logging.getLogger(__name__)

PRICING_VERSION_KEY = "pricing:version"


class RecommendationCache:

    def __init__(self, redis, ttl_seconds: int = None):
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.recommendation_cache_ttl_seconds

    async def _key(self, from_location: str, to_location: str) -> str:
        version = await self.redis.get(PRICING_VERSION_KEY) or "0"
        if isinstance(version, bytes):
            version = version.decode()
        return f"recommendations:v{version}:{create_route_key(from_location, to_location)}"

    async def get(self, from_location: str, to_location: str) -> Optional[RecommendationsResponse]:
        try:
            raw = await self.redis.get(await self._key(from_location, to_location))
        except RedisError as exc:
            logger.warning("Recommendation cache read failed, recomputing: %s", exc)
            return None

        if raw is None:
            return None
        try:
            return RecommendationsResponse.model_validate_json(raw)
        except SchemaValidationError as exc:
            # Corrupt or written by an older schema; recompute and overwrite
            logger.warning("Discarding unreadable recommendation cache entry: %s", exc)
            return None

    async def set(self, from_location: str, to_location: str, recommendations: RecommendationsResponse):
        try:
            await self.redis.set(
                await self._key(from_location, to_location),
                recommendations.model_dump_json(),
                ex=self.ttl_seconds,
            )
        except RedisError as exc:
            logger.warning("Recommendation cache write failed: %s", exc)

    async def invalidate(self):
        """Called after any pricing write."""
        try:
            await self.redis.incr(PRICING_VERSION_KEY)
        except RedisError as exc:
            logger.warning("Recommendation cache invalidation failed: %s", exc)
