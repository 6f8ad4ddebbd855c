"""
Driver directory queries.
"""

from typing import List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from taxibook.app.models.driver import Driver
from taxibook.app.models.enums import SubscriptionStatus
from taxibook.app.core.reliability import store_circuit_breaker


async def list_eligible_drivers(db: AsyncSession) -> List[Driver]:
    """
    Drivers that may be shown to customers.

    Filter: active, subscription active, visible to the public.
    """
    async with store_circuit_breaker.guard("drivers.list_eligible"):
        result = await db.execute(
            select(Driver).where(
                Driver.active == True,
                Driver.subscription_status == SubscriptionStatus.ACTIVE,
                Driver.is_visible_to_public == True,
            ).order_by(Driver.id)
        )
        return list(result.scalars().all())
