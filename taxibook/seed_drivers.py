"""
Database seeding script for demo drivers and route prices.

Creates a handful of active, publicly visible drivers with prices on common
routes so recommendations can be tried out locally.
Run this script after database is set up but before first use.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from taxibook.app.db.session import AsyncSessionLocal, create_tables
from taxibook.app.models.driver import Driver
from taxibook.app.models import negotiation  # noqa: F401  (create its tables too)
from taxibook.app.models.enums import SubscriptionStatus, VehicleType
from taxibook.app.domain.pricing.pricing_store import set_route_price
from sqlalchemy import select


DEMO_DRIVERS = [
    {
        "name": "Peter Mutua",
        "phone": "+254700000001",
        "average_rating": 4.2,
        "total_rides": 120,
        "vehicle_make": "Toyota",
        "vehicle_model": "Probox",
        "vehicle_type": VehicleType.SEDAN,
        "routes": [("Machakos", "Nairobi", 800), ("Machakos Town", "Masii", 500)],
    },
    {
        "name": "Grace Wanjiku",
        "phone": "+254700000002",
        "average_rating": 4.8,
        "total_rides": 340,
        "vehicle_make": "Nissan",
        "vehicle_model": "X-Trail",
        "vehicle_type": VehicleType.SUV,
        "routes": [("Machakos", "Nairobi", 650), ("Nairobi", "Mombasa", 9000)],
    },
    {
        "name": "Samuel Kioko",
        "phone": "+254700000003",
        "average_rating": 4.0,
        "total_rides": 15,
        "vehicle_make": "Toyota",
        "vehicle_model": "Hiace",
        "vehicle_type": VehicleType.VAN,
        "routes": [("Nairobi", "Machakos Town", 700)],
    },
]


async def seed_drivers():
    """Seed demo drivers and their route prices."""
    await create_tables()

    async with AsyncSessionLocal() as db:
        print("🌱 Starting driver seeding...")

        result = await db.execute(select(Driver).where(Driver.phone == DEMO_DRIVERS[0]["phone"]))
        if result.scalar_one_or_none():
            print("ℹ️  Demo drivers already exist, skipping seeding")
            return

        for spec in DEMO_DRIVERS:
            routes = spec["routes"]
            driver = Driver(
                name=spec["name"],
                phone=spec["phone"],
                average_rating=spec["average_rating"],
                total_rides=spec["total_rides"],
                vehicle_make=spec["vehicle_make"],
                vehicle_model=spec["vehicle_model"],
                vehicle_type=spec["vehicle_type"],
                active=True,
                subscription_status=SubscriptionStatus.ACTIVE,
                is_visible_to_public=True,
            )
            db.add(driver)
            await db.commit()

            for from_location, to_location, price in routes:
                await set_route_price(db, driver.id, from_location, to_location, price)

            print(f"✅ Created driver {driver.name} ({driver.id}) with {len(routes)} routes")

        print("\n🎉 Driver seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_drivers())
