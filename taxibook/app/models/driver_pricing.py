"""
Driver pricing database models.

Route prices are one row per (driver, route key); zone surcharges and time
modifiers live on a per-driver profile row.
"""

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, JSON, UniqueConstraint
from taxibook.app.db.session import Base
from taxibook.app.core.timeutils import utcnow


class DriverRoutePrice(Base):
    """Price a driver charges for one route."""
    __tablename__ = "driver_route_prices"
    __table_args__ = (
        UniqueConstraint("driver_id", "route_key", name="uq_driver_route_key"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(String(36), ForeignKey("drivers.id"), nullable=False, index=True)

    # Normalized "from-to" key plus the names as the driver typed them
    route_key = Column(String(500), nullable=False, index=True)
    from_location = Column(String(200), nullable=False)
    to_location = Column(String(200), nullable=False)

    price = Column(Float, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<DriverRoutePrice(driver_id={self.driver_id}, route='{self.route_key}', price={self.price})>"


class DriverPricingProfile(Base):
    """
    Per-driver pricing extras.

    special_zones: {"Airport": {"surcharge_percent": 20}, "Estate": {"flat_surcharge": 200}}
    modifiers: {"night_shift": {...}, "holiday": {...}, "peak_hours": {...}}
    """
    __tablename__ = "driver_pricing_profiles"

    driver_id = Column(String(36), ForeignKey("drivers.id"), primary_key=True)
    special_zones = Column(JSON, nullable=True)
    modifiers = Column(JSON, nullable=True)
    last_updated = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<DriverPricingProfile(driver_id={self.driver_id})>"
