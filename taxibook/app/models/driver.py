"""
Driver directory database model.

Public driver profile rows read by the matcher.
"""

import uuid
from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, Text
from sqlalchemy.sql import func
from taxibook.app.db.session import Base
from taxibook.app.models.enums import SubscriptionStatus, VehicleType


class Driver(Base):
    """
    Driver model.

    Only drivers that are active, hold an active subscription and are
    visible to the public are eligible for matching.
    """
    __tablename__ = "drivers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Profile
    name = Column(String(200), nullable=False)
    phone = Column(String(30), nullable=True)
    whatsapp = Column(String(30), nullable=True)
    bio = Column(Text, nullable=True)
    profile_photo_url = Column(String(500), nullable=True)

    # Reputation
    average_rating = Column(Float, nullable=True)
    total_rides = Column(Integer, default=0, nullable=False)

    # Directory flags
    active = Column(Boolean, default=True, nullable=False, index=True)
    subscription_status = Column(
        Enum(SubscriptionStatus), default=SubscriptionStatus.TRIAL, nullable=False, index=True
    )
    is_visible_to_public = Column(Boolean, default=True, nullable=False, index=True)

    # Vehicle (optional)
    vehicle_make = Column(String(100), nullable=True)
    vehicle_model = Column(String(100), nullable=True)
    vehicle_type = Column(Enum(VehicleType), nullable=True)
    vehicle_color = Column(String(50), nullable=True)
    car_photo_url = Column(String(500), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', active={self.active})>"
