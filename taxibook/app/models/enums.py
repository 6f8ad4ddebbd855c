"""
User and driver enumerations.

Defines the role and driver directory types for the taxi booking system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Platform operator
        CUSTOMER: Books rides and negotiates fares
        DRIVER: Publishes route prices and answers negotiations
    """
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"


class SubscriptionStatus(str, enum.Enum):
    """Driver subscription status. Only ACTIVE drivers are matched."""
    ACTIVE = "active"
    TRIAL = "trial"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class VehicleType(str, enum.Enum):
    SEDAN = "sedan"
    SUV = "suv"
    VAN = "van"
    BIKE = "bike"
    TUK_TUK = "tuk-tuk"
