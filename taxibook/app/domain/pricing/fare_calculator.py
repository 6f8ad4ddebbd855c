"""
Fare calculation.

Applies a driver's zone surcharges and time-based modifiers on top of the
base route price. Modifier shape (all keys optional):

    {
        "night_shift": {"enabled": true, "start_time": "20:00", "end_time": "06:00", "multiplier": 1.5},
        "holiday": {"enabled": false, "multiplier": 2.0},
        "peak_hours": {"enabled": true, "time_slots": [{"start": "07:00", "end": "09:00", "multiplier": 1.2}]}
    }

Special zones apply when the zone name occurs in either endpoint:

    {"Airport": {"surcharge_percent": 20}, "Estate": {"flat_surcharge": 200}}
"""

from datetime import datetime
from typing import Optional, Dict, Any

from taxibook.app.schemas.pricing import DriverPricing
from taxibook.app.domain.pricing.pricing_store import lookup_route_price, normalize_location
from taxibook.app.core.timeutils import utcnow


def _parse_clock(value: str) -> float:
    """'20:30' -> 20.5"""
    hours, _, minutes = str(value).partition(":")
    return int(hours) + (int(minutes) if minutes else 0) / 60


def _in_window(time_of_day: float, start: float, end: float) -> bool:
    # Windows such as 20:00-06:00 wrap past midnight
    if start <= end:
        return start <= time_of_day < end
    return time_of_day >= start or time_of_day < end


def _apply_zones(fare: float, zones: Dict[str, Any], from_location: str, to_location: str) -> float:
    endpoints = (normalize_location(from_location), normalize_location(to_location))
    for zone_name, zone in zones.items():
        name = normalize_location(zone_name)
        if not name or not any(name in endpoint for endpoint in endpoints):
            continue
        if zone.get("surcharge_percent"):
            fare += fare * zone["surcharge_percent"] / 100
        elif zone.get("flat_surcharge"):
            fare += zone["flat_surcharge"]
    return fare


def _apply_modifiers(fare: float, modifiers: Dict[str, Any], at: datetime) -> float:
    time_of_day = at.hour + at.minute / 60

    night = modifiers.get("night_shift") or {}
    if night.get("enabled"):
        start = _parse_clock(night.get("start_time", "20:00"))
        end = _parse_clock(night.get("end_time", "06:00"))
        if _in_window(time_of_day, start, end):
            fare *= night.get("multiplier", 1)

    holiday = modifiers.get("holiday") or {}
    if holiday.get("enabled"):
        fare *= holiday.get("multiplier", 1)

    peak = modifiers.get("peak_hours") or {}
    if peak.get("enabled"):
        for slot in peak.get("time_slots") or []:
            if _in_window(time_of_day, _parse_clock(slot["start"]), _parse_clock(slot["end"])):
                fare *= slot.get("multiplier", 1)

    return fare


def calculate_fare(
    pricing: Optional[DriverPricing],
    from_location: str,
    to_location: str,
    at: Optional[datetime] = None,
) -> int:
    """
    Calculates the fare for a route in either direction, applying modifiers.

    Args:
        pricing: Driver pricing from the pricing store
        from_location: Origin
        to_location: Destination
        at: Moment the ride happens (defaults to now, UTC)

    Returns:
        Fare rounded to whole shillings, 0 if the route is not priced
    """
    entry = lookup_route_price(pricing, from_location, to_location)
    if entry is None:
        return 0

    fare = entry.price
    if pricing.special_zones:
        fare = _apply_zones(fare, pricing.special_zones, from_location, to_location)
    if pricing.modifiers:
        fare = _apply_modifiers(fare, pricing.modifiers, at or utcnow())

    return round(fare)
