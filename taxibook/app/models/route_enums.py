"""
Route matching enumerations.
"""

import enum


class MatchType(str, enum.Enum):
    """
    How a driver's pricing resolved the requested route.

    EXACT: Driver prices the requested pair (either direction)
    NEARBY: Driver prices a related route (hub town or overlapping place name)
    """
    EXACT = "exact"
    NEARBY = "nearby"
