"""
Gym proximity matching.

Great-circle distance via the Haversine formula and nearest-gym lookup
within the detection radius.  Pure functions; an empty directory or no
gym in range gives None rather than an error.
"""

import math
from typing import Iterable

from .config import DETECTION_RADIUS_M, EARTH_RADIUS_M
from .models import Gym, Location


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two coordinates in metres.

    Args:
        lat1, lon1: First point in decimal degrees
        lat2, lon2: Second point in decimal degrees

    Returns:
        Distance in metres
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    # Rounding can push a just past 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_to(location: Location, gym: Gym) -> float:
    """Distance in metres from a position fix to a gym."""
    return haversine_m(location.latitude, location.longitude, gym.latitude, gym.longitude)


def find_nearest_with_distance(
    location: Location,
    gyms: Iterable[Gym],
    radius_m: float = DETECTION_RADIUS_M,
) -> tuple[Gym, float] | None:
    """
    Find the closest gym within radius_m, with its distance.

    Ties keep the gym that appears first in the directory.

    Returns:
        (gym, distance_m) or None if nothing is in range
    """
    best: tuple[Gym, float] | None = None
    for gym in gyms:
        d = distance_to(location, gym)
        if d > radius_m:
            continue
        # Strict < so an equal distance never displaces an earlier gym
        if best is None or d < best[1]:
            best = (gym, d)
    return best


def find_nearest(
    location: Location,
    gyms: Iterable[Gym],
    radius_m: float = DETECTION_RADIUS_M,
) -> Gym | None:
    """Closest gym within radius_m, or None."""
    match = find_nearest_with_distance(location, gyms, radius_m)
    return match[0] if match is not None else None
