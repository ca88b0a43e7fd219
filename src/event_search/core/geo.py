"""Great-circle distance helpers."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from event_search.domain.entities.event import Coordinates

DistanceUnit = Literal["mi", "km"]

EARTH_RADIUS: dict[str, float] = {
    "mi": 3959.0,
    "km": 6371.0,
}


def haversine_distance(start: Coordinates, end: Coordinates, unit: DistanceUnit = "mi") -> float:
    """Distance between two points along the Earth's surface, in ``unit``."""
    try:
        radius = EARTH_RADIUS[unit]
    except KeyError:
        raise ValueError(f"Unknown distance unit: {unit!r}") from None

    start_lat = math.radians(start.lat)
    end_lat = math.radians(end.lat)
    delta_lat = math.radians(end.lat - start.lat)
    delta_lng = math.radians(end.lng - start.lng)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(start_lat) * math.cos(end_lat) * math.sin(delta_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return radius * c
