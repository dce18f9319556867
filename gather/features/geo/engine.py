"""
Geo engine: great-circle distances and discovery query shapes.

Pure functions only. Distances use the haversine formula on a spherical
earth; discovery uses a spherical cap (center + angular radius), the same
selection a 2d-sphere `$centerSphere` query makes.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from gather.models.location import Coordinate

EARTH_RADIUS_M = 6378137.0
EARTH_RADIUS_KM = 6378.1


def _central_angle(a: Coordinate, b: Coordinate) -> float:
    """Angle between two points as seen from the earth's center, in radians."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * math.asin(math.sqrt(h))


def distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters, rounded to 1 m."""
    return float(round(_central_angle(a, b) * EARTH_RADIUS_M))


@dataclass(frozen=True)
class DiscoveryQuery:
    """Spherical cap: everything within `radius_km` of `center`."""

    center: Coordinate
    radius_km: float

    @property
    def radius_radians(self) -> float:
        return self.radius_km / EARTH_RADIUS_KM

    def contains(self, point: Coordinate) -> bool:
        return _central_angle(self.center, point) <= self.radius_radians

    def bounds(self) -> Tuple[float, float, Optional[Tuple[float, float]]]:
        """Bounding box for an index prefilter.

        Returns (min_lat, max_lat, lng_range). lng_range is None when the
        cap reaches a pole or wraps the antimeridian; callers then filter
        on latitude only and rely on `contains` for the rest.
        """
        delta_lat = math.degrees(self.radius_radians)
        min_lat = self.center.latitude - delta_lat
        max_lat = self.center.latitude + delta_lat
        if min_lat <= -90 or max_lat >= 90 or self.radius_radians >= math.pi / 2:
            return max(min_lat, -90.0), min(max_lat, 90.0), None

        delta_lng = math.degrees(
            math.asin(min(1.0, math.sin(self.radius_radians) / math.cos(math.radians(self.center.latitude))))
        )
        min_lng = self.center.longitude - delta_lng
        max_lng = self.center.longitude + delta_lng
        if min_lng < -180 or max_lng > 180:
            return min_lat, max_lat, None
        return min_lat, max_lat, (min_lng, max_lng)


def discovery_query(center: Coordinate, radius_km: float) -> DiscoveryQuery:
    if not math.isfinite(radius_km) or radius_km < 0:
        raise ValueError("radius_km must be a finite, non-negative number")
    return DiscoveryQuery(center=center, radius_km=float(radius_km))
