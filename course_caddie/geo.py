"""
Geo kernel for Course Caddie.

Distances, bearings and projections on a spherical earth, plus planar helpers
that treat lat/lng as a local plane (good enough for distances under a few
miles).
"""

import math
from typing import List, Sequence, Tuple

from .models import Coordinate

EARTH_RADIUS_M = 6_371_000
METERS_TO_YARDS = 1.09361
YARDS_TO_METERS = 1 / METERS_TO_YARDS


def haversine_yards(a: Coordinate, b: Coordinate) -> int:
    """Great-circle distance in whole yards."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    sin_lat = math.sin(d_lat / 2)
    sin_lng = math.sin(d_lng / 2)
    h = (
        sin_lat * sin_lat
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * sin_lng * sin_lng
    )
    meters = 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h)))
    return round(meters * METERS_TO_YARDS)


def project_point(origin: Coordinate, bearing_deg: float, distance_yards: float) -> Coordinate:
    """Project a point `distance_yards` from origin along a compass bearing."""
    d = distance_yards * YARDS_TO_METERS / EARTH_RADIUS_M
    brng = math.radians(bearing_deg)
    lat1 = math.radians(origin.lat)
    lng1 = math.radians(origin.lng)

    lat2 = math.asin(
        math.sin(lat1) * math.cos(d) + math.cos(lat1) * math.sin(d) * math.cos(brng)
    )
    lng2 = lng1 + math.atan2(
        math.sin(brng) * math.sin(d) * math.cos(lat1),
        math.cos(d) - math.sin(lat1) * math.sin(lat2),
    )
    return Coordinate(lat=math.degrees(lat2), lng=math.degrees(lng2))


def bearing_between(a: Coordinate, b: Coordinate) -> float:
    """Initial compass bearing (0-360) from a to b."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lng = math.radians(b.lng - a.lng)
    y = math.sin(d_lng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def point_in_polygon(point: Coordinate, polygon: Sequence[Coordinate]) -> bool:
    """Ray-casting point-in-polygon test. Degenerate polygons contain nothing."""
    if len(polygon) < 3:
        return False
    inside = False
    j = len(polygon) - 1
    for i in range(len(polygon)):
        xi, yi = polygon[i].lng, polygon[i].lat
        xj, yj = polygon[j].lng, polygon[j].lat
        if (yi > point.lat) != (yj > point.lat):
            if point.lng < (xj - xi) * (point.lat - yi) / (yj - yi) + xi:
                inside = not inside
        j = i
    return inside


def polygon_centroid(polygon: Sequence[Coordinate]) -> Coordinate:
    """Vertex-mean centroid."""
    n = len(polygon)
    return Coordinate(
        lat=sum(p.lat for p in polygon) / n,
        lng=sum(p.lng for p in polygon) / n,
    )


def normalize_angle(angle: float) -> float:
    """Map an angle in degrees into (-180, 180]."""
    d = math.fmod(angle, 360)
    if d > 180:
        d -= 360
    if d <= -180:
        d += 360
    return d


def shift_toward(origin: Coordinate, toward: Coordinate, yards: float) -> Coordinate:
    return project_point(origin, bearing_between(origin, toward), yards)


def to_local_yards(origin: Coordinate, point: Coordinate) -> Tuple[float, float]:
    """(east, north) offset of point from origin in yards on a local plane."""
    yards_per_deg = math.radians(1) * EARTH_RADIUS_M * METERS_TO_YARDS
    east = (point.lng - origin.lng) * yards_per_deg * math.cos(math.radians(origin.lat))
    north = (point.lat - origin.lat) * yards_per_deg
    return east, north


def distance_to_segment_yards(point: Coordinate, start: Coordinate, end: Coordinate) -> float:
    """Perpendicular distance from point to the start->end segment (clamped projection)."""
    px, py = to_local_yards(start, point)
    ex, ey = to_local_yards(start, end)
    seg_len_sq = ex * ex + ey * ey
    if seg_len_sq == 0:
        return math.hypot(px, py)
    t = max(0.0, min(1.0, (px * ex + py * ey) / seg_len_sq))
    return math.hypot(px - t * ex, py - t * ey)


def center_line_point(
    center_line: List[Coordinate],
    origin: Coordinate,
    distance_yards: float,
    fallback_bearing: float,
) -> Coordinate:
    """
    Walk the center line `distance_yards` from its start.
    Without a usable center line, project from origin along the fallback bearing.
    """
    if len(center_line) < 2:
        return project_point(origin, fallback_bearing, distance_yards)

    walked = 0.0
    prev = center_line[0]
    for point in center_line[1:]:
        seg = haversine_yards(prev, point)
        if walked + seg >= distance_yards:
            fraction = (distance_yards - walked) / seg if seg > 0 else 0.0
            return Coordinate(
                lat=prev.lat + (point.lat - prev.lat) * fraction,
                lng=prev.lng + (point.lng - prev.lng) * fraction,
            )
        walked += seg
        prev = point

    return project_point(prev, fallback_bearing, distance_yards - walked)
