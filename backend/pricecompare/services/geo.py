"""Geo math - great-circle distance, radius checks and bounding boxes"""
import math
from dataclasses import dataclass
from numbers import Real
from typing import Iterable, Tuple

from pricecompare.core.errors import ValidationError

EARTH_RADIUS_KM = 6371.0

# Slack added around bounding boxes so points exactly on the radius survive float rounding
BOX_MARGIN_DEG = 1e-6


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @property
    def spans_all_longitudes(self) -> bool:
        return self.min_lon <= -180.0 and self.max_lon >= 180.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in kilometres. Inputs must already be validated."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push a just past 1 for antipodal points
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_radius(
    center_lat: float,
    center_lon: float,
    point_lat: float,
    point_lon: float,
    radius_km: float,
) -> bool:
    """Inclusive radius check. A negative radius behaves like zero."""
    radius_km = max(radius_km, 0.0)
    return distance_km(center_lat, center_lon, point_lat, point_lon) <= radius_km


def _is_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(float(value))


def validate_coordinates(lat, lon) -> bool:
    if not (_is_number(lat) and _is_number(lon)):
        return False
    return -90 <= lat <= 90 and -180 <= lon <= 180


def normalize_coordinates(lat, lon) -> Tuple[float, float]:
    """
    Parse (possibly string) coordinates and round them to 6 decimals (~0.1 m).

    Raises ValidationError when the values are not valid Earth coordinates.
    """
    try:
        lat_f = float(lat) if isinstance(lat, str) else lat
        lon_f = float(lon) if isinstance(lon, str) else lon
    except ValueError:
        raise ValidationError.for_field("coordinates", "Coordinates must be numeric")

    if not validate_coordinates(lat_f, lon_f):
        raise ValidationError.for_field("coordinates", "Invalid coordinates")

    return round(float(lat_f), 6), round(float(lon_f), 6)


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Latitude/longitude box enclosing every point within radius_km of (lat, lon).

    Longitude falls back to the full range when the circle touches a pole or
    crosses the antimeridian, so the box is always a superset of the circle.
    """
    radius_km = max(radius_km, 0.0)
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular) + BOX_MARGIN_DEG

    min_lat = lat - d_lat
    max_lat = lat + d_lat
    if min_lat <= -90 or max_lat >= 90 or angular >= math.pi / 2:
        return BoundingBox(max(-90.0, min_lat), min(90.0, max_lat), -180.0, 180.0)

    ratio = math.sin(angular) / math.cos(math.radians(lat))
    if ratio >= 1:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    d_lon = math.degrees(math.asin(ratio)) + BOX_MARGIN_DEG
    min_lon = lon - d_lon
    max_lon = lon + d_lon
    if min_lon < -180 or max_lon > 180:
        return BoundingBox(min_lat, max_lat, -180.0, 180.0)

    return BoundingBox(min_lat, max_lat, min_lon, max_lon)


def center_point(points: Iterable[Tuple[float, float]]) -> Tuple[float, float]:
    """Arithmetic mean of (lat, lon) pairs. Fine for points a few km apart."""
    points = list(points)
    if not points:
        raise ValidationError.for_field("points", "No coordinates provided")
    lat = sum(p[0] for p in points) / len(points)
    lon = sum(p[1] for p in points) / len(points)
    return lat, lon
