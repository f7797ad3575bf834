from math import radians, sin, cos, sqrt, atan2

from .exceptions import InvalidInputError

EARTH_RADIUS_METERS = 6371000


def haversine(lat1, lon1, lat2, lon2):
    """Great-circle distance in meters between two points given in degrees."""
    lat1_rad, lon1_rad, lat2_rad, lon2_rad = map(radians, [lat1, lon1, lat2, lon2])
    dlon, dlat = lon2_rad - lon1_rad, lat2_rad - lat1_rad
    a = sin(dlat / 2)**2 + cos(lat1_rad) * cos(lat2_rad) * sin(dlon / 2)**2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def _require_coordinate(point, name):
    if point is None or point.latitude is None or point.longitude is None:
        raise InvalidInputError(f"{name} must carry latitude and longitude")


def distance_meters(a, b):
    """Haversine distance between two Coordinates. No ellipsoidal correction."""
    _require_coordinate(a, "a")
    _require_coordinate(b, "b")
    return haversine(a.latitude, a.longitude, b.latitude, b.longitude)


def is_inside(point, zone_center, zone_radius_meters):
    """True when the point lies in the circular fence; the boundary counts as inside."""
    return distance_meters(point, zone_center) <= zone_radius_meters
