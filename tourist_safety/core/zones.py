"""
Zone queries over the active restricted zones.

Zones are scanned linearly; deployments carry a few hundred zones at most,
so no spatial index is kept.
"""
from ..config import NEARBY_ZONE_RADIUS_METERS
from ..schemas.schemas import ZoneDistance
from .geofencing import distance_meters, is_inside


def breaches(point, zones):
    """Return the active zones whose fence contains the point."""
    return [
        zone for zone in zones
        if zone.is_active and is_inside(point, zone.center, zone.radius_meters)
    ]


def highest_risk_zone(zones):
    """Pick the zone with the highest risk level; ties keep the first one encountered."""
    highest = None
    for zone in zones:
        if highest is None or zone.risk_level.rank > highest.risk_level.rank:
            highest = zone
    return highest


def nearest(point, zones, max_distance_meters=NEARBY_ZONE_RADIUS_METERS, exclude=None, limit=None):
    """
    Zones within max_distance_meters of the point, closest first.

    exclude is a collection of zone ids to skip (typically the breached ones).
    """
    excluded = set(exclude or ())
    candidates = [
        ZoneDistance(zone=zone, distance_meters=distance_meters(point, zone.center))
        for zone in zones
        if zone.id not in excluded
    ]
    within = [c for c in candidates if c.distance_meters <= max_distance_meters]
    within.sort(key=lambda c: c.distance_meters)
    if limit is None:
        return within
    return within[:limit]
