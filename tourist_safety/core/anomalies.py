from datetime import datetime, timezone
import logging

from pydantic import BaseModel

from ..config import (
    INACTIVITY_THRESHOLD_MINUTES,
    DEVIATION_THRESHOLD_KM,
    ALTITUDE_DROP_THRESHOLD_METERS,
    ALTITUDE_DROP_WINDOW_MINUTES,
    SPEED_THRESHOLD_KMH,
)
from ..schemas.schemas import AnomalyKind, AnomalyVerdict, Severity, StopStatus
from .exceptions import InvalidInputError
from .geofencing import distance_meters
from .zones import breaches, highest_risk_zone

logger = logging.getLogger(__name__)


class AnomalyThresholds(BaseModel):
    """Per-deployment detector thresholds, each overridable on its own."""

    inactivity_minutes: float = INACTIVITY_THRESHOLD_MINUTES
    deviation_km: float = DEVIATION_THRESHOLD_KM
    altitude_drop_meters: float = ALTITUDE_DROP_THRESHOLD_METERS
    altitude_drop_minutes: float = ALTITUDE_DROP_WINDOW_MINUTES
    speed_kmh: float = SPEED_THRESHOLD_KMH


def detect_inactivity(last_update, now=None, threshold_minutes=INACTIVITY_THRESHOLD_MINUTES):
    """Flag a tourist whose last location update is older than threshold_minutes."""
    if last_update is None:
        raise InvalidInputError("last_update is required for inactivity detection")
    now = now or datetime.now(timezone.utc)
    diff_minutes = (now - last_update).total_seconds() / 60

    return AnomalyVerdict(
        kind=AnomalyKind.INACTIVITY,
        is_anomaly=diff_minutes > threshold_minutes,
        severity=Severity.HIGH if diff_minutes > 60 else Severity.MEDIUM,
        details={
            "last_update_minutes": round(diff_minutes),
            "threshold": threshold_minutes,
        },
    )


def detect_route_deviation(point, itinerary, threshold_km=DEVIATION_THRESHOLD_KM):
    """Distance from the in-progress stop (else the first stop) against threshold_km."""
    if not itinerary:
        return AnomalyVerdict.not_computable(AnomalyKind.ROUTE_DEVIATION, "no itinerary")

    active_stop = next(
        (stop for stop in itinerary if stop.status == StopStatus.IN_PROGRESS),
        itinerary[0],
    )
    distance_km = distance_meters(point, active_stop.destination) / 1000

    return AnomalyVerdict(
        kind=AnomalyKind.ROUTE_DEVIATION,
        is_anomaly=distance_km > threshold_km,
        severity=Severity.HIGH if distance_km > 10 else Severity.MEDIUM,
        details={
            "deviation_km": round(distance_km, 2),
            "threshold": threshold_km,
            "destination": active_stop.destination_name,
        },
    )


def _elapsed_seconds(latest, previous):
    # samples may arrive out of order; only the gap between them matters
    return abs((latest.timestamp - previous.timestamp).total_seconds())


def detect_altitude_drop(samples, drop_threshold_m=ALTITUDE_DROP_THRESHOLD_METERS,
                         window_minutes=ALTITUDE_DROP_WINDOW_MINUTES):
    """
    Compare the two most recent samples (latest first) for a sudden loss of altitude.

    A possible fall: more than drop_threshold_m lost within window_minutes.
    """
    if len(samples) < 2:
        return AnomalyVerdict.not_computable(AnomalyKind.ALTITUDE_DROP, "insufficient samples")

    latest, previous = samples[0], samples[1]
    if latest.altitude is None or previous.altitude is None:
        return AnomalyVerdict.not_computable(AnomalyKind.ALTITUDE_DROP, "missing altitude")

    altitude_diff = previous.altitude - latest.altitude
    time_diff = _elapsed_seconds(latest, previous) / 60

    return AnomalyVerdict(
        kind=AnomalyKind.ALTITUDE_DROP,
        is_anomaly=altitude_diff > drop_threshold_m and time_diff <= window_minutes,
        severity=Severity.CRITICAL if altitude_diff > 200 else Severity.HIGH,
        details={
            "altitude_drop_m": round(altitude_diff),
            "time_minutes": round(time_diff, 2),
            "threshold": drop_threshold_m,
        },
    )


def detect_speed_anomaly(samples, speed_threshold_kmh=SPEED_THRESHOLD_KMH):
    """Horizontal speed between the two most recent samples (latest first)."""
    if len(samples) < 2:
        return AnomalyVerdict.not_computable(AnomalyKind.SPEED_ANOMALY, "insufficient samples")

    latest, previous = samples[0], samples[1]
    time_diff_hours = _elapsed_seconds(latest, previous) / 3600
    if time_diff_hours == 0:
        return AnomalyVerdict.not_computable(AnomalyKind.SPEED_ANOMALY, "zero elapsed time")

    distance_km = distance_meters(latest.coordinate, previous.coordinate) / 1000
    speed_kmh = distance_km / time_diff_hours

    return AnomalyVerdict(
        kind=AnomalyKind.SPEED_ANOMALY,
        is_anomaly=speed_kmh > speed_threshold_kmh,
        severity=Severity.CRITICAL if speed_kmh > 200 else Severity.MEDIUM,
        details={
            "speed_kmh": round(speed_kmh, 2),
            "threshold": speed_threshold_kmh,
        },
    )


def detect_geofence_breach(point, zones):
    """Breach verdict for the highest-risk active zone containing the point."""
    breached = breaches(point, zones)
    if not breached:
        return AnomalyVerdict(kind=AnomalyKind.GEOFENCE_BREACH, is_anomaly=False)

    zone = highest_risk_zone(breached)
    return AnomalyVerdict(
        kind=AnomalyKind.GEOFENCE_BREACH,
        is_anomaly=True,
        severity=Severity.from_risk(zone.risk_level),
        details={
            "zone_id": zone.id,
            "zone_name": zone.name,
            "zone_type": zone.zone_type,
            "risk_level": zone.risk_level.value,
            "distance_meters": round(distance_meters(point, zone.center)),
            "zone_radius": zone.radius_meters,
        },
    )


def run_detectors(samples, itinerary, zones, now=None, thresholds=None):
    """
    Run every detector over one tourist's recent state and keep the anomalies.

    samples is the location history, most recent first. With no history at
    all there is nothing to evaluate and an empty list is returned.
    """
    if not samples:
        return []
    thresholds = thresholds or AnomalyThresholds()
    latest = samples[0]

    verdicts = [
        detect_inactivity(latest.timestamp, now, thresholds.inactivity_minutes),
        detect_route_deviation(latest.coordinate, itinerary, thresholds.deviation_km),
        detect_altitude_drop(samples, thresholds.altitude_drop_meters, thresholds.altitude_drop_minutes),
        detect_speed_anomaly(samples, thresholds.speed_kmh),
        detect_geofence_breach(latest.coordinate, zones),
    ]
    for verdict in verdicts:
        if not verdict.is_anomaly and verdict.details.get("computable") is False:
            logger.debug(f"{verdict.kind.value} not computable for {latest.dtid}: {verdict.details['reason']}")

    return [verdict for verdict in verdicts if verdict.is_anomaly]
