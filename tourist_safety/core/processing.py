"""
Orchestration between the engine and the storage collaborator.

Score mutations are read-modify-write on one record per tourist, so every
path that writes a score holds that tourist's lock from TouristLocks.
"""
import logging
import threading
from datetime import datetime, timezone

from ..config import NEARBY_ZONE_LIMIT, NEARBY_ZONE_RADIUS_METERS
from ..schemas.schemas import AnomalyKind, Coordinate, LocationSample
from .anomalies import detect_geofence_breach, run_detectors
from .exceptions import InvalidInputError, TouristNotFoundError
from .scoring import apply_delta, baseline_for, breach_delta, new_record, recompute
from .zones import breaches, highest_risk_zone, nearest

logger = logging.getLogger(__name__)


class TouristLocks:
    """
    One lock per dtid, created on first use.

    Locks are never evicted, so the registry holds one entry per tourist seen
    by this process. That is a few hundred bytes each at expected fleet sizes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def lock_for(self, dtid):
        with self._guard:
            lock = self._locks.get(dtid)
            if lock is None:
                lock = self._locks[dtid] = threading.Lock()
            return lock


tourist_locks = TouristLocks()


def _coordinate(latitude, longitude, altitude=None):
    if latitude is None or longitude is None:
        raise InvalidInputError("Required fields: latitude, longitude")
    return Coordinate(latitude=latitude, longitude=longitude, altitude=altitude)


def check_geofence(store, dtid, point, now=None, locks=tourist_locks):
    """
    Test a position against the active zones. A breach is logged as an anomaly
    and deducted from the tourist's safety score.
    """
    now = now or datetime.now(timezone.utc)
    zones = store.get_active_zones()

    breached = breaches(point, zones)
    nearby = nearest(
        point, zones,
        max_distance_meters=NEARBY_ZONE_RADIUS_METERS,
        exclude={zone.id for zone in breached},
        limit=NEARBY_ZONE_LIMIT,
    )
    status = {
        "inside": bool(breached),
        "breached_zones": breached,
        "nearby_zones": nearby,
        "risk_level": max((zone.risk_level.rank for zone in breached), default=0),
    }
    if not breached:
        return status

    verdict = detect_geofence_breach(point, breached)
    zone = highest_risk_zone(breached)
    status["anomaly"] = store.insert_anomaly(
        dtid, verdict,
        coordinate=point,
        description=f"Entered restricted zone: {zone.name}",
        now=now,
    )
    with locks.lock_for(dtid):
        record = store.get_safety_score(dtid) or new_record(dtid, now)
        updated = apply_delta(record, AnomalyKind.GEOFENCE_BREACH, breach_delta(zone.risk_level), now)
        store.upsert_safety_score(updated)
    status["safety_score"] = updated
    logger.warning(f"Tourist {dtid} breached zone {zone.name} ({zone.risk_level.value}), score now {updated.current_score}")
    return status


def process_location_update(store, dtid, latitude, longitude, altitude=None, accuracy=None,
                            timestamp=None, locks=tourist_locks):
    """Store a location sample for a known tourist and run the inline geofence check."""
    if not dtid:
        raise InvalidInputError("Required fields: dtid, latitude, longitude")
    coordinate = _coordinate(latitude, longitude, altitude)
    if not store.tourist_exists(dtid):
        raise TouristNotFoundError(dtid)

    timestamp = timestamp or datetime.now(timezone.utc)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    sample = LocationSample(dtid=dtid, coordinate=coordinate, accuracy=accuracy, timestamp=timestamp)
    store.insert_location(sample)
    geofence_status = check_geofence(store, dtid, coordinate, now=sample.timestamp, locks=locks)
    return {"location": sample, "geofence_status": geofence_status}


def recompute_safety_score(store, dtid, now=None, thresholds=None, locks=tourist_locks):
    """
    Run all detectors over the tourist's latest state, persist new anomalies and
    rebuild the safety score from the active ones.

    A detected anomaly is only persisted when no active anomaly of the same
    kind exists yet. Returns (record, active_anomalies).
    """
    now = now or datetime.now(timezone.utc)
    history = store.get_location_history(dtid, limit=2)
    verdicts = run_detectors(history, store.get_itinerary(dtid), store.get_active_zones(), now, thresholds)
    position = history[0].coordinate if history else None

    with locks.lock_for(dtid):
        active = store.get_active_anomalies(dtid)
        active_kinds = {anomaly.kind for anomaly in active}
        for verdict in verdicts:
            if verdict.kind in active_kinds:
                logger.debug(f"{verdict.kind.value} already active for {dtid}, not logging again")
                continue
            active.append(store.insert_anomaly(
                dtid, verdict,
                coordinate=position,
                description=f"Detected {verdict.kind.value.replace('_', ' ')}",
                now=now,
            ))
            active_kinds.add(verdict.kind)

        record = recompute(dtid, baseline_for(store.get_safety_score(dtid)), active, now)
        store.upsert_safety_score(record)

    logger.info(f"[✓] Recomputed safety score for {dtid}: {record.current_score} from {len(active)} active anomalies")
    return record, active
