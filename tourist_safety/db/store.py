"""
MongoDB storage for tourists, locations, zones, itineraries, scores and anomalies.

Positions are stored as GeoJSON points:

    location: {type: "Point", coordinates: [longitude, latitude]}

Storage errors (pymongo.errors.PyMongoError) are logged and re-raised; retrying
is left to the caller.
"""
import uuid
import logging
from datetime import datetime, timezone
from functools import lru_cache

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from ..config import HISTORY_LIMIT
from ..schemas.schemas import (
    ActiveAnomaly,
    Coordinate,
    ItineraryStop,
    LocationSample,
    RestrictedZone,
    SafetyScoreRecord,
)
from .mongo import get_db

logger = logging.getLogger(__name__)


def to_point(coordinate):
    return {"type": "Point", "coordinates": [coordinate.longitude, coordinate.latitude]}


def to_coordinate(point, altitude=None):
    longitude, latitude = point["coordinates"]
    return Coordinate(latitude=latitude, longitude=longitude, altitude=altitude)


def sample_from_doc(doc):
    return LocationSample(
        dtid=doc["dtid"],
        coordinate=to_coordinate(doc["location"], doc.get("altitude")),
        accuracy=doc.get("accuracy"),
        timestamp=doc["timestamp"],
    )


def zone_from_doc(doc):
    return RestrictedZone(
        id=str(doc.get("zone_id") or doc["_id"]),
        name=doc["name"],
        center=to_coordinate(doc["location"]),
        radius_meters=doc["radius_meters"],
        risk_level=doc["risk_level"],
        zone_type=doc.get("zone_type", "restricted"),
        is_active=doc.get("is_active", True),
    )


def stop_from_doc(doc):
    return ItineraryStop(
        dtid=doc["dtid"],
        destination=to_coordinate(doc["destination"]),
        destination_name=doc.get("destination_name", ""),
        status=doc.get("status", "planned"),
    )


def score_from_doc(doc):
    return SafetyScoreRecord(
        dtid=doc["dtid"],
        current_score=doc["current_score"],
        factors=doc.get("factors") or {},
        last_updated=doc["last_updated"],
    )


def anomaly_from_doc(doc):
    location = doc.get("location")
    return ActiveAnomaly(
        id=doc["anomaly_id"],
        dtid=doc["dtid"],
        kind=doc["anomaly_type"],
        severity=doc["severity"],
        description=doc.get("description", ""),
        coordinate=to_coordinate(location) if location else None,
        details=doc.get("metadata") or {},
        detected_at=doc["detected_at"],
        status=doc.get("status", "active"),
    )


class SafetyStore:
    def __init__(self, db):
        self.tourists = db["tourists"]
        self.locations = db["locations"]
        self.zones = db["restricted_zones"]
        self.itineraries = db["itineraries"]
        self.safety_scores = db["safety_scores"]
        self.anomalies = db["anomalies"]

    # ---------- tourists ----------

    def tourist_exists(self, dtid):
        return self.tourists.find_one({"dtid": dtid}, {"_id": 1}) is not None

    def count_tourists(self):
        return self.tourists.count_documents({})

    def list_tracked_tourists(self):
        """dtids with at least one stored location."""
        return self.locations.distinct("dtid")

    # ---------- locations ----------

    def insert_location(self, sample):
        try:
            self.locations.insert_one({
                "dtid": sample.dtid,
                "location": to_point(sample.coordinate),
                "altitude": sample.altitude,
                "accuracy": sample.accuracy,
                "timestamp": sample.timestamp,
            })
            logger.info(f"[✓] Stored location for tourist {sample.dtid} at {sample.timestamp.isoformat()}")
            return sample
        except PyMongoError as e:
            logger.error(f"[✗] Error storing location for tourist {sample.dtid}: {e}")
            raise

    def get_location_history(self, dtid, limit=HISTORY_LIMIT, since=None, until=None):
        """Samples for one tourist, most recent first."""
        query = {"dtid": dtid}
        if since or until:
            query["timestamp"] = {}
            if since:
                query["timestamp"]["$gte"] = since
            if until:
                query["timestamp"]["$lte"] = until
        cursor = self.locations.find(query).sort("timestamp", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [sample_from_doc(doc) for doc in cursor]

    def get_latest_location(self, dtid):
        history = self.get_location_history(dtid, limit=1)
        return history[0] if history else None

    def get_recent_locations(self, since=None):
        """Samples across all tourists, most recent first."""
        query = {"timestamp": {"$gte": since}} if since else {}
        return [sample_from_doc(doc) for doc in self.locations.find(query).sort("timestamp", DESCENDING)]

    def count_active_tourists(self, since):
        return len(self.locations.distinct("dtid", {"timestamp": {"$gte": since}}))

    # ---------- zones & itineraries ----------

    def get_active_zones(self):
        return [zone_from_doc(doc) for doc in self.zones.find({"is_active": True})]

    def count_active_zones(self):
        return self.zones.count_documents({"is_active": True})

    def get_itinerary(self, dtid):
        return [stop_from_doc(doc) for doc in self.itineraries.find({"dtid": dtid})]

    # ---------- safety scores ----------

    def get_safety_score(self, dtid):
        doc = self.safety_scores.find_one({"dtid": dtid})
        return score_from_doc(doc) if doc else None

    def get_safety_scores(self, min_score=None, max_score=None, limit=None):
        """Score records, lowest score first. max_score is exclusive."""
        query = {}
        if min_score is not None or max_score is not None:
            query["current_score"] = {}
            if min_score is not None:
                query["current_score"]["$gte"] = min_score
            if max_score is not None:
                query["current_score"]["$lt"] = max_score
        cursor = self.safety_scores.find(query).sort("current_score", ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [score_from_doc(doc) for doc in cursor]

    def upsert_safety_score(self, record):
        try:
            self.safety_scores.update_one(
                {"dtid": record.dtid},
                {"$set": {
                    "current_score": record.current_score,
                    "factors": dict(record.factors),
                    "last_updated": record.last_updated,
                }},
                upsert=True,
            )
            logger.info(f"[✓] Safety score for tourist {record.dtid} set to {record.current_score}")
            return record
        except PyMongoError as e:
            logger.error(f"[✗] Error saving safety score for tourist {record.dtid}: {e}")
            raise

    # ---------- anomalies ----------

    def insert_anomaly(self, dtid, verdict, coordinate=None, description="", now=None):
        """Persist an anomalous verdict as an active anomaly and return it."""
        anomaly = ActiveAnomaly(
            id=str(uuid.uuid4()),
            dtid=dtid,
            kind=verdict.kind,
            severity=verdict.severity,
            description=description,
            coordinate=coordinate,
            details=verdict.details,
            detected_at=now or datetime.now(timezone.utc),
        )
        doc = {
            "anomaly_id": anomaly.id,
            "dtid": dtid,
            "anomaly_type": anomaly.kind.value,
            "severity": anomaly.severity.value,
            "description": description,
            "metadata": dict(anomaly.details),
            "detected_at": anomaly.detected_at,
            "status": anomaly.status,
        }
        if coordinate is not None:
            doc["location"] = to_point(coordinate)
        try:
            self.anomalies.insert_one(doc)
            logger.info(f"[✓] Logged {anomaly.kind.value} anomaly {anomaly.id} ({anomaly.severity.value}) for tourist {dtid}")
            return anomaly
        except PyMongoError as e:
            logger.error(f"[✗] Error logging anomaly for tourist {dtid}: {e}")
            raise

    def get_active_anomalies(self, dtid=None, severity=None, kind=None, limit=None):
        """Active anomalies, newest first."""
        query = {"status": "active"}
        if dtid is not None:
            query["dtid"] = dtid
        if severity is not None:
            query["severity"] = getattr(severity, "value", severity)
        if kind is not None:
            query["anomaly_type"] = getattr(kind, "value", kind)
        cursor = self.anomalies.find(query).sort("detected_at", DESCENDING)
        if limit:
            cursor = cursor.limit(limit)
        return [anomaly_from_doc(doc) for doc in cursor]

    def count_active_anomalies(self):
        return self.anomalies.count_documents({"status": "active"})


@lru_cache(maxsize=1)
def get_store():
    return SafetyStore(get_db())
