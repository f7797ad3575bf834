import logging
import uuid

from pymongo import ASCENDING, DESCENDING, GEOSPHERE
from pymongo.errors import PyMongoError

from ..config import LOG_FORMAT, LOG_LEVEL
from .mongo import get_db

logger = logging.getLogger(__name__)

SAMPLE_ZONES = [
    {"name": "Border Area", "coordinates": [77.2090, 28.6139], "radius_meters": 1500,
     "risk_level": "critical", "zone_type": "military"},
    {"name": "Landslide Corridor", "coordinates": [77.1025, 28.7041], "radius_meters": 800,
     "risk_level": "high", "zone_type": "natural_hazard"},
    {"name": "Old Market Night Zone", "coordinates": [77.2300, 28.6560], "radius_meters": 500,
     "risk_level": "medium", "zone_type": "crime"},
]


def setup_collections(db):
    """Create the indexes the store relies on."""
    db.locations.create_index([("dtid", ASCENDING), ("timestamp", DESCENDING)])
    db.locations.create_index([("location", GEOSPHERE)])
    db.restricted_zones.create_index("is_active")
    db.restricted_zones.create_index([("location", GEOSPHERE)])
    db.itineraries.create_index("dtid")
    db.safety_scores.create_index("dtid", unique=True)
    db.anomalies.create_index([("dtid", ASCENDING), ("status", ASCENDING)])
    db.anomalies.create_index("anomaly_id", unique=True)
    db.tourists.create_index("dtid", unique=True)
    logger.info("[✓] Initialized tourist safety collections")


def seed_sample_zones(db):
    if db.restricted_zones.count_documents({}) > 0:
        logger.info("[i] Restricted zones already present, skipping seed")
        return 0
    docs = [
        {
            "zone_id": str(uuid.uuid4()),
            "name": zone["name"],
            "location": {"type": "Point", "coordinates": zone["coordinates"]},
            "radius_meters": zone["radius_meters"],
            "risk_level": zone["risk_level"],
            "zone_type": zone["zone_type"],
            "is_active": True,
        }
        for zone in SAMPLE_ZONES
    ]
    db.restricted_zones.insert_many(docs)
    logger.info(f"[✓] Inserted {len(docs)} sample restricted zones")
    return len(docs)


def initialize_database(seed=True):
    try:
        db = get_db()
        setup_collections(db)
        if seed:
            seed_sample_zones(db)
    except PyMongoError as e:
        logger.error(f"[✗] Error initializing database: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    initialize_database()
