from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from tourist_safety.db.store import SafetyStore
from tourist_safety.schemas.schemas import (
    ActiveAnomaly,
    Coordinate,
    ItineraryStop,
    LocationSample,
    RestrictedZone,
)

NOW = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

# Delhi-area reference points
CONNAUGHT_PLACE = (28.6139, 77.2090)
ROHINI = (28.7041, 77.1025)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_sample():
    def _make(dtid="DT-1", lat=CONNAUGHT_PLACE[0], lon=CONNAUGHT_PLACE[1], minutes_ago=0, altitude=None, timestamp=None):
        return LocationSample(
            dtid=dtid,
            coordinate=Coordinate(latitude=lat, longitude=lon, altitude=altitude),
            accuracy=10.0,
            timestamp=timestamp or NOW - timedelta(minutes=minutes_ago),
        )
    return _make


@pytest.fixture
def make_zone():
    def _make(zone_id="Z1", lat=CONNAUGHT_PLACE[0], lon=CONNAUGHT_PLACE[1], radius=1000, risk="high", active=True, name=None):
        return RestrictedZone(
            id=zone_id,
            name=name or f"Zone {zone_id}",
            center=Coordinate(latitude=lat, longitude=lon),
            radius_meters=radius,
            risk_level=risk,
            zone_type="military",
            is_active=active,
        )
    return _make


@pytest.fixture
def make_stop():
    def _make(lat, lon, name="Red Fort", status="planned", dtid="DT-1"):
        return ItineraryStop(
            dtid=dtid,
            destination=Coordinate(latitude=lat, longitude=lon),
            destination_name=name,
            status=status,
        )
    return _make


@pytest.fixture
def store():
    """SafetyStore double with an empty world: known tourist, no data."""
    store = MagicMock(spec=SafetyStore)
    store.tourist_exists.return_value = True
    store.get_active_zones.return_value = []
    store.get_itinerary.return_value = []
    store.get_location_history.return_value = []
    store.get_latest_location.return_value = None
    store.get_safety_score.return_value = None
    store.get_active_anomalies.return_value = []
    store.get_safety_scores.return_value = []
    store.get_recent_locations.return_value = []
    store.upsert_safety_score.side_effect = lambda record: record
    store.insert_anomaly.side_effect = _persist_anomaly
    return store


def _persist_anomaly(dtid, verdict, coordinate=None, description="", now=None):
    return ActiveAnomaly(
        id=f"A-{verdict.kind.value}",
        dtid=dtid,
        kind=verdict.kind,
        severity=verdict.severity,
        description=description,
        coordinate=coordinate,
        details=verdict.details,
        detected_at=now or NOW,
    )
