from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


class Severity(str, Enum):
    """Anomaly severity. Shares its ordinals with RiskLevel; "low" is never emitted."""

    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]

    @classmethod
    def from_risk(cls, risk_level: RiskLevel) -> "Severity":
        # low-risk zones still raise a breach, reported at the lowest emitted severity
        if risk_level is RiskLevel.LOW:
            return cls.MEDIUM
        return cls(risk_level.value)


_RANKS = {"low": 1, "medium": 2, "high": 3, "critical": 4}


class AnomalyKind(str, Enum):
    INACTIVITY = "inactivity"
    ROUTE_DEVIATION = "route_deviation"
    ALTITUDE_DROP = "altitude_drop"
    SPEED_ANOMALY = "speed_anomaly"
    GEOFENCE_BREACH = "geofence_breach"


class StopStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    altitude: Optional[float] = None  # meters


class LocationSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    dtid: str
    coordinate: Coordinate
    accuracy: Optional[float] = None
    timestamp: datetime

    @property
    def latitude(self) -> float:
        return self.coordinate.latitude

    @property
    def longitude(self) -> float:
        return self.coordinate.longitude

    @property
    def altitude(self) -> Optional[float]:
        return self.coordinate.altitude


class RestrictedZone(BaseModel):
    id: str
    name: str
    center: Coordinate
    radius_meters: float
    risk_level: RiskLevel
    zone_type: str = "restricted"
    is_active: bool = True


class ItineraryStop(BaseModel):
    dtid: str
    destination: Coordinate
    destination_name: str
    status: StopStatus = StopStatus.PLANNED


class AnomalyVerdict(BaseModel):
    kind: AnomalyKind
    is_anomaly: bool
    severity: Optional[Severity] = None
    details: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def not_computable(cls, kind: AnomalyKind, reason: str) -> "AnomalyVerdict":
        return cls(kind=kind, is_anomaly=False, details={"computable": False, "reason": reason})


class ActiveAnomaly(BaseModel):
    """Persisted copy of an anomalous verdict."""

    id: str
    dtid: str
    kind: AnomalyKind
    severity: Severity
    description: str = ""
    coordinate: Optional[Coordinate] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    detected_at: datetime
    status: str = "active"


class SafetyScoreRecord(BaseModel):
    dtid: str
    current_score: int = Field(default=100, ge=0, le=100)
    factors: Dict[str, int] = Field(default_factory=dict)
    last_updated: datetime


class ZoneDistance(BaseModel):
    zone: RestrictedZone
    distance_meters: float


class Cluster(BaseModel):
    center: Coordinate
    members: List[LocationSample]
    count: int
