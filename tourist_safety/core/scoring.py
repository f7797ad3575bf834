"""
Safety score ledger.

A SafetyScoreRecord is passed in by value and a new record is returned;
nothing here reads or writes storage. Callers persisting the result must
serialize mutations per dtid (see processing.TouristLocks), otherwise two
concurrent updates read the same baseline and the later write wins.

The factor table keeps the last applied deduction per anomaly kind
("last write wins"), not a cumulative history.
"""
from datetime import datetime, timezone

from ..schemas.schemas import AnomalyKind, RiskLevel, SafetyScoreRecord, Severity

MIN_SCORE = 0
MAX_SCORE = 100
INITIAL_SCORE = MAX_SCORE


def clamp_score(value):
    return int(max(MIN_SCORE, min(MAX_SCORE, value)))


def new_record(dtid, now=None):
    return SafetyScoreRecord(
        dtid=dtid,
        current_score=INITIAL_SCORE,
        factors={},
        last_updated=now or datetime.now(timezone.utc),
    )


def baseline_for(record):
    """Stored score when a record exists, else the initial score."""
    if record is None:
        return INITIAL_SCORE
    return record.current_score


def apply_delta(record, reason, delta, now=None):
    reason = reason.value if isinstance(reason, AnomalyKind) else reason
    factors = dict(record.factors)
    factors[reason] = delta
    return record.model_copy(update={
        "current_score": clamp_score(record.current_score + delta),
        "factors": factors,
        "last_updated": now or datetime.now(timezone.utc),
    })


def breach_delta(risk_level):
    """Deduction for a geofence breach detected inline on a location update."""
    return -30 if risk_level in (RiskLevel.CRITICAL, Severity.CRITICAL) else -20


def deduction_for(kind, severity):
    if kind == AnomalyKind.INACTIVITY:
        return -15 if severity == Severity.HIGH else -10
    if kind == AnomalyKind.GEOFENCE_BREACH:
        return -30 if severity == Severity.CRITICAL else -20
    if kind == AnomalyKind.ROUTE_DEVIATION:
        return -15
    if kind == AnomalyKind.ALTITUDE_DROP:
        return -40 if severity == Severity.CRITICAL else -25
    if kind == AnomalyKind.SPEED_ANOMALY:
        return -10
    return 0


def recompute(dtid, baseline_score, active_anomalies, now=None):
    """
    Rebuild a score from baseline_score by deducting once per active anomaly.

    Every anomaly instance is deducted, so three concurrent inactivity
    anomalies cost three times the inactivity penalty.

    When baseline_score is the stored score it already carries earlier
    deductions, so recomputing with the same anomalies still active
    deducts them again on every call.
    """
    score = INITIAL_SCORE if baseline_score is None else baseline_score
    factors = {}
    for anomaly in active_anomalies:
        deduction = deduction_for(anomaly.kind, anomaly.severity)
        score += deduction
        factors[AnomalyKind(anomaly.kind).value] = deduction

    return SafetyScoreRecord(
        dtid=dtid,
        current_score=clamp_score(score),
        factors=factors,
        last_updated=now or datetime.now(timezone.utc),
    )


def risk_level_for_score(score):
    if score < 30:
        return RiskLevel.CRITICAL
    if score < 50:
        return RiskLevel.HIGH
    if score < 70:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW
