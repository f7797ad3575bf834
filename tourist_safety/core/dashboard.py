from ..config import LOW_SCORE_ALERT_THRESHOLD
from ..schemas.schemas import AnomalyKind, RiskLevel, Severity
from .scoring import risk_level_for_score

# [low, high) score range covered by each risk level
SCORE_BANDS = {
    RiskLevel.CRITICAL: (0, 30),
    RiskLevel.HIGH: (30, 50),
    RiskLevel.MEDIUM: (50, 70),
    RiskLevel.LOW: (70, 101),
}


def score_band(risk_level):
    return SCORE_BANDS[RiskLevel(risk_level)]


def score_distribution(scores):
    """Count scores per risk level."""
    distribution = {level.value: 0 for level in (RiskLevel.CRITICAL, RiskLevel.HIGH, RiskLevel.MEDIUM, RiskLevel.LOW)}
    for score in scores:
        distribution[risk_level_for_score(score).value] += 1
    return distribution


def with_risk_level(record):
    data = record.model_dump()
    data["risk_level"] = risk_level_for_score(record.current_score).value
    return data


def summarize_alerts(anomalies, score_records, breaches=None, low_score_threshold=LOW_SCORE_ALERT_THRESHOLD):
    """
    Group active anomalies by severity next to geofence breaches and low scores.

    breaches is the full list of active geofence breaches, independent of any
    filter applied to anomalies; when omitted it is taken from anomalies.
    """
    by_severity = {severity: [] for severity in Severity}
    for anomaly in anomalies:
        by_severity[anomaly.severity].append(anomaly)

    if breaches is None:
        breaches = [a for a in anomalies if a.kind == AnomalyKind.GEOFENCE_BREACH]
    low_scores = sorted(
        (r for r in score_records if r.current_score < low_score_threshold),
        key=lambda r: r.current_score,
    )
    low_score_alerts = [dict(with_risk_level(r), alert_type="low_safety_score") for r in low_scores]

    return {
        "summary": {
            "total_alerts": len(anomalies),
            "critical_count": len(by_severity[Severity.CRITICAL]),
            "high_count": len(by_severity[Severity.HIGH]),
            "medium_count": len(by_severity[Severity.MEDIUM]),
            "geofence_breaches": len(breaches),
            "low_safety_scores": len(low_score_alerts),
        },
        "alerts": {
            "critical": by_severity[Severity.CRITICAL],
            "high": by_severity[Severity.HIGH],
            "medium": by_severity[Severity.MEDIUM],
            "geofence_breaches": breaches,
            "low_safety_scores": low_score_alerts,
        },
    }
