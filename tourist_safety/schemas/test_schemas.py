import pytest
from pydantic import ValidationError

from tourist_safety.schemas.schemas import RiskLevel, SafetyScoreRecord, Severity


def test_risk_levels_are_totally_ordered():
    ranks = [level.rank for level in (RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL)]
    assert ranks == [1, 2, 3, 4]


def test_severity_shares_risk_ordinals():
    assert Severity.MEDIUM.rank == RiskLevel.MEDIUM.rank
    assert Severity.CRITICAL.rank > Severity.HIGH.rank


@pytest.mark.parametrize("risk, severity", [
    (RiskLevel.LOW, Severity.MEDIUM),
    (RiskLevel.MEDIUM, Severity.MEDIUM),
    (RiskLevel.HIGH, Severity.HIGH),
    (RiskLevel.CRITICAL, Severity.CRITICAL),
])
def test_severity_from_zone_risk(risk, severity):
    assert Severity.from_risk(risk) is severity


def test_score_record_rejects_out_of_range(now):
    with pytest.raises(ValidationError):
        SafetyScoreRecord(dtid="DT-1", current_score=101, last_updated=now)
