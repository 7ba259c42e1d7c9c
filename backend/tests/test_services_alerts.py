from dataclasses import replace
from datetime import timedelta

import pytest

from puzzle_tracker.services.alerts import (
    AlertGenerator,
    AlertRules,
    created_ago,
    derived_alert_id,
    pending_alerts,
    reconcile,
    transition,
    triage_buckets,
)
from puzzle_tracker.services.errors import AlertTransitionError
from puzzle_tracker.services.records import AlertStatus, AlertType, PatientRecord
from puzzle_tracker.services.risk import RiskTier


def _patient(score=50, last_contact_at=None, **kwargs):
    return PatientRecord(
        id=kwargs.pop("id", "x1"),
        name="Test Patient",
        mrn="MRN-1",
        facility_id="f1",
        payer="MA",
        risk_score=score,
        at_home=False,
        last_contact_at=last_contact_at,
        **kwargs,
    )


def test_rpm_rule_fires_above_threshold(as_of):
    generator = AlertGenerator(AlertRules(), as_of)
    contacted = as_of - timedelta(days=1)

    assert generator.generate(_patient(70, contacted)) == []
    alerts = generator.generate(_patient(71, contacted))

    assert [a.alert_type for a in alerts] == [AlertType.rpm_abnormal]
    assert alerts[0].severity.value == "High"
    assert alerts[0].id == "x1-rpm_abnormal"


def test_missed_call_rule_uses_last_contact(as_of):
    generator = AlertGenerator(AlertRules(), as_of)

    recent = generator.generate(_patient(30, as_of - timedelta(days=6)))
    overdue = generator.generate(_patient(30, as_of - timedelta(days=9)))
    never = generator.generate(_patient(30, None))

    assert recent == []
    assert [a.alert_type for a in overdue] == [AlertType.missed_weekly_call]
    assert overdue[0].severity.value == "Medium"
    assert overdue[0].created_at == as_of - timedelta(days=2)
    assert never[0].created_at == as_of


def test_both_rules_may_fire(as_of):
    alerts = AlertGenerator(AlertRules(), as_of).generate(_patient(90, None))

    assert {a.alert_type for a in alerts} == {
        AlertType.rpm_abnormal,
        AlertType.missed_weekly_call,
    }


def test_rules_can_be_disabled(as_of):
    rules = AlertRules(rpm_enabled=False, missed_call_enabled=False)

    assert AlertGenerator(rules, as_of).generate(_patient(99, None)) == []


def test_reference_patients_alert_at_expected_ages(network, as_of):
    generator = AlertGenerator(AlertRules(), as_of)
    p21 = next(p for p in network.patients if p.id == "p21")

    ages = {a.alert_type: created_ago(a.created_at, as_of) for a in generator.generate(p21)}

    assert ages == {AlertType.rpm_abnormal: "2h", AlertType.missed_weekly_call: "2d"}


def test_reconcile_prefers_active_persisted_alert(as_of):
    generated = AlertGenerator(AlertRules(), as_of).generate(_patient(90, as_of))
    persisted = replace(
        generated[0],
        id="alt-1",
        status=AlertStatus.acknowledged,
        persisted=True,
    )

    merged = reconcile(generated, [persisted])

    assert merged == [persisted]
    assert pending_alerts(generated, [persisted]) == []


def test_reconcile_ignores_resolved_alerts(as_of):
    generated = AlertGenerator(AlertRules(), as_of).generate(_patient(90, as_of))
    resolved = replace(generated[0], id="alt-1", status=AlertStatus.resolved, persisted=True)

    merged = reconcile(generated, [resolved])

    assert [a.id for a in merged] == [derived_alert_id("x1", AlertType.rpm_abnormal)]
    assert len(pending_alerts(generated, [resolved])) == 1


def test_transition_lifecycle(as_of):
    alert = AlertGenerator(AlertRules(), as_of).generate(_patient(90, as_of))[0]

    acked = transition(alert, AlertStatus.acknowledged, as_of)
    again = transition(acked, AlertStatus.acknowledged, as_of + timedelta(hours=1))
    resolved = transition(acked, AlertStatus.resolved, as_of)

    assert acked.acknowledged_at == as_of
    assert again is acked
    assert resolved.status == AlertStatus.resolved
    assert not resolved.is_active
    with pytest.raises(AlertTransitionError):
        transition(resolved, AlertStatus.open, as_of)
    with pytest.raises(AlertTransitionError):
        transition(resolved, AlertStatus.acknowledged, as_of)


@pytest.mark.parametrize(
    ("delta", "label"),
    [
        (timedelta(minutes=45), "45m"),
        (timedelta(hours=2), "2h"),
        (timedelta(days=3, hours=5), "3d"),
        (timedelta(minutes=-5), "0m"),
    ],
)
def test_created_ago_labels(as_of, delta, label):
    assert created_ago(as_of - delta, as_of) == label


def test_triage_buckets_order_and_hospice_override(network):
    buckets = triage_buckets(network.patients)

    assert list(buckets) == [RiskTier.high, RiskTier.medium, RiskTier.low]
    assert [len(rows) for rows in buckets.values()] == [10, 11, 5]
    assert "p8" in {p.id for p in buckets[RiskTier.low]}
