import pytest

from puzzle_tracker.services.metrics import (
    engagement_score,
    facility_metrics,
    project_rth,
    round_half_up,
)
from puzzle_tracker.services.records import PatientRecord


def _patient(pid: str, score: int, facility_id: str = "f1", at_home: bool = False):
    return PatientRecord(
        id=pid,
        name=f"Patient {pid}",
        mrn=f"MRN-{pid}",
        facility_id=facility_id,
        payer="MA",
        risk_score=score,
        at_home=at_home,
    )


def test_round_half_up_rounds_halves_away_from_zero():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(2.625) == 3
    assert round_half_up(7.1) == 7


def test_engagement_score_reference_facility():
    # 82 - round(21 / 8) + round(0.71 * 10) = 82 - 3 + 7
    assert engagement_score(82, 21, 0.29) == 86


def test_engagement_score_is_clamped():
    assert engagement_score(200, 0, 0.0) == 95
    assert engagement_score(0, 600, 1.0) == 35


@pytest.mark.parametrize("base", [0, 35, 60, 95, 140])
@pytest.mark.parametrize("ack", [0, 21, 90, 400])
@pytest.mark.parametrize("pct", [0.0, 0.29, 1.0])
def test_engagement_score_stays_in_display_range(base, ack, pct):
    assert 35 <= engagement_score(base, ack, pct) <= 95


def test_project_rth_reference_cohort():
    cohort = [_patient(f"h{i}", 80) for i in range(3)] + [
        _patient(f"l{i}", 30) for i in range(7)
    ]

    rth = project_rth(cohort)

    assert rth.r30 == pytest.approx(0.16)
    assert rth.r60 == pytest.approx(0.21)
    assert rth.r90 == pytest.approx(0.25)


def test_project_rth_empty_cohort_floors():
    rth = project_rth([])

    assert rth.r30 == pytest.approx(0.07)
    assert rth.r60 == pytest.approx(0.12)
    assert rth.r90 == pytest.approx(0.16)


def test_project_rth_caps_each_horizon():
    rth = project_rth([_patient("a", 99), _patient("b", 99)])

    assert rth.r30 == pytest.approx(0.22)
    assert rth.r60 == pytest.approx(0.28)
    assert rth.r90 == pytest.approx(0.34)


def test_project_rth_half_high_risk_cohort():
    rth = project_rth([_patient("a", 99), _patient("b", 10)])

    assert rth.r30 == pytest.approx(0.22)
    assert rth.r60 == pytest.approx(0.27)
    assert rth.r90 == pytest.approx(0.31)


@pytest.mark.parametrize("high", range(0, 11))
def test_project_rth_is_ordered(high):
    cohort = [_patient(f"h{i}", 90) for i in range(high)] + [
        _patient(f"l{i}", 20) for i in range(10 - high)
    ]

    rth = project_rth(cohort)

    assert rth.r30 <= rth.r60 <= rth.r90
    assert rth.r30 <= 0.22 and rth.r60 <= 0.28 and rth.r90 <= 0.34


def test_project_rth_scopes_to_facility():
    cohort = [_patient("a", 99, "f1"), _patient("b", 10, "f2")]

    assert project_rth(cohort, "f2").r30 == pytest.approx(0.07)


def test_facility_metrics_are_derived_from_cohort(network):
    f1 = next(f for f in network.facilities if f.id == "f1")

    metrics = facility_metrics(f1, network.patients)

    assert metrics.census == 4
    assert metrics.home_cohort == 3
    assert metrics.high_risk_pct == pytest.approx(3 / 7)
    assert metrics.engagement_score == 85
    assert metrics.rth.r30 == pytest.approx(3 / 7 * 0.3 + 0.07)


def test_facility_metrics_for_empty_facility(network):
    f1 = next(f for f in network.facilities if f.id == "f1")

    metrics = facility_metrics(f1, [])

    assert metrics.census == 0
    assert metrics.high_risk_pct == 0
    assert metrics.rth.r30 == pytest.approx(0.07)
