"""Facility engagement and readmission-to-hospital (RTH) metrics.

Both metrics are heuristic placeholders standing in for a real survival or
regression model. The constants are pinned by the reference scenarios and
should only change together with them.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from puzzle_tracker.services.records import FacilityRecord, PatientRecord
from puzzle_tracker.services.risk import RiskTier

ENGAGEMENT_FLOOR = 35
ENGAGEMENT_CEILING = 95
ACK_MINUTES_PER_POINT = 8

RTH_HIGH_RISK_SCORE = 65
RTH_BASE_30 = 0.07
RTH_SLOPE_30 = 0.3
RTH_STEP_60 = 0.05
RTH_STEP_90 = 0.04
RTH_CAP_30 = 0.22
RTH_CAP_60 = 0.28
RTH_CAP_90 = 0.34


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values, like the reference dashboards."""
    return math.floor(value + 0.5)


def engagement_score(
    engagement_base: float,
    last_ack_minutes: float,
    high_risk_pct: float,
) -> int:
    """Engagement on a 35-95 display scale.

    Slow alert acknowledgement and a large high-risk share both pull the
    score down.
    """
    raw = (
        engagement_base
        - round_half_up(last_ack_minutes / ACK_MINUTES_PER_POINT)
        + round_half_up((1 - high_risk_pct) * 10)
    )
    return max(ENGAGEMENT_FLOOR, min(ENGAGEMENT_CEILING, raw))


@dataclass(frozen=True)
class RthProjection:
    r30: float
    r60: float
    r90: float


def project_rth(
    patients: Iterable[PatientRecord],
    facility_id: Optional[str] = None,
) -> RthProjection:
    """Project 30/60/90-day RTH rates for a cohort.

    The horizons chain on the uncapped values and each cap is applied
    independently at the end. An empty cohort yields the floor rates.
    """
    cohort = [p for p in patients if facility_id is None or p.facility_id == facility_id]
    n = max(1, len(cohort))
    high_risk_fraction = sum(1 for p in cohort if p.risk_score > RTH_HIGH_RISK_SCORE) / n

    r30 = high_risk_fraction * RTH_SLOPE_30 + RTH_BASE_30
    r60 = r30 + RTH_STEP_60
    r90 = r60 + RTH_STEP_90
    return RthProjection(
        r30=min(RTH_CAP_30, r30),
        r60=min(RTH_CAP_60, r60),
        r90=min(RTH_CAP_90, r90),
    )


@dataclass(frozen=True)
class FacilityMetrics:
    facility_id: str
    census: int
    home_cohort: int
    high_risk_pct: float
    engagement_score: int
    rth: RthProjection


def high_risk_share(patients: Iterable[PatientRecord]) -> float:
    cohort = list(patients)
    high = sum(1 for p in cohort if p.risk_tier == RiskTier.high)
    return high / max(1, len(cohort))


def facility_metrics(
    facility: FacilityRecord,
    patients: Iterable[PatientRecord],
) -> FacilityMetrics:
    """Derive cohort statistics for one facility from the live patient set."""
    cohort = [p for p in patients if p.facility_id == facility.id]
    pct = high_risk_share(cohort)
    return FacilityMetrics(
        facility_id=facility.id,
        census=sum(1 for p in cohort if not p.at_home),
        home_cohort=sum(1 for p in cohort if p.at_home),
        high_risk_pct=pct,
        engagement_score=engagement_score(
            facility.engagement_base, facility.last_ack_minutes, pct
        ),
        rth=project_rth(cohort),
    )
