"""Risk tier classification.

The score is a placeholder heuristic on a 0-100 scale, not a validated
clinical model.
"""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from puzzle_tracker.services.records import PatientRecord

HIGH_RISK_THRESHOLD = 70
MEDIUM_RISK_THRESHOLD = 40


class RiskTier(StrEnum):
    low = "Low"
    medium = "Medium"
    high = "High"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {RiskTier.low: 0, RiskTier.medium: 1, RiskTier.high: 2}

# Display and triage order, most urgent first.
TIER_ORDER = (RiskTier.high, RiskTier.medium, RiskTier.low)


def classify(risk_score: float, hospice: bool = False) -> RiskTier:
    """Map a risk score to its tier.

    Hospice patients are always Low: readmission risk is suppressed for them
    as a policy decision.
    """
    if hospice:
        return RiskTier.low
    if risk_score >= HIGH_RISK_THRESHOLD:
        return RiskTier.high
    if risk_score >= MEDIUM_RISK_THRESHOLD:
        return RiskTier.medium
    return RiskTier.low


def is_readmission_exempt(patient: "PatientRecord") -> bool:
    """Whether the patient is exempt from standard readmission scoring."""
    return patient.hospice
