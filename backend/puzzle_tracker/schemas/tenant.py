"""Schemas for tenants, facilities and facility metrics."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

from puzzle_tracker.services.metrics import FacilityMetrics, RthProjection
from puzzle_tracker.services.views import FacilitySummary


class HealthSystemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class SnfChainResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class FacilityResponse(BaseModel):
    """Structural facility fields; cohort metrics live in FacilityMetricsResponse."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    chain_id: str
    org_id: str
    name: str
    address: str
    bed_count: int
    engagement_base: int
    last_ack_minutes: int


class RthResponse(BaseModel):
    facility_id: Optional[str] = None
    rth30: float
    rth60: float
    rth90: float

    @classmethod
    def from_projection(
        cls,
        projection: RthProjection,
        facility_id: Optional[str] = None,
    ) -> "RthResponse":
        return cls(
            facility_id=facility_id,
            rth30=projection.r30,
            rth60=projection.r60,
            rth90=projection.r90,
        )


class FacilityMetricsResponse(BaseModel):
    facility_id: str
    engagement_score: int
    rth30: float
    rth60: float
    rth90: float
    census: int
    home_cohort: int
    high_risk_pct: float

    @classmethod
    def from_metrics(cls, metrics: FacilityMetrics) -> "FacilityMetricsResponse":
        return cls(
            facility_id=metrics.facility_id,
            engagement_score=metrics.engagement_score,
            rth30=metrics.rth.r30,
            rth60=metrics.rth.r60,
            rth90=metrics.rth.r90,
            census=metrics.census,
            home_cohort=metrics.home_cohort,
            high_risk_pct=metrics.high_risk_pct,
        )


class FacilitySummaryResponse(BaseModel):
    facility: FacilityResponse
    metrics: FacilityMetricsResponse

    @classmethod
    def from_summary(cls, summary: FacilitySummary) -> "FacilitySummaryResponse":
        return cls(
            facility=FacilityResponse.model_validate(summary.facility),
            metrics=FacilityMetricsResponse.from_metrics(summary.metrics),
        )
