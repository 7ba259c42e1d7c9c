"""Pydantic schemas for API request/response validation."""

from puzzle_tracker.schemas.patient import (
    AlertResponse,
    CareTaskResponse,
    EncounterResponse,
    InterventionCreate,
    InterventionResponse,
    PatientDetail,
    PatientSummary,
    RenderOptions,
    VitalSignResponse,
)
from puzzle_tracker.schemas.tenant import (
    FacilityMetricsResponse,
    FacilityResponse,
    FacilitySummaryResponse,
    HealthSystemResponse,
    RthResponse,
    SnfChainResponse,
)
from puzzle_tracker.schemas.views import (
    CentralViewResponse,
    EscalationResponse,
    HealthSystemViewResponse,
    SnfChainViewResponse,
    SnfFacilityViewResponse,
)

__all__ = [
    # Patient
    "AlertResponse",
    "CareTaskResponse",
    "EncounterResponse",
    "InterventionCreate",
    "InterventionResponse",
    "PatientDetail",
    "PatientSummary",
    "RenderOptions",
    "VitalSignResponse",
    # Tenant
    "FacilityMetricsResponse",
    "FacilityResponse",
    "FacilitySummaryResponse",
    "HealthSystemResponse",
    "RthResponse",
    "SnfChainResponse",
    # Views
    "CentralViewResponse",
    "EscalationResponse",
    "HealthSystemViewResponse",
    "SnfChainViewResponse",
    "SnfFacilityViewResponse",
]
