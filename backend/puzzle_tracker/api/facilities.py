from typing import Optional

from fastapi import APIRouter, Query

from puzzle_tracker.api.deps import Render, ViewResolver
from puzzle_tracker.schemas.patient import PatientSummary
from puzzle_tracker.schemas.tenant import (
    FacilityMetricsResponse,
    FacilityResponse,
    HealthSystemResponse,
    RthResponse,
    SnfChainResponse,
)
from puzzle_tracker.services.views import PatientStatus

router = APIRouter(tags=["Facilities"])


@router.get("/organizations", response_model=list[HealthSystemResponse])
async def list_organizations(resolver: ViewResolver):
    """Health systems visible to the caller."""
    return [HealthSystemResponse.model_validate(hs) for hs in resolver.list_health_systems()]


@router.get("/chains", response_model=list[SnfChainResponse])
async def list_chains(resolver: ViewResolver):
    """SNF chains visible to the caller."""
    return [SnfChainResponse.model_validate(c) for c in resolver.list_chains()]


@router.get("/organizations/{org_id}/facilities", response_model=list[FacilityResponse])
async def list_facilities(org_id: str, resolver: ViewResolver):
    """Facilities owned by a health system."""
    return [FacilityResponse.model_validate(f) for f in resolver.list_facilities(org_id)]


@router.get("/facilities/{facility_id}", response_model=FacilityResponse)
async def get_facility(facility_id: str, resolver: ViewResolver):
    return FacilityResponse.model_validate(resolver.get_facility(facility_id))


@router.get("/facilities/{facility_id}/patients", response_model=list[PatientSummary])
async def list_facility_patients(
    facility_id: str,
    resolver: ViewResolver,
    render: Render,
    status: Optional[PatientStatus] = None,
    search: Optional[str] = Query(None, max_length=200),
):
    """Patients attributed to a facility, optionally by location."""
    views = resolver.list_patients(facility_id, status=status, search=search)
    return [PatientSummary.from_view(v, render) for v in views]


@router.get("/facilities/{facility_id}/metrics", response_model=FacilityMetricsResponse)
async def get_facility_metrics(facility_id: str, resolver: ViewResolver):
    """Engagement and RTH metrics derived from the facility's current cohort."""
    return FacilityMetricsResponse.from_metrics(resolver.facility_metrics(facility_id))


@router.get("/metrics/rth", response_model=RthResponse)
async def get_rth_projection(
    resolver: ViewResolver,
    facility_id: Optional[str] = None,
):
    """Projected 30/60/90-day RTH for one facility or the caller's population."""
    return RthResponse.from_projection(resolver.population_rth(facility_id), facility_id)
