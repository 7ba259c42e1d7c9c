"""Role-shaped views: one payload per tenant dashboard."""

from typing import Annotated, Optional

from fastapi import APIRouter, Query

from puzzle_tracker.api.deps import Render, ViewResolver
from puzzle_tracker.schemas.views import (
    CentralViewResponse,
    HealthSystemViewResponse,
    SnfChainViewResponse,
    SnfFacilityViewResponse,
)

router = APIRouter(prefix="/views", tags=["Views"])

Search = Annotated[
    Optional[str],
    Query(max_length=200, description="Matches name, MRN or next appointment"),
]


@router.get("/health-system/{org_id}", response_model=HealthSystemViewResponse)
async def health_system_view(
    org_id: str,
    resolver: ViewResolver,
    render: Render,
    facility_id: Optional[str] = None,
    search: Search = None,
):
    view = resolver.health_system_view(org_id, facility_id=facility_id, search=search)
    return HealthSystemViewResponse.from_view(view, render)


@router.get("/snf-chain/{chain_id}", response_model=SnfChainViewResponse)
async def snf_chain_view(
    chain_id: str,
    resolver: ViewResolver,
    render: Render,
    search: Search = None,
):
    return SnfChainViewResponse.from_view(resolver.snf_chain_view(chain_id, search=search), render)


@router.get("/snf-facility/{facility_id}", response_model=SnfFacilityViewResponse)
async def snf_facility_view(
    facility_id: str,
    resolver: ViewResolver,
    render: Render,
    search: Search = None,
):
    view = resolver.snf_facility_view(facility_id, search=search)
    return SnfFacilityViewResponse.from_view(view, render)


@router.get("/central", response_model=CentralViewResponse)
async def central_view(
    resolver: ViewResolver,
    render: Render,
    search: Search = None,
):
    """Triage across every tenant (central team only)."""
    return CentralViewResponse.from_view(resolver.central_view(search=search), render)
