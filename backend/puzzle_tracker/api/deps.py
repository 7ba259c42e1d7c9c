"""Shared API dependencies."""

from collections.abc import AsyncGenerator
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from puzzle_tracker.config import settings
from puzzle_tracker.database import get_db_context
from puzzle_tracker.logging import tenant_var
from puzzle_tracker.schemas.patient import RenderOptions
from puzzle_tracker.services.access import TenantClaim, TenantRole
from puzzle_tracker.services.alerts import AlertGenerator, AlertRules
from puzzle_tracker.services.records import RecordStore, SQLRecordStore
from puzzle_tracker.services.views import TenantViewResolver
from puzzle_tracker.services.workflow import PatientWorkflow

security = HTTPBearer()


async def get_tenant_claim(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> TenantClaim:
    """Build the caller's tenant claim from a valid JWT access token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError:
        raise credentials_exception

    subject: str | None = payload.get("sub")
    token_type: str | None = payload.get("type")
    if subject is None:
        raise credentials_exception
    if token_type and token_type != "access":
        raise credentials_exception

    try:
        claim = TenantClaim(
            subject=subject,
            role=TenantRole(payload.get("role")),
            org_id=payload.get("org_id"),
            chain_id=payload.get("chain_id"),
            facility_id=payload.get("facility_id"),
        )
    except ValueError:
        raise credentials_exception

    tenant_var.set(claim.scope_label)
    return claim


async def get_record_store(request: Request) -> AsyncGenerator[RecordStore, None]:
    """Record store for the current request."""
    if settings.record_store_backend == "sql":
        async with get_db_context() as db:
            yield SQLRecordStore(db)
    else:
        yield request.app.state.record_store


def get_alert_rules() -> AlertRules:
    return AlertRules.from_settings(settings)


async def get_view_resolver(
    store: Annotated[RecordStore, Depends(get_record_store)],
    claim: Annotated[TenantClaim, Depends(get_tenant_claim)],
    rules: Annotated[AlertRules, Depends(get_alert_rules)],
) -> TenantViewResolver:
    population = await store.load_population()
    return TenantViewResolver(
        population,
        claim,
        alert_generator=AlertGenerator(rules, population.as_of),
        recent_movement_limit=settings.recent_movement_limit,
    )


def get_patient_workflow(
    store: Annotated[RecordStore, Depends(get_record_store)],
    rules: Annotated[AlertRules, Depends(get_alert_rules)],
) -> PatientWorkflow:
    return PatientWorkflow(store, rules)


def get_render_options(
    resolver: Annotated[TenantViewResolver, Depends(get_view_resolver)],
    phi_mask: Optional[bool] = Query(
        None,
        description="Redact patient name and MRN. Defaults to PHI_MASK_DEFAULT.",
    ),
) -> RenderOptions:
    return RenderOptions(
        as_of=resolver.population.as_of,
        phi_mask=settings.phi_mask_default if phi_mask is None else phi_mask,
        redaction_token=settings.phi_redaction_token,
    )


ViewResolver = Annotated[TenantViewResolver, Depends(get_view_resolver)]
Render = Annotated[RenderOptions, Depends(get_render_options)]
