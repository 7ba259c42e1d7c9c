from dataclasses import replace
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from puzzle_tracker.api.deps import Render, ViewResolver, get_patient_workflow
from puzzle_tracker.schemas.patient import (
    AlertResponse,
    InterventionCreate,
    PatientDetail,
    PatientSummary,
)
from puzzle_tracker.services.records import InterventionEntry
from puzzle_tracker.services.workflow import PatientWorkflow

router = APIRouter(prefix="/patients", tags=["Patients"])

Workflow = Annotated[PatientWorkflow, Depends(get_patient_workflow)]


@router.get("", response_model=list[PatientSummary])
async def list_patients(
    resolver: ViewResolver,
    render: Render,
    search: Optional[str] = Query(None, max_length=200),
):
    """List every patient in the program (central team only)."""
    return [PatientSummary.from_view(v, render) for v in resolver.list_patients(search=search)]


@router.get("/{patient_id}", response_model=PatientDetail)
async def get_patient(patient_id: str, resolver: ViewResolver, render: Render):
    """Get a patient with vitals, encounters, tasks and interventions."""
    return PatientDetail.from_view(resolver.get_patient(patient_id), render)


@router.post("/{patient_id}/alerts/sync", response_model=list[AlertResponse])
async def sync_alerts(
    patient_id: str,
    resolver: ViewResolver,
    workflow: Workflow,
):
    """Persist the patient's currently firing alerts; safe to repeat."""
    resolver.get_patient(patient_id)
    as_of = resolver.population.as_of
    alerts = await workflow.sync_alerts(patient_id, as_of=as_of)
    return [AlertResponse.from_record(a, as_of) for a in alerts]


@router.post("/{patient_id}/alerts/{alert_id}/ack", response_model=AlertResponse)
async def acknowledge_alert(
    patient_id: str,
    alert_id: str,
    resolver: ViewResolver,
    workflow: Workflow,
):
    resolver.get_patient(patient_id)
    as_of = resolver.population.as_of
    alert = await workflow.acknowledge_alert(patient_id, alert_id, at=as_of)
    return AlertResponse.from_record(alert, as_of)


@router.post("/{patient_id}/alerts/{alert_id}/resolve", response_model=AlertResponse)
async def resolve_alert(
    patient_id: str,
    alert_id: str,
    resolver: ViewResolver,
    workflow: Workflow,
):
    resolver.get_patient(patient_id)
    as_of = resolver.population.as_of
    alert = await workflow.resolve_alert(patient_id, alert_id, at=as_of)
    return AlertResponse.from_record(alert, as_of)


@router.post("/{patient_id}/interventions", response_model=PatientDetail)
async def log_intervention(
    patient_id: str,
    payload: InterventionCreate,
    resolver: ViewResolver,
    workflow: Workflow,
    render: Render,
):
    """Append an intervention; resubmitting the same id changes nothing."""
    view = resolver.get_patient(patient_id)
    updated = await workflow.log_intervention(
        patient_id,
        InterventionEntry(
            id=payload.id,
            performed_on=payload.performed_on,
            intervention_type=payload.intervention_type,
            performed_by=payload.performed_by,
            note=payload.note,
        ),
    )
    return PatientDetail.from_view(replace(view, record=updated), render)
