from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from puzzle_tracker.services.alerts import created_ago
from puzzle_tracker.services.phi import REDACTION_TOKEN, mask
from puzzle_tracker.services.records import AlertRecord
from puzzle_tracker.services.views import PatientView


@dataclass(frozen=True)
class RenderOptions:
    """Per-response rendering: the clock for age labels and PHI masking."""

    as_of: datetime
    phi_mask: bool = False
    redaction_token: str = REDACTION_TOKEN


class VitalSignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    day: str
    observed_at: datetime
    heart_rate: int
    respiratory_rate: int
    spo2: int


class EncounterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    encounter_type: str
    label: str
    period: str


class CareTaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    status: str


class InterventionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    performed_on: date
    intervention_type: str
    performed_by: str
    note: str


class InterventionCreate(BaseModel):
    """Schema for logging an intervention.

    ``id`` is chosen by the client so that retried submissions are ignored.
    """

    id: str = Field(..., min_length=1, max_length=60)
    performed_on: date
    intervention_type: str = Field(..., min_length=1, max_length=50)
    performed_by: str = Field(..., min_length=1, max_length=120)
    note: str = Field(default="", max_length=2000)


class AlertResponse(BaseModel):
    id: str
    patient_id: str
    alert_type: str
    severity: str
    status: str
    created_at: datetime
    created_ago: str
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    persisted: bool

    @classmethod
    def from_record(cls, alert: AlertRecord, as_of: datetime) -> "AlertResponse":
        return cls(
            id=alert.id,
            patient_id=alert.patient_id,
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            status=alert.status.value,
            created_at=alert.created_at,
            created_ago=created_ago(alert.created_at, as_of),
            acknowledged_at=alert.acknowledged_at,
            resolved_at=alert.resolved_at,
            persisted=alert.persisted,
        )


class PatientSummary(BaseModel):
    """Patient row for lists and role views."""

    id: str
    name: str
    mrn: str
    facility_id: str
    facility_name: Optional[str] = None
    payer: str
    risk_score: int
    risk_tier: str
    at_home: bool
    hospice: bool
    ama: bool
    next_appointment: str
    last_contact_at: Optional[datetime] = None
    admitted_at: Optional[date] = None
    discharged_at: Optional[date] = None
    alerts: list[AlertResponse]

    @classmethod
    def _fields(cls, view: PatientView, options: RenderOptions) -> dict:
        record = view.record
        return {
            "id": record.id,
            "name": mask(options.phi_mask, record.name, options.redaction_token),
            "mrn": mask(options.phi_mask, record.mrn, options.redaction_token),
            "facility_id": record.facility_id,
            "facility_name": view.facility_name,
            "payer": record.payer,
            "risk_score": record.risk_score,
            "risk_tier": view.risk_tier.value,
            "at_home": record.at_home,
            "hospice": record.hospice,
            "ama": record.ama,
            "next_appointment": record.next_appointment,
            "last_contact_at": record.last_contact_at,
            "admitted_at": record.admitted_at,
            "discharged_at": record.discharged_at,
            "alerts": [AlertResponse.from_record(a, options.as_of) for a in view.alerts],
        }

    @classmethod
    def from_view(cls, view: PatientView, options: RenderOptions) -> "PatientSummary":
        return cls(**cls._fields(view, options))


class PatientDetail(PatientSummary):
    """Full patient record with history."""

    version: int
    vitals: list[VitalSignResponse]
    encounters: list[EncounterResponse]
    tasks: list[CareTaskResponse]
    interventions: list[InterventionResponse]

    @classmethod
    def from_view(cls, view: PatientView, options: RenderOptions) -> "PatientDetail":
        record = view.record
        return cls(
            **cls._fields(view, options),
            version=record.version,
            vitals=[VitalSignResponse.model_validate(v) for v in record.vitals],
            encounters=[EncounterResponse.model_validate(e) for e in record.encounters],
            tasks=[CareTaskResponse.model_validate(t) for t in record.tasks],
            interventions=[
                InterventionResponse.model_validate(i) for i in record.interventions
            ],
        )
