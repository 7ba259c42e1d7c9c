"""Response schemas for the four tenant role views."""

from typing import Optional

from pydantic import BaseModel

from puzzle_tracker.schemas.patient import AlertResponse, PatientSummary, RenderOptions
from puzzle_tracker.schemas.tenant import (
    FacilitySummaryResponse,
    HealthSystemResponse,
    RthResponse,
    SnfChainResponse,
)
from puzzle_tracker.services.views import (
    CentralTeamView,
    HealthSystemView,
    PatientView,
    SnfChainView,
    SnfFacilityView,
)


def _rows(views: list[PatientView], options: RenderOptions) -> list[PatientSummary]:
    return [PatientSummary.from_view(v, options) for v in views]


class HealthSystemKpis(BaseModel):
    census_in_snf: int
    high_risk: int
    open_escalations: int
    rth: RthResponse


class HealthSystemViewResponse(BaseModel):
    health_system: HealthSystemResponse
    facilities: list[FacilitySummaryResponse]
    selected_facility: Optional[FacilitySummaryResponse] = None
    patients_at_facility: list[PatientSummary]
    home_cohort: list[PatientSummary]
    kpis: HealthSystemKpis

    @classmethod
    def from_view(
        cls, view: HealthSystemView, options: RenderOptions
    ) -> "HealthSystemViewResponse":
        return cls(
            health_system=HealthSystemResponse.model_validate(view.health_system),
            facilities=[FacilitySummaryResponse.from_summary(f) for f in view.facilities],
            selected_facility=(
                FacilitySummaryResponse.from_summary(view.selected_facility)
                if view.selected_facility
                else None
            ),
            patients_at_facility=_rows(view.patients_at_facility, options),
            home_cohort=_rows(view.home_cohort, options),
            kpis=HealthSystemKpis(
                census_in_snf=view.census_in_snf,
                high_risk=view.high_risk,
                open_escalations=view.open_escalations,
                rth=RthResponse.from_projection(view.rth),
            ),
        )


class SnfChainKpis(BaseModel):
    facilities: int
    open_escalations: int
    avg_ack_minutes: int


class SnfChainViewResponse(BaseModel):
    chain: SnfChainResponse
    facilities: list[FacilitySummaryResponse]
    patients: list[PatientSummary]
    kpis: SnfChainKpis

    @classmethod
    def from_view(cls, view: SnfChainView, options: RenderOptions) -> "SnfChainViewResponse":
        return cls(
            chain=SnfChainResponse.model_validate(view.chain),
            facilities=[FacilitySummaryResponse.from_summary(f) for f in view.facilities],
            patients=_rows(view.patients, options),
            kpis=SnfChainKpis(
                facilities=len(view.facilities),
                open_escalations=view.open_escalations,
                avg_ack_minutes=view.avg_ack_minutes,
            ),
        )


class EscalationResponse(BaseModel):
    """An active alert with a reference back to its patient."""

    alert: AlertResponse
    patient: PatientSummary


class SnfFacilityKpis(BaseModel):
    census: int
    home_cohort: int
    open_escalations: int
    engagement_score: int


class SnfFacilityViewResponse(BaseModel):
    facility: FacilitySummaryResponse
    admits: list[PatientSummary]
    discharges: list[PatientSummary]
    escalations: list[EscalationResponse]
    roster: list[PatientSummary]
    kpis: SnfFacilityKpis

    @classmethod
    def from_view(
        cls, view: SnfFacilityView, options: RenderOptions
    ) -> "SnfFacilityViewResponse":
        metrics = view.facility.metrics
        return cls(
            facility=FacilitySummaryResponse.from_summary(view.facility),
            admits=_rows(view.admits, options),
            discharges=_rows(view.discharges, options),
            escalations=[
                EscalationResponse(
                    alert=AlertResponse.from_record(e.alert, options.as_of),
                    patient=PatientSummary.from_view(e.patient, options),
                )
                for e in view.escalations
            ],
            roster=_rows(view.roster, options),
            kpis=SnfFacilityKpis(
                census=metrics.census,
                home_cohort=metrics.home_cohort,
                open_escalations=len(view.escalations),
                engagement_score=metrics.engagement_score,
            ),
        )


class CentralKpis(BaseModel):
    patients_in_program: int
    open_alerts: int
    high_risk: int
    hospice: int
    rth: RthResponse


class CentralViewResponse(BaseModel):
    triage: dict[str, list[PatientSummary]]
    report: list[FacilitySummaryResponse]
    kpis: CentralKpis

    @classmethod
    def from_view(cls, view: CentralTeamView, options: RenderOptions) -> "CentralViewResponse":
        return cls(
            triage={tier.value: _rows(rows, options) for tier, rows in view.triage.items()},
            report=[FacilitySummaryResponse.from_summary(f) for f in view.report],
            kpis=CentralKpis(
                patients_in_program=view.patients_in_program,
                open_alerts=view.open_alerts,
                high_risk=view.high_risk,
                hospice=view.hospice,
                rth=RthResponse.from_projection(view.rth),
            ),
        )
