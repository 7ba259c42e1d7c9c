"""Tenant view resolver.

Shapes the shared patient population into the collections each tenant role
works with. Scope filters apply first, free-text search narrows further, and
every patient leaves here with its risk tier, active alerts and facility name
attached on a view-local copy.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from puzzle_tracker.services.access import TenantClaim
from puzzle_tracker.services.alerts import AlertGenerator, AlertRules, triage_buckets
from puzzle_tracker.services.errors import NotFoundError, ScopeForbiddenError
from puzzle_tracker.services.metrics import (
    FacilityMetrics,
    RthProjection,
    facility_metrics,
    project_rth,
    round_half_up,
)
from puzzle_tracker.services.population import Population
from puzzle_tracker.services.records import (
    AlertRecord,
    FacilityRecord,
    HealthSystemRecord,
    PatientRecord,
    SnfChainRecord,
)
from puzzle_tracker.services.risk import RiskTier

logger = logging.getLogger("puzzle_tracker.views")


class PatientStatus(StrEnum):
    home = "home"
    in_snf = "in_snf"


@dataclass(frozen=True)
class PatientView:
    """A patient as returned to callers: the record plus derived fields."""

    record: PatientRecord
    facility_name: Optional[str]
    alerts: tuple[AlertRecord, ...]

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def risk_tier(self) -> RiskTier:
        return self.record.risk_tier


@dataclass(frozen=True)
class FacilitySummary:
    facility: FacilityRecord
    metrics: FacilityMetrics


@dataclass(frozen=True)
class Escalation:
    alert: AlertRecord
    patient: PatientView


@dataclass(frozen=True)
class HealthSystemView:
    health_system: HealthSystemRecord
    facilities: list[FacilitySummary]
    selected_facility: Optional[FacilitySummary]
    patients_at_facility: list[PatientView]
    home_cohort: list[PatientView]
    census_in_snf: int
    high_risk: int
    open_escalations: int
    rth: RthProjection


@dataclass(frozen=True)
class SnfChainView:
    chain: SnfChainRecord
    facilities: list[FacilitySummary]
    patients: list[PatientView]
    open_escalations: int
    avg_ack_minutes: int


@dataclass(frozen=True)
class SnfFacilityView:
    facility: FacilitySummary
    admits: list[PatientView]
    discharges: list[PatientView]
    escalations: list[Escalation]
    roster: list[PatientView]


@dataclass(frozen=True)
class CentralTeamView:
    triage: dict[RiskTier, list[PatientView]]
    report: list[FacilitySummary]
    patients_in_program: int
    open_alerts: int
    high_risk: int
    hospice: int
    rth: RthProjection


def matches_search(patient: PatientRecord, search: Optional[str]) -> bool:
    """Case-insensitive substring match on name + MRN + next appointment."""
    if not search:
        return True
    return search.lower() in patient.search_text


def _most_recent_first(views: list[PatientView], attr: str, limit: int) -> list[PatientView]:
    dated = [v for v in views if getattr(v.record, attr) is not None]
    undated = [v for v in views if getattr(v.record, attr) is None]
    dated.sort(key=lambda v: getattr(v.record, attr), reverse=True)
    return (dated + undated)[:limit]


class TenantViewResolver:
    """Role-scoped reads over one population snapshot."""

    def __init__(
        self,
        population: Population,
        claim: TenantClaim,
        alert_generator: Optional[AlertGenerator] = None,
        recent_movement_limit: int = 3,
    ):
        self.population = population
        self.claim = claim
        self.alert_generator = alert_generator or AlertGenerator(
            AlertRules(), population.as_of
        )
        self.recent_movement_limit = recent_movement_limit
        self._enriched: dict[str, PatientView] = {}

    # Scope checks

    def _deny(self, kind: str, identifier: str) -> ScopeForbiddenError:
        logger.warning(
            "Scope denied: subject=%s claim=%s requested %s=%s",
            self.claim.subject,
            self.claim.scope_label,
            kind,
            identifier,
        )
        return ScopeForbiddenError(f"Access to {kind} {identifier} is outside the caller's tenant")

    def _not_found(self, kind: str, identifier: str) -> NotFoundError:
        logger.debug("%s %s not found", kind, identifier)
        return NotFoundError(kind, identifier)

    def _require_org(self, org_id: str) -> HealthSystemRecord:
        health_system = self.population.health_system(org_id)
        if health_system is None:
            raise self._not_found("organization", org_id)
        if not self.claim.covers_org(org_id):
            raise self._deny("organization", org_id)
        return health_system

    def _require_chain(self, chain_id: str) -> SnfChainRecord:
        chain = self.population.chain(chain_id)
        if chain is None:
            raise self._not_found("chain", chain_id)
        if not self.claim.covers_chain(chain_id):
            raise self._deny("chain", chain_id)
        return chain

    def _require_facility(self, facility_id: str) -> FacilityRecord:
        facility = self.population.facility(facility_id)
        if facility is None:
            raise self._not_found("facility", facility_id)
        if not self.claim.covers_facility(facility):
            raise self._deny("facility", facility_id)
        return facility

    def _require_central(self, what: str) -> None:
        if not self.claim.is_central:
            raise self._deny("scope", what)

    def visible_facilities(self) -> list[FacilityRecord]:
        return [f for f in self.population.facilities if self.claim.covers_facility(f)]

    # Enrichment

    def enrich(self, patient: PatientRecord) -> PatientView:
        view = self._enriched.get(patient.id)
        if view is None:
            alerts = self.alert_generator.active_alerts(
                patient, self.population.persisted_alerts(patient.id)
            )
            view = PatientView(
                record=patient,
                facility_name=self.population.facility_name(patient.facility_id),
                alerts=tuple(alerts),
            )
            self._enriched[patient.id] = view
        return view

    def _views(
        self,
        patients: Iterable[PatientRecord],
        search: Optional[str] = None,
    ) -> list[PatientView]:
        return [self.enrich(p) for p in patients if matches_search(p, search)]

    def summarize(self, facility: FacilityRecord) -> FacilitySummary:
        return FacilitySummary(
            facility=facility,
            metrics=facility_metrics(facility, self.population.patients),
        )

    def _open_escalations(self, patients: Iterable[PatientRecord]) -> int:
        return sum(len(self.enrich(p).alerts) for p in patients)

    # Read API

    def list_health_systems(self) -> list[HealthSystemRecord]:
        return [hs for hs in self.population.health_systems if self.claim.covers_org(hs.id)]

    def list_chains(self) -> list[SnfChainRecord]:
        return [c for c in self.population.chains if self.claim.covers_chain(c.id)]

    def list_facilities(self, org_id: str) -> list[FacilityRecord]:
        self._require_org(org_id)
        return self.population.facilities_for_org(org_id)

    def get_facility(self, facility_id: str) -> FacilityRecord:
        return self._require_facility(facility_id)

    def facility_metrics(self, facility_id: str) -> FacilityMetrics:
        return self.summarize(self._require_facility(facility_id)).metrics

    def list_patients(
        self,
        facility_id: Optional[str] = None,
        status: Optional[PatientStatus] = None,
        search: Optional[str] = None,
    ) -> list[PatientView]:
        """Patients of one facility, or of the whole population for the central team."""
        if facility_id is None:
            self._require_central("all-patients")
            patients = list(self.population.patients)
        else:
            self._require_facility(facility_id)
            patients = self.population.patients_at({facility_id})
        if status == PatientStatus.home:
            patients = [p for p in patients if p.at_home]
        elif status == PatientStatus.in_snf:
            patients = [p for p in patients if not p.at_home]
        return self._views(patients, search)

    def get_patient(self, patient_id: str) -> PatientView:
        patient = self.population.patient(patient_id)
        if patient is None:
            raise self._not_found("patient", patient_id)
        facility = self.population.facility(patient.facility_id)
        if facility is None:
            if not self.claim.is_central:
                raise self._deny("patient", patient_id)
        elif not self.claim.covers_facility(facility):
            raise self._deny("patient", patient_id)
        return self.enrich(patient)

    def population_rth(self, facility_id: Optional[str] = None) -> RthProjection:
        """RTH for one facility, else for everything the caller can see."""
        if facility_id is not None:
            self._require_facility(facility_id)
            return project_rth(self.population.patients, facility_id)
        if self.claim.is_central:
            return project_rth(self.population.patients)
        visible = {f.id for f in self.visible_facilities()}
        return project_rth(self.population.patients_at(visible))

    # Role views

    def health_system_view(
        self,
        org_id: str,
        facility_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> HealthSystemView:
        health_system = self._require_org(org_id)
        facilities = self.population.facilities_for_org(org_id)
        cohort = self.population.patients_at({f.id for f in facilities})

        if facility_id is None:
            selected = facilities[0] if facilities else None
        else:
            # A facility outside the org is an empty scope, not an error.
            selected = next((f for f in facilities if f.id == facility_id), None)

        at_facility: list[PatientView] = []
        if selected is not None:
            at_facility = self._views(
                (p for p in cohort if p.facility_id == selected.id and not p.at_home),
                search,
            )
        # Home patients have left the SNF, so they are not facility-scoped.
        home_cohort = self._views((p for p in cohort if p.at_home), search)

        return HealthSystemView(
            health_system=health_system,
            facilities=[self.summarize(f) for f in facilities],
            selected_facility=self.summarize(selected) if selected else None,
            patients_at_facility=at_facility,
            home_cohort=home_cohort,
            census_in_snf=sum(1 for p in cohort if not p.at_home),
            high_risk=sum(1 for p in cohort if p.risk_tier == RiskTier.high),
            open_escalations=self._open_escalations(cohort),
            rth=project_rth(cohort),
        )

    def snf_chain_view(self, chain_id: str, search: Optional[str] = None) -> SnfChainView:
        chain = self._require_chain(chain_id)
        facilities = self.population.facilities_for_chain(chain_id)
        cohort = self.population.patients_at({f.id for f in facilities})

        # In-SNF patients first by descending risk, home patients last.
        rows = self._views(cohort, search)
        rows.sort(key=lambda v: (v.record.at_home, -v.record.risk_score))

        ack_total = sum(f.last_ack_minutes for f in facilities)
        return SnfChainView(
            chain=chain,
            facilities=[self.summarize(f) for f in facilities],
            patients=rows,
            open_escalations=self._open_escalations(cohort),
            avg_ack_minutes=round_half_up(ack_total / max(1, len(facilities))),
        )

    def snf_facility_view(
        self,
        facility_id: str,
        search: Optional[str] = None,
    ) -> SnfFacilityView:
        facility = self._require_facility(facility_id)
        roster = self._views(self.population.patients_at({facility_id}), search)

        admits = _most_recent_first(
            [v for v in roster if not v.record.at_home],
            "admitted_at",
            self.recent_movement_limit,
        )
        discharges = _most_recent_first(
            [v for v in roster if v.record.at_home],
            "discharged_at",
            self.recent_movement_limit,
        )
        escalations = [
            Escalation(alert=alert, patient=view)
            for view in roster
            for alert in view.alerts
        ]

        return SnfFacilityView(
            facility=self.summarize(facility),
            admits=admits,
            discharges=discharges,
            escalations=escalations,
            roster=roster,
        )

    def central_view(self, search: Optional[str] = None) -> CentralTeamView:
        self._require_central("central-team")
        patients = self.population.patients
        return CentralTeamView(
            triage=triage_buckets(self._views(patients, search)),
            report=[self.summarize(f) for f in self.population.facilities],
            patients_in_program=len(patients),
            open_alerts=self._open_escalations(patients),
            high_risk=sum(1 for p in patients if p.risk_tier == RiskTier.high),
            hospice=sum(1 for p in patients if p.hospice),
            rth=project_rth(patients),
        )
