"""Record types and record store implementations.

The store is the only stateful piece of the tracker. Readers take an
immutable :class:`~puzzle_tracker.services.population.Population` snapshot;
writers append to one patient's history under optimistic versioning.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from puzzle_tracker import models
from puzzle_tracker.services.errors import (
    DuplicateInterventionError,
    NotFoundError,
    VersionConflictError,
)
from puzzle_tracker.services.population import Population
from puzzle_tracker.services.risk import RiskTier, classify


@dataclass(frozen=True)
class HealthSystemRecord:
    id: str
    name: str


@dataclass(frozen=True)
class SnfChainRecord:
    id: str
    name: str


@dataclass(frozen=True)
class FacilityRecord:
    """Structural facility fields plus raw engagement signals.

    Cohort statistics (census, high-risk share, readmission rates) are
    derived by the metrics engine and never stored here.
    """

    id: str
    chain_id: str
    org_id: str
    name: str
    address: str
    bed_count: int
    engagement_base: int
    last_ack_minutes: int


@dataclass(frozen=True)
class VitalSign:
    day: str
    observed_at: datetime
    heart_rate: int
    respiratory_rate: int
    spo2: int


@dataclass(frozen=True)
class EncounterEntry:
    encounter_type: str
    label: str
    period: str


@dataclass(frozen=True)
class CareTask:
    id: str
    title: str
    status: str


@dataclass(frozen=True)
class InterventionEntry:
    id: str
    performed_on: date
    intervention_type: str
    performed_by: str
    note: str


class AlertSeverity(StrEnum):
    high = "High"
    medium = "Medium"


class AlertType(StrEnum):
    rpm_abnormal = "RPM abnormal"
    missed_weekly_call = "Missed weekly call"


class AlertStatus(StrEnum):
    open = "Open"
    acknowledged = "Acknowledged"
    resolved = "Resolved"


@dataclass(frozen=True)
class AlertRecord:
    id: str
    patient_id: str
    alert_type: AlertType
    severity: AlertSeverity
    created_at: datetime
    status: AlertStatus = AlertStatus.open
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    persisted: bool = False

    @property
    def is_active(self) -> bool:
        return self.status != AlertStatus.resolved


@dataclass(frozen=True)
class PatientRecord:
    """Canonical patient record.

    ``risk_tier`` is derived from ``risk_score`` and ``hospice`` on every
    access and cannot be set independently.
    """

    id: str
    name: str
    mrn: str
    facility_id: str
    payer: str
    risk_score: int
    at_home: bool
    hospice: bool = False
    ama: bool = False
    next_appointment: str = ""
    last_contact_at: Optional[datetime] = None
    admitted_at: Optional[date] = None
    discharged_at: Optional[date] = None
    vitals: tuple[VitalSign, ...] = ()
    encounters: tuple[EncounterEntry, ...] = ()
    tasks: tuple[CareTask, ...] = ()
    interventions: tuple[InterventionEntry, ...] = ()
    version: int = 0

    @property
    def risk_tier(self) -> RiskTier:
        return classify(self.risk_score, self.hospice)

    @property
    def search_text(self) -> str:
        return f"{self.name}{self.mrn}{self.next_appointment}".lower()


@dataclass(frozen=True)
class CareNetwork:
    """A complete set of tenant and patient records, used for seeding."""

    health_systems: tuple[HealthSystemRecord, ...]
    chains: tuple[SnfChainRecord, ...]
    facilities: tuple[FacilityRecord, ...]
    patients: tuple[PatientRecord, ...]
    alerts: tuple[AlertRecord, ...] = field(default=())


class RecordStore(Protocol):
    async def load_population(self, as_of: Optional[datetime] = None) -> Population:
        ...

    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        ...

    async def list_alerts(self, patient_id: str) -> list[AlertRecord]:
        ...

    async def save_alerts(
        self,
        patient_id: str,
        alerts: Sequence[AlertRecord],
        expected_version: int,
    ) -> int:
        ...

    async def append_intervention(
        self,
        patient_id: str,
        entry: InterventionEntry,
        expected_version: int,
    ) -> int:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRecordStore:
    """In-memory record store for local demos and tests.

    With a pinned ``as_of`` every population is evaluated at that instant, so
    reference data built relative to it keeps its picture however long the
    process runs.
    """

    def __init__(
        self,
        network: Optional[CareNetwork] = None,
        as_of: Optional[datetime] = None,
    ):
        self.as_of = as_of
        self._health_systems: list[HealthSystemRecord] = []
        self._chains: list[SnfChainRecord] = []
        self._facilities: list[FacilityRecord] = []
        self._patients: dict[str, PatientRecord] = {}
        self._alerts: dict[str, dict[str, AlertRecord]] = defaultdict(dict)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        if network is not None:
            self.load(network)

    @classmethod
    def with_reference_data(cls, as_of: Optional[datetime] = None) -> "InMemoryRecordStore":
        from puzzle_tracker.services.seed import build_reference_network

        as_of = as_of or _now()
        return cls(build_reference_network(as_of), as_of=as_of)

    def load(self, network: CareNetwork) -> None:
        self._health_systems = list(network.health_systems)
        self._chains = list(network.chains)
        self._facilities = list(network.facilities)
        self._patients = {p.id: p for p in network.patients}
        self._alerts.clear()
        for alert in network.alerts:
            self._alerts[alert.patient_id][alert.id] = replace(alert, persisted=True)

    async def load_population(self, as_of: Optional[datetime] = None) -> Population:
        return Population(
            health_systems=tuple(self._health_systems),
            chains=tuple(self._chains),
            facilities=tuple(self._facilities),
            patients=tuple(self._patients.values()),
            alerts={pid: tuple(alerts.values()) for pid, alerts in self._alerts.items()},
            as_of=as_of or self.as_of or _now(),
        )

    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        return self._patients.get(patient_id)

    async def list_alerts(self, patient_id: str) -> list[AlertRecord]:
        return list(self._alerts.get(patient_id, {}).values())

    async def save_alerts(
        self,
        patient_id: str,
        alerts: Sequence[AlertRecord],
        expected_version: int,
    ) -> int:
        async with self._locks[patient_id]:
            patient = self._require_version(patient_id, expected_version)
            for alert in alerts:
                self._alerts[patient_id][alert.id] = replace(alert, persisted=True)
            return self._bump(patient)

    async def append_intervention(
        self,
        patient_id: str,
        entry: InterventionEntry,
        expected_version: int,
    ) -> int:
        async with self._locks[patient_id]:
            patient = self._patients.get(patient_id)
            if patient is None:
                raise NotFoundError("patient", patient_id)
            if any(existing.id == entry.id for existing in patient.interventions):
                return patient.version
            # Intervention ids are unique across the whole network.
            if any(
                existing.id == entry.id
                for other in self._patients.values()
                for existing in other.interventions
            ):
                raise DuplicateInterventionError(entry.id)
            patient = self._require_version(patient_id, expected_version)
            patient = replace(patient, interventions=patient.interventions + (entry,))
            return self._bump(patient)

    def _require_version(self, patient_id: str, expected_version: int) -> PatientRecord:
        patient = self._patients.get(patient_id)
        if patient is None:
            raise NotFoundError("patient", patient_id)
        if patient.version != expected_version:
            raise VersionConflictError(patient_id, expected_version, patient.version)
        return patient

    def _bump(self, patient: PatientRecord) -> int:
        updated = replace(patient, version=patient.version + 1)
        self._patients[patient.id] = updated
        return updated.version


class SQLRecordStore:
    """Record store backed by SQLAlchemy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_population(self, as_of: Optional[datetime] = None) -> Population:
        health_systems = await self.db.execute(
            select(models.HealthSystem).order_by(models.HealthSystem.id)
        )
        chains = await self.db.execute(
            select(models.SnfChain).order_by(models.SnfChain.id)
        )
        facilities = await self.db.execute(
            select(models.Facility).order_by(models.Facility.id)
        )
        patients = await self.db.execute(
            select(models.Patient)
            .options(*_patient_history_options())
            .execution_options(populate_existing=True)
            .order_by(models.Patient.position, models.Patient.id)
        )
        alerts = await self.db.execute(
            select(models.PatientAlert).order_by(
                models.PatientAlert.created_at, models.PatientAlert.id
            )
        )

        alerts_by_patient: dict[str, list[AlertRecord]] = defaultdict(list)
        for row in alerts.scalars().all():
            alerts_by_patient[row.patient_id].append(_alert_record(row))

        return Population(
            health_systems=tuple(
                HealthSystemRecord(id=row.id, name=row.name)
                for row in health_systems.scalars().all()
            ),
            chains=tuple(
                SnfChainRecord(id=row.id, name=row.name) for row in chains.scalars().all()
            ),
            facilities=tuple(_facility_record(row) for row in facilities.scalars().all()),
            patients=tuple(_patient_record(row) for row in patients.scalars().all()),
            alerts={pid: tuple(rows) for pid, rows in alerts_by_patient.items()},
            as_of=as_of or _now(),
        )

    async def get_patient(self, patient_id: str) -> Optional[PatientRecord]:
        result = await self.db.execute(
            select(models.Patient)
            .options(*_patient_history_options())
            .execution_options(populate_existing=True)
            .where(models.Patient.id == patient_id)
        )
        row = result.scalar_one_or_none()
        return _patient_record(row) if row else None

    async def list_alerts(self, patient_id: str) -> list[AlertRecord]:
        result = await self.db.execute(
            select(models.PatientAlert)
            .where(models.PatientAlert.patient_id == patient_id)
            .order_by(models.PatientAlert.created_at, models.PatientAlert.id)
        )
        return [_alert_record(row) for row in result.scalars().all()]

    async def save_alerts(
        self,
        patient_id: str,
        alerts: Sequence[AlertRecord],
        expected_version: int,
    ) -> int:
        new_version = await self._claim_version(patient_id, expected_version)
        for alert in alerts:
            await self.db.merge(
                models.PatientAlert(
                    id=alert.id,
                    patient_id=patient_id,
                    alert_type=alert.alert_type.value,
                    severity=alert.severity.value,
                    status=alert.status.value,
                    created_at=alert.created_at,
                    acknowledged_at=alert.acknowledged_at,
                    resolved_at=alert.resolved_at,
                )
            )
        await self.db.flush()
        return new_version

    async def append_intervention(
        self,
        patient_id: str,
        entry: InterventionEntry,
        expected_version: int,
    ) -> int:
        existing = await self.db.get(models.Intervention, entry.id)
        if existing is not None:
            if existing.patient_id != patient_id:
                raise DuplicateInterventionError(entry.id)
            return await self._current_version(patient_id)
        new_version = await self._claim_version(patient_id, expected_version)
        self.db.add(
            models.Intervention(
                id=entry.id,
                patient_id=patient_id,
                performed_on=entry.performed_on,
                intervention_type=entry.intervention_type,
                performed_by=entry.performed_by,
                note=entry.note,
            )
        )
        await self.db.flush()
        return new_version

    async def is_empty(self) -> bool:
        count = await self.db.scalar(select(func.count()).select_from(models.HealthSystem))
        return not count

    async def seed(self, network: CareNetwork) -> None:
        """Insert a care network into an empty database."""
        for hs in network.health_systems:
            self.db.add(models.HealthSystem(id=hs.id, name=hs.name))
        for chain in network.chains:
            self.db.add(models.SnfChain(id=chain.id, name=chain.name))
        for facility in network.facilities:
            self.db.add(
                models.Facility(
                    id=facility.id,
                    chain_id=facility.chain_id,
                    org_id=facility.org_id,
                    name=facility.name,
                    address=facility.address,
                    bed_count=facility.bed_count,
                    engagement_base=facility.engagement_base,
                    last_ack_minutes=facility.last_ack_minutes,
                )
            )
        for position, patient in enumerate(network.patients):
            self.db.add(_patient_row(patient, position))
        for alert in network.alerts:
            self.db.add(
                models.PatientAlert(
                    id=alert.id,
                    patient_id=alert.patient_id,
                    alert_type=alert.alert_type.value,
                    severity=alert.severity.value,
                    status=alert.status.value,
                    created_at=alert.created_at,
                    acknowledged_at=alert.acknowledged_at,
                    resolved_at=alert.resolved_at,
                )
            )
        await self.db.flush()

    async def _claim_version(self, patient_id: str, expected_version: int) -> int:
        result = await self.db.execute(
            update(models.Patient)
            .where(
                models.Patient.id == patient_id,
                models.Patient.version == expected_version,
            )
            .values(version=models.Patient.version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            actual = await self._current_version(patient_id)
            raise VersionConflictError(patient_id, expected_version, actual)
        return expected_version + 1

    async def _current_version(self, patient_id: str) -> int:
        version = await self.db.scalar(
            select(models.Patient.version).where(models.Patient.id == patient_id)
        )
        if version is None:
            raise NotFoundError("patient", patient_id)
        return version


def _patient_history_options() -> Iterable:
    return (
        selectinload(models.Patient.vitals),
        selectinload(models.Patient.encounters),
        selectinload(models.Patient.tasks),
        selectinload(models.Patient.interventions),
    )


def _facility_record(row: models.Facility) -> FacilityRecord:
    return FacilityRecord(
        id=row.id,
        chain_id=row.chain_id,
        org_id=row.org_id,
        name=row.name,
        address=row.address,
        bed_count=row.bed_count,
        engagement_base=row.engagement_base,
        last_ack_minutes=row.last_ack_minutes,
    )


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on round-trip.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _patient_record(row: models.Patient) -> PatientRecord:
    return PatientRecord(
        id=row.id,
        name=row.name,
        mrn=row.mrn,
        facility_id=row.facility_id,
        payer=row.payer,
        risk_score=row.risk_score,
        at_home=row.at_home,
        hospice=row.hospice,
        ama=row.ama,
        next_appointment=row.next_appointment,
        last_contact_at=_as_utc(row.last_contact_at),
        admitted_at=row.admitted_at,
        discharged_at=row.discharged_at,
        vitals=tuple(
            VitalSign(
                day=v.day,
                observed_at=_as_utc(v.observed_at),
                heart_rate=v.heart_rate,
                respiratory_rate=v.respiratory_rate,
                spo2=v.spo2,
            )
            for v in sorted(row.vitals, key=lambda v: v.observed_at)
        ),
        encounters=tuple(
            EncounterEntry(encounter_type=e.encounter_type, label=e.label, period=e.period)
            for e in sorted(row.encounters, key=lambda e: e.position)
        ),
        tasks=tuple(
            CareTask(id=t.id, title=t.title, status=t.status)
            for t in sorted(row.tasks, key=lambda t: t.position)
        ),
        interventions=tuple(
            InterventionEntry(
                id=i.id,
                performed_on=i.performed_on,
                intervention_type=i.intervention_type,
                performed_by=i.performed_by,
                note=i.note,
            )
            for i in sorted(row.interventions, key=lambda i: (i.performed_on, _as_utc(i.created_at)))
        ),
        version=row.version,
    )


def _patient_row(patient: PatientRecord, position: int) -> models.Patient:
    return models.Patient(
        id=patient.id,
        position=position,
        name=patient.name,
        mrn=patient.mrn,
        facility_id=patient.facility_id,
        payer=patient.payer,
        risk_score=patient.risk_score,
        at_home=patient.at_home,
        hospice=patient.hospice,
        ama=patient.ama,
        next_appointment=patient.next_appointment,
        last_contact_at=patient.last_contact_at,
        admitted_at=patient.admitted_at,
        discharged_at=patient.discharged_at,
        version=patient.version,
        vitals=[
            models.VitalReading(
                day=v.day,
                observed_at=v.observed_at,
                heart_rate=v.heart_rate,
                respiratory_rate=v.respiratory_rate,
                spo2=v.spo2,
            )
            for v in patient.vitals
        ],
        encounters=[
            models.Encounter(
                position=idx,
                encounter_type=e.encounter_type,
                label=e.label,
                period=e.period,
            )
            for idx, e in enumerate(patient.encounters)
        ],
        tasks=[
            models.CareTask(id=t.id, position=idx, title=t.title, status=t.status)
            for idx, t in enumerate(patient.tasks)
        ],
        interventions=[
            models.Intervention(
                id=i.id,
                performed_on=i.performed_on,
                intervention_type=i.intervention_type,
                performed_by=i.performed_by,
                note=i.note,
            )
            for i in patient.interventions
        ],
    )


def _alert_record(row: models.PatientAlert) -> AlertRecord:
    return AlertRecord(
        id=row.id,
        patient_id=row.patient_id,
        alert_type=AlertType(row.alert_type),
        severity=AlertSeverity(row.severity),
        created_at=_as_utc(row.created_at),
        status=AlertStatus(row.status),
        acknowledged_at=_as_utc(row.acknowledged_at),
        resolved_at=_as_utc(row.resolved_at),
        persisted=True,
    )
