"""Immutable read snapshot of the care network."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from functools import cached_property
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from puzzle_tracker.services.records import (
        AlertRecord,
        FacilityRecord,
        HealthSystemRecord,
        PatientRecord,
        SnfChainRecord,
    )


@dataclass(frozen=True)
class Population:
    """Records as of one point in time, in store order.

    ``alerts`` holds persisted alerts only; derived alerts are generated on
    read by the alert generator.
    """

    health_systems: tuple["HealthSystemRecord", ...]
    chains: tuple["SnfChainRecord", ...]
    facilities: tuple["FacilityRecord", ...]
    patients: tuple["PatientRecord", ...]
    as_of: datetime
    alerts: Mapping[str, tuple["AlertRecord", ...]] = field(default_factory=dict)

    @cached_property
    def _facilities_by_id(self) -> dict[str, "FacilityRecord"]:
        return {f.id: f for f in self.facilities}

    @cached_property
    def _patients_by_id(self) -> dict[str, "PatientRecord"]:
        return {p.id: p for p in self.patients}

    def health_system(self, org_id: str) -> Optional["HealthSystemRecord"]:
        return next((hs for hs in self.health_systems if hs.id == org_id), None)

    def chain(self, chain_id: str) -> Optional["SnfChainRecord"]:
        return next((c for c in self.chains if c.id == chain_id), None)

    def facility(self, facility_id: str) -> Optional["FacilityRecord"]:
        return self._facilities_by_id.get(facility_id)

    def patient(self, patient_id: str) -> Optional["PatientRecord"]:
        return self._patients_by_id.get(patient_id)

    def facility_name(self, facility_id: str) -> Optional[str]:
        facility = self.facility(facility_id)
        return facility.name if facility else None

    def facilities_for_org(self, org_id: str) -> list["FacilityRecord"]:
        return [f for f in self.facilities if f.org_id == org_id]

    def facilities_for_chain(self, chain_id: str) -> list["FacilityRecord"]:
        return [f for f in self.facilities if f.chain_id == chain_id]

    def patients_at(self, facility_ids: set[str] | frozenset[str]) -> list["PatientRecord"]:
        return [p for p in self.patients if p.facility_id in facility_ids]

    def persisted_alerts(self, patient_id: str) -> tuple["AlertRecord", ...]:
        return tuple(self.alerts.get(patient_id, ()))
