"""Tenant claims and the scopes they cover.

Claims are issued by the upstream identity provider and verified by the API
layer; the tracker only decides what a verified claim may see.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from puzzle_tracker.services.records import FacilityRecord


class TenantRole(StrEnum):
    health_system = "health_system"
    snf_chain = "snf_chain"
    snf_facility = "snf_facility"
    central_team = "central_team"


_SCOPE_FIELD = {
    TenantRole.health_system: "org_id",
    TenantRole.snf_chain: "chain_id",
    TenantRole.snf_facility: "facility_id",
}


@dataclass(frozen=True)
class TenantClaim:
    subject: str
    role: TenantRole
    org_id: Optional[str] = None
    chain_id: Optional[str] = None
    facility_id: Optional[str] = None

    def __post_init__(self):
        scope_field = _SCOPE_FIELD.get(self.role)
        if scope_field and not getattr(self, scope_field):
            raise ValueError(f"{self.role.value} claims require {scope_field}")

    @classmethod
    def central(cls, subject: str = "central-team") -> "TenantClaim":
        return cls(subject=subject, role=TenantRole.central_team)

    @property
    def is_central(self) -> bool:
        return self.role == TenantRole.central_team

    @property
    def scope_label(self) -> str:
        scope_field = _SCOPE_FIELD.get(self.role)
        if scope_field is None:
            return self.role.value
        return f"{self.role.value}:{getattr(self, scope_field)}"

    def covers_org(self, org_id: str) -> bool:
        return self.is_central or (
            self.role == TenantRole.health_system and self.org_id == org_id
        )

    def covers_chain(self, chain_id: str) -> bool:
        return self.is_central or (
            self.role == TenantRole.snf_chain and self.chain_id == chain_id
        )

    def covers_facility(self, facility: FacilityRecord) -> bool:
        if self.is_central:
            return True
        if self.role == TenantRole.health_system:
            return facility.org_id == self.org_id
        if self.role == TenantRole.snf_chain:
            return facility.chain_id == self.chain_id
        return facility.id == self.facility_id
