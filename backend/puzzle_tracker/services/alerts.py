"""Alert generation, alert lifecycle, and triage bucketing."""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol, TypeVar

from puzzle_tracker.services.errors import AlertTransitionError
from puzzle_tracker.services.records import (
    AlertRecord,
    AlertSeverity,
    AlertStatus,
    AlertType,
    PatientRecord,
)
from puzzle_tracker.services.risk import TIER_ORDER, RiskTier

# Allowed lifecycle moves; repeating the current status is a no-op.
_TRANSITIONS = {
    AlertStatus.open: {AlertStatus.acknowledged, AlertStatus.resolved},
    AlertStatus.acknowledged: {AlertStatus.resolved},
    AlertStatus.resolved: set(),
}


@dataclass(frozen=True)
class AlertRules:
    rpm_enabled: bool = True
    rpm_risk_threshold: int = 70
    missed_call_enabled: bool = True
    missed_call_days: int = 7

    @classmethod
    def from_settings(cls, settings) -> "AlertRules":
        return cls(
            rpm_enabled=settings.alert_rpm_enabled,
            rpm_risk_threshold=settings.alert_rpm_risk_threshold,
            missed_call_enabled=settings.alert_missed_call_enabled,
            missed_call_days=settings.alert_missed_call_days,
        )


def derived_alert_id(patient_id: str, alert_type: AlertType) -> str:
    """Stable id for an alert that has been generated but not persisted yet."""
    return f"{patient_id}-{alert_type.name}"


def new_alert_id() -> str:
    return f"alt-{uuid.uuid4().hex[:12]}"


class AlertGenerator:
    """Derives a patient's alerts from current signals.

    Two independent rules, both of which may fire:

    * RPM abnormal (High): risk score above the RPM threshold.
    * Missed weekly call (Medium): no successful contact within the
      configured number of days, or no contact on record.
    """

    def __init__(self, rules: AlertRules, as_of: datetime):
        self.rules = rules
        self.as_of = as_of

    def generate(self, patient: PatientRecord) -> list[AlertRecord]:
        alerts: list[AlertRecord] = []
        if self.rules.rpm_enabled and patient.risk_score > self.rules.rpm_risk_threshold:
            observed = max((v.observed_at for v in patient.vitals), default=self.as_of)
            alerts.append(
                AlertRecord(
                    id=derived_alert_id(patient.id, AlertType.rpm_abnormal),
                    patient_id=patient.id,
                    alert_type=AlertType.rpm_abnormal,
                    severity=AlertSeverity.high,
                    created_at=min(observed, self.as_of),
                )
            )
        if self.rules.missed_call_enabled:
            overdue_since = self._contact_overdue_since(patient)
            if overdue_since is not None:
                alerts.append(
                    AlertRecord(
                        id=derived_alert_id(patient.id, AlertType.missed_weekly_call),
                        patient_id=patient.id,
                        alert_type=AlertType.missed_weekly_call,
                        severity=AlertSeverity.medium,
                        created_at=overdue_since,
                    )
                )
        return alerts

    def active_alerts(
        self,
        patient: PatientRecord,
        persisted: Sequence[AlertRecord] = (),
    ) -> list[AlertRecord]:
        return reconcile(self.generate(patient), persisted)

    def _contact_overdue_since(self, patient: PatientRecord) -> datetime | None:
        if patient.last_contact_at is None:
            return self.as_of
        due = patient.last_contact_at + timedelta(days=self.rules.missed_call_days)
        return due if due <= self.as_of else None


def reconcile(
    generated: Iterable[AlertRecord],
    persisted: Iterable[AlertRecord],
) -> list[AlertRecord]:
    """Merge generated alerts with persisted lifecycle state.

    A persisted alert that is still active stands in for a generated alert of
    the same type; active persisted alerts whose signal no longer fires stay
    listed until resolved.
    """
    active = [a for a in persisted if a.is_active]
    used: set[str] = set()
    merged: list[AlertRecord] = []
    for alert in generated:
        match = next(
            (a for a in active if a.alert_type == alert.alert_type and a.id not in used),
            None,
        )
        if match is None:
            merged.append(alert)
        else:
            used.add(match.id)
            merged.append(match)
    merged.extend(a for a in active if a.id not in used)
    return merged


def pending_alerts(
    generated: Iterable[AlertRecord],
    persisted: Iterable[AlertRecord],
) -> list[AlertRecord]:
    """Generated alerts with no active persisted counterpart, ready to persist."""
    active_types = {a.alert_type for a in persisted if a.is_active}
    return [
        replace(alert, id=new_alert_id())
        for alert in generated
        if alert.alert_type not in active_types
    ]


def transition(alert: AlertRecord, target: AlertStatus, at: datetime) -> AlertRecord:
    """Move an alert along Open -> Acknowledged -> Resolved."""
    if alert.status == target:
        return alert
    if target not in _TRANSITIONS[alert.status]:
        raise AlertTransitionError(
            f"Cannot move alert from {alert.status.value} to {target.value}"
        )
    if target == AlertStatus.acknowledged:
        return replace(alert, status=target, acknowledged_at=at)
    return replace(alert, status=target, resolved_at=at)


def created_ago(created_at: datetime, as_of: datetime) -> str:
    """Compact age label such as ``45m``, ``2h`` or ``3d``."""
    seconds = max(0, int((as_of - created_at).total_seconds()))
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


class _Tiered(Protocol):
    @property
    def risk_tier(self) -> RiskTier: ...


T = TypeVar("T", bound=_Tiered)


def triage_buckets(patients: Iterable[T]) -> dict[RiskTier, list[T]]:
    """Group patients by risk tier, High first."""
    buckets: dict[RiskTier, list[T]] = {tier: [] for tier in TIER_ORDER}
    for patient in patients:
        buckets[patient.risk_tier].append(patient)
    return buckets
