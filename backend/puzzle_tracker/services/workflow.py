"""Write path for a single patient's alert and intervention history."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Optional

from puzzle_tracker.services.alerts import (
    AlertGenerator,
    AlertRules,
    derived_alert_id,
    new_alert_id,
    pending_alerts,
    reconcile,
    transition,
)
from puzzle_tracker.services.errors import NotFoundError
from puzzle_tracker.services.records import (
    AlertRecord,
    AlertStatus,
    AlertType,
    InterventionEntry,
    PatientRecord,
    RecordStore,
)

logger = logging.getLogger("puzzle_tracker.workflow")


class PatientWorkflow:
    """Alert sync, alert lifecycle moves and intervention logging.

    Every write reads the patient's current ``version`` and hands it back to
    the store, which rejects the write if another writer got there first.
    """

    def __init__(self, store: RecordStore, rules: Optional[AlertRules] = None):
        self.store = store
        self.rules = rules or AlertRules()

    async def _require_patient(self, patient_id: str) -> PatientRecord:
        patient = await self.store.get_patient(patient_id)
        if patient is None:
            raise NotFoundError("patient", patient_id)
        return patient

    async def sync_alerts(
        self,
        patient_id: str,
        as_of: Optional[datetime] = None,
    ) -> list[AlertRecord]:
        """Persist newly firing alerts and return the patient's active alerts."""
        as_of = as_of or datetime.now(timezone.utc)
        patient = await self._require_patient(patient_id)
        persisted = await self.store.list_alerts(patient_id)
        generated = AlertGenerator(self.rules, as_of).generate(patient)

        new_alerts = pending_alerts(generated, persisted)
        if new_alerts:
            await self.store.save_alerts(patient_id, new_alerts, patient.version)
            logger.info(
                "Persisted %d new alert(s) for patient %s", len(new_alerts), patient_id
            )
            persisted = [*persisted, *(replace(a, persisted=True) for a in new_alerts)]
        return reconcile(generated, persisted)

    async def acknowledge_alert(
        self,
        patient_id: str,
        alert_id: str,
        at: Optional[datetime] = None,
    ) -> AlertRecord:
        return await self._move_alert(patient_id, alert_id, AlertStatus.acknowledged, at)

    async def resolve_alert(
        self,
        patient_id: str,
        alert_id: str,
        at: Optional[datetime] = None,
    ) -> AlertRecord:
        return await self._move_alert(patient_id, alert_id, AlertStatus.resolved, at)

    async def _move_alert(
        self,
        patient_id: str,
        alert_id: str,
        target: AlertStatus,
        at: Optional[datetime],
    ) -> AlertRecord:
        at = at or datetime.now(timezone.utc)
        patient = await self._require_patient(patient_id)
        persisted = await self.store.list_alerts(patient_id)

        alert = next((a for a in persisted if a.id == alert_id), None)
        if alert is None:
            alert = self._alert_for_derived_id(patient, persisted, alert_id, target, at)

        moved = transition(alert, target, at)
        if moved is alert and alert.persisted:
            return alert
        await self.store.save_alerts(patient_id, [moved], patient.version)
        logger.info("Alert %s for patient %s is now %s", moved.id, patient_id, target.value)
        return replace(moved, persisted=True)

    def _alert_for_derived_id(
        self,
        patient: PatientRecord,
        persisted: list[AlertRecord],
        alert_id: str,
        target: AlertStatus,
        at: datetime,
    ) -> AlertRecord:
        """Map a derived alert id onto the alert a lifecycle move should act on.

        Alerts shown on read but never synced carry a derived id, and the first
        move persists them under a fresh id. Later moves by the same derived
        id land on that persisted alert: the active one of the type, or, for a
        repeated move, the one already in the target status for the same
        occurrence.
        """
        alert_type = next(
            (t for t in AlertType if derived_alert_id(patient.id, t) == alert_id),
            None,
        )
        if alert_type is None:
            raise NotFoundError("alert", alert_id)

        same_type = [a for a in persisted if a.alert_type == alert_type]
        active = next((a for a in reversed(same_type) if a.is_active), None)
        if active is not None:
            return active

        firing = next(
            (a for a in AlertGenerator(self.rules, at).generate(patient) if a.id == alert_id),
            None,
        )
        settled = next((a for a in reversed(same_type) if a.status == target), None)
        if settled is not None and (firing is None or firing.created_at == settled.created_at):
            return settled
        if firing is None:
            raise NotFoundError("alert", alert_id)
        return replace(firing, id=new_alert_id())

    async def log_intervention(
        self,
        patient_id: str,
        entry: InterventionEntry,
    ) -> PatientRecord:
        """Append an intervention; replaying the same id is a no-op."""
        patient = await self._require_patient(patient_id)
        if any(existing.id == entry.id for existing in patient.interventions):
            return patient
        await self.store.append_intervention(patient_id, entry, patient.version)
        logger.info("Logged intervention %s for patient %s", entry.id, patient_id)
        return await self._require_patient(patient_id)
