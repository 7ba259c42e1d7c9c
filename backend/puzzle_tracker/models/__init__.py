from puzzle_tracker.models.alert import PatientAlert
from puzzle_tracker.models.base import Base, TimestampMixin, model_to_dict
from puzzle_tracker.models.encounter import Encounter
from puzzle_tracker.models.patient import CareTask, Intervention, Patient, VitalReading
from puzzle_tracker.models.tenant import Facility, HealthSystem, SnfChain

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "model_to_dict",
    # Tenants
    "HealthSystem",
    "SnfChain",
    "Facility",
    # Patients
    "Patient",
    "VitalReading",
    "Encounter",
    "CareTask",
    "Intervention",
    "PatientAlert",
]
