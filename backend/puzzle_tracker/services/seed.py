"""Reference care network used for demos, local development and tests.

Three health systems, three SNF chains, four facilities and 26 patients.
Dates are laid out relative to ``as_of`` so that contact and movement signals
stay meaningful whenever the network is built.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta

from puzzle_tracker.services.metrics import round_half_up
from puzzle_tracker.services.records import (
    CareNetwork,
    CareTask,
    EncounterEntry,
    FacilityRecord,
    HealthSystemRecord,
    InterventionEntry,
    PatientRecord,
    SnfChainRecord,
    VitalSign,
)

HEALTH_SYSTEMS = (
    HealthSystemRecord(id="hs1", name="Corewell Health East"),
    HealthSystemRecord(id="hs2", name="OSF HealthCare"),
    HealthSystemRecord(id="hs3", name="Adventist Health - Maryland"),
)

SNF_CHAINS = (
    SnfChainRecord(id="c1", name="Prestige"),
    SnfChainRecord(id="c2", name="Majestic"),
    SnfChainRecord(id="c3", name="Stellar"),
)

FACILITIES = (
    FacilityRecord(
        id="f1",
        chain_id="c1",
        org_id="hs1",
        name="Prestige - Danville",
        address="Danville, IL",
        bed_count=110,
        engagement_base=82,
        last_ack_minutes=21,
    ),
    FacilityRecord(
        id="f2",
        chain_id="c1",
        org_id="hs2",
        name="Prestige - Pontiac",
        address="Pontiac, IL",
        bed_count=96,
        engagement_base=74,
        last_ack_minutes=47,
    ),
    FacilityRecord(
        id="f3",
        chain_id="c2",
        org_id="hs1",
        name="Majestic - Bloomington",
        address="Bloomington, IL",
        bed_count=120,
        engagement_base=65,
        last_ack_minutes=62,
    ),
    FacilityRecord(
        id="f4",
        chain_id="c3",
        org_id="hs3",
        name="Stellar - Scioto",
        address="Scioto, OH",
        bed_count=88,
        engagement_base=70,
        last_ack_minutes=33,
    ),
)

PATIENT_NAMES = (
    "Ruth Alvarez",
    "David Chen",
    "Khadija Khan",
    "Marcus Taylor",
    "Ana Patel",
    "George Ibrahim",
    "Salma Amin",
    "John Smith",
    "M. Rodriguez",
    "Henry Cho",
)
PAYERS = ("MA", "FFS", "Commercial", "Dual")
PATIENT_COUNT = 26
HOSPICE_INDEX = 7
AMA_INDEX = 12

SNF_LENGTH_OF_STAY_DAYS = 16
HOSPITAL_LENGTH_OF_STAY_DAYS = 6
CARE_MANAGER = "Puzzle CM"


def _vitals(as_of: datetime) -> tuple[VitalSign, ...]:
    last_reading = as_of - timedelta(hours=2)
    readings = []
    for day in range(14):
        readings.append(
            VitalSign(
                day=f"D{day + 1}",
                observed_at=last_reading - timedelta(days=13 - day),
                heart_rate=68 + round_half_up(math.sin(day / 2) * 5 + (5 if day > 9 else 0)),
                respiratory_rate=16 + round_half_up(math.cos(day / 3) * 2 + (2 if day > 10 else 0)),
                spo2=95 - (2 if day > 11 else 0) - (1 if day % 7 == 0 else 0),
            )
        )
    return tuple(readings)


def _encounters(
    snf_admit: date,
    discharged: date | None,
) -> tuple[EncounterEntry, ...]:
    hospital_admit = snf_admit - timedelta(days=HOSPITAL_LENGTH_OF_STAY_DAYS)
    entries = [
        EncounterEntry("Hospital", "Admit", hospital_admit.isoformat()),
        EncounterEntry("Hospital", "Discharge → SNF", snf_admit.isoformat()),
    ]
    if discharged is None:
        entries.append(EncounterEntry("SNF", "SNF LOS", f"{snf_admit.isoformat()} → present"))
        entries.append(EncounterEntry("SNF", "Current SNF", "in-facility"))
    else:
        entries.append(
            EncounterEntry("SNF", "SNF LOS", f"{snf_admit.isoformat()} → {discharged.isoformat()}")
        )
        entries.append(EncounterEntry("Home", "90-day program", f"since {discharged.isoformat()}"))
    return tuple(entries)


def _patient(index: int, as_of: datetime) -> PatientRecord:
    facility = FACILITIES[index % len(FACILITIES)]
    risk_score = 30 + ((index * 13) % 70)
    at_home = index % 3 == 0
    name = PATIENT_NAMES[index % len(PATIENT_NAMES)] + (" Jr." if index > 19 else "")

    # Earlier patients in the roster moved most recently.
    snf_admit = as_of.date() - timedelta(days=20 + index)
    discharged = snf_admit + timedelta(days=SNF_LENGTH_OF_STAY_DAYS) if at_home else None
    contacted_days_ago = 9 if index % 5 == 0 else 2

    interventions = [
        InterventionEntry(
            id=f"iv{index}-1",
            performed_on=snf_admit + timedelta(days=3),
            intervention_type="Education",
            performed_by=CARE_MANAGER,
            note="Low-sodium diet coaching",
        )
    ]
    if risk_score > 70:
        interventions.append(
            InterventionEntry(
                id=f"iv{index}-2",
                performed_on=as_of.date() - timedelta(days=2),
                intervention_type="Escalation",
                performed_by=CARE_MANAGER,
                note="SpO2 trending low; notified SNF nurse",
            )
        )

    return PatientRecord(
        id=f"p{index + 1}",
        name=name,
        mrn=f"MRN-{10000 + index}",
        facility_id=facility.id,
        payer=PAYERS[index % len(PAYERS)],
        risk_score=risk_score,
        at_home=at_home,
        hospice=index == HOSPICE_INDEX,
        ama=index == AMA_INDEX,
        next_appointment="PCP 7d" if at_home else ("Therapy" if index % 2 else "Specialist"),
        last_contact_at=as_of - timedelta(days=contacted_days_ago),
        admitted_at=snf_admit,
        discharged_at=discharged,
        vitals=_vitals(as_of),
        encounters=_encounters(snf_admit, discharged),
        tasks=(
            CareTask(id=f"t{index}-1", title="Med Rec", status="Done" if index % 2 else "Open"),
            CareTask(
                id=f"t{index}-2",
                title="PCP within 7 days",
                status="Open" if index % 3 else "Scheduled",
            ),
        ),
        interventions=tuple(interventions),
    )


def build_reference_network(as_of: datetime) -> CareNetwork:
    return CareNetwork(
        health_systems=HEALTH_SYSTEMS,
        chains=SNF_CHAINS,
        facilities=FACILITIES,
        patients=tuple(_patient(i, as_of) for i in range(PATIENT_COUNT)),
    )
