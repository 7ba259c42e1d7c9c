from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from puzzle_tracker.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from puzzle_tracker.models.alert import PatientAlert
    from puzzle_tracker.models.encounter import Encounter
    from puzzle_tracker.models.tenant import Facility


class Patient(Base, TimestampMixin):
    """Patient enrolled in the post-discharge program."""

    __tablename__ = "patients"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Roster order within the network",
    )
    facility_id: Mapped[str] = mapped_column(
        ForeignKey("facilities.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    mrn: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    payer: Mapped[str] = mapped_column(String(50), nullable=False)
    risk_score: Mapped[int] = mapped_column(Integer, nullable=False)
    at_home: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="True once discharged from the SNF into the 90-day home program",
    )
    hospice: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ama: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Left against medical advice",
    )
    next_appointment: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_contact_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    admitted_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    discharged_at: Mapped[date | None] = mapped_column(Date, nullable=True)
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Optimistic concurrency counter for history writes",
    )

    facility: Mapped["Facility"] = relationship(back_populates="patients")
    vitals: Mapped[list["VitalReading"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    encounters: Mapped[list["Encounter"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    tasks: Mapped[list["CareTask"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    interventions: Mapped[list["Intervention"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )
    alerts: Mapped[list["PatientAlert"]] = relationship(
        back_populates="patient", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_patients_facility_at_home", "facility_id", "at_home"),
    )

    def __repr__(self) -> str:
        return f"<Patient(id={self.id!r})>"


class VitalReading(Base):
    """One remote-monitoring vitals sample."""

    __tablename__ = "vital_readings"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    observed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    heart_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    respiratory_rate: Mapped[int] = mapped_column(Integer, nullable=False)
    spo2: Mapped[int] = mapped_column(Integer, nullable=False)

    patient: Mapped["Patient"] = relationship(back_populates="vitals")


class CareTask(Base, TimestampMixin):
    __tablename__ = "care_tasks"

    id: Mapped[str] = mapped_column(String(60), primary_key=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Open",
        comment="Open|Scheduled|Done",
    )

    patient: Mapped["Patient"] = relationship(back_populates="tasks")


class Intervention(Base, TimestampMixin):
    """Care-management action logged against a patient."""

    __tablename__ = "interventions"

    id: Mapped[str] = mapped_column(
        String(60),
        primary_key=True,
        comment="Client-supplied id; replays with the same id are ignored",
    )
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    performed_on: Mapped[date] = mapped_column(Date, nullable=False)
    intervention_type: Mapped[str] = mapped_column(String(50), nullable=False)
    performed_by: Mapped[str] = mapped_column(String(120), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")

    patient: Mapped["Patient"] = relationship(back_populates="interventions")
