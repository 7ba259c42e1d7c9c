"""Persisted alert lifecycle state."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from puzzle_tracker.models.base import Base, utcnow

if TYPE_CHECKING:
    from puzzle_tracker.models.patient import Patient


class PatientAlert(Base):
    """Generated patient alert that has entered the Open/Acknowledged/Resolved lifecycle."""

    __tablename__ = "patient_alerts"

    id: Mapped[str] = mapped_column(String(60), primary_key=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    alert_type: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        comment="RPM abnormal|Missed weekly call",
    )
    severity: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="High|Medium",
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="Open",
        comment="Open|Acknowledged|Resolved",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the alerting signal first fired",
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )

    patient: Mapped["Patient"] = relationship(back_populates="alerts")

    __table_args__ = (
        Index("ix_patient_alerts_patient_status", "patient_id", "status"),
        Index("ix_patient_alerts_patient_type", "patient_id", "alert_type"),
    )

    def __repr__(self) -> str:
        return f"<PatientAlert(id={self.id!r}, status={self.status!r})>"
