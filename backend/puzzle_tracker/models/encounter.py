from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from puzzle_tracker.models.base import Base

if TYPE_CHECKING:
    from puzzle_tracker.models.patient import Patient


class Encounter(Base):
    """Care-timeline entry: hospital stay, SNF stay or home program."""

    __tablename__ = "encounters"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    patient_id: Mapped[str] = mapped_column(
        ForeignKey("patients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    encounter_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Hospital|SNF|Home",
    )
    label: Mapped[str] = mapped_column(String(120), nullable=False)
    period: Mapped[str] = mapped_column(String(120), nullable=False)

    patient: Mapped["Patient"] = relationship(back_populates="encounters")

    def __repr__(self) -> str:
        return f"<Encounter(id={self.id}, type='{self.encounter_type}')>"
