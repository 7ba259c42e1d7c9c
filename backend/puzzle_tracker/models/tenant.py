"""Tenant models: health systems, SNF chains and their facilities."""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from puzzle_tracker.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from puzzle_tracker.models.patient import Patient


class HealthSystem(Base, TimestampMixin):
    """Hospital system that discharges patients into the network."""

    __tablename__ = "health_systems"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    facilities: Mapped[list["Facility"]] = relationship(back_populates="health_system")

    def __repr__(self) -> str:
        return f"<HealthSystem(id={self.id!r})>"


class SnfChain(Base, TimestampMixin):
    """Operator grouping several skilled nursing facilities."""

    __tablename__ = "snf_chains"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    facilities: Mapped[list["Facility"]] = relationship(back_populates="chain")

    def __repr__(self) -> str:
        return f"<SnfChain(id={self.id!r})>"


class Facility(Base, TimestampMixin):
    """Skilled nursing facility.

    Only structural fields and raw engagement signals are stored; census,
    high-risk share and readmission rates are computed from the patient
    cohort on read.
    """

    __tablename__ = "facilities"

    id: Mapped[str] = mapped_column(String(40), primary_key=True)
    chain_id: Mapped[str] = mapped_column(
        ForeignKey("snf_chains.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    org_id: Mapped[str] = mapped_column(
        ForeignKey("health_systems.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str] = mapped_column(String(300), nullable=False, default="")
    bed_count: Mapped[int] = mapped_column(nullable=False, default=0)
    engagement_base: Mapped[int] = mapped_column(
        nullable=False,
        comment="Baseline engagement score before acknowledgement and risk adjustments",
    )
    last_ack_minutes: Mapped[int] = mapped_column(
        nullable=False,
        comment="Minutes the facility last took to acknowledge an escalation",
    )

    health_system: Mapped["HealthSystem"] = relationship(back_populates="facilities")
    chain: Mapped["SnfChain"] = relationship(back_populates="facilities")
    patients: Mapped[list["Patient"]] = relationship(back_populates="facility")

    __table_args__ = (
        Index("ix_facilities_org_chain", "org_id", "chain_id"),
    )

    def __repr__(self) -> str:
        return f"<Facility(id={self.id!r}, name={self.name!r})>"
