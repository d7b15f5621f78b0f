"""RkaProgram model: top level of the budget hierarchy."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class RkaProgram(Base):
    """Budget program for one organization and fiscal year.

    Money figures are not stored here; they are aggregated from the
    accounts below on read (see ``ledger_service.aggregate``).

    Attributes:
        id: Primary key.
        organization_id: FK to Organization.
        fiscal_year: Budget year.
        kode: Program code, unique per organization and year.
        nama: Program name.
        status: "active" or "inactive".
    """

    __tablename__ = "rka_program"
    __table_args__ = (
        UniqueConstraint("organization_id", "fiscal_year", "kode", name="uq_program_org_year_kode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    kode = Column(String(50), nullable=False)
    nama = Column(String(500), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    organization = relationship("Organization", back_populates="programs", lazy="select")
    kegiatans = relationship(
        "RkaKegiatan",
        back_populates="program",
        order_by="RkaKegiatan.kode",
        lazy="select",
    )
