"""RkaKegiatan model: activity under a program."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class RkaKegiatan(Base):
    """Activity (kegiatan) belonging to an ``RkaProgram``.

    Attributes:
        id: Primary key.
        program_id: FK to RkaProgram.
        organization_id: FK to Organization (denormalised for tenant filters).
        fiscal_year: Budget year.
        kode: Activity code, unique within its program.
        nama: Activity name.
        status: "active" or "inactive".
    """

    __tablename__ = "rka_kegiatan"
    __table_args__ = (
        UniqueConstraint("program_id", "kode", name="uq_kegiatan_program_kode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    program_id = Column(Integer, ForeignKey("rka_program.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    kode = Column(String(50), nullable=False)
    nama = Column(String(500), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    program = relationship("RkaProgram", back_populates="kegiatans", lazy="select")
    subkegiatans = relationship(
        "RkaSubkegiatan",
        back_populates="kegiatan",
        order_by="RkaSubkegiatan.kode",
        lazy="select",
    )
