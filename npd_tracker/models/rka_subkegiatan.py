"""RkaSubkegiatan model: sub-activity that NPDs are raised against."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class RkaSubkegiatan(Base):
    """Sub-activity (sub-kegiatan) belonging to an ``RkaKegiatan``.

    An NPD is always raised for exactly one sub-kegiatan and its
    ``tahun`` must equal ``fiscal_year`` here.

    Attributes:
        id: Primary key.
        kegiatan_id: FK to RkaKegiatan.
        organization_id: FK to Organization.
        fiscal_year: Budget year.
        kode: Sub-activity code, unique within its kegiatan.
        nama: Sub-activity name.
        status: "active" or "inactive".
    """

    __tablename__ = "rka_subkegiatan"
    __table_args__ = (
        UniqueConstraint("kegiatan_id", "kode", name="uq_subkegiatan_kegiatan_kode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kegiatan_id = Column(Integer, ForeignKey("rka_kegiatan.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    kode = Column(String(50), nullable=False)
    nama = Column(String(500), nullable=False)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    kegiatan = relationship("RkaKegiatan", back_populates="subkegiatans", lazy="select")
    accounts = relationship(
        "RkaAccount",
        back_populates="subkegiatan",
        order_by="RkaAccount.kode",
        lazy="select",
    )
    npds = relationship("NpdDocument", back_populates="subkegiatan", lazy="select")
