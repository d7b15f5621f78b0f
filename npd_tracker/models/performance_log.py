"""PerformanceLog model: output indicator reported against a sub-kegiatan."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class PerformanceLog(Base):
    """One period's target and achievement of a performance indicator.

    Logs follow their own approval flow (draft -> submitted -> approved),
    independent of the NPD workflow.

    Attributes:
        id: Primary key.
        subkegiatan_id: FK to RkaSubkegiatan.
        organization_id: FK to Organization.
        indikator_nama: Indicator name, e.g. "Jumlah laporan keuangan".
        target: Planned output for the period.
        realisasi: Achieved output; at most twice the target.
        satuan: Unit of measure ("dokumen", "orang", "%").
        periode: Reporting period, e.g. "TW1" or "Bulan 3".
        bukti_url: Link to the evidence file.
        keterangan: Free-text remarks.
        approval_status: "draft", "submitted" or "approved".
        approved_by: FK to Usuario who approved the log.
        created_by: FK to Usuario who created the log.
    """

    __tablename__ = "performance_log"
    __table_args__ = (
        Index("ix_performance_log_subkegiatan", "subkegiatan_id"),
        Index("ix_performance_log_org_periode", "organization_id", "periode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subkegiatan_id = Column(Integer, ForeignKey("rka_subkegiatan.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    indikator_nama = Column(String(300), nullable=False)
    target = Column(Numeric(15, 2), nullable=False)
    realisasi = Column(Numeric(15, 2), default=0, nullable=False)
    satuan = Column(String(50), nullable=False)
    periode = Column(String(20), nullable=False)
    bukti_url = Column(String(500), nullable=True)
    keterangan = Column(Text, nullable=True)
    approval_status = Column(String(20), default="draft", nullable=False)
    approved_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("usuario.id"), nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    subkegiatan = relationship("RkaSubkegiatan", lazy="select")
