"""NpdDocument model: disbursement request moving through the approval workflow."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class NpdDocument(Base):
    """Nota Pencairan Dana: a request to disburse funds against a sub-kegiatan.

    Status moves draft -> diajukan -> diverifikasi -> final, with rejection
    edges back to draft from diajukan and diverifikasi.  Documents are never
    physically deleted.

    Attributes:
        id: Primary key.
        organization_id: FK to Organization.
        subkegiatan_id: FK to RkaSubkegiatan.
        document_number: "NPD-{tahun}-{seq:03d}", unique per organization.
        title: Short title.
        description: Free text description.
        jenis: "UP", "GU", "TU" or "LS".
        tahun: Fiscal year.
        status: Workflow status.
        catatan: Notes; rejections prepend a "DITOLAK" block.
        created_by: FK to Usuario who created the document.
        verified_by / verified_at: Verification metadata.
        finalized_by / finalized_at: Finalization metadata.
        is_locked / locked_by / locked_at / lock_reason / lock_expires_at:
            Advisory, time-boxed lock.
    """

    __tablename__ = "npd_document"
    __table_args__ = (
        UniqueConstraint("organization_id", "document_number", name="uq_npd_org_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    subkegiatan_id = Column(Integer, ForeignKey("rka_subkegiatan.id"), nullable=False)
    document_number = Column(String(30), nullable=False)
    title = Column(String(300), nullable=False)
    description = Column(Text, nullable=True)
    jenis = Column(String(5), nullable=False)  # "UP", "GU", "TU", "LS"
    tahun = Column(Integer, nullable=False)
    status = Column(String(20), default="draft", nullable=False)
    # "draft", "diajukan", "diverifikasi", "final"
    catatan = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("usuario.id"), nullable=False)
    verified_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    verified_at = Column(DateTime, nullable=True)
    finalized_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    finalized_at = Column(DateTime, nullable=True)
    is_locked = Column(Boolean, default=False, nullable=False)
    locked_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    locked_at = Column(DateTime, nullable=True)
    lock_reason = Column(String(500), nullable=True)
    lock_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    subkegiatan = relationship("RkaSubkegiatan", back_populates="npds", lazy="select")
    creator = relationship("Usuario", foreign_keys=[created_by], lazy="select")
    lines = relationship(
        "NpdLine",
        back_populates="npd",
        order_by="NpdLine.id",
        lazy="select",
        cascade="all, delete-orphan",
    )
    sp2ds = relationship(
        "Sp2dRef",
        back_populates="npd",
        order_by="Sp2dRef.id",
        lazy="select",
    )
