"""Sp2dRef model: payment warrant recorded against a finalized NPD."""

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
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


class Sp2dRef(Base):
    """Surat Perintah Pencairan Dana: an actual disbursement.

    Soft-deleted rows keep their realizations for audit; a deleted SP2D has
    ``deleted_at`` set and contributes nothing to the ledger.

    Attributes:
        id: Primary key.
        organization_id: FK to Organization.
        npd_id: FK to the finalized NpdDocument.
        no_spm: Optional payment order number (SPM).
        no_sp2d: Warrant number, unique per organization.
        tgl_sp2d: Warrant date.
        nilai_cair: Disbursed amount in integer currency units.
        catatan: Notes.
        created_by: FK to Usuario.
        deleted_at / deleted_by / delete_reason: Soft-delete metadata.
    """

    __tablename__ = "sp2d_ref"
    __table_args__ = (
        UniqueConstraint("organization_id", "no_sp2d", name="uq_sp2d_org_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    npd_id = Column(Integer, ForeignKey("npd_document.id"), nullable=False)
    no_spm = Column(String(100), nullable=True)
    no_sp2d = Column(String(100), nullable=False)
    tgl_sp2d = Column(Date, nullable=False)
    nilai_cair = Column(BigInteger, nullable=False)
    catatan = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("usuario.id"), nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Integer, ForeignKey("usuario.id"), nullable=True)
    delete_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    npd = relationship("NpdDocument", back_populates="sp2ds", lazy="select")
    realizations = relationship(
        "Realization",
        back_populates="sp2d",
        order_by="Realization.id",
        lazy="select",
    )
