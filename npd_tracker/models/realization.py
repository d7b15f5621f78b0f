"""Realization model: one SP2D's exact share on one NPD line."""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class Realization(Base):
    """Share of an SP2D applied to one budget account.

    The row records exactly what was added to ``realisasi_tahun``; every
    reversal replays ``jumlah`` from here.  An SP2D edit sets
    ``superseded_at`` on the old rows and writes new ones.

    Attributes:
        id: Primary key.
        sp2d_id: FK to Sp2dRef.
        npd_id: FK to NpdDocument.
        npd_line_id: FK to the NpdLine the share was computed from.
        account_id: FK to RkaAccount that received the share.
        organization_id: FK to Organization.
        jumlah: Share in integer currency units.
        superseded_at: Set when a later SP2D edit replaced this row.
    """

    __tablename__ = "realization"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sp2d_id = Column(Integer, ForeignKey("sp2d_ref.id"), nullable=False)
    npd_id = Column(Integer, ForeignKey("npd_document.id"), nullable=False)
    npd_line_id = Column(Integer, ForeignKey("npd_line.id"), nullable=True)
    account_id = Column(Integer, ForeignKey("rka_account.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    jumlah = Column(BigInteger, nullable=False)
    superseded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    # Relationships
    sp2d = relationship("Sp2dRef", back_populates="realizations", lazy="select")
    account = relationship("RkaAccount", lazy="select")
