"""NpdLine model: one budget line item of an NPD."""

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class NpdLine(Base):
    """Amount requested from one budget account within an NPD.

    Attributes:
        id: Primary key.
        npd_id: FK to the owning NpdDocument.
        account_id: FK to RkaAccount.
        uraian: Line description.
        jumlah: Requested amount in integer currency units (> 0).
    """

    __tablename__ = "npd_line"

    id = Column(Integer, primary_key=True, autoincrement=True)
    npd_id = Column(Integer, ForeignKey("npd_document.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("rka_account.id"), nullable=False)
    uraian = Column(String(500), nullable=True)
    jumlah = Column(BigInteger, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    npd = relationship("NpdDocument", back_populates="lines", lazy="select")
    account = relationship("RkaAccount", lazy="select")
