"""RkaAccount model: leaf budget account holding the ledger figures."""

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from npd_tracker.database import Base


class RkaAccount(Base):
    """Leaf budget line (akun belanja) under a sub-kegiatan.

    Two ledgers are kept side by side, both in integer currency units:

    - disbursed: ``realisasi_tahun`` is moved only by SP2D realizations and
      ``sisa_pagu + realisasi_tahun == pagu`` always holds.
    - committed: ``nilai_komitmen`` is moved by NPD line add/update/remove
      and ``sisa_komitmen + nilai_komitmen == pagu`` always holds.

    Attributes:
        id: Primary key.
        subkegiatan_id: FK to RkaSubkegiatan.
        organization_id: FK to Organization.
        fiscal_year: Budget year.
        kode: Account code, e.g. "5.1.02.01.01.0024"; unique per org and year.
        uraian: Account description.
        satuan: Unit of measure (optional).
        volume: Planned volume (optional).
        harga_satuan: Unit price (optional).
        pagu: Annual ceiling.
        realisasi_tahun: Amount disbursed this year via SP2D.
        sisa_pagu: ``pagu - realisasi_tahun``.
        nilai_komitmen: Amount committed by NPD lines.
        sisa_komitmen: ``pagu - nilai_komitmen``; the headroom for new lines.
        status: "active" or "inactive".
    """

    __tablename__ = "rka_account"
    __table_args__ = (
        UniqueConstraint("organization_id", "fiscal_year", "kode", name="uq_account_org_year_kode"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subkegiatan_id = Column(Integer, ForeignKey("rka_subkegiatan.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organization.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    kode = Column(String(50), nullable=False)
    uraian = Column(String(500), nullable=False)
    satuan = Column(String(50), nullable=True)
    volume = Column(Numeric(15, 2), nullable=True)
    harga_satuan = Column(BigInteger, nullable=True)
    pagu = Column(BigInteger, default=0, nullable=False)
    realisasi_tahun = Column(BigInteger, default=0, nullable=False)
    sisa_pagu = Column(BigInteger, default=0, nullable=False)
    nilai_komitmen = Column(BigInteger, default=0, nullable=False)
    sisa_komitmen = Column(BigInteger, default=0, nullable=False)
    status = Column(String(20), default="active", nullable=False)
    # "active", "inactive"
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    subkegiatan = relationship("RkaSubkegiatan", back_populates="accounts", lazy="select")
