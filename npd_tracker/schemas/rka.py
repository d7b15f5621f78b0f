"""
Pydantic v2 schemas for the RKA (budget plan) hierarchy.

Program, kegiatan and sub-kegiatan nodes carry aggregated figures computed
from their accounts; accounts carry the stored ledger figures.
"""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class LedgerFigures(BaseModel):
    """Aggregated or stored money figures of one hierarchy node.

    Attributes:
        pagu: Annual ceiling.
        realisasi_tahun: Disbursed via SP2D.
        sisa_pagu: ``pagu - realisasi_tahun``.
        nilai_komitmen: Committed by NPD lines.
        sisa_komitmen: ``pagu - nilai_komitmen``.
        persen_realisasi: Absorption percentage (0-100).
    """

    pagu: int = 0
    realisasi_tahun: int = 0
    sisa_pagu: int = 0
    nilai_komitmen: int = 0
    sisa_komitmen: int = 0
    persen_realisasi: float = 0.0


class AccountResponse(BaseModel):
    """Single budget account with its ledger figures."""

    id: int
    subkegiatan_id: int
    fiscal_year: int
    kode: str
    uraian: str
    satuan: str | None = None
    volume: Decimal | None = None
    harga_satuan: int | None = None
    pagu: int
    realisasi_tahun: int
    sisa_pagu: int
    nilai_komitmen: int
    sisa_komitmen: int
    status: str

    model_config = ConfigDict(from_attributes=True)


class AccountCreate(BaseModel):
    """Payload for ``POST /api/rka/accounts``."""

    subkegiatan_id: int = Field(..., ge=1, description="ID sub kegiatan induk.")
    kode: str = Field(..., min_length=1, max_length=50, description="Kode rekening.")
    uraian: str = Field(..., min_length=1, max_length=500, description="Uraian rekening.")
    pagu: int = Field(..., ge=0, description="Pagu tahunan (rupiah).")
    satuan: str | None = Field(default=None, max_length=50)
    volume: Decimal | None = Field(default=None, ge=0)
    harga_satuan: int | None = Field(default=None, ge=0)


class AccountUpdate(BaseModel):
    """Partial update of a budget account.

    Changing ``pagu`` shifts ``sisa_pagu`` and ``sisa_komitmen`` by the same
    delta; it may not drop below what is already committed.
    """

    uraian: str | None = Field(default=None, min_length=1, max_length=500)
    pagu: int | None = Field(default=None, ge=0)
    status: str | None = Field(default=None, pattern="^(active|inactive)$")
    satuan: str | None = Field(default=None, max_length=50)
    volume: Decimal | None = Field(default=None, ge=0)
    harga_satuan: int | None = Field(default=None, ge=0)


class SubkegiatanNode(BaseModel):
    id: int
    kode: str
    nama: str
    fiscal_year: int
    figures: LedgerFigures
    accounts: list[AccountResponse] = Field(default_factory=list)


class KegiatanNode(BaseModel):
    id: int
    kode: str
    nama: str
    figures: LedgerFigures
    subkegiatans: list[SubkegiatanNode] = Field(default_factory=list)


class ProgramNode(BaseModel):
    id: int
    kode: str
    nama: str
    figures: LedgerFigures
    kegiatans: list[KegiatanNode] = Field(default_factory=list)


class RkaTreeResponse(BaseModel):
    """Whole budget tree of one organization for one fiscal year."""

    fiscal_year: int
    figures: LedgerFigures
    programs: list[ProgramNode] = Field(default_factory=list)


class SubkegiatanOption(BaseModel):
    """Flat sub-kegiatan entry for selection lists."""

    id: int
    kode: str
    nama: str
    fiscal_year: int
    kegiatan_kode: str | None = None
    program_kode: str | None = None
