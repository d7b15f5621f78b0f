"""
Pydantic v2 schemas for the SP2D (payment warrant) module.

A created or updated SP2D returns its per-line realization shares so that
the caller can see exactly what was applied to each budget account.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class Sp2dCreate(BaseModel):
    """Payload for ``POST /api/sp2d``.

    Attributes:
        npd_id: Finalized NPD being paid.
        no_sp2d: Warrant number, unique per organization.
        tgl_sp2d: Warrant date; not earlier than the NPD's finalization date.
        nilai_cair: Disbursed amount (> 0).
        no_spm: Optional payment order number.
        catatan: Optional notes.
    """

    npd_id: int = Field(..., ge=1)
    no_sp2d: str = Field(..., min_length=1, max_length=100, description="Nomor SP2D.")
    tgl_sp2d: date = Field(..., description="Tanggal SP2D.")
    nilai_cair: int = Field(..., gt=0, description="Nilai cair (rupiah).")
    no_spm: str | None = Field(default=None, max_length=100, description="Nomor SPM.")
    catatan: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "npd_id": 12,
                "no_sp2d": "0012/SP2D/LS/2026",
                "tgl_sp2d": "2026-03-14",
                "nilai_cair": 8000000,
            }
        }
    )


class Sp2dUpdate(BaseModel):
    """Partial update; a new ``nilai_cair`` triggers full redistribution."""

    no_sp2d: str | None = Field(default=None, min_length=1, max_length=100)
    tgl_sp2d: date | None = None
    nilai_cair: int | None = Field(default=None, gt=0)
    no_spm: str | None = Field(default=None, max_length=100)
    catatan: str | None = None


class Sp2dDeleteRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Alasan penghapusan.")


class RealizationResponse(BaseModel):
    id: int
    npd_line_id: int | None
    account_id: int
    account_kode: str | None = None
    jumlah: int
    superseded_at: datetime | None = None


class Sp2dResponse(BaseModel):
    id: int
    npd_id: int
    npd_document_number: str | None = None
    no_spm: str | None = None
    no_sp2d: str
    tgl_sp2d: date
    nilai_cair: int
    catatan: str | None = None
    created_by: int
    deleted_at: datetime | None = None
    deleted_by: int | None = None
    delete_reason: str | None = None
    created_at: datetime | None = None
    realizations: list[RealizationResponse] = Field(default_factory=list)


class TablaSp2dResponse(BaseModel):
    rows: list[Sp2dResponse]
    total: int
    page: int
    page_size: int
