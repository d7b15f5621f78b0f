"""
Pydantic v2 schemas for the NPD (Nota Pencairan Dana) module.

These models define the JSON shapes for all endpoints under ``/api/npd``:
document creation and editing, line items, workflow actions, the advisory
lock and the verification checklist.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Input payloads
# ---------------------------------------------------------------------------


class NpdCreate(BaseModel):
    """Payload for ``POST /api/npd``.

    Attributes:
        subkegiatan_id: Sub-kegiatan the NPD is charged to.
        jenis: "UP", "GU", "TU" or "LS".
        tahun: Fiscal year; must match the sub-kegiatan's year.
        title: Short title.
        description: Optional description.
        catatan: Optional notes.
    """

    subkegiatan_id: int = Field(..., ge=1, description="ID sub kegiatan.")
    jenis: str = Field(..., pattern="^(UP|GU|TU|LS)$", description="Jenis NPD.")
    tahun: int = Field(..., ge=2000, le=2100, description="Tahun anggaran.")
    title: str = Field(..., min_length=1, max_length=300, description="Judul NPD.")
    description: str | None = Field(default=None, description="Deskripsi.")
    catatan: str | None = Field(default=None, description="Catatan.")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "subkegiatan_id": 3,
                "jenis": "LS",
                "tahun": 2026,
                "title": "Belanja ATK Triwulan I",
                "description": "Pengadaan alat tulis kantor",
            }
        }
    )


class NpdUpdate(BaseModel):
    """Partial update of an NPD header; only sent fields are written."""

    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    catatan: str | None = None


class NpdLineCreate(BaseModel):
    account_id: int = Field(..., ge=1, description="ID rekening belanja.")
    uraian: str | None = Field(default=None, max_length=500, description="Uraian.")
    jumlah: int = Field(..., gt=0, description="Jumlah (rupiah).")


class NpdLineUpdate(BaseModel):
    jumlah: int = Field(..., gt=0, description="Jumlah baru (rupiah).")
    uraian: str | None = Field(default=None, max_length=500)


class NpdVerifyRequest(BaseModel):
    notes: str | None = Field(default=None, description="Catatan verifikasi.")


class NpdRejectRequest(BaseModel):
    reason: str = Field(..., min_length=1, description="Alasan penolakan.")


class NpdLockRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)
    ttl_minutes: int | None = Field(default=None, ge=1, le=24 * 60)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class NpdLineResponse(BaseModel):
    """Line item with its account labels and current headroom."""

    id: int
    account_id: int
    account_kode: str | None = None
    account_uraian: str | None = None
    account_sisa_komitmen: int | None = None
    uraian: str | None = None
    jumlah: int


class NpdSp2dSummary(BaseModel):
    id: int
    no_sp2d: str
    tgl_sp2d: date
    nilai_cair: int
    deleted: bool


class NpdResponse(BaseModel):
    """Full NPD detail including lines and disbursements.

    Attributes:
        total: Sum of line amounts.
        total_cair: Sum of non-deleted SP2D amounts.
        sisa_cair: ``total - total_cair``; the cap for the next SP2D.
    """

    id: int
    document_number: str
    title: str
    description: str | None = None
    jenis: str
    tahun: int
    status: str
    catatan: str | None = None
    subkegiatan_id: int
    subkegiatan_kode: str | None = None
    subkegiatan_nama: str | None = None
    created_by: int
    verified_by: int | None = None
    verified_at: datetime | None = None
    finalized_by: int | None = None
    finalized_at: datetime | None = None
    is_locked: bool = False
    locked_by: int | None = None
    lock_reason: str | None = None
    lock_expires_at: datetime | None = None
    total: int = 0
    total_cair: int = 0
    sisa_cair: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    lines: list[NpdLineResponse] = Field(default_factory=list)
    sp2ds: list[NpdSp2dSummary] = Field(default_factory=list)


class NpdListItem(BaseModel):
    id: int
    document_number: str
    title: str
    jenis: str
    tahun: int
    status: str
    subkegiatan_id: int
    total: int
    line_count: int
    is_locked: bool
    created_at: datetime | None = None


class TablaNpdResponse(BaseModel):
    rows: list[NpdListItem]
    total: int
    page: int
    page_size: int


class NpdSummaryResponse(BaseModel):
    """Counts by status plus total and average value.

    Attributes:
        total: Number of NPDs matching the filters.
        por_status: ``{status: count}`` for every status.
        total_nilai: Sum of line totals.
        rata_rata: Average NPD value (integer division).
    """

    total: int
    por_status: dict[str, int]
    total_nilai: int
    rata_rata: int


# ---------------------------------------------------------------------------
# Verification checklist
# ---------------------------------------------------------------------------


class ChecklistTemplateItem(BaseModel):
    id: str
    label: str
    required: bool


class ChecklistItemResult(BaseModel):
    item_id: str = Field(..., min_length=1)
    checked: bool = False
    notes: str | None = None


class ChecklistSaveRequest(BaseModel):
    results: list[ChecklistItemResult]
    status: str = Field(
        default="in_progress",
        pattern="^(pending|in_progress|completed|rejected)$",
    )
    notes: str | None = None


class ChecklistValidation(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class ChecklistResponse(BaseModel):
    id: int
    npd_id: int
    checklist_type: str
    results: list[ChecklistItemResult]
    status: str
    notes: str | None = None
    verified_by: int | None = None
    verified_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)
