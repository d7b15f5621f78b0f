"""
Pydantic v2 schemas for performance indicator logs.

Targets and achievements are plain numbers in the indicator's own unit;
``persen_capaian`` is 0-100+ with two decimals.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class PerformanceCreate(BaseModel):
    """Payload for ``POST /api/performance``.

    Attributes:
        subkegiatan_id: Sub-kegiatan the indicator belongs to.
        indikator_nama: Indicator name.
        target: Planned output (>= 0).
        realisasi: Achieved output (>= 0, at most twice the target).
        satuan: Unit of measure.
        periode: Reporting period, e.g. "TW1".
    """

    subkegiatan_id: int = Field(..., ge=1)
    indikator_nama: str = Field(..., min_length=1, max_length=300, description="Nama indikator.")
    target: float = Field(..., ge=0, description="Target periode.")
    realisasi: float = Field(default=0, ge=0, description="Capaian periode.")
    satuan: str = Field(..., min_length=1, max_length=50, description="Satuan, mis. dokumen.")
    periode: str = Field(..., min_length=1, max_length=20, description="Periode, mis. TW1.")
    bukti_url: str | None = Field(default=None, max_length=500, description="Tautan bukti.")
    keterangan: str | None = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "subkegiatan_id": 3,
                "indikator_nama": "Jumlah laporan keuangan",
                "target": 3,
                "realisasi": 2,
                "satuan": "dokumen",
                "periode": "TW1",
            }
        }
    )


class PerformanceUpdate(BaseModel):
    """Partial update; only allowed while the log is a draft."""

    indikator_nama: str | None = Field(default=None, min_length=1, max_length=300)
    target: float | None = Field(default=None, ge=0)
    realisasi: float | None = Field(default=None, ge=0)
    satuan: str | None = Field(default=None, min_length=1, max_length=50)
    periode: str | None = Field(default=None, min_length=1, max_length=20)
    bukti_url: str | None = Field(default=None, max_length=500)
    keterangan: str | None = None


class PerformanceResponse(BaseModel):
    id: int
    subkegiatan_id: int
    indikator_nama: str
    target: float
    realisasi: float
    satuan: str
    periode: str
    bukti_url: str | None = None
    keterangan: str | None = None
    approval_status: str
    approved_by: int | None = None
    approved_at: datetime | None = None
    created_by: int
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class PerformanceIndicatorSummary(BaseModel):
    """Totals of one indicator across all its logs.

    Attributes:
        persen_capaian: ``total_realisasi / total_target`` as a percentage.
        persen_capaian_terakhir: Best single achievement against the
            average target.
    """

    indikator_nama: str
    total_target: float
    total_realisasi: float
    avg_target: float
    avg_realisasi: float
    latest_realisasi: float
    persen_capaian: float
    persen_capaian_terakhir: float
    jumlah_logs: int


class PerformanceDetailResponse(BaseModel):
    subkegiatan_id: int
    subkegiatan_kode: str
    subkegiatan_nama: str
    logs: list[PerformanceResponse]
    summary: list[PerformanceIndicatorSummary]


class PerformanceReturnRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500, description="Alasan pengembalian.")
