"""
Pydantic v2 schemas for the dashboard and realization reports.

Percentages are 0-100 with two decimals; money figures are integers.
"""

from __future__ import annotations

from pydantic import BaseModel


class KpiDashboardResponse(BaseModel):
    """Header KPI cards of the dashboard.

    Attributes:
        pagu_total: Sum of account ceilings for the year.
        realisasi_total: Sum disbursed via SP2D.
        sisa_pagu_total: ``pagu_total - realisasi_total``.
        komitmen_total: Sum committed by NPD lines.
        persen_realisasi: Absorption percentage.
        npd_total / npd_draft / npd_diajukan / npd_diverifikasi / npd_final:
            NPD counts by status.
        sp2d_total: Active SP2D count.
        sp2d_nilai: Sum of active SP2D amounts.
    """

    tahun: int
    pagu_total: int
    realisasi_total: int
    sisa_pagu_total: int
    komitmen_total: int
    persen_realisasi: float
    npd_total: int
    npd_draft: int
    npd_diajukan: int
    npd_diverifikasi: int
    npd_final: int
    sp2d_total: int
    sp2d_nilai: int


class RealisasiAccountItem(BaseModel):
    account_id: int
    kode: str
    uraian: str
    subkegiatan_kode: str | None = None
    pagu: int
    realisasi_tahun: int
    sisa_pagu: int
    nilai_komitmen: int
    persen_realisasi: float


class RealisasiSubkegiatanItem(BaseModel):
    subkegiatan_id: int
    kode: str
    nama: str
    pagu: int
    realisasi_tahun: int
    sisa_pagu: int
    persen_realisasi: float


class QuarterlyProgramItem(BaseModel):
    kode: str
    nama: str
    pagu: int
    realisasi: int
    persentase: float


class QuarterlyAccountItem(BaseModel):
    kode: str
    uraian: str
    pagu: int
    realisasi: int
    persentase: float


class QuarterlyReportResponse(BaseModel):
    """Triwulan (quarterly) report.

    Attributes:
        quarter: "Q1" to "Q4".
        npd_dibuat: NPDs of the year created within the quarter.
        npd_final: NPDs of the year finalized within the quarter.
        sp2d_total / sp2d_nilai: Active SP2Ds dated within the quarter.
        capaian_kinerja: Achievement of approved performance logs for the
            matching period (TW1..TW4), or None when there are none.
        top_programs: Ten programs with the largest ceiling.
        top_accounts: Ten accounts with the largest realization.
    """

    tahun: int
    quarter: str
    npd_dibuat: int
    npd_final: int
    sp2d_total: int
    sp2d_nilai: int
    capaian_kinerja: float | None = None
    top_programs: list[QuarterlyProgramItem]
    top_accounts: list[QuarterlyAccountItem]
