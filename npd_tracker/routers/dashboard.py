"""
Dashboard and realization report router.

Mounts under ``/api/dashboard`` (prefix set in ``main.py``).

Endpoints
---------
GET /kpis                     - Header cards: ledger totals and document counts.
GET /realisasi/rekening       - Realization per budget account.
GET /realisasi/subkegiatan    - Realization per sub-kegiatan, highest first.
GET /triwulan                 - Quarterly NPD, SP2D and performance report.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.dashboard import (
    KpiDashboardResponse,
    QuarterlyReportResponse,
    RealisasiAccountItem,
    RealisasiSubkegiatanItem,
)
from npd_tracker.services import report_service
from npd_tracker.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Dashboard"])

_TahunQuery = Annotated[int, Query(description="Tahun anggaran, mis. 2026.", ge=2000, le=2100)]


@router.get(
    "/kpis",
    response_model=KpiDashboardResponse,
    summary="KPI dashboard",
    description=(
        "Total pagu, komitmen, realisasi dan sisa pagu untuk satu tahun anggaran, "
        "beserta jumlah NPD per status dan jumlah SP2D."
    ),
    responses={
        200: {"description": "Agregat berhasil dihitung."},
        401: {"description": "Token JWT tidak ada atau tidak valid."},
    },
)
def get_kpis(
    tahun: _TahunQuery,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> KpiDashboardResponse:
    logger.debug("GET /dashboard/kpis tahun=%d", tahun)
    return report_service.get_kpis(db, current_user, tahun)


@router.get(
    "/realisasi/rekening",
    response_model=list[RealisasiAccountItem],
    summary="Realisasi per rekening",
)
def get_realisasi_per_account(
    tahun: _TahunQuery,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    subkegiatan_id: Annotated[int | None, Query(ge=1)] = None,
) -> list[RealisasiAccountItem]:
    return report_service.get_realisasi_per_account(db, current_user, tahun, subkegiatan_id)


@router.get(
    "/realisasi/subkegiatan",
    response_model=list[RealisasiSubkegiatanItem],
    summary="Realisasi per sub kegiatan",
    description="Diurutkan dari persentase realisasi tertinggi.",
)
def get_realisasi_per_subkegiatan(
    tahun: _TahunQuery,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> list[RealisasiSubkegiatanItem]:
    return report_service.get_realisasi_per_subkegiatan(db, current_user, tahun)


@router.get(
    "/triwulan",
    response_model=QuarterlyReportResponse,
    summary="Laporan triwulan",
    description=(
        "Jumlah NPD dibuat dan difinalkan, SP2D dan nilai cair dalam triwulan, "
        "capaian kinerja yang disetujui, serta 10 program dan rekening teratas."
    ),
    responses={422: {"description": "Triwulan bukan Q1-Q4."}},
)
def get_quarterly_report(
    tahun: _TahunQuery,
    quarter: Annotated[str, Query(description="Triwulan: Q1, Q2, Q3 atau Q4.")],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> QuarterlyReportResponse:
    logger.debug("GET /dashboard/triwulan tahun=%d quarter=%s", tahun, quarter)
    return report_service.get_quarterly_report(db, current_user, tahun, quarter)
