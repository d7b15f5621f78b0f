"""
Dashboard and realization report service layer.

All database access for the ``/api/dashboard`` endpoints lives here.

Design notes
------------
- ``func.coalesce(..., 0)`` guards against NULL sums on empty result sets.
- Absorption percentage is calculated in Python after aggregation to avoid
  division-by-zero inside the SQL engine.
- Figures come straight from the stored account ledger; SP2D counts and
  sums only include SP2Ds that are not soft-deleted.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from npd_tracker.exceptions import ValidationError
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.performance_log import PerformanceLog
from npd_tracker.models.rka_account import RkaAccount
from npd_tracker.models.rka_kegiatan import RkaKegiatan
from npd_tracker.models.rka_program import RkaProgram
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.models.sp2d_ref import Sp2dRef
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.dashboard import (
    KpiDashboardResponse,
    QuarterlyAccountItem,
    QuarterlyProgramItem,
    QuarterlyReportResponse,
    RealisasiAccountItem,
    RealisasiSubkegiatanItem,
)
from npd_tracker.services.ledger_service import safe_pct
from npd_tracker.utils.constants import (
    NPD_DIAJUKAN,
    NPD_DIVERIFIKASI,
    NPD_DRAFT,
    NPD_FINAL,
    PERFORMANCE_APPROVED,
    QUARTER_MONTHS,
    QUARTER_PERIODE,
)
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


def get_kpis(db: Session, actor: Usuario, tahun: int) -> KpiDashboardResponse:
    """Aggregate the dashboard header cards for one fiscal year.

    Args:
        db: Active SQLAlchemy session.
        actor: Authenticated user; scopes the figures to their organization.
        tahun: Fiscal year.

    Returns:
        A ``KpiDashboardResponse`` with ledger totals and document counts.
    """
    require_permission(actor.rol, "read", "reports")
    org_id = actor.organization_id

    ledger = (
        db.query(
            func.coalesce(func.sum(RkaAccount.pagu), 0).label("pagu"),
            func.coalesce(func.sum(RkaAccount.realisasi_tahun), 0).label("realisasi"),
            func.coalesce(func.sum(RkaAccount.sisa_pagu), 0).label("sisa"),
            func.coalesce(func.sum(RkaAccount.nilai_komitmen), 0).label("komitmen"),
        )
        .filter(RkaAccount.organization_id == org_id, RkaAccount.fiscal_year == tahun)
        .one()
    )

    por_status = dict(
        db.query(NpdDocument.status, func.count(NpdDocument.id))
        .filter(NpdDocument.organization_id == org_id, NpdDocument.tahun == tahun)
        .group_by(NpdDocument.status)
        .all()
    )

    sp2d = (
        db.query(
            func.count(Sp2dRef.id).label("n"),
            func.coalesce(func.sum(Sp2dRef.nilai_cair), 0).label("nilai"),
        )
        .join(NpdDocument, Sp2dRef.npd_id == NpdDocument.id)
        .filter(
            Sp2dRef.organization_id == org_id,
            Sp2dRef.deleted_at.is_(None),
            NpdDocument.tahun == tahun,
        )
        .one()
    )

    pagu = int(ledger.pagu)
    realisasi = int(ledger.realisasi)
    logger.debug("get_kpis: org=%d year=%d pagu=%d realisasi=%d", org_id, tahun, pagu, realisasi)
    return KpiDashboardResponse(
        tahun=tahun,
        pagu_total=pagu,
        realisasi_total=realisasi,
        sisa_pagu_total=int(ledger.sisa),
        komitmen_total=int(ledger.komitmen),
        persen_realisasi=safe_pct(realisasi, pagu),
        npd_total=sum(por_status.values()),
        npd_draft=por_status.get(NPD_DRAFT, 0),
        npd_diajukan=por_status.get(NPD_DIAJUKAN, 0),
        npd_diverifikasi=por_status.get(NPD_DIVERIFIKASI, 0),
        npd_final=por_status.get(NPD_FINAL, 0),
        sp2d_total=int(sp2d.n),
        sp2d_nilai=int(sp2d.nilai),
    )


def get_realisasi_per_account(
    db: Session,
    actor: Usuario,
    tahun: int,
    subkegiatan_id: int | None = None,
) -> list[RealisasiAccountItem]:
    """Realization per budget account, ordered by account code."""
    require_permission(actor.rol, "read", "realisasi")
    q = (
        db.query(RkaAccount, RkaSubkegiatan.kode)
        .join(RkaSubkegiatan, RkaAccount.subkegiatan_id == RkaSubkegiatan.id)
        .filter(
            RkaAccount.organization_id == actor.organization_id,
            RkaAccount.fiscal_year == tahun,
        )
    )
    if subkegiatan_id is not None:
        q = q.filter(RkaAccount.subkegiatan_id == subkegiatan_id)

    items = [
        RealisasiAccountItem(
            account_id=acc.id,
            kode=acc.kode,
            uraian=acc.uraian,
            subkegiatan_kode=sub_kode,
            pagu=acc.pagu,
            realisasi_tahun=acc.realisasi_tahun,
            sisa_pagu=acc.sisa_pagu,
            nilai_komitmen=acc.nilai_komitmen,
            persen_realisasi=safe_pct(acc.realisasi_tahun, acc.pagu),
        )
        for acc, sub_kode in q.order_by(RkaAccount.kode).all()
    ]
    logger.debug("get_realisasi_per_account: %d accounts returned", len(items))
    return items


def get_realisasi_per_subkegiatan(
    db: Session, actor: Usuario, tahun: int
) -> list[RealisasiSubkegiatanItem]:
    """Realization summed per sub-kegiatan, highest absorption first."""
    require_permission(actor.rol, "read", "realisasi")
    rows = (
        db.query(
            RkaSubkegiatan.id,
            RkaSubkegiatan.kode,
            RkaSubkegiatan.nama,
            func.coalesce(func.sum(RkaAccount.pagu), 0).label("pagu"),
            func.coalesce(func.sum(RkaAccount.realisasi_tahun), 0).label("realisasi"),
            func.coalesce(func.sum(RkaAccount.sisa_pagu), 0).label("sisa"),
        )
        .outerjoin(RkaAccount, RkaAccount.subkegiatan_id == RkaSubkegiatan.id)
        .filter(
            RkaSubkegiatan.organization_id == actor.organization_id,
            RkaSubkegiatan.fiscal_year == tahun,
        )
        .group_by(RkaSubkegiatan.id, RkaSubkegiatan.kode, RkaSubkegiatan.nama)
        .all()
    )

    items = [
        RealisasiSubkegiatanItem(
            subkegiatan_id=row.id,
            kode=row.kode,
            nama=row.nama,
            pagu=int(row.pagu),
            realisasi_tahun=int(row.realisasi),
            sisa_pagu=int(row.sisa),
            persen_realisasi=safe_pct(int(row.realisasi), int(row.pagu)),
        )
        for row in rows
    ]
    # Sort in Python so that equal percentages keep code order
    items.sort(key=lambda x: (-x.persen_realisasi, x.kode))
    logger.debug("get_realisasi_per_subkegiatan: %d rows returned", len(items))
    return items


def _quarter_bounds(tahun: int, quarter: str) -> tuple[date, date]:
    """First day of the quarter and first day after it."""
    first_month, last_month = QUARTER_MONTHS[quarter]
    start = date(tahun, first_month, 1)
    end = date(tahun + 1, 1, 1) if last_month == 12 else date(tahun, last_month + 1, 1)
    return start, end


def get_quarterly_report(
    db: Session, actor: Usuario, tahun: int, quarter: str
) -> QuarterlyReportResponse:
    """NPD, SP2D and performance figures of one triwulan.

    Document counts and SP2D sums are limited to the quarter; the top
    program and account lists use the year-to-date ledger.

    Raises:
        ValidationError: *quarter* is not Q1..Q4.
    """
    require_permission(actor.rol, "read", "reports")
    if quarter not in QUARTER_MONTHS:
        raise ValidationError(f"Quarter must be one of {', '.join(QUARTER_MONTHS)}.")
    org_id = actor.organization_id
    start, end = _quarter_bounds(tahun, quarter)
    start_dt = datetime.combine(start, datetime.min.time())
    end_dt = datetime.combine(end, datetime.min.time())

    npd_q = db.query(func.count(NpdDocument.id)).filter(
        NpdDocument.organization_id == org_id, NpdDocument.tahun == tahun
    )
    npd_dibuat = npd_q.filter(
        NpdDocument.created_at >= start_dt, NpdDocument.created_at < end_dt
    ).scalar()
    npd_final = npd_q.filter(
        NpdDocument.status == NPD_FINAL,
        NpdDocument.finalized_at >= start_dt,
        NpdDocument.finalized_at < end_dt,
    ).scalar()

    sp2d = (
        db.query(
            func.count(Sp2dRef.id).label("n"),
            func.coalesce(func.sum(Sp2dRef.nilai_cair), 0).label("nilai"),
        )
        .join(NpdDocument, Sp2dRef.npd_id == NpdDocument.id)
        .filter(
            Sp2dRef.organization_id == org_id,
            Sp2dRef.deleted_at.is_(None),
            NpdDocument.tahun == tahun,
            Sp2dRef.tgl_sp2d >= start,
            Sp2dRef.tgl_sp2d < end,
        )
        .one()
    )

    kinerja = (
        db.query(
            func.coalesce(func.sum(PerformanceLog.target), 0).label("target"),
            func.coalesce(func.sum(PerformanceLog.realisasi), 0).label("realisasi"),
            func.count(PerformanceLog.id).label("n"),
        )
        .join(RkaSubkegiatan, PerformanceLog.subkegiatan_id == RkaSubkegiatan.id)
        .filter(
            PerformanceLog.organization_id == org_id,
            PerformanceLog.approval_status == PERFORMANCE_APPROVED,
            PerformanceLog.periode == QUARTER_PERIODE[quarter],
            RkaSubkegiatan.fiscal_year == tahun,
        )
        .one()
    )
    capaian = (
        safe_pct(float(kinerja.realisasi), float(kinerja.target)) if kinerja.n else None
    )

    program_rows = (
        db.query(
            RkaProgram.kode,
            RkaProgram.nama,
            func.coalesce(func.sum(RkaAccount.pagu), 0).label("pagu"),
            func.coalesce(func.sum(RkaAccount.realisasi_tahun), 0).label("realisasi"),
        )
        .outerjoin(RkaKegiatan, RkaKegiatan.program_id == RkaProgram.id)
        .outerjoin(RkaSubkegiatan, RkaSubkegiatan.kegiatan_id == RkaKegiatan.id)
        .outerjoin(RkaAccount, RkaAccount.subkegiatan_id == RkaSubkegiatan.id)
        .filter(RkaProgram.organization_id == org_id, RkaProgram.fiscal_year == tahun)
        .group_by(RkaProgram.id, RkaProgram.kode, RkaProgram.nama)
        .order_by(func.coalesce(func.sum(RkaAccount.pagu), 0).desc(), RkaProgram.kode)
        .limit(10)
        .all()
    )
    account_rows = (
        db.query(RkaAccount)
        .filter(RkaAccount.organization_id == org_id, RkaAccount.fiscal_year == tahun)
        .order_by(RkaAccount.realisasi_tahun.desc(), RkaAccount.kode)
        .limit(10)
        .all()
    )

    logger.debug(
        "get_quarterly_report: org=%d %s-%d npd=%d sp2d=%d",
        org_id, quarter, tahun, npd_dibuat, sp2d.n,
    )
    return QuarterlyReportResponse(
        tahun=tahun,
        quarter=quarter,
        npd_dibuat=npd_dibuat,
        npd_final=npd_final,
        sp2d_total=int(sp2d.n),
        sp2d_nilai=int(sp2d.nilai),
        capaian_kinerja=capaian,
        top_programs=[
            QuarterlyProgramItem(
                kode=row.kode,
                nama=row.nama,
                pagu=int(row.pagu),
                realisasi=int(row.realisasi),
                persentase=safe_pct(int(row.realisasi), int(row.pagu)),
            )
            for row in program_rows
        ],
        top_accounts=[
            QuarterlyAccountItem(
                kode=acc.kode,
                uraian=acc.uraian,
                pagu=acc.pagu,
                realisasi=acc.realisasi_tahun,
                persentase=safe_pct(acc.realisasi_tahun, acc.pagu),
            )
            for acc in account_rows
        ],
    )
