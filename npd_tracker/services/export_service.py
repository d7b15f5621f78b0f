"""
Export service layer.

Coordinates data retrieval and format conversion for the export endpoints.
Reuses the read functions of the domain services so that query logic lives
in one place, then hands the data to ``ExcelExporter``, ``PdfExporter`` or
``render_npd_document``.

Supported exports
-----------------
- NPD document (PDF).
- Realization per budget account (Excel or PDF).
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from npd_tracker.exporters.excel_exporter import ExcelExporter
from npd_tracker.exporters.pdf_exporter import PdfExporter, render_npd_document
from npd_tracker.models.usuario import Usuario
from npd_tracker.services import npd_service, report_service

logger = logging.getLogger(__name__)

_REALISASI_HEADERS = [
    "Kode rekening",
    "Uraian",
    "Sub kegiatan",
    "Pagu",
    "Komitmen",
    "Realisasi",
    "Sisa pagu",
    "Realisasi %",
]


def _display_name(db: Session, user_id: int | None) -> str:
    if user_id is None:
        return ""
    user = db.get(Usuario, user_id)
    if user is None:
        return ""
    return user.nombre_completo or user.username


def _realisasi_data(
    db: Session, actor: Usuario, tahun: int, subkegiatan_id: int | None
) -> tuple[list[list[Any]], dict[str, Any], dict[str, str]]:
    items = report_service.get_realisasi_per_account(db, actor, tahun, subkegiatan_id)
    rows = [
        [
            it.kode,
            it.uraian,
            it.subkegiatan_kode or "",
            it.pagu,
            it.nilai_komitmen,
            it.realisasi_tahun,
            it.sisa_pagu,
            it.persen_realisasi,
        ]
        for it in items
    ]
    pagu = sum(it.pagu for it in items)
    realisasi = sum(it.realisasi_tahun for it in items)
    kpis = {
        "Total pagu": pagu,
        "Total realisasi": realisasi,
        "Sisa pagu": pagu - realisasi,
        "Realisasi %": f"{(realisasi / pagu * 100) if pagu else 0.0:.2f}%",
    }
    filters = {"Tahun anggaran": str(tahun)}
    if subkegiatan_id is not None:
        filters["Sub kegiatan ID"] = str(subkegiatan_id)
    return rows, kpis, filters


def export_npd_pdf(db: Session, actor: Usuario, npd_id: int) -> tuple[str, bytes]:
    """Print one NPD.

    Returns:
        ``(filename, pdf_bytes)``.

    Raises:
        PermissionDenied: Actor cannot read NPDs.
        NotFoundError: NPD missing or in another organization.
    """
    detail = npd_service.get_detalle(db, actor, npd_id)
    snapshot = {
        "document_number": detail.document_number,
        "title": detail.title,
        "jenis": detail.jenis,
        "tahun": detail.tahun,
        "status": detail.status,
        "subkegiatan": f"{detail.subkegiatan_kode or ''} {detail.subkegiatan_nama or ''}".strip(),
        "catatan": detail.catatan,
        "lines": [
            {"kode": ln.account_kode, "uraian": ln.uraian or ln.account_uraian, "jumlah": ln.jumlah}
            for ln in detail.lines
        ],
        "sp2ds": [
            {"no_sp2d": s.no_sp2d, "tgl_sp2d": s.tgl_sp2d.strftime("%d/%m/%Y"), "nilai_cair": s.nilai_cair}
            for s in detail.sp2ds
            if not s.deleted
        ],
        "total": detail.total,
        "total_cair": detail.total_cair,
        "signers": [
            ("Dibuat oleh", _display_name(db, detail.created_by)),
            ("Diverifikasi oleh", _display_name(db, detail.verified_by)),
            ("Disetujui oleh", _display_name(db, detail.finalized_by)),
        ],
    }
    file_bytes = render_npd_document(snapshot)
    logger.info("export_npd_pdf: npd=%s bytes=%d", detail.document_number, len(file_bytes))
    return f"{detail.document_number}.pdf", file_bytes


def export_realisasi_excel(
    db: Session, actor: Usuario, tahun: int, subkegiatan_id: int | None = None
) -> bytes:
    """Realization per account as an ``.xlsx`` workbook."""
    rows, kpis, filters = _realisasi_data(db, actor, tahun, subkegiatan_id)

    exporter = ExcelExporter(title=f"Realisasi Anggaran {tahun}", filters=filters)
    exporter.add_header(num_cols=len(_REALISASI_HEADERS))
    exporter.add_kpi_row(kpis)
    exporter.add_data_table(
        _REALISASI_HEADERS,
        rows,
        numeric_cols={3, 4, 5, 6},
        pct_cols={7},
    )
    file_bytes = exporter.finalize()

    logger.info("export_realisasi_excel: year=%d rows=%d bytes=%d", tahun, len(rows), len(file_bytes))
    return file_bytes


def export_realisasi_pdf(
    db: Session, actor: Usuario, tahun: int, subkegiatan_id: int | None = None
) -> bytes:
    """Realization per account as a landscape PDF."""
    rows, kpis, filters = _realisasi_data(db, actor, tahun, subkegiatan_id)

    exporter = PdfExporter(
        title=f"Realisasi Anggaran {tahun}",
        filters=filters,
        landscape_mode=True,
    )
    exporter.add_header()
    exporter.add_kpi_section(kpis)
    exporter.add_table(
        _REALISASI_HEADERS,
        rows,
        money_cols={3, 4, 5, 6},
        section_title="Realisasi per rekening",
    )
    file_bytes = exporter.build()

    logger.info("export_realisasi_pdf: year=%d rows=%d bytes=%d", tahun, len(rows), len(file_bytes))
    return file_bytes
