"""
Export router.

Mounts under ``/api/exportar`` (prefix set in ``main.py``).

All endpoints require a valid JWT token and stream the generated file with
an ``attachment; filename=...`` ``Content-Disposition`` header.

Endpoints
---------
GET /npd/{npd_id}/pdf   - Printable NPD document.
GET /realisasi/excel    - Realization per account workbook.
GET /realisasi/pdf      - Realization per account PDF.
"""

from __future__ import annotations

import io
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.exceptions import DomainError
from npd_tracker.models.usuario import Usuario
from npd_tracker.services import export_service
from npd_tracker.services.auth_service import get_current_user
from npd_tracker.utils.dates import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ekspor"])

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
_PDF_MEDIA_TYPE = "application/pdf"


def _make_filename(base: str, ext: str) -> str:
    """``("realisasi_2026", "xlsx")`` -> ``"npd_tracker_realisasi_2026_2026-03-14.xlsx"``."""
    today = utcnow().date().isoformat()
    return f"npd_tracker_{base.replace(' ', '_').lower()}_{today}.{ext}"


def _stream(file_bytes: bytes, filename: str, media_type: str) -> StreamingResponse:
    headers = {
        "Content-Disposition": f'attachment; filename="{filename}"',
        "Content-Length": str(len(file_bytes)),
    }
    return StreamingResponse(io.BytesIO(file_bytes), media_type=media_type, headers=headers)


def _generation_failed(kind: str, exc: Exception) -> HTTPException:
    logger.exception("%s export failed: %s", kind, exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Gagal membuat berkas {kind}: {exc}",
    )


@router.get(
    "/npd/{npd_id}/pdf",
    summary="Cetak NPD (PDF)",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Berkas PDF NPD.", "content": {_PDF_MEDIA_TYPE: {}}},
        404: {"description": "NPD tidak ditemukan."},
        500: {"description": "Gagal membuat berkas."},
    },
)
def export_npd_pdf(
    npd_id: Annotated[int, Path(ge=1)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> StreamingResponse:
    logger.info("GET /exportar/npd/%d/pdf by user=%d", npd_id, current_user.id)
    try:
        filename, file_bytes = export_service.export_npd_pdf(db, current_user, npd_id)
    except DomainError:
        raise
    except Exception as exc:
        raise _generation_failed("PDF", exc) from exc
    return _stream(file_bytes, filename, _PDF_MEDIA_TYPE)


@router.get(
    "/realisasi/excel",
    summary="Ekspor realisasi ke Excel (.xlsx)",
    description="Realisasi per rekening dengan ringkasan pagu, realisasi dan sisa.",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Berkas Excel.", "content": {_XLSX_MEDIA_TYPE: {}}},
        401: {"description": "Token JWT tidak ada atau tidak valid."},
        500: {"description": "Gagal membuat berkas."},
    },
)
def export_realisasi_excel(
    tahun: Annotated[int, Query(description="Tahun anggaran.", ge=2000, le=2100)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    subkegiatan_id: Annotated[int | None, Query(ge=1)] = None,
) -> StreamingResponse:
    logger.info("GET /exportar/realisasi/excel tahun=%d sub=%s", tahun, subkegiatan_id)
    try:
        file_bytes = export_service.export_realisasi_excel(db, current_user, tahun, subkegiatan_id)
    except DomainError:
        raise
    except Exception as exc:
        raise _generation_failed("Excel", exc) from exc
    return _stream(file_bytes, _make_filename(f"realisasi_{tahun}", "xlsx"), _XLSX_MEDIA_TYPE)


@router.get(
    "/realisasi/pdf",
    summary="Ekspor realisasi ke PDF",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Berkas PDF.", "content": {_PDF_MEDIA_TYPE: {}}},
        500: {"description": "Gagal membuat berkas."},
    },
)
def export_realisasi_pdf(
    tahun: Annotated[int, Query(description="Tahun anggaran.", ge=2000, le=2100)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    subkegiatan_id: Annotated[int | None, Query(ge=1)] = None,
) -> StreamingResponse:
    try:
        file_bytes = export_service.export_realisasi_pdf(db, current_user, tahun, subkegiatan_id)
    except DomainError:
        raise
    except Exception as exc:
        raise _generation_failed("PDF", exc) from exc
    return _stream(file_bytes, _make_filename(f"realisasi_{tahun}", "pdf"), _PDF_MEDIA_TYPE)
