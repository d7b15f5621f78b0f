"""
Import (Importacion) router.

Mounts under ``/api/importacion`` (prefix set in ``main.py``).

Endpoints
---------
POST /rka        - Upload an RKA budget plan (.csv or .xlsx).
GET  /historial  - Past import records, most recent first.
GET  /formato    - Column layout expected by the RKA upload.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.parsers import FORMAT_RKA
from npd_tracker.schemas.importacion import HistorialImportacion, ImportacionUploadResponse
from npd_tracker.services import import_service
from npd_tracker.services.auth_service import get_current_user, require_permission
from npd_tracker.utils.constants import RKA_CSV_OPTIONAL_COLUMNS, RKA_CSV_REQUIRED_COLUMNS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Importasi"])

_ALLOWED_CONTENT_TYPES: frozenset[str] = frozenset(
    {
        "text/csv",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/octet-stream",
    }
)


def _check_content_type(file: UploadFile) -> None:
    content_type = file.content_type or ""
    if content_type not in _ALLOWED_CONTENT_TYPES:
        # Browsers mislabel CSV files often enough; the parser has the final say.
        logger.warning(
            "Unexpected content_type='%s' for file='%s', proceeding anyway",
            content_type,
            file.filename,
        )


@router.post(
    "/rka",
    response_model=ImportacionUploadResponse,
    status_code=status.HTTP_200_OK,
    summary="Impor RKA",
    description=(
        "Mengunggah RKA dalam format CSV atau Excel.  Program, kegiatan, sub kegiatan "
        "dan rekening dibuat atau diperbarui.  Jika ada satu baris yang gagal, seluruh "
        "impor dibatalkan dan daftar kesalahan dikembalikan."
    ),
    responses={
        200: {"description": "Ringkasan impor dengan jumlah baris dan kesalahan."},
        401: {"description": "Token JWT tidak ada atau tidak valid."},
        403: {"description": "Peran tidak memiliki izin create:rka."},
    },
)
async def upload_rka(
    file: Annotated[UploadFile, File(description="Berkas RKA (.csv atau .xlsx)")],
    tahun: Annotated[int, Form(description="Tahun anggaran.", ge=2000, le=2100)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(require_permission("create", "rka"))],
) -> ImportacionUploadResponse:
    _check_content_type(file)
    logger.info("upload_rka: user='%s' file='%s' year=%d", current_user.username, file.filename, tahun)
    return await import_service.process_upload(db, current_user, file, tahun)


@router.get(
    "/historial",
    response_model=list[HistorialImportacion],
    summary="Riwayat impor",
)
def get_historial(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    tahun: int | None = None,
) -> list[HistorialImportacion]:
    return import_service.get_historial(db, current_user, tahun)


@router.get(
    "/formato",
    summary="Format kolom RKA",
    description="Kolom wajib dan opsional yang diterima oleh impor RKA.",
)
def get_formato(
    _current_user: Annotated[Usuario, Depends(get_current_user)],
) -> dict[str, object]:
    return {
        "formato": FORMAT_RKA,
        "kolom_wajib": RKA_CSV_REQUIRED_COLUMNS,
        "kolom_opsional": RKA_CSV_OPTIONAL_COLUMNS,
    }
