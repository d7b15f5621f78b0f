"""
SP2D (Surat Perintah Pencairan Dana) router.

Mounts under ``/api/sp2d`` (prefix set in ``main.py``).

Endpoints
---------
GET    /                 - Paginated SP2D list.
GET    /npd/{npd_id}     - SP2Ds of one NPD, soft-deleted ones included.
GET    /{id}             - SP2D detail with its realization rows.
POST   /                 - Record a disbursement against a final NPD.
PATCH  /{id}             - Edit an SP2D; a new amount is redistributed.
DELETE /{id}             - Soft delete (admin only), reversing realization.
POST   /{id}/restore     - Undo a soft delete (admin only).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.common import PaginationParams
from npd_tracker.schemas.sp2d import (
    Sp2dCreate,
    Sp2dDeleteRequest,
    Sp2dResponse,
    Sp2dUpdate,
    TablaSp2dResponse,
)
from npd_tracker.services import sp2d_service
from npd_tracker.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["SP2D"])

_Sp2dId = Annotated[int, Path(description="ID SP2D.", ge=1)]
_Db = Annotated[Session, Depends(get_db)]
_User = Annotated[Usuario, Depends(get_current_user)]


def _pagination_params(
    page: Annotated[int, Query(description="Halaman (mulai 1).", ge=1)] = 1,
    page_size: Annotated[
        int, Query(description="Baris per halaman (maks. 200).", ge=1, le=200)
    ] = 20,
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


@router.get(
    "",
    response_model=TablaSp2dResponse,
    summary="Daftar SP2D",
)
def list_sp2d(
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: _Db,
    current_user: _User,
    tahun: Annotated[int | None, Query(description="Tahun anggaran NPD.", ge=2000, le=2100)] = None,
    include_deleted: Annotated[bool, Query(description="Sertakan SP2D yang dihapus.")] = False,
) -> TablaSp2dResponse:
    return sp2d_service.list_sp2d(db, current_user, pagination, tahun, include_deleted)


@router.get(
    "/npd/{npd_id}",
    response_model=list[Sp2dResponse],
    summary="SP2D per NPD",
    responses={404: {"description": "NPD tidak ditemukan."}},
)
def list_by_npd(
    npd_id: Annotated[int, Path(ge=1)],
    db: _Db,
    current_user: _User,
    include_deleted: Annotated[bool, Query()] = True,
) -> list[Sp2dResponse]:
    return sp2d_service.list_by_npd(db, current_user, npd_id, include_deleted)


@router.get(
    "/{sp2d_id}",
    response_model=Sp2dResponse,
    summary="Detail SP2D",
    responses={404: {"description": "SP2D tidak ditemukan."}},
)
def get_sp2d(sp2d_id: _Sp2dId, db: _Db, current_user: _User) -> Sp2dResponse:
    return sp2d_service.get_sp2d_detail(db, current_user, sp2d_id)


@router.post(
    "",
    response_model=Sp2dResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Catat SP2D",
    description=(
        "Mencatat pencairan untuk NPD berstatus ``final``.  Nilai cair dibagi "
        "secara proporsional ke setiap baris NPD dan menambah realisasi rekening. "
        "Total SP2D tidak boleh melebihi total NPD."
    ),
    responses={
        201: {"description": "SP2D dicatat dan realisasi dibukukan."},
        403: {"description": "Peran tidak memiliki izin create:sp2d."},
        409: {"description": "Nomor SP2D sudah dipakai."},
        422: {"description": "NPD belum final, tanggal tidak valid, atau nilai melebihi sisa NPD (``budget_exceeded``)."},
    },
)
def create_sp2d(data: Sp2dCreate, db: _Db, current_user: _User) -> Sp2dResponse:
    logger.info("POST /sp2d no=%s npd=%d by user=%d", data.no_sp2d, data.npd_id, current_user.id)
    return sp2d_service.create_sp2d(db, current_user, data)


@router.patch(
    "/{sp2d_id}",
    response_model=Sp2dResponse,
    summary="Ubah SP2D",
    description="Perubahan nilai cair membatalkan pembagian lama dan membagi ulang nilai baru.",
    responses={
        404: {"description": "SP2D tidak ditemukan."},
        409: {"description": "SP2D sudah dihapus atau nomor sudah dipakai."},
        422: {"description": "Nilai melebihi sisa NPD."},
    },
)
def update_sp2d(sp2d_id: _Sp2dId, data: Sp2dUpdate, db: _Db, current_user: _User) -> Sp2dResponse:
    return sp2d_service.update_sp2d(db, current_user, sp2d_id, data)


@router.delete(
    "/{sp2d_id}",
    response_model=Sp2dResponse,
    summary="Hapus SP2D (soft delete)",
    description="Hanya admin.  Realisasi yang dibukukan SP2D ini dibatalkan.",
    responses={
        403: {"description": "Hanya admin."},
        409: {"description": "SP2D sudah dihapus."},
    },
)
def delete_sp2d(
    sp2d_id: _Sp2dId,
    data: Sp2dDeleteRequest,
    db: _Db,
    current_user: _User,
) -> Sp2dResponse:
    logger.info("DELETE /sp2d/%d by user=%d", sp2d_id, current_user.id)
    return sp2d_service.soft_delete_sp2d(db, current_user, sp2d_id, data.reason)


@router.post(
    "/{sp2d_id}/restore",
    response_model=Sp2dResponse,
    summary="Pulihkan SP2D",
    description="Hanya admin.  Realisasi dibukukan ulang sesuai pembagian semula.",
    responses={
        403: {"description": "Hanya admin."},
        409: {"description": "SP2D tidak dalam keadaan terhapus."},
        422: {"description": "Pemulihan akan melebihi total NPD."},
    },
)
def restore_sp2d(sp2d_id: _Sp2dId, db: _Db, current_user: _User) -> Sp2dResponse:
    return sp2d_service.restore_sp2d(db, current_user, sp2d_id)
