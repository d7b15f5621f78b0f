"""
NPD (Nota Pencairan Dana) router.

Mounts under ``/api/npd`` (prefix set in ``main.py``).

All endpoints require a valid JWT token.  Role checks happen in the service
layer so that every caller of a service function gets the same policy; a
refused action surfaces as HTTP 403 through the domain error handler.

Endpoints
---------
GET    /                         - Paginated NPD table with filters.
GET    /summary                  - Counts by status, total and average value.
GET    /queue/verifikasi         - NPDs waiting for verification.
GET    /queue/persetujuan        - NPDs waiting for final approval.
GET    /checklist-template/{jenis} - Checklist items for an NPD type.
GET    /{id}                     - NPD detail with lines and SP2Ds.
GET    /{id}/history             - Audit trail of the NPD.
POST   /                         - Create a draft NPD.
PATCH  /{id}                     - Edit header fields.
POST   /{id}/lines               - Add a line item.
PATCH  /lines/{line_id}          - Change a line amount.
DELETE /lines/{line_id}          - Remove a line item.
POST   /{id}/submit | /verify | /reject | /finalize - Workflow actions.
POST   /{id}/lock, DELETE /{id}/lock - Advisory edit lock.
GET    /{id}/checklist, PUT /{id}/checklist - Verification checklist.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Body, Depends, Path, Query, status
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.audit import AuditLogResponse
from npd_tracker.schemas.common import FilterParams, PaginationParams
from npd_tracker.schemas.npd import (
    ChecklistResponse,
    ChecklistSaveRequest,
    ChecklistTemplateItem,
    NpdCreate,
    NpdLineCreate,
    NpdLineUpdate,
    NpdLockRequest,
    NpdRejectRequest,
    NpdResponse,
    NpdSummaryResponse,
    NpdUpdate,
    NpdVerifyRequest,
    TablaNpdResponse,
)
from npd_tracker.services import (
    audit_service,
    checklist_service,
    lock_service,
    npd_service,
)
from npd_tracker.services.auth_service import get_current_user
from npd_tracker.utils.constants import NPD_DIAJUKAN, NPD_DIVERIFIKASI

logger = logging.getLogger(__name__)

router = APIRouter(tags=["NPD"])

_NpdId = Annotated[int, Path(description="ID NPD.", ge=1)]
_LineId = Annotated[int, Path(description="ID baris NPD.", ge=1)]
_Db = Annotated[Session, Depends(get_db)]
_User = Annotated[Usuario, Depends(get_current_user)]

_TRANSITION_RESPONSES = {
    200: {"description": "Status NPD berhasil diubah."},
    403: {"description": "Peran tidak memiliki izin untuk aksi ini."},
    404: {"description": "NPD tidak ditemukan."},
    409: {"description": "Transisi status tidak diizinkan atau NPD sedang dikunci."},
}


# ---------------------------------------------------------------------------
# Shared dependencies
# ---------------------------------------------------------------------------


def _filter_params(
    tahun: Annotated[
        int | None,
        Query(description="Tahun anggaran, mis. 2026. Kosongkan untuk semua tahun.", ge=2000, le=2100),
    ] = None,
    status_npd: Annotated[
        str | None,
        Query(
            alias="status",
            description="Status NPD: draft, diajukan, diverifikasi, final.",
            pattern="^(draft|diajukan|diverifikasi|final)$",
        ),
    ] = None,
    jenis: Annotated[
        str | None,
        Query(description="Jenis NPD: UP, GU, TU, LS.", pattern="^(UP|GU|TU|LS)$"),
    ] = None,
    subkegiatan_id: Annotated[
        int | None,
        Query(description="ID sub kegiatan.", ge=1),
    ] = None,
) -> FilterParams:
    """Assemble a ``FilterParams`` instance from URL query parameters."""
    return FilterParams(
        tahun=tahun,
        status=status_npd,
        jenis=jenis,
        subkegiatan_id=subkegiatan_id,
    )


def _pagination_params(
    page: Annotated[int, Query(description="Halaman (mulai 1).", ge=1)] = 1,
    page_size: Annotated[
        int, Query(description="Baris per halaman (maks. 200).", ge=1, le=200)
    ] = 20,
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "",
    response_model=TablaNpdResponse,
    summary="Tabel NPD",
    description="Daftar NPD organisasi, terbaru lebih dulu, dengan filter dan paginasi.",
    responses={
        200: {"description": "Halaman tabel NPD."},
        401: {"description": "Token JWT tidak ada atau tidak valid."},
    },
)
def get_tabla(
    filters: Annotated[FilterParams, Depends(_filter_params)],
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: _Db,
    current_user: _User,
) -> TablaNpdResponse:
    logger.debug("GET /npd filters=%s page=%d", filters, pagination.page)
    return npd_service.get_tabla(db, current_user, filters, pagination)


@router.get(
    "/summary",
    response_model=NpdSummaryResponse,
    summary="Ringkasan NPD",
    description="Jumlah NPD per status beserta total dan rata-rata nilai.",
)
def get_summary(
    filters: Annotated[FilterParams, Depends(_filter_params)],
    db: _Db,
    current_user: _User,
) -> NpdSummaryResponse:
    return npd_service.get_summary(db, current_user, filters)


@router.get(
    "/queue/verifikasi",
    response_model=TablaNpdResponse,
    summary="Antrian verifikasi",
    description="NPD berstatus ``diajukan`` yang menunggu verifikasi.",
    responses={403: {"description": "Peran tidak memiliki izin verify:npd."}},
)
def get_verification_queue(
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: _Db,
    current_user: _User,
) -> TablaNpdResponse:
    return npd_service.get_queue(db, current_user, pagination, NPD_DIAJUKAN)


@router.get(
    "/queue/persetujuan",
    response_model=TablaNpdResponse,
    summary="Antrian persetujuan",
    description="NPD berstatus ``diverifikasi`` yang menunggu persetujuan akhir.",
    responses={403: {"description": "Peran tidak memiliki izin approve:npd."}},
)
def get_approval_queue(
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: _Db,
    current_user: _User,
) -> TablaNpdResponse:
    return npd_service.get_queue(db, current_user, pagination, NPD_DIVERIFIKASI)


@router.get(
    "/checklist-template/{jenis}",
    response_model=list[ChecklistTemplateItem],
    summary="Templat checklist verifikasi",
    responses={422: {"description": "Jenis NPD tidak dikenal."}},
)
def get_checklist_template(
    jenis: Annotated[str, Path(pattern="^(UP|GU|TU|LS)$")],
    _current_user: _User,
) -> list[ChecklistTemplateItem]:
    return checklist_service.get_template(jenis)


@router.get(
    "/{npd_id}",
    response_model=NpdResponse,
    summary="Detail NPD",
    responses={
        200: {"description": "NPD beserta baris dan SP2D."},
        404: {"description": "NPD tidak ditemukan."},
    },
)
def get_detalle(npd_id: _NpdId, db: _Db, current_user: _User) -> NpdResponse:
    return npd_service.get_detalle(db, current_user, npd_id)


@router.get(
    "/{npd_id}/history",
    response_model=list[AuditLogResponse],
    summary="Riwayat NPD",
    description="Jejak audit NPD, terlama lebih dulu.",
)
def get_history(npd_id: _NpdId, db: _Db, current_user: _User) -> list[AuditLogResponse]:
    npd = npd_service.get_npd(db, npd_id, current_user.organization_id)
    return audit_service.entity_history(db, current_user, "npd_document", npd.id)


# ---------------------------------------------------------------------------
# Document and line editing
# ---------------------------------------------------------------------------


@router.post(
    "",
    response_model=NpdResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buat NPD",
    description="Membuat NPD berstatus ``draft`` dengan nomor dokumen berikutnya untuk tahun tersebut.",
    responses={
        201: {"description": "NPD dibuat."},
        403: {"description": "Peran tidak memiliki izin create:npd."},
        404: {"description": "Sub kegiatan tidak ditemukan."},
        422: {"description": "Tahun tidak sesuai dengan sub kegiatan."},
    },
)
def create_npd(data: NpdCreate, db: _Db, current_user: _User) -> NpdResponse:
    npd = npd_service.create_npd(db, current_user, data)
    logger.info("POST /npd -> %s by user=%d", npd.document_number, current_user.id)
    return npd_service.get_detalle(db, current_user, npd.id)


@router.patch(
    "/{npd_id}",
    response_model=NpdResponse,
    summary="Ubah header NPD",
    responses={409: {"description": "NPD sudah final."}},
)
def update_npd(npd_id: _NpdId, data: NpdUpdate, db: _Db, current_user: _User) -> NpdResponse:
    npd_service.update_npd(db, current_user, npd_id, data)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.post(
    "/{npd_id}/lines",
    response_model=NpdResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Tambah baris NPD",
    description=(
        "Menambah rincian belanja.  Jumlah dicek terhadap sisa komitmen rekening "
        "dan langsung mengurangi sisa komitmen tersebut."
    ),
    responses={
        201: {"description": "Baris ditambahkan."},
        409: {"description": "NPD sudah final."},
        422: {"description": "Jumlah melebihi sisa anggaran (``budget_exceeded``)."},
    },
)
def add_line(npd_id: _NpdId, data: NpdLineCreate, db: _Db, current_user: _User) -> NpdResponse:
    npd_service.add_line(db, current_user, npd_id, data)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.patch(
    "/lines/{line_id}",
    response_model=NpdResponse,
    summary="Ubah baris NPD",
    responses={
        409: {"description": "NPD sudah final."},
        422: {"description": "Jumlah melebihi sisa anggaran (``budget_exceeded``)."},
    },
)
def update_line(line_id: _LineId, data: NpdLineUpdate, db: _Db, current_user: _User) -> NpdResponse:
    line = npd_service.update_line(db, current_user, line_id, data)
    return npd_service.get_detalle(db, current_user, line.npd_id)


@router.delete(
    "/lines/{line_id}",
    response_model=NpdResponse,
    summary="Hapus baris NPD",
    responses={409: {"description": "NPD sudah final."}},
)
def remove_line(line_id: _LineId, db: _Db, current_user: _User) -> NpdResponse:
    npd = npd_service.remove_line(db, current_user, line_id)
    return npd_service.get_detalle(db, current_user, npd.id)


# ---------------------------------------------------------------------------
# Workflow transitions
# ---------------------------------------------------------------------------


@router.post(
    "/{npd_id}/submit",
    response_model=NpdResponse,
    summary="Ajukan NPD",
    description="``draft`` ke ``diajukan``.  NPD harus memiliki minimal satu baris.",
    responses=_TRANSITION_RESPONSES,
)
def submit(npd_id: _NpdId, db: _Db, current_user: _User) -> NpdResponse:
    npd_service.submit(db, current_user, npd_id)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.post(
    "/{npd_id}/verify",
    response_model=NpdResponse,
    summary="Verifikasi NPD",
    description="``diajukan`` ke ``diverifikasi``.",
    responses=_TRANSITION_RESPONSES,
)
def verify(
    npd_id: _NpdId,
    db: _Db,
    current_user: _User,
    data: Annotated[NpdVerifyRequest | None, Body()] = None,
) -> NpdResponse:
    npd_service.verify(db, current_user, npd_id, data.notes if data else None)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.post(
    "/{npd_id}/reject",
    response_model=NpdResponse,
    summary="Tolak NPD",
    description="Mengembalikan NPD ke ``draft`` dengan alasan penolakan di catatan.",
    responses=_TRANSITION_RESPONSES,
)
def reject(npd_id: _NpdId, data: NpdRejectRequest, db: _Db, current_user: _User) -> NpdResponse:
    npd_service.reject(db, current_user, npd_id, data.reason)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.post(
    "/{npd_id}/finalize",
    response_model=NpdResponse,
    summary="Setujui NPD",
    description="``diverifikasi`` ke ``final``.  Setelah final, baris tidak dapat diubah.",
    responses=_TRANSITION_RESPONSES,
)
def finalize(npd_id: _NpdId, db: _Db, current_user: _User) -> NpdResponse:
    npd_service.finalize(db, current_user, npd_id)
    return npd_service.get_detalle(db, current_user, npd_id)


# ---------------------------------------------------------------------------
# Advisory lock
# ---------------------------------------------------------------------------


@router.post(
    "/{npd_id}/lock",
    response_model=NpdResponse,
    summary="Kunci NPD",
    description="Mengambil kunci edit sementara; kunci kedaluwarsa otomatis.",
    responses={409: {"description": "NPD sudah dikunci pengguna lain."}},
)
def lock(
    npd_id: _NpdId,
    db: _Db,
    current_user: _User,
    data: Annotated[NpdLockRequest | None, Body()] = None,
) -> NpdResponse:
    data = data or NpdLockRequest()
    lock_service.lock(db, current_user, npd_id, data.reason, data.ttl_minutes)
    return npd_service.get_detalle(db, current_user, npd_id)


@router.delete(
    "/{npd_id}/lock",
    response_model=NpdResponse,
    summary="Buka kunci NPD",
    responses={
        403: {"description": "Bukan pemegang kunci, admin, atau verifikator."},
        409: {"description": "NPD tidak sedang dikunci."},
    },
)
def unlock(npd_id: _NpdId, db: _Db, current_user: _User) -> NpdResponse:
    lock_service.unlock(db, current_user, npd_id)
    return npd_service.get_detalle(db, current_user, npd_id)


# ---------------------------------------------------------------------------
# Verification checklist
# ---------------------------------------------------------------------------


@router.get(
    "/{npd_id}/checklist",
    response_model=ChecklistResponse,
    summary="Checklist verifikasi NPD",
    responses={404: {"description": "Checklist belum disimpan."}},
)
def get_checklist(npd_id: _NpdId, db: _Db, current_user: _User) -> ChecklistResponse:
    return checklist_service.get_checklist(db, current_user, npd_id)


@router.put(
    "/{npd_id}/checklist",
    response_model=ChecklistResponse,
    summary="Simpan checklist verifikasi",
    description=(
        "Menyimpan hasil checklist.  Status ``completed`` mensyaratkan semua item "
        "wajib dicentang dan sekaligus memverifikasi NPD."
    ),
    responses={
        409: {"description": "NPD tidak berstatus diajukan."},
        422: {"description": "Item wajib belum dicentang."},
    },
)
def save_checklist(
    npd_id: _NpdId,
    data: ChecklistSaveRequest,
    db: _Db,
    current_user: _User,
) -> ChecklistResponse:
    return checklist_service.save_checklist(db, current_user, npd_id, data)
