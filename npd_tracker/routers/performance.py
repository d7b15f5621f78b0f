"""
Performance indicator log router.

Mounts under ``/api/performance`` (prefix set in ``main.py``).

Endpoints
---------
GET    /subkegiatan/{id}          - Logs of one sub-kegiatan, optional ?periode=.
GET    /subkegiatan/{id}/detail   - Logs plus per-indicator achievement.
POST   /                          - Record a draft log.
PATCH  /{id}                      - Edit a draft log (author or admin).
DELETE /{id}                      - Delete a log that is not approved (admin).
POST   /{id}/submit | /approve | /return - Approval actions.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.common import MessageResponse
from npd_tracker.schemas.performance import (
    PerformanceCreate,
    PerformanceDetailResponse,
    PerformanceResponse,
    PerformanceReturnRequest,
    PerformanceUpdate,
)
from npd_tracker.services import performance_service
from npd_tracker.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Kinerja"])

_LogId = Annotated[int, Path(description="ID log kinerja.", ge=1)]
_SubId = Annotated[int, Path(description="ID sub kegiatan.", ge=1)]
_Db = Annotated[Session, Depends(get_db)]
_User = Annotated[Usuario, Depends(get_current_user)]


@router.get(
    "/subkegiatan/{subkegiatan_id}",
    response_model=list[PerformanceResponse],
    summary="Log kinerja per sub kegiatan",
)
def get_by_subkegiatan(
    subkegiatan_id: _SubId,
    db: _Db,
    current_user: _User,
    periode: Annotated[str | None, Query(description="Periode, mis. TW1.", max_length=20)] = None,
) -> list[PerformanceResponse]:
    logs = performance_service.get_by_subkegiatan(db, current_user, subkegiatan_id, periode)
    return [performance_service.to_response(log) for log in logs]


@router.get(
    "/subkegiatan/{subkegiatan_id}/detail",
    response_model=PerformanceDetailResponse,
    summary="Capaian kinerja sub kegiatan",
    description="Semua log beserta total target, total realisasi dan persentase capaian per indikator.",
)
def get_with_details(subkegiatan_id: _SubId, db: _Db, current_user: _User) -> PerformanceDetailResponse:
    return performance_service.get_with_details(db, current_user, subkegiatan_id)


@router.post(
    "",
    response_model=PerformanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Catat log kinerja",
    responses={
        403: {"description": "Peran tidak memiliki izin create:performance."},
        404: {"description": "Sub kegiatan tidak ditemukan."},
        422: {"description": "Nilai negatif atau realisasi melebihi 200% target."},
    },
)
def create_log(data: PerformanceCreate, db: _Db, current_user: _User) -> PerformanceResponse:
    logger.info("POST /performance sub=%d by user=%d", data.subkegiatan_id, current_user.id)
    log = performance_service.create_log(db, current_user, data)
    return performance_service.to_response(log)


@router.patch(
    "/{log_id}",
    response_model=PerformanceResponse,
    summary="Ubah log kinerja",
    description="Hanya log berstatus ``draft``, oleh pembuatnya atau admin.",
)
def update_log(
    log_id: _LogId, data: PerformanceUpdate, db: _Db, current_user: _User
) -> PerformanceResponse:
    log = performance_service.update_log(db, current_user, log_id, data)
    return performance_service.to_response(log)


@router.delete(
    "/{log_id}",
    response_model=MessageResponse,
    summary="Hapus log kinerja",
    responses={
        403: {"description": "Hanya admin."},
        409: {"description": "Log sudah disetujui."},
    },
)
def remove_log(log_id: _LogId, db: _Db, current_user: _User) -> MessageResponse:
    logger.info("DELETE /performance/%d by user=%d", log_id, current_user.id)
    performance_service.remove_log(db, current_user, log_id)
    return MessageResponse(message="Log kinerja dihapus.")


@router.post("/{log_id}/submit", response_model=PerformanceResponse, summary="Ajukan log kinerja")
def submit_log(log_id: _LogId, db: _Db, current_user: _User) -> PerformanceResponse:
    return performance_service.to_response(
        performance_service.submit_log(db, current_user, log_id)
    )


@router.post("/{log_id}/approve", response_model=PerformanceResponse, summary="Setujui log kinerja")
def approve_log(log_id: _LogId, db: _Db, current_user: _User) -> PerformanceResponse:
    return performance_service.to_response(
        performance_service.approve_log(db, current_user, log_id)
    )


@router.post(
    "/{log_id}/return",
    response_model=PerformanceResponse,
    summary="Kembalikan log kinerja ke draft",
)
def return_log(
    log_id: _LogId, data: PerformanceReturnRequest, db: _Db, current_user: _User
) -> PerformanceResponse:
    return performance_service.to_response(
        performance_service.return_log(db, current_user, log_id, data.reason)
    )
