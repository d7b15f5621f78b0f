"""
RKA (budget plan) router.

Mounts under ``/api/rka`` (prefix set in ``main.py``).

Endpoints
---------
GET   /anios                   - Fiscal years with a budget plan.
GET   /tree                    - Program > kegiatan > sub-kegiatan > account tree.
GET   /subkegiatan             - Flat sub-kegiatan list (dropdown source).
GET   /figures/{level}/{id}    - Aggregated figures of one hierarchy node.
GET   /accounts                - Budget accounts, optionally filtered.
GET   /accounts/{id}           - One budget account.
POST  /accounts                - Create a budget account.
PATCH /accounts/{id}           - Update a budget account (pagu included).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.rka import (
    AccountCreate,
    AccountResponse,
    AccountUpdate,
    LedgerFigures,
    RkaTreeResponse,
    SubkegiatanOption,
)
from npd_tracker.services import rka_service
from npd_tracker.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["RKA"])

_TahunQuery = Annotated[int, Query(description="Tahun anggaran.", ge=2000, le=2100)]


@router.get(
    "/anios",
    response_model=list[int],
    summary="Daftar tahun anggaran",
    description="Tahun anggaran yang memiliki RKA, terbaru lebih dulu.",
)
def get_fiscal_years(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> list[int]:
    return rka_service.get_fiscal_years(db, current_user)


@router.get(
    "/tree",
    response_model=RkaTreeResponse,
    summary="Pohon RKA",
    description=(
        "Seluruh hierarki program, kegiatan, sub kegiatan dan rekening untuk satu "
        "tahun anggaran, dengan pagu, komitmen dan realisasi di setiap tingkat."
    ),
    responses={
        200: {"description": "Pohon RKA."},
        401: {"description": "Token JWT tidak ada atau tidak valid."},
    },
)
def get_tree(
    tahun: _TahunQuery,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> RkaTreeResponse:
    logger.debug("GET /rka/tree tahun=%d", tahun)
    return rka_service.get_tree(db, current_user, tahun)


@router.get(
    "/subkegiatan",
    response_model=list[SubkegiatanOption],
    summary="Daftar sub kegiatan",
)
def list_subkegiatans(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    tahun: Annotated[int | None, Query(ge=2000, le=2100)] = None,
) -> list[SubkegiatanOption]:
    return rka_service.list_subkegiatans(db, current_user, tahun)


@router.get(
    "/figures/{level}/{node_id}",
    response_model=LedgerFigures,
    summary="Agregat satu simpul hierarki",
    description="``level`` adalah ``program``, ``kegiatan`` atau ``subkegiatan``.",
    responses={
        200: {"description": "Agregat pagu, komitmen dan realisasi."},
        404: {"description": "Simpul tidak ditemukan."},
        422: {"description": "Level tidak dikenal."},
    },
)
def get_node_figures(
    level: Annotated[str, Path(pattern="^(program|kegiatan|subkegiatan)$")],
    node_id: Annotated[int, Path(ge=1)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> LedgerFigures:
    return rka_service.get_node_figures(db, current_user, level, node_id)


@router.get(
    "/accounts",
    response_model=list[AccountResponse],
    summary="Daftar rekening belanja",
)
def list_accounts(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    subkegiatan_id: Annotated[int | None, Query(ge=1)] = None,
    tahun: Annotated[int | None, Query(ge=2000, le=2100)] = None,
    only_active: Annotated[bool, Query(description="Hanya rekening aktif.")] = False,
) -> list[AccountResponse]:
    return rka_service.list_accounts(db, current_user, subkegiatan_id, tahun, only_active)


@router.get(
    "/accounts/{account_id}",
    response_model=AccountResponse,
    summary="Detail rekening belanja",
    responses={404: {"description": "Rekening tidak ditemukan."}},
)
def get_account(
    account_id: Annotated[int, Path(ge=1)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> AccountResponse:
    return AccountResponse.model_validate(rka_service.get_account(db, current_user, account_id))


@router.post(
    "/accounts",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buat rekening belanja",
    responses={
        201: {"description": "Rekening dibuat."},
        403: {"description": "Peran tidak memiliki izin create:rka."},
        409: {"description": "Kode rekening sudah ada pada tahun tersebut."},
        422: {"description": "Kode rekening tidak valid."},
    },
)
def create_account(
    data: AccountCreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> AccountResponse:
    logger.info("POST /rka/accounts kode=%s by user=%d", data.kode, current_user.id)
    return AccountResponse.model_validate(rka_service.create_account(db, current_user, data))


@router.patch(
    "/accounts/{account_id}",
    response_model=AccountResponse,
    summary="Ubah rekening belanja",
    description=(
        "Perubahan pagu menggeser sisa pagu dan sisa komitmen sebesar selisihnya; "
        "pagu tidak boleh lebih kecil dari yang sudah terpakai."
    ),
    responses={
        404: {"description": "Rekening tidak ditemukan."},
        422: {"description": "Pagu baru di bawah nilai yang sudah terpakai."},
    },
)
def update_account(
    account_id: Annotated[int, Path(ge=1)],
    data: AccountUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> AccountResponse:
    return AccountResponse.model_validate(
        rka_service.update_account(db, current_user, account_id, data)
    )
