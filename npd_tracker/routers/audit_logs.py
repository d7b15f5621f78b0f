"""
Audit log router (admin only).

Mounts under ``/api/audit-logs`` (prefix set in ``main.py``).

Endpoints
---------
GET /        - Filtered, paginated audit log.
GET /stats   - Entry counts by action and by entity table.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.audit import AuditStatsResponse, TablaAuditLogResponse
from npd_tracker.schemas.common import PaginationParams
from npd_tracker.services import audit_service
from npd_tracker.services.auth_service import get_current_user

router = APIRouter(tags=["Audit"])


def _pagination_params(
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=200)] = 50,
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


@router.get(
    "",
    response_model=TablaAuditLogResponse,
    summary="Log audit",
    responses={403: {"description": "Hanya admin."}},
)
def list_logs(
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    action: Annotated[str | None, Query(max_length=50)] = None,
    entity_table: Annotated[str | None, Query(max_length=50)] = None,
    entity_id: Annotated[int | None, Query(ge=1)] = None,
    actor_user_id: Annotated[int | None, Query(ge=1)] = None,
) -> TablaAuditLogResponse:
    return audit_service.list_logs(
        db,
        current_user,
        pagination,
        action=action,
        entity_table=entity_table,
        entity_id=entity_id,
        actor_user_id=actor_user_id,
    )


@router.get(
    "/stats",
    response_model=AuditStatsResponse,
    summary="Statistik log audit",
    responses={403: {"description": "Hanya admin."}},
)
def get_stats(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> AuditStatsResponse:
    return audit_service.get_stats(db, current_user)
