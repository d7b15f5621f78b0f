"""
In-app notification router.

Mounts under ``/api/notifications`` (prefix set in ``main.py``).  Every
endpoint works on the authenticated user's own inbox.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from npd_tracker.database import get_db
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.common import MessageResponse
from npd_tracker.schemas.notification import NotificationListResponse, NotificationResponse
from npd_tracker.services import notification_service
from npd_tracker.services.auth_service import get_current_user

router = APIRouter(tags=["Notifikasi"])


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="Notifikasi saya",
)
def list_notifications(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
    only_unread: Annotated[bool, Query(description="Hanya yang belum dibaca.")] = False,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> NotificationListResponse:
    return notification_service.list_for_user(db, current_user, only_unread, limit)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Tandai sudah dibaca",
    responses={404: {"description": "Notifikasi tidak ditemukan."}},
)
def mark_read(
    notification_id: Annotated[int, Path(ge=1)],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> NotificationResponse:
    row = notification_service.mark_read(db, current_user, notification_id)
    return NotificationResponse.model_validate(row)


@router.post(
    "/read-all",
    response_model=MessageResponse,
    summary="Tandai semua sudah dibaca",
)
def mark_all_read(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[Usuario, Depends(get_current_user)],
) -> MessageResponse:
    count = notification_service.mark_all_read(db, current_user)
    return MessageResponse(message=f"{count} notifikasi ditandai sudah dibaca.")
