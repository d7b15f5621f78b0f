"""Pydantic v2 schemas for in-app notifications."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationResponse(BaseModel):
    id: int
    tipo: str
    titulo: str
    mensaje: str | None = None
    entity_table: str | None = None
    entity_id: int | None = None
    leido: bool
    leido_at: datetime | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationListResponse(BaseModel):
    rows: list[NotificationResponse]
    no_leidos: int
