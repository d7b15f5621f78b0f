"""Pydantic v2 schemas for audit log queries."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditLogResponse(BaseModel):
    id: int
    organization_id: int
    actor_user_id: int | None
    action: str
    entity_table: str
    entity_id: int | None
    entity_data: dict[str, Any] | None = None
    keterangan: str | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TablaAuditLogResponse(BaseModel):
    rows: list[AuditLogResponse]
    total: int
    page: int
    page_size: int


class AuditStatsResponse(BaseModel):
    """Counts of audit entries by action and by entity table."""

    total: int
    por_action: dict[str, int]
    por_entity_table: dict[str, int]
