"""
Audit log service.

``record`` appends one ``AuditLog`` row inside the caller's transaction; it
never commits.  If the insert fails the whole operation rolls back, so an
audited change can never exist without its audit entry.

The query helpers back ``/api/audit-logs`` and are restricted to the
caller's organization.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from npd_tracker.models.audit_log import AuditLog
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.audit import (
    AuditLogResponse,
    AuditStatsResponse,
    TablaAuditLogResponse,
)
from npd_tracker.schemas.common import PaginationParams
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    """Convert dates and nested containers into JSON-storable values."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


def record(
    db: Session,
    *,
    action: str,
    entity_table: str,
    entity_id: int | None,
    organization_id: int,
    actor_user_id: int | None,
    entity_data: dict[str, Any] | None = None,
    keterangan: str | None = None,
) -> AuditLog:
    """Append an audit entry to the current transaction.

    Args:
        db: Session holding the transaction of the audited change.
        action: Action code, one of the ``AUDIT_*`` constants.
        entity_table: Table of the affected entity.
        entity_id: Primary key of the affected entity.
        organization_id: Tenant of the change.
        actor_user_id: Acting user, or ``None`` for system actions.
        entity_data: Optional snapshot; dates are stored as ISO strings.
        keterangan: Optional note.

    Returns:
        The flushed ``AuditLog`` row.
    """
    entry = AuditLog(
        action=action,
        entity_table=entity_table,
        entity_id=entity_id,
        organization_id=organization_id,
        actor_user_id=actor_user_id,
        entity_data=_jsonable(entity_data) if entity_data is not None else None,
        keterangan=keterangan,
        created_at=utcnow(),
    )
    db.add(entry)
    db.flush()
    logger.debug(
        "audit: %s %s#%s actor=%s org=%d",
        action, entity_table, entity_id, actor_user_id, organization_id,
    )
    return entry


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def list_logs(
    db: Session,
    actor: Usuario,
    pagination: PaginationParams,
    action: str | None = None,
    entity_table: str | None = None,
    entity_id: int | None = None,
    actor_user_id: int | None = None,
) -> TablaAuditLogResponse:
    """Return a filtered, newest-first page of the organization's audit log."""
    require_permission(actor.rol, "read", "audit")

    q = db.query(AuditLog).filter(AuditLog.organization_id == actor.organization_id)
    if action is not None:
        q = q.filter(AuditLog.action == action)
    if entity_table is not None:
        q = q.filter(AuditLog.entity_table == entity_table)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    if actor_user_id is not None:
        q = q.filter(AuditLog.actor_user_id == actor_user_id)

    total = q.count()
    rows = (
        q.order_by(AuditLog.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
        .all()
    )
    return TablaAuditLogResponse(
        rows=[AuditLogResponse.model_validate(r) for r in rows],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


def entity_history(
    db: Session, actor: Usuario, entity_table: str, entity_id: int
) -> list[AuditLogResponse]:
    """Return every audit entry for one entity, oldest first."""
    require_permission(actor.rol, "read", "npd")
    rows = (
        db.query(AuditLog)
        .filter(
            AuditLog.organization_id == actor.organization_id,
            AuditLog.entity_table == entity_table,
            AuditLog.entity_id == entity_id,
        )
        .order_by(AuditLog.id.asc())
        .all()
    )
    return [AuditLogResponse.model_validate(r) for r in rows]


def get_stats(db: Session, actor: Usuario) -> AuditStatsResponse:
    """Count the organization's audit entries by action and by table."""
    require_permission(actor.rol, "read", "audit")

    base = db.query(AuditLog).filter(AuditLog.organization_id == actor.organization_id)
    total = base.count()

    por_action = dict(
        db.query(AuditLog.action, func.count(AuditLog.id))
        .filter(AuditLog.organization_id == actor.organization_id)
        .group_by(AuditLog.action)
        .all()
    )
    por_entity_table = dict(
        db.query(AuditLog.entity_table, func.count(AuditLog.id))
        .filter(AuditLog.organization_id == actor.organization_id)
        .group_by(AuditLog.entity_table)
        .all()
    )
    return AuditStatsResponse(
        total=total,
        por_action=por_action,
        por_entity_table=por_entity_table,
    )
