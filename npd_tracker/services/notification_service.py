"""
In-app notification service.

Workflow events (submit, verify, reject, finalize, SP2D created) call
``notify_npd_event`` / ``notify_sp2d_created`` after their own transaction
has committed.  Dispatch is best effort: a failure here is logged and rolled
back on its own and never reaches the caller of the originating mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from npd_tracker.exceptions import NotFoundError
from npd_tracker.models.notification import Notification
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.sp2d_ref import Sp2dRef
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.notification import (
    NotificationListResponse,
    NotificationResponse,
)
from npd_tracker.utils.constants import (
    NOTIF_NPD_FINALIZED,
    NOTIF_NPD_REJECTED,
    NOTIF_NPD_SUBMITTED,
    NOTIF_NPD_VERIFIED,
    NOTIF_SP2D_CREATED,
    ROLES,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import has_permission

logger = logging.getLogger(__name__)

_NPD_TITLES: dict[str, str] = {
    NOTIF_NPD_SUBMITTED: "NPD {number} diajukan untuk verifikasi",
    NOTIF_NPD_VERIFIED: "NPD {number} telah diverifikasi",
    NOTIF_NPD_REJECTED: "NPD {number} ditolak",
    NOTIF_NPD_FINALIZED: "NPD {number} telah difinalisasi",
}

_VERIFIER_ROLES: list[str] = [r for r in ROLES if has_permission(r, "verify", "npd")]


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


def dispatch(
    db: Session,
    *,
    tipo: str,
    organization_id: int,
    recipients: Iterable[int],
    titulo: str,
    mensaje: str | None = None,
    entity_table: str | None = None,
    entity_id: int | None = None,
) -> int:
    """Write one notification per recipient and commit them.

    Returns:
        Number of notifications written; 0 when dispatch failed.
    """
    user_ids = sorted(set(recipients))
    if not user_ids:
        return 0
    try:
        for user_id in user_ids:
            db.add(
                Notification(
                    organization_id=organization_id,
                    user_id=user_id,
                    tipo=tipo,
                    titulo=titulo,
                    mensaje=mensaje,
                    entity_table=entity_table,
                    entity_id=entity_id,
                    leido=False,
                    created_at=utcnow(),
                )
            )
        db.commit()
    except Exception as exc:
        db.rollback()
        logger.warning("dispatch: %s for %s#%s failed: %s", tipo, entity_table, entity_id, exc)
        return 0

    logger.info("dispatch: %s -> %d recipient(s)", tipo, len(user_ids))
    return len(user_ids)


def notify_npd_event(db: Session, tipo: str, npd: NpdDocument, actor: Usuario) -> int:
    """Notify the people who care about an NPD status change.

    Submissions go to every active verifier of the organization; verify,
    reject and finalize go to the NPD's author.  The actor is never notified
    of their own action.
    """
    try:
        if tipo == NOTIF_NPD_SUBMITTED:
            rows = (
                db.query(Usuario.id)
                .filter(
                    Usuario.organization_id == npd.organization_id,
                    Usuario.activo.is_(True),
                    Usuario.rol.in_(_VERIFIER_ROLES),
                )
                .all()
            )
            recipients = [r.id for r in rows]
        else:
            recipients = [npd.created_by]
        recipients = [uid for uid in recipients if uid != actor.id]
        titulo = _NPD_TITLES.get(tipo, "NPD {number}").format(number=npd.document_number)
        mensaje = npd.catatan if tipo == NOTIF_NPD_REJECTED else npd.title
        npd_id = npd.id
        organization_id = npd.organization_id
    except Exception as exc:
        db.rollback()
        logger.warning("notify_npd_event: could not resolve recipients for %s: %s", tipo, exc)
        return 0

    return dispatch(
        db,
        tipo=tipo,
        organization_id=organization_id,
        recipients=recipients,
        titulo=titulo,
        mensaje=mensaje,
        entity_table="npd_document",
        entity_id=npd_id,
    )


def notify_sp2d_created(db: Session, sp2d: Sp2dRef, npd: NpdDocument, actor: Usuario) -> int:
    """Tell the NPD's author that a disbursement was recorded."""
    recipients = [npd.created_by] if npd.created_by != actor.id else []
    return dispatch(
        db,
        tipo=NOTIF_SP2D_CREATED,
        organization_id=npd.organization_id,
        recipients=recipients,
        titulo=f"SP2D {sp2d.no_sp2d} dicatat untuk NPD {npd.document_number}",
        mensaje=f"Nilai cair {sp2d.nilai_cair:,}",
        entity_table="sp2d_ref",
        entity_id=sp2d.id,
    )


# ---------------------------------------------------------------------------
# Inbox
# ---------------------------------------------------------------------------


def list_for_user(
    db: Session, actor: Usuario, only_unread: bool = False, limit: int = 50
) -> NotificationListResponse:
    """Return the actor's newest notifications and their unread count."""
    q = db.query(Notification).filter(Notification.user_id == actor.id)
    no_leidos = q.filter(Notification.leido.is_(False)).count()
    if only_unread:
        q = q.filter(Notification.leido.is_(False))
    rows = q.order_by(Notification.id.desc()).limit(limit).all()
    return NotificationListResponse(
        rows=[NotificationResponse.model_validate(r) for r in rows],
        no_leidos=no_leidos,
    )


def mark_read(db: Session, actor: Usuario, notification_id: int) -> Notification:
    """Mark one of the actor's notifications as read.

    Raises:
        NotFoundError: If the notification does not belong to the actor.
    """
    row: Notification | None = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == actor.id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"Notification {notification_id} not found.")
    if not row.leido:
        row.leido = True
        row.leido_at = utcnow()
        db.commit()
        db.refresh(row)
    return row


def mark_all_read(db: Session, actor: Usuario) -> int:
    """Mark every unread notification of the actor as read; returns the count."""
    count = (
        db.query(Notification)
        .filter(Notification.user_id == actor.id, Notification.leido.is_(False))
        .update({"leido": True, "leido_at": utcnow()}, synchronize_session=False)
    )
    db.commit()
    return count
