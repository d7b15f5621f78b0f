"""
Advisory, time-boxed locks on NPD documents.

A verifier takes the lock while reviewing an NPD so that two people do not
verify or finalize it at the same time.  The lock is a hint, not isolation:
ledger safety comes from row locks inside each transaction.

Design notes
------------
- ``verify`` and ``finalize`` call ``assert_not_locked_by_other`` so that an
  unexpired lock held by someone else blocks them with ``ConflictError``.
  Other operations ignore the lock.
- An expired lock counts as absent everywhere, even before the sweep clears it.
- ``cleanup_expired`` is run periodically from the application lifespan and
  writes one ``auto_unlocked`` audit entry per NPD it releases.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from npd_tracker.config import get_settings
from npd_tracker.database import atomic
from npd_tracker.exceptions import ConflictError, NotFoundError, PermissionDenied
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.usuario import Usuario
from npd_tracker.services import audit_service
from npd_tracker.utils.constants import (
    AUDIT_AUTO_UNLOCKED,
    AUDIT_LOCKED,
    AUDIT_UNLOCKED,
    NPD_DIVERIFIKASI,
    ROLE_ADMIN,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import has_permission

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_npd_for_update(db: Session, npd_id: int, organization_id: int) -> NpdDocument:
    npd: NpdDocument | None = (
        db.query(NpdDocument)
        .filter(
            NpdDocument.id == npd_id,
            NpdDocument.organization_id == organization_id,
        )
        .with_for_update()
        .first()
    )
    if npd is None:
        raise NotFoundError(f"NPD {npd_id} not found.")
    return npd


def _clear(npd: NpdDocument) -> None:
    npd.is_locked = False
    npd.locked_by = None
    npd.locked_at = None
    npd.lock_reason = None
    npd.lock_expires_at = None


def is_lock_active(npd: NpdDocument, now: datetime | None = None) -> bool:
    """True when the NPD is locked and the lock has not expired."""
    if not npd.is_locked:
        return False
    if npd.lock_expires_at is None:
        return True
    return npd.lock_expires_at > (now or utcnow())


def assert_not_locked_by_other(
    npd: NpdDocument, actor: Usuario, now: datetime | None = None
) -> None:
    """Raise ``ConflictError`` if someone other than *actor* holds an active lock."""
    if is_lock_active(npd, now) and npd.locked_by != actor.id:
        raise ConflictError(
            f"NPD {npd.document_number} is locked by user {npd.locked_by} "
            f"until {npd.lock_expires_at:%Y-%m-%d %H:%M} UTC."
        )


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------


def lock(
    db: Session,
    actor: Usuario,
    npd_id: int,
    reason: str | None = None,
    ttl_minutes: int | None = None,
) -> NpdDocument:
    """Take the advisory lock on an NPD for *ttl_minutes* (default from settings).

    Raises:
        NotFoundError: NPD missing or in another organization.
        PermissionDenied: Actor can neither update nor verify NPDs.
        ConflictError: An unexpired lock is already held.
    """
    if not (
        has_permission(actor.rol, "update", "npd")
        or has_permission(actor.rol, "verify", "npd")
    ):
        raise PermissionDenied(actor.rol, "lock", "npd")

    ttl = ttl_minutes or get_settings().LOCK_TTL_MINUTES
    with atomic(db):
        npd = _get_npd_for_update(db, npd_id, actor.organization_id)
        now = utcnow()
        if is_lock_active(npd, now):
            raise ConflictError(
                f"NPD {npd.document_number} is already locked by user {npd.locked_by}."
            )
        npd.is_locked = True
        npd.locked_by = actor.id
        npd.locked_at = now
        npd.lock_reason = reason
        npd.lock_expires_at = now + timedelta(minutes=ttl)
        audit_service.record(
            db,
            action=AUDIT_LOCKED,
            entity_table="npd_document",
            entity_id=npd.id,
            organization_id=npd.organization_id,
            actor_user_id=actor.id,
            entity_data={"reason": reason, "expires_at": npd.lock_expires_at},
        )
    db.refresh(npd)
    logger.info("lock: npd=%d by user=%d ttl=%dm", npd_id, actor.id, ttl)
    return npd


def unlock(db: Session, actor: Usuario, npd_id: int) -> NpdDocument:
    """Release the lock.

    Allowed for an admin, the user holding the lock, or anyone who may
    verify NPDs when the NPD is ``diverifikasi``.

    Raises:
        NotFoundError: NPD missing or in another organization.
        ConflictError: The NPD is not locked.
        PermissionDenied: Actor is none of the above.
    """
    with atomic(db):
        npd = _get_npd_for_update(db, npd_id, actor.organization_id)
        if not npd.is_locked:
            raise ConflictError(f"NPD {npd.document_number} is not locked.")

        allowed = (
            actor.rol == ROLE_ADMIN
            or npd.locked_by == actor.id
            or (
                npd.status == NPD_DIVERIFIKASI
                and has_permission(actor.rol, "verify", "npd")
            )
        )
        if not allowed:
            raise PermissionDenied(actor.rol, "unlock", "npd")

        previous_holder = npd.locked_by
        _clear(npd)
        audit_service.record(
            db,
            action=AUDIT_UNLOCKED,
            entity_table="npd_document",
            entity_id=npd.id,
            organization_id=npd.organization_id,
            actor_user_id=actor.id,
            entity_data={"locked_by": previous_holder},
        )
    db.refresh(npd)
    logger.info("unlock: npd=%d by user=%d", npd_id, actor.id)
    return npd


def cleanup_expired(db: Session, now: datetime | None = None) -> int:
    """Force-unlock every NPD whose lock has expired.

    Args:
        db: Active SQLAlchemy session.
        now: Reference time; defaults to the current UTC time.

    Returns:
        Number of NPDs released.
    """
    now = now or utcnow()
    with atomic(db):
        expired = (
            db.query(NpdDocument)
            .filter(
                NpdDocument.is_locked.is_(True),
                NpdDocument.lock_expires_at.is_not(None),
                NpdDocument.lock_expires_at < now,
            )
            .with_for_update()
            .all()
        )
        for npd in expired:
            snapshot = {
                "locked_by": npd.locked_by,
                "locked_at": npd.locked_at,
                "lock_expires_at": npd.lock_expires_at,
            }
            _clear(npd)
            audit_service.record(
                db,
                action=AUDIT_AUTO_UNLOCKED,
                entity_table="npd_document",
                entity_id=npd.id,
                organization_id=npd.organization_id,
                actor_user_id=None,
                entity_data=snapshot,
            )

    if expired:
        logger.info("cleanup_expired: released %d expired lock(s)", len(expired))
    return len(expired)
