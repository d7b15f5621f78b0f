"""
SP2D realization engine.

An SP2D is an actual disbursement against a finalized NPD.  Recording one
splits its amount across the NPD's lines in proportion to their amounts,
stores each share as a ``Realization`` row and applies it to the line's
account via ``ledger_service.apply_realization_delta``.

Design notes
------------
- ``distribute`` is pure: half-up rounding for every line but the last, the
  last line takes the remainder, so the shares always sum to the amount.
- Reversals never recompute proportions.  Edits, soft deletes and restores
  replay the ``jumlah`` stored on the active (non-superseded) realization
  rows, so the ledger returns to exactly what it was.
- The cumulative cap ``nilai_cair <= NPD total - other active SP2Ds`` is
  checked on create, on amount edits and on restore.
- Soft delete keeps every row; only ``deleted_at`` marks the SP2D inactive.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm import Session

from npd_tracker.config import get_settings
from npd_tracker.database import atomic
from npd_tracker.exceptions import (
    BudgetExceeded,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.realization import Realization
from npd_tracker.models.sp2d_ref import Sp2dRef
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.common import PaginationParams
from npd_tracker.schemas.sp2d import (
    RealizationResponse,
    Sp2dCreate,
    Sp2dResponse,
    Sp2dUpdate,
    TablaSp2dResponse,
)
from npd_tracker.services import (
    audit_service,
    ledger_service,
    notification_service,
    npd_service,
)
from npd_tracker.utils.constants import (
    AUDIT_CREATED,
    AUDIT_RESTORED,
    AUDIT_SOFT_DELETED,
    AUDIT_UPDATED,
    NPD_FINAL,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Distribution
# ---------------------------------------------------------------------------


def distribute(nilai_cair: int, line_amounts: Sequence[int]) -> list[int]:
    """Split *nilai_cair* across lines proportionally to *line_amounts*.

    Every line but the last receives ``round_half_up(nilai_cair * j / total)``;
    the last receives whatever is left, so ``sum(result) == nilai_cair``.
    If half-up rounding of many small lines would overshoot the amount, the
    leading shares are floored instead so that no share is negative.

    Args:
        nilai_cair: Amount to distribute, in integer currency units.
        line_amounts: Line ``jumlah`` values in line order.

    Returns:
        One share per line, same order.

    Raises:
        ValidationError: If there are no lines or they sum to zero.

    Example:
        >>> distribute(8_000_000, [2_500_000, 2_500_000, 5_000_000])
        [2000000, 2000000, 4000000]
    """
    if not line_amounts:
        raise ValidationError("Cannot distribute over an NPD without lines.")
    total = sum(line_amounts)
    if total <= 0:
        raise ValidationError("Cannot distribute over lines that sum to zero.")

    leading = [
        (2 * nilai_cair * j + total) // (2 * total) for j in line_amounts[:-1]
    ]
    remainder = nilai_cair - sum(leading)
    if remainder < 0:
        leading = [nilai_cair * j // total for j in line_amounts[:-1]]
        remainder = nilai_cair - sum(leading)
    return leading + [remainder]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_sp2d(
    db: Session, sp2d_id: int, organization_id: int, for_update: bool = False
) -> Sp2dRef:
    q = db.query(Sp2dRef).filter(
        Sp2dRef.id == sp2d_id,
        Sp2dRef.organization_id == organization_id,
    )
    if for_update:
        q = q.with_for_update()
    sp2d: Sp2dRef | None = q.first()
    if sp2d is None:
        raise NotFoundError(f"SP2D {sp2d_id} not found.")
    return sp2d


def _ensure_unique_number(
    db: Session, organization_id: int, no_sp2d: str, exclude_id: int | None = None
) -> None:
    q = db.query(Sp2dRef.id).filter(
        Sp2dRef.organization_id == organization_id,
        Sp2dRef.no_sp2d == no_sp2d,
    )
    if exclude_id is not None:
        q = q.filter(Sp2dRef.id != exclude_id)
    if q.first() is not None:
        raise ConflictError(f"SP2D number '{no_sp2d}' already exists.")


def _ensure_within_cap(
    db: Session, npd: NpdDocument, nilai_cair: int, exclude_sp2d_id: int | None = None
) -> None:
    available = npd_service.npd_total(npd) - npd_service.active_sp2d_total(
        db, npd.id, exclude_sp2d_id
    )
    if nilai_cair > available:
        raise BudgetExceeded(
            requested=nilai_cair,
            available=available,
            message=(
                f"SP2D amount {nilai_cair:,} exceeds the undisbursed balance "
                f"{available:,} of NPD {npd.document_number}."
            ),
        )


def _ensure_date(npd: NpdDocument, tgl_sp2d: Any) -> None:
    if get_settings().SP2D_ALLOW_BACKDATE or npd.finalized_at is None:
        return
    if tgl_sp2d < npd.finalized_at.date():
        raise ValidationError(
            f"SP2D date {tgl_sp2d} is before NPD {npd.document_number} was "
            f"finalized ({npd.finalized_at.date()})."
        )


def _active_realizations(db: Session, sp2d_id: int) -> list[Realization]:
    return (
        db.query(Realization)
        .filter(
            Realization.sp2d_id == sp2d_id,
            Realization.superseded_at.is_(None),
        )
        .order_by(Realization.id)
        .all()
    )


def _realize(db: Session, sp2d: Sp2dRef, npd: NpdDocument) -> list[Realization]:
    """Distribute the SP2D over the NPD lines and apply each share."""
    lines = list(npd.lines)
    shares = distribute(sp2d.nilai_cair, [line.jumlah for line in lines])
    rows: list[Realization] = []
    for line, share in zip(lines, shares):
        if share == 0:
            continue
        row = Realization(
            sp2d_id=sp2d.id,
            npd_id=npd.id,
            npd_line_id=line.id,
            account_id=line.account_id,
            organization_id=sp2d.organization_id,
            jumlah=share,
        )
        db.add(row)
        ledger_service.apply_realization_delta(db, line.account_id, share)
        rows.append(row)
    db.flush()
    return rows


def _replay(db: Session, rows: list[Realization], sign: int) -> None:
    for row in rows:
        ledger_service.apply_realization_delta(db, row.account_id, sign * row.jumlah)


def _snapshot(sp2d: Sp2dRef) -> dict[str, Any]:
    return {
        "npd_id": sp2d.npd_id,
        "no_spm": sp2d.no_spm,
        "no_sp2d": sp2d.no_sp2d,
        "tgl_sp2d": sp2d.tgl_sp2d,
        "nilai_cair": sp2d.nilai_cair,
        "catatan": sp2d.catatan,
    }


def _audit(
    db: Session, actor: Usuario, action: str, sp2d: Sp2dRef, entity_data: dict[str, Any]
) -> None:
    audit_service.record(
        db,
        action=action,
        entity_table="sp2d_ref",
        entity_id=sp2d.id,
        organization_id=sp2d.organization_id,
        actor_user_id=actor.id,
        entity_data=entity_data,
    )


def _build_response(sp2d: Sp2dRef) -> Sp2dResponse:
    return Sp2dResponse(
        id=sp2d.id,
        npd_id=sp2d.npd_id,
        npd_document_number=sp2d.npd.document_number if sp2d.npd is not None else None,
        no_spm=sp2d.no_spm,
        no_sp2d=sp2d.no_sp2d,
        tgl_sp2d=sp2d.tgl_sp2d,
        nilai_cair=sp2d.nilai_cair,
        catatan=sp2d.catatan,
        created_by=sp2d.created_by,
        deleted_at=sp2d.deleted_at,
        deleted_by=sp2d.deleted_by,
        delete_reason=sp2d.delete_reason,
        created_at=sp2d.created_at,
        realizations=[
            RealizationResponse(
                id=r.id,
                npd_line_id=r.npd_line_id,
                account_id=r.account_id,
                account_kode=r.account.kode if r.account is not None else None,
                jumlah=r.jumlah,
                superseded_at=r.superseded_at,
            )
            for r in sp2d.realizations
        ],
    )


# ---------------------------------------------------------------------------
# Public service functions: writes
# ---------------------------------------------------------------------------


def create_sp2d(db: Session, actor: Usuario, data: Sp2dCreate) -> Sp2dResponse:
    """Record a disbursement against a finalized NPD and realize it.

    Raises:
        PermissionDenied: Actor lacks ``create:sp2d``.
        NotFoundError: NPD missing or in another organization.
        ValidationError: NPD not final, SP2D dated before finalization, or
            the NPD has no lines.
        ConflictError: ``no_sp2d`` already used in the organization.
        BudgetExceeded: Amount above the NPD's undisbursed balance.
    """
    require_permission(actor.rol, "create", "sp2d")
    if data.nilai_cair <= 0:
        raise ValidationError("SP2D amount must be positive.")

    with atomic(db):
        npd = npd_service.get_npd(db, data.npd_id, actor.organization_id, for_update=True)
        if npd.status != NPD_FINAL:
            raise ValidationError(
                f"NPD {npd.document_number} is '{npd.status}'; only final NPDs can be paid."
            )
        if not npd.lines:
            raise ValidationError(f"NPD {npd.document_number} has no line items.")
        _ensure_date(npd, data.tgl_sp2d)
        _ensure_unique_number(db, actor.organization_id, data.no_sp2d)
        _ensure_within_cap(db, npd, data.nilai_cair)

        sp2d = Sp2dRef(
            organization_id=actor.organization_id,
            npd_id=npd.id,
            no_spm=data.no_spm,
            no_sp2d=data.no_sp2d,
            tgl_sp2d=data.tgl_sp2d,
            nilai_cair=data.nilai_cair,
            catatan=data.catatan,
            created_by=actor.id,
        )
        db.add(sp2d)
        db.flush()
        rows = _realize(db, sp2d, npd)
        _audit(
            db, actor, AUDIT_CREATED, sp2d,
            {**_snapshot(sp2d), "shares": {r.npd_line_id: r.jumlah for r in rows}},
        )

    db.refresh(sp2d)
    logger.info(
        "create_sp2d: %s for %s nilai=%d shares=%d",
        sp2d.no_sp2d, npd.document_number, sp2d.nilai_cair, len(rows),
    )
    notification_service.notify_sp2d_created(db, sp2d, npd, actor)
    return _build_response(sp2d)


def update_sp2d(db: Session, actor: Usuario, sp2d_id: int, data: Sp2dUpdate) -> Sp2dResponse:
    """Edit an SP2D; a changed amount reverses and redistributes its shares.

    Raises:
        PermissionDenied: Actor lacks ``update:sp2d``.
        NotFoundError: SP2D missing or in another organization.
        ConflictError: SP2D is soft-deleted, or the new number is taken.
        BudgetExceeded: New amount above the undisbursed balance.
    """
    require_permission(actor.rol, "update", "sp2d")
    update_data = data.model_dump(exclude_unset=True)

    with atomic(db):
        sp2d = _get_sp2d(db, sp2d_id, actor.organization_id, for_update=True)
        if sp2d.deleted_at is not None:
            raise ConflictError(f"SP2D {sp2d.no_sp2d} is deleted; restore it first.")
        npd = npd_service.get_npd(db, sp2d.npd_id, actor.organization_id, for_update=True)
        before = _snapshot(sp2d)

        if "no_sp2d" in update_data and update_data["no_sp2d"] != sp2d.no_sp2d:
            _ensure_unique_number(db, actor.organization_id, update_data["no_sp2d"], sp2d.id)
        if "tgl_sp2d" in update_data and update_data["tgl_sp2d"] is not None:
            _ensure_date(npd, update_data["tgl_sp2d"])

        new_nilai = update_data.get("nilai_cair")
        amount_changed = new_nilai is not None and new_nilai != sp2d.nilai_cair
        if amount_changed:
            _ensure_within_cap(db, npd, new_nilai, exclude_sp2d_id=sp2d.id)

        for field, value in update_data.items():
            if value is not None or field in ("no_spm", "catatan"):
                setattr(sp2d, field, value)

        if amount_changed:
            old_rows = _active_realizations(db, sp2d.id)
            _replay(db, old_rows, -1)
            now = utcnow()
            for row in old_rows:
                row.superseded_at = now
            db.flush()
            _realize(db, sp2d, npd)

        _audit(db, actor, AUDIT_UPDATED, sp2d, {"before": before, "after": _snapshot(sp2d)})

    db.refresh(sp2d)
    logger.info(
        "update_sp2d: %s fields=%s redistributed=%s",
        sp2d.no_sp2d, list(update_data.keys()), amount_changed,
    )
    return _build_response(sp2d)


def soft_delete_sp2d(db: Session, actor: Usuario, sp2d_id: int, reason: str) -> Sp2dResponse:
    """Mark an SP2D deleted and reverse its active shares.

    Raises:
        PermissionDenied: Actor lacks ``delete:sp2d``.
        NotFoundError: SP2D missing or in another organization.
        ConflictError: Already deleted.
        ValidationError: Empty reason.
    """
    require_permission(actor.rol, "delete", "sp2d")
    if not reason or not reason.strip():
        raise ValidationError("A deletion reason is required.")

    with atomic(db):
        sp2d = _get_sp2d(db, sp2d_id, actor.organization_id, for_update=True)
        if sp2d.deleted_at is not None:
            raise ConflictError(f"SP2D {sp2d.no_sp2d} is already deleted.")
        _replay(db, _active_realizations(db, sp2d.id), -1)
        sp2d.deleted_at = utcnow()
        sp2d.deleted_by = actor.id
        sp2d.delete_reason = reason
        _audit(db, actor, AUDIT_SOFT_DELETED, sp2d, {"reason": reason, **_snapshot(sp2d)})

    db.refresh(sp2d)
    logger.info("soft_delete_sp2d: %s by user=%d", sp2d.no_sp2d, actor.id)
    return _build_response(sp2d)


def restore_sp2d(db: Session, actor: Usuario, sp2d_id: int) -> Sp2dResponse:
    """Undo a soft delete and re-apply the stored shares.

    Raises:
        PermissionDenied: Actor lacks ``delete:sp2d``.
        NotFoundError: SP2D missing or in another organization.
        ConflictError: The SP2D is not deleted.
        BudgetExceeded: Other SP2Ds now use the balance it needs.
    """
    require_permission(actor.rol, "delete", "sp2d")

    with atomic(db):
        sp2d = _get_sp2d(db, sp2d_id, actor.organization_id, for_update=True)
        if sp2d.deleted_at is None:
            raise ConflictError(f"SP2D {sp2d.no_sp2d} is not deleted.")
        npd = npd_service.get_npd(db, sp2d.npd_id, actor.organization_id, for_update=True)
        _ensure_within_cap(db, npd, sp2d.nilai_cair, exclude_sp2d_id=sp2d.id)
        _replay(db, _active_realizations(db, sp2d.id), +1)
        previous_reason = sp2d.delete_reason
        sp2d.deleted_at = None
        sp2d.deleted_by = None
        sp2d.delete_reason = None
        _audit(db, actor, AUDIT_RESTORED, sp2d, {"previous_reason": previous_reason})

    db.refresh(sp2d)
    logger.info("restore_sp2d: %s by user=%d", sp2d.no_sp2d, actor.id)
    return _build_response(sp2d)


# ---------------------------------------------------------------------------
# Public service functions: reads
# ---------------------------------------------------------------------------


def get_sp2d_detail(db: Session, actor: Usuario, sp2d_id: int) -> Sp2dResponse:
    require_permission(actor.rol, "read", "sp2d")
    return _build_response(_get_sp2d(db, sp2d_id, actor.organization_id))


def list_sp2d(
    db: Session,
    actor: Usuario,
    pagination: PaginationParams,
    tahun: int | None = None,
    include_deleted: bool = False,
) -> TablaSp2dResponse:
    """Return a newest-first page of the organization's SP2Ds."""
    require_permission(actor.rol, "read", "sp2d")

    q = db.query(Sp2dRef).filter(Sp2dRef.organization_id == actor.organization_id)
    if not include_deleted:
        q = q.filter(Sp2dRef.deleted_at.is_(None))
    if tahun is not None:
        q = q.join(NpdDocument, Sp2dRef.npd_id == NpdDocument.id).filter(
            NpdDocument.tahun == tahun
        )
    total = q.count()
    rows = (
        q.order_by(Sp2dRef.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
        .all()
    )
    logger.debug("list_sp2d: page=%d total=%d", pagination.page, total)
    return TablaSp2dResponse(
        rows=[_build_response(s) for s in rows],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


def list_by_npd(
    db: Session, actor: Usuario, npd_id: int, include_deleted: bool = True
) -> list[Sp2dResponse]:
    """All SP2Ds of one NPD in creation order."""
    require_permission(actor.rol, "read", "sp2d")
    npd = npd_service.get_npd(db, npd_id, actor.organization_id)
    return [
        _build_response(s)
        for s in npd.sp2ds
        if include_deleted or s.deleted_at is None
    ]
