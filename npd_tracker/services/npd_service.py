"""
NPD workflow service layer.

All database access for the ``/api/npd`` endpoints lives here: the NPD
status state machine, line-item mutations with their budget commitments,
and the read queries behind the NPD tables and queues.

Design notes
------------
- Legal status changes are data (``constants.NPD_TRANSITIONS``); every
  transition goes through ``_ensure_transition`` so an illegal pair raises
  ``StateTransitionError`` before anything is written.
- Each public write runs inside ``atomic(db)``: the NPD row and the account
  rows are re-read ``FOR UPDATE``, validated, mutated, audited and committed
  together.  Any raised error rolls all of it back.
- Line add/update/remove move the *committed* ledger only
  (``ledger_service.apply_commitment_delta``); disbursed figures move only
  when an SP2D is recorded.
- Document numbers come from the per-(organization, year)
  ``document_sequence`` row, incremented with a single UPDATE, and are
  formatted ``NPD-{tahun}-{seq:03d}``.
- Notifications are sent after the commit and can never undo it.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from npd_tracker.config import get_settings
from npd_tracker.database import atomic
from npd_tracker.exceptions import (
    ConflictError,
    NotFoundError,
    StateTransitionError,
    ValidationError,
)
from npd_tracker.models.document_sequence import DocumentSequence
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.npd_line import NpdLine
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.models.sp2d_ref import Sp2dRef
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.common import FilterParams, PaginationParams
from npd_tracker.schemas.npd import (
    NpdCreate,
    NpdLineCreate,
    NpdLineResponse,
    NpdLineUpdate,
    NpdListItem,
    NpdResponse,
    NpdSp2dSummary,
    NpdSummaryResponse,
    NpdUpdate,
    TablaNpdResponse,
)
from npd_tracker.services import (
    audit_service,
    budget_validator,
    ledger_service,
    lock_service,
    notification_service,
)
from npd_tracker.utils.constants import (
    ACCOUNT_ACTIVE,
    AUDIT_CREATED,
    AUDIT_FINALIZED,
    AUDIT_LINE_ADDED,
    AUDIT_LINE_REMOVED,
    AUDIT_LINE_UPDATED,
    AUDIT_REJECTED,
    AUDIT_SUBMITTED,
    AUDIT_UPDATED,
    AUDIT_VERIFIED,
    ESTADOS_NPD,
    JENIS_NPD,
    NOTIF_NPD_FINALIZED,
    NOTIF_NPD_REJECTED,
    NOTIF_NPD_SUBMITTED,
    NOTIF_NPD_VERIFIED,
    NPD_DIAJUKAN,
    NPD_DIVERIFIKASI,
    NPD_DRAFT,
    NPD_FINAL,
    NPD_TRANSITIONS,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def get_npd(
    db: Session,
    npd_id: int,
    organization_id: int,
    for_update: bool = False,
) -> NpdDocument:
    """Load an NPD of the given organization.

    Raises:
        NotFoundError: If the NPD does not exist or belongs to another
            organization.
    """
    q = db.query(NpdDocument).filter(
        NpdDocument.id == npd_id,
        NpdDocument.organization_id == organization_id,
    )
    if for_update:
        q = q.with_for_update()
    npd: NpdDocument | None = q.first()
    if npd is None:
        raise NotFoundError(f"NPD {npd_id} not found.")
    return npd


def _get_line_for_update(db: Session, line_id: int, organization_id: int) -> NpdLine:
    line: NpdLine | None = (
        db.query(NpdLine)
        .join(NpdDocument, NpdLine.npd_id == NpdDocument.id)
        .filter(
            NpdLine.id == line_id,
            NpdDocument.organization_id == organization_id,
        )
        .with_for_update()
        .first()
    )
    if line is None:
        raise NotFoundError(f"NPD line {line_id} not found.")
    return line


def npd_total(npd: NpdDocument) -> int:
    """Sum of the NPD's line amounts."""
    return sum(line.jumlah for line in npd.lines)


def active_sp2d_total(
    db: Session, npd_id: int, exclude_sp2d_id: int | None = None
) -> int:
    """Sum of ``nilai_cair`` of the NPD's non-deleted SP2Ds."""
    q = db.query(func.coalesce(func.sum(Sp2dRef.nilai_cair), 0)).filter(
        Sp2dRef.npd_id == npd_id,
        Sp2dRef.deleted_at.is_(None),
    )
    if exclude_sp2d_id is not None:
        q = q.filter(Sp2dRef.id != exclude_sp2d_id)
    return int(q.scalar() or 0)


def _ensure_transition(npd: NpdDocument, target: str) -> None:
    if target not in NPD_TRANSITIONS.get(npd.status, frozenset()):
        raise StateTransitionError(npd.status, target)


def _ensure_editable(npd: NpdDocument) -> None:
    if npd.status == NPD_FINAL:
        raise StateTransitionError(
            npd.status,
            npd.status,
            f"Cannot edit finalized NPD {npd.document_number}.",
        )


def _next_sequence(db: Session, organization_id: int, tahun: int) -> int:
    """Atomically reserve the next NPD sequence number for (organization, year).

    Raises:
        ConflictError: If a concurrent transaction created the counter row
            for the same year at the same moment.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.organization_id == organization_id,
            DocumentSequence.tahun == tahun,
        )
        .values(last_value=DocumentSequence.last_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        db.add(DocumentSequence(organization_id=organization_id, tahun=tahun, last_value=1))
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Document number allocation collided with another request; retry."
            ) from exc
        return 1

    return int(
        db.query(DocumentSequence.last_value)
        .filter(
            DocumentSequence.organization_id == organization_id,
            DocumentSequence.tahun == tahun,
        )
        .scalar()
    )


def _snapshot(npd: NpdDocument) -> dict[str, Any]:
    return {
        "document_number": npd.document_number,
        "status": npd.status,
        "title": npd.title,
        "jenis": npd.jenis,
        "tahun": npd.tahun,
        "catatan": npd.catatan,
        "total": npd_total(npd),
    }


def _audit(
    db: Session,
    actor: Usuario,
    action: str,
    npd: NpdDocument,
    entity_data: dict[str, Any] | None = None,
    entity_table: str = "npd_document",
    entity_id: int | None = None,
) -> None:
    audit_service.record(
        db,
        action=action,
        entity_table=entity_table,
        entity_id=entity_id if entity_id is not None else npd.id,
        organization_id=npd.organization_id,
        actor_user_id=actor.id,
        entity_data=entity_data,
    )


def _build_line_response(line: NpdLine) -> NpdLineResponse:
    account = line.account
    return NpdLineResponse(
        id=line.id,
        account_id=line.account_id,
        account_kode=account.kode if account is not None else None,
        account_uraian=account.uraian if account is not None else None,
        account_sisa_komitmen=account.sisa_komitmen if account is not None else None,
        uraian=line.uraian,
        jumlah=line.jumlah,
    )


def _build_response(db: Session, npd: NpdDocument) -> NpdResponse:
    """Construct an ``NpdResponse`` from an ``NpdDocument`` ORM object."""
    total = npd_total(npd)
    total_cair = active_sp2d_total(db, npd.id)
    subkegiatan = npd.subkegiatan
    return NpdResponse(
        id=npd.id,
        document_number=npd.document_number,
        title=npd.title,
        description=npd.description,
        jenis=npd.jenis,
        tahun=npd.tahun,
        status=npd.status,
        catatan=npd.catatan,
        subkegiatan_id=npd.subkegiatan_id,
        subkegiatan_kode=subkegiatan.kode if subkegiatan is not None else None,
        subkegiatan_nama=subkegiatan.nama if subkegiatan is not None else None,
        created_by=npd.created_by,
        verified_by=npd.verified_by,
        verified_at=npd.verified_at,
        finalized_by=npd.finalized_by,
        finalized_at=npd.finalized_at,
        is_locked=lock_service.is_lock_active(npd),
        locked_by=npd.locked_by,
        lock_reason=npd.lock_reason,
        lock_expires_at=npd.lock_expires_at,
        total=total,
        total_cair=total_cair,
        sisa_cair=total - total_cair,
        created_at=npd.created_at,
        updated_at=npd.updated_at,
        lines=[_build_line_response(line) for line in npd.lines],
        sp2ds=[
            NpdSp2dSummary(
                id=s.id,
                no_sp2d=s.no_sp2d,
                tgl_sp2d=s.tgl_sp2d,
                nilai_cair=s.nilai_cair,
                deleted=s.deleted_at is not None,
            )
            for s in npd.sp2ds
        ],
    )


def _apply_filters(query: Any, filters: FilterParams) -> Any:
    if filters.tahun is not None:
        query = query.filter(NpdDocument.tahun == filters.tahun)
    if filters.status is not None:
        query = query.filter(NpdDocument.status == filters.status)
    if filters.jenis is not None:
        query = query.filter(NpdDocument.jenis == filters.jenis)
    if filters.subkegiatan_id is not None:
        query = query.filter(NpdDocument.subkegiatan_id == filters.subkegiatan_id)
    return query


# ---------------------------------------------------------------------------
# Public service functions: read operations
# ---------------------------------------------------------------------------


def get_detalle(db: Session, actor: Usuario, npd_id: int) -> NpdResponse:
    """Return one NPD with its lines, account labels and SP2D list.

    Raises:
        PermissionDenied: Actor cannot read NPDs.
        NotFoundError: NPD missing or in another organization.
    """
    require_permission(actor.rol, "read", "npd")
    npd = get_npd(db, npd_id, actor.organization_id)
    logger.debug("get_detalle: npd_id=%d number=%s", npd_id, npd.document_number)
    return _build_response(db, npd)


def get_tabla(
    db: Session,
    actor: Usuario,
    filters: FilterParams,
    pagination: PaginationParams,
) -> TablaNpdResponse:
    """Return a newest-first page of the organization's NPDs."""
    require_permission(actor.rol, "read", "npd")

    q = db.query(NpdDocument).filter(NpdDocument.organization_id == actor.organization_id)
    q = _apply_filters(q, filters)
    total = q.count()
    page_rows = (
        q.order_by(NpdDocument.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
        .all()
    )

    rows = [
        NpdListItem(
            id=n.id,
            document_number=n.document_number,
            title=n.title,
            jenis=n.jenis,
            tahun=n.tahun,
            status=n.status,
            subkegiatan_id=n.subkegiatan_id,
            total=npd_total(n),
            line_count=len(n.lines),
            is_locked=lock_service.is_lock_active(n),
            created_at=n.created_at,
        )
        for n in page_rows
    ]
    logger.debug(
        "get_tabla: page=%d size=%d total=%d", pagination.page, pagination.page_size, total
    )
    return TablaNpdResponse(
        rows=rows, total=total, page=pagination.page, page_size=pagination.page_size
    )


def get_queue(
    db: Session,
    actor: Usuario,
    pagination: PaginationParams,
    status: str,
) -> TablaNpdResponse:
    """Work queue: NPDs waiting for verification (diajukan) or approval (diverifikasi)."""
    if status == NPD_DIAJUKAN:
        require_permission(actor.rol, "verify", "npd")
    elif status == NPD_DIVERIFIKASI:
        require_permission(actor.rol, "approve", "npd")
    else:
        raise ValidationError(f"No work queue for status '{status}'.")
    return get_tabla(db, actor, FilterParams(status=status), pagination)


def get_summary(db: Session, actor: Usuario, filters: FilterParams) -> NpdSummaryResponse:
    """Count NPDs by status and sum their values."""
    require_permission(actor.rol, "read", "npd")

    q = db.query(NpdDocument).filter(NpdDocument.organization_id == actor.organization_id)
    q = _apply_filters(q, filters)
    rows = q.all()

    por_status = {s: 0 for s in ESTADOS_NPD}
    for n in rows:
        por_status[n.status] = por_status.get(n.status, 0) + 1
    total_nilai = sum(npd_total(n) for n in rows)
    return NpdSummaryResponse(
        total=len(rows),
        por_status=por_status,
        total_nilai=total_nilai,
        rata_rata=total_nilai // len(rows) if rows else 0,
    )


# ---------------------------------------------------------------------------
# Public service functions: document writes
# ---------------------------------------------------------------------------


def create_npd(db: Session, actor: Usuario, data: NpdCreate) -> NpdDocument:
    """Create a draft NPD with the next document number of its year.

    Args:
        db: Active SQLAlchemy session.
        actor: Authenticated user.
        data: Validated creation payload.

    Returns:
        The newly persisted ``NpdDocument``.

    Raises:
        PermissionDenied: Actor lacks ``create:npd``.
        NotFoundError: Sub-kegiatan missing or in another organization.
        ValidationError: Year mismatch or unknown jenis.
    """
    require_permission(actor.rol, "create", "npd")
    if data.jenis not in JENIS_NPD:
        raise ValidationError(f"Unknown NPD jenis '{data.jenis}'.")

    with atomic(db):
        subkegiatan: RkaSubkegiatan | None = (
            db.query(RkaSubkegiatan)
            .filter(
                RkaSubkegiatan.id == data.subkegiatan_id,
                RkaSubkegiatan.organization_id == actor.organization_id,
            )
            .first()
        )
        if subkegiatan is None:
            raise NotFoundError(f"Sub-kegiatan {data.subkegiatan_id} not found.")
        if subkegiatan.fiscal_year != data.tahun:
            raise ValidationError(
                f"NPD year {data.tahun} does not match sub-kegiatan fiscal year "
                f"{subkegiatan.fiscal_year}."
            )

        seq = _next_sequence(db, actor.organization_id, data.tahun)
        npd = NpdDocument(
            organization_id=actor.organization_id,
            subkegiatan_id=subkegiatan.id,
            document_number=f"NPD-{data.tahun}-{seq:03d}",
            title=data.title,
            description=data.description,
            catatan=data.catatan,
            jenis=data.jenis,
            tahun=data.tahun,
            status=NPD_DRAFT,
            created_by=actor.id,
            is_locked=False,
        )
        db.add(npd)
        db.flush()
        _audit(db, actor, AUDIT_CREATED, npd, _snapshot(npd))

    db.refresh(npd)
    logger.info("create_npd: created %s (id=%d)", npd.document_number, npd.id)
    return npd


def update_npd(db: Session, actor: Usuario, npd_id: int, data: NpdUpdate) -> NpdDocument:
    """Apply a partial update to the NPD header.

    Raises:
        PermissionDenied: Actor lacks ``update:npd``.
        StateTransitionError: The NPD is final.
    """
    require_permission(actor.rol, "update", "npd")
    update_data = data.model_dump(exclude_unset=True)

    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        _ensure_editable(npd)
        before = {field: getattr(npd, field) for field in update_data}
        for field, value in update_data.items():
            setattr(npd, field, value)
        _audit(db, actor, AUDIT_UPDATED, npd, {"before": before, "after": update_data})

    db.refresh(npd)
    logger.info("update_npd: id=%d fields=%s", npd_id, list(update_data.keys()))
    return npd


# ---------------------------------------------------------------------------
# Public service functions: line items
# ---------------------------------------------------------------------------


def add_line(db: Session, actor: Usuario, npd_id: int, data: NpdLineCreate) -> NpdLine:
    """Add a line item and commit its amount against the account.

    Raises:
        StateTransitionError: The NPD is final.
        PermissionDenied: Actor lacks ``update:npd``.
        NotFoundError: NPD or account missing or in another organization.
        ValidationError: Non-positive amount, inactive account, account of
            another fiscal year, or too many lines.
        BudgetExceeded: Cumulative ceiling or immediate headroom exceeded.
    """
    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        _ensure_editable(npd)
        require_permission(actor.rol, "update", "npd")
        if data.jumlah <= 0:
            raise ValidationError("Line amount must be positive.")

        account = ledger_service.get_account_for_update(db, data.account_id)
        if account.organization_id != npd.organization_id:
            raise NotFoundError(f"Budget account {data.account_id} not found.")
        if account.fiscal_year != npd.tahun:
            raise ValidationError(
                f"Account {account.kode} belongs to fiscal year {account.fiscal_year}, "
                f"not {npd.tahun}."
            )
        if account.status != ACCOUNT_ACTIVE:
            raise ValidationError(f"Account {account.kode} is not active.")

        max_lines = get_settings().MAX_LINES_PER_NPD
        if len(npd.lines) >= max_lines:
            raise ValidationError(f"An NPD may have at most {max_lines} lines.")

        budget_validator.check_line(db, npd, account, data.jumlah)

        line = NpdLine(
            npd_id=npd.id,
            account_id=account.id,
            uraian=data.uraian,
            jumlah=data.jumlah,
        )
        db.add(line)
        db.flush()
        ledger_service.apply_commitment_delta(db, account.id, data.jumlah)
        _audit(
            db, actor, AUDIT_LINE_ADDED, npd,
            {"npd_id": npd.id, "account_id": account.id, "uraian": data.uraian, "jumlah": data.jumlah},
            entity_table="npd_line", entity_id=line.id,
        )

    db.refresh(line)
    logger.info(
        "add_line: npd=%d line=%d account=%d jumlah=%d",
        npd_id, line.id, line.account_id, line.jumlah,
    )
    return line


def update_line(db: Session, actor: Usuario, line_id: int, data: NpdLineUpdate) -> NpdLine:
    """Change a line's amount and move the commitment by the difference.

    Raises:
        StateTransitionError: The NPD is final.
        PermissionDenied: Actor lacks ``update:npd``.
        NotFoundError: Line missing or in another organization.
        BudgetExceeded: The new amount breaks a budget check.
    """
    with atomic(db):
        line = _get_line_for_update(db, line_id, actor.organization_id)
        npd = get_npd(db, line.npd_id, actor.organization_id, for_update=True)
        _ensure_editable(npd)
        require_permission(actor.rol, "update", "npd")
        if data.jumlah <= 0:
            raise ValidationError("Line amount must be positive.")

        account = ledger_service.get_account_for_update(db, line.account_id)
        old_jumlah = line.jumlah
        delta = data.jumlah - old_jumlah
        budget_validator.check_line(db, npd, account, data.jumlah, editing_line=line)

        line.jumlah = data.jumlah
        if data.uraian is not None:
            line.uraian = data.uraian
        if delta:
            ledger_service.apply_commitment_delta(db, account.id, delta)
        _audit(
            db, actor, AUDIT_LINE_UPDATED, npd,
            {"npd_id": npd.id, "account_id": account.id, "before": old_jumlah, "after": data.jumlah},
            entity_table="npd_line", entity_id=line.id,
        )

    db.refresh(line)
    logger.info("update_line: line=%d delta=%d", line_id, delta)
    return line


def remove_line(db: Session, actor: Usuario, line_id: int) -> NpdDocument:
    """Delete a line item and release its commitment.

    Returns:
        The owning NPD.

    Raises:
        StateTransitionError: The NPD is final.
        PermissionDenied: Actor lacks ``update:npd``.
        NotFoundError: Line missing or in another organization.
    """
    with atomic(db):
        line = _get_line_for_update(db, line_id, actor.organization_id)
        npd = get_npd(db, line.npd_id, actor.organization_id, for_update=True)
        _ensure_editable(npd)
        require_permission(actor.rol, "update", "npd")

        ledger_service.apply_commitment_delta(db, line.account_id, -line.jumlah)
        _audit(
            db, actor, AUDIT_LINE_REMOVED, npd,
            {"npd_id": npd.id, "account_id": line.account_id, "uraian": line.uraian, "jumlah": line.jumlah},
            entity_table="npd_line", entity_id=line.id,
        )
        npd.lines.remove(line)
        db.flush()

    db.refresh(npd)
    logger.info("remove_line: line=%d npd=%d", line_id, npd.id)
    return npd


# ---------------------------------------------------------------------------
# Public service functions: workflow transitions
# ---------------------------------------------------------------------------


def submit(db: Session, actor: Usuario, npd_id: int) -> NpdDocument:
    """draft -> diajukan.

    Raises:
        StateTransitionError: Not in draft.
        PermissionDenied: Actor lacks ``submit:npd``.
        ValidationError: The NPD has no lines.
    """
    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        _ensure_transition(npd, NPD_DIAJUKAN)
        require_permission(actor.rol, "submit", "npd")
        if not npd.lines:
            raise ValidationError("NPD must have at least one line item.")
        npd.status = NPD_DIAJUKAN
        _audit(db, actor, AUDIT_SUBMITTED, npd, _snapshot(npd))

    db.refresh(npd)
    logger.info("submit: %s by user=%d", npd.document_number, actor.id)
    notification_service.notify_npd_event(db, NOTIF_NPD_SUBMITTED, npd, actor)
    return npd


def apply_verify(
    db: Session, actor: Usuario, npd: NpdDocument, notes: str | None = None
) -> None:
    """Move a row-locked NPD to diverifikasi inside the caller's transaction.

    Runs every check before writing, so a failure leaves nothing to undo.
    The caller commits and sends the notification.
    """
    _ensure_transition(npd, NPD_DIVERIFIKASI)
    require_permission(actor.rol, "verify", "npd")
    lock_service.assert_not_locked_by_other(npd, actor)
    npd.status = NPD_DIVERIFIKASI
    npd.verified_by = actor.id
    npd.verified_at = utcnow()
    if notes is not None:
        npd.catatan = notes
    _audit(db, actor, AUDIT_VERIFIED, npd, {"notes": notes})


def verify(db: Session, actor: Usuario, npd_id: int, notes: str | None = None) -> NpdDocument:
    """diajukan -> diverifikasi; records the verifier.

    Raises:
        StateTransitionError: Not in diajukan.
        PermissionDenied: Actor lacks ``verify:npd``.
        ConflictError: Another user holds an unexpired lock.
    """
    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        apply_verify(db, actor, npd, notes)

    db.refresh(npd)
    logger.info("verify: %s by user=%d", npd.document_number, actor.id)
    notification_service.notify_npd_event(db, NOTIF_NPD_VERIFIED, npd, actor)
    return npd


def reject(db: Session, actor: Usuario, npd_id: int, reason: str) -> NpdDocument:
    """diajukan | diverifikasi -> draft; clears verification and finalization.

    The reason is prepended to ``catatan`` with the previous notes kept below.

    Raises:
        StateTransitionError: Current status has no edge to draft.
        PermissionDenied: Actor lacks ``verify:npd``.
        ValidationError: Empty reason.
    """
    if not reason or not reason.strip():
        raise ValidationError("A rejection reason is required.")

    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        _ensure_transition(npd, NPD_DRAFT)
        require_permission(actor.rol, "verify", "npd")
        previous_status = npd.status
        npd.status = NPD_DRAFT
        npd.verified_by = None
        npd.verified_at = None
        npd.finalized_by = None
        npd.finalized_at = None
        npd.catatan = f"DITOLAK: {reason}\n\nCatatan asli:\n{npd.catatan or ''}"
        _audit(db, actor, AUDIT_REJECTED, npd, {"reason": reason, "from": previous_status})

    db.refresh(npd)
    logger.info("reject: %s by user=%d", npd.document_number, actor.id)
    notification_service.notify_npd_event(db, NOTIF_NPD_REJECTED, npd, actor)
    return npd


def finalize(db: Session, actor: Usuario, npd_id: int) -> NpdDocument:
    """diverifikasi -> final; records the approver.

    Raises:
        StateTransitionError: Not in diverifikasi.
        PermissionDenied: Actor lacks ``approve:npd``.
        ConflictError: Another user holds an unexpired lock.
    """
    with atomic(db):
        npd = get_npd(db, npd_id, actor.organization_id, for_update=True)
        _ensure_transition(npd, NPD_FINAL)
        require_permission(actor.rol, "approve", "npd")
        lock_service.assert_not_locked_by_other(npd, actor)
        npd.status = NPD_FINAL
        npd.finalized_by = actor.id
        npd.finalized_at = utcnow()
        _audit(db, actor, AUDIT_FINALIZED, npd, _snapshot(npd))

    db.refresh(npd)
    logger.info("finalize: %s by user=%d", npd.document_number, actor.id)
    notification_service.notify_npd_event(db, NOTIF_NPD_FINALIZED, npd, actor)
    return npd
