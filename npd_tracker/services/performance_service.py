"""
Performance indicator log service.

Each sub-kegiatan reports output indicators per period (target vs.
realisasi).  A log moves through its own small approval flow:

    draft -> submitted -> approved
              submitted -> draft   (returned for correction)

Design notes
------------
- Only drafts may be edited; the author or an admin edits and submits.
- ``realisasi`` may not exceed ``PERFORMANCE_MAX_RATIO`` times ``target``;
  the check runs on the merged values of an update.
- Every write records an audit entry in the same transaction.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from npd_tracker.database import atomic
from npd_tracker.exceptions import (
    NotFoundError,
    PermissionDenied,
    StateTransitionError,
    ValidationError,
)
from npd_tracker.models.performance_log import PerformanceLog
from npd_tracker.models.rka_subkegiatan import RkaSubkegiatan
from npd_tracker.models.usuario import Usuario
from npd_tracker.schemas.performance import (
    PerformanceCreate,
    PerformanceDetailResponse,
    PerformanceIndicatorSummary,
    PerformanceResponse,
    PerformanceUpdate,
)
from npd_tracker.services import audit_service
from npd_tracker.services.ledger_service import safe_pct
from npd_tracker.utils.constants import (
    AUDIT_APPROVED,
    AUDIT_CREATED,
    AUDIT_DELETED,
    AUDIT_REJECTED,
    AUDIT_SUBMITTED,
    AUDIT_UPDATED,
    PERFORMANCE_APPROVED,
    PERFORMANCE_DRAFT,
    PERFORMANCE_MAX_RATIO,
    PERFORMANCE_SUBMITTED,
    PERFORMANCE_TRANSITIONS,
    ROLE_ADMIN,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)

_ENTITY_TABLE = "performance_log"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_subkegiatan(db: Session, subkegiatan_id: int, organization_id: int) -> RkaSubkegiatan:
    sub = (
        db.query(RkaSubkegiatan)
        .filter(
            RkaSubkegiatan.id == subkegiatan_id,
            RkaSubkegiatan.organization_id == organization_id,
        )
        .first()
    )
    if sub is None:
        raise NotFoundError(f"Sub kegiatan {subkegiatan_id} not found.")
    return sub


def _get_log(db: Session, log_id: int, organization_id: int) -> PerformanceLog:
    log = (
        db.query(PerformanceLog)
        .filter(
            PerformanceLog.id == log_id,
            PerformanceLog.organization_id == organization_id,
        )
        .with_for_update()
        .first()
    )
    if log is None:
        raise NotFoundError(f"Performance log {log_id} not found.")
    return log


def _ensure_author(log: PerformanceLog, actor: Usuario, action: str) -> None:
    if log.created_by != actor.id and actor.rol != ROLE_ADMIN:
        raise PermissionDenied(actor.rol, action, "performance")


def _ensure_transition(log: PerformanceLog, target: str) -> None:
    if target not in PERFORMANCE_TRANSITIONS.get(log.approval_status, frozenset()):
        raise StateTransitionError(log.approval_status, target)


def _check_values(target: float, realisasi: float) -> None:
    if target < 0 or realisasi < 0:
        raise ValidationError("Target dan realisasi tidak boleh negatif.")
    if realisasi > target * PERFORMANCE_MAX_RATIO:
        raise ValidationError(
            f"Realisasi tidak boleh melebihi {PERFORMANCE_MAX_RATIO * 100}% dari target."
        )


def _snapshot(log: PerformanceLog) -> dict[str, Any]:
    return {
        "indikator_nama": log.indikator_nama,
        "target": log.target,
        "realisasi": log.realisasi,
        "satuan": log.satuan,
        "periode": log.periode,
        "approval_status": log.approval_status,
    }


def _audit(
    db: Session, actor: Usuario, action: str, log: PerformanceLog, data: dict[str, Any]
) -> None:
    audit_service.record(
        db,
        action=action,
        entity_table=_ENTITY_TABLE,
        entity_id=log.id,
        organization_id=log.organization_id,
        actor_user_id=actor.id,
        entity_data=data,
    )


def to_response(log: PerformanceLog) -> PerformanceResponse:
    return PerformanceResponse(
        id=log.id,
        subkegiatan_id=log.subkegiatan_id,
        indikator_nama=log.indikator_nama,
        target=float(log.target),
        realisasi=float(log.realisasi),
        satuan=log.satuan,
        periode=log.periode,
        bukti_url=log.bukti_url,
        keterangan=log.keterangan,
        approval_status=log.approval_status,
        approved_by=log.approved_by,
        approved_at=log.approved_at,
        created_by=log.created_by,
        created_at=log.created_at,
    )


def _summarize(logs: list[PerformanceLog]) -> list[PerformanceIndicatorSummary]:
    by_indicator: dict[str, list[PerformanceLog]] = {}
    for log in logs:
        by_indicator.setdefault(log.indikator_nama, []).append(log)

    summary = []
    for nama, group in by_indicator.items():
        total_target = sum(float(g.target) for g in group)
        total_realisasi = sum(float(g.realisasi) for g in group)
        avg_target = total_target / len(group)
        latest = max(float(g.realisasi) for g in group)
        summary.append(
            PerformanceIndicatorSummary(
                indikator_nama=nama,
                total_target=total_target,
                total_realisasi=total_realisasi,
                avg_target=round(avg_target, 2),
                avg_realisasi=round(total_realisasi / len(group), 2),
                latest_realisasi=latest,
                persen_capaian=safe_pct(total_realisasi, total_target),
                persen_capaian_terakhir=safe_pct(latest, avg_target),
                jumlah_logs=len(group),
            )
        )
    return summary


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def get_by_subkegiatan(
    db: Session,
    actor: Usuario,
    subkegiatan_id: int,
    periode: str | None = None,
) -> list[PerformanceLog]:
    """Logs of one sub-kegiatan, optionally limited to a period."""
    require_permission(actor.rol, "read", "performance")
    _get_subkegiatan(db, subkegiatan_id, actor.organization_id)
    q = db.query(PerformanceLog).filter(PerformanceLog.subkegiatan_id == subkegiatan_id)
    if periode:
        q = q.filter(PerformanceLog.periode == periode)
    return q.order_by(PerformanceLog.periode, PerformanceLog.indikator_nama, PerformanceLog.id).all()


def get_with_details(
    db: Session, actor: Usuario, subkegiatan_id: int
) -> PerformanceDetailResponse:
    """Logs of a sub-kegiatan plus per-indicator achievement totals."""
    require_permission(actor.rol, "read", "performance")
    sub = _get_subkegiatan(db, subkegiatan_id, actor.organization_id)
    logs = get_by_subkegiatan(db, actor, subkegiatan_id)
    return PerformanceDetailResponse(
        subkegiatan_id=sub.id,
        subkegiatan_kode=sub.kode,
        subkegiatan_nama=sub.nama,
        logs=[to_response(log) for log in logs],
        summary=_summarize(logs),
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def create_log(db: Session, actor: Usuario, data: PerformanceCreate) -> PerformanceLog:
    """Record a new draft log.

    Raises:
        PermissionDenied: Actor lacks ``create:performance``.
        NotFoundError: Sub-kegiatan missing or in another organization.
        ValidationError: Negative values or realisasi above twice the target.
    """
    require_permission(actor.rol, "create", "performance")
    _check_values(data.target, data.realisasi)

    with atomic(db):
        sub = _get_subkegiatan(db, data.subkegiatan_id, actor.organization_id)
        log = PerformanceLog(
            subkegiatan_id=sub.id,
            organization_id=sub.organization_id,
            indikator_nama=data.indikator_nama,
            target=data.target,
            realisasi=data.realisasi,
            satuan=data.satuan,
            periode=data.periode,
            bukti_url=data.bukti_url,
            keterangan=data.keterangan,
            approval_status=PERFORMANCE_DRAFT,
            created_by=actor.id,
        )
        db.add(log)
        db.flush()
        _audit(db, actor, AUDIT_CREATED, log, _snapshot(log))

    db.refresh(log)
    logger.info(
        "create_log: '%s' %s/%s %s sub=%d",
        log.indikator_nama, data.realisasi, data.target, log.satuan, log.subkegiatan_id,
    )
    return log


def update_log(
    db: Session, actor: Usuario, log_id: int, data: PerformanceUpdate
) -> PerformanceLog:
    """Change a draft log; only fields present in *data* are touched.

    Raises:
        PermissionDenied: Not the author (and not admin), or lacking
            ``update:performance``.
        StateTransitionError: The log is no longer a draft.
        ValidationError: The merged values break the target ratio.
    """
    require_permission(actor.rol, "update", "performance")
    changes = data.model_dump(exclude_unset=True)

    with atomic(db):
        log = _get_log(db, log_id, actor.organization_id)
        _ensure_author(log, actor, "update")
        if log.approval_status != PERFORMANCE_DRAFT:
            raise StateTransitionError(
                log.approval_status,
                log.approval_status,
                f"Only draft performance logs can be edited (log {log.id}).",
            )

        before = _snapshot(log)
        target = changes.get("target", float(log.target))
        realisasi = changes.get("realisasi", float(log.realisasi))
        _check_values(target, realisasi)
        for field, value in changes.items():
            setattr(log, field, value)
        _audit(db, actor, AUDIT_UPDATED, log, {"before": before, "after": _snapshot(log)})

    db.refresh(log)
    logger.info("update_log: id=%d fields=%s", log_id, sorted(changes))
    return log


def remove_log(db: Session, actor: Usuario, log_id: int) -> None:
    """Delete a log that has not been approved.

    Raises:
        PermissionDenied: Actor lacks ``delete:performance``.
        StateTransitionError: The log is already approved.
    """
    require_permission(actor.rol, "delete", "performance")

    with atomic(db):
        log = _get_log(db, log_id, actor.organization_id)
        if log.approval_status == PERFORMANCE_APPROVED:
            raise StateTransitionError(
                log.approval_status,
                log.approval_status,
                f"Approved performance log {log.id} cannot be deleted.",
            )
        _audit(db, actor, AUDIT_DELETED, log, {"before": _snapshot(log)})
        db.delete(log)

    logger.info("remove_log: id=%d by user=%d", log_id, actor.id)


def submit_log(db: Session, actor: Usuario, log_id: int) -> PerformanceLog:
    """draft -> submitted, by the author."""
    require_permission(actor.rol, "submit", "performance")

    with atomic(db):
        log = _get_log(db, log_id, actor.organization_id)
        _ensure_transition(log, PERFORMANCE_SUBMITTED)
        _ensure_author(log, actor, "submit")
        log.approval_status = PERFORMANCE_SUBMITTED
        _audit(db, actor, AUDIT_SUBMITTED, log, _snapshot(log))

    db.refresh(log)
    logger.info("submit_log: id=%d", log_id)
    return log


def approve_log(db: Session, actor: Usuario, log_id: int) -> PerformanceLog:
    """submitted -> approved; records the approver."""
    require_permission(actor.rol, "approve", "performance")

    with atomic(db):
        log = _get_log(db, log_id, actor.organization_id)
        _ensure_transition(log, PERFORMANCE_APPROVED)
        log.approval_status = PERFORMANCE_APPROVED
        log.approved_by = actor.id
        log.approved_at = utcnow()
        _audit(db, actor, AUDIT_APPROVED, log, _snapshot(log))

    db.refresh(log)
    logger.info("approve_log: id=%d by user=%d", log_id, actor.id)
    return log


def return_log(db: Session, actor: Usuario, log_id: int, reason: str) -> PerformanceLog:
    """submitted -> draft; the reason is appended to ``keterangan``."""
    require_permission(actor.rol, "approve", "performance")
    if not reason or not reason.strip():
        raise ValidationError("Alasan pengembalian wajib diisi.")

    with atomic(db):
        log = _get_log(db, log_id, actor.organization_id)
        _ensure_transition(log, PERFORMANCE_DRAFT)
        log.approval_status = PERFORMANCE_DRAFT
        prefix = f"DIKEMBALIKAN: {reason.strip()}"
        log.keterangan = f"{prefix}\n\n{log.keterangan}" if log.keterangan else prefix
        _audit(db, actor, AUDIT_REJECTED, log, {"reason": reason})

    db.refresh(log)
    logger.info("return_log: id=%d by user=%d", log_id, actor.id)
    return log
