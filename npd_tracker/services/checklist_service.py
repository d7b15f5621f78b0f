"""
Verification checklist service.

Each NPD jenis has a fixed list of documents the verifier must tick off
(``constants.CHECKLIST_TEMPLATES``).  Saving a checklist with status
``completed`` and every required item checked verifies the NPD.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from npd_tracker.database import atomic
from npd_tracker.exceptions import NotFoundError, StateTransitionError, ValidationError
from npd_tracker.models.npd_document import NpdDocument
from npd_tracker.models.usuario import Usuario
from npd_tracker.models.verification_checklist import VerificationChecklist
from npd_tracker.schemas.npd import (
    ChecklistItemResult,
    ChecklistResponse,
    ChecklistSaveRequest,
    ChecklistTemplateItem,
    ChecklistValidation,
)
from npd_tracker.services import audit_service, notification_service, npd_service
from npd_tracker.utils.constants import (
    AUDIT_CHECKLIST_SAVED,
    CHECKLIST_COMPLETED,
    CHECKLIST_TEMPLATES,
    NOTIF_NPD_VERIFIED,
    NPD_DIAJUKAN,
    NPD_DIVERIFIKASI,
)
from npd_tracker.utils.dates import utcnow
from npd_tracker.utils.permissions import require_permission

logger = logging.getLogger(__name__)


def get_template(jenis: str) -> list[ChecklistTemplateItem]:
    """Return the checklist items for an NPD jenis.

    Raises:
        ValidationError: If *jenis* has no template.
    """
    template = CHECKLIST_TEMPLATES.get(jenis)
    if template is None:
        raise ValidationError(f"No checklist template for jenis '{jenis}'.")
    return [ChecklistTemplateItem(**item) for item in template]


def validate_checklist(
    jenis: str, results: list[ChecklistItemResult]
) -> ChecklistValidation:
    """Check that every required item of the template is ticked."""
    checked = {r.item_id for r in results if r.checked}
    errors = [
        f"{item.label} harus dicentang"
        for item in get_template(jenis)
        if item.required and item.id not in checked
    ]
    return ChecklistValidation(is_valid=not errors, errors=errors)


def _to_response(row: VerificationChecklist) -> ChecklistResponse:
    return ChecklistResponse(
        id=row.id,
        npd_id=row.npd_id,
        checklist_type=row.checklist_type,
        results=[ChecklistItemResult(**r) for r in (row.results or [])],
        status=row.status,
        notes=row.notes,
        verified_by=row.verified_by,
        verified_at=row.verified_at,
    )


def get_checklist(db: Session, actor: Usuario, npd_id: int) -> ChecklistResponse:
    """Return the saved checklist of an NPD.

    Raises:
        NotFoundError: No checklist has been saved yet.
    """
    require_permission(actor.rol, "read", "npd")
    npd = npd_service.get_npd(db, npd_id, actor.organization_id)
    row = (
        db.query(VerificationChecklist)
        .filter(VerificationChecklist.npd_id == npd.id)
        .first()
    )
    if row is None:
        raise NotFoundError(f"No checklist saved for NPD {npd.document_number}.")
    return _to_response(row)


def save_checklist(
    db: Session, actor: Usuario, npd_id: int, data: ChecklistSaveRequest
) -> ChecklistResponse:
    """Create or replace the NPD's checklist; verify the NPD when it is complete.

    Raises:
        PermissionDenied: Actor lacks ``verify:npd``.
        StateTransitionError: NPD is not waiting for verification.
        ValidationError: Status ``completed`` with required items unchecked.
        ConflictError: Status ``completed`` while another user holds the lock.
    """
    require_permission(actor.rol, "verify", "npd")

    with atomic(db):
        npd: NpdDocument = npd_service.get_npd(
            db, npd_id, actor.organization_id, for_update=True
        )
        if npd.status != NPD_DIAJUKAN:
            raise StateTransitionError(npd.status, NPD_DIVERIFIKASI)

        validation = validate_checklist(npd.jenis, data.results)
        if data.status == CHECKLIST_COMPLETED and not validation.is_valid:
            raise ValidationError("; ".join(validation.errors))
        if data.status == CHECKLIST_COMPLETED:
            npd_service.apply_verify(db, actor, npd, notes=data.notes)

        row = (
            db.query(VerificationChecklist)
            .filter(VerificationChecklist.npd_id == npd.id)
            .first()
        )
        if row is None:
            row = VerificationChecklist(
                npd_id=npd.id,
                organization_id=npd.organization_id,
                checklist_type=npd.jenis,
            )
            db.add(row)
        row.results = [r.model_dump() for r in data.results]
        row.status = data.status
        row.notes = data.notes
        row.verified_by = actor.id
        row.verified_at = utcnow()
        db.flush()
        audit_service.record(
            db,
            action=AUDIT_CHECKLIST_SAVED,
            entity_table="verification_checklist",
            entity_id=row.id,
            organization_id=npd.organization_id,
            actor_user_id=actor.id,
            entity_data={"npd_id": npd.id, "status": data.status},
        )

    db.refresh(row)
    logger.info("save_checklist: npd=%d status=%s", npd_id, data.status)
    if data.status == CHECKLIST_COMPLETED:
        db.refresh(npd)
        notification_service.notify_npd_event(db, NOTIF_NPD_VERIFIED, npd, actor)

    return _to_response(row)
