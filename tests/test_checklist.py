"""Tests for verification checklists."""

import pytest

from npd_tracker.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    StateTransitionError,
    ValidationError,
)
from npd_tracker.schemas.npd import ChecklistItemResult, ChecklistSaveRequest
from npd_tracker.models import AuditLog, VerificationChecklist
from npd_tracker.services import checklist_service, lock_service, npd_service
from npd_tracker.utils.constants import CHECKLIST_TEMPLATES


def _results(jenis, skip=()):
    return [
        ChecklistItemResult(item_id=item["id"], checked=item["id"] not in skip)
        for item in CHECKLIST_TEMPLATES[jenis]
    ]


class TestTemplates:
    """Tests for the per-jenis item templates."""

    @pytest.mark.parametrize("jenis", ["UP", "GU", "TU", "LS"])
    def test_every_jenis_has_required_items(self, jenis):
        """Test that each NPD type has a non-empty required template."""
        items = checklist_service.get_template(jenis)
        assert len(items) == 5
        assert all(item.required for item in items)

    def test_unknown_jenis(self):
        """Test that an unknown type has no template."""
        with pytest.raises(ValidationError):
            checklist_service.get_template("XX")

    def test_validate_lists_missing_items(self):
        """Test that unchecked required items are reported by label."""
        outcome = checklist_service.validate_checklist("LS", _results("LS", skip={"kwitansi_asli"}))

        assert not outcome.is_valid
        assert outcome.errors == ["Kwitansi Asli harus dicentang"]

    def test_validate_complete(self):
        """Test that a fully ticked checklist is valid."""
        assert checklist_service.validate_checklist("GU", _results("GU")).is_valid


class TestSaveChecklist:
    """Tests for saving a checklist against a submitted NPD."""

    def test_partial_save_keeps_status(self, db, users, rka, make_npd):
        """Test that an in-progress checklist does not verify the NPD."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        saved = checklist_service.save_checklist(
            db,
            users["verifikator"],
            npd.id,
            ChecklistSaveRequest(results=_results("LS", skip={"sisa_pagu"}), status="in_progress"),
        )

        assert saved.status == "in_progress"
        assert saved.checklist_type == "LS"
        assert npd_service.get_detalle(db, users["viewer"], npd.id).status == "diajukan"

    def test_completed_checklist_verifies_npd(self, db, users, rka, make_npd):
        """Test that completing the checklist moves the NPD to diverifikasi."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        checklist_service.save_checklist(
            db,
            users["verifikator"],
            npd.id,
            ChecklistSaveRequest(results=_results("LS"), status="completed", notes="Lengkap"),
        )

        detail = npd_service.get_detalle(db, users["viewer"], npd.id)
        assert detail.status == "diverifikasi"
        assert detail.verified_by == users["verifikator"].id
        assert checklist_service.get_checklist(db, users["viewer"], npd.id).status == "completed"

    def test_incomplete_cannot_be_completed(self, db, users, rka, make_npd):
        """Test that status completed requires every item."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        with pytest.raises(ValidationError):
            checklist_service.save_checklist(
                db,
                users["verifikator"],
                npd.id,
                ChecklistSaveRequest(results=_results("LS", skip={"pelaksanaan"}), status="completed"),
            )

    def test_draft_npd_rejected(self, db, users, rka, make_npd):
        """Test that only submitted NPDs take a checklist."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(StateTransitionError):
            checklist_service.save_checklist(
                db, users["verifikator"], npd.id, ChecklistSaveRequest(results=_results("LS"))
            )

    def test_pptk_cannot_save(self, db, users, rka, make_npd):
        """Test that the author role cannot fill the checklist."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        with pytest.raises(PermissionDenied):
            checklist_service.save_checklist(
                db, users["pptk"], npd.id, ChecklistSaveRequest(results=_results("LS"))
            )

    def test_no_checklist_yet(self, db, users, rka, make_npd):
        """Test that reading an unsaved checklist is not found."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(NotFoundError):
            checklist_service.get_checklist(db, users["viewer"], npd.id)

    def test_lock_held_by_other_writes_nothing(self, db, users, rka, make_npd):
        """Test that a refused auto-verify leaves neither checklist nor audit row."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)
        lock_service.lock(db, users["admin"], npd.id, reason="Periksa ulang")
        audit_before = db.query(AuditLog).count()

        with pytest.raises(ConflictError):
            checklist_service.save_checklist(
                db,
                users["verifikator"],
                npd.id,
                ChecklistSaveRequest(results=_results("LS"), status="completed"),
            )

        assert db.query(VerificationChecklist).filter_by(npd_id=npd.id).first() is None
        assert db.query(AuditLog).count() == audit_before
        assert npd_service.get_detalle(db, users["viewer"], npd.id).status == "diajukan"
