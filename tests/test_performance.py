"""Tests for performance indicator logs and their approval flow."""

import pytest

from npd_tracker.exceptions import (
    NotFoundError,
    PermissionDenied,
    StateTransitionError,
    ValidationError,
)
from npd_tracker.models import AuditLog, PerformanceLog
from npd_tracker.schemas.performance import PerformanceCreate, PerformanceUpdate
from npd_tracker.services import performance_service


@pytest.fixture
def make_log(db, users, rka):
    def _make(indikator="Jumlah laporan keuangan", target=4, realisasi=2, periode="TW1", author="pptk"):
        return performance_service.create_log(
            db,
            users[author],
            PerformanceCreate(
                subkegiatan_id=rka.subkegiatan.id,
                indikator_nama=indikator,
                target=target,
                realisasi=realisasi,
                satuan="dokumen",
                periode=periode,
            ),
        )

    return _make


class TestCreateLog:
    """Tests for recording a performance log."""

    def test_created_as_draft_with_audit(self, db, users, make_log):
        """Test that a new log is a draft owned by its author."""
        log = make_log()

        assert log.approval_status == "draft"
        assert log.created_by == users["pptk"].id
        audit = db.query(AuditLog).filter_by(entity_table="performance_log", entity_id=log.id).all()
        assert [a.action for a in audit] == ["created"]

    def test_realisasi_capped_at_twice_target(self, make_log):
        """Test that an achievement above 200% of target is refused."""
        with pytest.raises(ValidationError):
            make_log(target=2, realisasi=5)

    def test_exactly_twice_target_allowed(self, make_log):
        """Test the boundary of the achievement cap."""
        assert float(make_log(target=2, realisasi=4).realisasi) == 4

    def test_viewer_cannot_create(self, make_log):
        """Test that read-only users cannot record logs."""
        with pytest.raises(PermissionDenied):
            make_log(author="viewer")

    def test_unknown_subkegiatan(self, db, users):
        """Test that a missing sub-kegiatan is not found."""
        with pytest.raises(NotFoundError):
            performance_service.create_log(
                db,
                users["pptk"],
                PerformanceCreate(
                    subkegiatan_id=999,
                    indikator_nama="X",
                    target=1,
                    satuan="dokumen",
                    periode="TW1",
                ),
            )


class TestUpdateAndRemove:
    """Tests for editing and deleting logs."""

    def test_partial_update_checks_merged_values(self, db, users, make_log):
        """Test that a new realisasi is checked against the stored target."""
        log = make_log(target=4, realisasi=2)

        with pytest.raises(ValidationError):
            performance_service.update_log(db, users["pptk"], log.id, PerformanceUpdate(realisasi=9))

        updated = performance_service.update_log(
            db, users["pptk"], log.id, PerformanceUpdate(realisasi=3, keterangan="Revisi")
        )
        assert float(updated.realisasi) == 3
        assert float(updated.target) == 4
        assert updated.keterangan == "Revisi"

    def test_only_author_or_admin_edits(self, db, users, make_log):
        """Test that another editor cannot change someone else's log."""
        log = make_log(author="pptk")

        with pytest.raises(PermissionDenied):
            performance_service.update_log(db, users["bendahara"], log.id, PerformanceUpdate(target=5))

        assert performance_service.update_log(
            db, users["admin"], log.id, PerformanceUpdate(target=5)
        ).target == 5

    def test_submitted_log_is_not_editable(self, db, users, make_log):
        """Test that edits stop once the log is submitted."""
        log = make_log()
        performance_service.submit_log(db, users["pptk"], log.id)

        with pytest.raises(StateTransitionError):
            performance_service.update_log(db, users["pptk"], log.id, PerformanceUpdate(target=5))

    def test_admin_removes_draft(self, db, users, make_log):
        """Test that deleting a draft removes the row and audits it."""
        log = make_log()
        log_id = log.id

        performance_service.remove_log(db, users["admin"], log_id)

        assert db.query(PerformanceLog).count() == 0
        actions = [
            a.action
            for a in db.query(AuditLog).filter_by(entity_table="performance_log", entity_id=log_id)
        ]
        assert "deleted" in actions

    def test_pptk_cannot_remove(self, db, users, make_log):
        """Test that deletion needs ``delete:performance``."""
        log = make_log()

        with pytest.raises(PermissionDenied):
            performance_service.remove_log(db, users["pptk"], log.id)

    def test_approved_log_cannot_be_removed(self, db, users, make_log):
        """Test that an approved log is kept."""
        log = make_log()
        performance_service.submit_log(db, users["pptk"], log.id)
        performance_service.approve_log(db, users["verifikator"], log.id)

        with pytest.raises(StateTransitionError):
            performance_service.remove_log(db, users["admin"], log.id)


class TestApprovalFlow:
    """Tests for draft -> submitted -> approved."""

    def test_submit_and_approve(self, db, users, make_log):
        """Test the happy path records the approver."""
        log = make_log()

        performance_service.submit_log(db, users["pptk"], log.id)
        approved = performance_service.approve_log(db, users["bendahara"], log.id)

        assert approved.approval_status == "approved"
        assert approved.approved_by == users["bendahara"].id
        assert approved.approved_at is not None

    def test_draft_cannot_be_approved(self, db, users, make_log):
        """Test that approval needs a submitted log."""
        log = make_log()

        with pytest.raises(StateTransitionError) as excinfo:
            performance_service.approve_log(db, users["verifikator"], log.id)

        assert (excinfo.value.current, excinfo.value.target) == ("draft", "approved")

    def test_pptk_cannot_approve(self, db, users, make_log):
        """Test that the author role cannot approve."""
        log = make_log()
        performance_service.submit_log(db, users["pptk"], log.id)

        with pytest.raises(PermissionDenied):
            performance_service.approve_log(db, users["pptk"], log.id)

    def test_return_to_draft_keeps_reason(self, db, users, make_log):
        """Test that a returned log is a draft again with the reason noted."""
        log = make_log()
        performance_service.submit_log(db, users["pptk"], log.id)

        returned = performance_service.return_log(db, users["verifikator"], log.id, "Bukti kurang")

        assert returned.approval_status == "draft"
        assert returned.keterangan.startswith("DIKEMBALIKAN: Bukti kurang")

    def test_return_needs_reason(self, db, users, make_log):
        """Test that a blank reason is refused."""
        log = make_log()
        performance_service.submit_log(db, users["pptk"], log.id)

        with pytest.raises(ValidationError):
            performance_service.return_log(db, users["verifikator"], log.id, "  ")


class TestQueries:
    """Tests for listing logs and the per-indicator summary."""

    def test_filter_by_periode(self, db, users, rka, make_log):
        """Test that the periode filter narrows the list."""
        make_log(periode="TW1")
        make_log(periode="TW2")

        logs = performance_service.get_by_subkegiatan(db, users["viewer"], rka.subkegiatan.id, "TW2")

        assert [log.periode for log in logs] == ["TW2"]

    def test_summary_per_indicator(self, db, users, rka, make_log):
        """Test totals and achievement percentage per indicator."""
        make_log(indikator="Laporan", target=4, realisasi=2, periode="TW1")
        make_log(indikator="Laporan", target=4, realisasi=4, periode="TW2")
        make_log(indikator="Pelatihan", target=10, realisasi=5, periode="TW1")

        detail = performance_service.get_with_details(db, users["viewer"], rka.subkegiatan.id)

        assert detail.subkegiatan_kode == "1.01.01.2.01"
        assert len(detail.logs) == 3
        laporan = next(s for s in detail.summary if s.indikator_nama == "Laporan")
        assert laporan.total_target == 8
        assert laporan.total_realisasi == 6
        assert laporan.persen_capaian == 75.0
        assert laporan.latest_realisasi == 4
        assert laporan.persen_capaian_terakhir == 100.0
        assert laporan.jumlah_logs == 2
