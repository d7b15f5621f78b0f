"""Tests for the NPD state machine, numbering and budget checks."""

import pytest

from npd_tracker.exceptions import (
    BudgetExceeded,
    NotFoundError,
    PermissionDenied,
    StateTransitionError,
    ValidationError,
)
from npd_tracker.schemas.common import FilterParams, PaginationParams
from npd_tracker.schemas.npd import NpdCreate, NpdLineCreate, NpdLineUpdate, NpdUpdate
from npd_tracker.services import audit_service, notification_service, npd_service
from npd_tracker.utils.constants import ESTADOS_NPD, NPD_TRANSITIONS

TAHUN = 2026


class TestCreateNpd:
    """Tests for creating draft NPDs."""

    def test_numbers_are_sequential_per_year(self, make_npd):
        """Test that document numbers count up within a year."""
        first = make_npd()
        second = make_npd()

        assert first.document_number == f"NPD-{TAHUN}-001"
        assert second.document_number == f"NPD-{TAHUN}-002"
        assert first.status == "draft"

    def test_year_must_match_subkegiatan(self, db, users, rka):
        """Test that an NPD cannot be charged to another fiscal year."""
        with pytest.raises(ValidationError):
            npd_service.create_npd(
                db,
                users["pptk"],
                NpdCreate(subkegiatan_id=rka.subkegiatan.id, jenis="LS", tahun=2025, title="Salah tahun"),
            )

    def test_unknown_subkegiatan(self, db, users, rka):
        """Test that a missing sub-kegiatan is reported as not found."""
        with pytest.raises(NotFoundError):
            npd_service.create_npd(
                db,
                users["pptk"],
                NpdCreate(subkegiatan_id=999, jenis="LS", tahun=TAHUN, title="Tidak ada"),
            )

    def test_viewer_cannot_create(self, db, users, rka):
        """Test that read-only users cannot create NPDs."""
        with pytest.raises(PermissionDenied):
            npd_service.create_npd(
                db,
                users["viewer"],
                NpdCreate(subkegiatan_id=rka.subkegiatan.id, jenis="UP", tahun=TAHUN, title="Uang persediaan"),
            )


class TestLines:
    """Tests for line items and their budget checks."""

    def test_line_over_pagu_reports_figures(self, db, users, rka, make_npd):
        """Test that BudgetExceeded carries requested and available amounts."""
        npd = make_npd()

        with pytest.raises(BudgetExceeded) as excinfo:
            npd_service.add_line(
                db, users["pptk"], npd.id, NpdLineCreate(account_id=rka.atk.id, jumlah=11_000_000)
            )

        err = excinfo.value
        assert err.requested == 11_000_000
        assert err.available == 10_000_000
        payload = err.to_dict()
        assert payload["kind"] == "budget_exceeded"
        assert payload["requested"] == 11_000_000
        assert payload["available"] == 10_000_000

    def test_cumulative_ceiling_counts_other_npds(self, db, users, rka, make_final_npd, make_npd):
        """Test that lines of submitted NPDs use up the account's pagu."""
        make_final_npd([(rka.cetak, 4_000_000)])
        draft = make_npd()

        with pytest.raises(BudgetExceeded) as excinfo:
            npd_service.add_line(
                db, users["pptk"], draft.id, NpdLineCreate(account_id=rka.cetak.id, jumlah=1_500_000)
            )

        assert excinfo.value.available == 1_000_000

    def test_update_line_may_use_its_own_amount(self, db, users, rka, make_npd):
        """Test that raising a line counts its old amount as released."""
        npd = make_npd([(rka.cetak, 4_000_000)])

        line = npd_service.update_line(
            db, users["pptk"], npd.lines[0].id, NpdLineUpdate(jumlah=5_000_000)
        )

        assert line.jumlah == 5_000_000

    def test_final_npd_is_not_editable(self, db, users, rka, make_final_npd):
        """Test that lines cannot be added to a final NPD."""
        npd = make_final_npd([(rka.atk, 1_000_000)])

        with pytest.raises(StateTransitionError):
            npd_service.add_line(
                db, users["pptk"], npd.id, NpdLineCreate(account_id=rka.atk.id, jumlah=1_000)
            )
        with pytest.raises(StateTransitionError):
            npd_service.update_npd(db, users["pptk"], npd.id, NpdUpdate(title="Ubah"))

    def test_line_limit(self, db, users, rka, make_npd, monkeypatch):
        """Test the maximum number of lines per NPD."""
        from npd_tracker.config import get_settings

        monkeypatch.setattr(get_settings(), "MAX_LINES_PER_NPD", 2)
        npd = make_npd([(rka.atk, 1_000), (rka.atk, 1_000)])

        with pytest.raises(ValidationError):
            npd_service.add_line(
                db, users["pptk"], npd.id, NpdLineCreate(account_id=rka.atk.id, jumlah=1_000)
            )


class TestTransitions:
    """Tests for submit, verify, reject and finalize."""

    def test_happy_path(self, db, users, rka, make_npd):
        """Test draft -> diajukan -> diverifikasi -> final."""
        npd = make_npd([(rka.atk, 1_000_000)])

        npd = npd_service.submit(db, users["pptk"], npd.id)
        assert npd.status == "diajukan"

        npd = npd_service.verify(db, users["verifikator"], npd.id, notes="Lengkap")
        assert npd.status == "diverifikasi"
        assert npd.verified_by == users["verifikator"].id
        assert npd.verified_at is not None

        npd = npd_service.finalize(db, users["bendahara"], npd.id)
        assert npd.status == "final"
        assert npd.finalized_by == users["bendahara"].id

    def test_submit_requires_lines(self, db, users, make_npd):
        """Test that an empty NPD cannot be submitted."""
        npd = make_npd()

        with pytest.raises(ValidationError):
            npd_service.submit(db, users["pptk"], npd.id)

    def test_illegal_transition(self, db, users, rka, make_npd):
        """Test that a draft cannot be finalized directly."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(StateTransitionError) as excinfo:
            npd_service.finalize(db, users["admin"], npd.id)

        assert excinfo.value.current == "draft"
        assert excinfo.value.target == "final"

    def test_final_is_terminal(self, db, users, rka, make_final_npd):
        """Test that a final NPD can no longer be rejected."""
        npd = make_final_npd([(rka.atk, 1_000_000)])

        with pytest.raises(StateTransitionError):
            npd_service.reject(db, users["verifikator"], npd.id, "Terlambat")

    def test_pptk_cannot_verify(self, db, users, rka, make_npd):
        """Test that the author role cannot verify."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        with pytest.raises(PermissionDenied):
            npd_service.verify(db, users["pptk"], npd.id)

    def test_reject_returns_to_draft_with_reason(self, db, users, rka, make_npd):
        """Test that a rejection clears verification and keeps old notes."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.update_npd(db, users["pptk"], npd.id, NpdUpdate(catatan="Mohon diproses"))
        npd_service.submit(db, users["pptk"], npd.id)
        npd_service.verify(db, users["verifikator"], npd.id)

        npd = npd_service.reject(db, users["bendahara"], npd.id, "Kwitansi kurang")

        assert npd.status == "draft"
        assert npd.verified_by is None
        assert npd.verified_at is None
        assert npd.catatan == "DITOLAK: Kwitansi kurang\n\nCatatan asli:\nMohon diproses"

    def test_reject_requires_reason(self, db, users, rka, make_npd):
        """Test that a blank rejection reason is refused."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        with pytest.raises(ValidationError):
            npd_service.reject(db, users["verifikator"], npd.id, "")

    def test_rejected_npd_can_be_resubmitted(self, db, users, rka, make_npd):
        """Test that a rejected draft goes through the workflow again."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)
        npd_service.reject(db, users["verifikator"], npd.id, "Revisi")

        npd = npd_service.submit(db, users["pptk"], npd.id)

        assert npd.status == "diajukan"


ILLEGAL_PAIRS = [
    (current, target)
    for current in ESTADOS_NPD
    for target in ESTADOS_NPD
    if target not in NPD_TRANSITIONS[current]
]

# target status -> the operation that requests it
_MOVES = {
    "diajukan": lambda db, admin, npd_id: npd_service.submit(db, admin, npd_id),
    "diverifikasi": lambda db, admin, npd_id: npd_service.verify(db, admin, npd_id),
    "final": lambda db, admin, npd_id: npd_service.finalize(db, admin, npd_id),
    "draft": lambda db, admin, npd_id: npd_service.reject(db, admin, npd_id, "Kurang lengkap"),
}

# status -> the chain of moves that reaches it from draft
_PATHS = {
    "draft": [],
    "diajukan": ["diajukan"],
    "diverifikasi": ["diajukan", "diverifikasi"],
    "final": ["diajukan", "diverifikasi", "final"],
}


class TestIllegalTransitions:
    """Tests that every pair outside the state machine is refused."""

    @pytest.mark.parametrize("current,target", ILLEGAL_PAIRS)
    def test_refused_and_status_unchanged(self, db, users, rka, make_npd, current, target):
        """Test that an illegal move raises and leaves the stored status alone."""
        admin = users["admin"]
        npd = make_npd([(rka.atk, 1_000_000)])
        for step in _PATHS[current]:
            _MOVES[step](db, admin, npd.id)

        with pytest.raises(StateTransitionError) as excinfo:
            _MOVES[target](db, admin, npd.id)

        assert (excinfo.value.current, excinfo.value.target) == (current, target)
        assert npd_service.get_detalle(db, users["viewer"], npd.id).status == current


class TestSideEffects:
    """Tests for audit entries, notifications and read models."""

    def test_history_records_each_step(self, db, users, rka, make_final_npd):
        """Test that the audit trail lists the workflow in order."""
        npd = make_final_npd([(rka.atk, 1_000_000)])

        history = audit_service.entity_history(db, users["admin"], "npd_document", npd.id)
        actions = [h.action for h in history]

        assert actions == ["created", "submitted", "verified", "finalized"]

    def test_submit_notifies_verifiers(self, db, users, rka, make_npd):
        """Test that submission reaches every verifying role but not the author."""
        npd = make_npd([(rka.atk, 1_000_000)])
        npd_service.submit(db, users["pptk"], npd.id)

        inbox = notification_service.list_for_user(db, users["verifikator"])
        assert inbox.no_leidos == 1
        assert notification_service.list_for_user(db, users["pptk"]).no_leidos == 0
        assert notification_service.list_for_user(db, users["viewer"]).no_leidos == 0

    def test_finalize_notifies_author(self, db, users, rka, make_final_npd):
        """Test that the author hears about verification and finalization."""
        make_final_npd([(rka.atk, 1_000_000)])

        inbox = notification_service.list_for_user(db, users["pptk"])

        assert inbox.no_leidos == 2

    def test_tabla_and_summary(self, db, users, rka, make_npd, make_final_npd):
        """Test list filtering and the per-status summary."""
        make_npd([(rka.atk, 1_000_000)])
        make_final_npd([(rka.cetak, 2_000_000)])

        tabla = npd_service.get_tabla(
            db, users["viewer"], FilterParams(status="final"), PaginationParams()
        )
        summary = npd_service.get_summary(db, users["viewer"], FilterParams(tahun=TAHUN))

        assert tabla.total == 1
        assert summary.total == 2
        assert summary.por_status == {"draft": 1, "diajukan": 0, "diverifikasi": 0, "final": 1}
        assert summary.total_nilai == 3_000_000

    def test_detail_totals(self, db, users, rka, make_final_npd):
        """Test the computed totals of the detail view."""
        npd = make_final_npd([(rka.atk, 1_000_000), (rka.cetak, 500_000)])

        detail = npd_service.get_detalle(db, users["viewer"], npd.id)

        assert detail.total == 1_500_000
        assert detail.total_cair == 0
        assert detail.sisa_cair == 1_500_000
        assert [ln.account_kode for ln in detail.lines] == [rka.atk.kode, rka.cetak.kode]
