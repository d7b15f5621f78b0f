"""Tests for SP2D distribution, disbursement caps and soft delete."""

from datetime import timedelta

import pytest

from npd_tracker.exceptions import (
    BudgetExceeded,
    ConflictError,
    PermissionDenied,
    ValidationError,
)
from npd_tracker.models import Realization
from npd_tracker.schemas.sp2d import Sp2dCreate, Sp2dUpdate
from npd_tracker.services import ledger_service, sp2d_service
from npd_tracker.services.sp2d_service import distribute


def _figures(db, account):
    db.refresh(account)
    return (account.realisasi_tahun, account.sisa_pagu)


class TestDistribute:
    """Tests for proportional splitting of a disbursement over lines."""

    def test_example_split(self):
        """Test the documented three-line example."""
        assert distribute(8_000_000, [2_500_000, 2_500_000, 5_000_000]) == [
            2_000_000,
            2_000_000,
            4_000_000,
        ]

    def test_proportional_to_line_amounts(self):
        """Test an uneven split where every share is exact."""
        assert distribute(8_000_000, [5_000_000, 3_000_000, 2_000_000]) == [
            4_000_000,
            2_400_000,
            1_600_000,
        ]

    def test_awkward_amount_sums_exactly(self):
        """Test that an amount with no clean split still sums to the total."""
        shares = distribute(7_777_777, [3_333_333, 3_333_333, 3_333_334])
        assert shares == [2_592_592, 2_592_592, 2_592_593]
        assert sum(shares) == 7_777_777

    def test_single_line_takes_everything(self):
        """Test that one line receives the full amount."""
        assert distribute(1_234_567, [9_999_999]) == [1_234_567]

    def test_remainder_goes_to_last_line(self):
        """Test that rounding leftovers land on the last line."""
        shares = distribute(1_000_000, [1, 1, 1])
        assert shares == [333_333, 333_333, 333_334]
        assert sum(shares) == 1_000_000

    def test_small_amount_over_many_lines(self):
        """Test that shares never go negative and always sum to the amount."""
        shares = distribute(2, [1, 1, 1])
        assert sum(shares) == 2
        assert all(s >= 0 for s in shares)

    def test_half_up_overshoot_falls_back_to_floor(self):
        """Test the floor fallback when half-up rounding would overshoot."""
        shares = distribute(2, [1, 1, 1, 1])
        assert shares == [0, 0, 0, 2]

    def test_full_disbursement_matches_lines(self):
        """Test that paying the whole NPD reproduces each line amount."""
        lines = [1_250_000, 3_333_333, 415_417]
        assert distribute(sum(lines), lines) == lines

    def test_no_lines_rejected(self):
        """Test that an empty line list is a validation error."""
        with pytest.raises(ValidationError):
            distribute(1_000, [])


class TestCreateSp2d:
    """Tests for recording a disbursement against a final NPD."""

    def test_realizes_shares_per_account(self, db, users, rka, make_final_npd, today):
        """Test that each account receives the sum of its lines' shares."""
        npd = make_final_npd(
            [(rka.atk, 2_500_000), (rka.cetak, 2_500_000), (rka.atk, 5_000_000)]
        )

        sp2d = sp2d_service.create_sp2d(
            db,
            users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="0001/SP2D/LS/2026", tgl_sp2d=today, nilai_cair=8_000_000),
        )

        assert sorted(r.jumlah for r in sp2d.realizations) == [2_000_000, 2_000_000, 4_000_000]
        assert _figures(db, rka.atk) == (6_000_000, 4_000_000)
        assert _figures(db, rka.cetak) == (2_000_000, 3_000_000)
        assert ledger_service.check_invariants(rka.atk)
        assert ledger_service.check_invariants(rka.cetak)

    def test_cap_is_npd_total_minus_active_sp2d(self, db, users, rka, make_final_npd, today):
        """Test that a second SP2D cannot exceed the undisbursed balance."""
        npd = make_final_npd([(rka.atk, 6_000_000), (rka.cetak, 4_000_000)])
        sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=8_000_000),
        )
        rows_before = db.query(Realization).count()

        with pytest.raises(BudgetExceeded) as excinfo:
            sp2d_service.create_sp2d(
                db, users["bendahara"],
                Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-2", tgl_sp2d=today, nilai_cair=3_000_000),
            )

        assert excinfo.value.requested == 3_000_000
        assert excinfo.value.available == 2_000_000
        assert _figures(db, rka.atk) == (4_800_000, 5_200_000)
        assert db.query(Realization).count() == rows_before

    def test_sequential_disbursements_accumulate(self, db, users, rka, make_final_npd, today):
        """Test that three SP2Ds against one account add up in its ledger."""
        npd = make_final_npd([(rka.atk, 10_000_000)])

        for number, amount in [("SP2D-1", 2_000_000), ("SP2D-2", 2_500_000), ("SP2D-3", 1_500_000)]:
            sp2d_service.create_sp2d(
                db, users["bendahara"],
                Sp2dCreate(npd_id=npd.id, no_sp2d=number, tgl_sp2d=today, nilai_cair=amount),
            )

        assert _figures(db, rka.atk) == (6_000_000, 4_000_000)
        assert ledger_service.check_invariants(rka.atk)

    def test_awkward_amount_realized_without_drift(self, db, users, rka, make_final_npd, today):
        """Test that the accounts together receive exactly the disbursed amount."""
        npd = make_final_npd(
            [(rka.atk, 3_333_333), (rka.atk, 3_333_333), (rka.cetak, 3_333_334)]
        )

        sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=7_777_777),
        )

        assert _figures(db, rka.atk) == (5_185_184, 4_814_816)
        assert _figures(db, rka.cetak) == (2_592_593, 2_407_407)

    def test_draft_npd_cannot_be_paid(self, db, users, rka, make_npd, today):
        """Test that only final NPDs accept an SP2D."""
        npd = make_npd([(rka.atk, 1_000_000)])

        with pytest.raises(ValidationError):
            sp2d_service.create_sp2d(
                db, users["bendahara"],
                Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=500_000),
            )

    def test_duplicate_number_rejected(self, db, users, rka, make_final_npd, today):
        """Test that SP2D numbers are unique within the organization."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        payload = Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000)
        sp2d_service.create_sp2d(db, users["bendahara"], payload)

        with pytest.raises(ConflictError):
            sp2d_service.create_sp2d(db, users["bendahara"], payload)

    def test_date_before_finalization_rejected(self, db, users, rka, make_final_npd, today):
        """Test that an SP2D cannot be dated before its NPD was finalized."""
        npd = make_final_npd([(rka.atk, 4_000_000)])

        with pytest.raises(ValidationError):
            sp2d_service.create_sp2d(
                db, users["bendahara"],
                Sp2dCreate(
                    npd_id=npd.id,
                    no_sp2d="SP2D-1",
                    tgl_sp2d=today - timedelta(days=3),
                    nilai_cair=1_000_000,
                ),
            )

    def test_pptk_cannot_record_sp2d(self, db, users, rka, make_final_npd, today):
        """Test that recording a disbursement needs ``create:sp2d``."""
        npd = make_final_npd([(rka.atk, 4_000_000)])

        with pytest.raises(PermissionDenied):
            sp2d_service.create_sp2d(
                db, users["pptk"],
                Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000),
            )


class TestUpdateSp2d:
    """Tests for editing an SP2D amount."""

    def test_amount_change_redistributes(self, db, users, rka, make_final_npd, today):
        """Test that old shares are superseded and new ones applied."""
        npd = make_final_npd([(rka.atk, 6_000_000), (rka.cetak, 4_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=5_000_000),
        )

        updated = sp2d_service.update_sp2d(
            db, users["bendahara"], sp2d.id, Sp2dUpdate(nilai_cair=2_000_000)
        )

        assert updated.nilai_cair == 2_000_000
        assert _figures(db, rka.atk) == (1_200_000, 8_800_000)
        assert _figures(db, rka.cetak) == (800_000, 4_200_000)
        superseded = [r for r in updated.realizations if r.superseded_at is not None]
        assert sorted(r.jumlah for r in superseded) == [2_000_000, 3_000_000]

    def test_deleted_sp2d_cannot_be_edited(self, db, users, rka, make_final_npd, today):
        """Test that a soft-deleted SP2D must be restored before editing."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000),
        )
        sp2d_service.soft_delete_sp2d(db, users["admin"], sp2d.id, "Salah input")

        with pytest.raises(ConflictError):
            sp2d_service.update_sp2d(db, users["bendahara"], sp2d.id, Sp2dUpdate(catatan="x"))


class TestSoftDeleteRestore:
    """Tests for reversing and replaying a disbursement."""

    def test_delete_and_restore_round_trip_ledger(self, db, users, rka, make_final_npd, today):
        """Test that delete reverses the shares and restore replays them."""
        npd = make_final_npd([(rka.atk, 2_500_000), (rka.cetak, 2_500_000), (rka.atk, 5_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=8_000_000),
        )
        after_create = (_figures(db, rka.atk), _figures(db, rka.cetak))

        deleted = sp2d_service.soft_delete_sp2d(db, users["admin"], sp2d.id, "Dokumen ganda")
        assert deleted.deleted_at is not None
        assert deleted.delete_reason == "Dokumen ganda"
        assert _figures(db, rka.atk) == (0, 10_000_000)
        assert _figures(db, rka.cetak) == (0, 5_000_000)

        restored = sp2d_service.restore_sp2d(db, users["admin"], sp2d.id)
        assert restored.deleted_at is None
        assert (_figures(db, rka.atk), _figures(db, rka.cetak)) == after_create
        assert db.query(Realization).count() == 3

    def test_second_delete_is_conflict(self, db, users, rka, make_final_npd, today):
        """Test that an SP2D cannot be deleted twice."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000),
        )
        sp2d_service.soft_delete_sp2d(db, users["admin"], sp2d.id, "Salah input")

        with pytest.raises(ConflictError):
            sp2d_service.soft_delete_sp2d(db, users["admin"], sp2d.id, "Lagi")

    def test_delete_requires_reason(self, db, users, rka, make_final_npd, today):
        """Test that a blank deletion reason is rejected."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000),
        )

        with pytest.raises(ValidationError):
            sp2d_service.soft_delete_sp2d(db, users["admin"], sp2d.id, "   ")

    def test_delete_is_admin_only(self, db, users, rka, make_final_npd, today):
        """Test that the treasurer cannot soft-delete."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        sp2d = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_000_000),
        )

        with pytest.raises(PermissionDenied):
            sp2d_service.soft_delete_sp2d(db, users["bendahara"], sp2d.id, "Salah input")

    def test_restore_rechecks_cap(self, db, users, rka, make_final_npd, today):
        """Test that restore fails when the balance was used meanwhile."""
        npd = make_final_npd([(rka.atk, 10_000_000)])
        first = sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=8_000_000),
        )
        sp2d_service.soft_delete_sp2d(db, users["admin"], first.id, "Diganti")
        sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-2", tgl_sp2d=today, nilai_cair=5_000_000),
        )

        with pytest.raises(BudgetExceeded) as excinfo:
            sp2d_service.restore_sp2d(db, users["admin"], first.id)

        assert excinfo.value.available == 5_000_000
        assert _figures(db, rka.atk) == (5_000_000, 5_000_000)
