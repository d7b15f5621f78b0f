"""Tests for the budget ledger: commitment, ceilings and aggregation."""

import pytest

from npd_tracker.exceptions import BudgetExceeded, NotFoundError, ValidationError
from npd_tracker.models import RkaAccount
from npd_tracker.schemas.npd import NpdLineCreate, NpdLineUpdate
from npd_tracker.schemas.sp2d import Sp2dCreate
from npd_tracker.services import ledger_service, npd_service, sp2d_service
from npd_tracker.services.ledger_service import safe_pct


class TestFigures:
    """Tests for the per-account ledger equations."""

    def test_new_account_is_untouched(self, rka):
        """Test that a fresh account has its whole ceiling available."""
        acc = rka.atk
        assert acc.pagu == acc.sisa_pagu == acc.sisa_komitmen == 10_000_000
        assert acc.realisasi_tahun == acc.nilai_komitmen == 0
        assert ledger_service.check_invariants(acc)

    def test_line_lifecycle_moves_commitment(self, db, users, rka, make_npd):
        """Test add, update and remove of a line against the commitment ledger."""
        npd = make_npd([(rka.atk, 3_000_000)])
        line = npd.lines[0]
        db.refresh(rka.atk)
        assert (rka.atk.nilai_komitmen, rka.atk.sisa_komitmen) == (3_000_000, 7_000_000)

        npd_service.update_line(db, users["pptk"], line.id, NpdLineUpdate(jumlah=4_500_000))
        db.refresh(rka.atk)
        assert (rka.atk.nilai_komitmen, rka.atk.sisa_komitmen) == (4_500_000, 5_500_000)
        assert ledger_service.check_invariants(rka.atk)

        npd_service.remove_line(db, users["pptk"], line.id)
        db.refresh(rka.atk)
        assert (rka.atk.nilai_komitmen, rka.atk.sisa_komitmen) == (0, 10_000_000)
        assert rka.atk.realisasi_tahun == 0

    def test_commitment_and_realization_are_separate(self, db, users, rka, make_final_npd, today):
        """Test that an SP2D moves realization but leaves commitment alone."""
        npd = make_final_npd([(rka.atk, 4_000_000)])
        sp2d_service.create_sp2d(
            db, users["bendahara"],
            Sp2dCreate(npd_id=npd.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=1_500_000),
        )
        db.refresh(rka.atk)

        assert rka.atk.nilai_komitmen == 4_000_000
        assert rka.atk.realisasi_tahun == 1_500_000
        assert rka.atk.sisa_pagu == 8_500_000
        assert ledger_service.check_invariants(rka.atk)

    def test_rejected_line_leaves_ledger_unchanged(self, db, users, rka, make_npd):
        """Test that a failed budget check rolls back every write."""
        npd = make_npd([(rka.cetak, 4_000_000)])

        with pytest.raises(BudgetExceeded):
            npd_service.add_line(
                db, users["pptk"], npd.id, NpdLineCreate(account_id=rka.cetak.id, jumlah=1_500_000)
            )

        db.refresh(rka.cetak)
        assert rka.cetak.nilai_komitmen == 4_000_000
        assert len(npd_service.get_npd(db, npd.id, npd.organization_id).lines) == 1


class TestSetPagu:
    """Tests for changing an account's ceiling."""

    def test_raise_pagu_shifts_both_balances(self, db, rka, make_npd):
        """Test that both sisa figures move with the ceiling."""
        make_npd([(rka.atk, 2_000_000)])
        acc = db.get(RkaAccount, rka.atk.id)

        delta = ledger_service.set_pagu(db, acc, 12_000_000)
        db.commit()

        assert delta == 2_000_000
        assert acc.sisa_pagu == 12_000_000
        assert acc.sisa_komitmen == 10_000_000
        assert ledger_service.check_invariants(acc)

    def test_pagu_below_commitment_rejected(self, db, rka, make_npd):
        """Test that the ceiling cannot drop below what is committed."""
        make_npd([(rka.atk, 6_000_000)])
        acc = db.get(RkaAccount, rka.atk.id)

        with pytest.raises(ValidationError):
            ledger_service.set_pagu(db, acc, 5_999_999)

    def test_negative_pagu_rejected(self, db, rka):
        """Test that a negative ceiling is refused."""
        with pytest.raises(ValidationError):
            ledger_service.set_pagu(db, rka.atk, -1)


class TestAggregate:
    """Tests for rolling account figures up the RKA tree."""

    def test_subkegiatan_sums_accounts(self, db, rka, make_npd):
        """Test that a sub-kegiatan reports the sum of its accounts."""
        make_npd([(rka.atk, 2_000_000), (rka.cetak, 1_000_000)])

        figures = ledger_service.aggregate(db, "subkegiatan", rka.subkegiatan.id)

        assert figures.pagu == 15_000_000
        assert figures.nilai_komitmen == 3_000_000
        assert figures.sisa_komitmen == 12_000_000
        assert figures.persen_realisasi == 0.0

    def test_levels_agree_and_are_idempotent(self, db, rka):
        """Test that every level reports the same totals on repeated calls."""
        sub = ledger_service.aggregate(db, "subkegiatan", rka.subkegiatan.id)
        keg = ledger_service.aggregate(db, "kegiatan", rka.kegiatan.id)
        prog = ledger_service.aggregate(db, "program", rka.program.id)

        assert sub == keg == prog
        assert ledger_service.aggregate(db, "program", rka.program.id) == prog

    def test_unknown_level(self, db, rka):
        """Test that an unknown level is a validation error."""
        with pytest.raises(ValidationError):
            ledger_service.aggregate(db, "urusan", 1)

    def test_missing_node(self, db, rka):
        """Test that a missing node is reported as not found."""
        with pytest.raises(NotFoundError):
            ledger_service.aggregate(db, "program", 9999)

    def test_other_organization_hidden(self, db, rka):
        """Test that an organization filter hides foreign nodes."""
        with pytest.raises(NotFoundError):
            ledger_service.aggregate(
                db, "program", rka.program.id, organization_id=rka.program.organization_id + 1
            )


class TestSafePct:
    """Tests for percentage helper."""

    def test_zero_denominator(self):
        """Test that a zero ceiling yields 0 percent."""
        assert safe_pct(5, 0) == 0.0

    def test_rounding(self):
        """Test rounding to two decimals."""
        assert safe_pct(1, 3) == 33.33
