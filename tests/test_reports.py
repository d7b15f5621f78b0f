"""Tests for the triwulan (quarterly) report."""

from datetime import date, datetime

import pytest

from npd_tracker.exceptions import ValidationError
from npd_tracker.models import NpdDocument, Sp2dRef
from npd_tracker.schemas.performance import PerformanceCreate
from npd_tracker.schemas.sp2d import Sp2dCreate
from npd_tracker.services import performance_service, report_service, sp2d_service

TAHUN = 2026


@pytest.fixture
def second_quarter_activity(db, users, rka, make_npd, make_final_npd, today):
    """One final NPD paid in May, one draft, and two TW2 performance logs."""
    paid = make_final_npd([(rka.atk, 4_000_000)])
    make_npd([(rka.cetak, 1_000_000)])
    sp2d = sp2d_service.create_sp2d(
        db,
        users["bendahara"],
        Sp2dCreate(npd_id=paid.id, no_sp2d="SP2D-1", tgl_sp2d=today, nilai_cair=3_000_000),
    )

    # pin the timestamps into Q2 so the test does not depend on the clock
    db.query(NpdDocument).update(
        {NpdDocument.created_at: datetime(TAHUN, 5, 4, 9, 0)}, synchronize_session=False
    )
    db.query(NpdDocument).filter(NpdDocument.id == paid.id).update(
        {NpdDocument.finalized_at: datetime(TAHUN, 5, 6, 14, 0)}, synchronize_session=False
    )
    db.query(Sp2dRef).filter(Sp2dRef.id == sp2d.id).update(
        {Sp2dRef.tgl_sp2d: date(TAHUN, 5, 10)}, synchronize_session=False
    )
    db.commit()

    def _log(target, realisasi):
        return performance_service.create_log(
            db,
            users["pptk"],
            PerformanceCreate(
                subkegiatan_id=rka.subkegiatan.id,
                indikator_nama="Laporan",
                target=target,
                realisasi=realisasi,
                satuan="dokumen",
                periode="TW2",
            ),
        )

    approved = _log(4, 3)
    performance_service.submit_log(db, users["pptk"], approved.id)
    performance_service.approve_log(db, users["verifikator"], approved.id)
    _log(10, 1)  # draft, not counted


class TestQuarterlyReport:
    """Tests for quarter-bounded NPD, SP2D and performance figures."""

    def test_second_quarter_figures(self, db, users, second_quarter_activity):
        """Test counts and sums of the quarter the activity falls in."""
        report = report_service.get_quarterly_report(db, users["viewer"], TAHUN, "Q2")

        assert report.npd_dibuat == 2
        assert report.npd_final == 1
        assert report.sp2d_total == 1
        assert report.sp2d_nilai == 3_000_000
        assert report.capaian_kinerja == 75.0

    def test_other_quarter_is_empty(self, db, users, second_quarter_activity):
        """Test that activity outside the quarter is not counted."""
        report = report_service.get_quarterly_report(db, users["viewer"], TAHUN, "Q3")

        assert (report.npd_dibuat, report.npd_final, report.sp2d_total) == (0, 0, 0)
        assert report.sp2d_nilai == 0
        assert report.capaian_kinerja is None

    def test_top_lists_use_ledger(self, db, users, second_quarter_activity):
        """Test that the top program and account carry real realization."""
        report = report_service.get_quarterly_report(db, users["viewer"], TAHUN, "Q2")

        program = report.top_programs[0]
        assert (program.kode, program.pagu, program.realisasi) == ("1.01", 15_000_000, 3_000_000)
        assert program.persentase == 20.0
        account = report.top_accounts[0]
        assert (account.kode, account.realisasi) == ("5.1.02.01.01.0001", 3_000_000)
        assert account.persentase == 30.0

    def test_unknown_quarter(self, db, users):
        """Test that only Q1 to Q4 are accepted."""
        with pytest.raises(ValidationError):
            report_service.get_quarterly_report(db, users["viewer"], TAHUN, "Q5")
