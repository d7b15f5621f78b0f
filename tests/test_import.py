"""Tests for the RKA CSV import."""

import pytest

from npd_tracker.exceptions import PermissionDenied, ValidationError
from npd_tracker.models import RkaAccount, RkaProgram
from npd_tracker.parsers.rka_parser import RkaParser
from npd_tracker.services import import_service, ledger_service

HEADER = (
    "program_kode,program_nama,kegiatan_kode,kegiatan_nama,"
    "subkegiatan_kode,subkegiatan_nama,akun_kode,akun_uraian,pagu_tahun"
)


def _csv(*rows):
    return "\n".join([HEADER, *rows]).encode("utf-8")


ROW_ATK = (
    "1.01,Program Penunjang,1.01.01,Administrasi Keuangan,1.01.01.2.01,"
    "Penyediaan Administrasi Perkantoran,5.1.02.01.01.0001,Belanja Alat Tulis Kantor,{pagu}"
)
ROW_CETAK = (
    "1.01,Program Penunjang,1.01.01,Administrasi Keuangan,1.01.01.2.01,"
    "Penyediaan Administrasi Perkantoran,5.1.02.01.01.0002,Belanja Cetak,{pagu}"
)


class TestRkaParser:
    """Tests for parsing an RKA upload."""

    def test_parses_rows(self):
        """Test that valid rows become records with integer pagu."""
        result = RkaParser(
            _csv(ROW_ATK.format(pagu="10000000"), ROW_CETAK.format(pagu="5.000.000")),
            filename="rka.csv",
        ).parse()

        assert result.ok
        assert [r["akun_kode"] for r in result.records] == [
            "5.1.02.01.01.0001",
            "5.1.02.01.01.0002",
        ]
        assert [r["pagu_tahun"] for r in result.records] == [10_000_000, 5_000_000]

    def test_camel_case_headers(self):
        """Test that older camelCase exports are accepted."""
        header = (
            "programKode,programNama,kegiatanKode,kegiatanNama,"
            "subkegiatanKode,subkegiatanNama,akunKode,akunUraian,paguTahun"
        )
        content = "\n".join([header, ROW_ATK.format(pagu="100")]).encode()

        assert RkaParser(content, filename="rka.csv").parse().record_count == 1

    def test_bad_code_reported_with_row_number(self):
        """Test that an invalid account code names its spreadsheet row."""
        bad = ROW_CETAK.format(pagu="1000").replace("5.1.02.01.01.0002", "5.1.02")
        result = RkaParser(_csv(ROW_ATK.format(pagu="1000"), bad), filename="rka.csv").parse()

        assert not result.ok
        assert result.errors[0].startswith("Baris 3:")
        assert result.record_count == 1

    def test_duplicate_account_code(self):
        """Test that the same account twice in one file is an error."""
        row = ROW_ATK.format(pagu="1000")
        result = RkaParser(_csv(row, row), filename="rka.csv").parse()

        assert "duplikat dengan baris 2" in result.errors[0]

    def test_missing_columns(self):
        """Test that a file without the required headers is rejected."""
        result = RkaParser(b"kode,nama\n1,a\n", filename="rka.csv").parse()

        assert not result.ok
        assert "Header yang diperlukan tidak ada" in result.errors[0]


class TestImportRka:
    """Tests for importing an RKA file into the database."""

    def test_creates_hierarchy_and_accounts(self, db, users):
        """Test a clean import of a new fiscal year."""
        content = _csv(ROW_ATK.format(pagu="10000000"), ROW_CETAK.format(pagu="5000000"))

        outcome = import_service.import_rka(db, users["pptk"], content, "rka.csv", 2026)

        assert outcome.estado == "EXITOSO"
        assert outcome.programs_created == 1
        assert outcome.kegiatans_created == 1
        assert outcome.subkegiatans_created == 1
        assert outcome.accounts_created == 2
        accounts = db.query(RkaAccount).order_by(RkaAccount.kode).all()
        assert [a.pagu for a in accounts] == [10_000_000, 5_000_000]
        assert all(ledger_service.check_invariants(a) for a in accounts)

    def test_invalid_row_rejects_whole_file(self, db, users):
        """Test that one bad row means nothing is written."""
        bad = ROW_CETAK.format(pagu="abc")
        content = _csv(ROW_ATK.format(pagu="10000000"), bad)

        outcome = import_service.import_rka(db, users["pptk"], content, "rka.csv", 2026)

        assert outcome.estado == "FALLIDO"
        assert outcome.accounts_created == 0
        assert db.query(RkaProgram).count() == 0
        assert db.query(RkaAccount).count() == 0
        historial = import_service.get_historial(db, users["viewer"], 2026)
        assert [(h.estado, h.registros_ok) for h in historial] == [("FALLIDO", 0)]

    def test_reimport_updates_pagu(self, db, users, rka, make_npd):
        """Test that an existing account's ceiling is changed in place."""
        make_npd([(rka.atk, 2_000_000)])
        content = _csv(ROW_ATK.format(pagu="12000000"))

        outcome = import_service.import_rka(db, users["pptk"], content, "rka.csv", 2026)

        assert outcome.estado == "EXITOSO"
        assert outcome.accounts_updated == 1
        assert outcome.programs_created == 0
        db.refresh(rka.atk)
        assert rka.atk.pagu == 12_000_000
        assert rka.atk.sisa_komitmen == 10_000_000

    def test_reimport_below_commitment_fails(self, db, users, rka, make_npd):
        """Test that a ceiling below what is committed rejects the file."""
        make_npd([(rka.atk, 6_000_000)])
        content = _csv(ROW_ATK.format(pagu="5000000"))

        outcome = import_service.import_rka(db, users["pptk"], content, "rka.csv", 2026)

        assert outcome.estado == "FALLIDO"
        assert outcome.errors[0].startswith("Baris 2:")
        db.refresh(rka.atk)
        assert rka.atk.pagu == 10_000_000

    def test_history_written_either_way(self, db, users):
        """Test that successful and failed uploads both appear in the history."""
        import_service.import_rka(db, users["pptk"], _csv(ROW_ATK.format(pagu="1")), "ok.csv", 2026)
        import_service.import_rka(db, users["pptk"], _csv(ROW_ATK.format(pagu="x")), "bad.csv", 2026)

        historial = import_service.get_historial(db, users["viewer"], 2026)

        assert [h.estado for h in historial] == ["FALLIDO", "EXITOSO"]
        assert historial[0].archivo_nombre == "bad.csv"

    def test_empty_upload(self, db, users):
        """Test that an empty file is refused outright."""
        with pytest.raises(ValidationError):
            import_service.import_rka(db, users["pptk"], b"", "rka.csv", 2026)

    def test_viewer_cannot_import(self, db, users):
        """Test that importing needs ``create:rka``."""
        with pytest.raises(PermissionDenied):
            import_service.import_rka(db, users["viewer"], _csv(), "rka.csv", 2026)
