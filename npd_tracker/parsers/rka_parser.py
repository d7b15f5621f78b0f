"""Parser for RKA (budget plan) uploads.

One row per budget account, carrying its program, kegiatan and sub-kegiatan
codes and names so that the import service can upsert the whole hierarchy.

Expected columns (snake_case; the camelCase spelling used by older exports,
e.g. ``programKode`` or ``paguTahun``, is accepted too):

    program_kode, program_nama, kegiatan_kode, kegiatan_nama,
    subkegiatan_kode, subkegiatan_nama, akun_kode, akun_uraian, pagu_tahun
    [, satuan, volume, harga_satuan]

Row errors are reported as ``"Baris N: ..."`` where N is the spreadsheet row
number (header is row 1).
"""

from __future__ import annotations

import logging
import re
from typing import Any

import pandas as pd

from npd_tracker.parsers.base_parser import BaseParser, ParseResult
from npd_tracker.utils.constants import (
    ACCOUNT_CODE_PATTERN,
    RKA_CSV_OPTIONAL_COLUMNS,
    RKA_CSV_REQUIRED_COLUMNS,
)

logger = logging.getLogger(__name__)

FORMAT_RKA = "RKA"


def _snake(name: str) -> str:
    """``paguTahun`` -> ``pagu_tahun``; ``Akun Kode`` -> ``akun_kode``."""
    name = re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", name.strip())
    return re.sub(r"[\s\-]+", "_", name).lower()


class RkaParser(BaseParser):
    """Parse an RKA CSV or XLSX upload into account records."""

    FORMAT_NAME = FORMAT_RKA

    def validate_structure(self, df: pd.DataFrame) -> list[str]:
        missing = [c for c in RKA_CSV_REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            return [f"Header yang diperlukan tidak ada: {', '.join(missing)}"]
        return []

    def _parse_row(self, row: pd.Series, row_number: int) -> dict[str, Any] | None:
        values = {c: self._clean_str(row.get(c)) for c in RKA_CSV_REQUIRED_COLUMNS}
        missing = [c for c, v in values.items() if not v]
        if missing:
            self.result.errors.append(
                f"Baris {row_number}: Field yang diperlukan kosong: {', '.join(missing)}"
            )
            return None

        akun_kode = self._normalize_kode(values["akun_kode"])
        if not ACCOUNT_CODE_PATTERN.match(akun_kode):
            self.result.errors.append(
                f"Baris {row_number}: Format kode akun tidak valid '{akun_kode}'. "
                "Format yang benar: X.XX.XX.XX.XXX (contoh: 5.1.01.01.001)"
            )
            return None

        pagu = self._to_rupiah(values["pagu_tahun"])
        if pagu is None or pagu < 0:
            self.result.errors.append(
                f"Baris {row_number}: Pagu tidak valid '{values['pagu_tahun']}'"
            )
            return None

        record: dict[str, Any] = {
            "program_kode": self._normalize_kode(values["program_kode"]),
            "program_nama": values["program_nama"],
            "kegiatan_kode": self._normalize_kode(values["kegiatan_kode"]),
            "kegiatan_nama": values["kegiatan_nama"],
            "subkegiatan_kode": self._normalize_kode(values["subkegiatan_kode"]),
            "subkegiatan_nama": values["subkegiatan_nama"],
            "akun_kode": akun_kode,
            "akun_uraian": values["akun_uraian"],
            "pagu_tahun": pagu,
            "satuan": self._clean_str(row.get("satuan")) or None,
            "volume": self._to_decimal(row.get("volume")),
            "harga_satuan": self._to_rupiah(row.get("harga_satuan")),
            "_row": row_number,
        }
        if (
            record["volume"] is not None
            and record["harga_satuan"] is not None
            and round(record["volume"] * record["harga_satuan"]) != pagu
        ):
            self.result.warnings.append(
                f"Baris {row_number}: volume x harga satuan tidak sama dengan pagu"
            )
        return record

    def parse(self) -> ParseResult:
        df = self._load_table()
        if df.empty and not self.result.ok:
            return self.result

        df = df.rename(columns={c: _snake(c) for c in df.columns})
        structure_errors = self.validate_structure(df)
        if structure_errors:
            self.result.errors.extend(structure_errors)
            return self.result

        unknown = [
            c for c in df.columns
            if c and c not in RKA_CSV_REQUIRED_COLUMNS and c not in RKA_CSV_OPTIONAL_COLUMNS
        ]
        if unknown:
            self.result.warnings.append(f"Kolom diabaikan: {', '.join(unknown)}")

        seen: dict[str, int] = {}
        for idx, row in df.iterrows():
            row_number = int(idx) + 2
            if self._is_empty_row(row):
                continue
            record = self._parse_row(row, row_number)
            if record is None:
                continue
            first = seen.get(record["akun_kode"])
            if first is not None:
                self.result.errors.append(
                    f"Baris {row_number}: Kode akun {record['akun_kode']} "
                    f"duplikat dengan baris {first}"
                )
                continue
            seen[record["akun_kode"]] = row_number
            self.result.records.append(record)

        self.result.metadata = {"rows": len(df), "source": "xlsx" if self.is_excel else "csv"}
        logger.info("RkaParser: %s", self.result.summary())
        return self.result
