"""Abstract base class for the RKA upload parsers.

Provides shared infrastructure for loading CSV or XLSX uploads into a
DataFrame and normalising cell values before format-specific subclasses
do their domain logic.
"""

from __future__ import annotations

import io
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

logger = logging.getLogger(__name__)

_THOUSANDS_RE = re.compile(r"^-?\d{1,3}([.,]\d{3})+$")


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass
class ParseResult:
    """Container returned by every parser after processing an upload.

    Attributes:
        records: List of dicts ready for the import service.  Each dict key
            matches an RKA column name.
        errors: Row-level or structural problems (the row was skipped).
        warnings: Non-fatal oddities (the row was kept but may need review).
        metadata: Context about the file (row count, source format).
        format_name: Assumed format identifier string.
    """

    records: list[dict[str, Any]] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    format_name: str = "UNKNOWN"

    @property
    def ok(self) -> bool:
        """True when no errors were collected."""
        return len(self.errors) == 0

    @property
    def record_count(self) -> int:
        return len(self.records)

    def summary(self) -> str:
        """One-line human-readable summary of the parse run."""
        status = "OK" if self.ok else "ERROR"
        return (
            f"[{status}] format={self.format_name} "
            f"records={self.record_count} "
            f"errors={len(self.errors)} "
            f"warnings={len(self.warnings)}"
        )


# ---------------------------------------------------------------------------
# Base parser
# ---------------------------------------------------------------------------


class BaseParser(ABC):
    """Abstract base for the upload parsers.

    Subclasses must implement:
        * ``validate_structure(df)``: check expected columns.
        * ``parse()``: extract domain records.

    The constructor accepts a file path string, raw bytes, or an open
    binary-mode file object so it works both from the filesystem and from
    FastAPI ``UploadFile.read()``.

    Attributes:
        file_source: The original argument passed to the constructor.
        filename: Name used to pick CSV or XLSX loading.
        content: Raw bytes of the upload.
        result: Accumulated ``ParseResult`` (populated during ``parse()``).
    """

    FORMAT_NAME: str = "UNKNOWN"

    def __init__(
        self,
        file_path_or_bytes: str | bytes | BinaryIO,
        filename: str | None = None,
    ) -> None:
        self.file_source = file_path_or_bytes
        self.filename = filename or (
            file_path_or_bytes if isinstance(file_path_or_bytes, str) else ""
        )
        self.content: bytes = self._read_source(file_path_or_bytes)
        self.result: ParseResult = ParseResult(format_name=self.FORMAT_NAME)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _read_source(source: str | bytes | BinaryIO) -> bytes:
        """Normalise any input type to raw bytes."""
        if isinstance(source, bytes):
            return source
        if isinstance(source, str):
            return Path(source).read_bytes()
        # File-like object (e.g. SpooledTemporaryFile from FastAPI)
        data = source.read()
        return data if isinstance(data, bytes) else data.encode()

    @property
    def is_excel(self) -> bool:
        return self.filename.lower().endswith((".xlsx", ".xlsm"))

    # ------------------------------------------------------------------
    # Table loading
    # ------------------------------------------------------------------

    def _load_table(self) -> pd.DataFrame:
        """Load the upload into a DataFrame with every cell read as a string.

        CSV files go through ``pd.read_csv`` (delimiter sniffed, so both
        comma and semicolon exports work); ``.xlsx`` through ``pd.read_excel``
        with the openpyxl engine.  A load failure is recorded in
        ``self.result.errors`` and an empty DataFrame is returned.
        """
        try:
            if self.is_excel:
                df = pd.read_excel(
                    io.BytesIO(self.content), sheet_name=0, dtype=str, engine="openpyxl"
                )
            else:
                df = pd.read_csv(
                    io.BytesIO(self.content),
                    dtype=str,
                    sep=None,
                    engine="python",
                    encoding="utf-8-sig",
                    skip_blank_lines=True,
                )
        except Exception as exc:
            msg = f"Failed to read '{self.filename or 'upload'}': {exc}"
            logger.error(msg)
            self.result.errors.append(msg)
            return pd.DataFrame()

        df.columns = [self._clean_str(c) for c in df.columns]
        return df

    # ------------------------------------------------------------------
    # Value normalisation helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _clean_str(value: Any) -> str:
        """Return a stripped string, converting NaN/None to empty string."""
        if value is None:
            return ""
        if isinstance(value, float) and pd.isna(value):
            return ""
        return str(value).strip()

    @staticmethod
    def _to_rupiah(value: Any) -> int | None:
        """Parse a money cell to an integer amount.

        Accepts plain numbers, ``"Rp 1.500.000"`` and ``"1,500,000"``.
        Returns ``None`` for blank or unparseable values.
        """
        text = BaseParser._clean_str(value)
        if not text:
            return None
        cleaned = re.sub(r"(?i)^rp\.?", "", text).replace(" ", "")
        if _THOUSANDS_RE.match(cleaned):
            cleaned = re.sub(r"[.,]", "", cleaned)
        try:
            return int(round(float(cleaned)))
        except ValueError:
            return None

    @staticmethod
    def _to_decimal(value: Any) -> float | None:
        text = BaseParser._clean_str(value).replace(",", ".")
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None

    @staticmethod
    def _normalize_kode(code: Any) -> str:
        """Strip whitespace from a dotted budget code."""
        return re.sub(r"\s+", "", BaseParser._clean_str(code))

    @staticmethod
    def _is_empty_row(row: pd.Series) -> bool:
        """True when every cell in the row is blank."""
        return all(not BaseParser._clean_str(val) for val in row)

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def validate_structure(self, df: pd.DataFrame) -> list[str]:
        """Verify that the DataFrame has the required columns.

        Returns:
            List of error messages.  Empty list means structure is valid.
        """

    @abstractmethod
    def parse(self) -> ParseResult:
        """Execute the full parsing pipeline and return a ``ParseResult``."""
