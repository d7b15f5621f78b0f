"""
Excel export helper wrapping xlsxwriter.

Provides ``ExcelExporter``, a stateful builder that constructs a styled
NPD Tracker workbook in memory and returns its bytes for streaming via
FastAPI's ``Response``.

Usage example::

    exporter = ExcelExporter(title="Realisasi 2026", filters={"Tahun": "2026"})
    exporter.add_header()
    exporter.add_kpi_row(kpis)
    exporter.add_data_table(headers, rows)
    file_bytes = exporter.finalize()

Design notes
------------
- Uses ``xlsxwriter`` in in-memory mode (``BytesIO``).
- Column widths are auto-sized from the longest value in each column,
  capped at 60 characters.
- Rupiah amounts are whole numbers and use the ``#,##0`` format.
- Percentage columns hold plain numbers such as ``45.5`` and use ``0.00``.
"""

from __future__ import annotations

import io
from typing import Any, Sequence

import xlsxwriter
from xlsxwriter.workbook import Workbook
from xlsxwriter.worksheet import Worksheet

from npd_tracker.utils.dates import utcnow

_COLOR_PRIMARY = "#0f766e"
_COLOR_WHITE = "#FFFFFF"
_COLOR_LIGHT_GREY = "#F3F4F6"
_COLOR_SUBHEADER_BG = "#134e4a"

_MONEY_FORMAT = "#,##0"
_PCT_FORMAT = "0.00"

_MAX_COL_WIDTH = 60
_MIN_COL_WIDTH = 8


class ExcelExporter:
    """Stateful Excel workbook builder.

    Creates a single worksheet with a title header, optional KPI summary
    row, and a styled data table.

    Args:
        title: Workbook title, e.g. ``"Realisasi Anggaran 2026"``.
        filters: Applied filter labels shown in the header,
                 e.g. ``{"Tahun": "2026", "Sub kegiatan": "1.01.01"}``.
        sheet_name: Name of the worksheet tab (default: ``"Data"``).
    """

    def __init__(
        self,
        title: str,
        filters: dict[str, str] | None = None,
        sheet_name: str = "Data",
    ) -> None:
        self._title = title
        self._filters = filters or {}
        self._sheet_name = sheet_name

        self._buffer = io.BytesIO()
        self._workbook: Workbook = xlsxwriter.Workbook(self._buffer, {"in_memory": True})
        self._worksheet: Worksheet = self._workbook.add_worksheet(sheet_name)

        self._current_row: int = 0
        self._num_cols: int = 1

        self._formats: dict[str, Any] = self._build_formats()

    # -----------------------------------------------------------------------
    # Format factory
    # -----------------------------------------------------------------------

    def _build_formats(self) -> dict[str, Any]:
        wb = self._workbook
        cell_border = {"border": 1, "border_color": "#E5E7EB"}
        kpi_border = {"top": 1, "bottom": 1, "left": 1, "right": 1, "border_color": "#99F6E4"}

        def data(bg: str, **extra: Any) -> Any:
            return wb.add_format({
                "font_size": 9,
                "font_color": "#111827",
                "bg_color": bg,
                "valign": "vcenter",
                **cell_border,
                **extra,
            })

        return {
            "header_main": wb.add_format({
                "bold": True,
                "font_size": 16,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_PRIMARY,
                "align": "center",
                "valign": "vcenter",
            }),
            "header_sub": wb.add_format({
                "font_size": 10,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_SUBHEADER_BG,
                "align": "center",
                "valign": "vcenter",
            }),
            "filter_key": wb.add_format({
                "bold": True,
                "font_size": 9,
                "font_color": "#374151",
                "bg_color": "#E5E7EB",
                "align": "right",
                "valign": "vcenter",
            }),
            "filter_value": wb.add_format({
                "font_size": 9,
                "font_color": "#111827",
                "bg_color": "#F9FAFB",
                "align": "left",
                "valign": "vcenter",
            }),
            "kpi_label": wb.add_format({
                "bold": True,
                "font_size": 10,
                "font_color": "#374151",
                "bg_color": "#F0FDFA",
                "align": "center",
                "valign": "vcenter",
                **kpi_border,
            }),
            "kpi_value": wb.add_format({
                "bold": True,
                "font_size": 12,
                "font_color": _COLOR_PRIMARY,
                "bg_color": "#F0FDFA",
                "align": "center",
                "valign": "vcenter",
                "num_format": _MONEY_FORMAT,
                **kpi_border,
            }),
            "col_header": wb.add_format({
                "bold": True,
                "font_size": 10,
                "font_color": _COLOR_WHITE,
                "bg_color": _COLOR_SUBHEADER_BG,
                "align": "center",
                "valign": "vcenter",
                "border": 1,
                "border_color": "#CBD5E1",
                "text_wrap": True,
            }),
            "data_plain": data(_COLOR_WHITE, align="left"),
            "data_alt": data(_COLOR_LIGHT_GREY, align="left"),
            "data_number": data(_COLOR_WHITE, align="right", num_format=_MONEY_FORMAT),
            "data_number_alt": data(_COLOR_LIGHT_GREY, align="right", num_format=_MONEY_FORMAT),
            "data_pct": data(_COLOR_WHITE, align="right", num_format=_PCT_FORMAT),
            "data_pct_alt": data(_COLOR_LIGHT_GREY, align="right", num_format=_PCT_FORMAT),
        }

    # -----------------------------------------------------------------------
    # Public builder methods
    # -----------------------------------------------------------------------

    def add_header(self, num_cols: int = 6) -> "ExcelExporter":
        """Write the title block: title row, timestamp row, one row per filter.

        Args:
            num_cols: Columns the merged header cells span; pass the width
                of the data table that follows.

        Returns:
            ``self`` for method chaining.
        """
        ws = self._worksheet
        last_col = max(num_cols, 2) - 1

        ws.set_row(self._current_row, 32)
        ws.merge_range(
            self._current_row, 0, self._current_row, last_col,
            f"NPD Tracker | {self._title}",
            self._formats["header_main"],
        )
        self._current_row += 1

        gen_ts = utcnow().strftime("%d/%m/%Y %H:%M UTC")
        ws.set_row(self._current_row, 18)
        ws.merge_range(
            self._current_row, 0, self._current_row, last_col,
            f"Dibuat: {gen_ts}",
            self._formats["header_sub"],
        )
        self._current_row += 1

        for key, value in self._filters.items():
            ws.set_row(self._current_row, 16)
            ws.write(self._current_row, 0, key, self._formats["filter_key"])
            ws.merge_range(
                self._current_row, 1, self._current_row, last_col,
                value,
                self._formats["filter_value"],
            )
            self._current_row += 1

        self._current_row += 1
        return self

    def add_kpi_row(self, kpis: dict[str, Any]) -> "ExcelExporter":
        """Write label cells above value cells, one pair per KPI.

        Args:
            kpis: Ordered ``{label: value}`` pairs, e.g.
                  ``{"Total pagu": 150_000_000, "Realisasi %": "45.50%"}``.
        """
        ws = self._worksheet
        ws.set_row(self._current_row, 16)
        ws.set_row(self._current_row + 1, 22)
        for col, (label, value) in enumerate(kpis.items()):
            ws.write(self._current_row, col, label, self._formats["kpi_label"])
            ws.write(self._current_row + 1, col, value, self._formats["kpi_value"])

        self._current_row += 3
        return self

    def add_data_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        numeric_cols: set[int] | None = None,
        pct_cols: set[int] | None = None,
    ) -> "ExcelExporter":
        """Write a styled data table with alternating row shading.

        Args:
            headers: Column header strings.
            rows: Data rows; each must match the length of ``headers``.
            numeric_cols: Zero-based indices of rupiah columns.  When
                ``None`` they are detected from ``int`` values in the first row.
            pct_cols: Zero-based indices of percentage columns.
        """
        ws = self._worksheet
        self._num_cols = len(headers)
        pct_cols = pct_cols or set()

        if numeric_cols is None:
            numeric_cols = set()
            if rows:
                for ci, val in enumerate(rows[0]):
                    if isinstance(val, int) and not isinstance(val, bool) and ci not in pct_cols:
                        numeric_cols.add(ci)

        col_widths: list[int] = [len(str(h)) for h in headers]

        ws.set_row(self._current_row, 20)
        for ci, hdr in enumerate(headers):
            ws.write(self._current_row, ci, hdr, self._formats["col_header"])
        self._current_row += 1

        for ri, data_row in enumerate(rows):
            suffix = "_alt" if ri % 2 == 1 else ""
            ws.set_row(self._current_row, 15)
            for ci, cell_val in enumerate(data_row):
                if ci in pct_cols:
                    fmt = self._formats["data_pct" + suffix]
                elif ci in numeric_cols:
                    fmt = self._formats["data_number" + suffix]
                else:
                    fmt = self._formats["data_alt" if suffix else "data_plain"]
                ws.write(self._current_row, ci, cell_val, fmt)

                cell_str = str(cell_val) if cell_val is not None else ""
                col_widths[ci] = min(_MAX_COL_WIDTH, max(col_widths[ci], len(cell_str)))
            self._current_row += 1

        for ci, width in enumerate(col_widths):
            ws.set_column(ci, ci, max(width + 2, _MIN_COL_WIDTH))

        return self

    def finalize(self) -> bytes:
        """Close the workbook and return the ``.xlsx`` bytes.

        After calling ``finalize`` the exporter instance should not be reused.
        """
        self._workbook.close()
        self._buffer.seek(0)
        return self._buffer.read()
