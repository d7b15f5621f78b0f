"""
PDF export helper wrapping reportlab.

Provides ``PdfExporter``, a stateful builder that lays out an NPD Tracker
document in memory and returns its bytes for streaming via FastAPI's
``Response``, and ``render_npd_document`` which prints one NPD.

Usage example::

    exporter = PdfExporter(title="Realisasi 2026", filters={"Tahun": "2026"})
    exporter.add_header()
    exporter.add_kpi_section(kpis)
    exporter.add_table(headers, rows)
    file_bytes = exporter.build()

Design notes
------------
- Uses ``reportlab``'s ``SimpleDocTemplate`` with ``Platypus`` story elements.
- Page layout: A4 landscape for wide tables; portrait otherwise.
- Each page includes a footer with page number and generation timestamp.
- Money is printed in the Indonesian style, ``Rp 1.500.000``.
"""

from __future__ import annotations

import io
from typing import Any, Sequence

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import cm, mm
from reportlab.platypus import (
    HRFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from npd_tracker.utils.dates import utcnow

# Design token colours as hex strings
_HEX_PRIMARY = "#0f766e"
_HEX_DARK = "#134e4a"
_HEX_LIGHT_GREY = "#F3F4F6"
_HEX_MID_GREY = "#E5E7EB"
_HEX_TEXT = "#111827"
_HEX_WHITE = "#FFFFFF"

_APP_LABEL = "NPD Tracker"


def format_rupiah(value: int | None) -> str:
    """``1500000`` -> ``"Rp 1.500.000"``."""
    if value is None:
        return "-"
    sign = "-" if value < 0 else ""
    return f"{sign}Rp {abs(int(value)):,}".replace(",", ".")


def _rl(hex_color: str) -> Any:
    return colors.HexColor(hex_color)


class PdfExporter:
    """Stateful PDF document builder.

    Args:
        title: Document title, e.g. ``"Realisasi Anggaran 2026"``.
        filters: Applied filter labels (or header facts) shown under the title.
        landscape_mode: If ``True``, uses A4 landscape; otherwise portrait.
    """

    def __init__(
        self,
        title: str,
        filters: dict[str, str] | None = None,
        landscape_mode: bool = False,
    ) -> None:
        self._title = title
        self._filters = filters or {}
        self._landscape = landscape_mode

        self._buffer = io.BytesIO()
        page_size = landscape(A4) if landscape_mode else A4

        self._doc = SimpleDocTemplate(
            self._buffer,
            pagesize=page_size,
            rightMargin=1.5 * cm,
            leftMargin=1.5 * cm,
            topMargin=2 * cm,
            bottomMargin=2 * cm,
            title=title,
            author=_APP_LABEL,
        )

        self._story: list[Any] = []
        self._gen_ts = utcnow().strftime("%d/%m/%Y %H:%M UTC")
        self._styles = self._build_styles()

    # -----------------------------------------------------------------------
    # Style factory
    # -----------------------------------------------------------------------

    def _build_styles(self) -> dict[str, ParagraphStyle]:
        def style(name: str, **kw: Any) -> ParagraphStyle:
            kw.setdefault("fontName", "Helvetica")
            kw.setdefault("fontSize", 8)
            kw.setdefault("textColor", _rl(_HEX_TEXT))
            return ParagraphStyle(name, **kw)

        return {
            "title": style(
                "npd_title", fontName="Helvetica-Bold", fontSize=16,
                textColor=_rl(_HEX_WHITE), alignment=TA_CENTER,
            ),
            "subtitle": style(
                "npd_subtitle", fontSize=9, textColor=_rl(_HEX_WHITE), alignment=TA_CENTER,
            ),
            "filter_key": style(
                "filter_key", fontName="Helvetica-Bold", textColor=_rl(_HEX_DARK), alignment=TA_RIGHT,
            ),
            "filter_value": style("filter_value", alignment=TA_LEFT),
            "kpi_label": style(
                "kpi_label", fontName="Helvetica-Bold", textColor=_rl(_HEX_DARK), alignment=TA_CENTER,
            ),
            "kpi_value": style(
                "kpi_value", fontName="Helvetica-Bold", fontSize=11,
                textColor=_rl(_HEX_PRIMARY), alignment=TA_CENTER,
            ),
            "section_heading": style(
                "section_heading", fontName="Helvetica-Bold", fontSize=11,
                textColor=_rl(_HEX_DARK), spaceBefore=8, spaceAfter=4,
            ),
            "body": style("body", fontSize=9, leading=12),
            "table_header": style(
                "table_header", fontName="Helvetica-Bold", textColor=_rl(_HEX_WHITE), alignment=TA_CENTER,
            ),
            "table_cell": style("table_cell", alignment=TA_LEFT),
            "table_cell_right": style("table_cell_right", alignment=TA_RIGHT),
            "signature": style("signature", fontSize=9, alignment=TA_CENTER),
        }

    # -----------------------------------------------------------------------
    # Page template (footer)
    # -----------------------------------------------------------------------

    def _on_page(self, canvas: Any, doc: Any) -> None:
        canvas.saveState()
        footer_text = f"{_APP_LABEL}  |  Dibuat: {self._gen_ts}  |  Halaman {doc.page}"
        canvas.setFont("Helvetica", 7)
        canvas.setFillColor(_rl(_HEX_MID_GREY))
        page_width = self._doc.pagesize[0]
        canvas.drawCentredString(page_width / 2, 1.2 * cm, footer_text)
        canvas.restoreState()

    def _section(self, title: str) -> None:
        self._story.append(Paragraph(title, self._styles["section_heading"]))
        self._story.append(HRFlowable(width="100%", thickness=1, color=_rl(_HEX_PRIMARY)))
        self._story.append(Spacer(1, 3 * mm))

    # -----------------------------------------------------------------------
    # Public builder methods
    # -----------------------------------------------------------------------

    def add_header(self) -> "PdfExporter":
        """Add the title band and the filter/fact table.

        Returns:
            ``self`` for method chaining.
        """
        page_width = self._doc.width
        header_table = Table(
            [
                [Paragraph(self._title, self._styles["title"])],
                [Paragraph(f"Dibuat: {self._gen_ts}", self._styles["subtitle"])],
            ],
            colWidths=[page_width],
        )
        header_table.setStyle(
            TableStyle([
                ("BACKGROUND", (0, 0), (0, 0), _rl(_HEX_PRIMARY)),
                ("BACKGROUND", (0, 1), (0, 1), _rl(_HEX_DARK)),
                ("TOPPADDING", (0, 0), (-1, -1), 8),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 8),
                ("LEFTPADDING", (0, 0), (-1, -1), 12),
                ("RIGHTPADDING", (0, 0), (-1, -1), 12),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ])
        )
        self._story.append(header_table)
        self._story.append(Spacer(1, 4 * mm))

        if self._filters:
            filter_table = Table(
                [
                    [
                        Paragraph(f"{k}:", self._styles["filter_key"]),
                        Paragraph(str(v), self._styles["filter_value"]),
                    ]
                    for k, v in self._filters.items()
                ],
                colWidths=[4 * cm, page_width - 4 * cm],
            )
            filter_table.setStyle(
                TableStyle([
                    ("BACKGROUND", (0, 0), (-1, -1), _rl(_HEX_LIGHT_GREY)),
                    ("GRID", (0, 0), (-1, -1), 0.25, _rl(_HEX_MID_GREY)),
                    ("TOPPADDING", (0, 0), (-1, -1), 3),
                    ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
                    ("LEFTPADDING", (0, 0), (-1, -1), 6),
                    ("RIGHTPADDING", (0, 0), (-1, -1), 6),
                ])
            )
            self._story.append(filter_table)
            self._story.append(Spacer(1, 6 * mm))

        return self

    def add_kpi_section(self, kpis: dict[str, Any], title: str = "Ringkasan") -> "PdfExporter":
        """Add one row of labelled value cards.

        Args:
            kpis: Ordered ``{label: value}`` dict.  ``int`` values are printed
                as rupiah, ``float`` with two decimals.
            title: Heading above the cards.
        """
        if not kpis:
            return self
        self._section(title)

        labels_row: list[Any] = []
        values_row: list[Any] = []
        for label, value in kpis.items():
            labels_row.append(Paragraph(label, self._styles["kpi_label"]))
            if isinstance(value, bool):
                text = "Ya" if value else "Tidak"
            elif isinstance(value, int):
                text = format_rupiah(value)
            elif isinstance(value, float):
                text = f"{value:,.2f}"
            else:
                text = str(value)
            values_row.append(Paragraph(text, self._styles["kpi_value"]))

        col_width = self._doc.width / len(kpis)
        kpi_table = Table([labels_row, values_row], colWidths=[col_width] * len(kpis))
        kpi_table.setStyle(
            TableStyle([
                ("BACKGROUND", (0, 0), (-1, 0), _rl("#F0FDFA")),
                ("BACKGROUND", (0, 1), (-1, 1), _rl("#CCFBF1")),
                ("BOX", (0, 0), (-1, -1), 0.5, _rl(_HEX_PRIMARY)),
                ("INNERGRID", (0, 0), (-1, -1), 0.25, _rl(_HEX_MID_GREY)),
                ("TOPPADDING", (0, 0), (-1, -1), 5),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
                ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
            ])
        )
        self._story.append(kpi_table)
        self._story.append(Spacer(1, 6 * mm))
        return self

    def add_table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[Any]],
        col_widths: Sequence[float] | None = None,
        money_cols: set[int] | None = None,
        section_title: str = "Rincian",
    ) -> "PdfExporter":
        """Add a styled data table with alternating row shading.

        Args:
            headers: Column header strings.
            rows: Data rows; inner sequences must match the header length.
            col_widths: Optional explicit column widths in cm.  If ``None``,
                columns share the page width evenly.
            money_cols: Zero-based column indices printed as rupiah and
                right-aligned.
            section_title: Heading displayed above the table.
        """
        self._section(section_title)
        page_width = self._doc.width
        n_cols = len(headers)
        money_cols = money_cols or set()

        if col_widths is not None:
            computed_widths = [w * cm for w in col_widths]
        else:
            computed_widths = [page_width / n_cols] * n_cols

        table_data: list[list[Any]] = [
            [Paragraph(str(h), self._styles["table_header"]) for h in headers]
        ]
        for data_row in rows:
            pdf_row: list[Any] = []
            for ci, cell_val in enumerate(data_row):
                if ci in money_cols:
                    pdf_row.append(Paragraph(format_rupiah(cell_val), self._styles["table_cell_right"]))
                    continue
                if isinstance(cell_val, float):
                    text = f"{cell_val:,.2f}"
                else:
                    text = str(cell_val) if cell_val is not None else ""
                pdf_row.append(Paragraph(text, self._styles["table_cell"]))
            table_data.append(pdf_row)

        rl_table = Table(table_data, colWidths=computed_widths, repeatRows=1)
        style_cmds: list[tuple[Any, ...]] = [
            ("BACKGROUND", (0, 0), (-1, 0), _rl(_HEX_DARK)),
            ("GRID", (0, 0), (-1, -1), 0.25, _rl(_HEX_MID_GREY)),
            ("TOPPADDING", (0, 0), (-1, -1), 3),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ("LEFTPADDING", (0, 0), (-1, -1), 4),
            ("RIGHTPADDING", (0, 0), (-1, -1), 4),
            ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ]
        for ri in range(1, len(table_data)):
            shade = _HEX_LIGHT_GREY if ri % 2 == 0 else _HEX_WHITE
            style_cmds.append(("BACKGROUND", (0, ri), (-1, ri), _rl(shade)))

        rl_table.setStyle(TableStyle(style_cmds))
        self._story.append(rl_table)
        self._story.append(Spacer(1, 4 * mm))
        return self

    def add_paragraph(self, text: str, title: str | None = None) -> "PdfExporter":
        if title:
            self._section(title)
        for chunk in text.split("\n"):
            self._story.append(Paragraph(chunk or "&nbsp;", self._styles["body"]))
        self._story.append(Spacer(1, 4 * mm))
        return self

    def add_signature_block(self, signers: Sequence[tuple[str, str]]) -> "PdfExporter":
        """Add side-by-side signature boxes, one per ``(role, name)`` pair."""
        if not signers:
            return self
        col_width = self._doc.width / len(signers)
        table = Table(
            [
                [Paragraph(role, self._styles["signature"]) for role, _ in signers],
                [Spacer(1, 18 * mm) for _ in signers],
                [Paragraph(f"<u>{name or '....................'}</u>", self._styles["signature"]) for _, name in signers],
            ],
            colWidths=[col_width] * len(signers),
        )
        table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
        self._story.append(Spacer(1, 8 * mm))
        self._story.append(table)
        return self

    def build(self) -> bytes:
        """Build the PDF document and return its bytes.

        After calling ``build`` the exporter instance should not be reused.
        """
        self._doc.build(
            self._story,
            onFirstPage=self._on_page,
            onLaterPages=self._on_page,
        )
        self._buffer.seek(0)
        return self._buffer.read()


def render_npd_document(snapshot: dict[str, Any]) -> bytes:
    """Print one NPD as a PDF.

    Args:
        snapshot: Plain dict with the NPD header fields (``document_number``,
            ``title``, ``jenis``, ``tahun``, ``status``, ``subkegiatan``,
            ``catatan``), ``lines`` (each with ``kode``, ``uraian``,
            ``jumlah``), ``sp2ds`` (each with ``no_sp2d``, ``tgl_sp2d``,
            ``nilai_cair``), ``total``, ``total_cair`` and ``signers``
            (list of ``(role, name)``).

    Returns:
        Raw bytes of the ``.pdf`` file.
    """
    exporter = PdfExporter(
        title=f"Nota Pencairan Dana {snapshot['document_number']}",
        filters={
            "Judul": snapshot.get("title") or "",
            "Jenis": snapshot.get("jenis") or "",
            "Tahun anggaran": str(snapshot.get("tahun") or ""),
            "Sub kegiatan": snapshot.get("subkegiatan") or "",
            "Status": snapshot.get("status") or "",
        },
    )
    exporter.add_header()

    lines = snapshot.get("lines") or []
    exporter.add_table(
        ["No", "Kode rekening", "Uraian", "Jumlah"],
        [
            [i, line.get("kode"), line.get("uraian") or "", line.get("jumlah")]
            for i, line in enumerate(lines, start=1)
        ]
        + [["", "", "Total", snapshot.get("total", 0)]],
        col_widths=[1.2, 4.5, 8.3, 4.0],
        money_cols={3},
        section_title="Rincian belanja",
    )

    sp2ds = snapshot.get("sp2ds") or []
    if sp2ds:
        exporter.add_table(
            ["No SP2D", "Tanggal", "Nilai cair"],
            [[s.get("no_sp2d"), s.get("tgl_sp2d"), s.get("nilai_cair")] for s in sp2ds],
            money_cols={2},
            section_title="Pencairan (SP2D)",
        )
        exporter.add_kpi_section(
            {
                "Total NPD": snapshot.get("total", 0),
                "Total cair": snapshot.get("total_cair", 0),
                "Sisa": snapshot.get("total", 0) - snapshot.get("total_cair", 0),
            }
        )

    if snapshot.get("catatan"):
        exporter.add_paragraph(snapshot["catatan"], title="Catatan")

    exporter.add_signature_block(snapshot.get("signers") or [])
    return exporter.build()
