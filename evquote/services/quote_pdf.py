"""Quote PDF drawn directly with reportlab (text and lines as vectors), not a rasterised screenshot of the page."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from evquote.constants import DOC_PRICE_LIST, DOC_QUOTATION
from evquote.services.logo import decode_data_uri
from evquote.services.render import COL_INDEX, COL_QTY, NUMERIC_COLUMNS, RenderedDocument

logger = logging.getLogger(__name__)

MARGIN = 15 * mm
CJK_FONT = "STSong-Light"
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
BODY_SIZE = 9
LEADING = 11
FOOTER_HEIGHT = 38 * mm

# column share of the usable width
WIDTHS: Dict[str, Dict[str, float]] = {
    DOC_QUOTATION: {
        "index": 0.05, "spec": 0.27, "details": 0.36,
        "unit_price": 0.11, "quantity": 0.08, "line_total": 0.13,
    },
    DOC_PRICE_LIST: {
        "index": 0.05, "spec": 0.27, "details": 0.33,
        "colors": 0.18, "unit_price": 0.17,
    },
}

_cjk_registered = False


class ExportError(RuntimeError):
    pass


@dataclass
class PdfExport:
    data: Optional[bytes]
    filename: str
    warning: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.data is not None


def _register_fonts() -> None:
    global _cjk_registered
    if not _cjk_registered:
        pdfmetrics.registerFont(UnicodeCIDFont(CJK_FONT))
        _cjk_registered = True


def _font(text: str, bold: bool = False) -> str:
    try:
        text.encode("latin-1")
    except UnicodeEncodeError:
        return CJK_FONT
    return FONT_BOLD if bold else FONT


def _wrap(text: str, size: float, width: float, bold: bool = False) -> List[str]:
    """Greedy wrap; breaks inside words too, CJK text has no spaces."""
    font = _font(text, bold)
    out: List[str] = []
    cur = ""
    for ch in text:
        if pdfmetrics.stringWidth(cur + ch, font, size) <= width or not cur:
            cur += ch
        else:
            out.append(cur.rstrip())
            cur = ch.lstrip()
    if cur or not out:
        out.append(cur)
    return out


def _draw(c: canvas.Canvas, x: float, y: float, text: str, size: float, bold: bool = False, align: str = "left") -> None:
    c.setFont(_font(text, bold), size)
    if align == "right":
        c.drawRightString(x, y, text)
    elif align == "center":
        c.drawCentredString(x, y, text)
    else:
        c.drawString(x, y, text)


class _QuoteCanvas:
    def __init__(self, doc: RenderedDocument, buf: io.BytesIO):
        self.doc = doc
        self.c = canvas.Canvas(buf, pagesize=A4)
        self.w, self.h = A4
        self.left = MARGIN
        self.right = self.w - MARGIN
        self.usable = self.right - self.left
        shares = WIDTHS[doc.doc_type]
        self.cols: List[Tuple[str, float, float]] = []  # key, x, width
        x = self.left
        for key in doc.column_keys:
            cw = shares[key] * self.usable
            self.cols.append((key, x, cw))
            x += cw
        self.y = self.h - MARGIN

    def header(self) -> None:
        c, doc = self.c, self.doc
        top = self.h - MARGIN
        text_x = self.left
        if doc.logo:
            try:
                img = ImageReader(io.BytesIO(decode_data_uri(doc.logo)))
                c.drawImage(img, self.left, top - 16 * mm, width=40 * mm, height=16 * mm,
                            preserveAspectRatio=True, anchor="w", mask="auto")
                text_x = self.left + 44 * mm
            except Exception as e:
                # a broken logo should not cost the whole document
                logger.warning("logo skipped: %s", e)

        _draw(c, text_x, top - 7 * mm, doc.company, 14, bold=True)
        _draw(c, text_x, top - 13 * mm, doc.date_label, 9)
        _draw(c, self.right, top - 7 * mm, doc.title, 16, bold=True, align="right")
        _draw(c, self.right, top - 13 * mm, doc.reference, 9, align="right")

        self.y = top - 20 * mm
        c.setLineWidth(1.2)
        c.line(self.left, self.y, self.right, self.y)
        self.y -= 8 * mm

    def table_header(self) -> None:
        c = self.c
        for (key, x, cw), col in zip(self.cols, self.doc.columns):
            if key in NUMERIC_COLUMNS and key != COL_QTY:
                _draw(c, x + cw - 2, self.y, col.label, BODY_SIZE, bold=True, align="right")
            elif key == COL_QTY:
                _draw(c, x + cw / 2, self.y, col.label, BODY_SIZE, bold=True, align="center")
            else:
                _draw(c, x + 2, self.y, col.label, BODY_SIZE, bold=True)
        self.y -= 4
        c.setLineWidth(1)
        c.line(self.left, self.y, self.right, self.y)
        self.y -= LEADING

    def _cell_lines(self, row, key: str, cw: float) -> List[str]:
        if key in NUMERIC_COLUMNS or key == COL_INDEX:
            return [row.display(key)]
        parts = {"spec": row.spec, "details": row.details}.get(key, (row.display(key),))
        out: List[str] = []
        for p in parts:
            out.extend(_wrap(p, BODY_SIZE, cw - 4))
        return out

    def new_page(self) -> None:
        self.c.showPage()
        self.y = self.h - MARGIN
        self.table_header()

    def rows(self) -> None:
        c = self.c
        for row in self.doc.rows:
            cells = [(key, x, cw, self._cell_lines(row, key, cw)) for key, x, cw in self.cols]
            height = max(len(lines) for *_, lines in cells) * LEADING
            if self.y - height < MARGIN:
                self.new_page()
            for key, x, cw, lines in cells:
                ly = self.y
                for n, text in enumerate(lines):
                    bold = key == "spec" and n == 0
                    if key in NUMERIC_COLUMNS and key != COL_QTY:
                        _draw(c, x + cw - 2, ly, text, BODY_SIZE, bold=bold, align="right")
                    elif key == COL_QTY:
                        _draw(c, x + cw / 2, ly, text, BODY_SIZE, align="center")
                    else:
                        _draw(c, x + 2, ly, text, BODY_SIZE, bold=bold)
                    ly -= LEADING
            self.y -= height
            c.setLineWidth(0.3)
            c.line(self.left, self.y + LEADING - 3, self.right, self.y + LEADING - 3)
            self.y -= 3

    def grand_total(self) -> None:
        doc = self.doc
        if doc.grand_total is None:
            return
        if self.y - 2 * LEADING < MARGIN:
            self.new_page()
        c = self.c
        c.setLineWidth(1.2)
        c.line(self.left, self.y + LEADING - 3, self.right, self.y + LEADING - 3)
        self.y -= 6
        _draw(c, self.right - 32 * mm, self.y, doc.labels.get("grand_total", ""), 10, bold=True, align="right")
        _draw(c, self.right - 2, self.y, doc.grand_total_display(), 12, bold=True, align="right")
        self.y -= 2 * LEADING

    def footer(self) -> None:
        doc, c = self.doc, self.c
        if self.y - FOOTER_HEIGHT < MARGIN:
            c.showPage()
        top = MARGIN + FOOTER_HEIGHT
        c.setLineWidth(1)
        c.line(self.left, top, self.right, top)

        y = top - 6 * mm
        _draw(c, self.left, y, doc.terms_title, 8, bold=True)
        for term in doc.terms:
            y -= 10
            _draw(c, self.left + 4, y, f"- {term}", 7.5)

        sig_x = self.right - 60 * mm
        _draw(c, sig_x, top - 6 * mm, doc.signature_label, 8, bold=True)
        c.line(sig_x, MARGIN + 10 * mm, self.right, MARGIN + 10 * mm)
        _draw(c, sig_x, MARGIN + 5 * mm, doc.company, 8)

    def build(self) -> None:
        self.header()
        self.table_header()
        self.rows()
        self.grand_total()
        self.footer()
        self.c.save()


def build_quote_pdf(doc: RenderedDocument) -> bytes:
    """A4 portrait, 15 mm margins. Long tables continue on extra pages."""
    try:
        _register_fonts()
        buf = io.BytesIO()
        _QuoteCanvas(doc, buf).build()
    except Exception as e:
        raise ExportError(f"could not build PDF: {e}") from e
    return buf.getvalue()


def pdf_filename(doc: RenderedDocument, now: Optional[datetime] = None) -> str:
    ts = int((now or datetime.now()).timestamp() * 1000)
    kind = "Quote" if doc.doc_type == DOC_QUOTATION else "PriceList"
    return f"evquote_{kind}_{ts}.pdf"


def export_pdf(doc: RenderedDocument) -> PdfExport:
    """Never raises: a failed build comes back with data=None and a warning for the print fallback."""
    filename = pdf_filename(doc)
    try:
        return PdfExport(data=build_quote_pdf(doc), filename=filename)
    except ExportError as e:
        logger.warning("PDF export failed, falling back to print: %s", e, exc_info=True)
        return PdfExport(
            data=None,
            filename=filename,
            warning="PDF generation failed, falling back to print. / PDF 生成失败，已切换为打印。",
        )
