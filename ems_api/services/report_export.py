# ems_api/services/report_export.py
"""
Renderers for the daily attendance series.

All three consume the same list of series dicts (the "series" of the JSON
report) and share the column order in FIELDS. Each formatter exposes
``stream(rows)`` which returns an iterator of bytes. CSV is produced line by
line; the workbook and the PDF are rendered when ``stream`` is called and
then emitted in chunks, so a rendering error surfaces before the response
starts.
"""
from __future__ import annotations

import csv
import io
import logging
from typing import Iterable, Iterator, List

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ems_api.common.errors import ExportFormatError

log = logging.getLogger(__name__)

FIELDS = ("date", "Present", "Absent", "Late", "Total")
TITLES = ("Date", "Present", "Absent", "Late", "Total")

REPORT_TITLE = "Attendance Report"
DEFAULT_CHUNK_SIZE = 64 * 1024


def row_values(row: dict) -> list:
    return [row.get(f, 0 if f != "date" else "") for f in FIELDS]


def _chunks(buf: bytes, size: int) -> Iterator[bytes]:
    for i in range(0, len(buf), size):
        yield buf[i:i + size]


class CsvFormatter:
    name = "csv"
    extension = "csv"
    mimetype = "text/csv"

    def stream(self, rows: Iterable[dict], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        out = io.StringIO()
        writer = csv.writer(out, lineterminator="\n")

        def _line(values):
            out.seek(0)
            out.truncate(0)
            writer.writerow(values)
            return out.getvalue().encode("utf-8")

        yield _line(FIELDS)
        for row in rows:
            yield _line(row_values(row))


class ExcelFormatter:
    name = "excel"
    extension = "xlsx"
    mimetype = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    COLUMN_WIDTHS = {"A": 15, "B": 10, "C": 10, "D": 10, "E": 10}

    def build(self, rows: Iterable[dict]) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = REPORT_TITLE
        ws.append(list(TITLES))
        for cell in ws[1]:
            cell.font = Font(bold=True)
        for row in rows:
            ws.append(row_values(row))
        for col, width in self.COLUMN_WIDTHS.items():
            ws.column_dimensions[col].width = width

        output = io.BytesIO()
        wb.save(output)
        return output.getvalue()

    def stream(self, rows: Iterable[dict], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        # not a generator: the document is rendered here, before any byte is sent
        return _chunks(self.build(rows), chunk_size)


class PdfFormatter:
    """Title, header line, then one fixed-width text line per day."""

    name = "pdf"
    extension = "pdf"
    mimetype = "application/pdf"

    FONT = "Courier"
    FONT_SIZE = 12
    TITLE_FONT_SIZE = 18
    LINE_HEIGHT = 16
    MARGIN = 20 * mm
    WIDTHS = (12, 9, 9, 7, 7)

    def format_line(self, values) -> str:
        return "".join(str(v).ljust(w) for v, w in zip(values, self.WIDTHS)).rstrip()

    def lines(self, rows: Iterable[dict]) -> Iterator[str]:
        yield self.format_line(TITLES)
        for row in rows:
            yield self.format_line(row_values(row))

    def build(self, rows: Iterable[dict]) -> bytes:
        output = io.BytesIO()
        page_w, page_h = A4
        c = canvas.Canvas(output, pagesize=A4)
        c.setTitle(REPORT_TITLE)

        def _title():
            c.setFont(self.FONT, self.TITLE_FONT_SIZE)
            c.drawCentredString(page_w / 2, page_h - self.MARGIN, REPORT_TITLE)
            c.setFont(self.FONT, self.FONT_SIZE)
            return page_h - self.MARGIN - 2 * self.LINE_HEIGHT

        y = _title()
        for line in self.lines(rows):
            if y < self.MARGIN:
                c.showPage()
                y = _title()
            c.drawString(self.MARGIN, y, line)
            y -= self.LINE_HEIGHT

        c.showPage()
        c.save()
        return output.getvalue()

    def stream(self, rows: Iterable[dict], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        # not a generator: the document is rendered here, before any byte is sent
        return _chunks(self.build(rows), chunk_size)


_FORMATTERS = {
    "csv": CsvFormatter,
    "excel": ExcelFormatter,
    "pdf": PdfFormatter,
}

SUPPORTED_FORMATS: List[str] = list(_FORMATTERS)


def get_formatter(fmt: str):
    cls = _FORMATTERS.get((fmt or "").strip().lower())
    if cls is None:
        raise ExportFormatError(f"Invalid format. Use {' | '.join(SUPPORTED_FORMATS)}")
    return cls()


def export_filename(formatter, query) -> str:
    return f"attendance_report_{query.start_label}_to_{query.end_label}.{formatter.extension}"
