"""Workbook service: lay results onto a spreadsheet template and save it."""

import html
import os
from copy import copy
from dataclasses import dataclass
from datetime import datetime, time
from typing import IO, Any

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import Cell
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from openpyxl.worksheet.worksheet import Worksheet
from reportlab.lib import colors
from reportlab.lib.pagesizes import landscape, letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Table as PdfTable, TableStyle

from sqlreporter.errors import UnsupportedFormatError
from sqlreporter.models.report import OutputFormat
from sqlreporter.models.result import CellKind, CellValue, ReportResultSet

# Width is sampled from the first rows only
AUTOFIT_SAMPLE_ROWS = 100
AUTOFIT_MAX_WIDTH = 50


@dataclass(frozen=True, slots=True)
class SheetPlacement:
    """Where results land in the workbook.

    ``sheet_index`` is 0-based; rows and columns are 1-based, as openpyxl
    counts them.
    """

    sheet_index: int = 0
    header_row: int = 1
    first_row: int = 2
    first_col: int = 1
    autofit: bool = True
    as_table: bool = False


def _default_workbook(placement: SheetPlacement) -> Workbook:
    """Built-in template: one sheet with a bold shaded header cell."""
    wb = Workbook()
    ws = wb.active
    if ws is None:
        ws = wb.create_sheet()
    ws.title = "Report"
    header = ws.cell(row=placement.header_row, column=placement.first_col)
    header.font = Font(bold=True)
    header.fill = PatternFill(fill_type="solid", start_color="FFD9D9D9", end_color="FFD9D9D9")
    return wb


def _copy_style(source: Cell, target: Cell) -> None:
    if source.has_style and source is not target:
        target._style = copy(source._style)


def excel_value(cell: CellValue) -> Any:
    """Convert a cell to something openpyxl can store."""
    match cell.kind:
        case CellKind.NULL:
            return None
        case CellKind.BINARY:
            return cell.text
        case CellKind.DATETIME:
            # Excel has no time zones
            if isinstance(cell.value, (datetime, time)) and cell.value.tzinfo is not None:
                return cell.value.isoformat()
            return cell.value
        case CellKind.INTEGER | CellKind.FLOAT | CellKind.BOOLEAN:
            return cell.value
        case _:
            return cell.value if isinstance(cell.value, str) else cell.text


def build_workbook(
    result: ReportResultSet,
    template_path: str | os.PathLike[str] | None = None,
    placement: SheetPlacement = SheetPlacement(),
) -> Workbook:
    """Write the result's headers and rows into a template workbook.

    Header cells take the style of the template's header cell at
    (header_row, first_col); data cells take the style of its first data
    cell at (first_row, first_col).
    """
    if template_path is not None and str(template_path).strip():
        wb = load_workbook(str(template_path).strip())
    else:
        wb = _default_workbook(placement)

    if not 0 <= placement.sheet_index < len(wb.worksheets):
        raise ValueError(
            f"Sheet index {placement.sheet_index} out of range, "
            f"workbook has {len(wb.worksheets)} sheet(s)"
        )
    wb.active = placement.sheet_index
    ws: Worksheet = wb.worksheets[placement.sheet_index]

    header_style = ws.cell(row=placement.header_row, column=placement.first_col)
    data_style = ws.cell(row=placement.first_row, column=placement.first_col)

    # Write headers
    for offset, column in enumerate(result.columns):
        cell = ws.cell(row=placement.header_row, column=placement.first_col + offset)
        _copy_style(header_style, cell)
        cell.value = column.name

    # Write data
    for row_offset, row in enumerate(result.rows):
        row_number = placement.first_row + row_offset
        for offset, value in enumerate(row.values):
            cell = ws.cell(row=row_number, column=placement.first_col + offset)
            _copy_style(data_style, cell)
            cell.value = excel_value(value)

    if placement.as_table:
        _add_table(ws, result, placement)

    if placement.autofit:
        _autofit_columns(ws, result, placement)

    return wb


def _add_table(ws: Worksheet, result: ReportResultSet, placement: SheetPlacement) -> None:
    names = result.column_names
    # Excel tables need a data row and unique headers
    if not result.rows or not names or len(set(names)) != len(names):
        return
    if placement.first_row != placement.header_row + 1:
        return

    first_col = get_column_letter(placement.first_col)
    last_col = get_column_letter(placement.first_col + len(names) - 1)
    last_row = placement.first_row + len(result.rows) - 1
    table_ref = f"{first_col}{placement.header_row}:{last_col}{last_row}"

    table = Table(displayName="Results", ref=table_ref)
    style = TableStyleInfo(
        name="TableStyleMedium2",
        showFirstColumn=False,
        showLastColumn=False,
        showRowStripes=True,
        showColumnStripes=False,
    )
    table.tableStyleInfo = style
    ws.add_table(table)


def _autofit_columns(ws: Worksheet, result: ReportResultSet, placement: SheetPlacement) -> None:
    """Approximate Excel's auto-fit from the header and a sample of rows."""
    for offset, column in enumerate(result.columns):
        max_len = len(str(column.name))
        for row in result.rows[:AUTOFIT_SAMPLE_ROWS]:
            text = row.values[offset].text
            max_len = max(max_len, len(text))
        column_letter = get_column_letter(placement.first_col + offset)
        ws.column_dimensions[column_letter].width = min(max_len + 2, AUTOFIT_MAX_WIDTH)


# ---------------------------------------------------------------------------
# Saving
# ---------------------------------------------------------------------------


def _pdf_text(value: Any) -> str:
    return "" if value is None else str(value)


def sheet_table_data(ws: Worksheet) -> list[list[str]]:
    """Text of the sheet's used range, skipping blank rows."""
    return [
        [_pdf_text(value) for value in row]
        for row in ws.iter_rows(
            min_row=ws.min_row,
            min_col=ws.min_column,
            max_col=ws.max_column,
            values_only=True,
        )
        if any(value is not None for value in row)
    ]


def render_pdf(workbook: Workbook, target: str | os.PathLike[str] | IO[bytes]) -> None:
    """Render the active sheet's used range as a PDF table."""
    ws = workbook.active
    if ws is None:
        ws = workbook.worksheets[0]

    doc = SimpleDocTemplate(target, pagesize=landscape(letter))
    styles = getSampleStyleSheet()
    elements: list[Any] = [Paragraph(html.escape(ws.title), styles["Title"])]

    table_data = sheet_table_data(ws)

    if table_data:
        table = PdfTable(table_data, repeatRows=1)
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.grey),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("FONTSIZE", (0, 0), (-1, 0), 10),
                    ("BOTTOMPADDING", (0, 0), (-1, 0), 8),
                    ("FONTNAME", (0, 1), (-1, -1), "Helvetica"),
                    ("FONTSIZE", (0, 1), (-1, -1), 8),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
                ]
            )
        )
        elements.append(table)
    else:
        elements.append(Paragraph("No data.", styles["Normal"]))

    doc.build(elements)


def save_workbook(
    workbook: Workbook,
    target: str | os.PathLike[str] | IO[bytes],
    fmt: OutputFormat,
) -> None:
    """Save a built workbook as a spreadsheet or render it to PDF."""
    match fmt:
        case OutputFormat.SPREADSHEET:
            workbook.save(target)
        case OutputFormat.PDF:
            render_pdf(workbook, target)
        case _:
            raise UnsupportedFormatError(f"Workbooks cannot be saved as {fmt.value}")
