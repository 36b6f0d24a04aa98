"""
Exportación del reporte a CSV, XLSX y PDF.

Los tres formatos reciben las mismas filas (ya filtradas y ordenadas) y
las formatean igual con export_row().
"""
import csv
import io
from datetime import date, datetime

from openpyxl import Workbook
from openpyxl.styles import Font
from reportlab.lib.pagesizes import landscape, legal
from reportlab.pdfgen import canvas

from caltrack.schemas.report import ReportRow

EXPORT_HEADERS = [
    "Recall Number",
    "Description",
    "Serial Number",
    "Model",
    "Manufacturer",
    "Status",
    "Date In",
    "Due Date",
    "Technician",
    "Location",
    "Received By",
    "Date Out",
    "Released To",
    "Cycle Time (h)",
    "Notes",
]

EXPORT_FORMATS = {
    "csv": "text/csv",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "pdf": "application/pdf",
}


def _fmt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    return str(value)


def export_row(row: ReportRow) -> list[str]:
    outgoing = row.outgoing
    return [
        _fmt(row.recall_number),
        _fmt(row.equipment_description),
        _fmt(row.equipment_serial),
        _fmt(row.equipment_model),
        _fmt(row.equipment_manufacturer),
        row.status_label,
        _fmt(row.date_in),
        _fmt(row.due_date),
        row.technician.name if row.technician else "",
        row.location.name if row.location else "",
        row.employee_in.name if row.employee_in else "",
        _fmt(outgoing.date_out) if outgoing else "",
        outgoing.employee_out.name if outgoing and outgoing.employee_out else "",
        _fmt(outgoing.cycle_time) if outgoing else "",
        _fmt(row.notes),
    ]


def render_csv(rows: list[ReportRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_HEADERS)
    for row in rows:
        writer.writerow(export_row(row))
    return buffer.getvalue()


def render_xlsx(rows: list[ReportRow]) -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Tracking Report"
    sheet.append(EXPORT_HEADERS)
    for cell in sheet[1]:
        cell.font = Font(bold=True)
    for row in rows:
        sheet.append(export_row(row))

    # Ajuste simple del ancho de columnas
    for column in sheet.columns:
        width = max(len(str(cell.value or "")) for cell in column)
        sheet.column_dimensions[column[0].column_letter].width = min(width + 2, 50)

    sheet.page_setup.orientation = "landscape"
    sheet.page_setup.paperSize = sheet.PAPERSIZE_LEGAL
    sheet.page_setup.fitToWidth = 1
    sheet.page_setup.fitToHeight = 0

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def render_pdf(rows: list[ReportRow], title: str = "Tracking Report") -> bytes:
    """
    PDF horizontal tamaño legal, una línea por registro.
    """
    buffer = io.BytesIO()
    page_width, page_height = landscape(legal)
    c = canvas.Canvas(buffer, pagesize=(page_width, page_height))

    margin = 36
    line_height = 12
    column_width = (page_width - 2 * margin) / len(EXPORT_HEADERS)

    def draw_line(values: list[str], y: float, bold: bool = False) -> None:
        c.setFont("Helvetica-Bold" if bold else "Helvetica", 6)
        for index, value in enumerate(values):
            # Recortar para que no se encime con la siguiente columna
            c.drawString(margin + index * column_width, y, value[:28])

    def new_page() -> float:
        c.setFont("Helvetica-Bold", 12)
        c.drawString(margin, page_height - margin, title)
        y = page_height - margin - 2 * line_height
        draw_line(EXPORT_HEADERS, y, bold=True)
        return y - line_height

    y = new_page()
    for row in rows:
        if y < margin:
            c.showPage()
            y = new_page()
        draw_line(export_row(row), y)
        y -= line_height

    c.save()
    return buffer.getvalue()


def render_export(rows: list[ReportRow], fmt: str) -> bytes:
    if fmt == "csv":
        return render_csv(rows).encode("utf-8")
    if fmt == "xlsx":
        return render_xlsx(rows)
    if fmt == "pdf":
        return render_pdf(rows)
    raise ValueError(f"Formato de exportación no soportado: {fmt}")
