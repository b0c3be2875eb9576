"""
export.py — Spreadsheet and PDF export
======================================
  export_allotment_xlsx      Allotment sheet with live SUM formulas (openpyxl)
  export_assignments_xlsx    Flat session list (pandas → openpyxl)
  generate_allotment_pdf     Allotment sheet as a landscape PDF (reportlab)
  generate_duty_summary_pdf  One invigilator's duty letter (reportlab)

Every function returns raw bytes so callers can write a file, attach it to
an email or stream it.
"""

from __future__ import annotations

import io
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from dutyflow.models import Assignment, Examination, Invigilator, SavedAllotment
from dutyflow.reports import allotment_matrix, invigilator_duty_summary

SHEET_TITLE = "Invigilation Duty Allotment Sheet"


def _exam_for(session: Assignment, examinations: list[Examination]) -> Optional[Examination]:
    return next((e for e in examinations if e.matches(session)), None)


# ─── XLSX ────────────────────────────────────────────────────────────────────

def export_allotment_xlsx(allotment: SavedAllotment, sheet_name: str = "Allotment") -> bytes:
    """
    Build the allotment sheet workbook.

    Layout: three merged title rows and a blank row, a header row, one row per
    invigilator (0/1 per session, SUM total), then footer rows for rooms,
    relievers and total duties allotted, each with a SUM grand total.
    """
    matrix   = allotment_matrix(allotment.invigilators, allotment.assignments)
    sessions = matrix.sessions
    headers  = ["S.No", "Name", "Designation",
                *[f"{a.date}\n{a.subject}\n{a.time}" for a in sessions], "Total"]
    ncols      = len(headers)
    first_duty = 4                  # column D
    last_duty  = ncols - 1
    total_col  = ncols

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    bold   = Font(bold=True)
    thin   = Side(style="thin", color="999999")
    border = Border(left=thin, right=thin, top=thin, bottom=thin)
    header_fill = PatternFill(start_color="DDE3F0", end_color="DDE3F0", fill_type="solid")
    centre = Alignment(horizontal="center", vertical="center", wrap_text=True)

    # Title rows
    titles = [allotment.college_name, allotment.exam_title, SHEET_TITLE]
    for r, text in enumerate(titles, start=1):
        ws.cell(row=r, column=1, value=text).font = Font(bold=True, size=14 if r == 1 else 12)
        ws.cell(row=r, column=1).alignment = centre
        ws.merge_cells(start_row=r, start_column=1, end_row=r, end_column=ncols)

    header_row = len(titles) + 2    # blank spacer row before the header
    for c, text in enumerate(headers, start=1):
        cell = ws.cell(row=header_row, column=c, value=text)
        cell.font, cell.fill, cell.alignment, cell.border = bold, header_fill, centre, border

    # One row per invigilator
    first_data = header_row + 1
    for i, row in enumerate(matrix.rows):
        r = first_data + i
        values = [i + 1, row.invigilator.name, row.invigilator.designation, *row.marks]
        for c, value in enumerate(values, start=1):
            cell = ws.cell(row=r, column=c, value=value)
            cell.border = border
            if c != 2:
                cell.alignment = centre
        if sessions:
            ws.cell(row=r, column=total_col,
                    value=f"=SUM({get_column_letter(first_duty)}{r}:{get_column_letter(last_duty)}{r})")
        else:
            ws.cell(row=r, column=total_col, value=0)
        ws.cell(row=r, column=total_col).border = border
        ws.cell(row=r, column=total_col).alignment = centre
    last_data = first_data + len(matrix.rows) - 1

    # Footer rows
    rooms_row     = last_data + 1
    relievers_row = last_data + 2
    allotted_row  = last_data + 3
    ws.cell(row=rooms_row, column=2, value="No. of Rooms").font = bold
    ws.cell(row=relievers_row, column=2, value="No. of Relievers").font = bold
    ws.cell(row=allotted_row, column=2, value="Total Duties Allotted").font = bold

    for j, session in enumerate(sessions):
        col    = first_duty + j
        letter = get_column_letter(col)
        exam   = _exam_for(session, allotment.examinations)
        ws.cell(row=rooms_row, column=col, value=exam.rooms_allotted if exam else 0)
        ws.cell(row=relievers_row, column=col, value=exam.relievers_required if exam else 0)
        if matrix.rows:
            ws.cell(row=allotted_row, column=col,
                    value=f"=SUM({letter}{first_data}:{letter}{last_data})")
        else:
            ws.cell(row=allotted_row, column=col, value=0)

    if sessions:
        start, end = get_column_letter(first_duty), get_column_letter(last_duty)
        for r in (rooms_row, relievers_row, allotted_row):
            ws.cell(row=r, column=total_col, value=f"=SUM({start}{r}:{end}{r})")
    for r in (rooms_row, relievers_row, allotted_row):
        for c in range(1, ncols + 1):
            ws.cell(row=r, column=c).border = border
            ws.cell(row=r, column=c).font = bold

    ws.column_dimensions["A"].width = 6
    ws.column_dimensions["B"].width = 28
    ws.column_dimensions["C"].width = 20
    for c in range(first_duty, ncols + 1):
        ws.column_dimensions[get_column_letter(c)].width = 16
    ws.row_dimensions[header_row].height = 48
    ws.freeze_panes = ws.cell(row=first_data, column=first_duty)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_assignments_xlsx(assignments: list[Assignment], sheet_name: str = "Assignments") -> bytes:
    """One row per session: Date, Subject, Time, Invigilators, Count."""
    df = pd.DataFrame(
        [
            {
                "Date":         a.date,
                "Subject":      a.subject,
                "Time":         a.time,
                "Invigilators": ", ".join(a.invigilators),
                "Count":        len(a.invigilators),
            }
            for a in assignments
        ],
        columns=["Date", "Subject", "Time", "Invigilators", "Count"],
    )
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name=sheet_name)
    return output.getvalue()


# ─── PDF ─────────────────────────────────────────────────────────────────────

def _rl_colour(hex_str: str):
    """Convert a CSS hex colour string to a reportlab Color."""
    from reportlab.lib import colors as rl_colors
    h = hex_str.lstrip("#")
    if len(h) == 3:
        h = "".join(c * 2 for c in h)
    r, g, b = int(h[0:2], 16) / 255, int(h[2:4], 16) / 255, int(h[4:6], 16) / 255
    return rl_colors.Color(r, g, b)


def _title_block(lines: list[str], styles) -> list:
    from reportlab.lib.enums import TA_CENTER
    from reportlab.lib.styles import ParagraphStyle
    from reportlab.platypus import Paragraph

    sizes = [16, 13, 11]
    story = []
    for i, text in enumerate(l for l in lines if l):
        style = ParagraphStyle(
            f"Title{i}", parent=styles["Normal"], alignment=TA_CENTER,
            fontName="Helvetica-Bold", fontSize=sizes[min(i, 2)],
            leading=sizes[min(i, 2)] + 4, spaceAfter=2,
        )
        story.append(Paragraph(escape(text), style))
    return story


def generate_allotment_pdf(allotment: SavedAllotment) -> bytes:
    """Allotment sheet (names × sessions) on landscape A4."""
    from reportlab.lib import colors as rl_colors
    from reportlab.lib.pagesizes import A4, landscape
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import cm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=landscape(A4),
        leftMargin=1.2 * cm, rightMargin=1.2 * cm,
        topMargin=1.2 * cm, bottomMargin=1.2 * cm,
    )
    styles = getSampleStyleSheet()
    NAVY   = _rl_colour("#1e3a8a")
    LIGHT  = _rl_colour("#eef2ff")
    cell   = ParagraphStyle("Cell", parent=styles["Normal"], fontSize=7, leading=9)
    head   = ParagraphStyle("Head", parent=cell, textColor=rl_colors.white, fontName="Helvetica-Bold")

    story = _title_block([allotment.college_name, allotment.exam_title, SHEET_TITLE], styles)
    story.append(Spacer(1, 0.3 * cm))

    matrix = allotment_matrix(allotment.invigilators, allotment.assignments)
    header = ["S.No", "Name", "Designation"] + [
        Paragraph(f"{escape(a.date)}<br/>{escape(a.subject)}<br/>{escape(a.time)}", head) for a in matrix.sessions
    ] + ["Total"]
    data = [header]
    for i, row in enumerate(matrix.rows, start=1):
        data.append([
            str(i),
            Paragraph(escape(row.invigilator.name), cell),
            Paragraph(escape(row.invigilator.designation), cell),
            *[("1" if m else "") for m in row.marks],
            str(row.total),
        ])
    data.append(["", "Total Duties Allotted", "", *[str(t) for t in matrix.column_totals],
                 str(matrix.grand_total)])

    fixed = [1.0 * cm, 4.5 * cm, 3.5 * cm, 1.2 * cm]
    spare = doc.width - sum(fixed)
    per_session = spare / max(len(matrix.sessions), 1)
    col_widths = fixed[:3] + [per_session] * len(matrix.sessions) + fixed[3:]

    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND",    (0, 0), (-1, 0), NAVY),
        ("TEXTCOLOR",     (0, 0), (-1, 0), rl_colors.white),
        ("FONTNAME",      (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE",      (0, 0), (-1, -1), 7),
        ("ALIGN",         (0, 0), (-1, -1), "CENTER"),
        ("ALIGN",         (1, 1), (2, -1), "LEFT"),
        ("VALIGN",        (0, 0), (-1, -1), "MIDDLE"),
        ("GRID",          (0, 0), (-1, -1), 0.4, rl_colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, -2), [rl_colors.white, LIGHT]),
        ("FONTNAME",      (0, -1), (-1, -1), "Helvetica-Bold"),
    ]))
    story.append(table)

    doc.build(story)
    return buf.getvalue()


def generate_duty_summary_pdf(
    invigilator: Invigilator,
    assignments: list[Assignment],
    college_name: str = "",
    exam_title: str = "",
) -> bytes:
    """A one-page duty letter listing every session *invigilator* holds."""
    from reportlab.lib import colors as rl_colors
    from reportlab.lib.pagesizes import A4
    from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
    from reportlab.lib.units import cm
    from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=2 * cm, rightMargin=2 * cm,
        topMargin=2 * cm, bottomMargin=2 * cm,
    )
    styles = getSampleStyleSheet()
    NAVY   = _rl_colour("#1e3a8a")
    MUTED  = _rl_colour("#6b7280")
    body   = ParagraphStyle("Body", parent=styles["Normal"], fontSize=10, leading=14)
    small  = ParagraphStyle("Small", parent=styles["Normal"], fontSize=8, leading=11, textColor=MUTED)

    story = _title_block([college_name, exam_title, "Invigilation Duty"], styles)
    story.append(Spacer(1, 0.5 * cm))
    story.append(Paragraph(f"<b>Name:</b> {escape(invigilator.name)}", body))
    if invigilator.designation:
        story.append(Paragraph(f"<b>Designation:</b> {escape(invigilator.designation)}", body))
    story.append(Spacer(1, 0.4 * cm))

    duties = invigilator_duty_summary(invigilator, assignments)
    if duties:
        data = [["#", "Date", "Day", "Subject", "Time"]]
        for i, d in enumerate(duties, start=1):
            data.append([str(i), d.date, d.day, Paragraph(escape(d.subject), body), d.time])
        table = Table(data, colWidths=[1 * cm, 3 * cm, 1.6 * cm, 6.4 * cm, 5 * cm], repeatRows=1)
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), NAVY),
            ("TEXTCOLOR",  (0, 0), (-1, 0), rl_colors.white),
            ("FONTNAME",   (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE",   (0, 0), (-1, -1), 9),
            ("VALIGN",     (0, 0), (-1, -1), "MIDDLE"),
            ("GRID",       (0, 0), (-1, -1), 0.4, rl_colors.grey),
        ]))
        story.append(table)
        story.append(Spacer(1, 0.3 * cm))
        story.append(Paragraph(f"<b>Total duties:</b> {len(duties)}", body))
    else:
        story.append(Paragraph("No invigilation duties have been allotted.", body))

    story.append(Spacer(1, 1 * cm))
    story.append(Paragraph(f"Generated on {date.today().strftime('%B %d, %Y')}", small))

    doc.build(story)
    return buf.getvalue()
