"""
Tests for XLSX and PDF export.
"""
import io

import pandas as pd
import pytest
from openpyxl import load_workbook

from factories import make_allotment, make_assignment, make_exam, make_invigilator

from dutyflow.export import (
    SHEET_TITLE,
    export_allotment_xlsx,
    export_assignments_xlsx,
    generate_allotment_pdf,
    generate_duty_summary_pdf,
)


@pytest.fixture
def sheet():
    staff = [
        make_invigilator("A", "Professor"),
        make_invigilator("B", "Lecturer"),
        make_invigilator("C & D", "Lecturer"),
    ]
    exams = [
        make_exam("2024-01-01", "Math",    rooms=2, relievers=1),
        make_exam("2024-01-01", "Physics", start="14:00", end="17:00"),
        make_exam("2024-01-02", "R&D <Lab>"),
    ]
    assignments = [
        make_assignment("2024-01-01", "Math",      ["A", "B"]),
        make_assignment("2024-01-01", "Physics",   ["C & D"], time="14:00 - 17:00"),
        make_assignment("2024-01-02", "R&D <Lab>", ["B"]),
    ]
    return make_allotment(staff, exams, assignments)


class TestAllotmentXlsx:

    def _sheet(self, allotment):
        wb = load_workbook(io.BytesIO(export_allotment_xlsx(allotment)))
        return wb["Allotment"]

    def test_title_rows(self, sheet):
        ws = self._sheet(sheet)
        assert ws["A1"].value == sheet.college_name
        assert ws["A2"].value == sheet.exam_title
        assert ws["A3"].value == SHEET_TITLE
        assert "A1:G1" in {str(r) for r in ws.merged_cells.ranges}

    def test_header_and_rows(self, sheet):
        ws = self._sheet(sheet)
        assert [ws.cell(row=5, column=c).value for c in (1, 2, 3)] == ["S.No", "Name", "Designation"]
        assert ws["G5"].value == "Total"
        assert [ws.cell(row=6, column=c).value for c in range(1, 7)] == [1, "A", "Professor", 1, 0, 0]
        assert ws["G6"].value == "=SUM(D6:F6)"

    def test_footer_rows(self, sheet):
        ws = self._sheet(sheet)
        assert ws["B9"].value == "No. of Rooms"
        assert [ws["D9"].value, ws["E9"].value, ws["F9"].value] == [2, 1, 1]
        assert ws["B10"].value == "No. of Relievers"
        assert ws["D10"].value == 1
        assert ws["B11"].value == "Total Duties Allotted"
        assert ws["D11"].value == "=SUM(D6:D8)"
        assert ws["G11"].value == "=SUM(D11:F11)"

    def test_freeze_panes(self, sheet):
        assert self._sheet(sheet).freeze_panes == "D6"

    def test_no_sessions(self, sheet):
        empty = sheet.model_copy(update={"assignments": []})
        ws = self._sheet(empty)
        assert ws["D6"].value == 0


class TestAssignmentsXlsx:

    def test_flat_rows(self, sheet):
        df = pd.read_excel(io.BytesIO(export_assignments_xlsx(sheet.assignments)))
        assert list(df.columns) == ["Date", "Subject", "Time", "Invigilators", "Count"]
        assert df.iloc[0]["Invigilators"] == "A, B"
        assert list(df["Count"]) == [2, 1, 1]


class TestPdf:

    def test_allotment_pdf(self, sheet):
        assert generate_allotment_pdf(sheet).startswith(b"%PDF")

    def test_duty_summary_pdf(self, sheet):
        pdf = generate_duty_summary_pdf(sheet.invigilators[1], sheet.assignments,
                                        sheet.college_name, sheet.exam_title)
        assert pdf.startswith(b"%PDF")

    def test_duty_summary_pdf_without_duties(self, sheet):
        assert generate_duty_summary_pdf(make_invigilator("Z"), sheet.assignments).startswith(b"%PDF")
