import io
from typing import Iterable, Mapping

from openpyxl import Workbook
from openpyxl.styles import Font

from .grading import calculate_grade

HEADERS = [
    "Student ID",
    "Student Name",
    "Center",
    "Paper",
    "Paper Type",
    "Score",
    "Percentage",
    "Grade",
    "Certificate No",
]


def results_workbook(rows: Iterable[Mapping]) -> bytes:
    """Build the results sheet; each row carries the application plus joined names."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Results"
    ws.append(HEADERS)
    for cell in ws[1]:
        cell.font = Font(bold=True)

    for row in rows:
        percentage = row.get("percentage") or 0
        ws.append(
            [
                row.get("student_id_number") or "",
                row.get("student_name") or "",
                row.get("center_id") or "",
                row.get("paper_name") or "",
                row.get("paper_type") or "",
                row.get("score") or 0,
                percentage,
                calculate_grade(percentage),
                row.get("certificate_no") or "",
            ]
        )

    for column in ws.columns:
        width = max(len(str(c.value or "")) for c in column)
        ws.column_dimensions[column[0].column_letter].width = min(width + 2, 40)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
