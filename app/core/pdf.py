from typing import Iterable, Optional, Tuple

from fpdf import FPDF


def _latin1(text: Optional[str]) -> str:
    # core PDF fonts only cover latin-1
    return (text or "").encode("latin-1", errors="replace").decode("latin-1")


def unit_type_sheet(
    project_title: str,
    location: str,
    unit_name: str,
    rows: Iterable[Tuple[str, Optional[str]]],
    notes: Optional[str] = None,
) -> bytes:
    """Render a one-page unit type sheet (project header, key facts, notes)."""
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    pdf.set_font("Helvetica", style="B", size=18)
    pdf.multi_cell(0, 9, _latin1(project_title))
    pdf.set_font("Helvetica", size=11)
    pdf.multi_cell(0, 6, _latin1(location))
    pdf.ln(4)

    pdf.set_font("Helvetica", style="B", size=14)
    pdf.multi_cell(0, 8, _latin1(unit_name))
    pdf.ln(2)

    pdf.set_font("Helvetica", size=11)
    for label, value in rows:
        pdf.cell(55, 7, _latin1(label), border=1)
        pdf.cell(0, 7, _latin1(value if value not in (None, "") else "-"), border=1, new_x="LMARGIN", new_y="NEXT")

    if notes:
        pdf.ln(4)
        pdf.set_font("Helvetica", style="B", size=12)
        pdf.cell(0, 7, "Notes", new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", size=11)
        pdf.multi_cell(0, 6, _latin1(notes))

    return bytes(pdf.output())
