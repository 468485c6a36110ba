"""
Spreadsheet reading and the project import template.

Rows are read from the first worksheet into dicts keyed by the header row;
empty cells come back as "".
"""
import logging
from datetime import datetime
from io import BytesIO
from typing import Any, Dict, List

import pandas as pd
from fastapi import HTTPException

logger = logging.getLogger(__name__)

IMPORT_HEADERS = [
    "project_name",
    "description",
    "location",
    "price_start",
    "payment_plan",
    "handover_date",
    "amenities",
    "unit_type",
    "size_range",
]

REQUIRED_HEADERS = ("project_name", "location")

TEMPLATE_EXAMPLE = {
    "project_name": "Marina Heights",
    "description": "Waterfront residences with private beach access",
    "location": "Dubai Marina, Dubai",
    "price_start": 1250000,
    "payment_plan": "60/40",
    "handover_date": "2027-12-31",
    "amenities": "Pool, Gym, Concierge",
    "unit_type": "1BR, 2BR, 3BR",
    "size_range": "650-1800",
}


def _clean(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.date().isoformat()
    return value


def read_rows(data: bytes, filename: str = "") -> List[Dict[str, Any]]:
    """Parse the first sheet of an .xlsx/.xls workbook into row dicts."""
    engine = "xlrd" if filename.lower().endswith(".xls") else "openpyxl"
    try:
        frame = pd.read_excel(BytesIO(data), sheet_name=0, dtype=object, engine=engine)
    except Exception as e:
        logger.warning("Failed to parse spreadsheet %s: %s", filename, e)
        raise HTTPException(
            status_code=400,
            detail="Failed to parse Excel file. Please make sure it's a valid Excel document.",
        )

    frame = frame.dropna(how="all")
    frame.columns = [str(c).strip() for c in frame.columns]
    frame = frame.astype(object).where(frame.notna(), "")

    rows = []
    for record in frame.to_dict(orient="records"):
        rows.append({k: _clean(v) for k, v in record.items()})
    return rows


def build_template() -> bytes:
    """The import template: header row plus one example project."""
    frame = pd.DataFrame([TEMPLATE_EXAMPLE], columns=IMPORT_HEADERS)
    out = BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False, sheet_name="Projects")
    return out.getvalue()
