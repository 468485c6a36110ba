"""
Bulk project import from spreadsheet rows, gated by import tokens.

A token is a single-use, expiring capacity grant. The import is refused
before any insert when the token is not the caller's, already used, expired,
or too small for the number of rows. Each row is inserted in its own
savepoint, so one bad row does not abort the others; the token is marked used
in the same transaction as the inserted rows.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.audit import log_audit
from app.core.auth import User
from app.core.config import settings
from app.core.spreadsheet import REQUIRED_HEADERS
from app.models.import_token import ImportToken
from app.models.project import Project

logger = logging.getLogger(__name__)


class RowError(ValueError):
    pass


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _split_list(value: Any) -> List[str]:
    return [part.strip() for part in _text(value).split(",") if part.strip()]


LEADING_NUMBER = re.compile(r"\s*(\d[\d,]*)")


def _to_int(value: str) -> Optional[int]:
    # leading whole number only: "650.5" -> 650, "1,200 sqft" -> 1200
    match = LEADING_NUMBER.match(value)
    return int(match.group(1).replace(",", "")) if match else None


def _price(value: Any) -> float:
    try:
        return float(_text(value).replace(",", "") or 0)
    except ValueError:
        return 0.0


def size_bounds(value: Any):
    """"650-1800" -> (650, 1800); "900" -> (900, 900); blank -> (None, None)."""
    text = _text(value)
    if not text:
        return None, None
    parts = text.split("-")
    low = _to_int(parts[0])
    high = _to_int(parts[1]) if len(parts) > 1 and parts[1].strip() else low
    return low, high


def row_to_project(row: Dict[str, Any], index: int, developer_id: str, token_id: str) -> Project:
    """Map one spreadsheet row (1-based index) to a draft project."""
    if any(not _text(row.get(header)) for header in REQUIRED_HEADERS):
        raise RowError(f"Row {index}: Missing required fields ({' or '.join(REQUIRED_HEADERS)})")

    size_min, size_max = size_bounds(row.get("size_range"))
    return Project(
        title=_text(row.get("project_name")),
        description=_text(row.get("description")),
        location=_text(row.get("location")),
        price=_price(row.get("price_start")),
        type="Apartment",
        contract_type="Sale",
        creator_id=developer_id,
        creator_type="developer",
        payment_plan=_text(row.get("payment_plan")) or None,
        handover_date=_text(row.get("handover_date")) or None,
        amenities=_split_list(row.get("amenities")),
        unit_type_names=_split_list(row.get("unit_type")),
        size_range_min=size_min,
        size_range_max=size_max,
        status="draft",
        entry_type="imported",
        import_token_id=token_id,
        images=[],
        videos=[],
    )


def generate_token(db: Session, developer_id: str, project_count: int, valid_hours: Optional[int] = None) -> ImportToken:
    hours = valid_hours or settings.IMPORT_TOKEN_DEFAULT_HOURS
    token = ImportToken(
        developer_id=developer_id,
        project_count=project_count,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=hours),
    )
    db.add(token)
    db.commit()
    db.refresh(token)
    logger.info("Import token %s generated for %s (capacity %d)", token.id, developer_id, project_count)
    return token


def find_usable_token(db: Session, developer_id: str, row_count: int) -> Optional[ImportToken]:
    """The newest unused, unexpired token of this developer that covers row_count."""
    tokens = (
        db.query(ImportToken)
        .filter(ImportToken.developer_id == developer_id)
        .filter(ImportToken.used_at.is_(None))
        .order_by(ImportToken.created_at.desc())
        .all()
    )
    for token in tokens:
        if token.is_usable_for(row_count):
            return token
    return None


def _claim_token(db: Session, token_id: str, developer_id: str, row_count: int) -> ImportToken:
    token = (
        db.query(ImportToken)
        .filter(ImportToken.id == token_id)
        .with_for_update()
        .first()
    )
    if not token or token.developer_id != developer_id:
        raise HTTPException(status_code=404, detail="Import token not found")
    if token.used_at is not None:
        raise HTTPException(status_code=409, detail="Import token has already been used")
    if token.is_expired():
        raise HTTPException(status_code=409, detail="Import token has expired")
    if token.project_count < row_count:
        raise HTTPException(
            status_code=409,
            detail=f"Import token capacity ({token.project_count}) is smaller than the number of rows ({row_count})",
        )
    return token


def import_rows(db: Session, actor: User, token_id: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    if not rows:
        raise HTTPException(status_code=400, detail="No data found in the Excel file")

    token = _claim_token(db, token_id, actor.id, len(rows))

    successful = 0
    failed = 0
    error_messages: List[str] = []

    for i, row in enumerate(rows, start=1):
        try:
            project = row_to_project(row, i, actor.id, token.id)
            with db.begin_nested():
                db.add(project)
            successful += 1
        except RowError as e:
            failed += 1
            error_messages.append(str(e))
        except SQLAlchemyError as e:
            failed += 1
            error_messages.append(f"Row {i}: {e.__class__.__name__}")
            logger.warning("Error importing row %d: %s", i, e)

    token.used_at = datetime.now(timezone.utc)
    log_audit(
        db,
        actor=actor,
        action="consumed",
        entity_type="import_token",
        entity_id=token.id,
        status="used",
        source="import",
        description=f"Imported {successful} of {len(rows)} projects",
        commit=False,
    )
    db.commit()

    logger.info("Import with token %s: %d ok, %d failed", token.id, successful, failed)
    return {
        "total": len(rows),
        "successful": successful,
        "failed": failed,
        "error_messages": error_messages,
        "token_id": token.id,
    }
