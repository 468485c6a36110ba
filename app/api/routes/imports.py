"""
Bulk project import.

- GET  /import-tokens       the developer's tokens, newest first
- POST /import-tokens       generate a token (capacity + validity)
- GET  /imports/template    xlsx with the expected header row
- POST /imports/preview     row count, first rows, a token that would cover them
- POST /imports             run the import with a token
"""
from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from app.api.deps import developer_statistics_key, get_db, get_query_cache, run_in_session
from app.core.audit import log_audit
from app.core.auth import User, require_role
from app.core.cache import QueryCache
from app.core.spreadsheet import build_template, read_rows
from app.core.uploads import read_spreadsheet
from app.models.import_token import ImportToken
from app.schemas.import_token import (
    ImportPreviewOut,
    ImportResultOut,
    ImportTokenCreate,
    ImportTokenOut,
)
from app.services.importer import find_usable_token, generate_token, import_rows

router = APIRouter(tags=["imports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PREVIEW_ROWS = 5


def _token_out(token: ImportToken) -> ImportTokenOut:
    return ImportTokenOut(
        id=token.id,
        developer_id=token.developer_id,
        project_count=token.project_count,
        expires_at=token.expires_at,
        used_at=token.used_at,
        created_at=token.created_at,
        is_expired=token.is_expired(),
    )


@router.get("/import-tokens", response_model=List[ImportTokenOut])
def list_import_tokens(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("developer")),
):
    tokens = (
        db.query(ImportToken)
        .filter(ImportToken.developer_id == current_user.id)
        .order_by(ImportToken.created_at.desc())
        .all()
    )
    return [_token_out(t) for t in tokens]


@router.post("/import-tokens", response_model=ImportTokenOut, status_code=201)
def create_import_token(
    payload: ImportTokenCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role("developer")),
):
    token = generate_token(db, current_user.id, payload.project_count, payload.valid_hours)
    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="import_token",
        entity_id=token.id,
        description=f"Import token for {payload.project_count} projects",
    )
    return _token_out(token)


@router.get("/imports/template")
def download_template(current_user: User = Depends(require_role("developer"))):
    return Response(
        content=build_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="project_import_template.xlsx"'},
    )


async def _rows_from_upload(file: UploadFile):
    data = await read_spreadsheet(file)
    rows = await run_in_threadpool(read_rows, data, file.filename or "")
    if not rows:
        raise HTTPException(status_code=400, detail="No data found in the Excel file")
    return rows


@router.post("/imports/preview", response_model=ImportPreviewOut)
async def preview_import(
    file: UploadFile = File(...),
    current_user: User = Depends(require_role("developer")),
):
    rows = await _rows_from_upload(file)
    token = await run_in_session(find_usable_token, current_user.id, len(rows))

    if token:
        message = f"Found {len(rows)} projects in file"
    else:
        message = (
            f"Found {len(rows)} projects in file. Generate an import token "
            f"for at least {len(rows)} projects to continue."
        )
    return ImportPreviewOut(
        total=len(rows),
        preview=rows[:PREVIEW_ROWS],
        suggested_token_id=token.id if token else None,
        message=message,
    )


@router.post("/imports", response_model=ImportResultOut)
async def run_import(
    token_id: str = Form(...),
    file: UploadFile = File(...),
    current_user: User = Depends(require_role("developer")),
    cache: QueryCache = Depends(get_query_cache),
):
    rows = await _rows_from_upload(file)
    result = await run_in_session(import_rows, current_user, token_id, rows)
    cache.invalidate(developer_statistics_key(current_user.id))
    return result
