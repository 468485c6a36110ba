"""
Validation for uploaded files: type, size and whether the content actually
opens. Everything here runs before any storage or database call.
"""
import mimetypes
from io import BytesIO
from pathlib import PurePath
from typing import Iterable, Optional

from fastapi import HTTPException, UploadFile
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from app.core.config import settings

SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}
SPREADSHEET_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/octet-stream",
}

CONTRACT_EXTENSIONS = {".pdf", ".doc", ".docx"}

IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


def file_extension(filename: Optional[str]) -> str:
    return PurePath(filename or "").suffix.lower()


def _check_extension(filename: Optional[str], allowed: Iterable[str], label: str) -> str:
    ext = file_extension(filename)
    allowed = sorted(allowed)
    if ext not in allowed:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file format for {label}. Allowed: {', '.join(allowed)}",
        )
    return ext


def _check_size(data: bytes, max_mb: int, label: str) -> None:
    size_mb = len(data) / (1024 * 1024)
    if size_mb > max_mb:
        raise HTTPException(
            status_code=413,
            detail=f"{label} too large: {size_mb:.1f} MB. Max size: {max_mb} MB.",
        )
    if not data:
        raise HTTPException(status_code=400, detail=f"{label} is empty.")


async def read_spreadsheet(file: UploadFile) -> bytes:
    """Accept .xlsx / .xls up to IMPORT_MAX_FILE_MB."""
    _check_extension(file.filename, SPREADSHEET_EXTENSIONS, "spreadsheet")
    content_type = file.content_type or ""
    if content_type and content_type not in SPREADSHEET_TYPES:
        raise HTTPException(status_code=400, detail="Please upload an Excel file (.xlsx or .xls)")
    data = await file.read()
    _check_size(data, settings.IMPORT_MAX_FILE_MB, "Spreadsheet")
    return data


async def read_contract_document(file: UploadFile, label: str) -> bytes:
    """Accept PDF / DOC / DOCX up to CONTRACT_MAX_FILE_MB; PDFs must parse."""
    ext = _check_extension(file.filename, CONTRACT_EXTENSIONS, label)
    data = await file.read()
    _check_size(data, settings.CONTRACT_MAX_FILE_MB, label)
    if ext == ".pdf":
        try:
            reader = PdfReader(BytesIO(data))
            page_count = len(reader.pages)
        except (PdfReadError, ValueError) as e:
            raise HTTPException(status_code=400, detail=f"{label} is not a readable PDF: {e}")
        if page_count == 0:
            raise HTTPException(status_code=400, detail=f"{label} has no pages.")
    return data


async def read_image(file: UploadFile) -> bytes:
    """Accept jpeg/png/webp/gif up to IMAGE_MAX_FILE_MB that actually decode."""
    content_type = file.content_type or mimetypes.guess_type(file.filename or "")[0] or ""
    if content_type not in IMAGE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {content_type or 'unknown'}. Allowed: {', '.join(sorted(IMAGE_TYPES))}",
        )
    data = await file.read()
    _check_size(data, settings.IMAGE_MAX_FILE_MB, "Image")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise HTTPException(status_code=400, detail=f"Image could not be decoded: {e}")
    return data


def guess_content_type(filename: Optional[str], fallback: Optional[str] = None) -> str:
    return fallback or mimetypes.guess_type(filename or "")[0] or "application/octet-stream"
