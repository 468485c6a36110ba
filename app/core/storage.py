"""
Supabase Storage client (REST API).

Uploads go to named buckets under generated paths and come back as public
URLs; deletion is by path. Transient failures (connection errors, 5xx) are
retried with exponential backoff.
"""
import logging
import re
import time
import uuid
from typing import Iterable, List, Optional
from urllib.parse import quote, unquote

import requests

from app.core.config import settings
from app.core.retry import call_with_retry

logger = logging.getLogger(__name__)

PROPERTIES_BUCKET = "properties"
DEVELOPER_FILES_BUCKET = "developer-files"
AVATARS_BUCKET = "avatars"
AGENCY_CONTRACTS_BUCKET = "agency-contracts"

BUCKETS = (PROPERTIES_BUCKET, DEVELOPER_FILES_BUCKET, AVATARS_BUCKET, AGENCY_CONTRACTS_BUCKET)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


class StorageError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class _TransientStorageError(StorageError):
    pass


def safe_filename(filename: Optional[str]) -> str:
    name = _UNSAFE.sub("-", (filename or "file").strip()).strip("-.")
    return name or "file"


def object_path(*parts: str, filename: Optional[str] = None, prefix: Optional[str] = None) -> str:
    """
    Build a storage path like "<owner>/<other>/<prefix>-<millis>-<rand>-<filename>".
    """
    name = safe_filename(filename)
    stamp = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
    leaf = f"{prefix}-{stamp}-{name}" if prefix else f"{stamp}-{name}"
    return "/".join([*(p for p in parts if p), leaf])


class StorageClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        service_key: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip("/")
        self.service_key = service_key or settings.SUPABASE_SERVICE_ROLE_KEY or ""
        self.timeout = timeout or settings.STORAGE_TIMEOUT_SECONDS
        self.max_retries = settings.RETRY_MAX_RETRIES if max_retries is None else max_retries
        self.base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {self.service_key}",
            "apikey": self.service_key,
        })

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{quote(path)}"

    def path_from_url(self, bucket: str, url: str) -> Optional[str]:
        marker = f"/storage/v1/object/public/{bucket}/"
        if marker not in url:
            return None
        return unquote(url.split(marker, 1)[1])

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        def attempt() -> requests.Response:
            try:
                response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.RequestException as e:
                raise _TransientStorageError(f"Storage request failed: {e}")
            if response.status_code >= 500:
                raise _TransientStorageError(
                    f"Storage error {response.status_code}: {response.text[:200]}",
                    status_code=response.status_code,
                )
            return response

        try:
            return call_with_retry(
                attempt,
                max_retries=self.max_retries,
                base_delay=self.base_delay,
                retry_on=(_TransientStorageError,),
            )
        except _TransientStorageError as e:
            raise StorageError(e.message, status_code=e.status_code)

    def upload(self, bucket: str, path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """Upload bytes to bucket/path (no overwrite) and return the public URL."""
        url = f"{self.base_url}/storage/v1/object/{bucket}/{quote(path)}"
        response = self._send(
            "POST",
            url,
            data=data,
            headers={
                "Content-Type": content_type or "application/octet-stream",
                "x-upsert": "false",
            },
        )
        if not response.ok:
            raise StorageError(
                f"Upload to {bucket} failed: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        logger.info("Uploaded %s/%s (%d bytes)", bucket, path, len(data))
        return self.public_url(bucket, path)

    def delete(self, bucket: str, paths: Iterable[str]) -> List[str]:
        paths = [p for p in paths if p]
        if not paths:
            return []
        response = self._send(
            "DELETE",
            f"{self.base_url}/storage/v1/object/{bucket}",
            json={"prefixes": paths},
        )
        if not response.ok:
            raise StorageError(
                f"Delete from {bucket} failed: HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        logger.info("Deleted %d objects from %s", len(paths), bucket)
        return paths

    def close(self) -> None:
        self.session.close()
