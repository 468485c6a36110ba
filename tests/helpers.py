from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
from PIL import Image

from app.core.auth import User
from app.core.pdf import unit_type_sheet
from app.core.storage import StorageClient, StorageError
from app.models.profile import Profile


class FakeStorage(StorageClient):
    """In-memory bucket store with the real URL scheme."""

    def __init__(self):
        self.base_url = "http://supabase.test"
        self.objects: Dict[str, Dict[str, bytes]] = {}
        self.fail_after: Optional[int] = None
        self.uploads = 0

    def upload(self, bucket, path, data, content_type=None):
        if self.fail_after is not None and self.uploads >= self.fail_after:
            raise StorageError("bucket unavailable", status_code=503)
        self.uploads += 1
        self.objects.setdefault(bucket, {})[path] = data
        return self.public_url(bucket, path)

    def delete(self, bucket, paths):
        paths = list(paths)
        for p in paths:
            self.objects.get(bucket, {}).pop(p, None)
        return paths

    def close(self):
        pass

    def paths(self, bucket) -> List[str]:
        return sorted(self.objects.get(bucket, {}))


class AuthState:
    user: Optional[User] = None

    def login(self, user_id: str, role: str, email: Optional[str] = None) -> User:
        self.user = User(user_id=user_id, email=email or f"{user_id}@example.com", role=role)
        return self.user

    def logout(self) -> None:
        self.user = None


def make_profile(db, user_id: str, role: str, full_name: Optional[str] = None,
                 agency_id: Optional[str] = None) -> Profile:
    profile = Profile(
        id=user_id,
        email=f"{user_id}@example.com",
        full_name=full_name,
        role=role,
        agency_id=agency_id,
    )
    db.add(profile)
    db.commit()
    return profile


def pdf_bytes(title: str = "Contract") -> bytes:
    return unit_type_sheet(title, "Dubai", "Signed copy", [("Party", "Agency")])


def png_bytes(color=(200, 30, 30)) -> bytes:
    out = BytesIO()
    Image.new("RGB", (8, 8), color).save(out, format="PNG")
    return out.getvalue()


def xlsx_bytes(rows, columns=None) -> bytes:
    frame = pd.DataFrame(rows, columns=columns)
    out = BytesIO()
    with pd.ExcelWriter(out, engine="openpyxl") as writer:
        frame.to_excel(writer, index=False)
    return out.getvalue()
