from datetime import datetime, timezone

from sqlalchemy import Column, String, Integer, DateTime
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id


def _utc(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are UTC
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class ImportToken(Base):
    __tablename__ = "import_tokens"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    developer_id = Column(String(36), nullable=False, index=True)

    project_count = Column(Integer, nullable=False)  # capacity
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def is_expired(self, now: datetime = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return _utc(self.expires_at) <= now

    def is_usable_for(self, row_count: int, now: datetime = None) -> bool:
        return self.used_at is None and not self.is_expired(now) and self.project_count >= row_count
