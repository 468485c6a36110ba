from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id


class PageView(Base):
    __tablename__ = "page_views"

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    property_id = Column(String(36), nullable=True, index=True)
    profile_id = Column(String(36), nullable=True, index=True)  # agent page that was viewed
    viewer_id = Column(String(36), nullable=True, index=True)  # null = anonymous buyer
    user_agent = Column(String, nullable=True)
    viewed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
