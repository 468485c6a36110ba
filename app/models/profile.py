import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    # Same id as the Supabase auth user
    id = Column(String(36), primary_key=True, index=True)

    email = Column(String, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, index=True)  # developer / agent / agency

    # agents only: the agency they work for
    agency_id = Column(String(36), nullable=True, index=True)

    avatar_url = Column(String, nullable=True)
    api_token = Column(String, nullable=True, unique=True)

    agent_projects = relationship("AgentProject", back_populates="agent", cascade="all, delete-orphan")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
