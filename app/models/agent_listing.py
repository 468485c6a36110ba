from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id


class AgentProject(Base):
    """A project an agent showcases on their page."""
    __tablename__ = "agent_projects"
    __table_args__ = (UniqueConstraint("agent_id", "project_id", name="uq_agent_project"),)

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    agent_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    project_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)

    agent = relationship("Profile", back_populates="agent_projects")
    project = relationship("Project", back_populates="agent_projects")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class AgentUnitType(Base):
    """A unit type an agent displays among their properties."""
    __tablename__ = "agent_unit_types"
    __table_args__ = (UniqueConstraint("agent_id", "unit_type_id", name="uq_agent_unit_type"),)

    id = Column(String(36), primary_key=True, index=True, default=new_id)
    agent_id = Column(String(36), nullable=False, index=True)
    unit_type_id = Column(String(36), ForeignKey("unit_types.id"), nullable=False, index=True)

    unit_type = relationship("UnitType", back_populates="agent_unit_types")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
