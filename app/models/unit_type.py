from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id


class UnitType(Base):
    __tablename__ = "unit_types"

    id = Column(String(36), primary_key=True, index=True, default=new_id)

    project_id = Column(String(36), ForeignKey("properties.id"), nullable=False, index=True)
    project = relationship("Project", back_populates="unit_types")
    agent_unit_types = relationship("AgentUnitType", back_populates="unit_type", cascade="all, delete-orphan")

    developer_id = Column(String(36), nullable=False, index=True)

    name = Column(String, nullable=False)  # "2 Bedroom Apartment"
    size_range = Column(String, nullable=True)  # free text, "650-1800"
    price_range = Column(String, nullable=True)  # free text, "1200000-2400000"
    floor_range = Column(String, nullable=True)

    status = Column(String, nullable=False, default="available")  # available / reserved / sold_out
    units_available = Column(Integer, nullable=True)

    images = Column(JSON, nullable=False, default=list)
    floor_plan_image = Column(String, nullable=True)
    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)
