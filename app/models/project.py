from sqlalchemy import Column, String, DateTime, Float, Boolean, ForeignKey, JSON, Integer
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id


class Project(Base):
    __tablename__ = "properties"

    id = Column(String(36), primary_key=True, index=True, default=new_id)

    title = Column(String, nullable=False)
    description = Column(String, nullable=True)
    location = Column(String, nullable=False)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    price = Column(Float, nullable=False, default=0)
    images = Column(JSON, nullable=False, default=list)
    videos = Column(JSON, nullable=False, default=list)
    amenities = Column(JSON, nullable=False, default=list)

    type = Column(String, nullable=False, default="Apartment")
    contract_type = Column(String, nullable=False, default="Sale")  # Sale / Rent
    completion_status = Column(String, nullable=True)  # off_plan / ready

    # payment plan
    payment_plan = Column(String, nullable=True)  # e.g. "60/40"
    handover_date = Column(String, nullable=True)
    first_payment_percent = Column(Float, nullable=True)
    handover_percent = Column(Float, nullable=True)
    brochure_url = Column(String, nullable=True)

    # prelaunch
    is_prelaunch = Column(Boolean, nullable=False, default=False)
    launch_date = Column(DateTime(timezone=True), nullable=True)

    entry_type = Column(String, nullable=False, default="manual")  # manual / prelaunch / imported
    status = Column(String, nullable=False, default="draft", index=True)  # draft / published / validated

    # filled by spreadsheet imports
    size_range_min = Column(Integer, nullable=True)
    size_range_max = Column(Integer, nullable=True)
    unit_type_names = Column(JSON, nullable=False, default=list)
    import_token_id = Column(String(36), ForeignKey("import_tokens.id"), nullable=True, index=True)

    creator_id = Column(String(36), nullable=False, index=True)
    creator_type = Column(String, nullable=False, index=True)  # developer / agent

    unit_types = relationship("UnitType", back_populates="project", cascade="all, delete-orphan")
    agent_projects = relationship("AgentProject", back_populates="project", cascade="all, delete-orphan")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
