from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

from app.schemas.unit_type import UnitTypeOut


class AgentProjectView(BaseModel):
    """A developer project as an agent sees it, with price/size bounds from its unit types."""
    id: str
    title: str
    description: Optional[str] = None
    location: str
    developer_id: str
    developer_name: str
    developer_logo: Optional[str] = None
    min_price: float
    max_price: float
    min_size: float
    max_size: float
    handover_date: str
    payment_plan: str
    images: List[str] = []
    videos: List[str] = []
    brochure_url: Optional[str] = None
    is_prelaunch: bool = False
    lat: Optional[float] = None
    lng: Optional[float] = None
    unit_types: List[UnitTypeOut] = []
    added_to_agent_page: bool = False


class AgentProjectLinkOut(BaseModel):
    id: str
    agent_id: str
    project_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class AgentUnitTypeOut(BaseModel):
    id: str
    agent_id: str
    unit_type_id: str
    created_at: datetime

    class Config:
        from_attributes = True
