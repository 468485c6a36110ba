from pydantic import BaseModel
from datetime import datetime


class DeveloperStatisticsOut(BaseModel):
    agency_count: int
    active_agency_count: int
    agent_count: int
    agents_showcasing_count: int
    project_count: int
    active_project_count: int
    unit_count: int  # unit types with status "available"
    agent_page_views: int
    buyer_page_views: int
    property_views: int
    agent_growth_rate: float
    views_growth_rate: float
    last_updated: datetime


class AgentStatisticsOut(BaseModel):
    total_projects: int
    total_unit_types: int
    new_projects_30d: int
    total_views: int
    views_30d: int
    unique_viewing_days: int
    refreshed_at: datetime
