from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import datetime

from app.schemas.unit_type import UnitTypeCreate, UnitTypeOut

ContractType = Literal["Sale", "Rent"]
ProjectStatus = Literal["draft", "published", "validated"]


class ProjectBase(BaseModel):
    title: str
    description: Optional[str] = None
    location: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    price: float = 0
    images: List[str] = []
    videos: List[str] = []
    amenities: List[str] = []
    type: str = "Apartment"
    contract_type: ContractType = "Sale"
    completion_status: Optional[str] = None
    payment_plan: Optional[str] = None
    handover_date: Optional[str] = None
    first_payment_percent: Optional[float] = Field(None, ge=0, le=100)
    handover_percent: Optional[float] = Field(None, ge=0, le=100)
    brochure_url: Optional[str] = None
    is_prelaunch: bool = False
    launch_date: Optional[datetime] = None
    status: ProjectStatus = "draft"

    @field_validator("title", "location", mode="before")
    @classmethod
    def strip_required(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be empty")
        return v

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v):
        if v < 0:
            raise ValueError("price cannot be negative")
        return v


class ProjectCreate(ProjectBase):
    # Unit groups entered together with the project
    unit_types: List[UnitTypeCreate] = []

    @model_validator(mode="after")
    def prelaunch_needs_launch_date(self) -> "ProjectCreate":
        if self.is_prelaunch and self.launch_date is None:
            raise ValueError("launch_date is required for prelaunch projects")
        return self


class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    price: Optional[float] = Field(None, ge=0)
    videos: Optional[List[str]] = None
    amenities: Optional[List[str]] = None
    type: Optional[str] = None
    contract_type: Optional[ContractType] = None
    completion_status: Optional[str] = None
    payment_plan: Optional[str] = None
    handover_date: Optional[str] = None
    first_payment_percent: Optional[float] = Field(None, ge=0, le=100)
    handover_percent: Optional[float] = Field(None, ge=0, le=100)
    brochure_url: Optional[str] = None
    is_prelaunch: Optional[bool] = None
    launch_date: Optional[datetime] = None
    status: Optional[ProjectStatus] = None

    @field_validator("title", "location", "price", "videos", "amenities", "type",
                     "contract_type", "is_prelaunch", "status", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("title", "location", mode="before")
    @classmethod
    def strip_strings(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be empty")
        return v


class ProjectOut(ProjectBase):
    id: str
    entry_type: str
    size_range_min: Optional[int] = None
    size_range_max: Optional[int] = None
    unit_type_names: List[str] = []
    import_token_id: Optional[str] = None
    creator_id: str
    creator_type: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectDetailOut(ProjectOut):
    unit_types: List[UnitTypeOut] = []


class PageViewCreate(BaseModel):
    profile_id: Optional[str] = None  # set when viewed from an agent's page
