from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime

UnitStatus = Literal["available", "reserved", "sold_out"]


class UnitTypeBase(BaseModel):
    name: str
    size_range: Optional[str] = None  # "650-1800"
    price_range: Optional[str] = None  # "1200000-2400000"
    floor_range: Optional[str] = None
    status: UnitStatus = "available"
    units_available: Optional[int] = Field(None, ge=0)
    images: List[str] = []
    floor_plan_image: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("name must not be empty")
        return v


class UnitTypeCreate(UnitTypeBase):
    pass


class UnitTypeCreateForProject(UnitTypeBase):
    project_id: str


class UnitTypeUpdate(BaseModel):
    name: Optional[str] = None
    size_range: Optional[str] = None
    price_range: Optional[str] = None
    floor_range: Optional[str] = None
    status: Optional[UnitStatus] = None
    units_available: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = None
    floor_plan_image: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name", "status", "images", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("must not be null")
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class UnitTypeOut(UnitTypeBase):
    id: str
    project_id: str
    developer_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
