from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class ProfileOut(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    role: str
    agency_id: Optional[str] = None
    avatar_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ApiTokenOut(BaseModel):
    api_token: str
