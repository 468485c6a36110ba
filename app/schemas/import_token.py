from pydantic import BaseModel, Field
from typing import Optional, List, Any, Dict
from datetime import datetime


class ImportTokenCreate(BaseModel):
    project_count: int = Field(..., ge=1, le=1000)
    valid_hours: Optional[int] = Field(None, ge=1, le=24 * 30)


class ImportTokenOut(BaseModel):
    id: str
    developer_id: str
    project_count: int
    expires_at: datetime
    used_at: Optional[datetime] = None
    created_at: datetime
    is_expired: bool = False

    class Config:
        from_attributes = True


class ImportPreviewOut(BaseModel):
    total: int
    preview: List[Dict[str, Any]]
    suggested_token_id: Optional[str] = None
    message: str


class ImportResultOut(BaseModel):
    total: int
    successful: int
    failed: int
    error_messages: List[str] = []
    token_id: str
