from pydantic import BaseModel
from typing import Optional, Literal
from datetime import datetime


class ContractStatusUpdate(BaseModel):
    """Developer decision on a collaboration request."""
    status: Literal["active", "rejected"]


class ContractOut(BaseModel):
    id: str
    developer_id: str
    agency_id: str
    status: str
    developer_contract_url: Optional[str] = None
    agency_license_url: Optional[str] = None
    agency_signed_contract_url: Optional[str] = None
    agency_registration_url: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContractWithPartyOut(ContractOut):
    # the other side of the contract (agency for developers, developer for agencies)
    party_name: Optional[str] = None
    party_email: Optional[str] = None
    party_avatar_url: Optional[str] = None
