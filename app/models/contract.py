from sqlalchemy import Column, String, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from app.core.database import Base
from app.models.profile import new_id

AGENCY_DOCUMENT_FIELDS = (
    "agency_license_url",
    "agency_signed_contract_url",
    "agency_registration_url",
)


class DeveloperAgencyContract(Base):
    __tablename__ = "developer_agency_contracts"
    __table_args__ = (UniqueConstraint("developer_id", "agency_id", name="uq_developer_agency"),)

    id = Column(String(36), primary_key=True, index=True, default=new_id)

    developer_id = Column(String(36), nullable=False, index=True)
    agency_id = Column(String(36), nullable=False, index=True)

    status = Column(String, nullable=False, default="pending", index=True)  # pending/active/rejected

    # documents (public storage URLs)
    developer_contract_url = Column(String, nullable=True)
    agency_license_url = Column(String, nullable=True)
    agency_signed_contract_url = Column(String, nullable=True)
    agency_registration_url = Column(String, nullable=True)

    notes = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now(), nullable=False)

    def missing_agency_documents(self):
        return [f for f in AGENCY_DOCUMENT_FIELDS if not getattr(self, f)]
