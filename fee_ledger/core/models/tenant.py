import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, Uuid

from fee_ledger.db.session import Base


class Tenant(Base):
    """
    Tenant (school) in the multi-tenant platform.

    Owned by the tenancy layer; the fee ledger only scopes rows by tenant_id.
    """

    __tablename__ = "tenants"
    __table_args__ = {"schema": "core"}

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Human-readable public identifier (e.g. SCH-A3K9); never used as FK
    organization_code = Column(String(20), unique=True, nullable=False, index=True)
    organization_name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
