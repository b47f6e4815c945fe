"""Fee type catalog (Tuition, Transport, Exam, Library). Tenant-scoped."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeType(Base):
    """Tenant-scoped fee category. Cannot be deleted once a structure item uses it; deactivate instead."""

    __tablename__ = "fee_types"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_fee_type_tenant_name"),
        UniqueConstraint("tenant_id", "code", name="uq_fee_type_tenant_code"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
