import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class User(Base):
    """User within a tenant. Students are users with role STUDENT."""

    __tablename__ = "users"
    __table_args__ = (
        # Email must be unique per tenant
        UniqueConstraint("tenant_id", "email", name="uq_user_tenant_email"),
        {"schema": "auth"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Owning tenant
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id"), nullable=False)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    # High-level role within the tenant: SUPER_ADMIN, ADMIN, ACCOUNTANT, STUDENT, etc.
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    # Current class for students; null for staff
    class_id = Column(Uuid, ForeignKey("core.classes.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
