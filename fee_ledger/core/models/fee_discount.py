"""Fee discount: resolved absolute amount against a student fee. Deactivation reverses it."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeDiscount(Base):
    """
    amount is frozen at creation (percentage already applied to total_amount).
    percentage is kept for display only.
    """

    __tablename__ = "fee_discounts"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_fee_discount_amount"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_id = Column(
        Uuid,
        ForeignKey("school.student_fees.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    discount_type = Column(String(30), nullable=False)  # SCHOLARSHIP, SIBLING, STAFF_WARD, MERIT, FINANCIAL_AID, OTHER
    amount = Column(Numeric(12, 2), nullable=False)
    percentage = Column(Numeric(5, 2), nullable=True)
    reason = Column(Text, nullable=False)
    approved_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    student_fee = relationship("StudentFee", back_populates="discounts")
    approved_by_user = relationship("User", foreign_keys=[approved_by])
