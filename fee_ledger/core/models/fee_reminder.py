"""Fee reminder rule: when and what to tell students with an open balance on an installment."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeReminder(Base):
    """
    days_before is the offset from the installment due date: days ahead of it for BEFORE_DUE,
    days past it for AFTER_DUE, ignored for ON_DUE. Delivery (email/SMS) happens elsewhere.
    """

    __tablename__ = "fee_reminders"
    __table_args__ = (
        CheckConstraint("days_before >= 0", name="chk_fee_reminder_days"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    reminder_type = Column(String(20), nullable=False)  # BEFORE_DUE, ON_DUE, AFTER_DUE
    days_before = Column(Integer, nullable=False, default=0)
    message = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    send_email = Column(Boolean, nullable=False, default=True)
    send_sms = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
