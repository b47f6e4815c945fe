"""Fee receipt: externally visible, cancellable proxy of exactly one payment."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeReceipt(Base):
    """Cancellation is terminal and is the only way to undo a payment's effect on the ledger."""

    __tablename__ = "fee_receipts"
    __table_args__ = (
        # Per-school uniqueness; the number format has no school marker (see FeePayment)
        UniqueConstraint("tenant_id", "receipt_number", name="uq_fee_receipt_tenant_number"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_id = Column(
        Uuid,
        ForeignKey("school.fee_payments.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    receipt_number = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(30), nullable=False)
    is_cancelled = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancel_reason = Column(Text, nullable=True)
    cancelled_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    payment = relationship("FeePayment", back_populates="receipt")
    cancelled_by_user = relationship("User", foreign_keys=[cancelled_by])
