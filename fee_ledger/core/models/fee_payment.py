"""Fee payment: append-only record of money received against a student fee."""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeePayment(Base):
    """
    amount is immutable; corrections go through receipt cancellation + a new payment.
    version guards the one mutable flag (is_verified) against concurrent verification.
    """

    __tablename__ = "fee_payments"
    __table_args__ = (
        # Unique per school, not globally: RCP{YYMM}{seq} carries no school marker, so two
        # schools legitimately issue RCP25040001 in the same month.
        UniqueConstraint("tenant_id", "receipt_number", name="uq_fee_payment_tenant_receipt"),
        CheckConstraint("amount > 0", name="chk_fee_payment_amount"),
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
    installment_id = Column(
        Uuid,
        ForeignKey("school.fee_installments.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    receipt_number = Column(String(30), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_mode = Column(String(30), nullable=False)  # CASH, CHEQUE, CARD, UPI, NET_BANKING, BANK_TRANSFER
    payment_date = Column(Date, nullable=False)
    transaction_reference = Column(String(100), nullable=True)
    cheque_number = Column(String(50), nullable=True)
    bank_name = Column(String(100), nullable=True)
    remarks = Column(Text, nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)
    collected_by = Column(Uuid, ForeignKey("auth.users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    tenant = relationship("Tenant")
    student_fee = relationship("StudentFee", back_populates="payments")
    installment = relationship("FeeInstallment")
    receipt = relationship("FeeReceipt", back_populates="payment", uselist=False)
    collected_by_user = relationship("User", foreign_keys=[collected_by])
    verified_by_user = relationship("User", foreign_keys=[verified_by])
