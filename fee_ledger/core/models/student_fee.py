"""Student fee: the per-student ledger row. Balances are only written through the ledger engine."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.core.enums import FeeStatus
from fee_ledger.db.session import Base


class StudentFee(Base):
    """
    Ledger row for one student against one fee structure.
    total_amount is a snapshot of the structure total at assignment time.
    net/outstanding/status are derived; see api/v1/fees/ledger.recompute.
    version is bumped on every UPDATE (optimistic concurrency).
    """

    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_structure_id", name="uq_student_fee_student_structure"),
        CheckConstraint("paid_amount >= 0", name="chk_student_fee_paid_non_negative"),
        CheckConstraint("discount_amount >= 0", name="chk_student_fee_discount_non_negative"),
        # OVERDUE is computed on read, never stored
        CheckConstraint(
            "status IN ('PENDING','PARTIAL','PAID')",
            name="chk_student_fee_status",
        ),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("auth.users.id", ondelete="RESTRICT"), nullable=False, index=True)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("school.fee_structures.id", ondelete="RESTRICT"),
        nullable=False,
    )
    total_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    net_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    outstanding_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(20), nullable=False, default=FeeStatus.PENDING.value)
    version = Column(Integer, nullable=False)
    assigned_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    tenant = relationship("Tenant")
    student = relationship("User", foreign_keys=[student_id])
    fee_structure = relationship("FeeStructure")
    payments = relationship(
        "FeePayment",
        back_populates="student_fee",
        order_by="FeePayment.created_at.desc()",
    )
    discounts = relationship("FeeDiscount", back_populates="student_fee")
