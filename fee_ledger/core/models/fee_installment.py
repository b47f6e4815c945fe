"""Fee installment: one dated slice of a structure's total. Generated at structure creation."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeInstallment(Base):
    """Immutable once a payment references it."""

    __tablename__ = "fee_installments"
    __table_args__ = (
        UniqueConstraint(
            "fee_structure_id",
            "installment_number",
            name="uq_fee_installment_structure_number",
        ),
        CheckConstraint("installment_number >= 1", name="chk_fee_installment_number"),
        CheckConstraint("amount >= 0", name="chk_fee_installment_amount"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("school.fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    fee_structure = relationship("FeeStructure", back_populates="installments")
