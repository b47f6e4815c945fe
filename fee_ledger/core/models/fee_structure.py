"""Fee structure: bundle of fee type line items for a class / academic year, with its installment plan."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from fee_ledger.db.session import Base


class FeeStructure(Base):
    """
    Fee structure per class per academic year.
    Items and installment_type are frozen after creation; assigned ledgers keep their own totals.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        CheckConstraint(
            "installment_type IN ('ANNUAL','SEMI_ANNUAL','QUARTERLY','MONTHLY')",
            name="chk_fee_structure_installment_type",
        ),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    class_id = Column(Uuid, ForeignKey("core.classes.id", ondelete="SET NULL"), nullable=True)
    academic_year_id = Column(
        Uuid,
        ForeignKey("core.academic_years.id", ondelete="RESTRICT"),
        nullable=False,
    )
    installment_type = Column(String(20), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant")
    academic_year = relationship("AcademicYear")
    school_class = relationship("SchoolClass", foreign_keys=[class_id])
    items = relationship(
        "FeeStructureItem",
        back_populates="fee_structure",
        cascade="all, delete-orphan",
    )
    installments = relationship(
        "FeeInstallment",
        back_populates="fee_structure",
        cascade="all, delete-orphan",
        order_by="FeeInstallment.installment_number",
    )

    @property
    def total_amount(self) -> Decimal:
        return sum((Decimal(str(i.amount)) for i in self.items), Decimal("0"))


class FeeStructureItem(Base):
    """One fee type + amount line inside a structure."""

    __tablename__ = "fee_structure_items"
    __table_args__ = (
        UniqueConstraint("fee_structure_id", "fee_type_id", name="uq_fee_structure_item_type"),
        CheckConstraint("amount > 0", name="chk_fee_structure_item_amount"),
        {"schema": "school"},
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_structure_id = Column(
        Uuid,
        ForeignKey("school.fee_structures.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    fee_type_id = Column(
        Uuid,
        ForeignKey("school.fee_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    is_optional = Column(Boolean, nullable=False, default=False)

    fee_structure = relationship("FeeStructure", back_populates="items")
    fee_type = relationship("FeeType")
