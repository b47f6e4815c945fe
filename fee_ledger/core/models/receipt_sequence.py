"""Receipt sequence: per-school, per-month counter behind receipt numbers."""

from sqlalchemy import Column, ForeignKey, Integer, String, Uuid

from fee_ledger.db.session import Base


class ReceiptSequence(Base):
    """
    last_number is the last sequence handed out for (tenant_id, period).
    Incremented only through an atomic upsert inside the payment transaction.
    """

    __tablename__ = "receipt_sequences"
    __table_args__ = {"schema": "school"}

    tenant_id = Column(Uuid, ForeignKey("core.tenants.id", ondelete="CASCADE"), primary_key=True)
    period = Column(String(4), primary_key=True)  # YYMM
    last_number = Column(Integer, nullable=False, default=0)
