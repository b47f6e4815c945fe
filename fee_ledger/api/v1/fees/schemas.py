"""Fees schemas: assignment, student fee ledger, payments, receipts, discounts."""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fee_ledger.core.enums import DiscountType, FeeStatus, PaymentMode

from fee_ledger.api.v1.fee_structures.schemas import FeeInstallmentResponse

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    data: List[T]
    total: int
    page: int
    limit: int
    total_pages: int


# --- Assignment ---
class AssignFeeRequest(BaseModel):
    student_id: UUID
    fee_structure_id: UUID
    discount_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class BulkAssignFeeRequest(BaseModel):
    student_ids: List[UUID] = Field(..., min_length=1)
    fee_structure_id: UUID
    default_discount_amount: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)


class BulkAssignResult(BaseModel):
    assigned: int
    skipped: int
    total: int


# --- Student Fee ---
class StudentFeeResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_id: UUID
    fee_structure_id: UUID
    total_amount: Decimal
    discount_amount: Decimal
    net_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: FeeStatus
    version: int
    assigned_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# --- Receipt ---
class ReceiptResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    payment_id: UUID
    receipt_number: str
    amount: Decimal
    payment_mode: PaymentMode
    is_cancelled: bool
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    cancelled_by: Optional[UUID] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CancelReceiptRequest(BaseModel):
    cancel_reason: str = Field(..., min_length=1, max_length=1000)


# --- Payment ---
class PaymentCreate(BaseModel):
    student_fee_id: UUID
    installment_id: Optional[UUID] = None
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_mode: PaymentMode
    payment_date: Optional[date] = Field(None, description="Defaults to today")
    transaction_reference: Optional[str] = Field(None, max_length=100)
    cheque_number: Optional[str] = Field(None, max_length=50)
    bank_name: Optional[str] = Field(None, max_length=100)
    remarks: Optional[str] = None


class PaymentResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_fee_id: UUID
    installment_id: Optional[UUID] = None
    receipt_number: str
    amount: Decimal
    payment_mode: PaymentMode
    payment_date: date
    transaction_reference: Optional[str] = None
    cheque_number: Optional[str] = None
    bank_name: Optional[str] = None
    remarks: Optional[str] = None
    is_verified: bool
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    collected_by: Optional[UUID] = None
    created_at: datetime
    receipt: Optional[ReceiptResponse] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentWithReceiptResponse(BaseModel):
    """Result of recording a payment: the payment, its receipt and the updated ledger row."""

    payment: PaymentResponse
    receipt: ReceiptResponse
    student_fee: StudentFeeResponse


class VerifyPaymentRequest(BaseModel):
    remarks: Optional[str] = None


# --- Discount ---
class DiscountCreate(BaseModel):
    """Exactly one of amount or percentage (percentage of the fee total)."""

    student_fee_id: UUID
    discount_type: DiscountType
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    percentage: Optional[Decimal] = Field(None, gt=0, le=100, max_digits=5, decimal_places=2)
    reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _amount_or_percentage(self) -> "DiscountCreate":
        if (self.amount is None) == (self.percentage is None):
            raise ValueError("Provide either amount or percentage")
        return self


class DiscountUpdate(BaseModel):
    reason: str = Field(..., min_length=1)


class DiscountResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    student_fee_id: UUID
    discount_type: DiscountType
    amount: Decimal
    percentage: Optional[Decimal] = None
    reason: str
    approved_by: Optional[UUID] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentFeeDetail(StudentFeeResponse):
    """Ledger row with its history and the read-time overdue flag."""

    fee_structure_name: Optional[str] = None
    is_overdue: bool = False
    payments: List[PaymentResponse] = Field(default_factory=list)
    discounts: List[DiscountResponse] = Field(default_factory=list)
    installments: List[FeeInstallmentResponse] = Field(default_factory=list)
