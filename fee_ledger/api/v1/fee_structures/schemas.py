"""Fee structure and installment schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fee_ledger.core.enums import InstallmentType


class FeeStructureItemCreate(BaseModel):
    fee_type_id: UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    is_optional: bool = False


class FeeStructureCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    class_id: Optional[UUID] = None
    academic_year_id: UUID
    installment_type: InstallmentType
    items: List[FeeStructureItemCreate] = Field(..., min_length=1)
    is_active: bool = True

    @field_validator("items")
    @classmethod
    def _no_duplicate_fee_types(cls, items: List[FeeStructureItemCreate]) -> List[FeeStructureItemCreate]:
        ids = [i.fee_type_id for i in items]
        if len(ids) != len(set(ids)):
            raise ValueError("Each fee type may appear only once in a fee structure")
        return items


class FeeStructureUpdate(BaseModel):
    """Amounts and installment plan are frozen after creation."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    class_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class FeeStructureItemResponse(BaseModel):
    id: UUID
    fee_type_id: UUID
    fee_type_name: Optional[str] = None
    amount: Decimal
    is_optional: bool


class FeeInstallmentResponse(BaseModel):
    id: UUID
    fee_structure_id: UUID
    installment_number: int
    due_date: date
    amount: Decimal
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FeeStructureResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    name: str
    description: Optional[str] = None
    class_id: Optional[UUID] = None
    academic_year_id: UUID
    installment_type: InstallmentType
    total_amount: Decimal
    is_active: bool
    items: List[FeeStructureItemResponse]
    installments: List[FeeInstallmentResponse]
    created_at: datetime
    updated_at: datetime


# --- Installments ---
class FeeInstallmentCreate(BaseModel):
    fee_structure_id: UUID
    installment_number: int = Field(..., ge=1)
    due_date: date
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    description: Optional[str] = Field(None, max_length=255)


class FeeInstallmentUpdate(BaseModel):
    """Amount is fixed; re-slice a schedule by deleting and re-creating an installment."""

    due_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=255)
