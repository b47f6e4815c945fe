"""Fee reminder schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fee_ledger.core.enums import ReminderType


class FeeReminderCreate(BaseModel):
    reminder_type: ReminderType
    days_before: int = Field(0, ge=0, le=365)
    message: str = Field(..., min_length=1)
    is_active: bool = True
    send_email: bool = True
    send_sms: bool = False


class FeeReminderUpdate(BaseModel):
    """reminder_type is fixed at creation; create a new rule to change it."""

    days_before: Optional[int] = Field(None, ge=0, le=365)
    message: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    send_email: Optional[bool] = None
    send_sms: Optional[bool] = None


class FeeReminderResponse(BaseModel):
    id: UUID
    tenant_id: UUID
    reminder_type: ReminderType
    days_before: int
    message: str
    is_active: bool
    send_email: bool
    send_sms: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ReminderRecipient(BaseModel):
    """A student fee with an open balance and the installment that triggers the reminder."""

    student_fee_id: UUID
    student_id: UUID
    student_name: str
    student_email: str
    installment_id: UUID
    installment_number: int
    due_date: date
    installment_amount: Decimal
    outstanding_amount: Decimal
